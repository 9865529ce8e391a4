"""
Utility modules for property search.
"""

from .formatting import format_percent, format_price, format_response_time
from .config import Config

__all__ = ["format_percent", "format_price", "format_response_time", "Config"]
