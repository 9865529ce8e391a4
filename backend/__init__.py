"""
Backend module for the remote property store and analysis service.

Available backends:
- InMemoryBackend: Development/testing with generated listings
- RestBackend: Hosted database (PostgREST) and functions service over HTTP
"""

from .base import ImageAnalysisAPI, PropertyQueryAPI, SuggestionAPI
from .memory import InMemoryBackend
from .rest import RestBackend

__all__ = [
    "ImageAnalysisAPI",
    "PropertyQueryAPI",
    "SuggestionAPI",
    "InMemoryBackend",
    "RestBackend",
]
