"""
Configuration management.
"""

import os
from dataclasses import dataclass, field


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Backend (empty URL = in-memory backend)
    backend_url: str = field(default_factory=lambda: os.getenv("BACKEND_URL", ""))
    backend_api_key: str = field(default_factory=lambda: os.getenv("BACKEND_API_KEY", ""))
    request_timeout: int = field(default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30")))
    page_size: int = field(default_factory=lambda: int(os.getenv("PAGE_SIZE", "20")))

    # Search
    cache_stale_time_ms: int = field(
        default_factory=lambda: int(os.getenv("CACHE_STALE_TIME_MS", "30000"))
    )
    suggestion_debounce_ms: int = field(
        default_factory=lambda: int(os.getenv("SUGGESTION_DEBOUNCE_MS", "200"))
    )
    suggestion_min_length: int = field(
        default_factory=lambda: int(os.getenv("SUGGESTION_MIN_LENGTH", "2"))
    )

    # Voice
    voice_confidence_threshold: float = field(
        default_factory=lambda: float(os.getenv("VOICE_CONFIDENCE_THRESHOLD", "0.70"))
    )
    voice_history_limit: int = field(
        default_factory=lambda: int(os.getenv("VOICE_HISTORY_LIMIT", "10"))
    )

    # Data
    preferences_path: str = field(
        default_factory=lambda: os.getenv("PREFERENCES_PATH", "./data/preferences.json")
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary. The API key is never included."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "backend_url": self.backend_url,
            "request_timeout": self.request_timeout,
            "page_size": self.page_size,
            "cache_stale_time_ms": self.cache_stale_time_ms,
            "suggestion_debounce_ms": self.suggestion_debounce_ms,
            "suggestion_min_length": self.suggestion_min_length,
            "voice_confidence_threshold": self.voice_confidence_threshold,
            "voice_history_limit": self.voice_history_limit,
            "preferences_path": self.preferences_path,
        }
