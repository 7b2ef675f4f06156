"""Service configuration with environment-based settings."""

import os
from dataclasses import dataclass
from functools import lru_cache

from ..core.leychile import DEFAULT_BASE_URL
from ..research.engine import EngineConfig


@dataclass
class ServiceConfig:
    """Production service configuration."""

    # API Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # API Keys
    gemini_api_key: str = ""

    # Backend
    leychile_base_url: str = DEFAULT_BASE_URL
    max_results: int = 8
    backend_timeout_seconds: float = 30.0

    # Research
    max_search_loops: int = 2
    snippet_concurrency: int = 3

    # Sessions
    session_ttl_seconds: int = 3600

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # json or text
    log_buffer_size: int = 500

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Load configuration from environment variables."""
        return cls(
            # API Settings
            host=os.getenv("LEXA_HOST", "0.0.0.0"),
            port=int(os.getenv("LEXA_PORT", "8000")),
            debug=os.getenv("LEXA_DEBUG", "false").lower() == "true",
            # API Keys
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            # Backend
            leychile_base_url=os.getenv("LEYCHILE_BASE_URL", DEFAULT_BASE_URL),
            max_results=int(os.getenv("LEXA_MAX_RESULTS", "8")),
            backend_timeout_seconds=float(os.getenv("LEXA_BACKEND_TIMEOUT", "30")),
            # Research
            max_search_loops=int(os.getenv("LEXA_MAX_SEARCH_LOOPS", "2")),
            snippet_concurrency=int(os.getenv("LEXA_SNIPPET_CONCURRENCY", "3")),
            # Sessions
            session_ttl_seconds=int(os.getenv("LEXA_SESSION_TTL_SECONDS", "3600")),
            # Logging
            log_level=os.getenv("LEXA_LOG_LEVEL", "INFO"),
            log_format=os.getenv("LEXA_LOG_FORMAT", "text"),
            log_buffer_size=int(os.getenv("LEXA_LOG_BUFFER", "500")),
        )

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            max_search_loops=self.max_search_loops,
            snippet_concurrency=self.snippet_concurrency,
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.gemini_api_key:
            errors.append("GEMINI_API_KEY is required")

        if self.max_search_loops < 1:
            errors.append("LEXA_MAX_SEARCH_LOOPS must be at least 1")

        if self.max_results < 1:
            errors.append("LEXA_MAX_RESULTS must be at least 1")

        return errors


@lru_cache()
def get_config() -> ServiceConfig:
    """Get cached configuration instance."""
    return ServiceConfig.from_env()
