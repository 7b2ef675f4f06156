"""Lexa HTTP service.

Import ``lexa.service.api`` for the FastAPI app; it is not imported here
because importing it builds the default app from the environment.
"""

from .config import ServiceConfig, get_config
from .sessions import SessionStore

__all__ = ["ServiceConfig", "get_config", "SessionStore"]
