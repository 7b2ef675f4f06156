"""Core components: extraction, backend and model access, logging."""

from .models import ModelTier, GeminiClient
from .leychile import LeyChileClient
from .extraction import CandidateRecord, parse_candidates, extract_full_text

__all__ = [
    "ModelTier",
    "GeminiClient",
    "LeyChileClient",
    "CandidateRecord",
    "parse_candidates",
    "extract_full_text",
]
