"""Lexa - legal research assistant over the LeyChile repository.

Lexa runs a multi-turn research conversation: a planning model proposes
searches, the user confirms them, LeyChile documents are fetched and mined
for relevant fragments, and the planner answers once the dossier holds
enough evidence.

Basic Usage:
    from lexa import GeminiClient, LeyChileClient, ResearchConversation

    conversation = ResearchConversation(GeminiClient(), LeyChileClient())
    await conversation.submit_message("¿Cómo se tramita un divorcio?")
    await conversation.accept_pending_plan()

    for turn in conversation.session.turns:
        print(turn.role, turn.content)
"""

__version__ = "0.1.0"

from .core.errors import (
    LexaError,
    BackendError,
    MalformedResponseError,
    PlanningError,
    SnippetExtractionError,
    LoopBudgetExceeded,
)
from .core.extraction import CandidateRecord, parse_candidates, extract_full_text
from .core.leychile import LeyChileClient
from .core.logbus import LogChannel, LogEvent, log_channel, setup_logging
from .core.models import GeminiClient, ModelTier
from .research.engine import EngineConfig, ResearchConversation
from .research.state import Dossier, DossierEntry, ConversationTurn, SessionState

__all__ = [
    "__version__",
    # Errors
    "LexaError",
    "BackendError",
    "MalformedResponseError",
    "PlanningError",
    "SnippetExtractionError",
    "LoopBudgetExceeded",
    # Core
    "CandidateRecord",
    "parse_candidates",
    "extract_full_text",
    "LeyChileClient",
    "GeminiClient",
    "ModelTier",
    "LogChannel",
    "LogEvent",
    "log_channel",
    "setup_logging",
    # Research
    "EngineConfig",
    "ResearchConversation",
    "Dossier",
    "DossierEntry",
    "ConversationTurn",
    "SessionState",
]
