"""Research cycle: dossier, oracle decisions and the conversation engine."""

from .engine import ResearchConversation, EngineConfig
from .state import Dossier, DossierEntry, SessionState, ConversationTurn

__all__ = [
    "ResearchConversation",
    "EngineConfig",
    "Dossier",
    "DossierEntry",
    "SessionState",
    "ConversationTurn",
]
