"""In-memory conversation store."""

import logging
from datetime import datetime
from typing import Optional

from ..core.leychile import LeyChileClient
from ..core.models import GeminiClient
from ..research.engine import EngineConfig, ResearchConversation

logger = logging.getLogger(__name__)


class SessionStore:
    """Conversations keyed by session id. Each one owns its own state."""

    def __init__(
        self,
        client: GeminiClient,
        backend: LeyChileClient,
        engine_config: Optional[EngineConfig] = None,
    ):
        self.client = client
        self.backend = backend
        self.engine_config = engine_config or EngineConfig()
        self._conversations: dict[str, ResearchConversation] = {}

    def create(self) -> ResearchConversation:
        conversation = ResearchConversation(self.client, self.backend, self.engine_config)
        self._conversations[conversation.session.id] = conversation
        logger.info(f"Created session {conversation.session.id}")
        return conversation

    def get(self, session_id: str) -> Optional[ResearchConversation]:
        return self._conversations.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self._conversations.pop(session_id, None) is not None

    def expire(self, ttl_seconds: int) -> list[str]:
        """Drop idle conversations older than ttl_seconds."""
        now = datetime.now()
        expired = [
            sid for sid, conv in self._conversations.items()
            if not conv.busy
            and (now - conv.session.updated_at).total_seconds() > ttl_seconds
        ]
        for sid in expired:
            del self._conversations[sid]
            logger.debug(f"Expired session {sid}")
        return expired

    def __len__(self) -> int:
        return len(self._conversations)
