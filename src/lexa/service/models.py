"""Pydantic models for API request/response schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..research.state import ConversationTurn, Reference, SessionState


class MessageRequest(BaseModel):
    """A message typed by the user."""
    content: str = Field(..., min_length=1, description="User message")

    class Config:
        json_schema_extra = {
            "example": {"content": "¿Cuáles son los requisitos para divorciarse?"}
        }


class ReferenceView(BaseModel):
    """A citation attached to a final answer."""
    id: str
    title: str
    fragment: str
    law_number: Optional[str] = None
    publication_date: str
    effective_date: str
    link: str
    source_queries: list[str] = Field(default_factory=list)

    @classmethod
    def from_reference(cls, ref: Reference) -> "ReferenceView":
        return cls(
            id=ref.id,
            title=ref.title,
            fragment=ref.fragment,
            law_number=ref.law_number,
            publication_date=ref.publication_date,
            effective_date=ref.effective_date,
            link=ref.link,
            source_queries=list(ref.source_queries),
        )


class TurnView(BaseModel):
    """One chat turn as shown by the client."""
    role: str
    content: str
    timestamp: datetime
    is_loading: bool = False
    is_awaiting_confirmation: bool = False
    is_clarification_request: bool = False
    is_error: bool = False
    references: Optional[list[ReferenceView]] = None

    @classmethod
    def from_turn(cls, turn: ConversationTurn) -> "TurnView":
        return cls(
            role=turn.role,
            content=turn.content,
            timestamp=turn.timestamp,
            is_loading=turn.is_loading,
            is_awaiting_confirmation=turn.is_awaiting_confirmation,
            is_clarification_request=turn.is_clarification_request,
            is_error=turn.is_error,
            references=(
                [ReferenceView.from_reference(r) for r in turn.references]
                if turn.references is not None else None
            ),
        )


class SessionView(BaseModel):
    """Everything the rendering surface needs for one conversation."""
    session_id: str
    state: str
    busy: bool
    last_error: Optional[str] = None
    awaiting_confirmation: bool = False
    dossier_size: int = 0
    turns: list[TurnView]

    @classmethod
    def from_session(cls, session: SessionState) -> "SessionView":
        last = session.last_turn
        return cls(
            session_id=session.id,
            state=session.state.value,
            busy=session.busy,
            last_error=session.last_error,
            awaiting_confirmation=bool(
                session.pending_plan is not None and last is not None and last.is_awaiting_confirmation
            ),
            dossier_size=len(session.dossier),
            turns=[TurnView.from_turn(t) for t in session.turns],
        )


class LogEventView(BaseModel):
    """A structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    details: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    gemini_configured: bool
    active_sessions: int
    uptime_seconds: float


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None
