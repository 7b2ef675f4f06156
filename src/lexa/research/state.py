"""Conversation state for a research session.

Holds the dossier, the turn history and the plan types the engine moves
between. One SessionState per conversation; nothing here is global.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional, Union
import uuid

from ..core.extraction import NOT_REPORTED, UNKNOWN_ID, CandidateRecord, canonical_link


class EngineState(Enum):
    """States of the orchestration state machine."""
    IDLE = "idle"
    AWAITING_PLAN = "awaiting_plan"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SEARCHING = "searching"
    TERMINAL = "terminal"


@dataclass
class DossierEntry:
    """A dossiered document: metadata, extracted snippets and provenance."""
    record: CandidateRecord
    snippets: list[str] = field(default_factory=list)
    source_queries: set[str] = field(default_factory=set)

    @property
    def identifier(self) -> str:
        return self.record.identifier

    @property
    def title(self) -> str:
        return self.record.title


class Dossier:
    """Identifier-keyed, insertion-ordered store of investigated documents.

    The first write for an identifier fixes its metadata and snippets; later
    writes only add source queries. The "unknown" sentinel is never stored.
    """

    def __init__(self):
        self._entries: dict[str, DossierEntry] = {}

    def put(
        self,
        record: CandidateRecord,
        snippets: Optional[list[str]] = None,
        source_query: Optional[str] = None,
    ) -> bool:
        """Store record. Returns True only if a new entry was created."""
        if record.identifier == UNKNOWN_ID:
            return False

        existing = self._entries.get(record.identifier)
        if existing is not None:
            if source_query:
                existing.source_queries.add(source_query)
            return False

        self._entries[record.identifier] = DossierEntry(
            record=record,
            snippets=list(snippets or []),
            source_queries={source_query} if source_query else set(),
        )
        return True

    def has(self, identifier: str) -> bool:
        return identifier in self._entries

    def get(self, identifier: str) -> Optional[DossierEntry]:
        return self._entries.get(identifier)

    def values(self) -> list[DossierEntry]:
        return list(self._entries.values())

    def clear(self):
        self._entries.clear()

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DossierEntry]:
        return iter(self.values())


@dataclass
class Reference:
    """A citation attached to a final answer."""
    id: str
    title: str
    fragment: str
    law_number: Optional[str] = None
    publication_date: str = NOT_REPORTED
    effective_date: str = NOT_REPORTED
    link: str = ""
    source_queries: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.link:
            self.link = canonical_link(self.id)

    def reconcile(self, entry: Optional[DossierEntry]) -> "Reference":
        """Overwrite everything but id/title/fragment from the dossier entry."""
        if entry is None:
            return self
        return Reference(
            id=self.id,
            title=self.title,
            fragment=self.fragment,
            law_number=entry.record.law_number,
            publication_date=entry.record.publication_date,
            effective_date=entry.record.effective_date,
            link=entry.record.link,
            source_queries=sorted(entry.source_queries),
        )


@dataclass(frozen=True)
class Clarify:
    question: str


@dataclass(frozen=True)
class ProposeSearch:
    queries: tuple[str, ...]
    proposal: str


@dataclass(frozen=True)
class SearchMore:
    queries: tuple[str, ...]
    reasoning: str


@dataclass(frozen=True)
class Respond:
    answer: str
    references: tuple[Reference, ...] = ()


Plan = Union[Clarify, ProposeSearch, SearchMore, Respond]
SearchPlan = Union[ProposeSearch, SearchMore]


def plan_name(plan: Plan) -> str:
    return {
        Clarify: "CLARIFY",
        ProposeSearch: "PROPOSE_PLAN",
        SearchMore: "SEARCH_MORE",
        Respond: "RESPOND",
    }[type(plan)]


@dataclass
class ConversationTurn:
    """One message in the chat history."""
    role: str  # "user" or "model"
    content: str
    is_loading: bool = False
    is_awaiting_confirmation: bool = False
    is_clarification_request: bool = False
    is_error: bool = False
    references: Optional[list[Reference]] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def user(cls, content: str) -> "ConversationTurn":
        return cls(role="user", content=content)

    @classmethod
    def model(cls, content: str, **flags) -> "ConversationTurn":
        return cls(role="model", content=content, **flags)


@dataclass
class SessionState:
    """Everything one conversation owns."""
    id: str
    turns: list[ConversationTurn] = field(default_factory=list)
    dossier: Dossier = field(default_factory=Dossier)
    clarification_attempt: int = 0
    pending_plan: Optional[SearchPlan] = None
    search_rounds: int = 0
    question: Optional[str] = None
    state: EngineState = EngineState.IDLE
    busy: bool = False
    last_error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(cls) -> "SessionState":
        return cls(id=str(uuid.uuid4())[:8])

    @property
    def last_turn(self) -> Optional[ConversationTurn]:
        return self.turns[-1] if self.turns else None

    def append(self, turn: ConversationTurn) -> ConversationTurn:
        self.turns.append(turn)
        self.updated_at = datetime.now()
        return turn

    def reset_investigation(self, question: str):
        """Start over for a fresh query."""
        self.dossier.clear()
        self.clarification_attempt = 0
        self.pending_plan = None
        self.search_rounds = 0
        self.question = question
