"""Research conversation engine.

One ResearchConversation drives one chat through the research cycle:

1. Route - is the message a confirmation, plan feedback, a clarification
   answer or a fresh query?
2. Plan - ask the planning oracle, enforcing the phase and anti-loop rules
3. Gate - every proposed search waits for an explicit affirmative reply
4. Search - fetch candidates, enrich new documents, fill the dossier, replan

Searches are bounded per investigation by ``max_search_loops``.
"""

from dataclasses import dataclass
from typing import Optional
import asyncio
import logging
import re

from ..core.errors import LexaError, LoopBudgetExceeded
from ..core.extraction import UNKNOWN_ID, CandidateRecord
from ..core.models import GeminiClient
from ..core.leychile import LeyChileClient
from .state import (
    Clarify,
    ConversationTurn,
    EngineState,
    Plan,
    ProposeSearch,
    Respond,
    SearchMore,
    SearchPlan,
    SessionState,
    plan_name,
)
from . import decisions

logger = logging.getLogger(__name__)

CONFIRMATION_PATTERN = re.compile(r"^(s[ií]|procede|correcto|acepto|dale|ok)", re.IGNORECASE)

GREETING = "¡Hola! Soy tu asistente legal de LeyChile. ¿Qué consulta tienes hoy?"
STARTING_SEARCH = "¡Entendido! Iniciando investigación..."
CONFIRM_SHORTCUT = "Sí, procede."


def is_confirmation(message: str) -> bool:
    """True if message starts with an affirmation token."""
    return bool(CONFIRMATION_PATTERN.match(message.strip()))


@dataclass
class EngineConfig:
    """Configuration for the research engine."""
    max_search_loops: int = 2  # Search rounds per investigation
    snippet_concurrency: int = 3  # Documents enriched in parallel
    greeting: str = GREETING


class ResearchConversation:
    """Orchestration state machine for one conversation.

    The conversation owns its SessionState. Turns are serialized by a lock;
    the GeminiClient and LeyChileClient are shared and stateless per call.
    """

    def __init__(
        self,
        client: GeminiClient,
        backend: LeyChileClient,
        config: Optional[EngineConfig] = None,
        session: Optional[SessionState] = None,
    ):
        self.client = client
        self.backend = backend
        self.config = config or EngineConfig()
        self.session = session or SessionState.create()
        self._lock = asyncio.Lock()

        if not self.session.turns and self.config.greeting:
            self.session.append(ConversationTurn.model(self.config.greeting))

    @property
    def busy(self) -> bool:
        return self.session.busy

    @property
    def has_pending_plan(self) -> bool:
        last = self.session.last_turn
        return bool(
            self.session.pending_plan is not None
            and last is not None
            and last.is_awaiting_confirmation
        )

    # =========================================================================
    # Public operations
    # =========================================================================

    async def submit_message(self, message: str) -> SessionState:
        """Handle one user message end to end."""
        message = message.strip()
        if not message:
            raise ValueError("Empty message")

        async with self._lock:
            session = self.session
            session.busy = True
            session.last_error = None
            previous = session.last_turn
            session.append(ConversationTurn.user(message))
            logger.info(
                f"User message in session {session.id}",
                extra={"details": {"length": len(message), "state": session.state.value}},
            )

            try:
                await self._route(previous, message)
            except LexaError as e:
                self._fail(e)
            except Exception as e:
                logger.exception(f"Unexpected failure in session {session.id}")
                self._fail(LexaError(f"Unexpected error: {e}", "Ocurrió un error inesperado."))
            finally:
                for turn in session.turns:
                    turn.is_loading = False
                session.busy = False

        return self.session

    async def accept_pending_plan(self) -> SessionState:
        """Confirmation shortcut: accept the proposal awaiting confirmation."""
        if not self.has_pending_plan:
            raise ValueError("No search proposal is awaiting confirmation")
        return await self.submit_message(CONFIRM_SHORTCUT)

    # =========================================================================
    # Routing
    # =========================================================================

    async def _route(self, previous: Optional[ConversationTurn], message: str):
        session = self.session

        if previous is not None and previous.is_awaiting_confirmation:
            if is_confirmation(message) and session.pending_plan is not None:
                await self._execute(session.pending_plan)
                return
            logger.info("Proposal not confirmed, treating reply as plan feedback")
            await self._plan_and_surface()
            return

        if previous is not None and previous.is_clarification_request:
            session.clarification_attempt += 1
            session.question = f"{session.question}. {message}" if session.question else message
            logger.info(
                "Clarification answer received",
                extra={"details": {"clarification_attempt": session.clarification_attempt}},
            )
        else:
            logger.info("Fresh query, resetting investigation")
            session.reset_investigation(message)

        await self._plan_and_surface()

    def _transition(self, new_state: EngineState):
        old = self.session.state
        self.session.state = new_state
        logger.info(
            f"State {old.value} -> {new_state.value}",
            extra={"details": {"session": self.session.id}},
        )

    # =========================================================================
    # Planning
    # =========================================================================

    def _contract_violation(self, plan: Plan) -> Optional[str]:
        if isinstance(plan, Clarify) and self.session.clarification_attempt > 1:
            return "clarification after the clarification limit"
        if isinstance(plan, Respond) and self.session.dossier.is_empty:
            return "answer with an empty dossier"
        return None

    def _fallback_proposal(self) -> ProposeSearch:
        query = self.session.question or self.session.turns[-1].content
        return ProposeSearch(
            queries=(query,),
            proposal=f'Para avanzar, propongo buscar directamente: "{query}". ¿Procedemos?',
        )

    async def _ask_planner(self, force_proposal: bool = False) -> Plan:
        session = self.session
        return await decisions.plan_next_step(
            session.turns,
            session.dossier.values(),
            session.clarification_attempt,
            self.client,
            force_proposal=force_proposal,
        )

    async def _decide(self) -> Plan:
        """Get the next plan, coercing forward progress on contract violations."""
        plan = await self._ask_planner()
        violation = self._contract_violation(plan)
        if violation is None:
            return plan

        logger.warning(
            f"Planner broke the contract ({violation}), forcing a proposal",
            extra={"details": {"plan": plan_name(plan)}},
        )
        plan = await self._ask_planner(force_proposal=True)
        if self._contract_violation(plan) is None:
            return plan

        logger.warning("Forced re-plan still invalid, using best-effort proposal")
        return self._fallback_proposal()

    async def _plan_and_surface(self):
        self._transition(EngineState.AWAITING_PLAN)
        plan = await self._decide()

        is_search = isinstance(plan, (ProposeSearch, SearchMore))
        if is_search and self.session.search_rounds >= self.config.max_search_loops:
            raise LoopBudgetExceeded(self.session.search_rounds)

        self._surface(plan)

    def _surface(self, plan: Plan):
        session = self.session

        if isinstance(plan, Clarify):
            session.append(ConversationTurn.model(plan.question, is_clarification_request=True))
            self._transition(EngineState.IDLE)

        elif isinstance(plan, ProposeSearch):
            session.pending_plan = plan
            session.append(ConversationTurn.model(plan.proposal, is_awaiting_confirmation=True))
            self._transition(EngineState.AWAITING_CONFIRMATION)

        elif isinstance(plan, SearchMore):
            session.pending_plan = plan
            queries = "\n".join(f"*   {q}" for q in plan.queries)
            content = (
                "He revisado los resultados y propongo profundizar la investigación:\n\n"
                f"{plan.reasoning}\n\nBúsquedas:\n{queries}\n\n"
                "¿Procedemos con esta nueva búsqueda?"
            )
            session.append(ConversationTurn.model(content, is_awaiting_confirmation=True))
            self._transition(EngineState.AWAITING_CONFIRMATION)

        else:
            session.append(ConversationTurn.model(plan.answer, references=list(plan.references)))
            self._transition(EngineState.TERMINAL)

    # =========================================================================
    # Searching
    # =========================================================================

    async def _execute(self, plan: SearchPlan):
        session = self.session
        session.pending_plan = None
        self._transition(EngineState.SEARCHING)
        session.append(ConversationTurn.model(STARTING_SEARCH, is_loading=True))

        added = await self._search_round(plan.queries)
        session.search_rounds += 1

        if added == 0:
            terms = ", ".join(f'"{q}"' for q in plan.queries)
            session.append(ConversationTurn.model(
                f"No encontré documentos nuevos para {terms}. Ajustando la estrategia de búsqueda..."
            ))

        await self._plan_and_surface()

    async def _search_round(self, queries: tuple[str, ...]) -> int:
        """Run one search round. Returns the number of new dossier entries."""
        dossier = self.session.dossier
        new: dict[str, tuple[CandidateRecord, list[str]]] = {}

        for query in queries:
            candidates = await self.backend.fetch_candidates(query)
            for record in candidates:
                if record.identifier == UNKNOWN_ID:
                    continue
                if dossier.has(record.identifier):
                    dossier.put(record, source_query=query)
                elif record.identifier in new:
                    new[record.identifier][1].append(query)
                else:
                    new[record.identifier] = (record, [query])

        if not new:
            return 0

        logger.info(f"Enriching {len(new)} new documents")
        entries = list(new.values())
        semaphore = asyncio.Semaphore(self.config.snippet_concurrency)
        results = await asyncio.gather(
            *(self._enrich(record, semaphore) for record, _ in entries),
            return_exceptions=True,
        )

        # Writes happen only after every enrichment has settled.
        added = 0
        first_error: Optional[BaseException] = None
        for (record, source_queries), result in zip(entries, results):
            if isinstance(result, BaseException):
                first_error = first_error or result
                continue
            for query in source_queries:
                if dossier.put(record, result, query):
                    added += 1

        logger.info(
            f"Dossier now holds {len(dossier)} documents",
            extra={"details": {"added": added}},
        )
        if first_error is not None:
            raise first_error
        return added

    async def _enrich(self, record: CandidateRecord, semaphore: asyncio.Semaphore) -> list[str]:
        """Fetch full text and snippets for one new document."""
        async with semaphore:
            full_text = await self.backend.fetch_law_text(record.identifier)
            if not full_text:
                logger.info(f"No full text for {record.identifier}, storing without snippets")
                return []
            query = self.session.question or record.title
            return await decisions.extract_snippets(query, record.identifier, full_text, self.client)

    def _fail(self, error: LexaError):
        session = self.session
        session.last_error = error.user_message
        session.append(ConversationTurn.model(
            f"Lo siento, ocurrió un error: {error.user_message}",
            is_error=True,
        ))
        logger.error(
            f"Turn aborted: {error}",
            extra={"details": {"error": error, "dossier_size": len(session.dossier)}},
        )
        self._transition(EngineState.IDLE)
