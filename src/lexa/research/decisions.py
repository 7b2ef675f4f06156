"""Oracle calls for the research engine.

- plan_next_step (PRO): decides CLARIFY / PROPOSE_PLAN / SEARCH_MORE / RESPOND
- extract_snippets (LITE): pulls relevant fragments out of one law text

Each function takes a GeminiClient (or anything with the same ``complete``
coroutine) and returns typed results. Planning failures raise PlanningError;
snippet failures degrade to an empty list.
"""

import logging
import re
import time
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from ..core.errors import PlanningError, SnippetExtractionError
from ..core.logbus import AI_PLAN
from ..core.models import GeminiClient, ModelTier
from . import prompts
from .schemas import (
    SNIPPETS_RESPONSE_SCHEMA,
    ClarifyPayload,
    ProposePayload,
    RespondPayload,
    SearchMorePayload,
    plan_adapter,
    snippets_adapter,
)
from .state import (
    Clarify,
    ConversationTurn,
    DossierEntry,
    Plan,
    ProposeSearch,
    Reference,
    Respond,
    SearchMore,
    plan_name,
)

logger = logging.getLogger(__name__)

MAX_DOCUMENT_CHARS = 200_000

_FENCE = re.compile(r"^\s*```(?:json)?\s*\n?([\s\S]*?)\n?\s*```\s*$", re.IGNORECASE)


def _log_llm_call(func_name: str, tier: ModelTier, prompt: str):
    logger.info(f"🤖 LLM_CALL: {func_name} [tier={tier.value}]")
    logger.debug(f"   Prompt preview: {prompt[:150]}...")


def _log_llm_result(func_name: str, result: Any, duration: float):
    if isinstance(result, list):
        preview = f"[{len(result)} items]"
    else:
        preview = str(result)[:200]
    logger.info(f"✅ LLM_DONE: {func_name} [{duration:.2f}s] -> {preview}")


# =============================================================================
# FORMATTING
# =============================================================================

def format_history(turns: Sequence[ConversationTurn]) -> str:
    """Render the chat as <turn> elements. Progress and error turns are omitted."""
    return "\n".join(
        f'<turn role="{t.role}">{t.content}</turn>'
        for t in turns
        if not t.is_loading and not t.is_error
    )


def format_dossier(entries: Sequence[DossierEntry]) -> str:
    if not entries:
        return prompts.EMPTY_DOSSIER

    blocks = []
    for entry in entries:
        snippets = "\n".join(f"    <snippet>{s}</snippet>" for s in entry.snippets)
        queries = ", ".join(sorted(entry.source_queries))
        blocks.append(
            f'  <document id="{entry.identifier}" title="{entry.title}" queries="{queries}">\n'
            f"{snippets}\n"
            f"  </document>"
        )
    return f"Information gathered so far ({len(entries)} documents):\n" + "\n".join(blocks)


def strip_code_fence(text: str) -> Optional[str]:
    """Return the body of a markdown code fence, or None if text is not fenced."""
    match = _FENCE.match(text)
    if match:
        return match.group(1).strip()
    if "```" in text:
        # Fence embedded in prose: take the first fenced body.
        inner = re.search(r"```(?:json)?\s*\n?([\s\S]*?)```", text, re.IGNORECASE)
        if inner:
            return inner.group(1).strip()
    return None


# =============================================================================
# PLANNING ORACLE
# =============================================================================

def decode_plan(text: str) -> Plan:
    """Validate raw oracle output against the plan union.

    Raises:
        PlanningError: empty, non-JSON, or not one of the four plan shapes.
    """
    if not text or not text.strip():
        raise PlanningError("Planner returned an empty response")

    try:
        payload = plan_adapter.validate_json(text)
    except ValidationError as e:
        raise PlanningError(f"Planner returned an invalid plan: {e.errors()[:3]}") from e

    if isinstance(payload, ClarifyPayload):
        return Clarify(question=payload.clarification_question)
    if isinstance(payload, ProposePayload):
        return ProposeSearch(
            queries=tuple(payload.new_search_queries),
            proposal=payload.proposal or payload.reasoning,
        )
    if isinstance(payload, SearchMorePayload):
        return SearchMore(queries=tuple(payload.new_search_queries), reasoning=payload.reasoning)
    if isinstance(payload, RespondPayload):
        return Respond(
            answer=payload.answer,
            references=tuple(
                Reference(id=r.id, title=r.title, fragment=r.fragment)
                for r in payload.references
            ),
        )
    raise PlanningError(f"Unhandled plan payload: {type(payload).__name__}")


def reconcile_references(plan: Respond, entries: Sequence[DossierEntry]) -> Respond:
    """Backfill reference metadata from the dossier by identifier."""
    by_id = {e.identifier: e for e in entries}
    references = tuple(ref.reconcile(by_id.get(ref.id)) for ref in plan.references)
    unmatched = [ref.id for ref in plan.references if ref.id not in by_id]
    if unmatched:
        logger.warning(
            "Planner cited documents outside the dossier",
            extra={"details": {"ids": unmatched}},
        )
    return Respond(answer=plan.answer, references=references)


async def plan_next_step(
    turns: Sequence[ConversationTurn],
    dossier: Sequence[DossierEntry],
    clarification_attempt: int,
    client: GeminiClient,
    force_proposal: bool = False,
) -> Plan:
    """Ask the planning oracle for the next step. Uses PRO model."""
    start_time = time.time()

    prompt = prompts.P_PLAN.format(
        history=format_history(turns),
        dossier=format_dossier(dossier),
        phase=prompts.PHASE_FOLLOW_UP if dossier else prompts.PHASE_EXPLORE,
        clarification_attempt=clarification_attempt,
        force_rule=prompts.P_FORCE_PROPOSAL if force_proposal else "",
    )

    logger.debug(
        "Requesting plan",
        extra={"details": {
            "turns": len(turns),
            "dossier_size": len(dossier),
            "clarification_attempt": clarification_attempt,
            "force_proposal": force_proposal,
        }},
    )
    _log_llm_call("plan_next_step", ModelTier.PRO, prompt)

    try:
        response = await client.complete(prompt, tier=ModelTier.PRO, json_output=True)
    except Exception as e:
        logger.error("Planner call failed", extra={"details": {"error": e}})
        raise PlanningError(f"Planner call failed: {e}") from e

    try:
        plan = decode_plan(response)
    except PlanningError:
        logger.error(
            "Planner returned an unusable plan",
            extra={"details": {"response": (response or "")[:300]}},
        )
        raise

    if isinstance(plan, Respond):
        plan = reconcile_references(plan, dossier)

    logger.log(AI_PLAN, f"Plan received: {plan_name(plan)}", extra={"details": {"plan": plan_name(plan)}})
    _log_llm_result("plan_next_step", plan_name(plan), time.time() - start_time)
    return plan


# =============================================================================
# SNIPPET ORACLE
# =============================================================================

def parse_snippets(text: str) -> list[str]:
    """Parse a JSON array of strings.

    Raises:
        SnippetExtractionError: text is not a JSON array of strings.
    """
    try:
        return snippets_adapter.validate_json(text)
    except ValidationError as e:
        raise SnippetExtractionError(f"Invalid snippet payload: {e.errors()[:1]}") from e


async def extract_snippets(
    query: str,
    document_id: str,
    full_text: str,
    client: GeminiClient,
) -> list[str]:
    """Extract fragments of full_text relevant to query. Uses LITE model.

    Never raises: any failure yields an empty list. A response wrapped in a
    markdown code fence gets exactly one unwrap-and-retry.
    """
    start_time = time.time()
    if not full_text:
        return []

    prompt = prompts.P_EXTRACT_SNIPPETS.format(
        query=query,
        document_id=document_id,
        full_text=full_text[:MAX_DOCUMENT_CHARS],
    )
    logger.debug(f"Requesting snippets for {document_id}", extra={"details": {"query": query}})
    _log_llm_call("extract_snippets", ModelTier.LITE, prompt)

    try:
        response = await client.complete(
            prompt,
            tier=ModelTier.LITE,
            response_schema=SNIPPETS_RESPONSE_SCHEMA,
        )
    except Exception as e:
        logger.error(
            f"Snippet extraction call failed for {document_id}",
            extra={"details": {"error": e}},
        )
        return []

    if not response:
        logger.debug(f"Snippet extraction for {document_id} returned no text")
        return []

    try:
        snippets = parse_snippets(response)
    except SnippetExtractionError as e:
        logger.error(
            f"Could not parse snippets for {document_id}",
            extra={"details": {"error": e, "response": response[:300]}},
        )
        unwrapped = strip_code_fence(response)
        if unwrapped is None:
            return []
        try:
            snippets = parse_snippets(unwrapped)
        except SnippetExtractionError:
            logger.error("Code-fence recovery failed, dropping snippets")
            return []
        logger.info(f"Recovered {len(snippets)} snippets from fenced output")

    snippets = [s.strip() for s in snippets if s and s.strip()]
    logger.info(f"Extracted {len(snippets)} snippets for {document_id}")
    _log_llm_result("extract_snippets", snippets, time.time() - start_time)
    return snippets
