"""Wire contracts for oracle JSON output.

The planner's reply is validated as a tagged union on ``plan``; anything that
does not fit one of the four shapes is rejected.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


def _clean_queries(queries: list[str], single: Optional[str]) -> list[str]:
    merged = list(queries)
    if single:
        merged.append(single)
    cleaned = []
    for q in merged:
        q = q.strip()
        if q and q not in cleaned:
            cleaned.append(q)
    return cleaned


class ClarifyPayload(_Payload):
    plan: Literal["CLARIFY"]
    clarification_question: str = Field(..., alias="clarificationQuestion", min_length=1)


class _SearchPayload(_Payload):
    new_search_queries: list[str] = Field(default_factory=list, alias="newSearchQueries")
    search_query: Optional[str] = Field(None, alias="searchQuery")
    reasoning: Optional[str] = None

    @model_validator(mode="after")
    def _require_queries(self):
        self.new_search_queries = _clean_queries(self.new_search_queries, self.search_query)
        if not self.new_search_queries:
            raise ValueError("search plan without queries")
        return self


class ProposePayload(_SearchPayload):
    plan: Literal["PROPOSE_PLAN"]
    proposal: Optional[str] = None

    @model_validator(mode="after")
    def _require_text(self):
        if not (self.proposal or self.reasoning):
            raise ValueError("PROPOSE_PLAN needs 'proposal' or 'reasoning'")
        return self


class SearchMorePayload(_SearchPayload):
    plan: Literal["SEARCH_MORE"]
    reasoning: str = Field(..., min_length=1)


class ReferencePayload(_Payload):
    id: str = Field(..., min_length=1)
    title: str = ""
    fragment: str = ""


class RespondPayload(_Payload):
    plan: Literal["RESPOND"]
    answer: str = Field(..., min_length=1)
    references: list[ReferencePayload] = Field(default_factory=list)


PlanPayload = Annotated[
    Union[ClarifyPayload, ProposePayload, SearchMorePayload, RespondPayload],
    Field(discriminator="plan"),
]

plan_adapter: TypeAdapter = TypeAdapter(PlanPayload)
snippets_adapter: TypeAdapter = TypeAdapter(list[str])

# Declared output shape for the snippet call.
SNIPPETS_RESPONSE_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}
