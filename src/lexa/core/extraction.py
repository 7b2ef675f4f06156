"""Extraction layer for LeyChile responses.

The backend returns loosely structured XML whose tag names drift between
endpoints and over time, so every field is read through an ordered chain of
regex strategies with first-success semantics:

    identifier  <IdNorma>  ->  <Norma id="...">             ->  "unknown"
    title       <TituloNorma>  ->  <Metadatos>..<Titulo>    ->  "title not found"
    law number  <Numero>  ->  <Identificador tipo="Número Ley">  ->  None
    dates       ordered tag list per kind, strict DD-MON-YYYY token

Nothing here performs I/O.
"""

import html
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .errors import BackendError, MalformedResponseError

logger = logging.getLogger(__name__)

UNKNOWN_ID = "unknown"
TITLE_NOT_FOUND = "title not found"
NOT_REPORTED = "not reported"

LINK_TEMPLATE = "https://www.leychile.cl/navegar?idNorma={identifier}"

# Below this length a tagless fallback is most likely an error banner.
FULL_TEXT_MIN_CHARS = 100
# Short payloads mentioning "error" are backend failures, not empty listings.
ERROR_BANNER_MAX_CHARS = 200

_DATE_TOKEN = re.compile(r"\d{2}-[^\W\d_]{3}-\d{4}")
_NORMA_BLOCK = re.compile(r"<Norma\b[^>]*>[\s\S]*?</Norma>")
_TAG = re.compile(r"<[^>]+(>|$)")

Strategy = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class CandidateRecord:
    """One document surfaced by a search listing."""
    identifier: str
    title: str
    publication_date: str
    effective_date: str
    link: str
    law_number: Optional[str] = None


def decode_entities(text: str) -> str:
    """Decode the HTML entities LeyChile leaves inside tag text."""
    return html.unescape(text).replace("\xa0", " ")


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s{2,}", " ", text).strip()


def strip_markup(text: str) -> str:
    """Remove every tag and collapse whitespace."""
    return collapse_whitespace(_TAG.sub(" ", text))


def tag_value(pattern: str) -> Strategy:
    """Build a strategy returning the decoded first capture group of pattern."""
    regex = re.compile(pattern)

    def strategy(block: str) -> Optional[str]:
        match = regex.search(block)
        if match and match.group(1):
            value = decode_entities(match.group(1).strip())
            return value or None
        return None

    return strategy


def first_match(strategies: Sequence[Strategy], block: str) -> Optional[str]:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        value = strategy(block)
        if value:
            return value
    return None


ID_STRATEGIES: tuple[Strategy, ...] = (
    tag_value(r"<IdNorma>([\s\S]*?)</IdNorma>"),
    tag_value(r'<Norma\s+[^>]*?\bid="([^"]+)"'),
)

TITLE_STRATEGIES: tuple[Strategy, ...] = (
    tag_value(r"<TituloNorma>([\s\S]*?)</TituloNorma>"),
    tag_value(
        r"<Metadatos>[\s\S]*?<Norma>[\s\S]*?<Titulo>([\s\S]*?)</Titulo>"
        r"[\s\S]*?</Norma>[\s\S]*?</Metadatos>"
    ),
)

LAW_NUMBER_STRATEGIES: tuple[Strategy, ...] = (
    tag_value(r"<Numero>([\s\S]*?)</Numero>"),
    tag_value(r'<Identificador\s+tipo="Número Ley">([\s\S]*?)</Identificador>'),
)

PUBLICATION_DATE_TAGS: tuple[Strategy, ...] = (
    tag_value(r"<FechaPublicacion>([\s\S]*?)</FechaPublicacion>"),
)

EFFECTIVE_DATE_TAGS: tuple[Strategy, ...] = (
    tag_value(r"<InicioVigencia>([\s\S]*?)</InicioVigencia>"),
    tag_value(r"<FechaVigencia>([\s\S]*?)</FechaVigencia>"),
)

# Both tag names have been seen on the full-text endpoint.
CONTENT_STRATEGY = tag_value(r"<(?:Texto|Contenido)>([\s\S]*?)</(?:Texto|Contenido)>")


def parse_date(content: Optional[str]) -> str:
    """Pull a DD-MON-YYYY token out of tag content."""
    if content:
        match = _DATE_TOKEN.search(content)
        if match:
            return match.group(0).upper()
    return NOT_REPORTED


def find_date(block: str, tags: Sequence[Strategy]) -> str:
    """First tag whose content holds a date token wins."""
    for strategy in tags:
        date = parse_date(strategy(block))
        if date != NOT_REPORTED:
            return date
    return NOT_REPORTED


def canonical_link(identifier: str) -> str:
    return LINK_TEMPLATE.format(identifier=identifier)


def _looks_like_listing(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("<") and ("<Norma" in stripped or "<Listado" in stripped)


def check_listing(raw: str) -> None:
    """Raise if raw is not a recognizable listing.

    Raises:
        BackendError: short payload carrying an error banner.
        MalformedResponseError: anything else that is not a listing.
    """
    if _looks_like_listing(raw):
        return
    if len(raw) < ERROR_BANNER_MAX_CHARS and "error" in raw.lower():
        raise BackendError(f"LeyChile returned an error: {raw.strip()}")
    raise MalformedResponseError("Response is not a LeyChile listing")


def parse_block(block: str) -> Optional[CandidateRecord]:
    """Parse one <Norma> block, or None if it carries no document markers."""
    identifier = first_match(ID_STRATEGIES, block)
    title = first_match(TITLE_STRATEGIES, block)
    if identifier is None and title is None:
        return None

    identifier = identifier or UNKNOWN_ID
    return CandidateRecord(
        identifier=identifier,
        title=title or TITLE_NOT_FOUND,
        law_number=first_match(LAW_NUMBER_STRATEGIES, block),
        publication_date=find_date(block, PUBLICATION_DATE_TAGS),
        effective_date=find_date(block, EFFECTIVE_DATE_TAGS),
        link=canonical_link(identifier),
    )


def parse_candidates(raw: str) -> list[CandidateRecord]:
    """Parse a search listing into CandidateRecords.

    An empty or unrecognizable listing means zero results. Only a short
    error banner raises BackendError.
    """
    try:
        check_listing(raw or "")
    except MalformedResponseError:
        logger.error(
            "Response does not look like a LeyChile listing",
            extra={"details": {"received": (raw or "")[:500]}},
        )
        return []

    records = []
    for block in _NORMA_BLOCK.findall(raw):
        record = parse_block(block)
        if record is None:
            logger.debug("Skipping block without document markers")
            continue
        records.append(record)

    logger.info(f"Parsed {len(records)} candidates from listing")
    return records


def extract_full_text(raw: str) -> str:
    """Extract plain law text from a full-text response, or "" if none."""
    if not raw:
        return ""

    content = CONTENT_STRATEGY(raw)
    if content:
        return strip_markup(content)

    logger.info("Full text has no <Texto>/<Contenido> tag, trying tagless fallback")
    fallback = decode_entities(strip_markup(raw)).strip()
    if len(fallback) > FULL_TEXT_MIN_CHARS:
        return collapse_whitespace(fallback)
    return ""
