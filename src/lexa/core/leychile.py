"""LeyChile backend client.

Two endpoints of https://www.leychile.cl/Consulta/obtxml are used:

- opt=61: candidate listing for a free-text query (``cadena``) with a
  result cap (``cantidad``)
- opt=7: full text of one norm by ``idNorma``

Responses are handed to the extraction layer untouched. Failures are never
retried; they surface as BackendError.
"""

import asyncio
import logging
import os
import re
from typing import Optional

import aiohttp

from .errors import BackendError
from .extraction import UNKNOWN_ID, CandidateRecord, extract_full_text, parse_candidates
from .logbus import SEARCH

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.leychile.cl/Consulta/obtxml"

_XML_ENCODING = re.compile(rb"""<\?xml[^>]*\bencoding=["']([A-Za-z0-9._-]+)["']""")


def format_query(query: str) -> str:
    """Join query terms with a literal '+' (the backend expects it unencoded)."""
    return "+".join(query.split())


def decode_body(body: bytes, charset: Optional[str] = None) -> str:
    """Decode a response body.

    Tries the Content-Type charset, then the XML declaration, then UTF-8.
    Older LeyChile documents are Latin-1 without saying so, which is the
    last resort since it accepts any byte sequence.
    """
    candidates = []
    if charset:
        candidates.append(charset)
    declared = _XML_ENCODING.search(body[:200])
    if declared:
        candidates.append(declared.group(1).decode("ascii"))
    candidates.append("utf-8")

    for encoding in candidates:
        try:
            return body.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            logger.debug(f"Body is not valid {encoding}")
    return body.decode("latin-1")


class LeyChileClient:
    """Async client for the LeyChile XML endpoints."""

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: Optional[str] = None,
        max_results: int = 8,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url or os.environ.get("LEYCHILE_BASE_URL", DEFAULT_BASE_URL)
        self.max_results = max_results
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_headers(self) -> dict:
        return {"User-Agent": "Lexa/0.1 (Legal Research Assistant)"}

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    def search_url(self, query: str) -> str:
        return f"{self.base_url}?opt=61&cadena={format_query(query)}&cantidad={self.max_results}"

    def full_text_url(self, identifier: str) -> str:
        return f"{self.base_url}?opt=7&idNorma={identifier}"

    async def _get_text(self, url: str) -> str:
        """GET url and return the body, mapping every failure to BackendError."""
        session = await self._ensure_session()
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    logger.error(
                        "LeyChile request failed",
                        extra={"details": {"url": url, "status": response.status}},
                    )
                    raise BackendError(
                        f"LeyChile request failed with status {response.status}",
                        status=response.status,
                    )
                body = await response.read()
                return decode_body(body, response.charset)
        except BackendError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error("LeyChile unreachable", extra={"details": {"url": url, "error": e}})
            raise BackendError(f"Could not reach LeyChile: {e}", network=True) from e

    async def fetch_candidates(self, query: str) -> list[CandidateRecord]:
        """Search the listing endpoint and parse the candidates."""
        url = self.search_url(query)
        logger.log(SEARCH, f"Searching LeyChile: {query}", extra={"details": {"url": url}})

        raw = await self._get_text(url)
        logger.debug("Listing received", extra={"details": {"length": len(raw)}})

        candidates = parse_candidates(raw)
        logger.log(
            SEARCH,
            f"{len(candidates)} candidates for '{query}'",
            extra={"details": {"ids": [c.identifier for c in candidates]}},
        )
        return candidates

    async def fetch_law_text(self, identifier: str) -> str:
        """Fetch and extract the full text of one norm ("" if none)."""
        if not identifier or identifier == UNKNOWN_ID:
            return ""

        url = self.full_text_url(identifier)
        logger.debug(f"Fetching full text for {identifier}", extra={"details": {"url": url}})

        raw = await self._get_text(url)
        text = extract_full_text(raw)
        logger.info(
            f"Full text for {identifier}: {len(text)} chars",
            extra={"details": {"raw_length": len(raw)}},
        )
        return text
