"""LeyChile client tests: URL building and transport error mapping."""

import asyncio

import aiohttp
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lexa.core.errors import CONNECTIVITY_HINT, BackendError
from lexa.core.leychile import DEFAULT_BASE_URL, LeyChileClient, decode_body, format_query


class FakeResponse:
    def __init__(self, status: int, body, charset=None):
        self.status = status
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.charset = charset

    async def read(self) -> bytes:
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Minimal stand-in for aiohttp.ClientSession."""

    def __init__(self, status=200, body="", error=None, charset=None):
        self.status = status
        self.body = body
        self.charset = charset
        self.error = error
        self.closed = False
        self.requested: list[str] = []

    def get(self, url):
        self.requested.append(url)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status, self.body, self.charset)

    async def close(self):
        self.closed = True


def client_with(session: FakeSession) -> LeyChileClient:
    client = LeyChileClient(base_url=DEFAULT_BASE_URL)
    client._session = session
    return client


class TestUrls:
    """Tests for request URLs."""

    def test_format_query(self):
        assert format_query("ley de  tránsito ") == "ley+de+tránsito"

    def test_search_url(self):
        client = LeyChileClient(base_url=DEFAULT_BASE_URL)
        assert client.search_url("ley de tránsito") == (
            "https://www.leychile.cl/Consulta/obtxml?opt=61&cadena=ley+de+tránsito&cantidad=8"
        )

    def test_result_cap(self):
        client = LeyChileClient(base_url=DEFAULT_BASE_URL, max_results=3)
        assert client.search_url("divorcio").endswith("&cantidad=3")

    def test_full_text_url(self):
        client = LeyChileClient(base_url=DEFAULT_BASE_URL)
        assert client.full_text_url("225128") == (
            "https://www.leychile.cl/Consulta/obtxml?opt=7&idNorma=225128"
        )


class TestFetch:
    """Tests for fetch operations over a fake session."""

    @pytest.mark.asyncio
    async def test_fetch_candidates(self):
        body = "<Listado><Norma><IdNorma>1</IdNorma><TituloNorma>LEY</TituloNorma></Norma></Listado>"
        session = FakeSession(body=body)
        records = await client_with(session).fetch_candidates("divorcio")

        assert [r.identifier for r in records] == ["1"]
        assert session.requested == [
            "https://www.leychile.cl/Consulta/obtxml?opt=61&cadena=divorcio&cantidad=8"
        ]

    @pytest.mark.asyncio
    async def test_non_200_raises(self):
        client = client_with(FakeSession(status=503, body="Service Unavailable"))
        with pytest.raises(BackendError) as exc_info:
            await client.fetch_candidates("divorcio")
        assert exc_info.value.status == 503
        assert not exc_info.value.network

    @pytest.mark.asyncio
    async def test_network_error_raises_with_hint(self):
        client = client_with(FakeSession(error=aiohttp.ClientConnectionError("refused")))
        with pytest.raises(BackendError) as exc_info:
            await client.fetch_candidates("divorcio")
        assert exc_info.value.network
        assert exc_info.value.user_message == CONNECTIVITY_HINT

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        client = client_with(FakeSession(error=asyncio.TimeoutError()))
        with pytest.raises(BackendError):
            await client.fetch_law_text("225128")

    @pytest.mark.asyncio
    async def test_fetch_law_text(self):
        session = FakeSession(body="<Norma><Texto>Artículo 1. Texto.</Texto></Norma>")
        text = await client_with(session).fetch_law_text("225128")
        assert text == "Artículo 1. Texto."

    @pytest.mark.asyncio
    async def test_unknown_id_skips_request(self):
        session = FakeSession()
        assert await client_with(session).fetch_law_text("unknown") == ""
        assert await client_with(session).fetch_law_text("") == ""
        assert session.requested == []

    @pytest.mark.asyncio
    async def test_close(self):
        session = FakeSession()
        client = client_with(session)
        await client.close()
        assert session.closed


class TestDecoding:
    """Tests for response body decoding."""

    def test_utf8_default(self):
        assert decode_body("CÓDIGO".encode("utf-8")) == "CÓDIGO"

    def test_header_charset(self):
        assert decode_body("CÓDIGO".encode("iso-8859-1"), "ISO-8859-1") == "CÓDIGO"

    def test_xml_declaration(self):
        body = '<?xml version="1.0" encoding="ISO-8859-1"?><Listado>CÓDIGO</Listado>'
        assert decode_body(body.encode("iso-8859-1")).endswith("CÓDIGO</Listado>")

    def test_undeclared_latin1(self):
        assert decode_body("Ley de Tránsito".encode("iso-8859-1")) == "Ley de Tránsito"

    def test_unknown_charset_ignored(self):
        assert decode_body(b"ley", "x-no-such-codec") == "ley"

    @pytest.mark.asyncio
    async def test_latin1_listing_without_charset(self):
        body = (
            '<?xml version="1.0"?><Listado><Norma><IdNorma>172986</IdNorma>'
            "<TituloNorma>CÓDIGO CIVIL</TituloNorma></Norma></Listado>"
        ).encode("iso-8859-1")
        records = await client_with(FakeSession(body=body)).fetch_candidates("codigo civil")
        assert records[0].title == "CÓDIGO CIVIL"

    @pytest.mark.asyncio
    async def test_latin1_full_text(self):
        body = "<Norma><Texto>Artículo 102. El matrimonio es un contrato solemne.</Texto></Norma>"
        session = FakeSession(body=body.encode("iso-8859-1"), charset=None)
        text = await client_with(session).fetch_law_text("172986")
        assert text.startswith("Artículo 102.")
