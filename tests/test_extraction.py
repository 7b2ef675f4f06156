"""Extraction layer tests: regex strategy chains over LeyChile XML."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lexa.core.errors import BackendError, MalformedResponseError
from lexa.core.extraction import (
    NOT_REPORTED,
    TITLE_NOT_FOUND,
    UNKNOWN_ID,
    canonical_link,
    check_listing,
    decode_entities,
    extract_full_text,
    parse_block,
    parse_candidates,
    parse_date,
)

LISTING = """<?xml version="1.0" encoding="UTF-8"?>
<Listado>
  <Norma>
    <IdNorma>225128</IdNorma>
    <TituloNorma>LEY DE MATRIMONIO CIVIL</TituloNorma>
    <Numero>19947</Numero>
    <FechaPublicacion>17-may-2004</FechaPublicacion>
    <InicioVigencia>18-NOV-2004</InicioVigencia>
  </Norma>
  <Norma id="30000">
    <TituloNorma>C&Oacute;DIGO CIVIL &amp; leyes complementarias</TituloNorma>
    <FechaPublicacion>2000-05-30</FechaPublicacion>
    <FechaVigencia>Vigente desde 01-ENE-2001</FechaVigencia>
  </Norma>
  <Norma><Otro>sin datos</Otro></Norma>
</Listado>"""


class TestDates:
    """Tests for DD-MON-YYYY date parsing."""

    def test_date_is_upper_cased(self):
        assert parse_date("17-may-2004") == "17-MAY-2004"

    def test_date_inside_prose(self):
        assert parse_date("Publicado el 01-ENE-2020 en el Diario Oficial") == "01-ENE-2020"

    def test_iso_date_is_not_reported(self):
        assert parse_date("2004-05-17") == NOT_REPORTED

    def test_numeric_month_is_not_reported(self):
        assert parse_date("17-05-2004") == NOT_REPORTED

    def test_missing_content(self):
        assert parse_date(None) == NOT_REPORTED
        assert parse_date("") == NOT_REPORTED


class TestEntities:
    """Tests for entity decoding."""

    def test_common_entities(self):
        assert decode_entities("Ley &amp; reglamento &quot;X&quot;") == 'Ley & reglamento "X"'

    def test_named_and_numeric_entities(self):
        assert decode_entities("C&Oacute;DIGO d&#237;a") == "CÓDIGO día"

    def test_nbsp_becomes_space(self):
        assert decode_entities("a&nbsp;b") == "a b"

    def test_plain_text_untouched(self):
        assert decode_entities("sin entidades") == "sin entidades"

    def test_escaped_entity_decoded_once(self):
        assert decode_entities("&amp;oacute;") == "&oacute;"
        assert decode_entities("a&amp;nbsp;b") == "a&nbsp;b"


class TestParseCandidates:
    """Tests for listing parsing."""

    def test_primary_tags(self):
        records = parse_candidates(LISTING)
        first = records[0]
        assert first.identifier == "225128"
        assert first.title == "LEY DE MATRIMONIO CIVIL"
        assert first.law_number == "19947"
        assert first.publication_date == "17-MAY-2004"
        assert first.effective_date == "18-NOV-2004"
        assert first.link == "https://www.leychile.cl/navegar?idNorma=225128"

    def test_fallback_strategies(self):
        second = parse_candidates(LISTING)[1]
        assert second.identifier == "30000"
        assert second.title == "CÓDIGO CIVIL & leyes complementarias"
        assert second.law_number is None
        assert second.publication_date == NOT_REPORTED
        assert second.effective_date == "01-ENE-2001"

    def test_block_without_markers_is_skipped(self):
        assert len(parse_candidates(LISTING)) == 2

    def test_empty_listing_is_zero_results(self):
        assert parse_candidates("<Listado></Listado>") == []

    def test_non_listing_is_zero_results(self):
        assert parse_candidates("<html><body>Mantención</body></html>") == []
        assert parse_candidates("") == []

    def test_short_error_banner_raises(self):
        with pytest.raises(BackendError):
            parse_candidates("Error: servicio no disponible")

    def test_long_text_mentioning_error_is_not_banner(self):
        raw = "error " * 100
        assert parse_candidates(raw) == []

    def test_title_only_block_gets_unknown_id(self):
        records = parse_candidates("<Listado><Norma><TituloNorma>Sin id</TituloNorma></Norma></Listado>")
        assert records[0].identifier == UNKNOWN_ID
        assert records[0].link == canonical_link(UNKNOWN_ID)

    def test_id_only_block_gets_title_sentinel(self):
        records = parse_candidates("<Listado><Norma><IdNorma>42</IdNorma></Norma></Listado>")
        assert records[0].title == TITLE_NOT_FOUND
        assert records[0].publication_date == NOT_REPORTED


class TestParseBlock:
    """Tests for single-block strategy fallbacks."""

    def test_metadatos_title(self):
        block = (
            "<Norma><IdNorma>7</IdNorma>"
            "<Metadatos><Norma><Titulo>DECRETO 100</Titulo></Norma></Metadatos></Norma>"
        )
        record = parse_block(block)
        assert record.title == "DECRETO 100"

    def test_law_number_identifier(self):
        block = (
            '<Norma><IdNorma>8</IdNorma><TituloNorma>T</TituloNorma>'
            '<Identificador tipo="Número Ley">20.000</Identificador></Norma>'
        )
        assert parse_block(block).law_number == "20.000"

    def test_no_markers(self):
        assert parse_block("<Norma><Otro/></Norma>") is None


class TestCheckListing:
    """Tests for listing recognition."""

    def test_listing_accepted(self):
        check_listing("<Listado></Listado>")

    def test_garbage_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            check_listing("not xml at all, but long enough to not be a banner " * 10)


class TestFullText:
    """Tests for full text extraction."""

    def test_texto_tag(self):
        raw = "<Norma><Texto>Artículo 1.  <b>El matrimonio</b>\n\n es un contrato</Texto></Norma>"
        assert extract_full_text(raw) == "Artículo 1. El matrimonio es un contrato"

    def test_contenido_tag(self):
        raw = "<Norma><Contenido>Artículo 2. Texto &amp; más</Contenido></Norma>"
        assert extract_full_text(raw) == "Artículo 2. Texto & más"

    def test_tagless_fallback_kept_when_long(self):
        body = "Artículo 1. " + "El divorcio pone término al matrimonio. " * 5
        text = extract_full_text(f"<Norma><Cuerpo>{body}</Cuerpo></Norma>")
        assert text.startswith("Artículo 1.")
        assert len(text) > 100

    def test_short_fallback_dropped(self):
        assert extract_full_text("<Error>No encontrado</Error>") == ""

    def test_empty(self):
        assert extract_full_text("") == ""
