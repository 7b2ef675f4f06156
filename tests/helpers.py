"""Test doubles for the oracle client and the LeyChile backend."""

import json
import re
import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lexa.core.leychile import LeyChileClient
from lexa.core.models import ModelTier


class ScriptedClient:
    """Stands in for GeminiClient.

    PRO calls pop the next scripted plan (dicts are JSON-encoded); LITE calls
    return ``snippets`` for every document.
    """

    def __init__(self, plans=None, snippets='["Artículo 55. El divorcio procede..."]'):
        self.plans = list(plans or [])
        self.snippets = snippets
        self.calls: list[dict] = []

    @property
    def plan_prompts(self) -> list[str]:
        return [c["prompt"] for c in self.calls if c["tier"] == ModelTier.PRO]

    @property
    def snippet_prompts(self) -> list[str]:
        return [c["prompt"] for c in self.calls if c["tier"] == ModelTier.LITE]

    async def complete(
        self,
        prompt: str,
        tier: ModelTier = ModelTier.PRO,
        json_output: bool = False,
        response_schema=None,
        timeout: Optional[float] = None,
    ) -> str:
        self.calls.append({
            "prompt": prompt,
            "tier": tier,
            "json_output": json_output,
            "response_schema": response_schema,
        })
        if tier == ModelTier.LITE:
            if isinstance(self.snippets, Exception):
                raise self.snippets
            return self.snippets
        if not self.plans:
            raise RuntimeError("No scripted plan left")
        plan = self.plans.pop(0)
        if isinstance(plan, Exception):
            raise plan
        return plan if isinstance(plan, str) else json.dumps(plan, ensure_ascii=False)


class FakeLeyChile(LeyChileClient):
    """LeyChileClient serving canned XML and recording every URL requested."""

    def __init__(self, listings=None, texts=None, **kwargs):
        super().__init__(base_url="https://leychile.test/obtxml", **kwargs)
        self.listings: dict[str, str] = dict(listings or {})
        self.texts: dict[str, str] = dict(texts or {})
        self.urls: list[str] = []
        self.error: Optional[Exception] = None
        self.text_errors: dict[str, Exception] = {}

    async def _get_text(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        match = re.search(r"cadena=([^&]*)", url)
        if match:
            query = match.group(1).replace("+", " ")
            return self.listings.get(query, "<Listado></Listado>")
        match = re.search(r"idNorma=([^&]*)", url)
        if not match:
            return ""
        if match.group(1) in self.text_errors:
            raise self.text_errors[match.group(1)]
        return self.texts.get(match.group(1), "")

    @property
    def search_urls(self) -> list[str]:
        return [u for u in self.urls if "opt=61" in u]

    @property
    def text_urls(self) -> list[str]:
        return [u for u in self.urls if "opt=7" in u]


def norma(identifier, title, number=None, published="17-MAY-2004", effective="18-NOV-2004"):
    parts = [f"<IdNorma>{identifier}</IdNorma>", f"<TituloNorma>{title}</TituloNorma>"]
    if number:
        parts.append(f"<Numero>{number}</Numero>")
    parts.append(f"<FechaPublicacion>{published}</FechaPublicacion>")
    parts.append(f"<InicioVigencia>{effective}</InicioVigencia>")
    return "<Norma>" + "".join(parts) + "</Norma>"


def listing(*blocks) -> str:
    return '<?xml version="1.0" encoding="UTF-8"?>\n<Listado>' + "".join(blocks) + "</Listado>"


def full_text(body: str) -> str:
    return f"<Norma><Texto>{body}</Texto></Norma>"


def propose(*queries, proposal="Propongo buscar la ley de matrimonio civil. ¿Procedemos?"):
    return {"plan": "PROPOSE_PLAN", "newSearchQueries": list(queries), "proposal": proposal}


def search_more(*queries, reasoning="Necesito más detalle sobre el acuerdo regulador."):
    return {"plan": "SEARCH_MORE", "newSearchQueries": list(queries), "reasoning": reasoning}


def clarify(question="¿Podrías dar más detalles?"):
    return {"plan": "CLARIFY", "clarificationQuestion": question}


def respond(answer="El divorcio se rige por la Ley 19.947.", references=()):
    return {"plan": "RESPOND", "answer": answer, "references": list(references)}
