"""Service configuration tests."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lexa.core.leychile import DEFAULT_BASE_URL
from lexa.service.config import ServiceConfig, get_config


class TestServiceConfig:
    """Tests for ServiceConfig."""

    def test_defaults(self):
        config = ServiceConfig()
        assert config.port == 8000
        assert config.max_results == 8
        assert config.max_search_loops == 2
        assert config.leychile_base_url == DEFAULT_BASE_URL

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "abc")
        monkeypatch.setenv("LEXA_PORT", "9000")
        monkeypatch.setenv("LEXA_DEBUG", "true")
        monkeypatch.setenv("LEXA_MAX_SEARCH_LOOPS", "4")
        monkeypatch.setenv("LEXA_SNIPPET_CONCURRENCY", "5")
        monkeypatch.setenv("LEXA_LOG_FORMAT", "json")

        config = ServiceConfig.from_env()

        assert config.gemini_api_key == "abc"
        assert config.port == 9000
        assert config.debug is True
        assert config.max_search_loops == 4
        assert config.log_format == "json"

    def test_engine_config(self):
        engine = ServiceConfig(max_search_loops=3, snippet_concurrency=1).engine_config()
        assert engine.max_search_loops == 3
        assert engine.snippet_concurrency == 1

    def test_validate(self):
        assert ServiceConfig(gemini_api_key="k").validate() == []
        errors = ServiceConfig(gemini_api_key="", max_search_loops=0).validate()
        assert "GEMINI_API_KEY is required" in errors
        assert len(errors) == 2


class TestRunServer:
    """Tests for the server entry point."""

    def test_defaults_come_from_config(self, monkeypatch):
        import uvicorn

        sys.path.insert(0, str(Path(__file__).parent.parent))
        import run_server

        monkeypatch.setenv("LEXA_HOST", "127.0.0.1")
        monkeypatch.setenv("LEXA_PORT", "9100")
        monkeypatch.setenv("LEXA_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LEXA_LOG_FORMAT", "json")
        monkeypatch.setattr(sys, "argv", ["run_server.py"])

        calls = {}
        monkeypatch.setattr(run_server, "setup_logging", lambda level, fmt: calls.update(logging=(level, fmt)))
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.update(app=app, **kwargs))

        get_config.cache_clear()
        try:
            run_server.main()
        finally:
            get_config.cache_clear()

        assert calls["logging"] == ("DEBUG", "json")
        assert calls["app"] == "lexa.service.api:app"
        assert calls["host"] == "127.0.0.1"
        assert calls["port"] == 9100
        assert calls["log_level"] == "debug"
        assert calls["workers"] == 1
