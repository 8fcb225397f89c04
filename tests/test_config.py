"""Tests for settings, pipeline config and structured logging."""

import logging

from heo.core.config import PipelineConfig, Settings, get_settings
from heo.core.logging import StructuredFormatter


def test_settings_read_environment():
    settings = get_settings()

    assert settings.GEMINI_API_KEY == "test-gemini-key"
    assert settings.OXIGRAPH_ENDPOINT_URL == "http://oxigraph.test"
    assert settings.HEO_ENV == "test"
    assert not settings.is_production


def test_settings_defaults():
    settings = Settings()

    assert settings.GEMINI_MODEL_NAME_GENERATION == "gemini-1.5-flash-latest"
    assert settings.GEMINI_MODEL_NAME_EMBEDDING == "text-embedding-004"
    assert settings.NOVELTY_THRESHOLD == 0.5
    assert settings.MAX_HYPOTHESES == 5
    assert settings.ALLOW_QUERY_FALLBACK is False
    assert settings.GRAPH_FORMAT == "turtle"


def test_production_flag(monkeypatch):
    monkeypatch.setenv("HEO_ENV", "prod")
    assert Settings().is_production


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_pipeline_config_from_settings(monkeypatch):
    monkeypatch.setenv("NOVELTY_THRESHOLD", "0.25")
    monkeypatch.setenv("ALLOW_QUERY_FALLBACK", "true")
    monkeypatch.setenv("CONTEXT_LIMIT", "7")

    config = PipelineConfig.from_settings(Settings())

    assert config.novelty_threshold == 0.25
    assert config.allow_query_fallback is True
    assert config.embed_query_when_no_context is False
    assert config.context_limit == 7


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("heo.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_renders_key_value_pairs():
    line = StructuredFormatter().format(_record("Anchored hypothesis", run_id="run-1", cid="bafy1"))

    assert "level=INFO" in line
    assert "message=Anchored hypothesis" in line
    assert "run_id=run-1" in line
    assert "cid=bafy1" in line
