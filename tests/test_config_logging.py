"""Tests for settings loading and structured log formatting."""

import logging

import pytest

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.core.logging import StructuredFormatter, get_logger, log_with_context
from proposal_engine.core.plugin_manager import PluginManager, ProposalPlugin
from proposal_engine.core.schemas_context import ProposalStage


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.MODEL_FALLBACK_ORDER == ["claude", "gemini", "openai"]
        assert settings.WEBSITE_FETCH_TIMEOUT == 10.0
        assert settings.MODEL_CALL_TIMEOUT == 60.0
        assert settings.HALT_ON_VALIDATION_ERRORS is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MODEL_FALLBACK_ORDER", '["openai", "claude"]')
        monkeypatch.setenv("HALT_ON_VALIDATION_ERRORS", "true")
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        settings = Settings(_env_file=None)

        assert settings.MODEL_FALLBACK_ORDER == ["openai", "claude"]
        assert settings.HALT_ON_VALIDATION_ERRORS is True
        assert settings.GEMINI_API_KEY == "g-key"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestStructuredLogging:
    def _record(self, msg: str, **attrs) -> logging.LogRecord:
        record = logging.LogRecord(
            name="proposal_engine.test", level=logging.INFO, pathname=__file__, lineno=1,
            msg=msg, args=(), exc_info=None,
        )
        for key, value in attrs.items():
            setattr(record, key, value)
        return record

    def test_pipeline_fields_come_before_message(self):
        record = self._record(
            "Plugin failed", proposal_id="abc-123", stage=ProposalStage.ENRICH, plugin="web-scraper",
            fields={"duration_ms": 1.5},
        )

        line = StructuredFormatter().format(record)

        assert "level=INFO" in line
        assert "proposal_id=abc-123 stage=enrich plugin=web-scraper " in line
        assert line.index("plugin=") < line.index("message=")
        assert line.endswith('message="Plugin failed" duration_ms=1.5')

    def test_missing_pipeline_fields_are_omitted(self):
        line = StructuredFormatter().format(self._record("ready", proposal_id=None))

        assert "proposal_id" not in line
        assert "stage=" not in line
        assert line.endswith("message=ready")

    def test_values_with_quotes_are_escaped(self):
        line = StructuredFormatter().format(self._record('say "hi"'))
        assert line.endswith('message="say \\"hi\\""')

    def test_log_with_context_sets_record_fields(self, caplog):
        logger = get_logger("proposal_engine.tests")

        with caplog.at_level(logging.INFO, logger="proposal_engine.tests"):
            log_with_context(
                logger, logging.INFO, "hello",
                proposal_id="p-1", stage=ProposalStage.VALIDATE, merchant="Acme",
            )

        record = caplog.records[-1]
        assert record.proposal_id == "p-1"
        assert record.stage == ProposalStage.VALIDATE
        assert record.plugin is None
        assert record.fields == {"merchant": "Acme"}

    def test_log_level_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        get_settings.cache_clear()
        try:
            logger = get_logger("proposal_engine.tests.level_override")
            assert logger.level == logging.WARNING
        finally:
            get_settings.cache_clear()

    def test_non_dev_defaults_to_info(self):
        assert get_logger("proposal_engine.tests.default_level").level == logging.INFO

    @pytest.mark.asyncio
    async def test_plugin_failure_log_carries_pipeline_fields(self, caplog, context):
        class Exploding(ProposalPlugin):
            id = "exploding"
            name = "Exploding"
            stage = ProposalStage.ENRICH

            async def run(self, context):
                raise RuntimeError("boom")

        manager = PluginManager()
        manager.register(Exploding())

        with caplog.at_level(logging.ERROR, logger="proposal_engine.core.plugin_manager"):
            await manager.run_stage(ProposalStage.ENRICH, context)

        record = caplog.records[-1]
        assert record.getMessage() == "Plugin failed: boom"
        assert record.proposal_id == context.id
        assert record.stage == ProposalStage.ENRICH
        assert record.plugin == "exploding"
