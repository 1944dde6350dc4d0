import json
import logging

import structlog

from savings_blueprint.logging_setup import configure_logging


def test_configure_logging_binds_service_and_renders_json(monkeypatch, caplog):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("ENV", "test")
    caplog.set_level(logging.INFO)
    try:
        log = configure_logging()
        assert structlog.get_context(log) == {"service": "SavingsBlueprint", "env": "test"}

        log.info("pipeline.completed", latency_ms=4.2)
        entries = [json.loads(r.getMessage()) for r in caplog.records if "pipeline.completed" in r.getMessage()]
        assert entries
        entry = entries[-1]
        assert entry["event"] == "pipeline.completed"
        assert entry["level"] == "info"
        assert entry["service"] == "SavingsBlueprint"
        assert entry["env"] == "test"
        assert entry["latency_ms"] == 4.2
        assert "timestamp" in entry
    finally:
        structlog.reset_defaults()


def test_console_format_and_logger_name(caplog):
    caplog.set_level(logging.INFO)
    try:
        log = configure_logging(level="INFO", fmt="console")
        log.info("rebalance.budget_changed", new=2000)
        lines = [r.getMessage() for r in caplog.records if "rebalance.budget_changed" in r.getMessage()]
        assert lines
        assert "service=SavingsBlueprint" in lines[-1]
        assert "new=2000" in lines[-1]
        assert not lines[-1].lstrip().startswith("{")
    finally:
        structlog.reset_defaults()


def test_json_entries_carry_logger_name(caplog):
    caplog.set_level(logging.INFO)
    try:
        configure_logging(fmt="json")
        structlog.get_logger("savings_blueprint.pipeline").info("pipeline.completed")
        entries = [json.loads(r.getMessage()) for r in caplog.records if "pipeline.completed" in r.getMessage()]
        assert entries[-1]["logger"] == "savings_blueprint.pipeline"
    finally:
        structlog.reset_defaults()
