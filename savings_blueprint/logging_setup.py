"""
Logging configuration for the savings engine and its CLI.

PURPOSE:
- One place that decides how engine events are rendered. Modules only call
  structlog.get_logger(__name__) and emit dotted event names
  ("inputs.default_substituted", "allocation.config_error", "pipeline.completed").
- JSON lines by default so a recompute can be followed step by step in any log store;
  a console renderer for people driving the interactive rebalancer by hand.

CONTEXT:
- Events go through the stdlib logging tree, so LOG_LEVEL filtering happens before any
  rendering work (filter_by_level) and pytest's caplog sees every record.
- The module name is kept on each event (add_logger_name) because several engine modules
  log the same kind of event (e.g. rebalance.* from the rebalancer and the CLI).
"""

from __future__ import annotations
import logging
import os
import sys
import structlog

SERVICE = "SavingsBlueprint"


def _renderer(fmt: str):
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def configure_logging(level: str | None = None, fmt: str | None = None):
    """
    Configure structlog on top of stdlib logging.

    parameters:
    - level: str|None – log level; falls back to LOG_LEVEL, then INFO.
    - fmt: str|None – "json" or "console"; falls back to LOG_FORMAT, then "json".

    returns:
    - structlog.BoundLogger – logger bound with service and env.

    example log entry (json):
    {
      "event": "pipeline.completed",
      "level": "info",
      "logger": "savings_blueprint.pipeline",
      "timestamp": "2025-10-21T13:00:00Z",
      "run_id": "a1b2c3d4-20251021130000",
      "latency_ms": 4.2
    }
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(fmt),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger(SERVICE).bind(service=SERVICE, env=os.getenv("ENV", "dev"))
