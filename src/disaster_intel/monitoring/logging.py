"""Logging for ingestion runs.

Every record of a run can carry three context fields: ``run_id`` (one
orchestrator run), ``source_id`` (the feed) and ``stage`` (fetch, normalize,
ingest, merge). Output goes to stderr so the CLI can keep stdout for the
merged table, as text by default or as one JSON object per line.
"""

import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

ROOT_LOGGER = "disaster_intel"
CONTEXT_FIELDS = ("run_id", "source_id", "stage")
CONTEXT_LABELS = {"run_id": "run", "source_id": "source", "stage": "stage"}

# Loggers outside the package namespace that share the run's handler.
COMPONENT_LOGGERS = ("normalizer", "adapter", "pipeline", "orchestrator")

# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """One JSON object per record, context fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({k: getattr(record, k) for k in CONTEXT_FIELDS if hasattr(record, k)})

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        # structured extras, e.g. extra={"payload": {"dropped": 3}}
        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            entry["payload"] = payload

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``LEVEL logger [run=.. source=.. stage=..] message``"""

    def format(self, record: logging.LogRecord) -> str:
        context = " ".join(
            f"{CONTEXT_LABELS[k]}={getattr(record, k)}" for k in CONTEXT_FIELDS if getattr(record, k, None)
        )
        line = f"{record.levelname} {record.name}"
        if context:
            line += f" [{context}]"
        line += f" {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingOptions:
    """Level name and output format for a run."""

    level: str = "INFO"
    json_logs: bool = False


def setup_logging(options: Optional[LoggingOptions] = None) -> logging.Logger:
    """
    Route the package and component loggers to a single stderr handler.

    Safe to call repeatedly: previous handlers on those loggers are replaced.
    Unknown level names fall back to INFO.
    """
    options = options or LoggingOptions()
    level = getattr(logging, options.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter() if options.json_logs else TextFormatter())

    package_logger = logging.getLogger(ROOT_LOGGER)
    for logger in [package_logger] + [logging.getLogger(n) for n in COMPONENT_LOGGERS]:
        for old in list(logger.handlers):
            logger.removeHandler(old)
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False

    return package_logger


# ---------------------------------------------------------------------
# Context injection
# ---------------------------------------------------------------------


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its fixed context with per-call ``extra``."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def with_context(
    logger: logging.Logger,
    *,
    run_id: Optional[str] = None,
    source_id: Optional[str] = None,
    stage: Optional[str] = None,
) -> ContextAdapter:
    """Wrap ``logger`` so every record carries the given (non-empty) context."""
    values = {"run_id": run_id, "source_id": source_id, "stage": stage}
    return ContextAdapter(logger, {k: v for k, v in values.items() if v})
