"""Shared logging setup for the quality-gate scripts.

Provides ``configure_gate_logging(script_name)`` which wires up:
  * Structured JSON or human-readable log lines to **stderr**.
  * Rotating log files under ``logs/quality_gate/`` (one file per script).

Usage::

    from scripts.lib.gate_logger import configure_gate_logging
    logger = configure_gate_logging("check_scenario_catalog")
    logger.info("catalog loaded", extra={"phase": "catalog_loaded", "total": 20})

Library modules log to ``logging.getLogger(__name__)``; their records are
routed to the handlers of the last configured script.

JSON mode is picked up from ``--json`` in ``sys.argv`` unless forced.  The
log directory can be moved with ``QUALITY_GATE_LOG_DIR``.

Log-file rotation keeps the 5 most recent runs (1 MiB each).
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = ["LIBRARY_LOGGER", "configure_gate_logging", "default_log_dir"]

# ── Constants ────────────────────────────────────────────────────────────

_ROOT = Path(__file__).resolve().parent.parent.parent
_DEFAULT_LOG_DIR = _ROOT / "logs" / "quality_gate"
_LOG_DIR_ENV = "QUALITY_GATE_LOG_DIR"
_MAX_BYTES = 1 * 1024 * 1024  # 1 MiB per file
_BACKUP_COUNT = 5
# parent of the scripts.lib.* module loggers
LIBRARY_LOGGER = "scripts.lib"

_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "relativeCreated",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "pathname", "filename", "module", "levelno", "levelname",
    "msecs", "thread", "threadName", "processName", "process",
    "message", "taskName",
})


# ── Formatters ───────────────────────────────────────────────────────────

class _JsonFormatter(logging.Formatter):
    """One JSON object per record, extras merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class _HumanFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(levelname)-5s %(name)s: %(message)s")


# ── Public API ───────────────────────────────────────────────────────────

def default_log_dir() -> Path:
    """Return the directory rotating log files are written to."""
    override = os.environ.get(_LOG_DIR_ENV, "").strip()
    return Path(override) if override else _DEFAULT_LOG_DIR


def configure_gate_logging(
    script_name: str,
    *,
    level: int = logging.INFO,
    json_mode: bool | None = None,
    log_dir: Path | None = None,
) -> logging.Logger:
    """Set up and return a logger for *script_name*.

    Parameters
    ----------
    script_name:
        Logger name and log-file stem (e.g. ``"check_coverage_gate"``).
    level:
        Minimum level for the stderr handler.  The file handler always
        records ``DEBUG`` and above.
    json_mode:
        Force JSON output on stderr.  ``None`` auto-detects ``--json`` in
        ``sys.argv``.
    log_dir:
        Directory for the rotating file.  Defaults to ``default_log_dir()``.

    Returns
    -------
    logging.Logger
        The configured logger.  Repeated calls return the same logger
        without stacking handlers.
        Records from the ``scripts.lib`` modules go to the same handlers.
    """
    if json_mode is None:
        json_mode = "--json" in sys.argv

    logger = logging.getLogger(script_name)
    logger.setLevel(logging.DEBUG)

    if logger.handlers:
        _share_with_library(logger)
        return logger

    formatter: logging.Formatter = (
        _JsonFormatter() if json_mode else _HumanFormatter()
    )

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)

    target_dir = log_dir or default_log_dir()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_dir / f"{script_name}.log",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_JsonFormatter())  # always JSON on disk
        logger.addHandler(file_handler)
    except OSError:
        # File logging is optional; read-only checkouts still run the gate.
        pass

    logger.propagate = False
    _share_with_library(logger)
    return logger


def _share_with_library(logger: logging.Logger) -> None:
    """Route records from the scripts.lib.* module loggers through the
    handlers of *logger*, the most recently configured script."""
    library = logging.getLogger(LIBRARY_LOGGER)
    library.setLevel(logging.DEBUG)
    library.handlers = list(logger.handlers)
