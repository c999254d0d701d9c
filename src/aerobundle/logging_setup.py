# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging for the bundler.

Modules log through logging.getLogger(__name__), so every record lands under
the "aerobundle" logger. setup_logging() attaches handlers to that package
logger only; the host application's root logger is left alone.

Build records carry structured fields (project_root, entry_point, file_count,
...) attached with log_fields(). The JSON formatter merges them into the line:

    logger.info("Built bundle", extra=log_fields(entry_point="main.js"))
    {"timestamp": ..., "message": "Built bundle", "entry_point": "main.js", ...}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "aerobundle"
DEFAULT_LOG_DIRNAME = ".aerobundle_logs"

# Keys owned by the formatter; structured fields never overwrite them
_RESERVED_KEYS = frozenset({"timestamp", "level", "logger", "thread", "message", "exception"})


def log_fields(**fields: Any) -> Dict[str, Dict[str, Any]]:
    """Build the extra= mapping for a record with structured fields."""
    return {"extra_fields": fields}


class StructuredFormatter(logging.Formatter):
    """Formats records as one JSON object per line.

    The thread name is included because builds usually run on a server's
    worker pool and coalesced requests share one build.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        fields = getattr(record, "extra_fields", None)
        if isinstance(fields, dict):
            for key, value in fields.items():
                if key not in _RESERVED_KEYS:
                    log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # default=str keeps non-JSON field values (paths, exceptions) loggable
        return json.dumps(log_data, default=str)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Attach a JSON-lines file handler (and optionally a console handler).

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_dir: Directory for log files. If None, uses .aerobundle_logs/
        log_level: Logging level (default: INFO)
        console_output: Also log human-readable lines to stdout (default: True)

    Returns:
        Path of the JSON-lines log file (aerobundle_YYYYMMDD.log).
    """
    if log_dir is None:
        log_dir = Path.cwd() / DEFAULT_LOG_DIRNAME
    log_dir.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    log_file = log_dir / f"aerobundle_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(StructuredFormatter())
    package_logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        package_logger.addHandler(console_handler)

    package_logger.info(
        f"Logging initialized in {log_dir}", extra=log_fields(log_file=str(log_file))
    )
    return log_file
