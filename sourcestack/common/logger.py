"""
Logging setup for the resume harvester.

Every message emitted while a batch job runs carries the job id, both as a
short `[job:xxxxxxxx]` prefix in the console format and as a `job_id` field
in the JSON-lines format, so one job's messages can be filtered out of a
busy log.
"""

import json
import logging
import sys
from typing import Any, Dict, MutableMapping, Optional, Tuple

JOB_ID_PREFIX_LENGTH = 8

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JobLogger(logging.LoggerAdapter):
    """
    Logger adapter that tags records with a batch job id.

    Usage:
        job_log = get_logger(__name__, job_id=job_id)
        job_log.info("Started processing folder ...")
    """

    def __init__(self, logger: logging.Logger, job_id: Optional[str] = None):
        super().__init__(logger, {"job_id": job_id} if job_id else {})
        self.job_id = job_id

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if not self.job_id:
            return msg, kwargs
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return f"[job:{self.job_id[:JOB_ID_PREFIX_LENGTH]}] {msg}", kwargs


class JsonLineFormatter(logging.Formatter):
    """
    Render each record as one JSON object on a single line.

    Tracebacks are folded into an `exc_info` string field, and extras passed
    through `extra=` (such as `job_id`) become top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: "simple" for human-readable lines, "json" for JSON lines
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if format == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(name: str, job_id: Optional[str] = None) -> JobLogger:
    """Logger for `name` tagged with `job_id` (untagged when None)."""
    return JobLogger(logging.getLogger(name), job_id)
