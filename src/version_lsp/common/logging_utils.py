"""Logging helpers: structured context, URL redaction, timing and setup.

Registry clients and the cache attach ``extra_context(...)`` fields to their
records; ``configure_logging`` renders them as JSON lines into the log file
under the data directory so the editor's stdio channel stays clean.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
import urllib.parse
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..constants import Constants

_CONTEXT_KEY = "context_fields"
_SENSITIVE_PARAMS = {"token", "access_token", "api_key", "apikey", "key", "password", "secret"}
_BEARER_RE = re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-]+")


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra=`` mapping for a structured log call.

    None values are dropped so call sites can pass optional fields freely.
    """
    return {_CONTEXT_KEY: {k: v for k, v in fields.items() if v is not None}}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Cheap guard for building expensive DEBUG payloads."""
    return logger.isEnabledFor(logging.DEBUG)


def redact(text: str) -> str:
    """Mask bearer tokens in free text."""
    return _BEARER_RE.sub(r"\1[REDACTED]", text)


def safe_url(url: str) -> str:
    """Return the URL with credentials and secret query values masked."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "[REDACTED]@" + netloc.rsplit("@", 1)[1]
    query = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
    masked = [(k, "[REDACTED]" if k.lower() in _SENSITIVE_PARAMS else v) for k, v in query]
    return urllib.parse.urlunsplit(
        (parts.scheme, netloc, parts.path, urllib.parse.urlencode(masked, safe="[]"), parts.fragment)
    )


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000, 2)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with structured context fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Context fields never replace the core keys.
        for key, value in (getattr(record, _CONTEXT_KEY, {}) or {}).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def resolve_level(level: Union[str, int, None] = None) -> int:
    """Explicit level, else $VERSION_LSP_LOG, else INFO."""
    if level is None:
        level = os.environ.get(Constants.ENV_LOG_LEVEL, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(log_file: Optional[Union[str, Path]] = None,
                      level: Union[str, int, None] = None) -> None:
    """Configure the ``version_lsp`` logger hierarchy.

    With a log file, records are appended as JSON lines; without one they go
    to stderr in the plain ``LOG_FORMAT``.
    """
    root = logging.getLogger("version_lsp")
    root.setLevel(resolve_level(level))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(JsonFormatter())
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
