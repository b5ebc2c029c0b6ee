"""Logfmt output and structured lifecycle events for the connector."""

import logging
from typing import Any, Iterable, Optional

LOG_EXTRA_FIELDS = (
    "event",
    "state",
    "service",
    "port",
    "operation",
    "operations",
    "url",
    "location",
    "status",
    "duration_ms",
    "attempt",
    "error",
)

EVENT_LOGGER = "soap_connector.observability"

# attributes every LogRecord already owns; extras must not overwrite them
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class LogfmtFormatter(logging.Formatter):
    """
    Render records as ``key=value`` pairs.

    Only the whitelisted extras are emitted, in a fixed order; missing ones are
    skipped.
    """

    def __init__(self, fields: Iterable[str] = LOG_EXTRA_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        pairs = [("level", record.levelname.lower()), ("logger", record.name)]

        msg = record.getMessage()
        if msg:
            pairs.append(("msg", msg))
        pairs.extend(
            (key, getattr(record, key))
            for key in self.fields
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            pairs.append(("exc_type", record.exc_info[0].__name__))

        return " ".join(f"{key}={self._fmt_val(val)}" for key, val in pairs)

    @staticmethod
    def _fmt_val(val: Any) -> str:
        if isinstance(val, (int, float, bool)):
            return str(val)
        s = str(val)
        if not s or any(c in s for c in ' ="'):
            s = '"' + s.replace('"', '\\"') + '"'
        return s


def setup_logging(level: str = "INFO") -> None:
    """Route everything through one logfmt handler on the root logger."""
    root = logging.getLogger()
    # Avoid duplicate handlers if called twice
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(LogfmtFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def log_event(
    event: str,
    logger: Optional[logging.Logger] = None,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log ``event`` as the message with ``fields`` attached as record extras."""
    extra = {k: v for k, v in fields.items() if k not in _RECORD_ATTRS}
    extra["event"] = event
    (logger or logging.getLogger(EVENT_LOGGER)).log(level, event, extra=extra)


__all__ = [
    "EVENT_LOGGER",
    "LOG_EXTRA_FIELDS",
    "LogfmtFormatter",
    "log_event",
    "setup_logging",
]
