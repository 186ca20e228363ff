"""
=============================================================================
LOG SINKS
=============================================================================

Builds the stdlib loggers the access-log middleware writes to.

    LOGGER = new_logger()                       # logfmt on stderr, INFO
    quiet  = new_logger_level(logging.WARNING)
    shipped = new_logger(fmt="json")            # one JSON object per line

=============================================================================
RECORD SHAPE
=============================================================================

Access records carry their data twice:

    record.fields = [("method", "GET"), ("path", "/v1/jobs"), ("time", 3), ...]
    record.msg    = 'method=GET path=/v1/jobs time=3 ...'

so any handler prints something useful, while the formatters below use
the ordered pairs directly:

    LogfmtFormatter  t=2024-06-10T10:55:36.120Z lvl=info method=GET path=/v1/jobs time=3
    JSONFormatter    {"time": "...", "level": "info", "logger": "...", "method": "GET", ...}
    ColorFormatter   logfmt with keys coloured by level (used on a TTY)

Records without ``fields`` (server lifecycle messages and the like) are
rendered with their message under ``msg``.

=============================================================================
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, TextIO, Tuple, Union


ACCESS_LOGGER_NAME = "httphandlers.access"

FORMATS = ("text", "json")

# Marks handlers installed by new_logger() so a second call replaces them.
_OWNED = "_httphandlers_owned"


def _needs_quoting(text: str) -> bool:
    return text == "" or any(ch in text for ch in ' ="\t\r\n')


def logfmt_value(value: Any) -> str:
    """Render one logfmt value, quoting when it would not parse back."""
    if value is None:
        text = ""
    elif isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if _needs_quoting(text):
        return json.dumps(text, ensure_ascii=False)
    return text


def format_logfmt(pairs: Iterable[Tuple[str, Any]]) -> str:
    """[("a", 1), ("b", "x y")] → 'a=1 b="x y"'"""
    return " ".join(f"{key}={logfmt_value(value)}" for key, value in pairs)


def _timestamp(record: logging.LogRecord) -> str:
    when = datetime.fromtimestamp(record.created, timezone.utc)
    return when.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class LogfmtFormatter(logging.Formatter):
    """``t=<RFC3339 UTC> lvl=<level>`` followed by the record's pairs."""

    def pairs(self, record: logging.LogRecord) -> list:
        pairs = [("t", _timestamp(record)), ("lvl", record.levelname.lower())]
        fields = getattr(record, "fields", None)
        if fields:
            pairs.extend(fields)
        else:
            pairs.append(("msg", record.getMessage()))
        return pairs

    def render(self, key: str, value: Any, record: logging.LogRecord) -> str:
        return f"{key}={logfmt_value(value)}"

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join(self.render(k, v, record) for k, v in self.pairs(record))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ColorFormatter(LogfmtFormatter):
    """Logfmt with ANSI-coloured keys, one colour per level."""

    COLORS = {
        logging.ERROR: 31,     # red
        logging.WARNING: 33,   # yellow
        logging.INFO: 32,      # green
        logging.DEBUG: 36,     # cyan
    }
    DEFAULT_COLOR = 35         # magenta

    def render(self, key: str, value: Any, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, self.DEFAULT_COLOR)
        return f"\x1b[{color}m{key}\x1b[0m={logfmt_value(value)}"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Base keys (time, level, logger) come first; a field that collides
    with one of them is dropped, never allowed to replace it.
    """

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": _timestamp(record),
            "level": record.levelname.lower(),
            "logger": record.name,
        }
        fields = getattr(record, "fields", None)
        if fields:
            for key, value in fields:
                data.setdefault(key, value)
        else:
            data["msg"] = record.getMessage()
        if record.exc_info:
            data.setdefault("exc_info", self.formatException(record.exc_info))
        return json.dumps(data, default=str)


def _is_tty(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


def _formatter(fmt: str, stream: TextIO) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    if _is_tty(stream):
        return ColorFormatter()
    return LogfmtFormatter()


def new_logger(
    name: str = ACCESS_LOGGER_NAME,
    level: Union[int, str] = logging.INFO,
    stream: Optional[TextIO] = None,
    fmt: str = "text",
) -> logging.Logger:
    """
    Configure and return the logger called ``name``.

    The logger gets exactly one stream handler (stderr unless ``stream``
    is given) and does not propagate to the root logger, so access lines
    are not printed twice when an application also configures logging.
    Calling this again reconfigures the same logger in place.

    Raises:
        ValueError: if ``fmt`` is not "text" or "json".
    """
    if fmt not in FORMATS:
        raise ValueError(f"unknown log format {fmt!r}, expected one of {FORMATS}")

    stream = stream if stream is not None else sys.stderr
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        if getattr(handler, _OWNED, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    setattr(handler, _OWNED, True)
    handler.setFormatter(_formatter(fmt, stream))
    logger.addHandler(handler)
    return logger


def new_logger_level(level: Union[int, str]) -> logging.Logger:
    """``new_logger()`` at ``level``."""
    return new_logger(level=level)


# Package default used by the log() middleware.
LOGGER = new_logger()
