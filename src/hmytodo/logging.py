"""Logging setup shared by the terminal client and embedders.

Call configure_logging() once at startup. Levels are used as follows:

- DEBUG: snapshot deliveries, watcher re-arms, store connections
- INFO: todo and session events a user would recognise
- WARNING: a write was refused or the store hiccupped
- ERROR: a background sweep failed
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TextIO

DEFAULT_LOG_RETENTION_DAYS = 7

DEFAULT_REDACT_PATTERNS: list[str] = [
    # Google API keys
    r"\b(AIza[0-9A-Za-z\-_]{20,})\b",
    # Google OAuth client secrets
    r"\b(GOCSPX-[A-Za-z0-9_-]{10,})\b",
    # FOO_SECRET=value, BAR_PASSWORD: value
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD|PASSWD)\s*[=:]\s*([^\s\"']{8,})",
    r"\bpassword\s*[=:]\s*([^\s\"'&]{4,})",
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
]

_SHORT_TOKEN = 12
_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _mask(token: str) -> str:
    if len(token) < _SHORT_TOKEN:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


@dataclass
class SecretRedactor:
    """Masks credentials in log text.

    Long tokens keep their first and last four characters so two log lines
    can still be matched up. Short ones are replaced outright.
    """

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            ]

    def redact(self, text: str) -> str:
        if not (self.enabled and text):
            return text
        for pattern in self.patterns:
            text = pattern.sub(self._replace, text)
        return text

    @staticmethod
    def _replace(match: re.Match[str]) -> str:
        whole = match.group(0)
        if not match.lastindex:
            return _mask(whole)
        secret = match.group(1)
        if "..." in secret:
            return whole
        start, end = match.span(1)
        offset = match.start(0)
        return whole[: start - offset] + _mask(secret) + whole[end - offset :]


_redactor = SecretRedactor()


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    suffix: str = ".jsonl",
) -> int:
    """Remove ``*.jsonl`` files last modified before the retention window.

    Returns how many files were removed. Unreadable files are skipped.
    """
    if not logs_dir.is_dir():
        return 0

    cutoff = (datetime.now(UTC) - timedelta(days=retention_days)).timestamp()
    removed = 0
    for path in logs_dir.glob(f"*{suffix}"):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            continue
    return removed


def _component(logger_name: str) -> str:
    head, _, rest = logger_name.partition(".")
    if head == "hmytodo" and rest:
        return rest.split(".", 1)[0]
    return head


_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "component"}


def _extract_extra(record: logging.LogRecord) -> dict[str, object]:
    """Collect fields passed through ``extra=`` on the logging call."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_ATTRS
    }


def _redacted_extra(extra: dict[str, object]) -> dict[str, object]:
    raw = _redactor.redact(json.dumps(extra, default=str))
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {"_redacted_raw": raw}


class JSONLHandler(logging.Handler):
    """One JSON object per line in ``<logs_dir>/<UTC date>.jsonl``.

    A new file is opened when the date changes, and old files are pruned at
    that moment.
    """

    def __init__(
        self,
        logs_dir: Path,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ):
        super().__init__()
        logs_dir.mkdir(parents=True, exist_ok=True)
        self._logs_dir = logs_dir
        self._retention_days = retention_days
        self._day: str | None = None
        self._file: TextIO | None = None

    def _stream(self) -> TextIO:
        day = datetime.now(UTC).strftime("%Y-%m-%d")
        if self._file is not None and self._day == day:
            return self._file
        if self._file is not None:
            self._file.close()
        self._day = day
        self._file = (self._logs_dir / f"{day}.jsonl").open("a", encoding="utf-8")
        prune_old_logs(self._logs_dir, self._retention_days)
        return self._file

    def _entry(self, record: logging.LogRecord) -> dict[str, object]:
        entry: dict[str, object] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "logger": record.name,
            "message": _redactor.redact(record.getMessage()),
        }
        if record.exc_info:
            formatter = self.formatter or logging.Formatter()
            entry["exception"] = _redactor.redact(
                formatter.formatException(record.exc_info)
            )
        extra = _extract_extra(record)
        if extra:
            entry["extra"] = _redacted_extra(extra)
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = self._stream()
            stream.write(json.dumps(self._entry(record)) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Adds ``%(component)s``: the package under hmytodo a record came from."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component(record.name)
        return super().format(record)


# Capped at WARNING whatever level hmytodo runs at
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "aiosqlite",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
]


def _resolve_level(level: str | None) -> int:
    if level is None:
        level = os.environ.get("HMYTODO_LOG_LEVEL", "WARNING").upper()
        if level not in _VALID_LEVELS:
            level = "WARNING"
    return getattr(logging, level)


def _console_handler(use_rich: bool) -> logging.Handler:
    if use_rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
        return handler

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    return handler


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Install root handlers.

    ``level`` falls back to ``HMYTODO_LOG_LEVEL`` and then WARNING. With
    ``log_to_file`` records are also written under ``~/.hmytodo/logs``.
    """
    from hmytodo.config.paths import get_logs_path

    log_level = _resolve_level(level)
    handlers = [_console_handler(use_rich)]
    if log_to_file:
        file_handler = JSONLHandler(get_logs_path())
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
