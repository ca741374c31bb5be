# ======================================================================
# FILE: guildcore/logs/logging_config.py
# Logging for the bot runtime: coloured console lines for developers, a
# rotating file (pretty text or JSON lines), secret scrubbing, and loggers
# that stamp every record with tenant / capability / command context.
# ======================================================================
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import re
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Mapping, Optional

# ----------------------------------------------------------------------
# Locations and output format
# ----------------------------------------------------------------------
# Containers mount a volume and point LOGS_BASE_DIR at it.
LOGS_DIR = Path(os.getenv("LOGS_BASE_DIR") or Path.cwd() / "logs")
LOGS_AS_JSON = os.getenv("LOGS_AS_JSON", "").strip().lower() in {"1", "true", "yes", "on"}
MAIN_LOG_FILE_NAME = "guildcore.log"

# Rendered inline after the message by the console formatter, in this order.
CONTEXT_KEYS = ("tenant_id", "capability_key", "command_name", "invoker_id", "event_name")

# Attributes every LogRecord already has; never accepted as extras.
RESERVED_LOG_RECORD_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "stacklevel",
    "taskName",
}

_SENSITIVE_KEY_PARTS = ("token", "secret", "password", "authorization", "api_key", "apikey")

_SECRET_ASSIGNMENT_RE = re.compile(
    r"(\b(?:api[_-]?key|authorization|client[_-]?secret|secret|password|token)\b\s*[:=]\s*[\"']?)([^\"'\s;,]+)",
    re.IGNORECASE,
)
_BEARER_RE = re.compile(r"(\bBearer\s+)[A-Za-z0-9._~+/=\-]+", re.IGNORECASE)
# Chat bot tokens look like <id>.<timestamp>.<hmac>, base64url segments.
_BOT_TOKEN_RE = re.compile(r"\b([A-Za-z0-9_\-]{4})[A-Za-z0-9_\-]{20,}\.[A-Za-z0-9_\-]{6,}\.[A-Za-z0-9_\-]{20,}\b")
_REDACTED = "***REDACTED***"


def _mask(value: Any) -> Any:
    """Keep the first and last four characters of long strings, hide the rest."""
    if not isinstance(value, str):
        return value
    return "***" if len(value) <= 8 else f"{value[:4]}***{value[-4:]}"


def _scrub_mapping(data: Mapping[str, Any]) -> Dict[str, Any]:
    scrubbed: Dict[str, Any] = {}
    for key, value in data.items():
        lowered = str(key).lower()
        if any(part in lowered for part in _SENSITIVE_KEY_PARTS):
            scrubbed[key] = _mask(value)
        elif isinstance(value, Mapping):
            scrubbed[key] = _scrub_mapping(value)
        else:
            scrubbed[key] = value
    return scrubbed


def _without_reserved(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in (data or {}).items() if k not in RESERVED_LOG_RECORD_KEYS}


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return _without_reserved(vars(record))


def _sanitize_log_message(message: str) -> str:
    if not message or not isinstance(message, str):
        return message
    message = _SECRET_ASSIGNMENT_RE.sub(lambda m: m.group(1) + _REDACTED, message)
    message = _BEARER_RE.sub(lambda m: m.group(1) + _REDACTED, message)
    return _BOT_TOKEN_RE.sub(lambda m: m.group(1) + _REDACTED, message)


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return sorted(str(v) for v in value)
    return str(value)


_EMOJI_BY_NAME = (
    ("dispatcher", "⚡"),
    ("commands", "⚡"),
    ("entitlement", "🔑"),
    ("license", "🔑"),
    ("capabilit", "🧩"),
    ("features", "🧩"),
    ("connectors", "🔌"),
)
_EMOJI_BY_LEVEL = {"DEBUG": "🐛", "INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🚨"}


def _pick_emoji(record: logging.LogRecord) -> str:
    if record.levelno >= logging.ERROR:
        return _EMOJI_BY_LEVEL.get(record.levelname, "❌")
    name = record.name.lower()
    for fragment, emoji in _EMOJI_BY_NAME:
        if fragment in name:
            return emoji
    if hasattr(record, "duration_seconds") or hasattr(record, "duration_ms"):
        return "⏱️"
    return _EMOJI_BY_LEVEL.get(record.levelname, "•")


# ----------------------------------------------------------------------
# Formatters
# ----------------------------------------------------------------------
class ProductionJSONFormatter(logging.Formatter):
    """One JSON object per line; extras are nested under ``extra`` and scrubbed."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_log_message(record.getMessage()),
            "emoji": _pick_emoji(record),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "trace": traceback.format_exception(*record.exc_info),
            }
        extras = _record_extras(record)
        if extras:
            entry["extra"] = _scrub_mapping(extras)
        return json.dumps(entry, ensure_ascii=False, default=_to_json)


_ANSI = {
    "DEBUG": "\x1b[90m",
    "INFO": "\x1b[36m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[41m\x1b[97m",
}
_ANSI_RESET = "\x1b[0m"


class PrettyConsoleFormatter(logging.Formatter):
    """``12:00:01.250 [ INFO] ⚡ guildcore.commands.dispatcher - msg | tenant_id=.. (file.py:10)``"""

    def __init__(self, no_color: Optional[bool] = None):
        super().__init__()
        if no_color is None:
            no_color = os.getenv("NO_COLOR", "").strip().lower() in {"1", "true", "yes"}
        self.no_color = no_color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:>5}"
        if not self.no_color and record.levelname in _ANSI:
            level = f"{_ANSI[record.levelname]}{level}{_ANSI_RESET}"

        context = " ".join(
            f"{key}={getattr(record, key)}" for key in CONTEXT_KEYS if getattr(record, key, None) is not None
        )
        line = f"{stamp} [{level}] {_pick_emoji(record)} {record.name} - {_sanitize_log_message(record.getMessage())}"
        if context:
            line += f" | {context}"
        line += f"  ({record.filename}:{record.lineno})"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


def _rotating_file_handler(
    path: Path, level: int, formatter: logging.Formatter, *, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


# ----------------------------------------------------------------------
# Setup
# ----------------------------------------------------------------------
_logging_initialized = False


def setup_logging(
    *,
    file_level: str = "INFO",
    console_level: str = "INFO",
    log_to_file: bool = True,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    as_json: Optional[bool] = None,
) -> None:
    """Install console and file handlers on the root logger.

    Only the first call has an effect; tests call ``reset_logging_state`` to
    configure again.
    """
    global _logging_initialized
    if _logging_initialized:
        return
    _logging_initialized = True

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(logging.getLevelName(console_level.upper()))
    console.setFormatter(PrettyConsoleFormatter())
    root.addHandler(console)

    json_lines = LOGS_AS_JSON if as_json is None else as_json
    log_file: Optional[Path] = None
    if log_to_file:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOGS_DIR / MAIN_LOG_FILE_NAME
        formatter = ProductionJSONFormatter() if json_lines else PrettyConsoleFormatter(no_color=True)
        root.addHandler(
            _rotating_file_handler(
                log_file,
                logging.getLevelName(file_level.upper()),
                formatter,
                max_bytes=max_file_size,
                backup_count=backup_count,
            )
        )

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("guildcore.logs").info(
        "Logging initialized",
        extra={"log_file": str(log_file) if log_file else None, "file_format": "jsonl" if json_lines else "pretty"},
    )


def reset_logging_state() -> None:
    global _logging_initialized
    _logging_initialized = False


def setup_logging_from_settings(settings) -> None:
    """Production preset, or development files at DEBUG with ``LOG_LEVEL`` on the console."""
    if settings.is_production:
        setup_logging(
            file_level=settings.log_level,
            console_level="WARNING",
            max_file_size=50 * 1024 * 1024,
            backup_count=10,
            as_json=settings.logs_as_json,
        )
    else:
        setup_logging(file_level="DEBUG", console_level=settings.log_level, as_json=settings.logs_as_json)


# ----------------------------------------------------------------------
# Loggers
# ----------------------------------------------------------------------
def get_core_logger(module_name: str) -> logging.Logger:
    """Logger under the ``guildcore`` namespace ('host' -> 'guildcore.host')."""
    if module_name == "guildcore" or module_name.startswith("guildcore."):
        return logging.getLogger(module_name)
    return logging.getLogger(f"guildcore.{module_name}")


class ContextLogger:
    """Wraps a stdlib logger and adds a fixed context to every record.

    Keyword arguments to the level methods become extras for that call only:

        log = get_tenant_logger("g1", "welcome")
        log.info("Welcome message sent", channel_id="c1")
    """

    def __init__(self, base: logging.Logger, ctx: Mapping[str, Any]):
        self._base = base
        self._ctx = _without_reserved(ctx)

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._ctx)

    def with_context(self, **more: Any) -> "ContextLogger":
        return ContextLogger(self._base, {**self._ctx, **more})

    def _log(self, level: int, msg: str, *args: Any, **fields: Any) -> None:
        exc_info = fields.pop("exc_info", None)
        extra = _scrub_mapping(_without_reserved({**self._ctx, **fields}))
        self._base.log(level, msg, *args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, *args, **fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, *args, **fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.ERROR, msg, *args, **fields)

    def exception(self, msg: str, *args: Any, **fields: Any) -> None:
        fields.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **fields)


def get_tenant_logger(
    tenant_id: Optional[str] = None,
    capability_key: Optional[str] = None,
    command_name: Optional[str] = None,
    *,
    base_logger: Optional[logging.Logger] = None,
    **context: Any,
) -> ContextLogger:
    ctx: Dict[str, Any] = {}
    if tenant_id:
        ctx["tenant_id"] = tenant_id
    if capability_key:
        ctx["capability_key"] = capability_key
    if command_name:
        ctx["command_name"] = command_name
    ctx.update(context)
    return ContextLogger(base_logger or get_core_logger("tenant"), ctx)


@contextmanager
def log_operation(logger: ContextLogger | logging.Logger, operation_name: str, **context: Any):
    """Log start (debug), then completion or failure with ``duration_seconds``."""

    def emit(level: int, msg: str, fields: Dict[str, Any]) -> None:
        if isinstance(logger, ContextLogger):
            logger._log(level, msg, **fields)
        else:
            logger.log(level, msg, extra=fields)

    fields = {"operation": operation_name, **context}
    started = perf_counter()
    emit(logging.DEBUG, f"Starting {operation_name}", fields)
    try:
        yield logger
    except Exception as exc:
        emit(
            logging.ERROR,
            f"Failed {operation_name}: {exc}",
            {**fields, "status": "error", "error_type": type(exc).__name__, "duration_seconds": perf_counter() - started},
        )
        raise
    emit(
        logging.INFO,
        f"Completed {operation_name}",
        {**fields, "status": "success", "duration_seconds": perf_counter() - started},
    )
