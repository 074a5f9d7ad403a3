# src/cfpdesk/utils/logging_config.py
"""
File logging for cfpdesk.

Each concern (dispatch worker, decisions, API, errors) writes to its own rotating file
under ``CFPDESK_LOG_DIR``. Lines carry the current trace id so that one request or one
worker tick can be followed across files::

    from cfpdesk.utils.logging_config import Logger, LogFiles

    Logger.info("Email scheduled", file=LogFiles.DECISIONS, submission_id="abc")

ERROR and CRITICAL lines are also copied to ``LogFiles.ERROR``.

Environment:
    CFPDESK_LOG_LEVEL         DEBUG | INFO | WARNING | ERROR | CRITICAL (default INFO)
    CFPDESK_LOG_DIR           base directory (default logs/)
    CFPDESK_LOG_MAX_BYTES     rotation size per file (default 10MB)
    CFPDESK_LOG_BACKUP_COUNT  rotated files kept (default 5)
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

_trace_id_var: ContextVar[Optional[str]] = ContextVar("cfpdesk_trace_id", default=None)

LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"
GENERAL_LOG_FILE = "cfpdesk.log"
LINE_FORMAT = "{timestamp} [{level}] [{trace_id}] {origin} - {message}"

_BUILTIN_FILES = {
    "dispatch": "dispatch/dispatch.log",
    "decisions": "decisions/decisions.log",
    "api": "api/api.log",
    "error": "errors/error.log",
}


def _load_log_files() -> Dict[str, str]:
    files = dict(_BUILTIN_FILES)
    if LOG_CONFIG_FILE.exists():
        with open(LOG_CONFIG_FILE, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        files.update({str(k).lower(): str(v) for k, v in (config.get("files") or {}).items()})
    return files


class _LogFilesMeta(type):
    _files: Optional[Dict[str, str]] = None

    def __getattr__(cls, name: str) -> str:
        if name.startswith("_"):
            raise AttributeError(name)
        if cls._files is None:
            cls._files = _load_log_files()
        try:
            return cls._files[name.lower()]
        except KeyError:
            raise AttributeError(f"No log file named '{name}' in log_config.yaml") from None


class LogFiles(metaclass=_LogFilesMeta):
    """Relative log paths from log_config.yaml, read as ``LogFiles.DISPATCH`` etc."""


class _LogState:
    """Resolved settings plus the open handlers, rebuilt after ``Logger.close()``."""

    def __init__(self) -> None:
        self.level = logging.getLevelName(os.getenv("CFPDESK_LOG_LEVEL", "INFO").upper())
        if not isinstance(self.level, int):
            self.level = logging.INFO
        self.base_dir = Path(os.getenv("CFPDESK_LOG_DIR") or "logs")
        self.max_bytes = _env_int("CFPDESK_LOG_MAX_BYTES", 10 * 1024 * 1024)
        self.backup_count = _env_int("CFPDESK_LOG_BACKUP_COUNT", 5)
        self.handlers: Dict[Path, RotatingFileHandler] = {}

    def handler_for(self, relative: str) -> RotatingFileHandler:
        path = self.base_dir / relative
        handler = self.handlers.get(path)
        if handler is None:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                path, maxBytes=self.max_bytes, backupCount=self.backup_count, encoding="utf-8"
            )
            self.handlers[path] = handler
        return handler

    def close(self) -> None:
        for handler in self.handlers.values():
            handler.close()
        self.handlers.clear()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


_state: Optional[_LogState] = None
_lock = threading.Lock()


def _render_fields(fields: Dict[str, Any]) -> str:
    parts = []
    for key, value in fields.items():
        if value is None:
            continue
        text = str(value)
        parts.append(f'{key}="{text}"' if " " in text else f"{key}={text}")
    return " ".join(parts)


def _emit(levelno: int, message: str, file: Optional[str], fields: Dict[str, Any]) -> None:
    global _state

    # caller of Logger.<level>() is two frames up
    frame = sys._getframe(2)
    origin = f"{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}"
    extra = _render_fields(fields)
    line = LINE_FORMAT.format(
        timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
        level=logging.getLevelName(levelno),
        trace_id=_trace_id_var.get() or "-",
        origin=origin,
        message=f"{message} {extra}" if extra else message,
    )

    targets = [file or GENERAL_LOG_FILE]
    if levelno >= logging.ERROR and LogFiles.ERROR not in targets:
        targets.append(LogFiles.ERROR)

    with _lock:
        if _state is None:
            _state = _LogState()
        if levelno < _state.level:
            return
        for relative in targets:
            stream = _state.handler_for(relative).stream
            stream.write(line + "\n")
            stream.flush()


class Logger:
    """Static facade; configuration is read from the environment on first use."""

    @staticmethod
    def info(message: str, file: Optional[str] = None, **fields: Any) -> None:
        _emit(logging.INFO, message, file, fields)

    @staticmethod
    def warning(message: str, file: Optional[str] = None, **fields: Any) -> None:
        _emit(logging.WARNING, message, file, fields)

    @staticmethod
    def error(message: str, file: Optional[str] = None, **fields: Any) -> None:
        _emit(logging.ERROR, message, file, fields)

    @staticmethod
    def close() -> None:
        """Close open files; the next call re-reads the environment."""
        global _state
        with _lock:
            if _state is not None:
                _state.close()
            _state = None


def generate_trace_id(prefix: str = "req") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Bind a trace id to the current context (request or job) and return it."""
    tid = trace_id or generate_trace_id()
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> Optional[str]:
    return _trace_id_var.get()


def clear_trace_id() -> None:
    _trace_id_var.set(None)
