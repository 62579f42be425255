# acpkg/core/logging/formatters.py
from __future__ import annotations

import json
import logging

from acpkg.core.redaction import redactText
from .context import getLogContext

# Context keys shown after a console line, in this order
CONSOLE_CONTEXT_KEYS = ("command", "package")



def _withTraceback(formatter: logging.Formatter, record: logging.LogRecord, text: str) -> str:
    if record.exc_info:
        text += "\n" + formatter.formatException(record.exc_info)
    if record.stack_info:
        text += "\n" + formatter.formatStack(record.stack_info)
    return text



class RedactingFormatter(logging.Formatter):
    """Masks tokens and URL credentials in whatever the wrapped formatter renders."""
    def __init__(self, inner: logging.Formatter):
        super().__init__()
        self._inner = inner

    def format(self, record: logging.LogRecord) -> str:
        return redactText(self._inner.format(record))



class JsonFormatter(logging.Formatter):
    """One JSON object per line, for the log file."""
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "ctx": getLogContext() or {},
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)



class DevFormatter(logging.Formatter):
    """`LEVEL: [logger] message [command/package]`"""
    def format(self, record: logging.LogRecord) -> str:
        ctx = getLogContext() or {}
        tags = [str(ctx[key]) for key in CONSOLE_CONTEXT_KEYS if ctx.get(key)]
        suffix = f" [{'/'.join(tags)}]" if tags else ""
        return _withTraceback(self, record, f"{record.levelname}: [{record.name}] {record.getMessage()}{suffix}")
