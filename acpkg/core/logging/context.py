# acpkg/core/logging/context.py
from __future__ import annotations
import contextvars

# Per-command log context (command name, package being processed)
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("acpkg.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (command, package, scope)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    """Clear context after a command is fully handled."""
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()
