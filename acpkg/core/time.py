# acpkg/core/time.py
from __future__ import annotations
from datetime import datetime, timezone

__all__ = ["nowIso", "TIMESTAMP_FORMAT"]

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"



def nowIso() -> str:
    """Returns the current UTC time as used in manifests, e.g. 2026-02-01T10:20:30Z."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
