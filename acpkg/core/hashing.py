# acpkg/core/hashing.py
from __future__ import annotations

import hashlib
from pathlib import Path

__all__ = ["CHECKSUM_PREFIX", "sha256sum", "sha256sumBytes", "sameChecksum"]

CHECKSUM_PREFIX = "sha256:"



def sha256sumBytes(data: bytes) -> str:
    """Returns the prefixed SHA-256 digest of `data` ("sha256:<hex>")."""
    return CHECKSUM_PREFIX + hashlib.sha256(data).hexdigest()



def sha256sum(path: str | Path) -> str:
    """
    Returns the prefixed SHA-256 digest of the file content.

    Only the bytes are hashed. The location of the file does not take part,
    so the same content installed locally and globally yields the same value.
    """
    sha = hashlib.sha256()
    with Path(path).open("rb") as file:
        for chunk in iter(lambda: file.read(8192), b""):
            sha.update(chunk)
    return CHECKSUM_PREFIX + sha.hexdigest()



def sameChecksum(left: str | None, right: str | None) -> bool:
    """Compares two checksums, tolerating a missing "sha256:" prefix on either side."""
    if not left or not right:
        return False
    return _bare(left) == _bare(right)



def _bare(value: str) -> str:
    value = value.strip()
    if value.startswith(CHECKSUM_PREFIX):
        value = value[len(CHECKSUM_PREFIX):]
    return value.lower()
