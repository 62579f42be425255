# acpkg/core/errors.py
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

__all__ = [
    "AcpError",
    "ParseError",
    "Violation",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidPathError",
    "NetworkError",
    "IntegrityError",
]



class AcpError(Exception):
    """Base class for every error the package manager reports to the user."""
    pass



class ParseError(AcpError):
    """Raised when descriptor or manifest text cannot be turned into a Document."""
    def __init__(self, message: str, *, line: int | None = None, source: str | None = None):
        where = ""
        if source:
            where += f"{source}"
        if line is not None:
            where += f"{':' if where else 'line '}{line}"
        super().__init__(f"{where}: {message}" if where else message)
        self.line = line
        self.source = source



@dataclass(frozen=True, slots=True)
class Violation:
    # Dotted location of the offending field ("" for document-level problems)
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}" if self.field else self.message



class ValidationError(AcpError):
    """
    Carries every violation found during a validation pass.

    Validation is never fail-fast: callers collect all problems first and
    raise once, so the user sees the whole list.
    """
    def __init__(self, violations: Iterable[Violation], *, subject: str = "package.yaml"):
        self.violations: tuple[Violation, ...] = tuple(violations)
        self.subject = subject
        count = len(self.violations)
        lines = [f"{subject}: {count} validation error{'s' if count != 1 else ''}"]
        lines.extend(f"  - {violation}" for violation in self.violations)
        super().__init__("\n".join(lines))



class NotFoundError(AcpError):
    """Missing package, file or document path."""
    pass



class ConflictError(AcpError):
    """Unsafe target path, reserved namespace or an operation the target cannot take."""
    pass



class InvalidPathError(ConflictError):
    """A document path that is malformed or addresses the wrong kind of node."""
    pass



class NetworkError(AcpError):
    """Fetching a bundle or talking to the search API failed."""
    pass



class IntegrityError(AcpError):
    """
    Checksum mismatch between an installed file and its manifest record.

    Informational: lifecycle code reports drift through it but decides by
    policy whether it is fatal.
    """
    def __init__(self, path: str, expected: str, actual: str):
        super().__init__(f"Checksum mismatch for '{path}': expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual
