# acpkg/lifecycle/fetch.py
from __future__ import annotations
import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from acpkg.core.errors import NotFoundError, ValidationError, Violation
from acpkg.core.git import cloneShallow, headCommit

logger = logging.getLogger(__name__)

__all__ = ["BUNDLE_AGENT_DIR", "FetchedBundle", "isLocalSource", "normalizeSource", "fetchBundle", "stagedBundle"]

BUNDLE_AGENT_DIR = "agent"
_REMOTE_PREFIXES = ("http://", "https://", "git@", "ssh://", "git://")



@dataclass(frozen=True)
class FetchedBundle:
    dir: Path
    source: str
    commit: str

    @property
    def agentDir(self) -> Path:
        return self.dir / BUNDLE_AGENT_DIR



def _fileUrlPath(source: str) -> Path:
    return Path(unquote(urlparse(source).path))



def isLocalSource(source: str) -> bool:
    return Path(source).expanduser().is_dir()



def normalizeSource(source: str) -> str:
    """Local directories are recorded as absolute paths so update can re-fetch them."""
    if isLocalSource(source):
        return str(Path(source).expanduser().resolve())
    return source



def fetchBundle(source: str, dest: Path) -> FetchedBundle:
    """
    Brings a bundle into `dest` (which must not exist yet):
      - local directory or file:// directory → copied
      - anything git understands (https, ssh, file:// repository) → shallow clone
    The bundle must contain an agent/ directory.
    """
    source = source.strip()
    if not source:
        raise ValidationError([Violation("repo", "repository URL required")], subject="install")

    localDir: Path | None = None
    if isLocalSource(source):
        localDir = Path(source).expanduser().resolve()
    elif source.startswith("file://") and _fileUrlPath(source).is_dir() and not (_fileUrlPath(source) / ".git").exists():
        localDir = _fileUrlPath(source)

    if localDir is not None:
        logger.debug("Copying local bundle %s", localDir)
        shutil.copytree(localDir, dest, ignore=shutil.ignore_patterns(".git"))
        commit = headCommit(localDir)
    elif source.startswith(_REMOTE_PREFIXES) or source.startswith("file://"):
        logger.debug("Cloning %s", source)
        cloneShallow(source, dest)
        commit = headCommit(dest)
    else:
        raise ValidationError([Violation("repo", f"invalid repository URL '{source}'")], subject="install")

    bundle = FetchedBundle(dir=dest, source=source, commit=commit)
    if not bundle.agentDir.is_dir():
        raise NotFoundError(f"No {BUNDLE_AGENT_DIR}/ directory found in '{source}'")
    return bundle



@contextmanager
def stagedBundle(source: str) -> Iterator[FetchedBundle]:
    """Fetches into a scratch directory that is removed afterwards."""
    with tempfile.TemporaryDirectory(prefix="acp-") as scratch:
        yield fetchBundle(source, Path(scratch) / "bundle")
