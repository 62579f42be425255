# acpkg/content/namespace.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from acpkg.app.paths import RootSet
from acpkg.content.descriptor import DESCRIPTOR_NAME, NAME_RE, RESERVED_NAMESPACES, Category, normalizeName
from acpkg.core.document import Document
from acpkg.core.errors import AcpError, ConflictError, NotFoundError
from acpkg.core.git import remoteUrl

logger = logging.getLogger(__name__)

__all__ = [
    "REMOTE_NAMESPACE_RE",
    "Resolved",
    "NamespaceResolver",
    "validateNamespace",
    "isReservedName",
    "inferNamespace",
    "namespaceSources",
    "checkNamespaceConsistency",
]

REMOTE_NAMESPACE_RE = re.compile(r"acp-([a-z0-9-]+)(\.git)?$")
_DIR_PREFIX = "acp-"



@dataclass(frozen=True)
class Resolved:
    path: Path
    root: RootSet



class NamespaceResolver:
    """
    Finds `{namespace}.{item}` content. Local install root first, then the
    global one; the first hit wins, so a local item shadows a global one.
    """
    def __init__(self, roots: list[RootSet]) -> None:
        self.roots = list(roots)

    def resolve(self, category: Category | str, reference: str) -> Resolved:
        category = Category(category)
        name = normalizeName(category, reference)
        for root in self.roots:
            candidate = root.pathFor(category.value, name)
            if candidate.is_file():
                logger.debug("Resolved %s/%s in %s root", category.value, name, root.kind)
                return Resolved(path=candidate, root=root)
        raise NotFoundError(f"'{name}' not found in {category.value} of any install root")

    def candidates(self, category: Category | str, reference: str) -> list[Resolved]:
        """Every root that has the item, in precedence order (shadowed ones included)."""
        category = Category(category)
        name = normalizeName(category, reference)
        return [
            Resolved(path=root.pathFor(category.value, name), root=root)
            for root in self.roots
            if root.pathFor(category.value, name).is_file()
        ]



def validateNamespace(name: str) -> None:
    """Raises ConflictError for empty, malformed or reserved namespaces."""
    if not name:
        raise ConflictError("Namespace cannot be empty")
    if not NAME_RE.match(name):
        raise ConflictError(f"Namespace '{name}' must be lowercase, alphanumeric, and hyphens only")
    if name in RESERVED_NAMESPACES:
        raise ConflictError(f"Namespace '{name}' is reserved")



def isReservedName(fileName: str) -> bool:
    """Command and script files of the base distribution start with "acp."."""
    return fileName.startswith("acp.")



def _descriptorName(projectDir: Path) -> str | None:
    path = projectDir / DESCRIPTOR_NAME
    if not path.is_file():
        return None
    try:
        value = Document.parse(path.read_text("utf-8"), source=str(path)).get("name")
    except AcpError as err:
        logger.warning("Cannot read name from %s: %s", path, err)
        return None
    return value if isinstance(value, str) and value else None



def namespaceSources(projectDir: Path | str) -> dict[str, str | None]:
    """Namespace as seen by each source: descriptor, directory name, git remote."""
    projectDir = Path(projectDir).resolve()
    dirName = projectDir.name
    fromDir = dirName[len(_DIR_PREFIX):] if dirName.startswith(_DIR_PREFIX) and len(dirName) > len(_DIR_PREFIX) else None
    fromRemote = None
    url = remoteUrl(projectDir)
    if url:
        mtch = REMOTE_NAMESPACE_RE.search(url)
        if mtch:
            fromRemote = mtch.group(1)
    return {
        "descriptor": _descriptorName(projectDir),
        "directory": fromDir,
        "remote": fromRemote,
    }



def inferNamespace(projectDir: Path | str) -> str | None:
    """Priority: package.yaml name → `acp-<ns>` directory name → `acp-<ns>` git remote."""
    sources = namespaceSources(projectDir)
    for key in ("descriptor", "directory", "remote"):
        if sources[key]:
            return sources[key]
    return None



def checkNamespaceConsistency(descriptorName: str, sources: dict[str, str | None]) -> list[str]:
    """Returns one warning per source that disagrees with the descriptor name."""
    warnings: list[str] = []
    labels = {"directory": "directory", "remote": "git remote"}
    for key, label in labels.items():
        other = sources.get(key)
        if other and other != descriptorName:
            warnings.append(f"Namespace mismatch: package.yaml says '{descriptorName}', {label} says '{other}'")
    return warnings
