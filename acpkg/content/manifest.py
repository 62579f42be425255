# acpkg/content/manifest.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from acpkg.app.paths import RootSet
from acpkg.content.descriptor import Category
from acpkg.core.document import Document, NodeKind
from acpkg.core.errors import IntegrityError, NotFoundError, ParseError
from acpkg.core.hashing import sameChecksum, sha256sum
from acpkg.core.time import nowIso

logger = logging.getLogger(__name__)

__all__ = [
    "MANIFEST_VERSION",
    "MANIFEST_TEMPLATE",
    "FileState",
    "FileRecord",
    "PackageInfo",
    "ManifestStore",
]

MANIFEST_VERSION = "1.0.0"
MANIFEST_TEMPLATE = (
    "# ACP Package Manifest\n"
    "# Tracks installed packages and their versions\n"
    "\n"
    "packages: {}\n"
    "\n"
    f"manifest_version: {MANIFEST_VERSION}\n"
    "last_updated: null\n"
)

FileState = Literal["clean", "modified", "missing"]



def _isTrue(value: Any) -> bool:
    return str(value).strip().lower() == "true"



@dataclass(frozen=True)
class FileRecord:
    """One installed file as tracked under packages.<name>.files.<category>[]."""
    name: str
    version: str
    checksum: str
    installedAt: str = ""
    modified: bool = False
    experimental: bool = False
    target: str | None = None
    variables: dict[str, str] = field(default_factory=dict)

    @classmethod
    def fromData(cls, data: Any) -> FileRecord:
        if not isinstance(data, dict):
            raise ParseError(f"Manifest file record must be a map, got {data!r}")
        variables = data.get("variables") or {}
        return cls(
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            checksum=str(data.get("checksum", "")),
            installedAt=str(data.get("installed_at", "")),
            modified=_isTrue(data.get("modified", "false")),
            experimental=_isTrue(data.get("experimental", "false")),
            target=data.get("target") or None,
            variables={str(key): str(value) for key, value in variables.items()} if isinstance(variables, dict) else {},
        )



@dataclass(frozen=True)
class PackageInfo:
    name: str
    source: str
    version: str
    commit: str
    installedAt: str
    updatedAt: str



class ManifestStore:
    """
    The manifest of one install root (local ./agent or global ~/.acp/agent).

    Loaded once per command, mutated in memory, written once with save().
    Concurrent commands race: the last save() wins.
    """
    def __init__(self, root: RootSet, doc: Document, *, existed: bool) -> None:
        self.root = root
        self.doc = doc
        self.existed = existed

    @classmethod
    def load(cls, root: RootSet) -> ManifestStore:
        path = root.manifestPath
        if path.is_file():
            doc = Document.parse(path.read_text("utf-8"), source=str(path))
            return cls(root, doc, existed=True)
        logger.debug("No manifest at %s, starting from template", path)
        return cls(root, Document.parse(MANIFEST_TEMPLATE), existed=False)

    @property
    def path(self) -> Path:
        return self.root.manifestPath

    def save(self) -> None:
        self.doc.set("last_updated", nowIso())
        if not self.doc.has("manifest_version"):
            self.doc.set("manifest_version", MANIFEST_VERSION)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.doc.serialize(), encoding="utf-8")
        self.existed = True
        logger.debug("Manifest written to %s", self.path)

    # ----- packages -----

    def packages(self) -> list[str]:
        if not self.doc.has("packages") or self.doc.kindAt("packages") is not NodeKind.MAP:
            return []
        return [str(key) for key in self.doc.query("packages")]

    def hasPackage(self, name: str) -> bool:
        return name in self.packages()

    def packageInfo(self, name: str) -> PackageInfo:
        if not self.hasPackage(name):
            raise NotFoundError(f"Package '{name}' is not installed")
        base = f"packages.{name}"
        return PackageInfo(
            name=name,
            source=str(self.doc.get(f"{base}.source", "")),
            version=str(self.doc.get(f"{base}.package_version", "")),
            commit=str(self.doc.get(f"{base}.commit", "")),
            installedAt=str(self.doc.get(f"{base}.installed_at", "")),
            updatedAt=str(self.doc.get(f"{base}.updated_at", "")),
        )

    def upsertPackage(self, name: str, *, source: str, version: str, commit: str) -> None:
        """
        New package → full entry with empty file lists.
        Existing package → source, package_version, commit, updated_at updated in place.
        """
        base = f"packages.{name}"
        now = nowIso()
        if self.hasPackage(name):
            self.doc.set(f"{base}.source", source)
            self.doc.set(f"{base}.package_version", version)
            self.doc.set(f"{base}.commit", commit)
            self.doc.set(f"{base}.updated_at", now)
            return
        if self.doc.has("packages") and self.doc.kindAt("packages") is not NodeKind.MAP:
            self.doc.set("packages", "{}")
        self.doc.set(f"{base}.source", source)
        self.doc.set(f"{base}.package_version", version)
        self.doc.set(f"{base}.commit", commit)
        self.doc.set(f"{base}.installed_at", now)
        self.doc.set(f"{base}.updated_at", now)
        for category in Category:
            self.doc.set(f"{base}.files.{category.value}", "[]")

    def removePackage(self, name: str) -> None:
        if not self.hasPackage(name):
            raise NotFoundError(f"Package '{name}' is not installed")
        self.doc.delete(f"packages.{name}")

    # ----- files -----

    def _listPath(self, pkg: str, category: Category | str) -> str:
        return f"packages.{pkg}.files.{Category(category).value}"

    def fileRecords(self, pkg: str, category: Category | str) -> list[FileRecord]:
        path = self._listPath(pkg, category)
        if not self.doc.has(path) or self.doc.kindAt(path) is not NodeKind.SEQUENCE:
            return []
        return [FileRecord.fromData(item) for item in self.doc.toData(path)]

    def allFileRecords(self, pkg: str) -> list[tuple[Category, FileRecord]]:
        return [(category, record) for category in Category for record in self.fileRecords(pkg, category)]

    def fileRecord(self, pkg: str, category: Category | str, name: str) -> FileRecord | None:
        for record in self.fileRecords(pkg, category):
            if record.name == name:
                return record
        return None

    def _indexOf(self, pkg: str, category: Category | str, name: str) -> int | None:
        for index, record in enumerate(self.fileRecords(pkg, category)):
            if record.name == name:
                return index
        return None

    def upsertFile(self, pkg: str, category: Category | str, record: FileRecord) -> None:
        """Adds or replaces the record with the same name inside the category list."""
        if not self.hasPackage(pkg):
            raise NotFoundError(f"Package '{pkg}' is not installed")
        path = self._listPath(pkg, category)
        if not self.doc.has(path):
            self.doc.set(path, "[]")
        index = self._indexOf(pkg, category, record.name)
        if index is None:
            nodeId = self.doc.appendObject(path)
        else:
            nodeId = self.doc.nodeAt(f"{path}[{index}]").id

        self.doc.setField(nodeId, "name", record.name)
        self.doc.setField(nodeId, "version", record.version)
        self.doc.setField(nodeId, "installed_at", record.installedAt or nowIso())
        self.doc.setField(nodeId, "modified", record.modified)
        self.doc.setField(nodeId, "checksum", record.checksum)
        if record.experimental:
            self.doc.setField(nodeId, "experimental", True)
        else:
            self.doc.removeField(nodeId, "experimental")
        if record.target:
            self.doc.setField(nodeId, "target", record.target)
        else:
            self.doc.removeField(nodeId, "target")
        if record.variables:
            varsId = self.doc.setField(nodeId, "variables", "{}")
            for key, value in record.variables.items():
                self.doc.setField(varsId, key, value)
        else:
            self.doc.removeField(nodeId, "variables")

    def removeFile(self, pkg: str, category: Category | str, name: str) -> None:
        index = self._indexOf(pkg, category, name)
        if index is None:
            raise NotFoundError(f"'{name}' is not tracked under {pkg}/{Category(category).value}")
        self.doc.delete(f"{self._listPath(pkg, category)}[{index}]")

    # ----- drift -----

    def installedPath(self, category: Category | str, record: FileRecord) -> Path:
        return self.root.pathFor(Category(category).value, record.name, target=record.target)

    def verifyFile(self, pkg: str, category: Category | str, name: str) -> None:
        """
        Recomputes the installed file's checksum.
        Raises NotFoundError (untracked or deleted file) or IntegrityError (drift).
        """
        record = self.fileRecord(pkg, category, name)
        if record is None:
            raise NotFoundError(f"'{name}' is not tracked under {pkg}/{Category(category).value}")
        path = self.installedPath(category, record)
        if not path.is_file():
            raise NotFoundError(f"Installed file '{path}' is missing")
        actual = sha256sum(path)
        if not sameChecksum(record.checksum, actual):
            raise IntegrityError(str(path), record.checksum, actual)

    def fileState(self, pkg: str, category: Category | str, name: str) -> FileState:
        record = self.fileRecord(pkg, category, name)
        if record is None:
            raise NotFoundError(f"'{name}' is not tracked under {pkg}/{Category(category).value}")
        if not self.installedPath(category, record).is_file():
            return "missing"
        try:
            self.verifyFile(pkg, category, name)
        except IntegrityError as err:
            logger.debug("Drift detected: %s", err)
            return "modified"
        return "clean"

    def isModified(self, pkg: str, category: Category | str, name: str) -> bool:
        """Checksum comparison is the only drift signal; a missing file is not "modified"."""
        return self.fileState(pkg, category, name) == "modified"
