# acpkg/lifecycle/info.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from acpkg.app.paths import globalRoot, localRoot, rootFor
from acpkg.content.descriptor import Category
from acpkg.content.manifest import FileRecord, FileState, ManifestStore, PackageInfo
from acpkg.content.namespace import NamespaceResolver
from acpkg.core.errors import NotFoundError
from acpkg.core.logging import setLogContext
from acpkg.lifecycle.prompts import Reporter

logger = logging.getLogger(__name__)

__all__ = ["InstalledFile", "PackageDetails", "listPackages", "packageDetails"]

_STATE_MARKERS: dict[str, str] = {
    "modified": " [MODIFIED]",
    "missing": " [MISSING]",
    "clean": "",
}



@dataclass(frozen=True)
class InstalledFile:
    category: Category
    record: FileRecord
    state: FileState
    # the same item also exists in the other install root
    shadow: str | None = None

    @property
    def label(self) -> str:
        if self.category is Category.FILES:
            return self.record.target or self.record.name
        return self.record.name



@dataclass
class PackageDetails:
    info: PackageInfo
    files: list[InstalledFile] = field(default_factory=list)

    @property
    def modified(self) -> list[InstalledFile]:
        return [item for item in self.files if item.state == "modified"]



def _loadExisting(isGlobal: bool, projectDir: Path | str | None) -> ManifestStore:
    root = rootFor(isGlobal, projectDir)
    if not root.manifestPath.is_file():
        scope = "global " if isGlobal else ""
        raise NotFoundError(f"No {scope}manifest found at {root.manifestPath}. No packages installed.")
    return ManifestStore.load(root)



def listPackages(
    *,
    isGlobal: bool = False,
    projectDir: Path | str | None = None,
    reporter: Reporter | None = None,
) -> list[PackageDetails]:
    """Installed packages with their tracked files. An absent manifest lists nothing."""
    reporter = reporter or Reporter()
    setLogContext(command="list")
    root = rootFor(isGlobal, projectDir)
    if not root.manifestPath.is_file():
        reporter.info("No packages installed")
        return []
    manifest = ManifestStore.load(root)

    out = [_details(manifest, name) for name in manifest.packages()]
    if not out:
        reporter.info("No packages installed")
        return out

    reporter.info(f"Installed packages ({'global' if isGlobal else 'local'}):")
    for details in out:
        info = details.info
        marker = f", {len(details.modified)} modified" if details.modified else ""
        reporter.item(f"{info.name} ({info.version}): {len(details.files)} file(s){marker}")
    return out



def _details(manifest: ManifestStore, name: str) -> PackageDetails:
    details = PackageDetails(info=manifest.packageInfo(name))
    for category, record in manifest.allFileRecords(name):
        details.files.append(InstalledFile(category, record, manifest.fileState(name, category, record.name)))
    return details



def _shadow(resolver: NamespaceResolver, item: InstalledFile, isGlobal: bool) -> str | None:
    """Local content wins over global content with the same name."""
    if item.category is Category.FILES:
        return None
    found = resolver.candidates(item.category, item.record.name)
    if len(found) < 2:
        return None
    return "shadowed by local" if isGlobal else "shadows global"



def packageDetails(
    name: str,
    *,
    isGlobal: bool = False,
    projectDir: Path | str | None = None,
    reporter: Reporter | None = None,
) -> PackageDetails:
    reporter = reporter or Reporter()
    setLogContext(command="info", package=name)
    manifest = _loadExisting(isGlobal, projectDir)
    if not manifest.hasPackage(name):
        raise NotFoundError(f"Package not installed: {name}")
    details = _details(manifest, name)
    resolver = NamespaceResolver([localRoot(projectDir), globalRoot()])
    details.files = [replace(item, shadow=_shadow(resolver, item, isGlobal)) for item in details.files]
    info = details.info

    reporter.info(f"{info.name} ({info.version})")
    reporter.info(f"Source: {info.source}")
    reporter.info(f"Commit: {info.commit}")
    reporter.info(f"Installed: {info.installedAt}")
    if info.updatedAt and info.updatedAt != info.installedAt:
        reporter.info(f"Updated: {info.updatedAt}")
    reporter.info("Contents:")
    for category in Category:
        items = [item for item in details.files if item.category is category]
        if not items:
            continue
        reporter.info(f"  {category.value.capitalize()} ({len(items)}):")
        for item in items:
            flags = " [experimental]" if item.record.experimental else ""
            shadow = f" [{item.shadow.upper()}]" if item.shadow else ""
            reporter.item(f"{item.label} (v{item.record.version}){flags}{_STATE_MARKERS[item.state]}{shadow}", marker="•")
    reporter.info(f"Total files: {len(details.files)}")
    if details.modified:
        reporter.warn(f"{len(details.modified)} file(s) modified locally")
    return details
