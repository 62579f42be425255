# acpkg/lifecycle/update.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from acpkg.app.paths import rootFor
from acpkg.content.descriptor import Category, ContentEntry, PackageDescriptor, loadDescriptor
from acpkg.content.manifest import FileRecord, ManifestStore
from acpkg.core.errors import NotFoundError
from acpkg.core.hashing import sameChecksum, sha256sumBytes
from acpkg.core.logging import setLogContext
from acpkg.core.time import nowIso
from acpkg.lifecycle.fetch import FetchedBundle, stagedBundle
from acpkg.lifecycle.files import installFile, renderBytes
from acpkg.lifecycle.prompts import Prompter, Reporter
from acpkg.semver.semver import compareVersions

logger = logging.getLogger(__name__)

__all__ = [
    "UpdateState",
    "FileAction",
    "UpdateOptions",
    "FileOutcome",
    "PackageUpdate",
    "UpdateSummary",
    "updatePackages",
]



class UpdateState(Enum):
    UP_TO_DATE = "up-to-date"
    AVAILABLE = "available"
    INSTALLED = "installed"
    PARTIALLY_UPDATED = "partially-updated"



class FileAction(Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    KEPT = "kept"
    MISSING_UPSTREAM = "missing-upstream"



@dataclass
class UpdateOptions:
    package: str | None = None
    check: bool = False
    skipModified: bool = False
    force: bool = False
    yes: bool = False
    isGlobal: bool = False
    experimental: bool = False



@dataclass(frozen=True)
class FileOutcome:
    category: Category
    name: str
    action: FileAction
    detail: str = ""



@dataclass
class PackageUpdate:
    package: str
    localVersion: str
    remoteVersion: str
    state: UpdateState
    modified: list[tuple[Category, str]] = field(default_factory=list)
    outcomes: list[FileOutcome] = field(default_factory=list)
    graduated: list[tuple[Category, str]] = field(default_factory=list)
    newEntries: list[tuple[Category, str]] = field(default_factory=list)
    newExperimental: list[tuple[Category, str]] = field(default_factory=list)

    def count(self, action: FileAction) -> int:
        return sum(1 for outcome in self.outcomes if outcome.action == action)

    @property
    def updatedCount(self) -> int:
        return self.count(FileAction.UPDATED)

    @property
    def skippedCount(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.action in (FileAction.SKIPPED, FileAction.KEPT, FileAction.MISSING_UPSTREAM))



@dataclass
class UpdateSummary:
    packages: list[PackageUpdate] = field(default_factory=list)

    def find(self, name: str) -> PackageUpdate:
        for item in self.packages:
            if item.package == name:
                return item
        raise KeyError(name)



# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

def _sourceFor(bundle: FetchedBundle, category: Category, name: str) -> Path:
    return bundle.agentDir / category.bundleDir / name



def _newEntry(descriptor: PackageDescriptor, category: Category, record: FileRecord, bundle: FetchedBundle) -> ContentEntry | None:
    entry = descriptor.entry(category, record.name)
    if entry is not None:
        return entry
    # files/ content without descriptor metadata, or scripts only referenced from commands
    if category in (Category.FILES, Category.SCRIPTS) and _sourceFor(bundle, category, record.name).is_file():
        return ContentEntry(name=record.name, version=descriptor.version)
    return None



def _untrackedEntries(descriptor: PackageDescriptor, manifest: ManifestStore, pkg: str) -> list[tuple[Category, ContentEntry]]:
    out: list[tuple[Category, ContentEntry]] = []
    for category in Category:
        if category is Category.SCRIPTS:
            continue
        for entry in descriptor.entries(category):
            if manifest.fileRecord(pkg, category, entry.name) is None:
                out.append((category, entry))
    return out



def _decideDrift(options: UpdateOptions, prompter: Prompter, category: Category, name: str) -> bool:
    """True when a locally modified file should be overwritten."""
    if options.skipModified:
        return False
    if options.force:
        return True
    return prompter.confirm(f"{category.bundleDir}/{name} was modified locally. Overwrite?", default=False)



# ------------------------------------------------------------------ #
# One package
# ------------------------------------------------------------------ #

def _inspect(manifest: ManifestStore, pkg: str, descriptor: PackageDescriptor, options: UpdateOptions) -> PackageUpdate:
    info = manifest.packageInfo(pkg)
    item = PackageUpdate(package=pkg, localVersion=info.version, remoteVersion=descriptor.version, state=UpdateState.UP_TO_DATE)
    for category, record in manifest.allFileRecords(pkg):
        if manifest.fileState(pkg, category, record.name) == "modified":
            item.modified.append((category, record.name))
    for category, entry in _untrackedEntries(descriptor, manifest, pkg):
        # untracked experimental entries stay out of view unless asked for
        if entry.experimental and not options.experimental:
            item.newExperimental.append((category, entry.name))
        else:
            item.newEntries.append((category, entry.name))
    if compareVersions(info.version, descriptor.version) == "newer" or item.modified:
        item.state = UpdateState.AVAILABLE
    return item



def _apply(
    item: PackageUpdate,
    manifest: ManifestStore,
    descriptor: PackageDescriptor,
    bundle: FetchedBundle,
    options: UpdateOptions,
    reporter: Reporter,
    prompter: Prompter,
) -> None:
    pkg = item.package
    timestamp = nowIso()
    for category, record in manifest.allFileRecords(pkg):
        entry = _newEntry(descriptor, category, record, bundle)
        source = _sourceFor(bundle, category, record.name)
        if entry is None or not source.is_file():
            reporter.warn(f"File no longer exists in package: {category.bundleDir}/{record.name}")
            item.outcomes.append(FileOutcome(category, record.name, FileAction.MISSING_UPSTREAM))
            continue

        dest = manifest.installedPath(category, record)
        state = manifest.fileState(pkg, category, record.name)
        if state == "modified" and not _decideDrift(options, prompter, category, record.name):
            action = FileAction.SKIPPED if options.skipModified else FileAction.KEPT
            reporter.item(f"Skipped {category.bundleDir}/{record.name} (modified locally)", marker="⊘")
            item.outcomes.append(FileOutcome(category, record.name, action, "modified locally"))
            continue

        values = dict(record.variables) if category is Category.FILES else {}
        graduated = record.experimental and not entry.experimental
        newVersion = entry.version or descriptor.version
        newChecksum = sha256sumBytes(renderBytes(source, values or None))
        if state == "clean" and sameChecksum(newChecksum, record.checksum) and entry.experimental == record.experimental and newVersion == record.version:
            item.outcomes.append(FileOutcome(category, record.name, FileAction.UNCHANGED))
            continue

        checksum = installFile(source, dest, values=values or None, executable=category is Category.SCRIPTS)
        manifest.upsertFile(pkg, category, FileRecord(
            name=record.name,
            version=newVersion,
            checksum=checksum,
            installedAt=timestamp,
            experimental=entry.experimental,
            target=record.target,
            variables=record.variables,
        ))
        if graduated:
            item.graduated.append((category, record.name))
            reporter.item(f"Graduated to stable: {category.bundleDir}/{record.name}", marker="★")
        reporter.item(f"Updated {category.bundleDir}/{record.name} (v{newVersion})", marker="✓")
        item.outcomes.append(FileOutcome(category, record.name, FileAction.UPDATED))

    info = manifest.packageInfo(pkg)
    manifest.upsertPackage(pkg, source=info.source, version=descriptor.version, commit=bundle.commit)
    item.state = UpdateState.PARTIALLY_UPDATED if item.skippedCount else UpdateState.INSTALLED



def _reportInspection(item: PackageUpdate, reporter: Reporter) -> None:
    if compareVersions(item.localVersion, item.remoteVersion) == "newer":
        reporter.success(f"{item.package}: update available {item.localVersion} → {item.remoteVersion}")
    else:
        reporter.success(f"{item.package}: up to date ({item.localVersion})")
    if item.modified:
        reporter.warn(f"{item.package}: modified files detected")
        for category, name in item.modified:
            reporter.item(f"{category.bundleDir}/{name}")
    if item.newEntries:
        reporter.info(f"{item.package}: {len(item.newEntries)} new item(s) in the package (use install to add them)")
    if item.newExperimental:
        reporter.info(f"{item.package}: {len(item.newExperimental)} new experimental item(s) (use install --experimental to add them)")



# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #

def updatePackages(
    options: UpdateOptions,
    *,
    reporter: Reporter | None = None,
    prompter: Prompter | None = None,
    projectDir: Path | str | None = None,
) -> UpdateSummary:
    """
    Re-fetches installed packages and refreshes their tracked files.

    A package is updated when the remote version is newer or a tracked file drifted.
    Drifted files: --skip-modified skips, --force overwrites, otherwise one
    confirmation per file (non-interactive: keep the local file).
    --check only reports.
    """
    if options.skipModified and options.force:
        raise ValueError("--skip-modified and --force are mutually exclusive")
    reporter = reporter or Reporter()
    prompter = prompter or Prompter(autoYes=options.yes)
    root = rootFor(options.isGlobal, projectDir)
    setLogContext(command="update")

    if not root.manifestPath.is_file():
        raise NotFoundError(f"No manifest found at {root.manifestPath}. No packages installed.")
    manifest = ManifestStore.load(root)
    installed = manifest.packages()
    if options.package is not None and options.package not in installed:
        raise NotFoundError(f"Package not installed: {options.package}")
    targets = [options.package] if options.package else installed

    summary = UpdateSummary()
    if not targets:
        reporter.info("No packages installed")
        return summary

    changed = False
    for pkg in targets:
        setLogContext(package=pkg)
        info = manifest.packageInfo(pkg)
        if not info.source:
            reporter.warn(f"{pkg}: no source recorded, skipping")
            continue
        with stagedBundle(info.source) as bundle:
            descriptor = loadDescriptor(bundle.dir)
            item = _inspect(manifest, pkg, descriptor, options)
            summary.packages.append(item)
            _reportInspection(item, reporter)
            if options.check or item.state is UpdateState.UP_TO_DATE:
                continue
            if options.package is None and not prompter.confirm(f"Update {pkg}?", default=True):
                reporter.info(f"{pkg}: update cancelled")
                continue
            _apply(item, manifest, descriptor, bundle, options, reporter, prompter)
            changed = True
            reporter.success(f"Updated {pkg}: {item.updatedCount} file(s)")
            if item.skippedCount:
                reporter.info(f"  Skipped: {item.skippedCount} file(s)")

    if changed:
        manifest.save()
    elif not options.check:
        reporter.success("All packages are up to date" if options.package is None else "Package is up to date")
    return summary
