# acpkg/lifecycle/remove.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path

from acpkg.app.paths import rootFor
from acpkg.content.descriptor import Category
from acpkg.content.manifest import ManifestStore
from acpkg.core.errors import NotFoundError
from acpkg.core.logging import setLogContext
from acpkg.lifecycle.prompts import Prompter, Reporter

logger = logging.getLogger(__name__)

__all__ = ["RemoveOptions", "RemoveResult", "removePackage"]



@dataclass
class RemoveOptions:
    package: str
    isGlobal: bool = False
    yes: bool = False
    keepModified: bool = False



@dataclass
class RemoveResult:
    package: str
    removed: list[Path] = field(default_factory=list)
    kept: list[Path] = field(default_factory=list)
    missing: list[Path] = field(default_factory=list)
    cancelled: bool = False



def removePackage(
    options: RemoveOptions,
    *,
    reporter: Reporter | None = None,
    prompter: Prompter | None = None,
    projectDir: Path | str | None = None,
) -> RemoveResult:
    """
    Deletes every tracked file of a package and drops it from the manifest.
    With keepModified, drifted files stay on disk but are no longer tracked.
    """
    reporter = reporter or Reporter()
    prompter = prompter or Prompter(autoYes=options.yes)
    root = rootFor(options.isGlobal, projectDir)
    setLogContext(command="remove", package=options.package)

    manifest = ManifestStore.load(root)
    if not manifest.hasPackage(options.package):
        raise NotFoundError(f"Package not installed: {options.package}")

    info = manifest.packageInfo(options.package)
    records = manifest.allFileRecords(options.package)
    result = RemoveResult(package=options.package)

    modified = [
        (category, record) for category, record in records
        if manifest.fileState(options.package, category, record.name) == "modified"
    ]
    reporter.info(f"Package: {options.package} ({info.version}), {len(records)} tracked file(s)")
    if modified:
        reporter.warn("Modified files detected:")
        for category, record in modified:
            reporter.item(f"{category.bundleDir}/{record.name}")
        if options.keepModified:
            reporter.info("Modified files will be kept (--keep-modified)")

    if not prompter.confirm(f"Remove package {options.package}?"):
        reporter.info("Removal cancelled.")
        result.cancelled = True
        return result

    keep = {(category, record.name) for category, record in modified} if options.keepModified else set()
    for category, record in records:
        path = manifest.installedPath(category, record)
        label = f"{category.bundleDir}/{record.name}" if category is not Category.FILES else (record.target or record.name)
        if (category, record.name) in keep:
            reporter.item(f"Kept {label} (modified)", marker="⊙")
            result.kept.append(path)
            continue
        if not path.is_file():
            reporter.item(f"{label} already gone", marker="⊘")
            result.missing.append(path)
            continue
        path.unlink()
        logger.debug("Removed %s", path)
        reporter.item(f"Removed {label}", marker="✓")
        result.removed.append(path)

    manifest.removePackage(options.package)
    manifest.save()
    reporter.success(f"Removed {options.package}: {len(result.removed)} file(s)")
    if result.kept:
        reporter.info(f"Kept: {len(result.kept)} file(s) (modified)")
    return result
