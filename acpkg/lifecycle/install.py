# acpkg/lifecycle/install.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from acpkg.app.paths import RootSet, rootFor
from acpkg.content.dependencies import DependencyReport, DependencyStatus, checkHostRequirements, resolveScripts
from acpkg.content.descriptor import Category, PackageDescriptor, loadDescriptor, normalizeName
from acpkg.content.manifest import FileRecord, ManifestStore
from acpkg.content.namespace import isReservedName, validateNamespace
from acpkg.core.errors import NotFoundError
from acpkg.core.logging import setLogContext
from acpkg.core.time import nowIso
from acpkg.lifecycle.fetch import FetchedBundle, normalizeSource, stagedBundle
from acpkg.lifecycle.files import filesDestination, installFile, safeRelative
from acpkg.lifecycle.prompts import Prompter, Reporter

logger = logging.getLogger(__name__)

__all__ = [
    "InstallState",
    "InstallOptions",
    "PlannedFile",
    "SkippedFile",
    "InstallPlan",
    "InstallResult",
    "planInstall",
    "installPackage",
]

# Categories the user selects directly; scripts follow the selected commands
SELECTABLE: tuple[Category, ...] = (Category.PATTERNS, Category.COMMANDS, Category.DESIGNS, Category.FILES)



class InstallState(Enum):
    NOT_INSTALLED = "not-installed"
    STAGED = "staged"
    CONFIRMED = "confirmed"
    INSTALLED = "installed"



@dataclass
class InstallOptions:
    repo: str
    isGlobal: bool = False
    experimental: bool = False
    yes: bool = False
    listOnly: bool = False
    # Category → requested names. Missing category = not selected, [] = whole category.
    # An empty mapping selects everything.
    selections: dict[Category, list[str]] = field(default_factory=dict)



@dataclass(frozen=True)
class PlannedFile:
    category: Category
    name: str
    source: Path
    dest: Path
    version: str
    experimental: bool = False
    # `files` only: project-relative destination and declared placeholders
    target: str | None = None
    variables: tuple[str, ...] = ()
    exists: bool = False



@dataclass(frozen=True)
class SkippedFile:
    category: Category
    name: str
    reason: str



@dataclass
class InstallPlan:
    descriptor: PackageDescriptor
    bundle: FetchedBundle
    root: RootSet
    files: list[PlannedFile] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)
    dependencies: DependencyReport | None = None

    def variableNames(self) -> list[str]:
        """Unique placeholder names across the batch, in first-seen order."""
        out: list[str] = []
        for planned in self.files:
            for name in planned.variables:
                if name not in out:
                    out.append(name)
        return out



@dataclass
class InstallResult:
    package: str
    version: str
    state: InstallState
    installed: list[PlannedFile] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)
    listOnly: bool = False



# ------------------------------------------------------------------ #
# Staging
# ------------------------------------------------------------------ #

def _selected(options: InstallOptions, category: Category) -> bool:
    return not options.selections or category in options.selections



def _wanted(options: InstallOptions, category: Category) -> set[str] | None:
    """None means "every entry of the category"."""
    names = options.selections.get(category) or []
    return {normalizeName(category, name) if category is not Category.FILES else name for name in names} or None



def _planEntryFiles(plan: InstallPlan, options: InstallOptions, category: Category) -> None:
    descriptor = plan.descriptor
    sourceDir = plan.bundle.agentDir / category.bundleDir
    wanted = _wanted(options, category)
    entries = descriptor.entries(category)

    if wanted is not None:
        known = {entry.name for entry in entries}
        for name in sorted(wanted - known):
            plan.skipped.append(SkippedFile(category, name, "not declared in package.yaml"))

    for entry in entries:
        if wanted is not None and entry.name not in wanted:
            continue
        if category is Category.COMMANDS and isReservedName(entry.name):
            plan.skipped.append(SkippedFile(category, entry.name, "reserved namespace 'acp'"))
            continue
        if entry.experimental and not options.experimental:
            plan.skipped.append(SkippedFile(category, entry.name, "experimental (use --experimental)"))
            continue
        source = sourceDir / entry.name
        if not source.is_file():
            plan.skipped.append(SkippedFile(category, entry.name, f"declared but not found: agent/{category.bundleDir}/{entry.name}"))
            continue
        if category is Category.FILES:
            target = filesDestination(entry.name, entry.target)
            dest = plan.root.pathFor(category.value, entry.name, target=target)
        else:
            target = None
            dest = plan.root.pathFor(category.value, entry.name)
        plan.files.append(PlannedFile(
            category=category,
            name=entry.name,
            source=source,
            dest=dest,
            version=entry.version or descriptor.version,
            experimental=entry.experimental,
            target=target,
            variables=tuple(entry.variables) if category is Category.FILES else (),
            exists=dest.exists(),
        ))



def _planUndeclaredFiles(plan: InstallPlan, options: InstallOptions) -> None:
    """No contents.files metadata: every file under files/ goes to the project root as is."""
    sourceDir = plan.bundle.agentDir / Category.FILES.bundleDir
    if not sourceDir.is_dir():
        return
    wanted = _wanted(options, Category.FILES)
    for source in sorted(path for path in sourceDir.rglob("*") if path.is_file()):
        rel = source.relative_to(sourceDir).as_posix()
        if wanted is not None and rel not in wanted:
            continue
        target = safeRelative(rel)
        dest = plan.root.pathFor(Category.FILES.value, rel, target=target)
        plan.files.append(PlannedFile(
            category=Category.FILES,
            name=rel,
            source=source,
            dest=dest,
            version=plan.descriptor.version,
            target=target,
            exists=dest.exists(),
        ))



def _planScripts(plan: InstallPlan, options: InstallOptions) -> None:
    descriptor = plan.descriptor
    commands = [planned.name for planned in plan.files if planned.category is Category.COMMANDS]
    sourceDir = plan.bundle.agentDir / Category.SCRIPTS.bundleDir
    for script in resolveScripts(descriptor, commands):
        if isReservedName(script):
            plan.skipped.append(SkippedFile(Category.SCRIPTS, script, "reserved namespace 'acp'"))
            continue
        entry = descriptor.entry(Category.SCRIPTS, script)
        experimental = bool(entry and entry.experimental)
        if experimental and not options.experimental:
            plan.skipped.append(SkippedFile(Category.SCRIPTS, script, "experimental (use --experimental)"))
            continue
        source = sourceDir / script
        if not source.is_file():
            plan.skipped.append(SkippedFile(Category.SCRIPTS, script, "script not found (declared in package.yaml)"))
            continue
        dest = plan.root.pathFor(Category.SCRIPTS.value, script)
        plan.files.append(PlannedFile(
            category=Category.SCRIPTS,
            name=script,
            source=source,
            dest=dest,
            version=(entry.version if entry and entry.version else descriptor.version),
            experimental=experimental,
            exists=dest.exists(),
        ))



def planInstall(descriptor: PackageDescriptor, bundle: FetchedBundle, root: RootSet, options: InstallOptions) -> InstallPlan:
    """
    Staged state: everything that would be written, and everything left out with the reason.
    Nothing on disk changes here.
    """
    validateNamespace(descriptor.name)
    plan = InstallPlan(descriptor=descriptor, bundle=bundle, root=root)
    for category in SELECTABLE:
        if not _selected(options, category):
            continue
        if category is Category.FILES and not descriptor.hasFileMetadata:
            _planUndeclaredFiles(plan, options)
        else:
            _planEntryFiles(plan, options, category)
    if _selected(options, Category.COMMANDS):
        _planScripts(plan, options)
    plan.dependencies = checkHostRequirements(descriptor, root.projectDir)
    return plan



# ------------------------------------------------------------------ #
# Reporting
# ------------------------------------------------------------------ #

def _describePlan(plan: InstallPlan, reporter: Reporter) -> None:
    reporter.info(f"Package: {plan.descriptor.name} ({plan.descriptor.version})")
    reporter.info(f"Installing {'globally to' if plan.root.kind == 'global' else 'locally to'} {plan.root.base}")
    for category in Category:
        planned = [item for item in plan.files if item.category is category]
        if not planned:
            continue
        reporter.info(f"{category.bundleDir}/ ({len(planned)} file(s))")
        for item in planned:
            extra = ""
            if item.target:
                extra += f" → {item.target}"
            if item.variables:
                extra += f" (variables: {', '.join(item.variables)})"
            if item.experimental:
                extra += " [experimental]"
            if item.exists:
                extra += " (will overwrite)"
            reporter.item(f"{item.name} (v{item.version}){extra}", marker="✓")
    for skipped in plan.skipped:
        reporter.item(f"{skipped.category.value}/{skipped.name} ({skipped.reason})", marker="⊘")

    report = plan.dependencies
    if report is not None and report.checks:
        reporter.info(f"Project dependencies ({report.packageManager}):")
        for check in report.checks:
            if check.status is DependencyStatus.OK:
                reporter.item(f"{check.name} {check.installed or ''} satisfies {check.required}".replace("  ", " "), marker="✓")
            elif check.status is DependencyStatus.MISSING:
                reporter.warn(f"{check.name} is not installed (requires {check.required})")
            elif check.status is DependencyStatus.INCOMPATIBLE:
                reporter.warn(f"{check.name} {check.installed} does not satisfy {check.required}")
            else:
                reporter.warn(f"{check.name}: cannot verify version (requires {check.required})")



# ------------------------------------------------------------------ #
# Install
# ------------------------------------------------------------------ #

def _commit(plan: InstallPlan, manifest: ManifestStore, source: str, values: dict[str, str]) -> None:
    descriptor = plan.descriptor
    manifest.upsertPackage(descriptor.name, source=source, version=descriptor.version, commit=plan.bundle.commit)
    timestamp = nowIso()
    for item in plan.files:
        itemValues = {name: values.get(name, "") for name in item.variables}
        checksum = installFile(
            item.source,
            item.dest,
            values=itemValues or None,
            executable=item.category is Category.SCRIPTS,
        )
        manifest.upsertFile(descriptor.name, item.category, FileRecord(
            name=item.name,
            version=item.version,
            checksum=checksum,
            installedAt=timestamp,
            experimental=item.experimental,
            target=item.target,
            variables={name: value for name, value in itemValues.items() if value},
        ))
        logger.debug("Installed %s/%s → %s", item.category.value, item.name, item.dest)
    manifest.save()



def installPackage(
    options: InstallOptions,
    *,
    reporter: Reporter | None = None,
    prompter: Prompter | None = None,
    projectDir: Path | str | None = None,
) -> InstallResult:
    """
    Fetch → stage → confirm → copy → one manifest write.

    `listOnly` runs the whole staging pipeline and reports without touching
    any file or the manifest. Not transactional: files are written before
    the manifest, so a crash in between leaves untracked files behind.
    """
    reporter = reporter or Reporter()
    prompter = prompter or Prompter(autoYes=options.yes)
    root = rootFor(options.isGlobal, projectDir)
    setLogContext(command="install")

    with stagedBundle(options.repo) as bundle:
        descriptor = loadDescriptor(bundle.dir)
        setLogContext(package=descriptor.name)
        plan = planInstall(descriptor, bundle, root, options)
        _describePlan(plan, reporter)

        result = InstallResult(package=descriptor.name, version=descriptor.version, state=InstallState.STAGED, skipped=list(plan.skipped))
        if not plan.files:
            raise NotFoundError(
                f"No valid files to install from '{options.repo}'"
                + (f" ({len(plan.skipped)} skipped)" if plan.skipped else "")
            )

        reporter.info(f"Ready to install {len(plan.files)} file(s)" + (f" ({len(plan.skipped)} skipped)" if plan.skipped else ""))
        if options.listOnly:
            reporter.info("(dry run: no files were installed)")
            result.listOnly = True
            return result

        if plan.dependencies is not None and plan.dependencies.needsConfirmation:
            if not prompter.confirm("Dependency issues found. Continue anyway?"):
                reporter.info("Installation cancelled.")
                return result
        if not prompter.confirm("Proceed with installation?"):
            reporter.info("Installation cancelled.")
            return result
        result.state = InstallState.CONFIRMED

        values: dict[str, str] = {}
        for name in plan.variableNames():
            values[name] = prompter.ask(f"Enter {name}")

        manifest = ManifestStore.load(root)
        _commit(plan, manifest, normalizeSource(options.repo), values)

    result.state = InstallState.INSTALLED
    result.installed = list(plan.files)
    reporter.success(f"Installed {len(plan.files)} file(s) from {options.repo}")
    reporter.info(f"Package: {descriptor.name} ({descriptor.version})")
    reporter.info("Review installed files before using them.")
    return result
