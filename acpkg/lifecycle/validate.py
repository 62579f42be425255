# acpkg/lifecycle/validate.py
from __future__ import annotations
import logging
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from acpkg.app.paths import localRoot
from acpkg.content.descriptor import DESCRIPTOR_NAME, Category, PackageDescriptor, PackageModel, validateDescriptor
from acpkg.content.manifest import ManifestStore
from acpkg.content.namespace import checkNamespaceConsistency, isReservedName, namespaceSources
from acpkg.core.document import Document
from acpkg.core.errors import AcpError
from acpkg.core.git import remoteUrl, runGit
from acpkg.core.logging import setLogContext
from acpkg.lifecycle.fetch import BUNDLE_AGENT_DIR
from acpkg.lifecycle.files import isTemplateName
from acpkg.lifecycle.install import InstallOptions, installPackage
from acpkg.lifecycle.prompts import Prompter, Reporter

logger = logging.getLogger(__name__)

__all__ = ["README_NAME", "README_SECTIONS", "ValidationReport", "validatePackage"]

README_NAME = "README.md"
README_SECTIONS: tuple[str, ...] = ("What's Included", "Installation", "License")
_EXPERIMENTAL_STATUS_RE = re.compile(r"^\*\*Status\*\*: Experimental", re.MULTILINE)
# Content directories scanned for files on disk; `files` is free-form and skipped
_SCANNED: tuple[Category, ...] = (Category.PATTERNS, Category.COMMANDS, Category.DESIGNS, Category.SCRIPTS)



@dataclass
class ValidationReport:
    package: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fixable: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error(self, message: str, *, fix: str | None = None) -> None:
        self.errors.append(message)
        if fix:
            self.fixable.append(fix)

    def warn(self, message: str, *, fix: str | None = None) -> None:
        self.warnings.append(message)
        if fix:
            self.fixable.append(fix)



# ------------------------------------------------------------------ #
# Individual checks
# ------------------------------------------------------------------ #

def _onDisk(agentDir: Path, category: Category) -> list[str]:
    directory = agentDir / category.bundleDir
    if not directory.is_dir():
        return []
    return sorted(
        path.name for path in directory.iterdir()
        if path.is_file() and path.suffix == category.suffix
    )



def _ignoredOnDisk(category: Category, name: str) -> bool:
    if name == ".gitkeep" or isTemplateName(name):
        return True
    return category in (Category.COMMANDS, Category.SCRIPTS) and (isReservedName(name) or name.startswith("local."))



def _checkFileExistence(descriptor: PackageDescriptor, agentDir: Path, report: ValidationReport) -> None:
    total = 0
    missing = 0
    for category in Category:
        for entry in descriptor.entries(category):
            total += 1
            if not (agentDir / category.bundleDir / entry.name).is_file():
                missing += 1
                report.error(f"Missing file: {BUNDLE_AGENT_DIR}/{category.bundleDir}/{entry.name}")
    if missing:
        report.fixable.append(f"Remove missing files from {DESCRIPTOR_NAME}")
    logger.debug("File existence: %d of %d present", total - missing, total)



def _installedNames(projectDir: Path) -> set[str]:
    """Names tracked in the project's own manifest (content installed from other packages)."""
    root = localRoot(projectDir)
    if not root.manifestPath.is_file():
        return set()
    try:
        manifest = ManifestStore.load(root)
    except AcpError as err:
        logger.warning("Cannot read %s: %s", root.manifestPath, err)
        return set()
    return {record.name for pkg in manifest.packages() for _category, record in manifest.allFileRecords(pkg)}



def _checkUnlistedFiles(descriptor: PackageDescriptor, agentDir: Path, installed: set[str], report: ValidationReport) -> None:
    for category in _SCANNED:
        declared = {entry.name for entry in descriptor.entries(category)}
        if category is Category.SCRIPTS:
            for command in descriptor.entries(Category.COMMANDS):
                declared.update(command.scripts)
        for name in _onDisk(agentDir, category):
            if _ignoredOnDisk(category, name) or name in installed or name in declared:
                continue
            report.warn(
                f"Found unlisted file: {category.bundleDir}/{name}",
                fix=f"Add {category.bundleDir}/{name} to {DESCRIPTOR_NAME}",
            )



def _checkNamespace(descriptor: PackageDescriptor, agentDir: Path, projectDir: Path, report: ValidationReport) -> None:
    """
    Rules:
      • declared commands must be named `<namespace>.*`
      • declared patterns without the prefix only warn
      • any `<namespace>.*` file on disk must be declared
      • directory name and git remote should agree with package.yaml
    """
    namespace = descriptor.name
    prefix = f"{namespace}."
    for category in (Category.PATTERNS, Category.COMMANDS, Category.DESIGNS):
        declared = {entry.name for entry in descriptor.entries(category)}
        for name in sorted(declared):
            if name.startswith(prefix) or isReservedName(name):
                continue
            if category is Category.COMMANDS:
                report.error(
                    f"Command file missing namespace: {name} (should be {namespace}.*.md)",
                    fix=f"Rename {name} to {prefix}{name}",
                )
            elif category is Category.PATTERNS:
                report.warn(f"Pattern file without namespace: {name} (consider {prefix}{name})")
        for name in _onDisk(agentDir, category):
            if _ignoredOnDisk(category, name) or name in declared:
                continue
            if name.startswith(prefix):
                report.error(
                    f"Package file matches namespace but is not in contents: {category.bundleDir}/{name}",
                    fix=f"Add {category.bundleDir}/{name} to {DESCRIPTOR_NAME} or drop the '{prefix}' prefix",
                )

    for message in checkNamespaceConsistency(namespace, namespaceSources(projectDir)):
        report.warn(message)



def _checkReservedNames(descriptor: PackageDescriptor, report: ValidationReport) -> None:
    for category in (Category.COMMANDS, Category.SCRIPTS):
        for entry in descriptor.entries(category):
            if isReservedName(entry.name):
                report.error(f"{category.bundleDir}/{entry.name} uses the reserved 'acp.' prefix")



def _checkExperimental(descriptor: PackageDescriptor, agentDir: Path, report: ValidationReport) -> None:
    for category in _SCANNED:
        for entry in descriptor.entries(category):
            path = agentDir / category.bundleDir / entry.name
            if not path.is_file():
                continue
            marked = bool(_EXPERIMENTAL_STATUS_RE.search(path.read_text("utf-8", errors="replace")))
            rel = f"{BUNDLE_AGENT_DIR}/{category.bundleDir}/{entry.name}"
            if entry.experimental and not marked:
                report.error(
                    f"{rel}: marked experimental in {DESCRIPTOR_NAME} but missing 'Status: Experimental' in file",
                    fix=f"Add '**Status**: Experimental' to {rel}",
                )
            elif marked and not entry.experimental:
                report.error(
                    f"{rel}: has 'Status: Experimental' but not marked in {DESCRIPTOR_NAME}",
                    fix=f"Add 'experimental: true' to {entry.name} in {DESCRIPTOR_NAME}",
                )



def _checkReadme(projectDir: Path, report: ValidationReport) -> None:
    path = projectDir / README_NAME
    if not path.is_file():
        report.error(f"{README_NAME} not found", fix=f"Create {README_NAME} with package information")
        return
    text = path.read_text("utf-8", errors="replace").lower()
    for section in README_SECTIONS:
        if f"# {section.lower()}" not in text:
            report.warn(f"Missing '{section}' section in {README_NAME}", fix=f"Add '{section}' section to {README_NAME}")



def _checkGitRemote(model: PackageModel, projectDir: Path, report: ValidationReport) -> None:
    if not (projectDir / ".git").exists():
        report.error("Git repository not initialized", fix="Run: git init")
        return
    url = remoteUrl(projectDir)
    if url is None:
        report.error("Git remote not configured", fix="Add git remote: git remote add origin <url>")
        return
    if model.repository not in (url, f"{url}.git"):
        report.warn(
            f"Remote URL mismatch: git remote {url}, {DESCRIPTOR_NAME} {model.repository}",
            fix=f"Update {DESCRIPTOR_NAME} repository field",
        )
    try:
        proc = runGit(["ls-remote", model.repository, "HEAD"], timeout=60)
    except (OSError, subprocess.TimeoutExpired) as err:
        report.warn(f"Remote repository not checked: {err}")
        return
    if proc.returncode != 0:
        report.warn(f"Remote repository not accessible: {model.repository}")



def _testInstall(projectDir: Path, descriptor: PackageDescriptor, report: ValidationReport) -> None:
    """Installs the package from `projectDir` into a throwaway project."""
    with tempfile.TemporaryDirectory(prefix="acp-validate-") as scratch:
        options = InstallOptions(repo=str(projectDir), yes=True, experimental=True)
        try:
            result = installPackage(
                options,
                reporter=Reporter(quiet=True),
                prompter=Prompter(autoYes=True, interactive=False),
                projectDir=scratch,
            )
        except AcpError as err:
            report.error(f"Package installation failed: {err}")
            return
        if not result.installed:
            report.error("No files were installed")
            return
        manifest = ManifestStore.load(localRoot(scratch))
        if not manifest.hasPackage(descriptor.name):
            report.warn("Manifest may not have been updated correctly")
        logger.debug("Test install copied %d file(s)", len(result.installed))



# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #

def _printReport(report: ValidationReport, reporter: Reporter) -> None:
    for message in report.errors:
        reporter.error(message)
    for message in report.warnings:
        reporter.warn(message)
    if report.fixable:
        reporter.info("Fixable issues:")
        for fix in report.fixable:
            reporter.item(fix)
    reporter.info(f"Errors: {len(report.errors)}, warnings: {len(report.warnings)}")
    if not report.ok:
        reporter.error("Validation failed. Fix errors and run again.")
    elif report.warnings:
        reporter.success("Package validation passed with warnings.")
    else:
        reporter.success("Package validation passed!")



def validatePackage(
    projectDir: Path | str | None = None,
    *,
    skipRemote: bool = False,
    skipInstall: bool = False,
    reporter: Reporter | None = None,
) -> ValidationReport:
    """
    Validates the package rooted at `projectDir` (default: cwd).

    Never raises for package problems: every error and warning lands in the
    returned report. Checks that depend on a valid descriptor are skipped
    when the descriptor itself is broken.
    """
    reporter = reporter or Reporter()
    projectDir = Path(projectDir or Path.cwd()).resolve()
    report = ValidationReport()
    setLogContext(command="validate")

    path = projectDir / DESCRIPTOR_NAME
    if not path.is_file():
        report.error(f"No {DESCRIPTOR_NAME} found in {projectDir}", fix=f"Create {DESCRIPTOR_NAME}")
        _printReport(report, reporter)
        return report
    try:
        doc = Document.parse(path.read_text("utf-8"), source=str(path))
    except AcpError as err:
        report.error(str(err))
        _printReport(report, reporter)
        return report

    violations = validateDescriptor(doc)
    for violation in violations:
        report.error(f"{DESCRIPTOR_NAME}: {violation}")
    agentDir = projectDir / BUNDLE_AGENT_DIR
    if not agentDir.is_dir():
        report.error(f"No {BUNDLE_AGENT_DIR}/ directory found")
    _checkReadme(projectDir, report)
    if violations:
        _printReport(report, reporter)
        return report

    descriptor = PackageDescriptor(doc=doc, model=PackageModel.model_validate(doc.toData()), path=path)
    report.package = descriptor.name
    setLogContext(package=descriptor.name)
    reporter.info(f"Validating {descriptor.name} ({descriptor.version})")

    _checkFileExistence(descriptor, agentDir, report)
    _checkUnlistedFiles(descriptor, agentDir, _installedNames(projectDir), report)
    _checkNamespace(descriptor, agentDir, projectDir, report)
    _checkReservedNames(descriptor, report)
    _checkExperimental(descriptor, agentDir, report)
    if not skipRemote:
        _checkGitRemote(descriptor.model, projectDir, report)
    if not skipInstall and agentDir.is_dir():
        _testInstall(projectDir, descriptor, report)

    _printReport(report, reporter)
    return report
