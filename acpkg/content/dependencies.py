# acpkg/content/dependencies.py
from __future__ import annotations
import logging
import re
import tomllib
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import json5

from acpkg.content.descriptor import Category, PackageDescriptor, normalizeName
from acpkg.semver.semver import Version, parseRequirement, parseVersion, versionSatisfies

logger = logging.getLogger(__name__)

__all__ = [
    "DependencyStatus",
    "DependencyCheck",
    "DependencyReport",
    "resolveScripts",
    "detectPackageManager",
    "declaredDependencies",
    "checkHostRequirements",
]

_VERSION_IN_TEXT_RE = re.compile(r"v?(\d+(?:\.\d+){0,2}(?:-[0-9A-Za-z.-]+)?)")
_PIP_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)(\[[^\]]*\])?\s*(.*)$")



# ------------------------------------------------------------------ #
# Script union
# ------------------------------------------------------------------ #

def resolveScripts(descriptor: PackageDescriptor, selectedCommands: Iterable[str]) -> list[str]:
    """
    Ordered, deduplicated union of the scripts declared by the selected commands.
    Scripts nobody selected asks for are left out.
    """
    out: list[str] = []
    for command in selectedCommands:
        for script in descriptor.commandScripts(normalizeName(Category.COMMANDS, command)):
            if script not in out:
                out.append(script)
    return out



# ------------------------------------------------------------------ #
# Host project
# ------------------------------------------------------------------ #

class DependencyStatus(Enum):
    OK = "ok"
    MISSING = "missing"
    INCOMPATIBLE = "incompatible"
    UNKNOWN = "unknown"



@dataclass(frozen=True)
class DependencyCheck:
    name: str
    required: str
    installed: str | None
    status: DependencyStatus



@dataclass(frozen=True)
class DependencyReport:
    packageManager: str
    checks: tuple[DependencyCheck, ...] = field(default_factory=tuple)

    @property
    def problems(self) -> list[DependencyCheck]:
        return [check for check in self.checks if check.status is not DependencyStatus.OK]

    @property
    def needsConfirmation(self) -> bool:
        """Missing, incompatible or unverifiable dependencies block until confirmed."""
        return bool(self.problems)



def detectPackageManager(projectDir: Path | str) -> str:
    projectDir = Path(projectDir)
    if (projectDir / "package.json").is_file():
        return "npm"
    if (projectDir / "requirements.txt").is_file() or (projectDir / "pyproject.toml").is_file():
        return "pip"
    if (projectDir / "Cargo.toml").is_file():
        return "cargo"
    if (projectDir / "go.mod").is_file():
        return "go"
    return "unknown"



def _normalizePipName(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()



def _npmDeclared(projectDir: Path) -> dict[str, str]:
    data = json5.loads((projectDir / "package.json").read_text("utf-8"))
    out: dict[str, str] = {}
    if isinstance(data, dict):
        for section in ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies"):
            deps = data.get(section)
            if isinstance(deps, dict):
                for name, spec in deps.items():
                    out.setdefault(str(name), str(spec))
    return out



def _pipDeclared(projectDir: Path) -> dict[str, str]:
    out: dict[str, str] = {}

    def addLine(line: str) -> None:
        line = line.split("#", 1)[0].split(";", 1)[0].strip()
        if not line or line.startswith("-"):
            return
        mtch = _PIP_NAME_RE.match(line)
        if mtch:
            out.setdefault(_normalizePipName(mtch.group(1)), mtch.group(3).strip())

    requirements = projectDir / "requirements.txt"
    if requirements.is_file():
        for line in requirements.read_text("utf-8").splitlines():
            addLine(line)

    pyproject = projectDir / "pyproject.toml"
    if pyproject.is_file():
        data = tomllib.loads(pyproject.read_text("utf-8"))
        project = data.get("project", {})
        for line in project.get("dependencies", []) or []:
            addLine(str(line))
        for extra in (project.get("optional-dependencies", {}) or {}).values():
            for line in extra:
                addLine(str(line))
        poetry = data.get("tool", {}).get("poetry", {}).get("dependencies", {}) or {}
        for name, spec in poetry.items():
            if name == "python":
                continue
            version = spec.get("version", "") if isinstance(spec, dict) else str(spec)
            out.setdefault(_normalizePipName(name), str(version))
    return out



def _cargoDeclared(projectDir: Path) -> dict[str, str]:
    data = tomllib.loads((projectDir / "Cargo.toml").read_text("utf-8"))
    out: dict[str, str] = {}
    for section in ("dependencies", "dev-dependencies", "build-dependencies"):
        for name, spec in (data.get(section, {}) or {}).items():
            version = spec.get("version", "") if isinstance(spec, dict) else str(spec)
            out.setdefault(str(name), str(version))
    return out



def _goDeclared(projectDir: Path) -> dict[str, str]:
    out: dict[str, str] = {}
    inBlock = False
    for raw in (projectDir / "go.mod").read_text("utf-8").splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if line.startswith("require ("):
            inBlock = True
            continue
        if inBlock and line == ")":
            inBlock = False
            continue
        if line.startswith("require "):
            line = line[len("require "):].strip()
        elif not inBlock:
            continue
        parts = line.split()
        if len(parts) >= 2:
            out.setdefault(parts[0], parts[1])
    return out



_DECLARED = {
    "npm": _npmDeclared,
    "pip": _pipDeclared,
    "cargo": _cargoDeclared,
    "go": _goDeclared,
}



def declaredDependencies(projectDir: Path | str, packageManager: str) -> dict[str, str]:
    """Dependency name → declared version text as written in the host project's manifest."""
    reader = _DECLARED.get(packageManager)
    if reader is None:
        return {}
    return reader(Path(projectDir))



def _installedVersion(declared: str) -> Version | None:
    # "^18.2.0" → 18.2.0, "==2.31.0" → 2.31.0, "v1.9.1" → 1.9.1
    mtch = _VERSION_IN_TEXT_RE.search(declared)
    if not mtch:
        return None
    try:
        return parseVersion(mtch.group(1))
    except ValueError:
        return None



def _lookup(declared: dict[str, str], name: str, packageManager: str) -> str | None:
    if packageManager == "pip":
        return declared.get(_normalizePipName(name))
    return declared.get(name)



def checkHostRequirements(descriptor: PackageDescriptor, projectDir: Path | str) -> DependencyReport:
    """
    Checks `requires.<pm>` of the descriptor against the host project's own
    dependency manifest. Only the detected package manager is checked.
    """
    packageManager = detectPackageManager(projectDir)
    if packageManager == "unknown":
        logger.info("No package manager detected, skipping dependency check")
        return DependencyReport(packageManager=packageManager)

    required = descriptor.requirements(packageManager)
    if not required:
        return DependencyReport(packageManager=packageManager)

    try:
        declared = declaredDependencies(projectDir, packageManager)
    except (OSError, ValueError, tomllib.TOMLDecodeError) as err:
        logger.warning("Cannot read %s dependencies of '%s': %s", packageManager, projectDir, err)
        declared = None

    checks: list[DependencyCheck] = []
    for name, constraint in required.items():
        if declared is None:
            checks.append(DependencyCheck(name, constraint, None, DependencyStatus.UNKNOWN))
            continue
        spec = _lookup(declared, name, packageManager)
        if spec is None:
            checks.append(DependencyCheck(name, constraint, None, DependencyStatus.MISSING))
            continue
        requirement = parseRequirement(constraint)
        installed = _installedVersion(spec)
        if requirement.isAny:
            status = DependencyStatus.OK
        elif installed is None:
            status = DependencyStatus.UNKNOWN
        elif versionSatisfies(installed, requirement):
            status = DependencyStatus.OK
        else:
            status = DependencyStatus.INCOMPATIBLE
        checks.append(DependencyCheck(name, constraint, str(installed) if installed else (spec or None), status))
        logger.debug("%s dependency %s: required %s, declared %r → %s", packageManager, name, constraint, spec, status.value)
    return DependencyReport(packageManager=packageManager, checks=tuple(checks))
