# acpkg/content/descriptor.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from acpkg.core.document import Document
from acpkg.core.errors import NotFoundError, ValidationError, Violation
from acpkg.semver.semver import isStrictVersion, parseRequirement

logger = logging.getLogger(__name__)

__all__ = [
    "DESCRIPTOR_NAME",
    "NAME_RE",
    "RESERVED_NAMESPACES",
    "PACKAGE_MANAGERS",
    "Category",
    "ContentEntry",
    "Contents",
    "Requirements",
    "PackageModel",
    "PackageDescriptor",
    "normalizeName",
    "validateDescriptor",
    "loadDescriptor",
]

DESCRIPTOR_NAME = "package.yaml"
NAME_RE = re.compile(r"^[a-z0-9-]+$")
RESERVED_NAMESPACES: frozenset[str] = frozenset({"acp", "local", "core", "system", "global"})
PACKAGE_MANAGERS: tuple[str, ...] = ("npm", "pip", "cargo", "go")

_ACP_REQUIREMENT_RE = re.compile(r"^>=?\d+\.\d+\.\d+$")
_REPOSITORY_RE = re.compile(r"^https?://.*\.git$")
_HOMEPAGE_RE = re.compile(r"^https?://")



class Category(str, Enum):
    PATTERNS = "patterns"
    COMMANDS = "commands"
    DESIGNS = "designs"
    SCRIPTS = "scripts"
    FILES = "files"

    @property
    def bundleDir(self) -> str:
        """Directory under a bundle's (or install root's) agent/ tree."""
        return "design" if self is Category.DESIGNS else self.value

    @property
    def suffix(self) -> str:
        if self is Category.SCRIPTS:
            return ".sh"
        if self is Category.FILES:
            return ""
        return ".md"



def normalizeName(category: Category | str, name: str) -> str:
    """Appends the category's file suffix when missing ("demo.hello" → "demo.hello.md")."""
    suffix = Category(category).suffix
    name = str(name).strip()
    if suffix and not name.endswith(suffix):
        return name + suffix
    return name



def _emptyAsList(value: Any) -> Any:
    # `key:` with nothing under it reads back as an empty map
    if value is None or value == {} or value == "":
        return []
    return value



def _checkEntryName(value: str, *, plain: bool) -> str:
    """Entry names become paths under an install root: no absolute paths, no "..", no backslashes."""
    name = value.strip()
    if "\\" in name or name.startswith("/") or re.match(r"^[A-Za-z]:", name):
        raise ValueError(f"'{value}' must be a relative name")
    if ".." in name.split("/"):
        raise ValueError(f"'{value}' must not contain '..'")
    if plain and "/" in name:
        raise ValueError(f"'{value}' must be a plain file name")
    return name



# ------------------------------------------------------------------ #
# Schema
# ------------------------------------------------------------------ #

class ContentEntry(BaseModel):
    """One named, versioned item under contents.<category>."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    version: str | None = None
    description: str | None = None
    experimental: bool = False
    # commands only
    scripts: list[str] = Field(default_factory=list)
    # files only
    target: str | None = None
    variables: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return _checkEntryName(value, plain=False)

    @field_validator("scripts", "variables", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _emptyAsList(value)

    @field_validator("scripts")
    @classmethod
    def _scripts(cls, value: list[str]) -> list[str]:
        return [_checkEntryName(script, plain=True) for script in value]

    @field_validator("version")
    @classmethod
    def _version(cls, value: str | None) -> str | None:
        if value is not None and not isStrictVersion(value):
            raise ValueError(f"must be semantic version format X.Y.Z (got: '{value}')")
        return value



class Contents(BaseModel):
    model_config = ConfigDict(extra="forbid")

    patterns: list[ContentEntry] = Field(default_factory=list)
    commands: list[ContentEntry] = Field(default_factory=list)
    designs: list[ContentEntry] = Field(default_factory=list)
    scripts: list[ContentEntry] = Field(default_factory=list)
    files: list[ContentEntry] = Field(default_factory=list)

    @field_validator("patterns", "commands", "designs", "scripts", "files", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _emptyAsList(value)

    @field_validator("patterns", "commands", "designs", "scripts")
    @classmethod
    def _plainNames(cls, value: list[ContentEntry]) -> list[ContentEntry]:
        # only files/ may hold subdirectories
        for entry in value:
            _checkEntryName(entry.name, plain=True)
        return value



class Requirements(BaseModel):
    """requires.acp plus per package-manager dependency constraints."""
    model_config = ConfigDict(extra="forbid")

    acp: str | None = None
    npm: dict[str, str] = Field(default_factory=dict)
    pip: dict[str, str] = Field(default_factory=dict)
    cargo: dict[str, str] = Field(default_factory=dict)
    go: dict[str, str] = Field(default_factory=dict)

    @field_validator("acp")
    @classmethod
    def _acp(cls, value: str | None) -> str | None:
        if value is not None and not _ACP_REQUIREMENT_RE.match(value):
            raise ValueError(f"must be version constraint like '>=2.0.0' (got: '{value}')")
        return value

    @field_validator("npm", "pip", "cargo", "go", mode="before")
    @classmethod
    def _emptyMap(cls, value: Any) -> Any:
        return {} if value is None or value == "" or value == [] else value

    @field_validator("npm", "pip", "cargo", "go")
    @classmethod
    def _constraints(cls, value: dict[str, str]) -> dict[str, str]:
        for dep, constraint in value.items():
            try:
                parseRequirement(constraint)
            except (TypeError, ValueError) as err:
                raise ValueError(f"'{dep}': invalid version constraint '{constraint}' ({err})") from None
        return value



class PackageModel(BaseModel):
    """Validated package.yaml. Free-form extra metadata (tags, keywords) is ignored."""
    model_config = ConfigDict(extra="ignore")

    name: str
    version: str
    description: str = Field(min_length=10, max_length=200)
    author: str = Field(min_length=2)
    license: str = Field(min_length=1)
    repository: str
    homepage: str | None = None
    tags: list[str] = Field(default_factory=list)
    requires: Requirements = Field(default_factory=Requirements)
    contents: Contents

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if not NAME_RE.match(value):
            raise ValueError(f"must be lowercase letters, numbers, and hyphens only (got: '{value}')")
        if value in RESERVED_NAMESPACES:
            raise ValueError(f"'{value}' is a reserved package name")
        return value

    @field_validator("version")
    @classmethod
    def _version(cls, value: str) -> str:
        if not isStrictVersion(value):
            raise ValueError(f"must be semantic version format X.Y.Z (got: '{value}')")
        return value

    @field_validator("repository")
    @classmethod
    def _repository(cls, value: str) -> str:
        if not _REPOSITORY_RE.match(value):
            raise ValueError(f"must be a git URL ending with .git (got: '{value}')")
        return value

    @field_validator("homepage")
    @classmethod
    def _homepage(cls, value: str | None) -> str | None:
        if value is not None and not _HOMEPAGE_RE.match(value):
            raise ValueError(f"must be a valid HTTP/HTTPS URL (got: '{value}')")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _emptyAsList(value)

    @field_validator("requires", mode="before")
    @classmethod
    def _requires(cls, value: Any) -> Any:
        return {} if value is None or value == "" else value



def _toViolations(err: PydanticValidationError) -> list[Violation]:
    out: list[Violation] = []
    for item in err.errors():
        field = ".".join(str(part) for part in item.get("loc", ()))
        if item.get("type") == "missing":
            message = "required field missing"
        else:
            message = str(item.get("msg", "invalid value"))
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
        out.append(Violation(field, message))
    return out



def _validate(doc: Document) -> tuple[PackageModel | None, list[Violation]]:
    data = doc.toData()
    try:
        return PackageModel.model_validate(data), []
    except PydanticValidationError as err:
        return None, _toViolations(err)



def validateDescriptor(doc: Document) -> list[Violation]:
    """
    Checks a parsed package.yaml and returns every violation found.
    An empty list means the descriptor is valid.
    """
    _model, violations = _validate(doc)
    return violations



# ------------------------------------------------------------------ #
# Runtime view
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class PackageDescriptor:
    """
    A validated package.yaml.

    Entry names come back normalized (suffix added) and entry versions
    default to the package version.
    """
    doc: Document
    model: PackageModel
    path: Path | None = None

    @property
    def name(self) -> str:
        return self.model.name

    @property
    def version(self) -> str:
        return self.model.version

    @property
    def hasFileMetadata(self) -> bool:
        return bool(self.model.contents.files)

    def entries(self, category: Category | str) -> list[ContentEntry]:
        category = Category(category)
        out: list[ContentEntry] = []
        for entry in getattr(self.model.contents, category.value):
            out.append(entry.model_copy(update={
                "name": normalizeName(category, entry.name),
                "version": entry.version or self.model.version,
                "scripts": [normalizeName(Category.SCRIPTS, script) for script in entry.scripts],
            }))
        return out

    def entry(self, category: Category | str, name: str) -> ContentEntry | None:
        wanted = normalizeName(category, name)
        for entry in self.entries(category):
            if entry.name == wanted:
                return entry
        return None

    def commandScripts(self, name: str) -> list[str]:
        entry = self.entry(Category.COMMANDS, name)
        return list(entry.scripts) if entry else []

    def requirements(self, packageManager: str) -> dict[str, str]:
        if packageManager not in PACKAGE_MANAGERS:
            raise ValueError(f"Unknown package manager '{packageManager}'")
        return dict(getattr(self.model.requires, packageManager))



def loadDescriptor(bundleDir: Path | str) -> PackageDescriptor:
    """
    Reads and validates `<bundleDir>/package.yaml`.
    Raises NotFoundError when it is missing and ValidationError with every violation.
    """
    path = Path(bundleDir) / DESCRIPTOR_NAME
    if not path.is_file():
        raise NotFoundError(f"No {DESCRIPTOR_NAME} found in '{bundleDir}'")
    doc = Document.parse(path.read_text("utf-8"), source=str(path))
    model, violations = _validate(doc)
    if model is None:
        raise ValidationError(violations, subject=DESCRIPTOR_NAME)
    logger.debug("Loaded descriptor %s %s from %s", model.name, model.version, path)
    return PackageDescriptor(doc=doc, model=model, path=path)
