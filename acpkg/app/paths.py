# acpkg/app/paths.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Literal

from acpkg.app.globals import config
from acpkg.core.errors import ConflictError

__all__ = [
    "RootKind",
    "CATEGORY_DIRS",
    "MANIFEST_NAME",
    "safeRelative",
    "RootSet",
    "localRoot",
    "globalRoot",
    "rootFor",
]

# ------------------------------------------------------------------ #
# Layout
# ------------------------------------------------------------------ #

RootKind = Literal["local", "global"]

# Category → subdirectory under an install root ("designs" live in design/)
CATEGORY_DIRS: dict[str, str] = {
    "patterns": "patterns",
    "commands": "commands",
    "designs": "design",
    "scripts": "scripts",
}

MANIFEST_NAME = "manifest.yaml"



def safeRelative(path: str) -> str:
    """
    Normalizes a relative destination to POSIX form.
    Raises ConflictError for absolute paths and for anything containing "..".
    """
    raw = str(path).replace("\\", "/").strip()
    if not raw or raw.startswith("/") or PurePosixPath(raw).is_absolute() or (len(raw) > 1 and raw[1] == ":"):
        raise ConflictError(f"Unsafe target path '{path}': must be relative to the project")
    parts = [part for part in PurePosixPath(raw).parts if part not in ("", ".")]
    if ".." in parts:
        raise ConflictError(f"Unsafe target path '{path}': '..' is not allowed")
    if not parts:
        raise ConflictError(f"Unsafe target path '{path}': no file name")
    return "/".join(parts)



def _inside(base: Path, rel: str) -> Path:
    """base/rel, refusing anything that resolves outside base (symlinks included)."""
    path = base / rel
    if not path.resolve().is_relative_to(base.resolve()):
        raise ConflictError(f"Unsafe target path '{rel}': resolves outside {base}")
    return path

# ------------------------------------------------------------------ #
# Root model
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class RootSet:
    """
    One install root with canonical subdirectories.
    - Existence of subdirectories is *not* guaranteed; writers create them.
    - `projectDir` is where `files` entries land (the project, or the global home).
    - Every path handed out stays inside its directory; escapes raise ConflictError.
    """
    kind: RootKind
    base: Path
    projectDir: Path

    @property
    def manifestPath(self) -> Path:
        return self.base / MANIFEST_NAME

    def subdir(self, category: str) -> Path:
        try:
            return self.base / CATEGORY_DIRS[category]
        except KeyError:
            raise ValueError(f"Category '{category}' has no directory under an install root") from None

    def pathFor(self, category: str, name: str, *, target: str | None = None) -> Path:
        """
        Installed location of one content file.
        `files` records carry their destination (relative to projectDir) in `target`.
        """
        if category == "files":
            return _inside(self.projectDir, safeRelative(target or name))
        rel = safeRelative(name)
        if "/" in rel:
            raise ConflictError(f"Unsafe name '{name}': {category} entries are plain file names")
        return _inside(self.subdir(category), rel)



def _resolve(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()



def localRoot(projectDir: Path | str | None = None) -> RootSet:
    project = _resolve(projectDir or Path.cwd())
    return RootSet(kind="local", base=project / str(config("paths.localRoot", "agent")), projectDir=project)



def globalRoot() -> RootSet:
    home = _resolve(str(config("paths.globalHome", "~/.acp")))
    return RootSet(kind="global", base=home / "agent", projectDir=home)



def rootFor(isGlobal: bool, projectDir: Path | str | None = None) -> RootSet:
    return globalRoot() if isGlobal else localRoot(projectDir)
