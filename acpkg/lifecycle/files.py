# acpkg/lifecycle/files.py
from __future__ import annotations
import os
import shutil
import stat
from pathlib import Path, PurePosixPath

from acpkg.app.paths import safeRelative
from acpkg.core.hashing import sha256sum

__all__ = [
    "TEMPLATE_MARK",
    "stripTemplate",
    "isTemplateName",
    "safeRelative",
    "filesDestination",
    "substitute",
    "renderBytes",
    "installFile",
]

TEMPLATE_MARK = ".template"



def isTemplateName(name: str) -> bool:
    base = PurePosixPath(name).name
    return base.endswith(TEMPLATE_MARK) or f"{TEMPLATE_MARK}." in base



def stripTemplate(name: str) -> str:
    """
    "config.template" → "config"
    "settings.template.json" → "settings.json"
    """
    if name.endswith(TEMPLATE_MARK):
        return name[:-len(TEMPLATE_MARK)]
    head, sep, tail = name.rpartition(f"{TEMPLATE_MARK}.")
    if sep and "/" not in tail:
        return f"{head}.{tail}"
    return name



def filesDestination(entryName: str, target: str | None) -> str:
    """Where a `files` entry lands: <target>/<basename without .template>."""
    base = stripTemplate(PurePosixPath(entryName.replace("\\", "/")).name)
    directory = (target or ".").replace("\\", "/")
    return safeRelative(f"{directory.rstrip('/')}/{base}")



def substitute(text: str, values: dict[str, str]) -> str:
    """Literal {{NAME}} replacement. Empty values leave the placeholder alone."""
    for name, value in values.items():
        if value:
            text = text.replace("{{" + name + "}}", value)
    return text



def renderBytes(source: Path, values: dict[str, str] | None = None) -> bytes:
    data = source.read_bytes()
    if not values:
        return data
    return substitute(data.decode("utf-8"), values).encode("utf-8")



def installFile(source: Path, dest: Path, *, values: dict[str, str] | None = None, executable: bool = False) -> str:
    """Copies (or renders) `source` to `dest` and returns the checksum of what was written."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    if values:
        dest.write_bytes(renderBytes(source, values))
    else:
        shutil.copyfile(source, dest)
    if executable and os.name != "nt":
        mode = dest.stat().st_mode
        dest.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return sha256sum(dest)
