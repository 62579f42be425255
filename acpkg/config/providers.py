# acpkg/config/providers.py
from __future__ import annotations
import os
from typing import Any, cast
from collections.abc import Mapping
from pathlib import Path
import logging

import json5

from acpkg.core.config_stack import ConfigLayer
from acpkg.core.dictpath import setByPath

logger = logging.getLogger(__name__)

__all__ = ["DefaultsProvider", "FileProvider", "EnvProvider", "ENV_KEYS"]



def _readJson5(path: Path, owner: str) -> Mapping[str, Any]:
    try:
        parsed = json5.loads(path.read_text("utf-8"))
    except Exception as err:
        raise TypeError(f"{owner}: failed to parse '{path}': {err}") from err
    if not isinstance(parsed, Mapping):
        raise TypeError(f"{owner}: file content must be a JSON object, not '{type(parsed).__name__}'")
    return cast(Mapping[str, Any], parsed)



class DefaultsProvider:
    """
    Read-only provider for shipped default configuration.

    Can be initialized either from a JSON/JSON5 file (via `path`)
    or from an in-memory mapping (via `data`).

    If strict=True (default), a missing file raises FileNotFoundError.
    If strict=False, a missing file results in an empty mapping.

    Example:
        DefaultsProvider(path=ASSETS_DIR / "defaults.json5")
        DefaultsProvider(data={"http": {"retries": 0}})
    """
    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        path: Path | str | None = None,
        strict: bool = True
    ) -> None:
        if data is not None and path is not None:
            raise ValueError(f"{type(self).__name__}: provide either 'data' or 'path', not both")

        self.name = "defaults"
        if path is not None:
            path = Path(path)
            self.name = str(path)
            if not path.exists():
                if strict:
                    raise FileNotFoundError(f"{type(self).__name__}: defaults file '{path}' not found")
                self.data: Mapping[str, Any] = {}
                return
            if not path.is_file():
                raise FileNotFoundError(f"{type(self).__name__}: '{path}' is not a file")
            self.data = _readJson5(path, type(self).__name__)

        elif data is not None:
            if not isinstance(data, Mapping):
                raise TypeError(f"{type(self).__name__}: 'data' must be a Mapping, not '{type(data).__name__}'")
            self.data = data

        else:
            raise ValueError(f"{type(self).__name__}: either 'data' or 'path' must be provided")

    def toLayer(self) -> ConfigLayer:
        return ConfigLayer(name=self.name, scope="defaults", data=dict(self.data))



class FileProvider:
    """
    User configuration file (JSON5), e.g. ~/.acp/config.json5.

    Behavior:
        • Missing file → empty layer
        • Parse error → raises TypeError (a broken user config should be fixed, not ignored)
        • Non-object JSON → raises TypeError
    """
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self.data: Mapping[str, Any] = {}
        if not self.path.exists():
            logger.debug("%s: '%s' is missing → starting as empty dict", type(self).__name__, self.path)
            return
        if not self.path.is_file():
            raise IsADirectoryError(f"{type(self).__name__}: '{self.path}' exists but is not a file")
        self.data = _readJson5(self.path, type(self).__name__)

    def toLayer(self) -> ConfigLayer:
        return ConfigLayer(name=str(self.path), scope="user", data=dict(self.data))



# Environment variable → config path
ENV_KEYS: dict[str, str] = {
    "ACP_HOME": "paths.globalHome",
    "ACP_GITHUB_TOKEN": "search.token",
    "GITHUB_TOKEN": "search.token",
    "ACP_LOG_LEVEL": "logging.level",
    "ACP_LOG_FILE": "logging.file",
    "ACP_GIT": "git.executable",
}



class EnvProvider:
    """
    Picks the known ACP_* variables out of the environment.
    ACP_GITHUB_TOKEN wins over GITHUB_TOKEN when both are set.
    """
    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        env = os.environ if environ is None else environ
        self.data: dict[str, Any] = {}
        # Reverse order so the first listed variable for a path wins
        for name, path in reversed(list(ENV_KEYS.items())):
            value = env.get(name)
            if value:
                setByPath(self.data, path, value)

    def toLayer(self) -> ConfigLayer:
        return ConfigLayer(name="environment", scope="env", data=self.data)
