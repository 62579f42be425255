# acpkg/config/service.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, cast

import fastjsonschema
import json5

from acpkg.config.providers import DefaultsProvider, EnvProvider, FileProvider
from acpkg.core.config_stack import ConfigStack
from acpkg.core.errors import Violation, ValidationError

logger = logging.getLogger(__name__)

__all__ = ["ASSETS_DIR", "DEFAULTS_PATH", "SCHEMA_PATH", "USER_CONFIG_NAME", "ConfigService"]

ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"
DEFAULTS_PATH = ASSETS_DIR / "defaults.json5"
SCHEMA_PATH = ASSETS_DIR / "config.schema.json5"
USER_CONFIG_NAME = "config.json5"

_validator: Callable[[Any], Any] | None = None



def _compiledValidator() -> Callable[[Any], Any]:
    global _validator
    if _validator is None:
        schema = json5.loads(SCHEMA_PATH.read_text("utf-8"))
        # fastjsonschema.compile returns an untyped callable → cast it
        _validator = cast(Callable[[Any], Any], fastjsonschema.compile(schema))
    return _validator



class ConfigService:
    """
    Merged configuration for one invocation.

    Layers (lowest first): shipped defaults → user file → environment → CLI overrides.
    The merged result is checked against the shipped JSON Schema.
    """
    def __init__(self, stack: ConfigStack) -> None:
        self.stack = stack

    @classmethod
    def load(
        cls,
        *,
        userConfig: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
        defaults: Mapping[str, Any] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> ConfigService:
        """
        Builds the stack. When `userConfig` is None the file is looked up
        under the configured global home (default ~/.acp/config.json5).
        """
        stack = ConfigStack()
        defaultsProvider = DefaultsProvider(data=defaults) if defaults is not None else DefaultsProvider(path=DEFAULTS_PATH)
        stack.addLayer(defaultsProvider.toLayer())
        envProvider = EnvProvider(environ)

        if userConfig is None:
            # Global home may itself come from the environment
            bootstrap = ConfigStack([defaultsProvider.toLayer(), envProvider.toLayer()])
            userConfig = Path(str(bootstrap.get("paths.globalHome", "~/.acp"))).expanduser() / USER_CONFIG_NAME
        stack.addLayer(FileProvider(userConfig).toLayer())
        stack.addLayer(envProvider.toLayer())

        for path, value in (overrides or {}).items():
            stack.override(path, value)

        service = cls(stack)
        service.validate()
        return service

    def validate(self) -> None:
        try:
            _compiledValidator()(self.stack.effective())
        except fastjsonschema.JsonSchemaValueException as err:
            raise ValidationError([Violation(err.name or "config", err.message)], subject="configuration") from err
        logger.debug("Configuration layers: %s", [layer.name for layer in self.stack.layers()])

    def get(self, path: str, default: Any = None) -> Any:
        return self.stack.get(path, default)

    def snapshot(self) -> dict[str, Any]:
        return self.stack.effective()
