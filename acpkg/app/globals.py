# acpkg/app/globals.py
from __future__ import annotations
from typing import Any, cast, TYPE_CHECKING
import logging

from acpkg.app.context import PROCESS_REGISTRY

if TYPE_CHECKING:
    from acpkg.config.service import ConfigService

logger = logging.getLogger(__name__)

__all__ = ["getConfigService", "setConfigService", "config", "configBool", "configInt"]



def setConfigService(service: ConfigService) -> None:
    PROCESS_REGISTRY.register("config.service", service, overwrite=True)



def getConfigService() -> ConfigService:
    """
    Returns the registered ConfigService. When nothing registered one yet
    (library use without the CLI) the default stack is loaded and kept.
    """
    cfg = PROCESS_REGISTRY.get("config.service")
    if cfg is None:
        from acpkg.config.service import ConfigService
        logger.debug("No ConfigService registered, loading defaults")
        cfg = ConfigService.load()
        PROCESS_REGISTRY.register("config.service", cfg, overwrite=True)
    return cast("ConfigService", cfg)



def config(path: str, default: Any = None) -> Any:
    """
    Read a dotted path from the merged configuration.

    Example:
      value = config("http.timeoutMs")          # returns 15000
      value = config("non.existing.path", 300)  # returns 300
    """
    return getConfigService().get(path, default)



def configBool(path: str, default: bool = False) -> bool:
    val = config(path, None)
    if isinstance(val, bool):
        return val
    if val is None:
        return default
    if isinstance(val, str):
        return val.strip().lower() in ("1", "true", "yes", "on")
    return bool(val)



def configInt(path: str, default: int = 0) -> int:
    val = config(path, None)
    if val is None:
        return default
    try:
        return int(val)
    except (TypeError, ValueError):
        logger.warning("Config '%s' is not an integer (%r), using %d", path, val, default)
        return default
