# acpkg/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
import sys
from pathlib import Path

from acpkg.app.globals import config, configBool
from .formatters import DevFormatter, JsonFormatter, RedactingFormatter

__all__ = [
    "NO_PROPAGATE",
    "configureLogging",
    "getLogger",
]



# Disable propagation from chatty libraries
NO_PROPAGATE = [
    "httpcore.connection", "httpcore.http11",
    "httpx",
]



def configureLogging(*, verbose: bool = False) -> None:
    """
    Initiate the process logging configuration.

    Console:
      - stderr, DevFormatter, level from "logging.level" (DEBUG with --verbose)

    File (only when "logging.file" is set):
      - rotating, DEBUG
      - JSON lines when "logging.json" is true, otherwise the console format

    Both handlers redact tokens and credentials.
    """
    levelName = "DEBUG" if verbose else str(config("logging.level", "WARNING")).upper()
    consoleLevel = getattr(logging, levelName, logging.WARNING)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False

    consoleHandler = logging.StreamHandler(sys.stderr)
    consoleHandler.setLevel(consoleLevel)
    consoleHandler.setFormatter(RedactingFormatter(DevFormatter()))
    root.addHandler(consoleHandler)

    logFile = config("logging.file", None)
    if logFile:
        path = Path(str(logFile)).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        fileHandler.setLevel(logging.DEBUG)
        inner = JsonFormatter() if configBool("logging.json", False) else DevFormatter()
        fileHandler.setFormatter(RedactingFormatter(inner))
        root.addHandler(fileHandler)

    # Per-logger tweaks (reduce noise)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)



def getLogger(name: str, side: str = "") -> logging.Logger:
    return logging.getLogger(f"{str(side).strip()}.{str(name).strip()}" if str(side).strip() else str(name).strip())
