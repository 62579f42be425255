# acpkg/core/git.py
from __future__ import annotations
import logging
import subprocess
from pathlib import Path

from acpkg.app.globals import config, configInt
from acpkg.core.errors import NetworkError

logger = logging.getLogger(__name__)

__all__ = ["UNKNOWN_COMMIT", "runGit", "cloneShallow", "headCommit", "remoteUrl"]

UNKNOWN_COMMIT = "unknown"



def runGit(args: list[str], *, cwd: Path | str | None = None, timeout: float | None = None) -> subprocess.CompletedProcess[str]:
    """
    Runs git with captured text output. Never raises on a non-zero exit;
    a missing executable raises FileNotFoundError.
    """
    executable = str(config("git.executable", "git"))
    if timeout is None:
        timeout = float(config("git.timeoutSeconds", 120))
    cmd = [executable, *args]
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    return subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, timeout=timeout, check=False)



def cloneShallow(url: str, dest: Path) -> None:
    depth = configInt("git.depth", 1)
    try:
        proc = runGit(["clone", "--depth", str(depth), "--quiet", url, str(dest)])
    except FileNotFoundError as err:
        raise NetworkError(f"git executable not found: {err}") from err
    except subprocess.TimeoutExpired as err:
        raise NetworkError(f"Cloning '{url}' timed out after {err.timeout}s") from err
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout).strip().splitlines()
        raise NetworkError(f"Failed to clone repository '{url}'" + (f": {detail[-1]}" if detail else ""))



def headCommit(repoDir: Path | str) -> str:
    """`git rev-parse HEAD` or "unknown" when the directory is not a git checkout."""
    try:
        proc = runGit(["rev-parse", "HEAD"], cwd=repoDir, timeout=30)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return UNKNOWN_COMMIT
    commit = proc.stdout.strip()
    return commit if proc.returncode == 0 and commit else UNKNOWN_COMMIT



def remoteUrl(repoDir: Path | str, remote: str = "origin") -> str | None:
    try:
        proc = runGit(["remote", "get-url", remote], cwd=repoDir, timeout=30)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    url = proc.stdout.strip()
    return url if proc.returncode == 0 and url else None
