import sys
from pathlib import Path
from textwrap import dedent

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from acpkg.app.context import PROCESS_REGISTRY
from acpkg.app.globals import setConfigService
from acpkg.config.service import ConfigService
from acpkg.core.logging import clearLogContext



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def acpConfig(tmp_path: Path):
    """
    Every test gets its own configuration: no user file, no environment,
    global home inside tmp_path, no HTTP retries.
    """
    PROCESS_REGISTRY.clear()
    home = tmp_path / "acp-home"
    service = ConfigService.load(
        userConfig=tmp_path / "no-such-config.json5",
        environ={},
        overrides={"paths.globalHome": str(home), "http.retries": 0},
    )
    setConfigService(service)
    yield service
    PROCESS_REGISTRY.clear()
    clearLogContext()



@pytest.fixture
def projectDir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path



def descriptorText(name: str = "demo", version: str = "1.2.0", contents: str = "", extra: str = "") -> str:
    """package.yaml with every required field filled in; `contents` is the indented body under `contents:`."""
    head = dedent(f"""\
        name: {name}
        version: {version}
        description: A demo package for tests
        author: Test Author
        license: MIT
        repository: https://github.com/acme/acp-{name}.git
        """)
    body = dedent(contents).strip("\n")
    text = head + (extra if extra.endswith("\n") or not extra else extra + "\n")
    text += "contents:\n"
    if body:
        text += "\n".join(f"  {line}" if line else line for line in body.splitlines()) + "\n"
    return text



@pytest.fixture
def makeBundle(tmp_path: Path):
    """
    Writes a package directory: package.yaml plus `files` (relative path → text).
    Returns the bundle directory, usable as --repo.
    """
    counter = {"n": 0}

    def _make(descriptor: str, files: dict[str, str] | None = None, *, dirName: str | None = None) -> Path:
        counter["n"] += 1
        bundle = tmp_path / "bundles" / (dirName or f"bundle{counter['n']}")
        bundle.mkdir(parents=True)
        (bundle / "package.yaml").write_text(descriptor, encoding="utf-8")
        (bundle / "agent").mkdir()
        for rel, text in (files or {}).items():
            path = bundle / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return bundle

    return _make



@pytest.fixture
def makeDescriptor():
    return descriptorText
