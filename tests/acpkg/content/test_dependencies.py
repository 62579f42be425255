# tests/acpkg/content/test_dependencies.py
from __future__ import annotations
import json

from acpkg.content.dependencies import (
    DependencyStatus,
    checkHostRequirements,
    declaredDependencies,
    detectPackageManager,
    resolveScripts,
)
from acpkg.content.descriptor import loadDescriptor


def _descriptor(makeBundle, makeDescriptor, extra: str = "", contents: str = ""):
    return loadDescriptor(makeBundle(makeDescriptor(extra=extra, contents=contents)))


def test_resolve_scripts_is_ordered_union(makeBundle, makeDescriptor):
    contents = """\
    commands:
      - name: demo.a
        scripts:
          - demo.shared
          - demo.a
      - name: demo.b
        scripts:
          - demo.shared.sh
          - demo.b
      - name: demo.c
        scripts:
          - demo.c
    """
    descriptor = _descriptor(makeBundle, makeDescriptor, contents=contents)

    assert resolveScripts(descriptor, ["demo.a", "demo.b.md"]) == ["demo.shared.sh", "demo.a.sh", "demo.b.sh"]
    assert resolveScripts(descriptor, []) == []
    assert resolveScripts(descriptor, ["demo.unknown"]) == []


def test_detect_package_manager(tmp_path):
    assert detectPackageManager(tmp_path) == "unknown"
    (tmp_path / "go.mod").write_text("module x\n", encoding="utf-8")
    assert detectPackageManager(tmp_path) == "go"
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n", encoding="utf-8")
    assert detectPackageManager(tmp_path) == "pip"
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    assert detectPackageManager(tmp_path) == "npm"


def test_declared_dependencies_readers(tmp_path):
    (tmp_path / "requirements.txt").write_text(
        "# comment\nRequests[socks]==2.31.0  ; python_version > '3'\n-e .\nflask\n",
        encoding="utf-8",
    )
    (tmp_path / "go.mod").write_text(
        "module x\n\nrequire (\n    github.com/pkg/errors v0.9.1 // indirect\n)\nrequire golang.org/x/mod v0.14.0\n",
        encoding="utf-8",
    )
    (tmp_path / "Cargo.toml").write_text(
        "[dependencies]\nserde = { version = \"1.0\", features = [\"derive\"] }\nrand = \"0.8\"\n",
        encoding="utf-8",
    )

    assert declaredDependencies(tmp_path, "pip") == {"requests": "==2.31.0", "flask": ""}
    assert declaredDependencies(tmp_path, "go") == {"github.com/pkg/errors": "v0.9.1", "golang.org/x/mod": "v0.14.0"}
    assert declaredDependencies(tmp_path, "cargo") == {"serde": "1.0", "rand": "0.8"}
    assert declaredDependencies(tmp_path, "unknown") == {}


def test_npm_statuses(makeBundle, makeDescriptor, projectDir):
    extra = (
        "requires:\n"
        "  npm:\n"
        "    react: \">=18.0.0\"\n"
        "    lodash: \"^4.0.0\"\n"
        "    left-pad: \"^1.0.0\"\n"
        "    forked: \"^2.0.0\"\n"
        "    anything: \"*\"\n"
    )
    descriptor = _descriptor(makeBundle, makeDescriptor, extra=extra)
    (projectDir / "package.json").write_text(json.dumps({
        "dependencies": {"react": "^18.2.0", "lodash": "^3.10.0", "forked": "github:acme/forked"},
        "devDependencies": {"anything": "latest"},
    }), encoding="utf-8")

    report = checkHostRequirements(descriptor, projectDir)
    statuses = {check.name: check.status for check in report.checks}

    assert report.packageManager == "npm"
    assert statuses == {
        "react": DependencyStatus.OK,
        "lodash": DependencyStatus.INCOMPATIBLE,
        "left-pad": DependencyStatus.MISSING,
        "forked": DependencyStatus.UNKNOWN,
        "anything": DependencyStatus.OK,
    }
    assert {check.name for check in report.problems} == {"lodash", "left-pad", "forked"}
    assert report.needsConfirmation is True


def test_pip_names_are_normalized(makeBundle, makeDescriptor, projectDir):
    extra = "requires:\n  pip:\n    Requests: \">=2.0\"\n"
    descriptor = _descriptor(makeBundle, makeDescriptor, extra=extra)
    (projectDir / "requirements.txt").write_text("requests==2.31.0\n", encoding="utf-8")

    report = checkHostRequirements(descriptor, projectDir)

    assert [check.status for check in report.checks] == [DependencyStatus.OK]
    assert report.needsConfirmation is False


def test_no_package_manager_means_nothing_to_check(makeBundle, makeDescriptor, projectDir):
    extra = "requires:\n  npm:\n    react: \">=18.0.0\"\n"
    descriptor = _descriptor(makeBundle, makeDescriptor, extra=extra)

    report = checkHostRequirements(descriptor, projectDir)

    assert report.packageManager == "unknown"
    assert report.checks == ()
    assert report.needsConfirmation is False
