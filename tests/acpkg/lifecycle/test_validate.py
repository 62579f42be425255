# tests/acpkg/lifecycle/test_validate.py
from __future__ import annotations

import pytest

from acpkg.lifecycle.prompts import Reporter
from acpkg.lifecycle.validate import validatePackage


README = """\
# acp-demo

## What's Included

One command.

## Installation

acp install --repo https://github.com/acme/acp-demo.git

## License

MIT
"""
HELLO = "# Hello\n"


def _validate(bundle, **kwargs):
    kwargs.setdefault("skipRemote", True)
    return validatePackage(bundle, reporter=Reporter(quiet=True), **kwargs)


@pytest.fixture
def demoBundle(makeBundle, makeDescriptor):
    def _make(contents: str = "commands:\n  - name: demo.hello.md\n", files: dict[str, str] | None = None, readme: str | None = README):
        allFiles = {"agent/commands/demo.hello.md": HELLO}
        if readme is not None:
            allFiles["README.md"] = readme
        allFiles.update(files or {})
        return makeBundle(makeDescriptor(contents=contents), allFiles, dirName="acp-demo")
    return _make


def test_valid_package_passes_with_test_install(demoBundle):
    report = _validate(demoBundle())

    assert report.errors == []
    assert report.warnings == []
    assert report.ok
    assert report.package == "demo"


def test_missing_descriptor(tmp_path):
    report = _validate(tmp_path)

    assert not report.ok
    assert "No package.yaml found" in report.errors[0]


def test_unparseable_descriptor(makeBundle):
    bundle = makeBundle("name: demo\njust some words\n")

    report = _validate(bundle)

    assert len(report.errors) == 1
    assert report.package is None


def test_descriptor_violations_stop_further_checks(makeBundle, makeDescriptor):
    bundle = makeBundle(makeDescriptor(version="1.0", contents="commands:\n  - name: demo.gone\n"))

    report = _validate(bundle)

    assert any("version" in error for error in report.errors)
    assert any("README.md not found" in error for error in report.errors)
    assert not any("Missing file" in error for error in report.errors)


def test_content_checks(demoBundle):
    contents = """\
    commands:
      - name: demo.hello
      - name: hello
      - name: demo.gone
    patterns:
      - name: style
    """
    bundle = demoBundle(contents, {
        "agent/commands/hello.md": "# Hi\n",
        "agent/commands/demo.extra.md": "# Extra\n",
        "agent/commands/acp.core.md": "# Core\n",
        "agent/commands/.gitkeep": "",
        "agent/patterns/style.md": "style\n",
        "agent/patterns/other.md": "other\n",
    })

    report = _validate(bundle, skipInstall=True)

    assert "Missing file: agent/commands/demo.gone.md" in report.errors
    assert any(error.startswith("Command file missing namespace: hello.md") for error in report.errors)
    assert any("matches namespace but is not in contents: commands/demo.extra.md" in error for error in report.errors)
    assert any(warning.startswith("Pattern file without namespace: style.md") for warning in report.warnings)
    unlisted = sorted(warning for warning in report.warnings if warning.startswith("Found unlisted file"))
    assert unlisted == [
        "Found unlisted file: commands/demo.extra.md",
        "Found unlisted file: patterns/other.md",
    ]


def test_reserved_prefix_is_an_error(demoBundle):
    bundle = demoBundle(
        "commands:\n  - name: demo.hello\n  - name: acp.sync\n",
        {"agent/commands/acp.sync.md": "# Sync\n"},
    )

    report = _validate(bundle, skipInstall=True)

    assert report.errors == ["commands/acp.sync.md uses the reserved 'acp.' prefix"]


def test_experimental_marker_must_match(demoBundle):
    contents = """\
    commands:
      - name: demo.hello
        experimental: true
      - name: demo.beta
    """
    bundle = demoBundle(contents, {"agent/commands/demo.beta.md": "# Beta\n\n**Status**: Experimental\n"})

    report = _validate(bundle, skipInstall=True)

    assert len(report.errors) == 2
    assert any("demo.hello.md: marked experimental" in error for error in report.errors)
    assert any("demo.beta.md: has 'Status: Experimental'" in error for error in report.errors)


def test_missing_readme_is_an_error(demoBundle):
    report = _validate(demoBundle(readme=None), skipInstall=True)

    assert report.errors == ["README.md not found"]


def test_missing_readme_sections_warn(demoBundle):
    report = _validate(demoBundle(readme="# acp-demo\n\n## Installation\n"), skipInstall=True)

    assert report.ok
    assert sorted(report.warnings) == [
        "Missing 'License' section in README.md",
        "Missing 'What's Included' section in README.md",
    ]


def test_remote_checks_need_a_git_repository(demoBundle):
    report = _validate(demoBundle(), skipRemote=False, skipInstall=True)

    assert report.errors == ["Git repository not initialized"]
    assert "Run: git init" in report.fixable


def test_namespace_mismatch_with_directory(makeBundle, makeDescriptor):
    bundle = makeBundle(
        makeDescriptor(contents="commands:\n  - name: demo.hello\n"),
        {"agent/commands/demo.hello.md": HELLO, "README.md": README},
        dirName="acp-other",
    )

    report = _validate(bundle, skipInstall=True)

    assert report.ok
    assert report.warnings == ["Namespace mismatch: package.yaml says 'demo', directory says 'other'"]
