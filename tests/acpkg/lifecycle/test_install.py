# tests/acpkg/lifecycle/test_install.py
from __future__ import annotations
import json
import os

import pytest

from acpkg.app.paths import localRoot
from acpkg.content.descriptor import Category
from acpkg.content.manifest import ManifestStore
from acpkg.core.document import Document
from acpkg.core.errors import ConflictError, NotFoundError, ValidationError
from acpkg.core.hashing import sha256sum
from acpkg.lifecycle.install import InstallOptions, InstallState, installPackage
from acpkg.lifecycle.prompts import Prompter, Reporter


HELLO = "# Hello\n\nSay hello.\n"


def _install(bundle, projectDir, **kwargs):
    prompter = kwargs.pop("prompter", None) or Prompter(autoYes=True, interactive=False)
    options = InstallOptions(repo=str(bundle), yes=True, **kwargs)
    return installPackage(options, reporter=Reporter(quiet=True), prompter=prompter, projectDir=projectDir)


def _names(result, category):
    return [item.name for item in result.installed if item.category is category]


def test_install_copies_file_and_records_checksum(makeBundle, makeDescriptor, projectDir):
    bundle = makeBundle(
        makeDescriptor(contents="commands:\n  - name: demo.hello.md\n"),
        {"agent/commands/demo.hello.md": HELLO},
    )

    result = _install(bundle, projectDir)

    installed = projectDir / "agent" / "commands" / "demo.hello.md"
    assert result.state is InstallState.INSTALLED
    assert installed.read_text(encoding="utf-8") == HELLO

    doc = Document.parse((projectDir / "agent" / "manifest.yaml").read_text(encoding="utf-8"))
    (record,) = doc.toData("packages.demo.files.commands")
    assert record["name"] == "demo.hello.md"
    assert record["version"] == "1.2.0"
    assert record["checksum"] == sha256sum(bundle / "agent" / "commands" / "demo.hello.md")
    assert doc.query("packages.demo.package_version") == "1.2.0"
    assert doc.query("packages.demo.source") == str(bundle.resolve())
    assert doc.query("packages.demo.commit") == "unknown"


def test_experimental_entries_need_the_flag(makeBundle, makeDescriptor, projectDir):
    contents = """\
    commands:
      - name: demo.hello
      - name: demo.beta
        experimental: true
    """
    files = {
        "agent/commands/demo.hello.md": HELLO,
        "agent/commands/demo.beta.md": "**Status**: Experimental\n",
    }
    bundle = makeBundle(makeDescriptor(contents=contents), files)

    result = _install(bundle, projectDir)
    assert _names(result, Category.COMMANDS) == ["demo.hello.md"]
    assert [(s.name, s.reason) for s in result.skipped] == [("demo.beta.md", "experimental (use --experimental)")]

    result = _install(bundle, projectDir, experimental=True)
    assert _names(result, Category.COMMANDS) == ["demo.hello.md", "demo.beta.md"]
    record = ManifestStore.load(localRoot(projectDir)).fileRecord("demo", "commands", "demo.beta.md")
    assert record is not None and record.experimental is True


def test_scripts_follow_selected_commands(makeBundle, makeDescriptor, projectDir):
    contents = """\
    commands:
      - name: demo.hello
        scripts:
          - demo.hello
          - demo.shared
      - name: demo.bye
        scripts:
          - demo.shared
    """
    files = {
        "agent/commands/demo.hello.md": HELLO,
        "agent/commands/demo.bye.md": "# Bye\n",
        "agent/scripts/demo.hello.sh": "#!/bin/sh\necho hello\n",
        "agent/scripts/demo.shared.sh": "#!/bin/sh\necho shared\n",
        "agent/scripts/demo.unused.sh": "#!/bin/sh\n",
    }
    bundle = makeBundle(makeDescriptor(contents=contents), files)

    result = _install(bundle, projectDir, selections={Category.COMMANDS: ["demo.bye"]})

    assert _names(result, Category.COMMANDS) == ["demo.bye.md"]
    assert _names(result, Category.SCRIPTS) == ["demo.shared.sh"]
    script = projectDir / "agent" / "scripts" / "demo.shared.sh"
    assert script.is_file()
    assert not (projectDir / "agent" / "scripts" / "demo.hello.sh").exists()
    if os.name != "nt":
        assert os.access(script, os.X_OK)


def test_selection_reports_unknown_names(makeBundle, makeDescriptor, projectDir):
    contents = "commands:\n  - name: demo.hello\npatterns:\n  - name: demo.style\n"
    files = {"agent/commands/demo.hello.md": HELLO, "agent/patterns/demo.style.md": "style"}
    bundle = makeBundle(makeDescriptor(contents=contents), files)

    result = _install(bundle, projectDir, selections={Category.PATTERNS: [], Category.COMMANDS: ["demo.nope"]})

    assert [item.name for item in result.installed] == ["demo.style.md"]
    assert [(s.name, s.reason) for s in result.skipped] == [("demo.nope.md", "not declared in package.yaml")]


def test_templates_are_rendered_with_prompted_values(makeBundle, makeDescriptor, projectDir):
    contents = """\
    commands:
      - name: demo.hello
    files:
      - name: settings.template.json
        target: config
        variables:
          - PORT
          - HOST
    """
    files = {
        "agent/commands/demo.hello.md": HELLO,
        "agent/files/settings.template.json": '{"port": "{{PORT}}", "host": "{{HOST}}"}\n',
    }
    bundle = makeBundle(makeDescriptor(contents=contents), files)
    answers = {"Enter PORT: ": "8080", "Enter HOST: ": ""}
    prompter = Prompter(autoYes=True, interactive=True, inputFn=answers.__getitem__)

    _install(bundle, projectDir, prompter=prompter)

    rendered = projectDir / "config" / "settings.json"
    assert json.loads(rendered.read_text(encoding="utf-8")) == {"port": "8080", "host": "{{HOST}}"}
    record = ManifestStore.load(localRoot(projectDir)).fileRecord("demo", "files", "settings.template.json")
    assert record is not None
    assert record.target == "config/settings.json"
    assert record.variables == {"PORT": "8080"}
    assert record.checksum == sha256sum(rendered)


def test_files_without_metadata_land_in_project(makeBundle, makeDescriptor, projectDir):
    bundle = makeBundle(makeDescriptor(contents="commands:\n  - name: demo.hello\n"), {
        "agent/commands/demo.hello.md": HELLO,
        "agent/files/docs/guide.md": "guide\n",
    })

    result = _install(bundle, projectDir)

    assert _names(result, Category.FILES) == ["docs/guide.md"]
    assert (projectDir / "docs" / "guide.md").read_text(encoding="utf-8") == "guide\n"


def test_unsafe_target_is_rejected(makeBundle, makeDescriptor, projectDir):
    contents = "files:\n  - name: evil.txt\n    target: ../outside\n"
    bundle = makeBundle(makeDescriptor(contents=contents), {"agent/files/evil.txt": "x"})

    with pytest.raises(ConflictError):
        _install(bundle, projectDir)
    assert not (projectDir.parent / "outside").exists()


def test_entry_names_cannot_escape_the_install_root(makeBundle, makeDescriptor, projectDir):
    (projectDir / "README.md").write_text("project readme\n", encoding="utf-8")
    bundle = makeBundle(
        makeDescriptor(contents="commands:\n  - name: ../../README.md\n"),
        {"agent/commands/../../README.md": "from the package\n"},
    )

    with pytest.raises(ValidationError) as excinfo:
        _install(bundle, projectDir)

    assert [v.field for v in excinfo.value.violations] == ["contents.commands.0.name"]
    assert (projectDir / "README.md").read_text(encoding="utf-8") == "project readme\n"
    assert not (projectDir / "agent" / "manifest.yaml").exists()


def test_reserved_commands_are_skipped(makeBundle, makeDescriptor, projectDir):
    contents = "commands:\n  - name: demo.hello\n  - name: acp.install\n"
    files = {"agent/commands/demo.hello.md": HELLO, "agent/commands/acp.install.md": "core"}
    bundle = makeBundle(makeDescriptor(contents=contents), files)

    result = _install(bundle, projectDir)

    assert _names(result, Category.COMMANDS) == ["demo.hello.md"]
    assert [(s.name, s.reason) for s in result.skipped] == [("acp.install.md", "reserved namespace 'acp'")]
    assert not (projectDir / "agent" / "commands" / "acp.install.md").exists()


def test_list_only_writes_nothing(makeBundle, makeDescriptor, projectDir):
    bundle = makeBundle(makeDescriptor(contents="commands:\n  - name: demo.hello\n"), {"agent/commands/demo.hello.md": HELLO})

    result = _install(bundle, projectDir, listOnly=True)

    assert result.listOnly is True
    assert result.state is InstallState.STAGED
    assert not (projectDir / "agent").exists()


def test_dependency_issues_need_confirmation(makeBundle, makeDescriptor, projectDir):
    extra = "requires:\n  npm:\n    react: \">=18.0.0\"\n"
    bundle = makeBundle(
        makeDescriptor(extra=extra, contents="commands:\n  - name: demo.hello\n"),
        {"agent/commands/demo.hello.md": HELLO},
    )
    (projectDir / "package.json").write_text('{"dependencies": {}}', encoding="utf-8")

    result = _install(bundle, projectDir, prompter=Prompter(autoYes=False, interactive=False))

    assert result.state is InstallState.STAGED
    assert not (projectDir / "agent" / "manifest.yaml").exists()


def test_nothing_to_install_is_an_error(makeBundle, makeDescriptor, projectDir):
    bundle = makeBundle(makeDescriptor(contents="commands:\n  - name: demo.hello\n"))

    with pytest.raises(NotFoundError):
        _install(bundle, projectDir)


def test_global_install_goes_to_home(makeBundle, makeDescriptor, projectDir, tmp_path):
    bundle = makeBundle(makeDescriptor(contents="commands:\n  - name: demo.hello\n"), {"agent/commands/demo.hello.md": HELLO})

    _install(bundle, projectDir, isGlobal=True)

    assert (tmp_path / "acp-home" / "agent" / "commands" / "demo.hello.md").is_file()
    assert (tmp_path / "acp-home" / "agent" / "manifest.yaml").is_file()
    assert not (projectDir / "agent").exists()
