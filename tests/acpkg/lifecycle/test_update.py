# tests/acpkg/lifecycle/test_update.py
from __future__ import annotations

import pytest

from acpkg.app.paths import localRoot
from acpkg.content.descriptor import Category
from acpkg.content.manifest import ManifestStore
from acpkg.core.errors import NotFoundError
from acpkg.core.hashing import sha256sum
from acpkg.lifecycle.install import InstallOptions, installPackage
from acpkg.lifecycle.prompts import Prompter, Reporter
from acpkg.lifecycle.update import FileAction, UpdateOptions, UpdateState, updatePackages


HELLO = "# Hello\n"
CONTENTS = "commands:\n  - name: demo.hello.md\n"


@pytest.fixture
def installed(makeBundle, makeDescriptor, projectDir):
    """demo 1.2.0 installed from a local bundle; returns the bundle directory."""
    bundle = makeBundle(makeDescriptor(contents=CONTENTS), {"agent/commands/demo.hello.md": HELLO})
    installPackage(
        InstallOptions(repo=str(bundle), yes=True),
        reporter=Reporter(quiet=True),
        prompter=Prompter(autoYes=True, interactive=False),
        projectDir=projectDir,
    )
    return bundle


def _update(projectDir, **kwargs):
    prompter = kwargs.pop("prompter", None) or Prompter(interactive=False)
    options = UpdateOptions(package=kwargs.pop("package", "demo"), **kwargs)
    return updatePackages(options, reporter=Reporter(quiet=True), prompter=prompter, projectDir=projectDir)


def _installedFile(projectDir):
    return projectDir / "agent" / "commands" / "demo.hello.md"


def _record(projectDir):
    return ManifestStore.load(localRoot(projectDir)).fileRecord("demo", Category.COMMANDS, "demo.hello.md")


def _publish(bundle, makeDescriptor, version: str, text: str) -> None:
    (bundle / "package.yaml").write_text(makeDescriptor(version=version, contents=CONTENTS), encoding="utf-8")
    (bundle / "agent" / "commands" / "demo.hello.md").write_text(text, encoding="utf-8")


def test_nothing_to_do_when_up_to_date(installed, projectDir):
    summary = _update(projectDir)

    item = summary.find("demo")
    assert item.state is UpdateState.UP_TO_DATE
    assert item.outcomes == []


def test_modified_file_is_reported_and_kept(installed, projectDir):
    _installedFile(projectDir).write_text("# Hello, mine\n", encoding="utf-8")

    item = _update(projectDir).find("demo")

    assert item.modified == [(Category.COMMANDS, "demo.hello.md")]
    assert item.count(FileAction.KEPT) == 1
    assert item.state is UpdateState.PARTIALLY_UPDATED
    assert _installedFile(projectDir).read_text(encoding="utf-8") == "# Hello, mine\n"


def test_skip_modified_leaves_file_untouched(installed, projectDir):
    _installedFile(projectDir).write_text("# Hello, mine\n", encoding="utf-8")
    before = _record(projectDir)

    item = _update(projectDir, skipModified=True).find("demo")

    assert item.count(FileAction.SKIPPED) == 1
    assert item.skippedCount == 1
    assert item.updatedCount == 0
    assert _installedFile(projectDir).read_text(encoding="utf-8") == "# Hello, mine\n"
    assert _record(projectDir).checksum == before.checksum


def test_force_overwrites_and_updates_checksum(installed, projectDir, makeDescriptor):
    _installedFile(projectDir).write_text("# Hello, mine\n", encoding="utf-8")
    before = _record(projectDir)
    _publish(installed, makeDescriptor, "1.3.0", "# Hello v2\n")

    item = _update(projectDir, force=True).find("demo")

    after = _record(projectDir)
    assert item.state is UpdateState.INSTALLED
    assert item.updatedCount == 1
    assert _installedFile(projectDir).read_text(encoding="utf-8") == "# Hello v2\n"
    assert after.checksum == sha256sum(_installedFile(projectDir))
    assert after.checksum != before.checksum
    assert after.version == "1.3.0"
    assert ManifestStore.load(localRoot(projectDir)).packageInfo("demo").version == "1.3.0"


def test_newer_version_updates_clean_files(installed, projectDir, makeDescriptor):
    _publish(installed, makeDescriptor, "1.3.0", "# Hello v2\n")

    item = _update(projectDir, package=None, prompter=Prompter(autoYes=True, interactive=False)).find("demo")

    assert item.localVersion == "1.2.0"
    assert item.remoteVersion == "1.3.0"
    assert item.updatedCount == 1
    assert _installedFile(projectDir).read_text(encoding="utf-8") == "# Hello v2\n"


def test_check_only_reports(installed, projectDir, makeDescriptor):
    _publish(installed, makeDescriptor, "1.3.0", "# Hello v2\n")

    item = _update(projectDir, check=True).find("demo")

    assert item.state is UpdateState.AVAILABLE
    assert item.outcomes == []
    assert _installedFile(projectDir).read_text(encoding="utf-8") == HELLO
    assert ManifestStore.load(localRoot(projectDir)).packageInfo("demo").version == "1.2.0"


def test_deleted_file_is_reinstalled(installed, projectDir, makeDescriptor):
    _installedFile(projectDir).unlink()
    _publish(installed, makeDescriptor, "1.2.1", HELLO)

    item = _update(projectDir).find("demo")

    assert item.updatedCount == 1
    assert _installedFile(projectDir).read_text(encoding="utf-8") == HELLO


def test_file_removed_upstream_is_reported(installed, projectDir, makeDescriptor):
    (installed / "package.yaml").write_text(makeDescriptor(version="1.3.0"), encoding="utf-8")
    (installed / "agent" / "commands" / "demo.hello.md").unlink()

    item = _update(projectDir).find("demo")

    assert item.count(FileAction.MISSING_UPSTREAM) == 1
    assert _installedFile(projectDir).is_file()


def test_new_entries_are_listed_not_installed(installed, projectDir, makeDescriptor):
    contents = CONTENTS + "  - name: demo.new.md\n"
    (installed / "package.yaml").write_text(makeDescriptor(version="1.3.0", contents=contents), encoding="utf-8")
    (installed / "agent" / "commands" / "demo.new.md").write_text("new\n", encoding="utf-8")

    item = _update(projectDir).find("demo")

    assert item.newEntries == [(Category.COMMANDS, "demo.new.md")]
    assert not (projectDir / "agent" / "commands" / "demo.new.md").exists()


def _installFrom(bundle, projectDir, *, experimental=False, prompter=None):
    installPackage(
        InstallOptions(repo=str(bundle), yes=True, experimental=experimental),
        reporter=Reporter(quiet=True),
        prompter=prompter or Prompter(autoYes=True, interactive=False),
        projectDir=projectDir,
    )


def test_tracked_file_newly_marked_experimental_keeps_updating(installed, projectDir, makeDescriptor):
    contents = "commands:\n  - name: demo.hello.md\n    experimental: true\n"
    (installed / "package.yaml").write_text(makeDescriptor(version="1.3.0", contents=contents), encoding="utf-8")
    (installed / "agent" / "commands" / "demo.hello.md").write_text("v2\n", encoding="utf-8")

    item = _update(projectDir).find("demo")

    assert item.updatedCount == 1
    assert _installedFile(projectDir).read_text(encoding="utf-8") == "v2\n"
    assert _record(projectDir).experimental is True

    (installed / "package.yaml").write_text(makeDescriptor(version="1.4.0", contents=contents), encoding="utf-8")
    (installed / "agent" / "commands" / "demo.hello.md").write_text("v3\n", encoding="utf-8")

    _update(projectDir)

    assert _installedFile(projectDir).read_text(encoding="utf-8") == "v3\n"


def test_installed_experimental_entry_updates_without_the_flag(makeBundle, makeDescriptor, projectDir):
    contents = "commands:\n  - name: demo.beta.md\n    experimental: true\n"
    bundle = makeBundle(makeDescriptor(contents=contents), {"agent/commands/demo.beta.md": "beta 1\n"})
    _installFrom(bundle, projectDir, experimental=True)
    (bundle / "package.yaml").write_text(makeDescriptor(version="1.3.0", contents=contents), encoding="utf-8")
    (bundle / "agent" / "commands" / "demo.beta.md").write_text("beta 2\n", encoding="utf-8")

    item = _update(projectDir).find("demo")

    assert item.updatedCount == 1
    assert item.graduated == []
    assert (projectDir / "agent" / "commands" / "demo.beta.md").read_text(encoding="utf-8") == "beta 2\n"


def test_graduation_is_reported_and_flag_cleared(makeBundle, makeDescriptor, projectDir):
    contents = "commands:\n  - name: demo.beta.md\n    experimental: true\n"
    bundle = makeBundle(makeDescriptor(contents=contents), {"agent/commands/demo.beta.md": "beta\n"})
    _installFrom(bundle, projectDir, experimental=True)
    record = ManifestStore.load(localRoot(projectDir)).fileRecord("demo", Category.COMMANDS, "demo.beta.md")
    assert record.experimental is True

    stable = "commands:\n  - name: demo.beta.md\n"
    (bundle / "package.yaml").write_text(makeDescriptor(version="1.3.0", contents=stable), encoding="utf-8")

    item = _update(projectDir).find("demo")

    assert item.graduated == [(Category.COMMANDS, "demo.beta.md")]
    record = ManifestStore.load(localRoot(projectDir)).fileRecord("demo", Category.COMMANDS, "demo.beta.md")
    assert record.experimental is False
    assert record.version == "1.3.0"


def test_templates_are_rerendered_with_stored_variables(makeBundle, makeDescriptor, projectDir):
    contents = "files:\n  - name: app.template.env\n    variables:\n      - PORT\n"
    bundle = makeBundle(makeDescriptor(contents=contents), {"agent/files/app.template.env": "PORT={{PORT}}\n"})
    answers = {"Enter PORT: ": "8080"}
    _installFrom(bundle, projectDir, prompter=Prompter(autoYes=True, interactive=True, inputFn=answers.__getitem__))
    (bundle / "package.yaml").write_text(makeDescriptor(version="1.3.0", contents=contents), encoding="utf-8")
    (bundle / "agent" / "files" / "app.template.env").write_text("# v2\nPORT={{PORT}}\n", encoding="utf-8")

    item = _update(projectDir).find("demo")

    rendered = projectDir / "app.env"
    assert item.updatedCount == 1
    assert rendered.read_text(encoding="utf-8") == "# v2\nPORT=8080\n"
    record = ManifestStore.load(localRoot(projectDir)).fileRecord("demo", Category.FILES, "app.template.env")
    assert record.variables == {"PORT": "8080"}
    assert record.checksum == sha256sum(rendered)


def test_new_experimental_entries_are_listed_only_when_asked(installed, projectDir, makeDescriptor):
    contents = CONTENTS + "  - name: demo.beta.md\n    experimental: true\n"
    (installed / "package.yaml").write_text(makeDescriptor(version="1.3.0", contents=contents), encoding="utf-8")
    (installed / "agent" / "commands" / "demo.beta.md").write_text("beta\n", encoding="utf-8")

    item = _update(projectDir, check=True).find("demo")
    assert item.newEntries == []
    assert item.newExperimental == [(Category.COMMANDS, "demo.beta.md")]

    item = _update(projectDir, check=True, experimental=True).find("demo")
    assert item.newEntries == [(Category.COMMANDS, "demo.beta.md")]
    assert not (projectDir / "agent" / "commands" / "demo.beta.md").exists()


def test_errors(projectDir, installed):
    with pytest.raises(NotFoundError):
        _update(projectDir, package="other")
    with pytest.raises(ValueError):
        _update(projectDir, skipModified=True, force=True)


def test_no_manifest(projectDir):
    with pytest.raises(NotFoundError):
        _update(projectDir)
