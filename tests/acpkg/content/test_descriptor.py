# tests/acpkg/content/test_descriptor.py
from __future__ import annotations

import pytest

from acpkg.content.descriptor import Category, loadDescriptor, normalizeName, validateDescriptor
from acpkg.core.document import Document
from acpkg.core.errors import NotFoundError, ValidationError


CONTENTS = """\
commands:
  - name: demo.hello
    description: Says hello
    scripts:
      - demo.hello
      - demo.shared.sh
  - name: demo.beta.md
    version: 0.9.0
    experimental: true
patterns:
  - name: demo.style.md
files:
  - name: templates/config.json
    target: config
    variables:
      - PORT
"""


def test_normalize_name():
    assert normalizeName(Category.COMMANDS, "demo.hello") == "demo.hello.md"
    assert normalizeName("commands", "demo.hello.md") == "demo.hello.md"
    assert normalizeName(Category.SCRIPTS, "demo.run") == "demo.run.sh"
    assert normalizeName(Category.FILES, "templates/x.json") == "templates/x.json"
    assert Category.DESIGNS.bundleDir == "design"


def test_entries_come_back_normalized(makeBundle, makeDescriptor):
    descriptor = loadDescriptor(makeBundle(makeDescriptor(contents=CONTENTS)))

    hello, beta = descriptor.entries(Category.COMMANDS)
    assert hello.name == "demo.hello.md"
    assert hello.version == "1.2.0"
    assert hello.scripts == ["demo.hello.sh", "demo.shared.sh"]
    assert hello.experimental is False
    assert beta.version == "0.9.0"
    assert beta.experimental is True

    assert descriptor.commandScripts("demo.hello") == ["demo.hello.sh", "demo.shared.sh"]
    assert descriptor.entry(Category.PATTERNS, "demo.style") is not None
    assert descriptor.entry(Category.DESIGNS, "demo.nothing") is None
    assert descriptor.hasFileMetadata is True
    (template,) = descriptor.entries(Category.FILES)
    assert template.target == "config"
    assert template.variables == ["PORT"]


def test_empty_contents_are_valid(makeDescriptor):
    doc = Document.parse(makeDescriptor())

    assert validateDescriptor(doc) == []


def test_violations_are_aggregated():
    doc = Document.parse(
        "name: Demo_Pkg\n"
        "version: 1.0\n"
        "description: short\n"
        "author: Test Author\n"
        "repository: https://github.com/acme/acp-demo\n"
        "contents:\n"
        "  commands:\n"
        "    - name: demo.a\n"
        "      version: 2\n"
    )

    violations = validateDescriptor(doc)
    fields = {violation.field for violation in violations}

    assert {"name", "version", "description", "license", "repository", "contents.commands.0.version"} <= fields
    assert any(v.field == "license" and v.message == "required field missing" for v in violations)
    assert any("X.Y.Z" in v.message for v in violations if v.field == "version")


@pytest.mark.parametrize("name", ["acp", "local", "core", "system", "global"])
def test_reserved_package_names(makeDescriptor, name):
    violations = validateDescriptor(Document.parse(makeDescriptor(name=name)))

    assert [v.field for v in violations] == ["name"]
    assert "reserved" in violations[0].message


@pytest.mark.parametrize("contents, field", [
    ("commands:\n  - name: ../../README.md\n", "contents.commands.0.name"),
    ("patterns:\n  - name: /etc/passwd\n", "contents.patterns.0.name"),
    ("designs:\n  - name: ..\\notes.md\n", "contents.designs.0.name"),
    ("commands:\n  - name: sub/demo.md\n", "contents.commands"),
    ("commands:\n  - name: demo.run\n    scripts:\n      - ../run.sh\n", "contents.commands.0.scripts"),
    ("files:\n  - name: ../secrets.env\n", "contents.files.0.name"),
])
def test_entry_names_stay_inside_their_directory(makeDescriptor, contents, field):
    violations = validateDescriptor(Document.parse(makeDescriptor(contents=contents)))

    assert [v.field for v in violations] == [field]


def test_files_entries_may_live_in_subdirectories(makeDescriptor):
    assert validateDescriptor(Document.parse(makeDescriptor(contents="files:\n  - name: templates/config.json\n"))) == []


def test_requirements_are_checked(makeDescriptor):
    extra = (
        "requires:\n"
        "  acp: \"2.0\"\n"
        "  npm:\n"
        "    react: \">=18.0.0\"\n"
        "    lodash: \"not a version\"\n"
    )
    violations = validateDescriptor(Document.parse(makeDescriptor(extra=extra)))
    fields = {violation.field for violation in violations}

    assert fields == {"requires.acp", "requires.npm"}


def test_requirements_by_package_manager(makeBundle, makeDescriptor):
    extra = "requires:\n  acp: \">=2.0.0\"\n  pip:\n    requests: \">=2.0\"\n"
    descriptor = loadDescriptor(makeBundle(makeDescriptor(extra=extra)))

    assert descriptor.requirements("pip") == {"requests": ">=2.0"}
    assert descriptor.requirements("npm") == {}
    with pytest.raises(ValueError):
        descriptor.requirements("maven")


def test_load_descriptor_errors(tmp_path, makeBundle):
    with pytest.raises(NotFoundError):
        loadDescriptor(tmp_path)

    bundle = makeBundle("name: demo\nversion: 1.0.0\n")
    with pytest.raises(ValidationError) as excinfo:
        loadDescriptor(bundle)
    assert excinfo.value.subject == "package.yaml"
    assert len(excinfo.value.violations) >= 4
