# tests/acpkg/app/test_paths.py
from __future__ import annotations
import os

import pytest

from acpkg.app.paths import globalRoot, localRoot, rootFor
from acpkg.core.errors import ConflictError


def test_local_and_global_roots(projectDir, acpConfig):
    local = localRoot(projectDir)
    assert local.kind == "local"
    assert local.base == projectDir.resolve() / "agent"
    assert local.manifestPath == local.base / "manifest.yaml"

    home = globalRoot()
    assert home.base == home.projectDir / "agent"
    assert rootFor(True, projectDir) == home


def test_path_for_each_category(projectDir):
    root = localRoot(projectDir)

    assert root.pathFor("designs", "demo.arch.md") == root.base / "design" / "demo.arch.md"
    assert root.pathFor("scripts", "demo.run.sh") == root.base / "scripts" / "demo.run.sh"
    assert root.pathFor("files", "config.template", target="config/app.json") == root.projectDir / "config" / "app.json"


@pytest.mark.parametrize("name", ["../../README.md", "/etc/passwd", "..\\..\\README.md", "nested/demo.md", ""])
def test_path_for_rejects_names_leaving_the_category(projectDir, name):
    with pytest.raises(ConflictError):
        localRoot(projectDir).pathFor("commands", name)


def test_path_for_rejects_files_targets_leaving_the_project(projectDir):
    with pytest.raises(ConflictError):
        localRoot(projectDir).pathFor("files", "x", target="../outside/x")


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
def test_path_for_rejects_symlinked_escape(projectDir, tmp_path):
    root = localRoot(projectDir)
    outside = tmp_path / "outside"
    outside.mkdir()
    root.base.mkdir()
    (root.base / "commands").symlink_to(outside, target_is_directory=True)

    with pytest.raises(ConflictError):
        root.pathFor("commands", "demo.hello.md")
