# tests/acpkg/core/test_dictpath.py
from __future__ import annotations

import pytest

from acpkg.core.dictpath import formatPath, getByPath, hasPath, setByPath, splitPath


# ----------------------------------------
# splitPath / formatPath
# ----------------------------------------

def test_splitPath_keysAndIndexes() -> None:
    assert splitPath("a.b.c") == ["a", "b", "c"]
    assert splitPath("contents.commands[0].name") == ["contents", "commands", 0, "name"]
    assert splitPath("m[1][2].name") == ["m", 1, 2, "name"]


def test_splitPath_escapes() -> None:
    assert splitPath("a\\.b.c") == ["a.b", "c"]
    assert splitPath("x\\[0\\]") == ["x[0]"]


@pytest.mark.parametrize("bad", ["", "a..b", ".a", "a.", "a[x]", "a[0", "a]", "a[0]b", "a\\"])
def test_splitPath_rejectsMalformed(bad: str) -> None:
    with pytest.raises(ValueError):
        splitPath(bad)


def test_formatPath_inverse() -> None:
    steps = ["packages", "my.pkg", "files", "commands", 3, "name"]
    assert splitPath(formatPath(steps)) == steps


# ----------------------------------------
# getByPath / setByPath
# ----------------------------------------

def test_getByPath_nested() -> None:
    data = {"a": {"b": [{"c": 1}]}}
    assert getByPath(data, "a.b[0].c") == 1
    assert getByPath(data, "a.b[3].c", "default") == "default"
    assert getByPath(data, "a..b", "bad") == "bad"
    assert hasPath(data, "a.b") is True
    assert hasPath(data, "a.x") is False


def test_setByPath_createsIntermediateDicts() -> None:
    data: dict = {}
    setByPath(data, "paths.globalHome", "/tmp/acp")
    assert data == {"paths": {"globalHome": "/tmp/acp"}}


def test_setByPath_errors() -> None:
    data = {"a": 1, "items": [1]}
    with pytest.raises(TypeError):
        setByPath(data, "a.b", 2)
    with pytest.raises(IndexError):
        setByPath(data, "items[5]", 2)
