# acpkg/core/dictpath.py
from __future__ import annotations
from typing import Any
from collections.abc import Mapping, MutableMapping

__all__ = ["PathStep", "splitPath", "formatPath", "getByPath", "setByPath", "hasPath"]

# One navigation hop: a mapping key (str) or a sequence index (int)
PathStep = str | int



# ----------------------------------------------
#                  path parsing
# ----------------------------------------------

def splitPath(path: str) -> list[PathStep]:
    """
    Splits a dotted path into steps. Each segment may carry one or more
    `[i]` suffixes addressing sequence items.

    Backslash escapes the next character, so separators and brackets can be
    part of a key.

    Examples:
      - a.b.c                 -> ["a", "b", "c"]
      - contents.commands[0]  -> ["contents", "commands", 0]
      - m[1][2].name          -> ["m", 1, 2, "name"]
      - a\\.b.c               -> ["a.b", "c"]

    Raises ValueError on empty segments, dangling escapes and malformed
    brackets.
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Path must be a non-empty string")

    steps: list[PathStep] = []
    curr: list[str] = []
    # True once the current segment produced at least one step
    segmentHasStep = False
    esc = False
    idx = 0
    length = len(path)
    while idx < length:
        ch = path[idx]
        if esc:
            curr.append(ch)
            esc = False
            idx += 1
            continue
        if ch == "\\":
            esc = True
            idx += 1
            continue
        if ch == ".":
            if curr:
                steps.append("".join(curr))
                curr = []
            elif not segmentHasStep:
                raise ValueError(f"Path '{path}' contains empty segment(s)")
            segmentHasStep = False
            idx += 1
            continue
        if ch == "[":
            close = path.find("]", idx)
            if close == -1:
                raise ValueError(f"Path '{path}' has an unclosed '['")
            digits = path[idx + 1:close]
            if not digits.isdigit():
                raise ValueError(f"Path '{path}' has a non-numeric index '[{digits}]'")
            if curr:
                steps.append("".join(curr))
                curr = []
            steps.append(int(digits))
            segmentHasStep = True
            idx = close + 1
            # An index may only be followed by another index, a separator or the end
            if idx < length and path[idx] not in ".[":
                raise ValueError(f"Path '{path}' has text after an index")
            continue
        if ch == "]":
            raise ValueError(f"Path '{path}' has an unmatched ']'")
        curr.append(ch)
        idx += 1

    if esc:
        raise ValueError("Path ends with a dangling escape (trailing backslash)")
    if curr:
        steps.append("".join(curr))
    elif not segmentHasStep:
        raise ValueError(f"Path '{path}' contains empty segment(s)")
    return steps



def formatPath(steps: list[PathStep]) -> str:
    """Inverse of splitPath, escaping characters that would split a key."""
    out: list[str] = []
    for step in steps:
        if isinstance(step, int):
            out.append(f"[{step}]")
            continue
        escaped = "".join("\\" + ch if ch in ".[]\\" else ch for ch in step)
        out.append(("." if out else "") + escaped)
    return "".join(out)



# ----------------------------------------------
#        plain dict/list access (config data)
# ----------------------------------------------

def getByPath(obj: Any, path: str, default: Any | None = None) -> Any:
    """
    Returns the value at `path` inside nested mappings/lists, or `default`
    when any hop is missing or the path is invalid.
    """
    try:
        steps = splitPath(path)
    except ValueError:
        # Invalid path is treated as "not found"
        return default

    current: Any = obj
    for step in steps:
        if isinstance(step, int):
            if isinstance(current, list) and 0 <= step < len(current):
                current = current[step]
                continue
            return default
        if isinstance(current, Mapping) and step in current:
            current = current[step]
            continue
        return default
    return current



def setByPath(obj: MutableMapping[str, Any], path: str, value: Any) -> None:
    """
    Sets `value` at `path`, creating intermediate dicts for missing keys.

    Rules:
      • a missing key hop creates a dict
      • an index hop must address an existing list item (IndexError otherwise)
      • walking through a non-container raises TypeError
    """
    steps = splitPath(path)
    current: Any = obj
    for step in steps[:-1]:
        if isinstance(step, int):
            if not isinstance(current, list):
                raise TypeError(f"Cannot index into {type(current).__name__} at '{path}'")
            if not 0 <= step < len(current):
                raise IndexError(f"Index {step} out of range at '{path}'")
            current = current[step]
            continue
        if not isinstance(current, MutableMapping):
            raise TypeError(f"Cannot descend into {type(current).__name__} at '{path}'")
        if step not in current:
            current[step] = {}
        current = current[step]

    last = steps[-1]
    if isinstance(last, int):
        if not isinstance(current, list) or not 0 <= last < len(current):
            raise IndexError(f"Index {last} out of range at '{path}'")
        current[last] = value
        return
    if not isinstance(current, MutableMapping):
        raise TypeError(f"Cannot write '{last}' into {type(current).__name__}")
    current[last] = value



def hasPath(obj: Any, path: str) -> bool:
    """True if the full path resolves, without raising."""
    defaultNeedle = object() # Unique marker
    return getByPath(obj, path, defaultNeedle) is not defaultNeedle
