# acpkg/core/config_stack.py
from __future__ import annotations
from typing import Any, Literal, cast
from collections.abc import Mapping
from dataclasses import dataclass, field
import copy

from acpkg.core.dictpath import getByPath, setByPath

__all__ = [
    "MergeStrategy", "LayerScope", "SCOPE_ORDER",
    "mergeWithStrategy", "ConfigLayer", "ConfigStack",
]



MergeStrategy = Literal["deep", "replace", "append", "prepend", "uniqueAppend"]
_ALL_STRATEGIES: tuple[str, ...] = ("deep", "replace", "append", "prepend", "uniqueAppend")
_LIST_STRATEGIES: tuple[str, ...] = ("replace", "append", "prepend", "uniqueAppend")

LayerScope = Literal["defaults", "user", "env", "cli"]
# Lowest precedence first
SCOPE_ORDER: tuple[str, ...] = ("defaults", "user", "env", "cli")



def mergeWithStrategy(left: Any, right: Any) -> Any:
    """
    Deep merge with an optional per-object directive:
      - dicts: "__merge" inside `right` selects the behavior
        "deep" (default): recurse on dicts, replace other types
        "replace": replace left entirely with right (minus "__merge")
      - lists: a sibling key "<key>__merge" selects "replace" (default),
        "append", "prepend" or "uniqueAppend"
      - scalars: right replaces left

    Example (user config replacing the whole logging section):
        {"logging": {"__merge": "replace", "level": "INFO"}}
    """
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        strategy = cast(MergeStrategy, right.get("__merge", "deep"))
        _validateMergeStrategy(strategy, context="object", listContext=False)
        if strategy == "replace":
            return {key: copy.deepcopy(value) for key, value in right.items() if not key.endswith("__merge")}

        out: dict[str, Any] = {**left}
        for key, rightValue in right.items():
            # Control keys never reach the output
            if key.endswith("__merge"):
                if key != "__merge" and key[:-len("__merge")] not in right:
                    raise ValueError(f'Unexpected reserved key "{key}" without matching base key')
                continue
            leftValue = out.get(key)
            listStrategyKey = f"{key}__merge"
            if listStrategyKey in right and isinstance(rightValue, list):
                listStrategy = cast(MergeStrategy, right[listStrategyKey])
                _validateMergeStrategy(listStrategy, context=f'key "{key}"', listContext=True)
                out[key] = _mergeLists(leftValue, rightValue, listStrategy)
            elif isinstance(leftValue, Mapping) and isinstance(rightValue, Mapping):
                out[key] = mergeWithStrategy(leftValue, rightValue)
            else:
                out[key] = copy.deepcopy(rightValue)
        return out
    if isinstance(left, list) and isinstance(right, list):
        return list(right) # Default: replace (avoid aliasing)
    return copy.deepcopy(right)



def _mergeLists(left: Any, right: list[Any], strategy: MergeStrategy) -> list[Any]:
    left = list(left or [])
    right = list(right)
    if strategy == "append":
        return left + right
    if strategy == "prepend":
        return right + left
    if strategy == "uniqueAppend":
        out = left[:]
        for item in right:
            if not any(item == existing for existing in out):
                out.append(item)
        return out
    return right



def _validateMergeStrategy(strategy: str, *, context: str, listContext: bool = False) -> None:
    allowed = _LIST_STRATEGIES if listContext else _ALL_STRATEGIES
    if strategy not in allowed:
        raise ValueError(f"Invalid __merge='{strategy}' in {context}; allowed: {', '.join(allowed)}")



@dataclass(frozen=True)
class ConfigLayer:
    """
    One immutable configuration layer.
    - name: human readable (usually the file it came from)
    - scope: "defaults" | "user" | "env" | "cli"
    - data: plain JSON-like dict
    """
    name: str
    scope: LayerScope
    data: dict[str, Any] = field(default_factory=dict)



class ConfigStack:
    """
    Ordered layers with fixed scope precedence: defaults → user → env → cli.
    Within one scope, later layers win.
    """
    def __init__(self, layers: list[ConfigLayer] | None = None):
        self._layers: list[ConfigLayer] = list(layers or [])
        self._effective: dict[str, Any] | None = None

    def addLayer(self, layer: ConfigLayer) -> None:
        if layer.scope not in SCOPE_ORDER:
            raise ValueError(f"Unknown config scope '{layer.scope}'")
        self._layers.append(layer)
        self._effective = None

    def layers(self) -> list[ConfigLayer]:
        return list(self._layers)

    def override(self, path: str, value: Any) -> None:
        """Adds a single-value "cli" layer (used for command line flags)."""
        data: dict[str, Any] = {}
        setByPath(data, path, value)
        self.addLayer(ConfigLayer(name=f"override:{path}", scope="cli", data=data))

    def effective(self) -> dict[str, Any]:
        if self._effective is not None:
            return self._effective
        merged: dict[str, Any] = {}
        for scope in SCOPE_ORDER:
            for layer in self._layers:
                if layer.scope != scope:
                    continue
                merged = mergeWithStrategy(merged, layer.data)
                if not isinstance(merged, dict):
                    raise TypeError(f'Layer "{layer.name}" produced non-dict at root')
        self._effective = merged
        return merged

    def get(self, path: str, default: Any = None) -> Any:
        val = getByPath(self.effective(), path)
        return default if val is None else val
