# acpkg/core/document.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from acpkg.core.dictpath import PathStep, splitPath
from acpkg.core.errors import InvalidPathError, NotFoundError, ParseError

logger = logging.getLogger(__name__)

__all__ = [
    "ROOT_ID",
    "EMPTY_SEQUENCE",
    "EMPTY_MAP",
    "NodeKind",
    "Node",
    "Document",
    "parse",
    "serialize",
]



ROOT_ID = 0
EMPTY_SEQUENCE = "[]"
EMPTY_MAP = "{}"
_INDENT = "  "

# First characters that make a plain scalar ambiguous when read back
_SPECIAL_LEADING = set("-?:,[]{}#&*!|>'\"%@`")
_DOUBLE_QUOTE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "0": "\0"}



class NodeKind(Enum):
    SCALAR = "scalar"
    MAP = "map"
    SEQUENCE = "sequence"



@dataclass(slots=True)
class Node:
    """
    One element of a Document.

    `key` is empty for sequence items. `value` only means something for
    scalars. `children` keeps insertion order and serialization follows it.
    """
    id: int
    kind: NodeKind
    key: str = ""
    value: str = ""
    parentId: int = -1
    children: list[int] = field(default_factory=list)



# ------------------------------------------------------------------ #
# Scalar text helpers
# ------------------------------------------------------------------ #

def _scalarText(value: Any) -> str:
    """Coerces a Python value into the stored scalar text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise TypeError(f"Scalar value must be str, int, float, bool or None, not {type(value).__name__}")



def _readQuoted(text: str, start: int, *, line: int | None, source: str | None) -> tuple[str, int]:
    """
    Reads a quoted string beginning at `start`.
    Returns (decoded value, index just after the closing quote).
    """
    quote = text[start]
    out: list[str] = []
    idx = start + 1
    while idx < len(text):
        ch = text[idx]
        if quote == '"' and ch == "\\" and idx + 1 < len(text):
            nxt = text[idx + 1]
            out.append(_DOUBLE_QUOTE_ESCAPES.get(nxt, "\\" + nxt))
            idx += 2
            continue
        if ch == quote:
            # '' inside single quotes is an escaped quote
            if quote == "'" and idx + 1 < len(text) and text[idx + 1] == "'":
                out.append("'")
                idx += 2
                continue
            return "".join(out), idx + 1
        out.append(ch)
        idx += 1
    raise ParseError(f"unterminated {quote} quote", line=line, source=source)



def _parseScalar(text: str, *, line: int | None, source: str | None) -> str:
    if text and text[0] in "\"'":
        value, end = _readQuoted(text, 0, line=line, source=source)
        if text[end:].strip():
            raise ParseError(f"unexpected text after quoted value: {text[end:].strip()!r}", line=line, source=source)
        return value
    return text



def _needsQuotes(text: str) -> bool:
    if text == "":
        return True
    if text != text.strip():
        return True
    if text in (EMPTY_SEQUENCE, EMPTY_MAP):
        return True
    if text[0] in _SPECIAL_LEADING:
        return True
    if ": " in text or " #" in text or text.endswith(":"):
        return True
    if any(ch in text for ch in "\n\r\t\0"):
        return True
    return False



def _quote(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
            .replace('"', '\\"')
            .replace("\n", "\\n")
            .replace("\r", "\\r")
            .replace("\t", "\\t")
            .replace("\0", "\\0")
    )
    return f'"{escaped}"'



def _formatScalar(text: str) -> str:
    return _quote(text) if _needsQuotes(text) else text



def _stripComment(line: str) -> str:
    """
    Removes a trailing comment. A '#' starts a comment at the beginning of
    the line or after whitespace, and never inside quotes.
    """
    quote: str | None = None
    idx = 0
    while idx < len(line):
        ch = line[idx]
        if quote is not None:
            if quote == '"' and ch == "\\":
                idx += 2
                continue
            if ch == quote:
                quote = None
        elif ch == "#" and (idx == 0 or line[idx - 1] in " \t"):
            return line[:idx]
        elif ch in "\"'" and (idx == 0 or line[idx - 1] in " \t"):
            quote = ch
        idx += 1
    return line



def _splitKeyValue(content: str, *, line: int, source: str | None) -> tuple[str, str] | None:
    """
    Splits `key: value` / `key:` content. Returns None when the content is
    not a mapping entry (plain or quoted scalar).
    """
    if content[0] in "\"'":
        key, end = _readQuoted(content, 0, line=line, source=source)
        rest = content[end:]
        if rest.startswith(":") and (len(rest) == 1 or rest[1] in " \t"):
            return key, rest[1:].strip()
        return None
    idx = content.find(": ")
    if idx == -1:
        if content.endswith(":"):
            key = content[:-1].strip()
        else:
            return None
        value = ""
    else:
        key = content[:idx].strip()
        value = content[idx + 2:].strip()
    if not key:
        raise ParseError("empty mapping key", line=line, source=source)
    return key, value



# ------------------------------------------------------------------ #
# Document
# ------------------------------------------------------------------ #

class Document:
    """
    Mutable tree of Scalar / Map / Sequence nodes addressed by stable ids.

    Node ids come from a counter that only grows: deleting a node leaves a
    hole and the id is never handed out again.

    Paths are dotted keys with optional `[i]` suffixes, e.g.
    `packages.demo.files.commands[0].name`.
    """
    def __init__(self) -> None:
        self._nodes: dict[int, Node] = {ROOT_ID: Node(id=ROOT_ID, kind=NodeKind.MAP)}
        self._nextId = ROOT_ID + 1

    # ----- construction / text -----

    @classmethod
    def parse(cls, text: str, *, source: str | None = None) -> Document:
        doc = cls()
        _Parser(doc, source).feed(text)
        return doc

    def serialize(self) -> str:
        lines: list[str] = []
        for child in self.children(ROOT_ID):
            self._emitKeyed(child, 0, lines)
        return "\n".join(lines) + "\n" if lines else ""

    # ----- node access -----

    @property
    def root(self) -> Node:
        return self._nodes[ROOT_ID]

    def node(self, nodeId: int) -> Node:
        try:
            return self._nodes[nodeId]
        except KeyError:
            raise NotFoundError(f"No node with id {nodeId}") from None

    def children(self, nodeId: int) -> list[Node]:
        return [self._nodes[childId] for childId in self.node(nodeId).children]

    def nodeAt(self, path: str = "") -> Node:
        """Resolves `path` to its node. An empty path addresses the root."""
        if not path:
            return self.root
        return self._resolve(self._steps(path), path)

    def nodeCount(self) -> int:
        return len(self._nodes)

    # ----- reads -----

    def query(self, path: str) -> str | list[str]:
        """
        Returns the scalar value at `path`, or the ordered child keys when
        `path` addresses a Map or Sequence (empty keys included).
        """
        node = self.nodeAt(path)
        if node.kind is NodeKind.SCALAR:
            return node.value
        return [self._nodes[childId].key for childId in node.children]

    def get(self, path: str, default: Any = None) -> Any:
        """Like query(), but returns `default` for missing or mismatched paths."""
        try:
            return self.query(path)
        except (NotFoundError, InvalidPathError):
            return default

    def has(self, path: str) -> bool:
        try:
            self.nodeAt(path)
            return True
        except (NotFoundError, InvalidPathError):
            return False

    def kindAt(self, path: str) -> NodeKind:
        return self.nodeAt(path).kind

    def toData(self, path: str = "") -> Any:
        """Plain Python view: Scalar → str, Map → dict, Sequence → list."""
        return self._toData(self.nodeAt(path))

    def _toData(self, node: Node) -> Any:
        if node.kind is NodeKind.SCALAR:
            return node.value
        if node.kind is NodeKind.SEQUENCE:
            return [self._toData(child) for child in self.children(node.id)]
        return {child.key: self._toData(child) for child in self.children(node.id)}

    # ----- writes -----

    def set(self, path: str, value: Any) -> int:
        """
        Sets `path` to `value` and returns the id of the written node.

        Rules:
          • missing intermediate keys become Maps
          • a missing last key becomes a Scalar, or an empty Sequence/Map for "[]"/"{}"
          • an existing Scalar is overwritten in place (same id)
          • "[]" / "{}" turn an existing node into an empty Sequence / Map
          • a scalar written over a Map/Sequence replaces its children
        The whole path is checked before anything is created.
        """
        text = _scalarText(value)
        steps = self._steps(path)
        current = self.root
        for pos, step in enumerate(steps[:-1]):
            nxt = self._step(current, step, path)
            if nxt is None:
                rest = steps[pos:]
                if any(isinstance(item, int) for item in rest):
                    raise NotFoundError(f"Path '{path}': sequence index points past existing items")
                for key in rest[:-1]:
                    current = self._newNode(NodeKind.MAP, parent=current, key=str(key))
                return self._create(current, str(rest[-1]), text).id
            current = nxt

        last = steps[-1]
        target = self._step(current, last, path)
        if target is None:
            if isinstance(last, int):
                raise NotFoundError(f"Path '{path}': index {last} out of range")
            return self._create(current, last, text).id
        self._assign(target, text)
        return target.id

    def delete(self, path: str) -> None:
        """Unlinks the node at `path` (and its subtree) from its parent."""
        steps = self._steps(path)
        parent = self._resolve(steps[:-1], path) if len(steps) > 1 else self.root
        target = self._step(parent, steps[-1], path)
        if target is None:
            raise NotFoundError(f"Path '{path}' not found")
        parent.children.remove(target.id)
        self._dropSubtree(target.id)

    def appendScalar(self, path: str, value: Any) -> int:
        sequence = self._asSequence(self.nodeAt(path), path)
        return self._newNode(NodeKind.SCALAR, parent=sequence, value=_scalarText(value)).id

    def appendObject(self, path: str) -> int:
        """Appends an empty Map item and returns its id for setField()."""
        sequence = self._asSequence(self.nodeAt(path), path)
        return self._newNode(NodeKind.MAP, parent=sequence).id

    def setField(self, nodeId: int, key: str, value: Any) -> int:
        """Creates or overwrites field `key` on the Map `nodeId`."""
        node = self.node(nodeId)
        if node.kind is not NodeKind.MAP:
            raise InvalidPathError(f"Node {nodeId} is a {node.kind.value}, fields need a map")
        text = _scalarText(value)
        existing = self._childByKey(node, key)
        if existing is None:
            return self._create(node, key, text).id
        self._assign(existing, text)
        return existing.id

    def removeField(self, nodeId: int, key: str) -> bool:
        """Drops field `key` from the Map `nodeId`. Returns False when it was not there."""
        node = self.node(nodeId)
        if node.kind is not NodeKind.MAP:
            raise InvalidPathError(f"Node {nodeId} is a {node.kind.value}, fields need a map")
        existing = self._childByKey(node, key)
        if existing is None:
            return False
        node.children.remove(existing.id)
        self._dropSubtree(existing.id)
        return True

    # ----- internals -----

    def _steps(self, path: str) -> list[PathStep]:
        try:
            return splitPath(path)
        except ValueError as err:
            raise InvalidPathError(str(err)) from err

    def _childByKey(self, node: Node, key: str) -> Node | None:
        for childId in node.children:
            child = self._nodes[childId]
            if child.key == key:
                return child
        return None

    def _step(self, node: Node, step: PathStep, path: str) -> Node | None:
        """One navigation hop. None means "missing"; kind mismatches raise."""
        if node.kind is NodeKind.SCALAR:
            raise InvalidPathError(f"Path '{path}': '{node.key or node.id}' is a scalar")
        if isinstance(step, int):
            if node.kind is NodeKind.MAP:
                if node.children:
                    raise InvalidPathError(f"Path '{path}': cannot index map '{node.key}'")
                return None
            if 0 <= step < len(node.children):
                return self._nodes[node.children[step]]
            return None
        if node.kind is NodeKind.SEQUENCE:
            raise InvalidPathError(f"Path '{path}': '{node.key}' is a sequence, use [i]")
        return self._childByKey(node, step)

    def _resolve(self, steps: list[PathStep], path: str) -> Node:
        current = self.root
        for step in steps:
            nxt = self._step(current, step, path)
            if nxt is None:
                raise NotFoundError(f"Path '{path}' not found")
            current = nxt
        return current

    def _newNode(self, kind: NodeKind, *, parent: Node, key: str = "", value: str = "") -> Node:
        node = Node(id=self._nextId, kind=kind, key=key, value=value, parentId=parent.id)
        self._nextId += 1
        self._nodes[node.id] = node
        parent.children.append(node.id)
        return node

    def _create(self, parent: Node, key: str, text: str) -> Node:
        if text == EMPTY_SEQUENCE:
            return self._newNode(NodeKind.SEQUENCE, parent=parent, key=key)
        if text == EMPTY_MAP:
            return self._newNode(NodeKind.MAP, parent=parent, key=key)
        return self._newNode(NodeKind.SCALAR, parent=parent, key=key, value=text)

    def _assign(self, node: Node, text: str) -> None:
        if text in (EMPTY_SEQUENCE, EMPTY_MAP):
            self._clearChildren(node)
            node.kind = NodeKind.SEQUENCE if text == EMPTY_SEQUENCE else NodeKind.MAP
            node.value = ""
            return
        if node.kind is not NodeKind.SCALAR:
            self._clearChildren(node)
            node.kind = NodeKind.SCALAR
        node.value = text

    def _asSequence(self, node: Node, path: str) -> Node:
        if node.kind is NodeKind.SEQUENCE:
            return node
        if node.kind is NodeKind.MAP and not node.children and node.id != ROOT_ID:
            node.kind = NodeKind.SEQUENCE
            return node
        raise InvalidPathError(f"Path '{path}' is a {node.kind.value} and cannot take sequence items")

    def _clearChildren(self, node: Node) -> None:
        for childId in node.children:
            self._dropSubtree(childId)
        node.children.clear()

    def _dropSubtree(self, nodeId: int) -> None:
        node = self._nodes.pop(nodeId)
        for childId in node.children:
            self._dropSubtree(childId)

    # ----- serialization -----

    def _emitKeyed(self, node: Node, level: int, lines: list[str]) -> None:
        pad = _INDENT * level
        key = _formatScalar(node.key)
        if node.kind is NodeKind.SCALAR:
            lines.append(f"{pad}{key}: {_formatScalar(node.value)}")
        elif node.kind is NodeKind.MAP:
            if not node.children:
                lines.append(f"{pad}{key}: {EMPTY_MAP}")
                return
            lines.append(f"{pad}{key}:")
            for child in self.children(node.id):
                self._emitKeyed(child, level + 1, lines)
        else:
            if not node.children:
                lines.append(f"{pad}{key}: {EMPTY_SEQUENCE}")
                return
            lines.append(f"{pad}{key}:")
            for child in self.children(node.id):
                self._emitItem(child, level + 1, lines)

    def _emitItem(self, node: Node, level: int, lines: list[str]) -> None:
        pad = _INDENT * level
        if node.kind is NodeKind.SCALAR:
            lines.append(f"{pad}- {_formatScalar(node.value)}")
        elif node.kind is NodeKind.MAP:
            if not node.children:
                lines.append(f"{pad}- {EMPTY_MAP}")
                return
            # Fields render one level deeper; the first one then takes the dash
            start = len(lines)
            for child in self.children(node.id):
                self._emitKeyed(child, level + 1, lines)
            first = lines[start]
            lines[start] = f"{pad}- {first[len(pad) + len(_INDENT):]}"
        else:
            if not node.children:
                lines.append(f"{pad}- {EMPTY_SEQUENCE}")
                return
            lines.append(f"{pad}-")
            for child in self.children(node.id):
                self._emitItem(child, level + 1, lines)



# ------------------------------------------------------------------ #
# Parser
# ------------------------------------------------------------------ #

@dataclass(slots=True)
class _Frame:
    nodeId: int
    indent: int
    # `key:` frames also take `- ` items written at their own indent
    takesSameIndentItems: bool



class _Parser:
    """
    Line scanner driving an indentation stack.

    Lenient about indentation: a line indented less than expected simply
    closes frames until it fits. Lines that are neither `key: value` nor
    `- item` raise ParseError.
    """
    def __init__(self, doc: Document, source: str | None) -> None:
        self.doc = doc
        self.source = source
        self.stack: list[_Frame] = [_Frame(ROOT_ID, -1, False)]
        # Maps opened by `key:` or a bare `-` whose kind is still undecided
        self.pending: set[int] = set()

    def feed(self, text: str) -> None:
        for lineNo, raw in enumerate(text.splitlines(), start=1):
            line = _stripComment(raw).rstrip()
            if not line.strip():
                continue
            # Leading tabs count as one indentation level each
            body = line.lstrip(" \t")
            lead = line[:len(line) - len(body)].replace("\t", _INDENT)
            indent = len(lead)
            content = body
            if content == "---" and indent == 0:
                continue
            if content == "-" or content.startswith("- "):
                self._item(content, indent, lineNo)
            else:
                self._keyed(content, indent, lineNo)
        self.pending.clear()

    def _acceptsItems(self, frame: _Frame) -> bool:
        if not frame.takesSameIndentItems:
            return False
        node = self.doc.node(frame.nodeId)
        return node.kind is NodeKind.SEQUENCE or frame.nodeId in self.pending

    def _popTo(self, indent: int, *, isItem: bool) -> Node:
        while len(self.stack) > 1:
            top = self.stack[-1]
            if indent > top.indent:
                break
            if isItem and indent == top.indent and self._acceptsItems(top):
                break
            self.stack.pop()
        return self.doc.node(self.stack[-1].nodeId)

    def _sequenceFor(self, parent: Node, lineNo: int) -> Node:
        if parent.kind is NodeKind.SEQUENCE:
            return parent
        if parent.kind is NodeKind.MAP and parent.id != ROOT_ID and (parent.id in self.pending or not parent.children):
            self.pending.discard(parent.id)
            parent.kind = NodeKind.SEQUENCE
            return parent
        # Mis-indented item right after a sequence: keep feeding that sequence
        if parent.children:
            last = self.doc.node(parent.children[-1])
            if last.kind is NodeKind.SEQUENCE:
                return last
        raise ParseError("sequence item where a mapping entry was expected", line=lineNo, source=self.source)

    def _item(self, content: str, indent: int, lineNo: int) -> None:
        parent = self._popTo(indent, isItem=True)
        sequence = self._sequenceFor(parent, lineNo)
        itemText = content[1:].strip()

        if not itemText:
            node = self.doc._newNode(NodeKind.MAP, parent=sequence)
            self.pending.add(node.id)
            self.stack.append(_Frame(node.id, indent, False))
            return
        if itemText == EMPTY_SEQUENCE:
            self.doc._newNode(NodeKind.SEQUENCE, parent=sequence)
            return
        if itemText == EMPTY_MAP:
            self.doc._newNode(NodeKind.MAP, parent=sequence)
            return

        keyValue = _splitKeyValue(itemText, line=lineNo, source=self.source)
        if keyValue is None:
            value = _parseScalar(itemText, line=lineNo, source=self.source)
            self.doc._newNode(NodeKind.SCALAR, parent=sequence, value=value)
            return

        # `- key: value` opens an inline map; its first field sits at the key column
        obj = self.doc._newNode(NodeKind.MAP, parent=sequence)
        self.stack.append(_Frame(obj.id, indent, False))
        keyColumn = indent + len(content) - len(itemText)
        self._addField(obj, keyValue[0], keyValue[1], keyColumn, lineNo)

    def _keyed(self, content: str, indent: int, lineNo: int) -> None:
        keyValue = _splitKeyValue(content, line=lineNo, source=self.source)
        if keyValue is None:
            raise ParseError(f"expected 'key: value' or '- item', got {content!r}", line=lineNo, source=self.source)
        parent = self._popTo(indent, isItem=False)
        if parent.kind is NodeKind.SEQUENCE:
            # Field written under a sequence without a dash: attach to the last map item
            last = self.doc.node(parent.children[-1]) if parent.children else None
            if last is None or last.kind is not NodeKind.MAP:
                raise ParseError("mapping entry inside a sequence needs a '- ' item", line=lineNo, source=self.source)
            parent = last
        self.pending.discard(parent.id)
        self._addField(parent, keyValue[0], keyValue[1], indent, lineNo)

    def _addField(self, mapNode: Node, key: str, rawValue: str, indent: int, lineNo: int) -> None:
        existing = self.doc._childByKey(mapNode, key)
        if existing is not None:
            logger.debug("Duplicate key '%s' on line %d replaces the earlier one", key, lineNo)
            mapNode.children.remove(existing.id)
            self.doc._dropSubtree(existing.id)

        if rawValue == "":
            node = self.doc._newNode(NodeKind.MAP, parent=mapNode, key=key)
            self.pending.add(node.id)
            self.stack.append(_Frame(node.id, indent, True))
        elif rawValue == EMPTY_SEQUENCE:
            self.doc._newNode(NodeKind.SEQUENCE, parent=mapNode, key=key)
        elif rawValue == EMPTY_MAP:
            self.doc._newNode(NodeKind.MAP, parent=mapNode, key=key)
        else:
            value = _parseScalar(rawValue, line=lineNo, source=self.source)
            self.doc._newNode(NodeKind.SCALAR, parent=mapNode, key=key, value=value)



# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #

def parse(text: str, *, source: str | None = None) -> Document:
    return Document.parse(text, source=source)



def serialize(doc: Document) -> str:
    return doc.serialize()
