"""Nested URL-encoded form decoding.

Bracket keys build structured values the way browser form libraries
encode them::

    user[name]=Ana&user[roles][]=admin&user[roles][]=ventas

decodes to ``{"user": {"name": "Ana", "roles": ["admin", "ventas"]}}``.
Numeric segments up to ``ARRAY_LIMIT`` and ``[]`` appends become list
positions; a larger explicit index keeps its node a dictionary. Nesting deeper than ``MAX_DEPTH`` keeps the rest of
the key as one literal segment. At most ``MAX_FIELDS`` pairs are decoded.
"""
import re
from typing import Any, Dict, List, Set, Union
from urllib.parse import parse_qsl

MAX_DEPTH = 5
ARRAY_LIMIT = 20
MAX_FIELDS = 1000

_SEGMENT = re.compile(r"\[([^\[\]]*)\]")

FormValue = Union[str, List[Any], Dict[str, Any]]


def split_key(key: str) -> List[str]:
    """Split ``a[b][]`` into ``["a", "b", ""]``."""
    head, bracket, _ = key.partition("[")
    if not bracket or not head:
        return [key]

    segments = [head]
    position = len(head)
    while position < len(key):
        match = _SEGMENT.match(key, position)
        if match is None:
            # Unbalanced brackets: keep the whole key flat
            return [key]
        if len(segments) > MAX_DEPTH:
            segments.append(key[position:])
            break
        segments.append(match.group(1))
        position = match.end()
    return segments


class TooManyFieldsError(ValueError):
    """The body has more fields than `MAX_FIELDS`."""

    def __init__(self, limit: int):
        super().__init__(f"More than {limit} form fields")
        self.limit = limit


class _FormTree:
    """Mutable decode target; tracks the next append index of every node."""

    def __init__(self) -> None:
        self.root: Dict[str, Any] = {}
        # id(node) -> number of numeric keys in that node
        self._indexes: Dict[int, int] = {}
        # Nodes given an explicit index over ARRAY_LIMIT stay dictionaries
        self._keyed: Set[int] = set()

    def _next_index(self, node: Dict[str, Any]) -> str:
        return str(self._indexes.get(id(node), 0))

    def _set(self, node: Dict[str, Any], key: str, value: Any) -> None:
        if key.isdecimal() and key not in node:
            self._indexes[id(node)] = self._indexes.get(id(node), 0) + 1
        node[key] = value

    def _child(self, node: Dict[str, Any], key: str) -> Dict[str, Any]:
        current = node.get(key)
        if isinstance(current, dict):
            return current
        child: Dict[str, Any] = {}
        if isinstance(current, list):
            for i, v in enumerate(current):
                self._set(child, str(i), v)
        elif current is not None:
            self._set(child, "0", current)
        self._set(node, key, child)
        return child

    def assign(self, segments: List[str], value: str) -> None:
        node = self.root
        for index, segment in enumerate(segments):
            key = segment if segment != "" else self._next_index(node)
            if segment.isdecimal() and int(segment) > ARRAY_LIMIT:
                self._keyed.add(id(node))
            if index < len(segments) - 1:
                node = self._child(node, key)
            elif key not in node:
                self._set(node, key, value)
            elif isinstance(node[key], list):
                node[key].append(value)
            elif isinstance(node[key], dict):
                self._set(node[key], self._next_index(node[key]), value)
            else:
                node[key] = [node[key], value]

    def compact(self, value: Any) -> FormValue:
        if not isinstance(value, dict):
            return value
        compacted = {k: self.compact(v) for k, v in value.items()}
        if compacted and id(value) not in self._keyed and all(k.isdecimal() for k in compacted):
            return [compacted[k] for k in sorted(compacted, key=int)]
        return compacted


def parse_nested_form(
    body: Union[bytes, str], encoding: str = "utf-8", max_fields: int = MAX_FIELDS
) -> Dict[str, Any]:
    """
    Decode an ``application/x-www-form-urlencoded`` body into nested data.

    Args:
        body: Raw request body
        encoding: Character set declared by the request
        max_fields: Most ``key=value`` pairs accepted

    Returns:
        Dictionary of decoded values (strings, lists and dictionaries)

    Raises:
        TooManyFieldsError: If the body carries more than ``max_fields`` pairs
    """
    if isinstance(body, bytes):
        body = body.decode(encoding)

    try:
        pairs = parse_qsl(
            body, keep_blank_values=True, encoding=encoding, max_num_fields=max_fields
        )
    except ValueError as e:
        raise TooManyFieldsError(max_fields) from e

    tree = _FormTree()
    for key, value in pairs:
        tree.assign(split_key(key), value)
    return {k: tree.compact(v) for k, v in tree.root.items()}
