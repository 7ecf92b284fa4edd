"""Dot-path access into JSON documents.

Documents are plain decoded JSON: ``dict``/``list``/``str``/``int``/``float``/
``bool``/``None``. Paths are dot-separated object keys; list elements are not
addressable by path.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from .errors import PathConflictError

type JSONValue = (
    None | bool | int | float | str | list[JSONValue] | dict[str, JSONValue]
)
type Document = dict[str, JSONValue]

PATH_SEPARATOR = "."


class _Missing:
    """Sentinel type for absent paths."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: typ.Final = _Missing()


def split_path(path: str) -> list[str]:
    """Split a dot-path into its key segments."""
    return path.split(PATH_SEPARATOR)


def lookup(document: cabc.Mapping[str, typ.Any], path: str) -> object:
    """Return the value at ``path`` or ``MISSING`` when it does not resolve.

    A path resolves when every intermediate value is an object holding the
    next key. A present ``null`` resolves to ``None``.
    """
    node: object = document
    for segment in split_path(path):
        if not isinstance(node, dict) or segment not in node:
            return MISSING
        node = node[segment]
    return node


def get_path(
    document: cabc.Mapping[str, typ.Any], path: str, default: object = None
) -> typ.Any:  # noqa: ANN401 - documents hold arbitrary JSON
    """Return the value at ``path``, or ``default`` when it does not resolve."""
    value = lookup(document, path)
    return default if value is MISSING else value


def has_path(document: cabc.Mapping[str, typ.Any], path: str) -> bool:
    """Return True when ``path`` resolves, even to ``null``."""
    return lookup(document, path) is not MISSING


def set_path(document: dict[str, typ.Any], path: str, value: object) -> None:
    """Set ``value`` at ``path``, creating intermediate objects as needed.

    Raises
    ------
    PathConflictError
        If an intermediate segment already holds a non-object value.

    """
    segments = split_path(path)
    node = document
    for segment in segments[:-1]:
        child = node.get(segment)
        if child is None:
            child = {}
            node[segment] = child
        elif not isinstance(child, dict):
            raise PathConflictError(path, segment)
        node = child
    node[segments[-1]] = value
