"""
Value objects for nodes and their properties.

These are owned snapshots handed out by a store session. Mutating one does
not change the store; mutations go through the session's operations.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from rdf_nodegraph.storage.schema import PropertyType

HASH_SEGMENT = "#"
SKOLEM_PREFIX = "genid"


@dataclass(frozen=True)
class PropertyValue:
    """
    A single stored value.

    Attributes:
        kind: Stored value type
        value: Python value (str, bool, int, float, Decimal, datetime)
        lang: Language tag of a string value
        datatype: Datatype URI kept for literals with no matching primitive
        lexical: Lexical form the value was written with, rendered back as-is
    """
    kind: PropertyType
    value: Any
    lang: Optional[str] = None
    datatype: Optional[str] = None
    lexical: Optional[str] = None


@dataclass
class Property:
    """A named property holding one or more values."""
    name: str
    values: list[PropertyValue] = field(default_factory=list)
    multiple: bool = True

    @property
    def value(self) -> Optional[PropertyValue]:
        return self.values[0] if self.values else None


@dataclass
class Node:
    """
    Snapshot of a node in the store.

    ``path`` is the node's identity within one session; it is invalidated by
    moves and deletes.
    """
    path: str
    primary_type: str
    mixins: list[str] = field(default_factory=list)
    properties: dict[str, Property] = field(default_factory=dict)
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    is_new: bool = False
    versions: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def parent_path(self) -> Optional[str]:
        return parent_path(self.path)

    @property
    def is_hash_node(self) -> bool:
        return is_hash_path(self.path)

    @property
    def is_skolem(self) -> bool:
        return is_skolem_path(self.path)

    def declared_types(self) -> list[str]:
        return [self.primary_type] + [m for m in self.mixins if m != self.primary_type]

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def snapshot(self) -> "Node":
        return copy.deepcopy(self)


def parent_path(path: str) -> Optional[str]:
    """Parent of a store path; hash segments are skipped over."""
    if path == "/":
        return None
    head = path.rstrip("/").rsplit("/", 1)[0]
    if head.endswith("/" + HASH_SEGMENT):
        head = head[: -len(HASH_SEGMENT) - 1]
    return head or "/"


def join_path(parent: str, name: str) -> str:
    return f"/{name}" if parent == "/" else f"{parent}/{name}"


def hash_path(path: str, fragment: str) -> str:
    """Path of the hash resource ``fragment`` under ``path``."""
    return join_path(join_path(path, HASH_SEGMENT), fragment)


def is_hash_path(path: str) -> bool:
    return f"/{HASH_SEGMENT}/" in path


def is_skolem_path(path: str) -> bool:
    """Whether ``path`` is a hash resource standing in for a blank node."""
    return is_hash_path(path) and path.rsplit("/", 1)[-1].startswith(SKOLEM_PREFIX)
