"""
Store capability interface.

The RDF layer never touches store internals; every read and mutation goes
through a StoreHandle, which is the caller-owned session for one request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from rdf_nodegraph.storage.namespaces import NamespaceRegistry
from rdf_nodegraph.storage.nodes import Node, PropertyValue
from rdf_nodegraph.storage.schema import PropertyDefinition, SchemaRegistry


class StoreHandle(ABC):
    """Operations the RDF translation core needs from a hierarchical store."""

    @property
    @abstractmethod
    def namespaces(self) -> NamespaceRegistry:
        ...

    @property
    @abstractmethod
    def types(self) -> SchemaRegistry:
        ...

    @property
    def supports_references(self) -> bool:
        return True

    @property
    def transaction_id(self) -> Optional[str]:
        return None

    # -- reads ---------------------------------------------------------------

    @abstractmethod
    def get_node(self, path: str) -> Node:
        """Snapshot of the node at ``path``; raises NodeNotFoundError."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def count_children(self, path: str) -> int:
        """Number of immediate (non-hash) children, counted without listing."""

    @abstractmethod
    def list_children(self, path: str, limit: int = -1) -> Iterator[str]:
        """Paths of immediate (non-hash) children; ``limit`` -1 means all."""

    @abstractmethod
    def list_hash_nodes(self, path: str) -> list[str]:
        """Paths of the hash resources attached to ``path``."""

    @abstractmethod
    def property_definition(self, path: str, name: str) -> Optional[PropertyDefinition]:
        """Declared definition of property ``name`` on the node, if any."""

    @abstractmethod
    def list_versions(self, path: str) -> list[str]:
        ...

    # -- mutations -----------------------------------------------------------

    @abstractmethod
    def create_node(self, path: str, primary_type: str = "repo:Container") -> Node:
        ...

    @abstractmethod
    def delete_node(self, path: str) -> None:
        ...

    @abstractmethod
    def set_property(
        self,
        path: str,
        name: str,
        values: list[PropertyValue],
        multiple: bool = True,
    ) -> None:
        ...

    @abstractmethod
    def remove_property(self, path: str, name: str) -> None:
        ...

    @abstractmethod
    def add_mixin(self, path: str, mixin: str) -> None:
        ...

    @abstractmethod
    def remove_mixin(self, path: str, mixin: str) -> None:
        ...

    @abstractmethod
    def can_add_mixin(self, path: str, mixin: str) -> bool:
        ...

    @abstractmethod
    def create_version(self, path: str, label: str) -> None:
        ...


class AccessPolicy:
    """
    Decides whether a session may mutate a property or type on a node.

    Names are prefixed store names (``ex:title``, ``ex:Image``). Protected
    namespaces are matched by prefix.
    """

    def __init__(
        self,
        protected_names: frozenset[str] = frozenset(),
        protected_prefixes: frozenset[str] = frozenset(),
        read_only_paths: frozenset[str] = frozenset(),
    ):
        self.protected_names = frozenset(protected_names)
        self.protected_prefixes = frozenset(protected_prefixes)
        self.read_only_paths = frozenset(read_only_paths)

    def can_modify(self, path: str, name: str) -> bool:
        if path in self.read_only_paths:
            return False
        if name in self.protected_names:
            return False
        prefix = name.split(":", 1)[0] if ":" in name else ""
        return prefix not in self.protected_prefixes
