"""
In-memory node repository with session isolation.

A Session works on a private copy of the repository's nodes. Mutations
become visible to other sessions only on commit(), which merges the nodes
the session changed into the committed state; discard() voids all of them.
Namespace and type registrations are repository-wide and append-only, so
they take effect immediately and survive a discard.

Usage:
    repo = Repository()
    with repo.session() as session:
        session.create_node("/books")
        session.set_property("/books", "dc:title", [...])
    # Commits on clean exit, discards on exception
"""

from __future__ import annotations

import copy
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import IntEnum, auto
from threading import RLock
from typing import Generator, Iterator, Optional

from rdf_nodegraph.errors import (
    AccessDeniedException,
    NodeNotFoundError,
    SchemaConstraintViolation,
)
from rdf_nodegraph.storage.base import AccessPolicy, StoreHandle
from rdf_nodegraph.storage.namespaces import NamespaceRegistry
from rdf_nodegraph.storage.nodes import (
    Node,
    Property,
    PropertyValue,
    is_hash_path,
    parent_path,
)
from rdf_nodegraph.storage.schema import PropertyDefinition, SchemaRegistry

logger = logging.getLogger(__name__)

ROOT_PATH = "/"
VERSIONABLE_MIXIN = "repo:Versionable"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(IntEnum):
    """Session lifecycle states."""
    ACTIVE = auto()
    COMMITTED = auto()
    DISCARDED = auto()


class _State:
    """Node contents held by the Repository and copied into each Session."""

    def __init__(self):
        self.nodes: dict[str, Node] = {}
        self.children: dict[str, list[str]] = {}
        self.versions: dict[tuple[str, str], Node] = {}

    def copy(self) -> "_State":
        clone = _State()
        clone.nodes = copy.deepcopy(self.nodes)
        clone.children = {k: list(v) for k, v in self.children.items()}
        clone.versions = dict(self.versions)
        return clone


class _ChangeSet:
    """What a session did, replayed onto the committed state at commit."""

    def __init__(self):
        self.created: list[str] = []
        self.touched: set[str] = set()
        self.deleted: set[str] = set()
        self.versions: list[tuple[str, str]] = []

    def forget(self, path: str) -> None:
        if path in self.created:
            self.created.remove(path)
        self.touched.discard(path)
        self.deleted.add(path)


class Repository:
    """
    Committed state of the node store.

    Commits are serialized by a repository lock and merge only the nodes a
    session changed, so sessions working on different nodes do not overwrite
    each other. Two sessions changing the same node: the last commit wins.
    """

    def __init__(self, supports_references: bool = True):
        self._lock = RLock()
        self._state = _State()
        self._namespaces = NamespaceRegistry()
        self._types = SchemaRegistry()
        self._supports_references = supports_references
        now = _now()
        self._state.nodes[ROOT_PATH] = Node(
            path=ROOT_PATH,
            primary_type="repo:Container",
            created=now,
            last_modified=now,
        )
        self._state.children[ROOT_PATH] = []
        self._commits = 0

    @property
    def namespaces(self) -> NamespaceRegistry:
        return self._namespaces

    @property
    def types(self) -> SchemaRegistry:
        return self._types

    @property
    def supports_references(self) -> bool:
        return self._supports_references

    def begin(self, policy: Optional[AccessPolicy] = None) -> "Session":
        with self._lock:
            return Session(self, self._state.copy(), policy=policy)

    @contextmanager
    def session(
        self, policy: Optional[AccessPolicy] = None
    ) -> Generator["Session", None, None]:
        """Session that commits on clean exit and discards on exception."""
        session = self.begin(policy)
        try:
            yield session
            if session.state == SessionState.ACTIVE:
                session.commit()
        except Exception:
            if session.state == SessionState.ACTIVE:
                session.discard()
            raise

    def _publish(self, state: _State, changes: _ChangeSet) -> None:
        with self._lock:
            committed = self._state
            for path in changes.deleted:
                committed.nodes.pop(path, None)
                committed.children.pop(path, None)
                siblings = committed.children.get(parent_path(path) or "", [])
                if path in siblings:
                    siblings.remove(path)
            for path in changes.created:
                committed.children.setdefault(path, [])
                siblings = committed.children.setdefault(parent_path(path), [])
                if path not in siblings:
                    siblings.append(path)
            for path in set(changes.created) | changes.touched:
                node = copy.deepcopy(state.nodes[path])
                node.is_new = False
                committed.nodes[path] = node
            for key in changes.versions:
                committed.versions[key] = state.versions[key]
            self._commits += 1

    def stats(self) -> dict:
        with self._lock:
            return {
                "nodes": len(self._state.nodes),
                "namespaces": len(self._namespaces),
                "types": len(self._types.type_names()),
                "commits": self._commits,
            }


class Session(StoreHandle):
    """A caller-owned unit of work against a Repository."""

    def __init__(
        self,
        repository: Repository,
        state: _State,
        policy: Optional[AccessPolicy] = None,
    ):
        self._repository = repository
        self._state = state
        self._policy = policy or AccessPolicy()
        self._session_state = SessionState.ACTIVE
        self._transaction_id: Optional[str] = None
        self._mutations = 0
        self._changes = _ChangeSet()

    # -- lifecycle -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session_state

    @property
    def mutations(self) -> int:
        return self._mutations

    @property
    def transaction_id(self) -> Optional[str]:
        return self._transaction_id

    def begin_transaction(self) -> str:
        """Mark this session as a long-running transaction and return its id."""
        if self._transaction_id is None:
            self._transaction_id = uuid.uuid4().hex[:12]
        return self._transaction_id

    def _check_active(self) -> None:
        if self._session_state != SessionState.ACTIVE:
            raise RuntimeError(f"Session is {self._session_state.name}, not ACTIVE")

    def commit(self) -> None:
        self._check_active()
        self._repository._publish(self._state, self._changes)
        self._session_state = SessionState.COMMITTED
        logger.debug(f"Committed session with {self._mutations} mutations")

    def discard(self) -> None:
        self._check_active()
        self._state = _State()
        self._session_state = SessionState.DISCARDED
        logger.debug(f"Discarded session with {self._mutations} mutations")

    # -- capability properties -----------------------------------------------

    @property
    def namespaces(self) -> NamespaceRegistry:
        return self._repository.namespaces

    @property
    def types(self) -> SchemaRegistry:
        return self._repository.types

    @property
    def supports_references(self) -> bool:
        return self._repository.supports_references

    # -- reads ---------------------------------------------------------------

    def _node(self, path: str) -> Node:
        self._check_active()
        node = self._state.nodes.get(path)
        if node is None:
            raise NodeNotFoundError(path)
        return node

    def get_node(self, path: str) -> Node:
        return self._node(path).snapshot()

    def exists(self, path: str) -> bool:
        self._check_active()
        return path in self._state.nodes

    def count_children(self, path: str) -> int:
        self._node(path)
        return sum(
            1 for child in self._state.children.get(path, ())
            if not is_hash_path(child)
        )

    def list_children(self, path: str, limit: int = -1) -> Iterator[str]:
        self._node(path)
        emitted = 0
        for child in list(self._state.children.get(path, ())):
            if is_hash_path(child):
                continue
            if 0 <= limit <= emitted:
                return
            emitted += 1
            yield child

    def list_hash_nodes(self, path: str) -> list[str]:
        self._node(path)
        return [c for c in self._state.children.get(path, ()) if is_hash_path(c)]

    def property_definition(self, path: str, name: str) -> Optional[PropertyDefinition]:
        node = self._node(path)
        types = self.types
        for type_name in node.declared_types():
            for candidate in [type_name] + types.supertypes_of(type_name):
                definition = types.get_type(candidate)
                if definition is None:
                    continue
                prop_def = definition.get_property_definition(name)
                if prop_def is not None:
                    return prop_def
        return None

    def list_versions(self, path: str) -> list[str]:
        return list(self._node(path).versions)

    def get_version(self, path: str, label: str) -> Node:
        self._node(path)
        try:
            return self._state.versions[(path, label)].snapshot()
        except KeyError:
            raise NodeNotFoundError(f"{path}@{label}") from None

    # -- mutations -----------------------------------------------------------

    def _touch(self, node: Node) -> None:
        node.last_modified = _now()
        self._changes.touched.add(node.path)
        self._mutations += 1

    def _check_access(self, path: str, name: str) -> None:
        definition = self.property_definition(path, name)
        if definition is not None and definition.protected:
            raise AccessDeniedException(f"Property {name} is protected on {path}")
        if not self._policy.can_modify(path, name):
            raise AccessDeniedException(f"Not permitted to modify {name} on {path}")

    def create_node(self, path: str, primary_type: str = "repo:Container") -> Node:
        self._check_active()
        if path in self._state.nodes:
            raise ValueError(f"Node already exists at {path!r}")
        parent = parent_path(path)
        if parent is None or parent not in self._state.nodes:
            raise NodeNotFoundError(parent or path)
        if not self.types.has_type(primary_type):
            raise SchemaConstraintViolation(f"Unknown primary type {primary_type}")
        now = _now()
        node = Node(
            path=path,
            primary_type=primary_type,
            created=now,
            last_modified=now,
            is_new=True,
        )
        self._state.nodes[path] = node
        self._state.children.setdefault(parent, []).append(path)
        self._state.children[path] = []
        self._changes.created.append(path)
        self._mutations += 1
        logger.debug(f"Created node {path} ({primary_type})")
        return node.snapshot()

    def delete_node(self, path: str) -> None:
        if path == ROOT_PATH:
            raise SchemaConstraintViolation("The root node cannot be deleted")
        self._node(path)
        pending = [path]
        while pending:
            current = pending.pop()
            pending.extend(self._state.children.pop(current, []))
            self._state.nodes.pop(current, None)
            self._changes.forget(current)
        parent = parent_path(path)
        siblings = self._state.children.get(parent, [])
        if path in siblings:
            siblings.remove(path)
        self._mutations += 1
        logger.debug(f"Deleted node {path}")

    def set_property(
        self,
        path: str,
        name: str,
        values: list[PropertyValue],
        multiple: bool = True,
    ) -> None:
        node = self._node(path)
        self._check_access(path, name)
        if not values:
            raise ValueError(f"Property {name} needs at least one value")
        if not multiple and len(values) > 1:
            raise SchemaConstraintViolation(f"Property {name} is single-valued")
        node.properties[name] = Property(name=name, values=list(values), multiple=multiple)
        self._touch(node)

    def remove_property(self, path: str, name: str) -> None:
        node = self._node(path)
        self._check_access(path, name)
        if node.properties.pop(name, None) is not None:
            self._touch(node)

    def can_add_mixin(self, path: str, mixin: str) -> bool:
        node = self._node(path)
        definition = self.types.get_type(mixin)
        if definition is None or not definition.is_mixin:
            return False
        return mixin != node.primary_type

    def add_mixin(self, path: str, mixin: str) -> None:
        node = self._node(path)
        self._check_access(path, mixin)
        if not self.can_add_mixin(path, mixin):
            raise SchemaConstraintViolation(f"Cannot add mixin {mixin} to {path}")
        if mixin not in node.mixins:
            node.mixins.append(mixin)
            self._touch(node)

    def remove_mixin(self, path: str, mixin: str) -> None:
        node = self._node(path)
        self._check_access(path, mixin)
        if mixin not in node.mixins:
            return
        types = self.types
        for other in node.declared_types():
            if other != mixin and mixin in types.supertypes_of(other):
                raise SchemaConstraintViolation(
                    f"Mixin {mixin} is required by {other} on {path}"
                )
        node.mixins.remove(mixin)
        self._touch(node)

    def create_version(self, path: str, label: str) -> None:
        node = self._node(path)
        if VERSIONABLE_MIXIN not in node.mixins:
            raise SchemaConstraintViolation(f"{path} is not versionable")
        if label in node.versions:
            raise ValueError(f"Version label {label!r} already used on {path}")
        self._state.versions[(path, label)] = node.snapshot()
        node.versions.append(label)
        self._changes.touched.add(path)
        self._changes.versions.append((path, label))
        self._mutations += 1
        logger.info(f"Created version {label!r} of {path}")
