"""
Best-effort application of a Diff to the node store.

Statements are applied one at a time in five passes: type removals, type
additions, property value removals, property value additions, then pruning
of skolem nodes left empty. A statement that fails is recorded as a Problem
in the DiffReport and the remaining statements are still applied. The
applier never commits or discards the session.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from rdf_nodegraph.errors import (
    AccessDeniedException,
    MalformedRdfException,
    NodeNotFoundError,
    SchemaConstraintViolation,
    ServerManagedPropertyError,
    UnknownTypeError,
)
from rdf_nodegraph.identifiers import IdentifierTranslator
from rdf_nodegraph.models import IRI, BlankNode, Literal, Term, Triple
from rdf_nodegraph.rdf.coercion import iri_to_value, literal_to_value, value_to_term
from rdf_nodegraph.rdf.diff import Diff, DiffReport
from rdf_nodegraph.rdf.namespaces import NamespaceResolver
from rdf_nodegraph.storage.base import StoreHandle
from rdf_nodegraph.storage.nodes import (
    SKOLEM_PREFIX,
    PropertyValue,
    hash_path,
    is_skolem_path,
)
from rdf_nodegraph.storage.schema import PropertyType
from rdf_nodegraph.vocab import RDF_TYPE_TO_STORE, is_server_managed

logger = logging.getLogger(__name__)

HASH_RESOURCE_TYPE = "repo:HashResource"

# Errors recorded per statement instead of aborting the apply
STATEMENT_ERRORS = (MalformedRdfException, AccessDeniedException, SchemaConstraintViolation)


class GraphApplier:
    """
    Applies diffs to one node and its hash resources.

    Args:
        store: Caller-owned session
        path: Store path of the resource being written
        translator: Converts subject and object URIs to store paths
        namespaces: Prefix declarations of the incoming graph, preferred
            when a namespace has to be registered
        auto_register_types: Register unknown rdf:type objects as mixins
        auto_register_namespaces: Register unknown namespaces on demand
    """

    def __init__(
        self,
        store: StoreHandle,
        path: str,
        translator: IdentifierTranslator,
        namespaces: Optional[dict[str, str]] = None,
        auto_register_types: bool = True,
        auto_register_namespaces: bool = True,
    ):
        self.store = store
        self.path = path
        self.translator = translator
        self.auto_register_types = auto_register_types
        self.resolver = NamespaceResolver(
            store.namespaces,
            declared=namespaces,
            auto_register=auto_register_namespaces,
        )
        self._report = DiffReport()
        self._fresh_nodes: dict[str, str] = {}
        self._diff = Diff()

    def apply(self, diff: Diff) -> DiffReport:
        """Apply ``diff`` and return the report with the refreshed node."""
        self._report = DiffReport()
        self._fresh_nodes = {}
        self._diff = diff

        logger.info(
            f"Applying diff to {self.path}: +{len(diff.to_add)} -{len(diff.to_remove)}"
        )
        for triple in diff.remove_types:
            self._guarded(self._remove_type, triple)
        for triple in diff.add_types:
            self._guarded(self._add_type, triple)
        for triple in diff.remove_properties:
            self._guarded(self._remove_property_value, triple)
        for triple in diff.add_properties:
            self._guarded(self._add_property_value, triple)
        self._prune_skolem_nodes()

        self._report.node = self.store.get_node(self.path)
        logger.info(
            f"Applied diff to {self.path}: {self._report.mutations} mutations, "
            f"{len(self._report.problems)} problems"
        )
        return self._report

    def _guarded(self, step, triple: Triple) -> None:
        try:
            step(triple)
        except STATEMENT_ERRORS as e:
            self._report.record(triple, e)

    # -- subjects ------------------------------------------------------------

    def _owns(self, path: str) -> bool:
        return path == self.path or path.startswith(hash_path(self.path, ""))

    def _resource_path(self, iri: IRI) -> str:
        if not self.translator.in_domain(iri.value):
            raise MalformedRdfException(f"{iri.n3()} is not part of {self.path}")
        path = self.translator.to_path(iri.value)
        if not self._owns(path):
            raise MalformedRdfException(f"{iri.n3()} is not part of {self.path}")
        return path

    def _removal_path(self, term: Term) -> Optional[str]:
        """Store path of a subject or object in a removed statement."""
        if isinstance(term, BlankNode):
            return self._diff.removal_nodes.get(term.label)
        return self._resource_path(term)

    def _addition_path(self, term: Term) -> str:
        """Store path of a subject or object in an added statement, created if missing."""
        if isinstance(term, BlankNode):
            path = self._diff.addition_nodes.get(term.label) or self._fresh_nodes.get(term.label)
            if path is None:
                fragment = f"{SKOLEM_PREFIX}{uuid.uuid4().hex[:12]}"
                path = hash_path(self.path, fragment)
                self._fresh_nodes[term.label] = path
        else:
            path = self._resource_path(term)
        if not self.store.exists(path):
            self.store.create_node(path, HASH_RESOURCE_TYPE)
            self._report.mutations += 1
            logger.debug(f"Created hash resource {path}")
        return path

    # -- types ---------------------------------------------------------------

    def _type_name(self, triple: Triple, register: bool) -> Optional[str]:
        obj = triple.object
        if not isinstance(obj, IRI):
            raise MalformedRdfException(f"rdf:type object must be a URI: {obj.n3()}")
        mapped = RDF_TYPE_TO_STORE.get(obj.value)
        if mapped is not None:
            return mapped
        if register:
            return self.resolver.to_store_name(obj.value)
        return self.resolver.lookup(obj.value)

    def _remove_type(self, triple: Triple) -> None:
        path = self._removal_path(triple.subject)
        name = self._type_name(triple, register=False)
        if path is None or name is None or not self.store.exists(path):
            return
        node = self.store.get_node(path)
        if name not in node.mixins:
            logger.debug(f"Not removing {name} from {path}: not a mixin of the node")
            return
        self.store.remove_mixin(path, name)
        self._report.mutations += 1
        logger.debug(f"Removed mixin {name} from {path}")

    def _add_type(self, triple: Triple) -> None:
        path = self._addition_path(triple.subject)
        name = self._type_name(triple, register=True)
        node = self.store.get_node(path)
        types = self.store.types

        if types.has_type(name) and any(
            types.is_subtype(declared, name) for declared in node.declared_types()
        ):
            logger.debug(f"{path} already is of type {name}")
            return

        if not types.has_type(name):
            if not self.auto_register_types:
                raise UnknownTypeError(f"Unknown type {name} and type registration is disabled")
            types.register_mixin(name)

        if not self.store.can_add_mixin(path, name):
            raise MalformedRdfException(f"Cannot add mixin {name} to {path}")
        self.store.add_mixin(path, name)
        self._report.mutations += 1
        logger.debug(f"Added mixin {name} to {path}")

    # -- properties ----------------------------------------------------------

    def _matches(self, stored: PropertyValue, term: Term) -> bool:
        if isinstance(term, BlankNode):
            target = self._diff.removal_nodes.get(term.label)
            return stored.kind == PropertyType.REFERENCE and stored.value == target
        if stored.kind == PropertyType.REFERENCE and is_skolem_path(stored.value):
            return False
        return value_to_term(stored, self.translator) == term

    def _remove_property_value(self, triple: Triple) -> None:
        if is_server_managed(triple.predicate.value):
            return
        path = self._removal_path(triple.subject)
        name = self.resolver.lookup(triple.predicate.value)
        if path is None or name is None or not self.store.exists(path):
            return

        node = self.store.get_node(path)
        prop = node.properties.get(name)
        if prop is None:
            return
        remaining = [v for v in prop.values if not self._matches(v, triple.object)]
        if len(remaining) == len(prop.values):
            return

        if remaining:
            self.store.set_property(path, name, remaining, multiple=prop.multiple)
        else:
            self.store.remove_property(path, name)
        self._report.mutations += 1
        logger.debug(f"Removed {triple.object.n3()} from {name} on {path}")

    def _coerce(self, path: str, name: str, term: Term) -> tuple[PropertyValue, bool]:
        definition = self.store.property_definition(path, name)
        required = definition.required_type if definition is not None else PropertyType.UNDEFINED
        multiple = definition.multiple if definition is not None else True

        if isinstance(term, Literal):
            return literal_to_value(term, required), multiple
        if isinstance(term, BlankNode):
            if required not in (PropertyType.UNDEFINED, PropertyType.REFERENCE):
                raise MalformedRdfException(
                    f"Blank node cannot be stored in a {required.value} property"
                )
            target = self._addition_path(term)
            return PropertyValue(kind=PropertyType.REFERENCE, value=target), multiple
        return iri_to_value(term, required, self.translator, self.store), multiple

    def _add_property_value(self, triple: Triple) -> None:
        predicate = triple.predicate.value
        if is_server_managed(predicate):
            raise ServerManagedPropertyError(
                f"Could not persist triple containing predicate {predicate} "
                f"to node {self.path}: the predicate is managed by the repository"
            )
        path = self._addition_path(triple.subject)
        name = self.resolver.to_store_name(predicate)
        value, multiple = self._coerce(path, name, triple.object)

        node = self.store.get_node(path)
        prop = node.properties.get(name)
        existing = list(prop.values) if prop is not None else []
        if value in existing:
            logger.debug(f"{name} on {path} already holds {triple.object.n3()}")
            return

        values = existing + [value] if multiple else [value]
        self.store.set_property(path, name, values, multiple=multiple)
        self._report.mutations += 1
        logger.debug(f"Set {name} on {path} to {len(values)} value(s)")

    # -- cleanup -------------------------------------------------------------

    def _prune_skolem_nodes(self) -> None:
        """Delete skolem nodes that no longer carry or receive any statement."""
        try:
            hash_nodes = self.store.list_hash_nodes(self.path)
        except NodeNotFoundError:
            return

        referenced = set()
        for path in [self.path] + hash_nodes:
            for prop in self.store.get_node(path).properties.values():
                for value in prop.values:
                    if value.kind == PropertyType.REFERENCE:
                        referenced.add(value.value)

        for path in hash_nodes:
            if not is_skolem_path(path) or path in referenced:
                continue
            node = self.store.get_node(path)
            if node.properties or node.mixins:
                continue
            self.store.delete_node(path)
            self._report.mutations += 1
            logger.debug(f"Pruned empty blank node {path}")
