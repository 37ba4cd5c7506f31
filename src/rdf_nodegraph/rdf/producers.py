"""
Triple-category producers.

Each producer describes one aspect of a node as a lazy triple sequence with
the node's URI as subject. Producers read the store when iterated and keep
no state between calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterator, Union

from rdf_nodegraph.identifiers import IdentifierTranslator
from rdf_nodegraph.models import IRI, BlankNode, Literal, Triple
from rdf_nodegraph.rdf.categories import TripleCategory
from rdf_nodegraph.rdf.coercion import format_datetime, value_to_term
from rdf_nodegraph.rdf.namespaces import NamespaceResolver
from rdf_nodegraph.rdf.stream import BlankNodeScope
from rdf_nodegraph.storage.base import StoreHandle
from rdf_nodegraph.storage.nodes import Node, PropertyValue, is_skolem_path
from rdf_nodegraph.storage.schema import PropertyType
from rdf_nodegraph.vocab import (
    CREATED,
    HAS_CHILD_COUNT,
    HAS_PARENT,
    HAS_VERSION,
    INTERNAL_PREFIXES,
    LAST_MODIFIED,
    LDP_CONTAINS,
    RDF_TYPE,
    STORE_TYPE_TO_RDF,
    XSD_DATETIME,
    XSD_INTEGER,
)

logger = logging.getLogger(__name__)

Subject = Union[IRI, BlankNode]


def type_to_uri(name: str, resolver: NamespaceResolver) -> str:
    """Render a store type name through the store -> RDF type mapping."""
    mapped = STORE_TYPE_TO_RDF.get(name)
    if mapped is not None:
        return mapped
    return resolver.to_uri(name)


class TripleProducer(ABC):
    """
    Base class for category producers.

    Args:
        store: Session the node is read from
        path: Store path of the described node
        translator: Converts paths to subject URIs
        blank_nodes: Scope that labels skolemized nodes for this stream
    """

    category: TripleCategory

    def __init__(
        self,
        store: StoreHandle,
        path: str,
        translator: IdentifierTranslator,
        blank_nodes: BlankNodeScope,
    ):
        self.store = store
        self.path = path
        self.translator = translator
        self.blank_nodes = blank_nodes
        self.resolver = NamespaceResolver(store.namespaces, auto_register=False)

    @property
    def topic(self) -> IRI:
        return IRI(self.translator.to_uri(self.path))

    def subject_for(self, path: str) -> Subject:
        if is_skolem_path(path):
            return BlankNode(self.blank_nodes.label_for(path))
        return IRI(self.translator.to_uri(path))

    @abstractmethod
    def produce(self) -> Iterator[Triple]:
        """Lazily yield the triples of this category."""
        pass

    def __iter__(self) -> Iterator[Triple]:
        return self.produce()


class PropertiesProducer(TripleProducer):
    """
    One triple per stored value of every client-visible property.

    Hash resources attached to the node contribute their own properties and
    mixin types, with skolemized nodes rendered as blank nodes.
    """

    category = TripleCategory.PROPERTIES

    def _object_for(self, value: PropertyValue):
        if value.kind == PropertyType.REFERENCE and is_skolem_path(value.value):
            return BlankNode(self.blank_nodes.label_for(value.value))
        return value_to_term(value, self.translator)

    def _describe(self, node: Node, subject: Subject) -> Iterator[Triple]:
        for name, prop in node.properties.items():
            prefix = name.split(":", 1)[0]
            if prefix in INTERNAL_PREFIXES:
                continue
            predicate = IRI(self.resolver.to_uri(name))
            for value in prop.values:
                yield Triple(subject, predicate, self._object_for(value))

    def produce(self) -> Iterator[Triple]:
        node = self.store.get_node(self.path)
        yield from self._describe(node, self.topic)

        rdf_type = IRI(RDF_TYPE)
        for hash_path in self.store.list_hash_nodes(self.path):
            hash_node = self.store.get_node(hash_path)
            subject = self.subject_for(hash_path)
            for mixin in hash_node.mixins:
                yield Triple(subject, rdf_type, IRI(type_to_uri(mixin, self.resolver)))
            yield from self._describe(hash_node, subject)


class TypesProducer(TripleProducer):
    """One rdf:type per declared primary type and mixin."""

    category = TripleCategory.TYPES

    def produce(self) -> Iterator[Triple]:
        node = self.store.get_node(self.path)
        topic = self.topic
        rdf_type = IRI(RDF_TYPE)
        for name in node.declared_types():
            yield Triple(topic, rdf_type, IRI(type_to_uri(name, self.resolver)))


class ChildrenProducer(TripleProducer):
    """
    Child count, plus one ldp:contains per child when listing is requested.

    ``child_limit`` 0 emits only the count, -1 lists every child and a
    positive value lists at most that many.
    """

    category = TripleCategory.CHILDREN

    def __init__(self, *args, child_limit: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        self.child_limit = child_limit

    def produce(self) -> Iterator[Triple]:
        topic = self.topic
        count = self.store.count_children(self.path)
        yield Triple(topic, IRI(HAS_CHILD_COUNT), Literal(str(count), datatype=XSD_INTEGER))

        if self.child_limit == 0 or count == 0:
            return
        contains = IRI(LDP_CONTAINS)
        for child in self.store.list_children(self.path, limit=self.child_limit):
            yield Triple(topic, contains, IRI(self.translator.to_uri(child)))


class VersionsProducer(TripleProducer):
    """One repo:hasVersion per version label."""

    category = TripleCategory.VERSIONS

    def produce(self) -> Iterator[Triple]:
        topic = self.topic
        has_version = IRI(HAS_VERSION)
        for label in self.store.list_versions(self.path):
            yield Triple(topic, has_version, IRI(self.translator.version_uri(self.path, label)))


class ServerManagedProducer(TripleProducer):
    """Timestamps and parent link maintained by the store."""

    category = TripleCategory.SERVER_MANAGED

    def produce(self) -> Iterator[Triple]:
        node = self.store.get_node(self.path)
        topic = self.topic
        if node.created is not None:
            yield Triple(
                topic, IRI(CREATED),
                Literal(format_datetime(node.created), datatype=XSD_DATETIME),
            )
        if node.last_modified is not None:
            yield Triple(
                topic, IRI(LAST_MODIFIED),
                Literal(format_datetime(node.last_modified), datatype=XSD_DATETIME),
            )
        parent = node.parent_path
        if parent is not None:
            yield Triple(topic, IRI(HAS_PARENT), IRI(self.translator.to_uri(parent)))


PRODUCERS: dict[TripleCategory, type[TripleProducer]] = {
    TripleCategory.PROPERTIES: PropertiesProducer,
    TripleCategory.TYPES: TypesProducer,
    TripleCategory.SERVER_MANAGED: ServerManagedProducer,
    TripleCategory.CHILDREN: ChildrenProducer,
    TripleCategory.VERSIONS: VersionsProducer,
}


def create_producer(
    category: TripleCategory,
    store: StoreHandle,
    path: str,
    translator: IdentifierTranslator,
    blank_nodes: BlankNodeScope,
    child_limit: int = 0,
) -> TripleProducer:
    producer_class = PRODUCERS[category]
    logger.debug(f"Producing {category.value} triples for {path}")
    if producer_class is ChildrenProducer:
        return ChildrenProducer(store, path, translator, blank_nodes, child_limit=child_limit)
    return producer_class(store, path, translator, blank_nodes)
