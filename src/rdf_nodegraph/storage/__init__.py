"""
Hierarchical node store.

An in-memory reference implementation of the store capability consumed by
the RDF layer: nodes with typed properties organized in a tree, a node type
system with runtime mixins, and an append-only namespace registry.
"""

from rdf_nodegraph.storage.base import AccessPolicy, StoreHandle
from rdf_nodegraph.storage.namespaces import NamespaceRegistry
from rdf_nodegraph.storage.nodes import Node, Property, PropertyValue
from rdf_nodegraph.storage.schema import (
    NodeTypeDefinition,
    PropertyDefinition,
    PropertyType,
    SchemaRegistry,
)
from rdf_nodegraph.storage.session import Repository, Session, SessionState

__all__ = [
    "AccessPolicy",
    "StoreHandle",
    "NamespaceRegistry",
    "Node",
    "Property",
    "PropertyValue",
    "NodeTypeDefinition",
    "PropertyDefinition",
    "PropertyType",
    "SchemaRegistry",
    "Repository",
    "Session",
    "SessionState",
]
