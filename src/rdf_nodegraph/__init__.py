"""
rdf-nodegraph: a Linked Data interface to a hierarchical node store.

Nodes with typed properties, organized in a tree and governed by primary
types, mixins and namespaces, are read as lazy RDF triple streams and
written by diffing a desired graph (or applying a SPARQL Update) against
the current one.

    from rdf_nodegraph import Repository, IdentifierTranslator, get_triples

    repo = Repository()
    translator = IdentifierTranslator("http://localhost:8080/rest")
    with repo.session() as session:
        for triple in get_triples(session, "/", translator, ["properties", "children"]):
            print(triple)
"""

__version__ = "0.1.0"

from rdf_nodegraph.config import NodeGraphConfig, TranslationConfig
from rdf_nodegraph.errors import (
    AccessDeniedException,
    IdentifierTranslationError,
    MalformedRdfException,
    NodeGraphError,
    NodeNotFoundError,
    SchemaConstraintViolation,
    ServerManagedPropertyError,
    UnknownCategoryError,
    UnknownTypeError,
)
from rdf_nodegraph.identifiers import IdentifierTranslator
from rdf_nodegraph.models import IRI, BlankNode, Graph, Literal, Triple
from rdf_nodegraph.rdf import (
    Diff,
    DiffReport,
    GraphApplier,
    Problem,
    RdfStream,
    TripleCategory,
    compute_diff,
)
from rdf_nodegraph.resource import (
    canonical_link,
    ensure_node,
    etag,
    get_triples,
    replace_properties,
    update_properties,
    validate_graph,
)
from rdf_nodegraph.sparql import UpdateResolver, parse_update
from rdf_nodegraph.storage import AccessPolicy, Repository, Session, StoreHandle

__all__ = [
    "__version__",
    # Configuration
    "NodeGraphConfig",
    "TranslationConfig",
    # Errors
    "AccessDeniedException",
    "IdentifierTranslationError",
    "MalformedRdfException",
    "NodeGraphError",
    "NodeNotFoundError",
    "SchemaConstraintViolation",
    "ServerManagedPropertyError",
    "UnknownCategoryError",
    "UnknownTypeError",
    # Models
    "IRI",
    "BlankNode",
    "Graph",
    "Literal",
    "Triple",
    # Core
    "IdentifierTranslator",
    "Diff",
    "DiffReport",
    "GraphApplier",
    "Problem",
    "RdfStream",
    "TripleCategory",
    "compute_diff",
    "canonical_link",
    "ensure_node",
    "etag",
    "get_triples",
    "replace_properties",
    "update_properties",
    "validate_graph",
    "UpdateResolver",
    "parse_update",
    # Storage
    "AccessPolicy",
    "Repository",
    "Session",
    "StoreHandle",
]
