"""
Read and write contracts for resources.

    stream = get_triples(session, "/books/1", translator, [TripleCategory.PROPERTIES])
    report = replace_properties(session, "/books/1", translator, desired, current)
    report = update_properties(session, "/books/1", translator, sparql, current)

Writes are best-effort: the returned DiffReport lists statements that could
not be applied and the caller decides whether to commit its session.
"""

from __future__ import annotations

import hashlib
import itertools
import logging
from typing import Iterable, Optional, Union

from rdf_nodegraph.config import TranslationConfig
from rdf_nodegraph.errors import (
    AccessDeniedException,
    IdentifierTranslationError,
    MalformedRdfException,
    NodeNotFoundError,
)
from rdf_nodegraph.identifiers import IdentifierTranslator
from rdf_nodegraph.models import IRI, BlankNode, Graph, Literal, Triple
from rdf_nodegraph.rdf.apply import GraphApplier
from rdf_nodegraph.rdf.categories import CategoryLike, resolve_categories
from rdf_nodegraph.rdf.diff import Diff, DiffReport, compute_diff
from rdf_nodegraph.rdf.producers import create_producer
from rdf_nodegraph.rdf.stream import BlankNodeScope, RdfStream
from rdf_nodegraph.sparql.resolver import UpdateResolver
from rdf_nodegraph.storage.base import StoreHandle
from rdf_nodegraph.storage.nodes import HASH_SEGMENT, Node, join_path, parent_path

logger = logging.getLogger(__name__)

PAIRTREE_TYPE = "repo:Pairtree"
CONTAINER_TYPE = "repo:Container"

CurrentTriples = Union[RdfStream, Iterable[Triple]]


# =============================================================================
# Reads
# =============================================================================

def get_triples(
    store: StoreHandle,
    path: str,
    translator: IdentifierTranslator,
    categories: Union[CategoryLike, Iterable[CategoryLike]],
    *,
    child_limit: int = 0,
) -> RdfStream:
    """
    Describe the node at ``path`` as a lazy stream of the requested categories.

    Categories are concatenated in list order (a set is put in canonical
    order). The store is read when the stream is iterated.

    Raises:
        UnknownCategoryError: For a category no producer handles
        NodeNotFoundError: If there is no node at ``path``
    """
    ordered = resolve_categories(categories)
    if not store.exists(path):
        raise NodeNotFoundError(path)

    scope = BlankNodeScope()
    producers = [
        create_producer(category, store, path, translator, scope, child_limit=child_limit)
        for category in ordered
    ]
    return RdfStream(
        IRI(translator.to_uri(path)),
        itertools.chain.from_iterable(producers),
        namespaces=store.namespaces.to_dict(),
        blank_nodes=scope,
    )


def etag(node: Node) -> str:
    """Weak validator over the node's path and modification time."""
    modified = node.last_modified.isoformat() if node.last_modified is not None else ""
    digest = hashlib.sha1(f"{node.path}{modified}".encode("utf-8")).hexdigest()
    return f'W/"{digest}"'


def canonical_link(uri: str) -> str:
    """Link header value pointing at the transaction-free form of ``uri``."""
    return f'<{IdentifierTranslator.canonicalize(uri)}>; rel="canonical"'


# =============================================================================
# Writes
# =============================================================================

def ensure_node(store: StoreHandle, path: str, primary_type: str = CONTAINER_TYPE) -> bool:
    """
    Create the node at ``path`` if missing, with pairtree nodes for absent ancestors.

    Returns:
        True if the node was created
    """
    if store.exists(path):
        return False
    IdentifierTranslator.validate_path(path)
    if HASH_SEGMENT in path.split("/"):
        raise MalformedRdfException(f"Hash resources cannot be created directly: {path}")

    missing = []
    ancestor = parent_path(path)
    while ancestor is not None and not store.exists(ancestor):
        missing.append(ancestor)
        ancestor = parent_path(ancestor)
    for ancestor in reversed(missing):
        store.create_node(ancestor, PAIRTREE_TYPE)
    store.create_node(path, primary_type)
    logger.info(f"Created {path} ({primary_type}) with {len(missing)} intermediate node(s)")
    return True


def validate_graph(triples: Iterable[Triple], path: str, translator: IdentifierTranslator) -> None:
    """
    Check that every statement is structurally writable to the resource.

    Subjects must be the resource, one of its hash URIs or a blank node;
    predicates must be absolute IRIs; literals cannot be subjects.

    Raises:
        MalformedRdfException: On the first offending statement
    """
    own_hash_prefix = join_path(path, HASH_SEGMENT) + "/"
    for triple in triples:
        subject, predicate = triple.subject, triple.predicate
        if isinstance(subject, Literal):
            raise MalformedRdfException(f"Literal subject in {triple}")
        if not isinstance(predicate, IRI) or ":" not in predicate.value:
            raise MalformedRdfException(f"Predicate must be an absolute IRI in {triple}")
        if isinstance(subject, BlankNode):
            continue
        if not translator.in_domain(subject.value):
            raise MalformedRdfException(f"Subject {subject.n3()} is outside this repository")
        try:
            subject_path = translator.to_path(subject.value)
        except IdentifierTranslationError as e:
            raise MalformedRdfException(f"Invalid subject {subject.n3()}: {e}") from e
        if subject_path != path and not subject_path.startswith(own_hash_prefix):
            raise MalformedRdfException(
                f"Subject {subject.n3()} is neither {path} nor one of its hash resources"
            )


def _raise_if_denied(report: DiffReport) -> DiffReport:
    denied = report.access_denied
    if denied:
        raise AccessDeniedException(
            f"{len(denied)} statement(s) could not be written: {denied[0].reason}",
            report=report,
        )
    return report


def _applier(
    store: StoreHandle,
    path: str,
    translator: IdentifierTranslator,
    namespaces: dict[str, str],
    config: Optional[TranslationConfig],
) -> GraphApplier:
    config = config or TranslationConfig()
    return GraphApplier(
        store,
        path,
        translator,
        namespaces=namespaces,
        auto_register_types=config.auto_register_types,
        auto_register_namespaces=config.auto_register_namespaces,
    )


def replace_properties(
    store: StoreHandle,
    path: str,
    translator: IdentifierTranslator,
    desired: Union[Graph, Iterable[Triple]],
    current: CurrentTriples,
    config: Optional[TranslationConfig] = None,
) -> DiffReport:
    """
    Make the resource's writable triples equal to ``desired``.

    ``current`` should be the resource's properties and types as produced by
    get_triples(); statements only in ``current`` are removed.

    Raises:
        MalformedRdfException: If ``desired`` is structurally invalid (before
            any mutation)
        AccessDeniedException: After apply, if any statement was refused;
            the report is attached
    """
    graph = desired if isinstance(desired, Graph) else Graph.from_triples(desired)
    validate_graph(graph, path, translator)

    diff = compute_diff(current, graph)
    report = _applier(store, path, translator, graph.namespaces, config).apply(diff)
    return _raise_if_denied(report)


def update_properties(
    store: StoreHandle,
    path: str,
    translator: IdentifierTranslator,
    update_text: str,
    current: CurrentTriples,
    config: Optional[TranslationConfig] = None,
) -> DiffReport:
    """
    Apply a SPARQL Update to the resource.

    The update is resolved against ``current`` into explicit add/remove
    sets which are applied without a full diff.

    Raises:
        MalformedRdfException: If the update does not parse or resolve
        AccessDeniedException: After apply, if any statement was refused;
            the report is attached
    """
    current_triples = list(current)
    # Labels are allocated while the stream is consumed
    blank_nodes = current.blank_nodes.mapping() if isinstance(current, RdfStream) else {}

    topic = IRI(translator.to_uri(path))
    resolved = UpdateResolver(topic, current_triples).resolve(update_text)
    validate_graph(resolved.to_add, path, translator)

    diff = Diff(
        to_add=resolved.to_add,
        to_remove=resolved.to_remove,
        removal_nodes=blank_nodes,
        addition_nodes=blank_nodes,
    )
    report = _applier(store, path, translator, resolved.namespaces, config).apply(diff)
    return _raise_if_denied(report)
