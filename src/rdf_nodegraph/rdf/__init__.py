"""
RDF translation layer.

Category producers render nodes as lazy triple streams; the diff/apply
engine turns a desired graph into mutations of the node store.
"""

from rdf_nodegraph.rdf.apply import GraphApplier
from rdf_nodegraph.rdf.categories import TripleCategory, resolve_categories
from rdf_nodegraph.rdf.diff import Diff, DiffReport, Problem, compute_diff
from rdf_nodegraph.rdf.namespaces import NamespaceResolver, split_uri
from rdf_nodegraph.rdf.producers import PRODUCERS, TripleProducer, create_producer
from rdf_nodegraph.rdf.stream import BlankNodeScope, RdfStream, triples_to_frame

__all__ = [
    "GraphApplier",
    "TripleCategory",
    "resolve_categories",
    "Diff",
    "DiffReport",
    "Problem",
    "compute_diff",
    "NamespaceResolver",
    "split_uri",
    "PRODUCERS",
    "TripleProducer",
    "create_producer",
    "BlankNodeScope",
    "RdfStream",
    "triples_to_frame",
]
