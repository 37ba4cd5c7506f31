"""
SPARQL Update support for patching a single resource.

    from rdf_nodegraph.sparql import UpdateResolver

    resolved = UpdateResolver(topic, current).resolve(
        'DELETE { <> dc:title ?t } INSERT { <> dc:title "New" } WHERE { <> dc:title ?t }'
    )
"""

from rdf_nodegraph.sparql.ast import (
    DeleteData,
    DeleteWhere,
    InsertData,
    Modify,
    TriplePattern,
    UpdateRequest,
    Variable,
)
from rdf_nodegraph.sparql.parser import SPARQLUpdateParser, parse_update
from rdf_nodegraph.sparql.resolver import ResolvedUpdate, UpdateResolver, evaluate_bgp

__all__ = [
    "DeleteData",
    "DeleteWhere",
    "InsertData",
    "Modify",
    "TriplePattern",
    "UpdateRequest",
    "Variable",
    "SPARQLUpdateParser",
    "parse_update",
    "ResolvedUpdate",
    "UpdateResolver",
    "evaluate_bgp",
]
