"""
RDF serialization formats.

Supports:
- N-Triples (.nt)
"""

from rdf_nodegraph.formats.ntriples import (
    NTriplesParser,
    NTriplesSerializer,
    parse_ntriples,
    serialize_ntriples,
)

__all__ = [
    "NTriplesParser",
    "NTriplesSerializer",
    "parse_ntriples",
    "serialize_ntriples",
]
