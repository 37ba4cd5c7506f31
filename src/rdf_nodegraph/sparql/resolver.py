"""
Resolution of SPARQL Update requests into explicit add/remove sets.

Operations run in order against a working copy of the resource's current
triples. WHERE clauses are basic graph patterns evaluated with polars:
each pattern becomes a frame of bindings, and frames are joined on their
shared variables (cross join when they share none). The resolved sets are
the net difference between the final working copy and the current triples.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union
from urllib.parse import urljoin

import polars as pl

from rdf_nodegraph.errors import MalformedRdfException
from rdf_nodegraph.models import IRI, BlankNode, Literal, Term, Triple
from rdf_nodegraph.rdf.stream import RdfStream, triples_to_frame
from rdf_nodegraph.sparql.ast import (
    DatatypedLiteral,
    DeleteData,
    DeleteWhere,
    InsertData,
    Modify,
    Operation,
    PrefixedName,
    RelativeIRI,
    TriplePattern,
    UpdateRequest,
    Variable,
)
from rdf_nodegraph.sparql.parser import parse_update

logger = logging.getLogger(__name__)

POSITIONS = ("subject", "predicate", "object")
BLANK_VARIABLE_PREFIX = "_bnode_"

Solution = dict[str, Term]


@dataclass
class ResolvedUpdate:
    """Disjoint statements to add and remove, plus prefixes the request declared."""
    to_add: list[Triple] = field(default_factory=list)
    to_remove: list[Triple] = field(default_factory=list)
    namespaces: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


class UpdateResolver:
    """
    Resolves update requests against one resource's current triples.

    Args:
        topic: URI of the resource; the base for relative IRIs (<> is the
            resource itself) when the request declares no BASE
        current: The resource's current triples, the default graph of every
            WHERE clause
    """

    def __init__(self, topic: IRI, current: Union[RdfStream, Iterable[Triple]]):
        self.topic = topic
        self.current = list(dict.fromkeys(current))

    def resolve(self, update: Union[str, UpdateRequest]) -> ResolvedUpdate:
        """
        Resolve ``update`` into the net statements to add and remove.

        Raises:
            MalformedRdfException: On unparsable text, undefined prefixes or
                template variables the WHERE clause does not bind
        """
        request = parse_update(update) if isinstance(update, str) else update

        working: dict[Triple, None] = dict.fromkeys(self.current)
        namespaces: dict[str, str] = {}
        for index, op in enumerate(request.operations):
            namespaces.update(op.prefixes)
            self._run(index, op, working)

        current = set(self.current)
        result = ResolvedUpdate(
            to_add=[t for t in working if t not in current],
            to_remove=[t for t in self.current if t not in working],
            namespaces=namespaces,
        )
        logger.debug(
            f"Resolved {len(request.operations)} update operation(s) on {self.topic}: "
            f"+{len(result.to_add)} -{len(result.to_remove)}"
        )
        return result

    # -- operations ----------------------------------------------------------

    def _run(self, index: int, op: Operation, working: dict[Triple, None]) -> None:
        if isinstance(op, InsertData):
            for pattern in op.triples:
                triple = self._ground(op, pattern, {}, fresh=f"u{index}r0")
                working[triple] = None
            return

        if isinstance(op, DeleteData):
            for pattern in op.triples:
                working.pop(self._ground(op, pattern, {}, fresh=None), None)
            return

        if isinstance(op, DeleteWhere):
            where, delete, insert = op.patterns, op.patterns, []
        elif isinstance(op, Modify):
            where, delete, insert = op.where, op.delete or [], op.insert or []
        else:
            raise MalformedRdfException(f"Unsupported update operation {type(op).__name__}")

        bound = set().union(*(p.variables() for p in where)) if where else set()
        for template in (delete, insert):
            unbound = set().union(*(p.variables() for p in template)) - bound if template else set()
            if unbound:
                names = ", ".join(f"?{n}" for n in sorted(unbound))
                raise MalformedRdfException(f"Template variable(s) {names} not bound by WHERE")

        solutions = evaluate_bgp([self._pattern(op, p) for p in where], list(working))

        removals, additions = [], []
        for row, solution in enumerate(solutions):
            for pattern in delete:
                triple = self._instantiate(op, pattern, solution, fresh=None)
                if triple is not None:
                    removals.append(triple)
            for pattern in insert:
                triple = self._instantiate(op, pattern, solution, fresh=f"u{index}r{row}")
                if triple is not None:
                    additions.append(triple)

        for triple in removals:
            working.pop(triple, None)
        for triple in additions:
            working[triple] = None

    # -- terms ---------------------------------------------------------------

    def _resolve_term(self, op: Operation, term, fresh: Optional[str]):
        """Resolve prefixed names, relative IRIs and template blank nodes."""
        if isinstance(term, PrefixedName):
            namespace = op.prefixes.get(term.prefix)
            if namespace is None:
                raise MalformedRdfException(f"Undefined prefix {term.prefix!r} in {term}")
            return IRI(namespace + term.local)
        if isinstance(term, RelativeIRI):
            base = op.base or self.topic.value
            return IRI(urljoin(base, term.value) if term.value else base)
        if isinstance(term, DatatypedLiteral):
            datatype = self._resolve_term(op, term.datatype, fresh)
            return Literal(term.value, datatype=datatype.value)
        if isinstance(term, BlankNode) and fresh is not None:
            return BlankNode(f"{fresh}{term.label}")
        return term

    def _pattern(self, op: Operation, pattern: TriplePattern) -> TriplePattern:
        """WHERE pattern with IRIs resolved and blank nodes turned into variables."""
        terms = []
        for term in pattern.terms():
            if isinstance(term, BlankNode):
                terms.append(Variable(BLANK_VARIABLE_PREFIX + term.label))
            else:
                terms.append(self._resolve_term(op, term, None))
        return TriplePattern(*terms)

    def _instantiate(
        self,
        op: Operation,
        pattern: TriplePattern,
        solution: Solution,
        fresh: Optional[str],
    ) -> Optional[Triple]:
        terms = []
        for term in pattern.terms():
            if isinstance(term, Variable):
                terms.append(solution[term.name])
            else:
                terms.append(self._resolve_term(op, term, fresh))
        subject, predicate, obj = terms
        # Solutions that produce an ill-formed triple are skipped
        if isinstance(subject, Literal) or not isinstance(predicate, IRI):
            return None
        return Triple(subject, predicate, obj)

    def _ground(
        self,
        op: Operation,
        pattern: TriplePattern,
        solution: Solution,
        fresh: Optional[str],
    ) -> Triple:
        triple = self._instantiate(op, pattern, solution, fresh)
        if triple is None:
            raise MalformedRdfException(f"Ill-formed triple in {type(op).__name__}: {pattern}")
        return triple


def evaluate_bgp(patterns: list[TriplePattern], triples: list[Triple]) -> list[Solution]:
    """
    Evaluate a basic graph pattern and return one binding dict per solution.

    An empty pattern list has exactly one, empty, solution.
    """
    if not patterns:
        return [{}]

    frame = triples_to_frame(triples)
    lookup: dict[str, Term] = {}
    for t in triples:
        for term in (t.subject, t.predicate, t.object):
            lookup[term.n3()] = term

    result: Optional[pl.DataFrame] = None
    for pattern in patterns:
        matches = frame
        first_position: dict[str, str] = {}
        for position, term in zip(POSITIONS, pattern.terms()):
            if isinstance(term, Variable):
                if term.name in first_position:
                    matches = matches.filter(pl.col(position) == pl.col(first_position[term.name]))
                else:
                    first_position[term.name] = position
            else:
                matches = matches.filter(pl.col(position) == term.n3())

        if matches.height == 0:
            return []
        if not first_position:
            continue

        bindings = matches.select(
            [pl.col(position).alias(name) for name, position in first_position.items()]
        ).unique(maintain_order=True)

        if result is None:
            result = bindings
        else:
            shared = [c for c in bindings.columns if c in result.columns]
            if shared:
                result = result.join(bindings, on=shared, how="inner")
            else:
                result = result.join(bindings, how="cross")
        if result.height == 0:
            return []

    if result is None:
        return [{}]
    return [
        {name: lookup[value] for name, value in row.items()}
        for row in result.unique(maintain_order=True).iter_rows(named=True)
    ]
