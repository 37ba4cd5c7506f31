"""
Graph differences and the report of applying them.

compute_diff() tabulates both graphs as polars frames of N-Triples keys and
takes anti-joins in each direction. Blank nodes are keyed by a structural
signature of their outgoing statements rather than by label, since labels
are not portable between graphs.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

import polars as pl

from rdf_nodegraph.errors import AccessDeniedException, MalformedRdfException
from rdf_nodegraph.models import BlankNode, Graph, Term, Triple
from rdf_nodegraph.rdf.stream import TRIPLE_SCHEMA, RdfStream
from rdf_nodegraph.storage.nodes import Node

logger = logging.getLogger(__name__)

KEY_COLUMNS = ["subject", "predicate", "object"]


# =============================================================================
# Problems and reports
# =============================================================================

@dataclass
class Problem:
    """A statement that could not be applied, with the reason."""
    triple: Triple
    reason: str
    error: Exception

    @property
    def fatal(self) -> bool:
        return isinstance(self.error, MalformedRdfException)

    @property
    def access_denied(self) -> bool:
        return isinstance(self.error, AccessDeniedException)

    def to_dict(self) -> dict:
        return {
            "triple": str(self.triple),
            "reason": self.reason,
            "error": type(self.error).__name__,
        }


@dataclass
class DiffReport:
    """
    Outcome of applying a diff.

    The store is left partially updated when problems are present; the
    caller owning the session decides whether to commit.
    """
    node: Optional[Node] = None
    problems: list[Problem] = field(default_factory=list)
    mutations: int = 0

    def record(self, triple: Triple, error: Exception) -> None:
        problem = Problem(triple=triple, reason=str(error), error=error)
        self.problems.append(problem)
        logger.warning(f"Problem applying {triple}: {type(error).__name__}: {error}")

    @property
    def has_fatal(self) -> bool:
        return any(p.fatal for p in self.problems)

    @property
    def access_denied(self) -> list[Problem]:
        return [p for p in self.problems if p.access_denied]

    @property
    def is_empty(self) -> bool:
        return not self.problems and self.mutations == 0

    def to_dict(self) -> dict:
        return {
            "path": self.node.path if self.node is not None else None,
            "mutations": self.mutations,
            "has_fatal": self.has_fatal,
            "problems": [p.to_dict() for p in self.problems],
        }


# =============================================================================
# Diffs
# =============================================================================

@dataclass
class Diff:
    """
    Disjoint sets of statements to add and to remove.

    Attributes:
        to_add: Statements to add, in order
        to_remove: Statements to remove, in order
        removal_nodes: Blank node label -> store path for labels in to_remove
        addition_nodes: Blank node label -> store path for labels in to_add
            that denote nodes already in the store; other labels get fresh
            skolem nodes
    """
    to_add: list[Triple] = field(default_factory=list)
    to_remove: list[Triple] = field(default_factory=list)
    removal_nodes: dict[str, str] = field(default_factory=dict)
    addition_nodes: dict[str, str] = field(default_factory=dict)

    @property
    def add_types(self) -> list[Triple]:
        return [t for t in self.to_add if t.is_type_statement]

    @property
    def add_properties(self) -> list[Triple]:
        return [t for t in self.to_add if not t.is_type_statement]

    @property
    def remove_types(self) -> list[Triple]:
        return [t for t in self.to_remove if t.is_type_statement]

    @property
    def remove_properties(self) -> list[Triple]:
        return [t for t in self.to_remove if not t.is_type_statement]

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove

    def __len__(self) -> int:
        return len(self.to_add) + len(self.to_remove)


def blank_node_signatures(triples: list[Triple]) -> dict[str, str]:
    """
    Structural signature of every blank node subject or object.

    The signature hashes the sorted outgoing (predicate, object) pairs,
    recursing into blank node objects. Cycles hash to a fixed marker.
    """
    outgoing: dict[str, list[Triple]] = {}
    labels: list[str] = []
    for triple in triples:
        for term in (triple.subject, triple.object):
            if isinstance(term, BlankNode) and term.label not in outgoing:
                outgoing[term.label] = []
                labels.append(term.label)
        if isinstance(triple.subject, BlankNode):
            outgoing[triple.subject.label].append(triple)

    signatures: dict[str, str] = {}

    def signature(label: str, visiting: frozenset) -> str:
        if label in signatures:
            return signatures[label]
        if label in visiting:
            return "cycle"
        parts = []
        for t in outgoing[label]:
            obj = t.object
            if isinstance(obj, BlankNode):
                obj_key = "_:" + signature(obj.label, visiting | {label})
            else:
                obj_key = obj.n3()
            parts.append(f"{t.predicate.n3()} {obj_key}")
        digest = hashlib.sha1("\n".join(sorted(parts)).encode("utf-8")).hexdigest()
        if not visiting:
            signatures[label] = digest
        return digest

    for label in labels:
        signatures[label] = signature(label, frozenset())
    return signatures


def _key(term: Term, signatures: dict[str, str]) -> str:
    if isinstance(term, BlankNode):
        return "_:" + signatures[term.label]
    return term.n3()


def _keyed_frame(triples: list[Triple], signatures: dict[str, str]) -> pl.DataFrame:
    if not triples:
        return pl.DataFrame(schema={**TRIPLE_SCHEMA, "idx": pl.Int64})
    return pl.DataFrame(
        {
            "subject": [_key(t.subject, signatures) for t in triples],
            "predicate": [t.predicate.n3() for t in triples],
            "object": [_key(t.object, signatures) for t in triples],
            "idx": list(range(len(triples))),
        },
        schema={**TRIPLE_SCHEMA, "idx": pl.Int64},
    )


def _anti(left: pl.DataFrame, right: pl.DataFrame) -> list[int]:
    missing = left.join(right.select(KEY_COLUMNS).unique(), on=KEY_COLUMNS, how="anti")
    return sorted(missing["idx"].to_list())


def compute_diff(
    current: Union[RdfStream, Iterable[Triple]],
    desired: Union[Graph, Iterable[Triple]],
    current_blank_nodes: Optional[dict[str, str]] = None,
) -> Diff:
    """
    Full-replacement diff: ``desired - current`` and ``current - desired``.

    Args:
        current: Statements now in the store. If an RdfStream, its blank
            node scope supplies the store paths of its labels.
        desired: Statements the resource should end up with
        current_blank_nodes: Label -> path map when ``current`` is a plain
            iterable

    Returns:
        Diff whose to_add keeps desired order and to_remove keeps current order
    """
    if isinstance(current, RdfStream):
        scope = current.blank_nodes
        current_triples = list(dict.fromkeys(current))
        removal_nodes = scope.mapping()
    else:
        current_triples = list(dict.fromkeys(current))
        removal_nodes = dict(current_blank_nodes or {})
    desired_triples = list(desired) if isinstance(desired, Graph) else list(dict.fromkeys(desired))

    current_sigs = blank_node_signatures(current_triples)
    desired_sigs = blank_node_signatures(desired_triples)

    current_frame = _keyed_frame(current_triples, current_sigs)
    desired_frame = _keyed_frame(desired_triples, desired_sigs)

    to_add = [desired_triples[i] for i in _anti(desired_frame, current_frame)]
    to_remove = [current_triples[i] for i in _anti(current_frame, desired_frame)]

    # Desired blank nodes structurally equal to a stored one reuse its node
    by_signature = {
        sig: removal_nodes[label]
        for label, sig in current_sigs.items()
        if label in removal_nodes
    }
    addition_nodes = {
        label: by_signature[sig]
        for label, sig in desired_sigs.items()
        if sig in by_signature
    }

    logger.debug(
        f"Diff of {len(current_triples)} current and {len(desired_triples)} desired "
        f"statements: +{len(to_add)} -{len(to_remove)}"
    )
    return Diff(
        to_add=to_add,
        to_remove=to_remove,
        removal_nodes=removal_nodes,
        addition_nodes=addition_nodes,
    )
