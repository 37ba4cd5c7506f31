"""
Abstract Syntax Tree (AST) nodes for SPARQL Update requests.

Absolute IRIs, literals and blank nodes reuse the RDF term models. Prefixed
names and relative IRIs stay unresolved in the tree since their meaning
depends on the PREFIX and BASE declarations in effect for the operation.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from rdf_nodegraph.models import IRI, BlankNode, Literal


# =============================================================================
# Terms
# =============================================================================

@dataclass(frozen=True)
class Variable:
    """A SPARQL variable (?name or $name)."""
    name: str

    def __str__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class PrefixedName:
    """An IRI written as prefix:local."""
    prefix: str
    local: str

    def __str__(self) -> str:
        return f"{self.prefix}:{self.local}"


@dataclass(frozen=True)
class RelativeIRI:
    """An IRI reference resolved against BASE, or the target resource (<>)."""
    value: str

    def __str__(self) -> str:
        return f"<{self.value}>"


@dataclass(frozen=True)
class DatatypedLiteral:
    """A literal whose datatype is a prefixed name or relative IRI."""
    value: str
    datatype: Union[PrefixedName, RelativeIRI]


Term = Union[Variable, IRI, PrefixedName, RelativeIRI, Literal, DatatypedLiteral, BlankNode]


@dataclass(frozen=True)
class TriplePattern:
    """A triple whose positions may hold variables or unresolved IRIs."""
    subject: Term
    predicate: Term
    object: Term

    def terms(self) -> tuple[Term, Term, Term]:
        return (self.subject, self.predicate, self.object)

    def variables(self) -> set[str]:
        return {t.name for t in self.terms() if isinstance(t, Variable)}

    def blank_nodes(self) -> set[str]:
        return {t.label for t in self.terms() if isinstance(t, BlankNode)}


# =============================================================================
# Prologue
# =============================================================================

@dataclass(frozen=True)
class PrefixDecl:
    prefix: str
    uri: str


@dataclass(frozen=True)
class BaseDecl:
    uri: str


# =============================================================================
# Operations
# =============================================================================

@dataclass
class Operation:
    """
    Base class for update operations.

    ``prefixes`` and ``base`` are the prologue declarations in effect where
    the operation appears in the request.
    """
    prefixes: dict[str, str] = field(default_factory=dict, kw_only=True)
    base: Optional[str] = field(default=None, kw_only=True)


@dataclass
class InsertData(Operation):
    """INSERT DATA { ground triples }"""
    triples: list[TriplePattern] = field(default_factory=list)


@dataclass
class DeleteData(Operation):
    """DELETE DATA { ground triples }"""
    triples: list[TriplePattern] = field(default_factory=list)


@dataclass
class DeleteWhere(Operation):
    """DELETE WHERE { patterns }: the patterns are both template and query."""
    patterns: list[TriplePattern] = field(default_factory=list)


@dataclass
class Modify(Operation):
    """
    DELETE { template } INSERT { template } WHERE { patterns }

    Either template may be absent (None), but not both.
    """
    delete: Optional[list[TriplePattern]] = None
    insert: Optional[list[TriplePattern]] = None
    where: list[TriplePattern] = field(default_factory=list)


@dataclass
class UpdateRequest:
    """A sequence of operations separated by ';'."""
    operations: list[Operation] = field(default_factory=list)
