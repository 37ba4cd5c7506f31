"""
RDF term and triple models.

Terms are immutable and hashable so triples can be placed in sets and used
as DataFrame keys via their N-Triples form.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Union

from rdf_nodegraph.vocab import RDF_TYPE, XSD_STRING


def _escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


@dataclass(frozen=True)
class IRI:
    """An absolute IRI."""
    value: str

    def __str__(self) -> str:
        return f"<{self.value}>"

    def n3(self) -> str:
        return f"<{self.value}>"


@dataclass(frozen=True)
class Literal:
    """
    An RDF literal with an optional language tag or datatype.

    ``xsd:string`` is folded into the plain form so that ``"a"`` and
    ``"a"^^xsd:string`` compare equal.
    """
    value: str
    language: Optional[str] = None
    datatype: Optional[str] = None

    def __post_init__(self):
        if self.datatype == XSD_STRING:
            object.__setattr__(self, "datatype", None)
        if self.language is not None:
            object.__setattr__(self, "language", self.language.lower())
            object.__setattr__(self, "datatype", None)

    def __str__(self) -> str:
        return self.n3()

    def n3(self) -> str:
        base = f'"{_escape(self.value)}"'
        if self.language:
            return f"{base}@{self.language}"
        if self.datatype:
            return f"{base}^^<{self.datatype}>"
        return base


@dataclass(frozen=True)
class BlankNode:
    """
    A blank node.

    Labels are only meaningful within the stream or graph that carries them.
    """
    label: str

    def __str__(self) -> str:
        return f"_:{self.label}"

    def n3(self) -> str:
        return f"_:{self.label}"


Term = Union[IRI, Literal, BlankNode]


@dataclass(frozen=True)
class Triple:
    """A single RDF statement."""
    subject: Union[IRI, BlankNode]
    predicate: IRI
    object: Term

    def __str__(self) -> str:
        return f"{self.subject.n3()} {self.predicate.n3()} {self.object.n3()} ."

    @property
    def is_type_statement(self) -> bool:
        return self.predicate.value == RDF_TYPE

    def n3_key(self) -> tuple[str, str, str]:
        return (self.subject.n3(), self.predicate.n3(), self.object.n3())


@dataclass
class Graph:
    """
    A desired graph: ordered, de-duplicated triples plus prefix declarations.

    Namespace prefixes are hints used when a namespace must be registered
    with the store.
    """
    triples: list[Triple] = field(default_factory=list)
    namespaces: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.triples = list(dict.fromkeys(self.triples))
        self._seen = set(self.triples)

    @classmethod
    def from_triples(
        cls,
        triples: Iterable[Triple],
        namespaces: Optional[dict[str, str]] = None,
    ) -> "Graph":
        return cls(triples=list(triples), namespaces=dict(namespaces or {}))

    def add(self, triple: Triple) -> None:
        if triple not in self._seen:
            self._seen.add(triple)
            self.triples.append(triple)

    def __contains__(self, triple: Triple) -> bool:
        return triple in self._seen

    def __iter__(self) -> Iterator[Triple]:
        return iter(self.triples)

    def __len__(self) -> int:
        return len(self.triples)
