"""
Lazy, single-pass triple streams with a fixed topic.

A stream is restartable only by re-invoking the producer that created it.
Blank nodes carried by a stream are handles scoped to that stream: the
BlankNodeScope maps each label back to the store node it stands for.
"""

from __future__ import annotations

import itertools
from typing import Callable, Iterable, Iterator, Optional

import polars as pl

from rdf_nodegraph.models import IRI, Graph, Triple

TRIPLE_SCHEMA = {"subject": pl.Utf8, "predicate": pl.Utf8, "object": pl.Utf8}


class BlankNodeScope:
    """Allocates stream-local blank node labels for skolemized store nodes."""

    def __init__(self, prefix: str = "b"):
        self._prefix = prefix
        self._labels: dict[str, str] = {}
        self._paths: dict[str, str] = {}

    def label_for(self, path: str) -> str:
        label = self._labels.get(path)
        if label is None:
            label = f"{self._prefix}{len(self._labels)}"
            self._labels[path] = label
            self._paths[label] = path
        return label

    def mapping(self) -> dict[str, str]:
        """Label -> store path for every label allocated so far."""
        return dict(self._paths)

    def __contains__(self, label: str) -> bool:
        return label in self._paths

    def __len__(self) -> int:
        return len(self._paths)


class RdfStream:
    """
    A topic plus a lazy sequence of triples.

    Iterating a second time raises RuntimeError; collect() the stream first
    if the triples are needed more than once.
    """

    def __init__(
        self,
        topic: IRI,
        triples: Iterable[Triple] = (),
        namespaces: Optional[dict[str, str]] = None,
        blank_nodes: Optional[BlankNodeScope] = None,
    ):
        self.topic = topic
        self.namespaces = dict(namespaces or {})
        self.blank_nodes = blank_nodes if blank_nodes is not None else BlankNodeScope()
        self._source = iter(triples)
        self._consumed = False

    def __iter__(self) -> Iterator[Triple]:
        if self._consumed:
            raise RuntimeError(f"RdfStream for {self.topic} has already been consumed")
        self._consumed = True
        return self._source

    @property
    def consumed(self) -> bool:
        return self._consumed

    def concat(self, *others: "RdfStream") -> "RdfStream":
        """Append other streams, in order, after this one."""
        namespaces = dict(self.namespaces)
        for other in others:
            namespaces.update(other.namespaces)
        return RdfStream(
            self.topic,
            itertools.chain(self, *others),
            namespaces=namespaces,
            blank_nodes=self.blank_nodes,
        )

    def filter(self, predicate: Callable[[Triple], bool]) -> "RdfStream":
        return RdfStream(
            self.topic,
            (t for t in self if predicate(t)),
            namespaces=self.namespaces,
            blank_nodes=self.blank_nodes,
        )

    def collect(self) -> list[Triple]:
        return list(self)

    def to_graph(self) -> Graph:
        return Graph(triples=list(self), namespaces=dict(self.namespaces))

    def to_frame(self) -> pl.DataFrame:
        return triples_to_frame(self)


def triples_to_frame(triples: Iterable[Triple]) -> pl.DataFrame:
    """Tabulate triples as N-Triples term strings."""
    rows = [t.n3_key() for t in triples]
    if not rows:
        return pl.DataFrame(schema=TRIPLE_SCHEMA)
    subjects, predicates, objects = zip(*rows)
    return pl.DataFrame(
        {"subject": list(subjects), "predicate": list(predicates), "object": list(objects)},
        schema=TRIPLE_SCHEMA,
    )
