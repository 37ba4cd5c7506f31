"""
N-Triples Parser and Serializer.

Each line holds one statement: subject predicate object '.'

Grammar:
  ntriplesDoc ::= triple? (EOL triple)* EOL?
  triple      ::= subject predicate object '.'
  subject     ::= IRIREF | BLANK_NODE_LABEL
  object      ::= IRIREF | BLANK_NODE_LABEL | literal

Reference: https://www.w3.org/TR/n-triples/
"""

from io import StringIO
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from rdf_nodegraph.models import IRI, BlankNode, Graph, Literal, Term, Triple

_ESCAPES = {
    "t": "\t",
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "f": "\f",
    '"': '"',
    "'": "'",
    "\\": "\\",
}


class NTriplesParser:
    """
    Line-oriented N-Triples parser.

    Errors are raised as ValueError carrying the offending line number.
    """

    def __init__(self):
        self.line_number = 0

    def parse(self, source: Union[str, Path, StringIO]) -> Graph:
        if isinstance(source, Path):
            text = source.read_text(encoding="utf-8")
        elif isinstance(source, StringIO):
            text = source.read()
        else:
            text = source
        return Graph(triples=list(self.parse_lines(text.splitlines())))

    def parse_lines(self, lines: Iterable[str]) -> Iterator[Triple]:
        for i, line in enumerate(lines):
            self.line_number = i + 1
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                yield self._parse_line(line)
            except (ValueError, IndexError) as e:
                raise ValueError(f"Error parsing line {self.line_number}: {e}\nLine: {line}") from e

    def _parse_line(self, line: str) -> Triple:
        subject, pos = self._parse_subject(line, 0)
        pos = self._skip_ws(line, pos)
        predicate, pos = self._parse_iri(line, pos)
        pos = self._skip_ws(line, pos)
        obj, pos = self._parse_object(line, pos)
        pos = self._skip_ws(line, pos)

        if pos >= len(line) or line[pos] != ".":
            raise ValueError("expected '.' at end of statement")
        rest = line[pos + 1:].strip()
        if rest and not rest.startswith("#"):
            raise ValueError(f"unexpected content after '.': {rest!r}")
        return Triple(subject, predicate, obj)

    def _skip_ws(self, line: str, pos: int) -> int:
        while pos < len(line) and line[pos] in " \t":
            pos += 1
        return pos

    def _parse_subject(self, line: str, pos: int) -> tuple[Union[IRI, BlankNode], int]:
        if line.startswith("_:", pos):
            return self._parse_blank_node(line, pos)
        return self._parse_iri(line, pos)

    def _parse_iri(self, line: str, pos: int) -> tuple[IRI, int]:
        if pos >= len(line) or line[pos] != "<":
            raise ValueError(f"expected IRI at column {pos + 1}")
        end = line.find(">", pos)
        if end < 0:
            raise ValueError("unterminated IRI")
        value = self._unescape(line[pos + 1:end])
        if ":" not in value:
            raise ValueError(f"IRI must be absolute: <{value}>")
        return IRI(value), end + 1

    def _parse_blank_node(self, line: str, pos: int) -> tuple[BlankNode, int]:
        start = pos + 2
        end = start
        while end < len(line) and (line[end].isalnum() or line[end] in "_-."):
            end += 1
        # A label cannot end with '.'
        while end > start and line[end - 1] == ".":
            end -= 1
        if end == start:
            raise ValueError("empty blank node label")
        return BlankNode(line[start:end]), end

    def _parse_object(self, line: str, pos: int) -> tuple[Term, int]:
        if pos >= len(line):
            raise ValueError("missing object")
        if line[pos] == "<":
            return self._parse_iri(line, pos)
        if line.startswith("_:", pos):
            return self._parse_blank_node(line, pos)
        if line[pos] == '"':
            return self._parse_literal(line, pos)
        raise ValueError(f"unexpected character {line[pos]!r} at column {pos + 1}")

    def _parse_literal(self, line: str, pos: int) -> tuple[Literal, int]:
        end = pos + 1
        while end < len(line):
            if line[end] == "\\":
                end += 2
                continue
            if line[end] == '"':
                break
            end += 1
        else:
            raise ValueError("unterminated literal")

        value = self._unescape(line[pos + 1:end])
        pos = end + 1
        language: Optional[str] = None
        datatype: Optional[str] = None
        if line.startswith("@", pos):
            start = pos + 1
            pos = start
            while pos < len(line) and (line[pos].isalnum() or line[pos] == "-"):
                pos += 1
            language = line[start:pos]
            if not language:
                raise ValueError("empty language tag")
        elif line.startswith("^^", pos):
            dt, pos = self._parse_iri(line, pos + 2)
            datatype = dt.value
        return Literal(value, language=language, datatype=datatype), pos

    def _unescape(self, text: str) -> str:
        if "\\" not in text:
            return text
        out = []
        i = 0
        while i < len(text):
            ch = text[i]
            if ch != "\\":
                out.append(ch)
                i += 1
                continue
            code = text[i + 1]
            if code == "u":
                out.append(chr(int(text[i + 2:i + 6], 16)))
                i += 6
            elif code == "U":
                out.append(chr(int(text[i + 2:i + 10], 16)))
                i += 10
            elif code in _ESCAPES:
                out.append(_ESCAPES[code])
                i += 2
            else:
                raise ValueError(f"invalid escape \\{code}")
        return "".join(out)


class NTriplesSerializer:
    """Writes triples one per line in N-Triples form."""

    def serialize(self, triples: Iterable[Triple]) -> str:
        return "".join(f"{line}\n" for line in self.serialize_lines(triples))

    def serialize_lines(self, triples: Iterable[Triple]) -> Iterator[str]:
        for triple in triples:
            yield str(triple)


def parse_ntriples(source: Union[str, Path, StringIO]) -> Graph:
    """Parse an N-Triples document into a Graph."""
    return NTriplesParser().parse(source)


def serialize_ntriples(triples: Iterable[Triple]) -> str:
    """Serialize triples (a Graph, RdfStream or list) as N-Triples."""
    return NTriplesSerializer().serialize(triples)
