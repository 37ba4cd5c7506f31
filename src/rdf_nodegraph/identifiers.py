"""
Translation between store paths and RDF resource URIs.

    /books/moby-dick          <->  http://localhost/rest/books/moby-dick
    /books/moby-dick/#/ch1    <->  http://localhost/rest/books/moby-dick#ch1

A translator bound to a transaction encodes the transaction as the first
URI segment (``/tx:<id>``) so URIs stay usable within that transaction;
``canonicalize`` strips it to give the durable public form.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote, unquote

from rdf_nodegraph.errors import IdentifierTranslationError
from rdf_nodegraph.storage.nodes import HASH_SEGMENT

TX_SEGMENT_PREFIX = "tx:"
VERSIONS_SEGMENT = "fcr:versions"

_TX_SEGMENT_RE = re.compile(r"/tx:[^/#]+")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_SAFE_CHARS = "!$&'()*+,;=:@-._~"


class IdentifierTranslator:
    """
    Bidirectional path <-> URI conversion for one base URI.

    ``to_path(to_uri(p)) == p`` for every valid path and
    ``to_uri(to_path(u)) == u`` for every URI this translator produced.
    """

    def __init__(self, base_uri: str, transaction_id: Optional[str] = None):
        if not base_uri:
            raise ValueError("base_uri is required")
        self.base_uri = base_uri.rstrip("/")
        self.transaction_id = transaction_id

    def for_transaction(self, transaction_id: Optional[str]) -> "IdentifierTranslator":
        return IdentifierTranslator(self.base_uri, transaction_id)

    @property
    def _prefix(self) -> str:
        if self.transaction_id:
            return f"{self.base_uri}/{TX_SEGMENT_PREFIX}{self.transaction_id}"
        return self.base_uri

    # -- paths -> URIs -------------------------------------------------------

    @staticmethod
    def validate_path(path: str) -> list[str]:
        """Split a store path into segments, raising on invalid syntax."""
        if not isinstance(path, str) or not path.startswith("/"):
            raise IdentifierTranslationError(f"Path must be absolute: {path!r}")
        if path == "/":
            return []
        segments = path[1:].split("/")
        for i, segment in enumerate(segments):
            if segment in ("", ".", ".."):
                raise IdentifierTranslationError(f"Invalid segment {segment!r} in {path!r}")
            if _CONTROL_CHARS_RE.search(segment):
                raise IdentifierTranslationError(f"Control character in {path!r}")
            if segment.startswith(TX_SEGMENT_PREFIX) or segment == VERSIONS_SEGMENT:
                raise IdentifierTranslationError(f"Reserved segment {segment!r} in {path!r}")
            if segment == HASH_SEGMENT and i != len(segments) - 2:
                raise IdentifierTranslationError(f"Misplaced hash segment in {path!r}")
        return segments

    def to_uri(self, path: str) -> str:
        """Convert a store path into a resource URI."""
        segments = self.validate_path(path)
        fragment = None
        if len(segments) >= 2 and segments[-2] == HASH_SEGMENT:
            fragment = segments[-1]
            segments = segments[:-2]
        uri = self._prefix + "".join("/" + quote(s, safe=_SAFE_CHARS) for s in segments)
        if not segments:
            uri += "/"
        if fragment is not None:
            uri += "#" + quote(fragment, safe=_SAFE_CHARS)
        return uri

    def version_uri(self, path: str, label: str) -> str:
        base = self.to_uri(path).rstrip("/")
        return f"{base}/{VERSIONS_SEGMENT}/{quote(label, safe=_SAFE_CHARS)}"

    # -- URIs -> paths -------------------------------------------------------

    def in_domain(self, uri: str) -> bool:
        return uri == self.base_uri or uri.startswith(self.base_uri + "/") \
            or uri.startswith(self.base_uri + "#")

    def to_path(self, uri: str) -> str:
        """Convert a resource URI into a store path."""
        if not self.in_domain(uri):
            raise IdentifierTranslationError(f"{uri} is outside {self.base_uri}")

        remainder = uri[len(self.base_uri):]
        fragment = None
        if "#" in remainder:
            remainder, fragment = remainder.split("#", 1)
            if not fragment:
                raise IdentifierTranslationError(f"Empty fragment in {uri}")

        raw_segments = [s for s in remainder.split("/")]
        # Leading "" from the slash after the base; trailing "" from "/"
        if raw_segments and raw_segments[0] == "":
            raw_segments = raw_segments[1:]
        if raw_segments and raw_segments[-1] == "":
            raw_segments = raw_segments[:-1]

        if raw_segments and raw_segments[0].startswith(TX_SEGMENT_PREFIX):
            tx_id = raw_segments[0][len(TX_SEGMENT_PREFIX):]
            if self.transaction_id is not None and tx_id != self.transaction_id:
                raise IdentifierTranslationError(
                    f"{uri} belongs to transaction {tx_id}, not {self.transaction_id}"
                )
            raw_segments = raw_segments[1:]

        if VERSIONS_SEGMENT in raw_segments:
            raise IdentifierTranslationError(f"{uri} identifies a version, not a resource")

        segments = [unquote(s) for s in raw_segments]
        if fragment is not None:
            segments += [HASH_SEGMENT, unquote(fragment)]
        path = "/" + "/".join(segments)
        self.validate_path(path)
        return path

    # -- canonical form ------------------------------------------------------

    @staticmethod
    def canonicalize(uri: str) -> str:
        """Strip the transaction segment from a URI."""
        return _TX_SEGMENT_RE.sub("", uri, count=1)

    def canonical_uri(self, path: str) -> str:
        return self.canonicalize(self.to_uri(path))
