"""
Namespace registry of the node store.

Maps namespace URIs to the short prefixes used in stored property and type
names (``ex:title``). The registry is append-only: a mapping, once made, is
never changed or removed.
"""

from __future__ import annotations

import logging
import re
from threading import RLock
from typing import Optional

from rdf_nodegraph.vocab import BUILTIN_PREFIXES

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")
SYNTHETIC_PREFIX_FORMAT = "ns{:03d}"


class NamespaceRegistry:
    """
    Bidirectional prefix <-> URI mapping.

    ``register`` honours the requested prefix when it is free; when it is
    already bound to a different URI (or is not a legal prefix) the next
    free synthetic prefix (``ns001``, ``ns002``, ...) is used instead. A URI
    that is already registered keeps its prefix.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._lock = RLock()
        self._prefix_to_uri: dict[str, str] = {}
        self._uri_to_prefix: dict[str, str] = {}
        self._next_synthetic = 1
        for prefix, uri in (initial if initial is not None else BUILTIN_PREFIXES).items():
            self._bind(prefix, uri)

    def _bind(self, prefix: str, uri: str) -> None:
        self._prefix_to_uri[prefix] = uri
        self._uri_to_prefix[uri] = prefix

    def get_prefix(self, uri: str) -> Optional[str]:
        return self._uri_to_prefix.get(uri)

    def get_uri(self, prefix: str) -> Optional[str]:
        return self._prefix_to_uri.get(prefix)

    def is_registered_uri(self, uri: str) -> bool:
        return uri in self._uri_to_prefix

    def prefixes(self) -> list[str]:
        return list(self._prefix_to_uri)

    def to_dict(self) -> dict[str, str]:
        return dict(self._prefix_to_uri)

    def _synthesize(self) -> str:
        while True:
            candidate = SYNTHETIC_PREFIX_FORMAT.format(self._next_synthetic)
            self._next_synthetic += 1
            if candidate not in self._prefix_to_uri:
                return candidate

    def register(self, uri: str, preferred_prefix: Optional[str] = None) -> str:
        """
        Register a namespace URI and return the prefix it is bound to.

        Args:
            uri: Namespace URI
            preferred_prefix: Prefix to use if it is free

        Returns:
            The prefix now bound to ``uri``
        """
        with self._lock:
            existing = self._uri_to_prefix.get(uri)
            if existing is not None:
                return existing

            prefix = preferred_prefix
            if (
                not prefix
                or not _PREFIX_RE.match(prefix)
                or prefix in self._prefix_to_uri
            ):
                prefix = self._synthesize()

            self._bind(prefix, uri)
            logger.info(f"Registered namespace {prefix}: <{uri}>")
            return prefix

    def __contains__(self, prefix: str) -> bool:
        return prefix in self._prefix_to_uri

    def __len__(self) -> int:
        return len(self._prefix_to_uri)
