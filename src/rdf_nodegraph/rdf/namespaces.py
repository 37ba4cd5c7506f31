"""
Adapter between RDF namespace URIs and prefixed store names.

    http://purl.org/dc/elements/1.1/title  <->  dc:title
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from rdf_nodegraph.errors import MalformedRdfException
from rdf_nodegraph.storage.namespaces import NamespaceRegistry

logger = logging.getLogger(__name__)

_LOCAL_NAME_RE = re.compile(r"^([A-Za-z0-9_][A-Za-z0-9_.-]*)?$")


def split_uri(uri: str) -> tuple[str, str]:
    """
    Split a URI into namespace and local name.

    The split is at the last '#' or '/'; URIs with neither (``urn:isbn:123``)
    split at the last ':'. A URI ending in its separator has an empty local
    name and is stored as ``prefix:``.

    Raises:
        MalformedRdfException: If no usable local name can be found
    """
    cut = max(uri.rfind("#"), uri.rfind("/"))
    if cut < 0:
        cut = uri.rfind(":")
        if cut <= 0:
            raise MalformedRdfException(f"Cannot split {uri} into namespace and local name")
    elif ":" not in uri[:cut]:
        raise MalformedRdfException(f"Cannot split {uri} into namespace and local name")
    namespace, local = uri[: cut + 1], uri[cut + 1:]
    if not _LOCAL_NAME_RE.match(local):
        raise MalformedRdfException(f"Illegal local name {local!r} in {uri}")
    return namespace, local


class NamespaceResolver:
    """
    Resolves RDF URIs to prefixed store names and back.

    Unknown namespaces are registered on demand (unless disabled), using the
    prefix the incoming graph declared for them when that prefix is free.
    """

    def __init__(
        self,
        registry: NamespaceRegistry,
        declared: Optional[dict[str, str]] = None,
        auto_register: bool = True,
    ):
        self.registry = registry
        self.auto_register = auto_register
        self._declared_prefix = {uri: prefix for prefix, uri in (declared or {}).items()}

    def lookup(self, uri: str) -> Optional[str]:
        """Store name for ``uri`` if its namespace is already registered."""
        try:
            namespace, local = split_uri(uri)
        except MalformedRdfException:
            return None
        prefix = self.registry.get_prefix(namespace)
        return f"{prefix}:{local}" if prefix is not None else None

    def to_store_name(self, uri: str) -> str:
        """Store name for ``uri``, registering its namespace if needed."""
        namespace, local = split_uri(uri)
        prefix = self.registry.get_prefix(namespace)
        if prefix is None:
            if not self.auto_register:
                raise MalformedRdfException(f"Namespace <{namespace}> is not registered")
            prefix = self.registry.register(namespace, self._declared_prefix.get(namespace))
            logger.debug(f"Auto-registered {prefix}: for {uri}")
        return f"{prefix}:{local}"

    def to_uri(self, name: str) -> str:
        """Expand a prefixed store name into a URI."""
        prefix, sep, local = name.partition(":")
        if not sep:
            raise MalformedRdfException(f"Store name {name!r} has no prefix")
        namespace = self.registry.get_uri(prefix)
        if namespace is None:
            raise MalformedRdfException(f"Unknown namespace prefix {prefix!r} in {name!r}")
        return namespace + local
