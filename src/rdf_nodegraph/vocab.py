"""
Well-known namespaces and terms.

The ``repo`` vocabulary describes server-managed facts about resources
(child counts, timestamps, versions); ``nt`` names the store's own node types.
"""

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDFS_NS = "http://www.w3.org/2000/01/rdf-schema#"
XSD_NS = "http://www.w3.org/2001/XMLSchema#"
LDP_NS = "http://www.w3.org/ns/ldp#"
REPOSITORY_NS = "http://fedora.info/definitions/v4/repository#"
NODE_TYPES_NS = "http://nodegraph.io/ns/nodetypes#"

RDF_TYPE = RDF_NS + "type"

XSD_STRING = XSD_NS + "string"
XSD_BOOLEAN = XSD_NS + "boolean"
XSD_INTEGER = XSD_NS + "integer"
XSD_INT = XSD_NS + "int"
XSD_LONG = XSD_NS + "long"
XSD_SHORT = XSD_NS + "short"
XSD_BYTE = XSD_NS + "byte"
XSD_DOUBLE = XSD_NS + "double"
XSD_FLOAT = XSD_NS + "float"
XSD_DECIMAL = XSD_NS + "decimal"
XSD_DATETIME = XSD_NS + "dateTime"
XSD_ANYURI = XSD_NS + "anyURI"

HAS_CHILD_COUNT = REPOSITORY_NS + "hasChildCount"
HAS_PARENT = REPOSITORY_NS + "hasParent"
HAS_VERSION = REPOSITORY_NS + "hasVersion"
CREATED = REPOSITORY_NS + "created"
LAST_MODIFIED = REPOSITORY_NS + "lastModified"
LDP_CONTAINS = LDP_NS + "contains"

# Namespaces whose predicates are written only by the server
SERVER_MANAGED_NAMESPACES = frozenset({REPOSITORY_NS, NODE_TYPES_NS})

SERVER_MANAGED_PREDICATES = frozenset({
    HAS_CHILD_COUNT,
    HAS_PARENT,
    HAS_VERSION,
    CREATED,
    LAST_MODIFIED,
    LDP_CONTAINS,
})

BUILTIN_PREFIXES = {
    "rdf": RDF_NS,
    "rdfs": RDFS_NS,
    "xsd": XSD_NS,
    "ldp": LDP_NS,
    "repo": REPOSITORY_NS,
    "nt": NODE_TYPES_NS,
}


def is_server_managed(predicate: str) -> bool:
    """Check whether a predicate URI belongs to the server-managed vocabulary."""
    if predicate in SERVER_MANAGED_PREDICATES:
        return True
    return any(predicate.startswith(ns) for ns in SERVER_MANAGED_NAMESPACES)


# Store node types rendered as a different RDF type than their expanded name
STORE_TYPE_TO_RDF = {
    "repo:Container": LDP_NS + "Container",
    "repo:Binary": LDP_NS + "NonRDFSource",
}

RDF_TYPE_TO_STORE = {uri: name for name, uri in STORE_TYPE_TO_RDF.items()}

# Store name prefixes never rendered as ordinary properties
INTERNAL_PREFIXES = frozenset({"repo", "nt"})
