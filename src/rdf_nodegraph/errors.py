"""
Exception hierarchy for rdf-nodegraph.

Fatal errors (unparsable updates, identifier translation failures) are
raised immediately. Per-statement errors raised while applying a diff are
caught by the apply engine and recorded in a DiffReport instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from rdf_nodegraph.rdf.diff import DiffReport


class NodeGraphError(Exception):
    """Base class for all rdf-nodegraph errors."""
    pass


class MalformedRdfException(NodeGraphError):
    """The supplied graph or update is not applicable as given."""
    pass


class ServerManagedPropertyError(MalformedRdfException):
    """Attempt to write a triple whose predicate is managed by the server."""
    pass


class UnknownTypeError(MalformedRdfException):
    """An rdf:type refers to a type the store does not know and may not register."""
    pass


class AccessDeniedException(NodeGraphError):
    """
    The store refused a mutation for permission reasons.

    When raised from a write contract the report of the partially applied
    diff is attached as ``report``.
    """

    def __init__(self, message: str, report: Optional["DiffReport"] = None):
        super().__init__(message)
        self.report = report


class SchemaConstraintViolation(NodeGraphError):
    """Adding or removing a mixin conflicts with the node's declared types."""
    pass


class IdentifierTranslationError(NodeGraphError):
    """A URI or path could not be converted."""
    pass


class NodeNotFoundError(NodeGraphError):
    """No node exists at the requested path."""

    def __init__(self, path: str):
        super().__init__(f"No node at path {path!r}")
        self.path = path


class UnknownCategoryError(ValueError):
    """A triple category name that no producer handles."""
    pass
