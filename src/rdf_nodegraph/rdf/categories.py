"""
Triple categories: the independently produced aspects of a resource.
"""

from enum import Enum
from typing import Iterable, Union

from rdf_nodegraph.errors import UnknownCategoryError


class TripleCategory(str, Enum):
    """Named subsets of a resource's description, disjoint by predicate."""
    PROPERTIES = "properties"
    TYPES = "types"
    SERVER_MANAGED = "server_managed"
    CHILDREN = "children"
    VERSIONS = "versions"


ALL_CATEGORIES = tuple(TripleCategory)

# Categories a client may write through replace/update
WRITABLE_CATEGORIES = (TripleCategory.PROPERTIES, TripleCategory.TYPES)

CategoryLike = Union[TripleCategory, str]


def _coerce(category: CategoryLike) -> TripleCategory:
    if isinstance(category, TripleCategory):
        return category
    try:
        return TripleCategory(str(category).lower())
    except ValueError:
        raise UnknownCategoryError(f"Unknown triple category: {category!r}") from None


def resolve_categories(
    categories: Union[CategoryLike, Iterable[CategoryLike]],
) -> list[TripleCategory]:
    """
    Normalize a category request into an ordered list.

    Lists and tuples keep the caller's order; sets are put into declaration
    order. Repeated categories are produced once.
    """
    if isinstance(categories, (TripleCategory, str)):
        return [_coerce(categories)]

    if isinstance(categories, (set, frozenset)):
        requested = {_coerce(c) for c in categories}
        return [c for c in ALL_CATEGORIES if c in requested]

    return list(dict.fromkeys(_coerce(c) for c in categories))
