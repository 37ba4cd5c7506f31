"""
Node type system of the store.

Primary types are fixed per resource category; mixins are optional named
capabilities that can be added to and removed from a node at runtime. The
registry is keyed by prefixed type name and supports on-the-fly
registration of mixins without enforced property definitions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class PropertyType(Enum):
    """Value types a stored property can hold."""
    STRING = "String"
    BOOLEAN = "Boolean"
    LONG = "Long"
    DOUBLE = "Double"
    DECIMAL = "Decimal"
    DATE = "Date"
    URI = "URI"
    REFERENCE = "Reference"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class PropertyDefinition:
    """
    Declared shape of a property on a node type.

    Attributes:
        name: Prefixed property name
        required_type: Type values are coerced to (UNDEFINED = infer)
        multiple: Whether the property holds several values
        protected: Whether clients may modify the property
    """
    name: str
    required_type: PropertyType = PropertyType.UNDEFINED
    multiple: bool = True
    protected: bool = False


@dataclass(frozen=True)
class NodeTypeDefinition:
    """A named node type (primary type or mixin)."""
    name: str
    is_mixin: bool = False
    supertypes: tuple[str, ...] = ()
    property_definitions: tuple[PropertyDefinition, ...] = ()

    def get_property_definition(self, name: str) -> Optional[PropertyDefinition]:
        for definition in self.property_definitions:
            if definition.name == name:
                return definition
        return None


BUILTIN_TYPES: tuple[NodeTypeDefinition, ...] = (
    NodeTypeDefinition("nt:base"),
    NodeTypeDefinition(
        "repo:Resource",
        supertypes=("nt:base",),
        property_definitions=(
            PropertyDefinition("repo:created", PropertyType.DATE, multiple=False, protected=True),
            PropertyDefinition("repo:lastModified", PropertyType.DATE, multiple=False, protected=True),
        ),
    ),
    NodeTypeDefinition("repo:Container", supertypes=("repo:Resource",)),
    NodeTypeDefinition("repo:Binary", supertypes=("repo:Resource",)),
    NodeTypeDefinition("repo:Pairtree", supertypes=("repo:Resource",)),
    NodeTypeDefinition("repo:Versionable", is_mixin=True),
    NodeTypeDefinition("repo:HashResource", supertypes=("nt:base",)),
)


class SchemaRegistry:
    """
    Registry of node type definitions.

    ``register_mixin`` is lookup-or-create: asking for a mixin that already
    exists returns the existing definition.
    """

    def __init__(self, definitions: Optional[Iterable[NodeTypeDefinition]] = None):
        self._lock = RLock()
        self._types: dict[str, NodeTypeDefinition] = {}
        for definition in (definitions if definitions is not None else BUILTIN_TYPES):
            self._types[definition.name] = definition

    def has_type(self, name: str) -> bool:
        return name in self._types

    def get_type(self, name: str) -> Optional[NodeTypeDefinition]:
        return self._types.get(name)

    def type_names(self) -> list[str]:
        return list(self._types)

    def register(self, definition: NodeTypeDefinition) -> NodeTypeDefinition:
        """Register a type definition, replacing nothing that already exists."""
        with self._lock:
            existing = self._types.get(definition.name)
            if existing is not None:
                return existing
            for supertype in definition.supertypes:
                if supertype not in self._types:
                    raise ValueError(
                        f"Cannot register {definition.name}: unknown supertype {supertype}"
                    )
            self._types[definition.name] = definition
            logger.info(
                f"Registered {'mixin' if definition.is_mixin else 'node type'} {definition.name}"
            )
            return definition

    def register_mixin(self, name: str) -> NodeTypeDefinition:
        return self.register(NodeTypeDefinition(name=name, is_mixin=True))

    def supertypes_of(self, name: str) -> list[str]:
        """All transitive supertypes of a type, nearest first."""
        result: list[str] = []
        pending = list(self._types[name].supertypes) if name in self._types else []
        while pending:
            current = pending.pop(0)
            if current in result:
                continue
            result.append(current)
            definition = self._types.get(current)
            if definition is not None:
                pending.extend(definition.supertypes)
        return result

    def is_subtype(self, name: str, of: str) -> bool:
        return name == of or of in self.supertypes_of(name)
