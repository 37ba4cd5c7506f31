"""
Conversion between RDF terms and stored property values.

Literals are coerced to the property's declared type when a definition
exists, otherwise the type is inferred from the literal's datatype. The
original datatype and lexical form are kept on the stored value so the literal
renders back unchanged.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Optional

from rdf_nodegraph.errors import IdentifierTranslationError, MalformedRdfException
from rdf_nodegraph.models import IRI, Literal, Term
from rdf_nodegraph.storage.nodes import PropertyValue
from rdf_nodegraph.storage.schema import PropertyType
from rdf_nodegraph.vocab import (
    XSD_BOOLEAN,
    XSD_BYTE,
    XSD_DATETIME,
    XSD_DECIMAL,
    XSD_DOUBLE,
    XSD_FLOAT,
    XSD_INT,
    XSD_INTEGER,
    XSD_LONG,
    XSD_SHORT,
)

if TYPE_CHECKING:
    from rdf_nodegraph.identifiers import IdentifierTranslator
    from rdf_nodegraph.storage.base import StoreHandle


DATATYPE_TO_PROPERTY_TYPE = {
    XSD_BOOLEAN: PropertyType.BOOLEAN,
    XSD_INTEGER: PropertyType.LONG,
    XSD_INT: PropertyType.LONG,
    XSD_LONG: PropertyType.LONG,
    XSD_SHORT: PropertyType.LONG,
    XSD_BYTE: PropertyType.LONG,
    XSD_DOUBLE: PropertyType.DOUBLE,
    XSD_FLOAT: PropertyType.DOUBLE,
    XSD_DECIMAL: PropertyType.DECIMAL,
    XSD_DATETIME: PropertyType.DATE,
}

DEFAULT_DATATYPE = {
    PropertyType.BOOLEAN: XSD_BOOLEAN,
    PropertyType.LONG: XSD_LONG,
    PropertyType.DOUBLE: XSD_DOUBLE,
    PropertyType.DECIMAL: XSD_DECIMAL,
    PropertyType.DATE: XSD_DATETIME,
}


def _parse_datetime(lexical: str) -> datetime:
    text = lexical.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def _convert(lexical: str, kind: PropertyType):
    if kind == PropertyType.BOOLEAN:
        lowered = lexical.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValueError(f"{lexical!r} is not a boolean")
    if kind == PropertyType.LONG:
        return int(lexical.strip())
    if kind == PropertyType.DOUBLE:
        return float(lexical.strip())
    if kind == PropertyType.DECIMAL:
        return Decimal(lexical.strip())
    if kind == PropertyType.DATE:
        return _parse_datetime(lexical)
    return lexical


def literal_to_value(
    literal: Literal,
    required_type: PropertyType = PropertyType.UNDEFINED,
) -> PropertyValue:
    """
    Coerce a literal into a stored value.

    Raises:
        MalformedRdfException: If the lexical form cannot be converted
    """
    if required_type == PropertyType.REFERENCE:
        raise MalformedRdfException(
            f"Literal {literal.n3()} cannot be stored in a reference property"
        )

    if required_type == PropertyType.UNDEFINED:
        kind = DATATYPE_TO_PROPERTY_TYPE.get(literal.datatype, PropertyType.STRING)
    else:
        kind = required_type

    if kind == PropertyType.STRING:
        return PropertyValue(
            kind=kind,
            value=literal.value,
            lang=literal.language,
            datatype=literal.datatype,
        )

    try:
        value = _convert(literal.value, kind)
    except (ValueError, InvalidOperation) as e:
        raise MalformedRdfException(
            f"Cannot convert {literal.n3()} to {kind.value}: {e}"
        ) from e
    return PropertyValue(kind=kind, value=value, datatype=literal.datatype, lexical=literal.value)


def iri_to_value(
    iri: IRI,
    required_type: PropertyType,
    translator: "IdentifierTranslator",
    store: "StoreHandle",
) -> PropertyValue:
    """
    Coerce a URI object into a stored value.

    URIs of existing nodes in this store become references when the store
    supports them; anything else is kept as a plain URI.
    """
    if required_type not in (
        PropertyType.UNDEFINED,
        PropertyType.REFERENCE,
        PropertyType.URI,
        PropertyType.STRING,
    ):
        raise MalformedRdfException(
            f"URI {iri.n3()} cannot be stored in a {required_type.value} property"
        )

    if required_type in (PropertyType.UNDEFINED, PropertyType.REFERENCE):
        target = _local_path(iri, translator, store)
        if target is not None:
            return PropertyValue(kind=PropertyType.REFERENCE, value=target)
        if required_type == PropertyType.REFERENCE:
            raise MalformedRdfException(f"{iri.n3()} does not identify a node in this repository")

    return PropertyValue(kind=PropertyType.URI, value=iri.value)


def _local_path(
    iri: IRI,
    translator: "IdentifierTranslator",
    store: "StoreHandle",
) -> Optional[str]:
    if not store.supports_references or not translator.in_domain(iri.value):
        return None
    try:
        path = translator.to_path(iri.value)
    except IdentifierTranslationError:
        return None
    return path if store.exists(path) else None


def value_to_term(value: PropertyValue, translator: "IdentifierTranslator") -> Term:
    """Render a stored value as an RDF term."""
    kind = value.kind
    if kind == PropertyType.REFERENCE:
        return IRI(translator.to_uri(value.value))
    if kind == PropertyType.URI:
        return IRI(value.value)
    if kind == PropertyType.STRING:
        return Literal(str(value.value), language=value.lang, datatype=value.datatype)

    datatype = value.datatype or DEFAULT_DATATYPE.get(kind)
    if value.lexical is not None:
        lexical = value.lexical
    elif kind == PropertyType.BOOLEAN:
        lexical = "true" if value.value else "false"
    elif kind == PropertyType.DATE:
        lexical = format_datetime(value.value)
    else:
        lexical = str(value.value)
    return Literal(lexical, datatype=datatype)
