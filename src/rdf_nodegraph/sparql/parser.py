"""
SPARQL Update Parser using pyparsing.

Parses the subset of SPARQL 1.1 Update used to patch a single resource:
PREFIX/BASE prologues, INSERT DATA, DELETE DATA, DELETE WHERE and
DELETE/INSERT ... WHERE over basic graph patterns, with Turtle-style
';' and ',' lists and the 'a' shorthand for rdf:type.
"""

import re
from typing import Optional

import pyparsing as pp
from pyparsing import (
    CaselessKeyword,
    DelimitedList,
    Group,
    Keyword,
    Literal as Lit,
    Optional as Opt,
    QuotedString,
    Regex,
    Suppress,
    ZeroOrMore,
)

from rdf_nodegraph.errors import MalformedRdfException
from rdf_nodegraph.models import IRI, BlankNode, Literal
from rdf_nodegraph.sparql.ast import (
    BaseDecl,
    DatatypedLiteral,
    DeleteData,
    DeleteWhere,
    InsertData,
    Modify,
    Operation,
    PrefixDecl,
    PrefixedName,
    RelativeIRI,
    TriplePattern,
    UpdateRequest,
    Variable,
)
from rdf_nodegraph.vocab import RDF_TYPE, XSD_BOOLEAN, XSD_DECIMAL, XSD_DOUBLE, XSD_INTEGER

_ABSOLUTE_IRI_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


class SPARQLUpdateParser:
    """
    Parser for SPARQL Update requests.

    Supports:
    - PREFIX and BASE declarations before any operation
    - INSERT DATA / DELETE DATA with ground triples
    - DELETE WHERE
    - DELETE { } INSERT { } WHERE { } with either template optional
    - Several operations separated by ';'
    """

    def __init__(self):
        self._build_grammar()

    def _build_grammar(self):
        """Build the pyparsing grammar for SPARQL Update."""

        pp.ParserElement.enable_packrat()

        # =================================================================
        # Keywords and punctuation
        # =================================================================

        PREFIX = CaselessKeyword("PREFIX")
        BASE = CaselessKeyword("BASE")
        INSERT = CaselessKeyword("INSERT")
        DELETE = CaselessKeyword("DELETE")
        DATA = CaselessKeyword("DATA")
        WHERE = CaselessKeyword("WHERE")

        LBRACE = Suppress(Lit("{"))
        RBRACE = Suppress(Lit("}"))
        DOT = Suppress(Lit("."))
        SEMI = Suppress(Lit(";"))

        # =================================================================
        # Terms
        # =================================================================

        def make_variable(tokens):
            return Variable(tokens[0][1:])

        variable = Regex(r"[?$][A-Za-z_][A-Za-z0-9_]*").set_parse_action(make_variable)

        def make_iri_ref(tokens):
            value = tokens[0][1:-1]
            if _ABSOLUTE_IRI_RE.match(value):
                return IRI(value)
            return RelativeIRI(value)

        iri_ref = Regex(r'<[^<>"{}|^`\\\s]*>').set_parse_action(make_iri_ref)

        pname_ns = Regex(r"(?:[A-Za-z](?:[A-Za-z0-9_.-]*[A-Za-z0-9_-])?)?:")

        def make_prefixed_name(tokens):
            prefix, _, local = tokens[0].partition(":")
            return PrefixedName(prefix, local)

        prefixed_name = Regex(
            r"(?:[A-Za-z](?:[A-Za-z0-9_.-]*[A-Za-z0-9_-])?)?:"
            r"(?:[A-Za-z0-9_](?:[A-Za-z0-9_.-]*[A-Za-z0-9_-])?)?"
        ).set_parse_action(make_prefixed_name)

        iri = iri_ref | prefixed_name

        def make_blank_node(tokens):
            return BlankNode(tokens[0][2:])

        blank_node = Regex(
            r"_:[A-Za-z0-9_](?:[A-Za-z0-9_.-]*[A-Za-z0-9_-])?"
        ).set_parse_action(make_blank_node)

        # Literals
        string_literal = (
            QuotedString('"""', esc_char="\\", multiline=True)
            | QuotedString("'''", esc_char="\\", multiline=True)
            | QuotedString('"', esc_char="\\")
            | QuotedString("'", esc_char="\\")
        )
        lang_tag = Regex(r"@[A-Za-z]+(?:-[A-Za-z0-9]+)*")
        datatype = Suppress(Lit("^^")) + iri

        def make_literal(tokens):
            value = tokens[0]
            if len(tokens) == 1:
                return Literal(value)
            suffix = tokens[1]
            if isinstance(suffix, str):
                return Literal(value, language=suffix[1:])
            if isinstance(suffix, IRI):
                return Literal(value, datatype=suffix.value)
            return DatatypedLiteral(value, suffix)

        rdf_literal = (string_literal + Opt(lang_tag | datatype)).set_parse_action(make_literal)

        def typed(datatype_uri):
            def action(tokens):
                return Literal(tokens[0], datatype=datatype_uri)
            return action

        double_literal = Regex(
            r"[+-]?(?:\d+\.\d*[eE][+-]?\d+|\.\d+[eE][+-]?\d+|\d+[eE][+-]?\d+)"
        ).set_parse_action(typed(XSD_DOUBLE))
        decimal_literal = Regex(r"[+-]?\d*\.\d+").set_parse_action(typed(XSD_DECIMAL))
        integer_literal = Regex(r"[+-]?\d+").set_parse_action(typed(XSD_INTEGER))
        numeric_literal = double_literal | decimal_literal | integer_literal

        def make_boolean(tokens):
            return Literal(tokens[0].lower(), datatype=XSD_BOOLEAN)

        boolean_literal = (Keyword("true") | Keyword("false")).set_parse_action(make_boolean)

        term = variable | iri | blank_node | rdf_literal | numeric_literal | boolean_literal

        def make_rdf_type(tokens):
            return IRI(RDF_TYPE)

        verb = variable | iri | Keyword("a").set_parse_action(make_rdf_type)

        # =================================================================
        # Triples blocks (Turtle-style predicate and object lists)
        # =================================================================

        object_list = Group(DelimitedList(term, delim=","))
        predicate_object = Group(verb + object_list)
        property_list = predicate_object + ZeroOrMore(SEMI + Opt(predicate_object))

        def make_triples(tokens):
            subject = tokens[0]
            patterns = []
            for group in tokens[1:]:
                predicate, objects = group[0], group[1]
                for obj in objects:
                    patterns.append(TriplePattern(subject, predicate, obj))
            return patterns

        triples_same_subject = (term + property_list).set_parse_action(make_triples)

        triples_block = Group(
            Opt(triples_same_subject + ZeroOrMore(DOT + Opt(triples_same_subject)))
        )

        def braced(expr):
            return LBRACE + expr + RBRACE

        # =================================================================
        # Operations
        # =================================================================

        def make_insert_data(tokens):
            return InsertData(triples=list(tokens[0]))

        def make_delete_data(tokens):
            return DeleteData(triples=list(tokens[0]))

        def make_delete_where(tokens):
            return DeleteWhere(patterns=list(tokens[0]))

        insert_data = (Suppress(INSERT + DATA) + braced(triples_block)).set_parse_action(make_insert_data)
        delete_data = (Suppress(DELETE + DATA) + braced(triples_block)).set_parse_action(make_delete_data)
        delete_where = (Suppress(DELETE + WHERE) + braced(triples_block)).set_parse_action(make_delete_where)

        def make_modify(tokens):
            delete = tokens.get("delete")
            insert = tokens.get("insert")
            return Modify(
                delete=list(delete) if delete is not None else None,
                insert=list(insert) if insert is not None else None,
                where=list(tokens["where"]),
            )

        delete_clause = Suppress(DELETE) + braced(triples_block("delete"))
        insert_clause = Suppress(INSERT) + braced(triples_block("insert"))
        modify = (
            ((delete_clause + Opt(insert_clause)) | insert_clause)
            + Suppress(WHERE)
            + braced(triples_block("where"))
        ).set_parse_action(make_modify)

        operation = insert_data | delete_data | delete_where | modify

        # =================================================================
        # Prologue and request
        # =================================================================

        def make_prefix(tokens):
            target = tokens[1]
            if not isinstance(target, IRI):
                raise pp.ParseException("", 0, f"PREFIX {tokens[0]} needs an absolute IRI")
            return PrefixDecl(tokens[0][:-1], target.value)

        def make_base(tokens):
            target = tokens[0]
            if not isinstance(target, IRI):
                raise pp.ParseException("", 0, "BASE needs an absolute IRI")
            return BaseDecl(target.value)

        prefix_decl = (Suppress(PREFIX) + pname_ns + iri_ref).set_parse_action(make_prefix)
        base_decl = (Suppress(BASE) + iri_ref).set_parse_action(make_base)
        prologue = ZeroOrMore(prefix_decl | base_decl)

        def make_request(tokens):
            prefixes: dict[str, str] = {}
            base: Optional[str] = None
            operations: list[Operation] = []
            for token in tokens:
                if isinstance(token, PrefixDecl):
                    prefixes[token.prefix] = token.uri
                elif isinstance(token, BaseDecl):
                    base = token.uri
                elif isinstance(token, Operation):
                    token.prefixes = dict(prefixes)
                    token.base = base
                    operations.append(token)
            return UpdateRequest(operations=operations)

        self.request = (
            prologue
            + Opt(operation + ZeroOrMore(SEMI + prologue + operation))
            + Opt(SEMI)
        ).set_parse_action(make_request)

        self.request.ignore(Regex(r"#[^\n]*"))

    def parse(self, update_string: str) -> UpdateRequest:
        """
        Parse a SPARQL Update string into an AST.

        Raises:
            MalformedRdfException: If the update does not parse or uses
                variables or blank nodes where they are not allowed
        """
        try:
            result = self.request.parse_string(update_string, parse_all=True)
        except pp.ParseBaseException as e:
            raise MalformedRdfException(f"Invalid SPARQL Update: {e}") from e
        request = result[0]
        _validate(request)
        return request


def _validate(request: UpdateRequest) -> None:
    for op in request.operations:
        if isinstance(op, (InsertData, DeleteData)):
            for pattern in op.triples:
                if pattern.variables():
                    raise MalformedRdfException(
                        f"Variables are not allowed in {type(op).__name__} blocks"
                    )
        if isinstance(op, DeleteData):
            for pattern in op.triples:
                if pattern.blank_nodes():
                    raise MalformedRdfException("Blank nodes are not allowed in DELETE DATA")
        if isinstance(op, DeleteWhere):
            for pattern in op.patterns:
                if pattern.blank_nodes():
                    raise MalformedRdfException("Blank nodes are not allowed in DELETE WHERE")
        if isinstance(op, Modify) and op.delete:
            for pattern in op.delete:
                if pattern.blank_nodes():
                    raise MalformedRdfException("Blank nodes are not allowed in DELETE templates")


# Module-level parser instance for convenience
_parser: Optional[SPARQLUpdateParser] = None


def parse_update(update_string: str) -> UpdateRequest:
    """
    Parse a SPARQL Update string.

    This is a convenience function that uses a cached parser instance.
    """
    global _parser
    if _parser is None:
        _parser = SPARQLUpdateParser()
    return _parser.parse(update_string)
