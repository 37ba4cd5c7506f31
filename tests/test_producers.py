"""
Tests for the category producers behind get_triples().
"""

import polars as pl
import pytest

from rdf_nodegraph.errors import NodeNotFoundError, UnknownCategoryError
from rdf_nodegraph.identifiers import IdentifierTranslator
from rdf_nodegraph.models import IRI, Literal, Triple
from rdf_nodegraph.rdf.categories import TripleCategory, resolve_categories
from rdf_nodegraph.resource import get_triples
from rdf_nodegraph.storage import PropertyType, PropertyValue, Repository
from rdf_nodegraph.vocab import (
    CREATED,
    HAS_CHILD_COUNT,
    HAS_PARENT,
    HAS_VERSION,
    LAST_MODIFIED,
    LDP_CONTAINS,
    LDP_NS,
    RDF_TYPE,
    REPOSITORY_NS,
    XSD_INTEGER,
    XSD_LONG,
)

BASE = "http://example.org/rest"
DC = "http://purl.org/dc/elements/1.1/"
TOPIC = IRI(BASE + "/book")


class TestCategoryResolution:
    """Test normalization of category requests."""

    def test_list_keeps_order(self):
        """Lists are produced in the caller's order, without repeats."""
        assert resolve_categories(["types", "properties", "types"]) == [
            TripleCategory.TYPES,
            TripleCategory.PROPERTIES,
        ]

    def test_set_uses_declaration_order(self):
        """Sets are put into canonical order."""
        assert resolve_categories({"children", "properties"}) == [
            TripleCategory.PROPERTIES,
            TripleCategory.CHILDREN,
        ]

    def test_single_category(self):
        """A single name or enum member is accepted."""
        assert resolve_categories("versions") == [TripleCategory.VERSIONS]
        assert resolve_categories(TripleCategory.TYPES) == [TripleCategory.TYPES]

    def test_unknown_category(self):
        """Unknown names raise UnknownCategoryError, a ValueError."""
        with pytest.raises(UnknownCategoryError):
            resolve_categories(["properties", "embeddings"])
        assert issubclass(UnknownCategoryError, ValueError)


class TestProducers:
    """Test the triples produced for each category."""

    @pytest.fixture
    def translator(self):
        return IdentifierTranslator(BASE)

    @pytest.fixture
    def session(self):
        session = Repository().begin()
        session.namespaces.register(DC, "dc")
        session.create_node("/book")
        session.set_property("/book", "dc:title", [PropertyValue(PropertyType.STRING, "Moby Dick")])
        return session

    def test_properties(self, session, translator):
        """Each stored value becomes one triple about the resource."""
        triples = get_triples(session, "/book", translator, ["properties"]).collect()
        assert triples == [Triple(TOPIC, IRI(DC + "title"), Literal("Moby Dick"))]

    def test_typed_values(self, session, translator):
        """Typed values render with their datatype."""
        session.set_property("/book", "dc:extent", [PropertyValue(PropertyType.LONG, 635)])
        session.set_property("/book", "dc:language", [PropertyValue(PropertyType.STRING, "en", lang="en")])
        triples = get_triples(session, "/book", translator, "properties").collect()

        assert Triple(TOPIC, IRI(DC + "extent"), Literal("635", datatype=XSD_LONG)) in triples
        assert Triple(TOPIC, IRI(DC + "language"), Literal("en", language="en")) in triples

    def test_internal_properties_hidden(self, session, translator):
        """Properties in the store's own namespaces are not rendered."""
        session.set_property("/book", "repo:note", [PropertyValue(PropertyType.STRING, "x")])
        triples = get_triples(session, "/book", translator, ["properties"]).collect()
        assert len(triples) == 1

    def test_references(self, session, translator):
        """References render as the target's URI."""
        session.create_node("/author")
        session.set_property("/book", "dc:creator", [PropertyValue(PropertyType.REFERENCE, "/author")])
        triples = get_triples(session, "/book", translator, ["properties"]).collect()
        assert Triple(TOPIC, IRI(DC + "creator"), IRI(BASE + "/author")) in triples

    def test_types(self, session, translator):
        """Primary type and mixins are rendered through the type mapping."""
        session.add_mixin("/book", "repo:Versionable")
        triples = get_triples(session, "/book", translator, ["types"]).collect()
        assert triples == [
            Triple(TOPIC, IRI(RDF_TYPE), IRI(LDP_NS + "Container")),
            Triple(TOPIC, IRI(RDF_TYPE), IRI(REPOSITORY_NS + "Versionable")),
        ]

    def test_child_count_without_children(self, session, translator):
        """A leaf reports a count of zero."""
        triples = get_triples(session, "/book", translator, ["children"]).collect()
        assert triples == [Triple(TOPIC, IRI(HAS_CHILD_COUNT), Literal("0", datatype=XSD_INTEGER))]

    def test_child_count_only_by_default(self, session, translator):
        """With the default limit only the count is produced."""
        for name in ("ch1", "ch2", "ch3"):
            session.create_node(f"/book/{name}")
        triples = get_triples(session, "/book", translator, ["children"]).collect()
        assert triples == [Triple(TOPIC, IRI(HAS_CHILD_COUNT), Literal("3", datatype=XSD_INTEGER))]

    def test_child_listing(self, session, translator):
        """A limit of -1 lists all children; a positive limit caps the listing."""
        for name in ("ch1", "ch2", "ch3"):
            session.create_node(f"/book/{name}")

        everything = get_triples(session, "/book", translator, ["children"], child_limit=-1).collect()
        contains = [t for t in everything if t.predicate == IRI(LDP_CONTAINS)]
        assert [t.object for t in contains] == [
            IRI(BASE + "/book/ch1"), IRI(BASE + "/book/ch2"), IRI(BASE + "/book/ch3"),
        ]

        capped = get_triples(session, "/book", translator, ["children"], child_limit=2).collect()
        assert len([t for t in capped if t.predicate == IRI(LDP_CONTAINS)]) == 2
        assert capped[0].object == Literal("3", datatype=XSD_INTEGER)

    def test_versions(self, session, translator):
        """Each version label becomes a hasVersion link."""
        session.add_mixin("/book", "repo:Versionable")
        session.create_version("/book", "v1")
        triples = get_triples(session, "/book", translator, ["versions"]).collect()
        assert triples == [Triple(TOPIC, IRI(HAS_VERSION), IRI(BASE + "/book/fcr:versions/v1"))]

    def test_server_managed(self, session, translator):
        """Timestamps and the parent link are server managed."""
        triples = get_triples(session, "/book", translator, ["server_managed"]).collect()
        predicates = [t.predicate.value for t in triples]
        assert predicates == [CREATED, LAST_MODIFIED, HAS_PARENT]
        assert triples[2].object == IRI(BASE + "/")

    def test_category_order(self, session, translator):
        """Categories are concatenated in the requested order."""
        triples = get_triples(session, "/book", translator, ["types", "properties"]).collect()
        assert triples[0].predicate == IRI(RDF_TYPE)
        assert triples[-1].predicate == IRI(DC + "title")

        triples = get_triples(session, "/book", translator, {"types", "properties"}).collect()
        assert triples[0].predicate == IRI(DC + "title")

    def test_categories_are_disjoint(self, session, translator):
        """No triple is produced by two categories."""
        session.add_mixin("/book", "repo:Versionable")
        session.create_version("/book", "v1")
        session.create_node("/book/ch1")
        triples = get_triples(
            session, "/book", translator, list(TripleCategory), child_limit=-1
        ).collect()
        assert len(triples) == len(set(triples))

    def test_unknown_category_is_eager(self, session, translator):
        """Unknown categories fail before any triple is produced."""
        with pytest.raises(UnknownCategoryError):
            get_triples(session, "/book", translator, ["properties", "bogus"])

    def test_missing_node(self, session, translator):
        """Describing a missing node raises NodeNotFoundError."""
        with pytest.raises(NodeNotFoundError):
            get_triples(session, "/nope", translator, ["properties"])


class TestRdfStream:
    """Test stream behaviour."""

    @pytest.fixture
    def stream(self):
        session = Repository().begin()
        session.create_node("/book")
        return get_triples(session, "/book", IdentifierTranslator(BASE), ["types", "children"])

    def test_topic(self, stream):
        """The stream's topic is the resource URI."""
        assert stream.topic == TOPIC

    def test_single_pass(self, stream):
        """A stream can be iterated only once."""
        assert len(list(stream)) == 2
        assert stream.consumed
        with pytest.raises(RuntimeError, match="consumed"):
            list(stream)

    def test_to_frame(self, stream):
        """Streams tabulate as N-Triples term strings."""
        frame = stream.to_frame()
        assert isinstance(frame, pl.DataFrame)
        assert frame.columns == ["subject", "predicate", "object"]
        assert frame.height == 2
        assert frame["subject"].to_list() == [TOPIC.n3(), TOPIC.n3()]

    def test_filter(self, stream):
        """Filtered streams keep the topic."""
        types = stream.filter(lambda t: t.predicate == IRI(RDF_TYPE))
        assert types.topic == TOPIC
        assert len(types.collect()) == 1

    def test_to_graph(self, stream):
        """Streams collect into a graph carrying the store's prefixes."""
        graph = stream.to_graph()
        assert len(graph) == 2
        assert graph.namespaces["repo"] == REPOSITORY_NS
        assert stream.consumed
