"""
Tests for the in-memory node store: sessions, nodes, properties and mixins.
"""

import pytest

from rdf_nodegraph.errors import (
    AccessDeniedException,
    NodeNotFoundError,
    SchemaConstraintViolation,
)
from rdf_nodegraph.storage import (
    AccessPolicy,
    NodeTypeDefinition,
    PropertyDefinition,
    PropertyType,
    PropertyValue,
    Repository,
    SessionState,
)


def text(value):
    return PropertyValue(PropertyType.STRING, value)


class TestSessionLifecycle:
    """Test commit, discard and isolation."""

    @pytest.fixture
    def repo(self):
        return Repository()

    def test_root_exists(self, repo):
        """A new repository has a root container."""
        session = repo.begin()
        assert session.exists("/")
        assert session.get_node("/").primary_type == "repo:Container"

    def test_commit_publishes(self, repo):
        """Committed mutations are visible to later sessions only."""
        writer = repo.begin()
        concurrent = repo.begin()
        writer.create_node("/a")
        writer.commit()

        assert not concurrent.exists("/a")
        assert repo.begin().exists("/a")
        assert writer.state == SessionState.COMMITTED

    def test_discard_voids_mutations(self, repo):
        """Discarded mutations never reach the repository."""
        session = repo.begin()
        session.create_node("/a")
        session.discard()

        assert not repo.begin().exists("/a")
        assert session.state == SessionState.DISCARDED

    def test_closed_session_rejects_operations(self, repo):
        """A finished session cannot be used again."""
        session = repo.begin()
        session.commit()
        with pytest.raises(RuntimeError):
            session.get_node("/")
        with pytest.raises(RuntimeError):
            session.commit()

    def test_context_manager(self, repo):
        """session() commits on success and discards on exception."""
        with repo.session() as session:
            session.create_node("/kept")

        with pytest.raises(ValueError):
            with repo.session() as session:
                session.create_node("/lost")
                raise ValueError("boom")

        check = repo.begin()
        assert check.exists("/kept")
        assert not check.exists("/lost")

    def test_snapshots_are_owned(self, repo):
        """Mutating a returned node does not change the store."""
        session = repo.begin()
        node = session.get_node("/")
        node.mixins.append("repo:Versionable")
        assert session.get_node("/").mixins == []

    def test_overlapping_commits_merge(self, repo):
        """Sessions committing changes to different nodes keep each other's work."""
        first = repo.begin()
        second = repo.begin()
        first.create_node("/a")
        first.set_property("/a", "ex:p", [text("x")])
        second.create_node("/b")
        second.set_property("/b", "foo:q", [text("y")])
        first.commit()
        second.commit()

        check = repo.begin()
        assert check.get_node("/a").properties["ex:p"].values == [text("x")]
        assert check.get_node("/b").properties["foo:q"].values == [text("y")]
        assert sorted(check.list_children("/")) == ["/a", "/b"]

    def test_overlapping_delete_and_update(self, repo):
        """A delete in one session and an update elsewhere both survive."""
        with repo.session() as session:
            session.create_node("/gone")
            session.create_node("/gone/child")
            session.create_node("/kept")

        deleter = repo.begin()
        updater = repo.begin()
        deleter.delete_node("/gone")
        updater.set_property("/kept", "ex:p", [text("v")])
        deleter.commit()
        updater.commit()

        check = repo.begin()
        assert not check.exists("/gone")
        assert not check.exists("/gone/child")
        assert list(check.list_children("/")) == ["/kept"]
        assert check.get_node("/kept").has_property("ex:p")

    def test_registrations_are_shared(self, repo):
        """Namespace and mixin registrations are repository-wide and survive a discard."""
        session = repo.begin()
        prefix = session.namespaces.register("http://example.org/ns#", "ex")
        session.types.register_mixin("ex:Image")
        session.discard()

        check = repo.begin()
        assert check.namespaces.get_uri(prefix) == "http://example.org/ns#"
        assert check.types.has_type("ex:Image")

    def test_stats(self, repo):
        """Repository statistics count nodes and commits."""
        with repo.session() as session:
            session.create_node("/a")
        stats = repo.stats()
        assert stats["nodes"] == 2
        assert stats["commits"] == 1


class TestNodes:
    """Test node creation, listing and deletion."""

    @pytest.fixture
    def session(self):
        return Repository().begin()

    def test_create_requires_parent(self, session):
        """Nodes cannot be created under a missing parent."""
        with pytest.raises(NodeNotFoundError):
            session.create_node("/missing/child")

    def test_create_duplicate_fails(self, session):
        """A path can hold only one node."""
        session.create_node("/a")
        with pytest.raises(ValueError, match="already exists"):
            session.create_node("/a")

    def test_unknown_primary_type(self, session):
        """Primary types must be registered."""
        with pytest.raises(SchemaConstraintViolation):
            session.create_node("/a", "ex:Unknown")

    def test_children_exclude_hash_nodes(self, session):
        """Hash resources are attached to a node but are not its children."""
        session.create_node("/a")
        session.create_node("/a/b")
        session.create_node("/a/c")
        session.create_node("/a/#/x", "repo:HashResource")

        assert session.count_children("/a") == 2
        assert list(session.list_children("/a")) == ["/a/b", "/a/c"]
        assert session.list_hash_nodes("/a") == ["/a/#/x"]

    def test_list_children_limit(self, session):
        """list_children stops after the limit."""
        session.create_node("/a")
        for name in ("b", "c", "d"):
            session.create_node(f"/a/{name}")

        assert list(session.list_children("/a", limit=2)) == ["/a/b", "/a/c"]
        assert len(list(session.list_children("/a", limit=-1))) == 3
        assert list(session.list_children("/a", limit=0)) == []

    def test_delete_subtree(self, session):
        """Deleting a node removes its descendants and hash resources."""
        session.create_node("/a")
        session.create_node("/a/b")
        session.create_node("/a/#/x", "repo:HashResource")
        session.delete_node("/a")

        assert not session.exists("/a")
        assert not session.exists("/a/b")
        assert not session.exists("/a/#/x")
        assert session.count_children("/") == 0

    def test_root_cannot_be_deleted(self, session):
        """The root node is permanent."""
        with pytest.raises(SchemaConstraintViolation):
            session.delete_node("/")

    def test_missing_node(self, session):
        """Reading a missing node raises NodeNotFoundError with the path."""
        with pytest.raises(NodeNotFoundError) as exc_info:
            session.get_node("/nope")
        assert exc_info.value.path == "/nope"


class TestProperties:
    """Test property writes and access control."""

    @pytest.fixture
    def session(self):
        session = Repository().begin()
        session.create_node("/a")
        return session

    def test_set_and_remove(self, session):
        """Properties hold lists of values and can be removed."""
        session.set_property("/a", "dc:title", [text("one"), text("two")])
        prop = session.get_node("/a").properties["dc:title"]
        assert [v.value for v in prop.values] == ["one", "two"]

        session.remove_property("/a", "dc:title")
        assert not session.get_node("/a").has_property("dc:title")

    def test_single_valued(self, session):
        """A single-valued property cannot hold two values."""
        with pytest.raises(SchemaConstraintViolation):
            session.set_property("/a", "dc:title", [text("one"), text("two")], multiple=False)

    def test_protected_definition(self, session):
        """Properties declared protected by the node type cannot be written."""
        with pytest.raises(AccessDeniedException, match="protected"):
            session.set_property("/a", "repo:created", [text("2020")])

    def test_policy_protected_prefix(self):
        """The access policy can protect a whole namespace prefix."""
        session = Repository().begin(AccessPolicy(protected_prefixes=frozenset({"secret"})))
        session.create_node("/a")
        with pytest.raises(AccessDeniedException):
            session.set_property("/a", "secret:code", [text("x")])
        session.set_property("/a", "dc:title", [text("ok")])

    def test_policy_read_only_path(self):
        """Read-only paths refuse every property and mixin write."""
        session = Repository().begin(AccessPolicy(read_only_paths=frozenset({"/a"})))
        session.create_node("/a")
        with pytest.raises(AccessDeniedException):
            session.set_property("/a", "dc:title", [text("x")])
        with pytest.raises(AccessDeniedException):
            session.add_mixin("/a", "repo:Versionable")

    def test_property_definition_lookup(self, session):
        """Definitions are found through the node's supertypes."""
        definition = session.property_definition("/a", "repo:lastModified")
        assert definition is not None
        assert definition.multiple is False
        assert session.property_definition("/a", "dc:title") is None

    def test_mutation_updates_last_modified(self, session):
        """Writes advance the node's modification time."""
        before = session.get_node("/a").last_modified
        session.set_property("/a", "dc:title", [text("x")])
        assert session.get_node("/a").last_modified >= before
        assert session.mutations == 2


class TestMixins:
    """Test mixin management and versions."""

    @pytest.fixture
    def session(self):
        session = Repository().begin()
        session.create_node("/a")
        return session

    def test_add_and_remove_mixin(self, session):
        """Mixins can be added and removed at runtime."""
        session.add_mixin("/a", "repo:Versionable")
        assert session.get_node("/a").mixins == ["repo:Versionable"]
        assert session.get_node("/a").declared_types() == ["repo:Container", "repo:Versionable"]

        session.remove_mixin("/a", "repo:Versionable")
        assert session.get_node("/a").mixins == []

    def test_can_add_mixin(self, session):
        """Only registered mixin types can be added."""
        assert session.can_add_mixin("/a", "repo:Versionable")
        assert not session.can_add_mixin("/a", "ex:Unknown")
        assert not session.can_add_mixin("/a", "repo:Binary")

    def test_add_non_mixin_fails(self, session):
        """Primary types cannot be added as mixins."""
        with pytest.raises(SchemaConstraintViolation):
            session.add_mixin("/a", "repo:Binary")

    def test_remove_required_mixin(self, session):
        """A mixin another declared type depends on cannot be removed."""
        session.types.register_mixin("ex:Base")
        session.types.register(NodeTypeDefinition("ex:Derived", is_mixin=True, supertypes=("ex:Base",)))
        session.add_mixin("/a", "ex:Base")
        session.add_mixin("/a", "ex:Derived")

        with pytest.raises(SchemaConstraintViolation, match="required"):
            session.remove_mixin("/a", "ex:Base")

    def test_register_mixin_is_idempotent(self, session):
        """register_mixin returns the existing definition for a known name."""
        first = session.types.register_mixin("ex:Image")
        second = session.types.register_mixin("ex:Image")
        assert first is second

    def test_mixin_property_definitions(self, session):
        """Property definitions of mixins apply to the node."""
        session.types.register(NodeTypeDefinition(
            "ex:Titled",
            is_mixin=True,
            property_definitions=(PropertyDefinition("dc:title", PropertyType.STRING, multiple=False),),
        ))
        session.add_mixin("/a", "ex:Titled")
        assert session.property_definition("/a", "dc:title").multiple is False

    def test_versions(self, session):
        """Versionable nodes record labelled snapshots."""
        with pytest.raises(SchemaConstraintViolation):
            session.create_version("/a", "v1")

        session.add_mixin("/a", "repo:Versionable")
        session.set_property("/a", "dc:title", [text("first")])
        session.create_version("/a", "v1")
        session.set_property("/a", "dc:title", [text("second")])

        assert session.list_versions("/a") == ["v1"]
        snapshot = session.get_version("/a", "v1")
        assert snapshot.properties["dc:title"].values[0].value == "first"

        with pytest.raises(ValueError):
            session.create_version("/a", "v1")
