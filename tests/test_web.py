"""
Tests for the Linked Data HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from rdf_nodegraph.config import AccessConfig, NodeGraphConfig
from rdf_nodegraph.web import create_app

BASE = "http://testserver/rest"
DC_TITLE = "<http://purl.org/dc/elements/1.1/title>"
NT = {"Content-Type": "application/n-triples"}
SPARQL = {"Content-Type": "application/sparql-update"}


def title_body(path, title):
    return f'<{BASE}{path}> {DC_TITLE} "{title}" .\n'


class TestInfoEndpoints:
    """Test service endpoints."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(config=NodeGraphConfig(base_uri=BASE)))

    def test_root(self, client):
        """Root returns basic info."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["base_uri"] == BASE

    def test_health(self, client):
        """Health check reports healthy."""
        assert client.get("/health").json() == {"status": "healthy"}

    def test_stats(self, client):
        """Stats count nodes in the repository."""
        assert client.get("/stats").json()["nodes"] == 1


class TestResources:
    """Test GET, PUT, PATCH and DELETE on resources."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(config=NodeGraphConfig(base_uri=BASE)))

    def test_get_root(self, client):
        """The root resource exists from the start."""
        response = client.get("/rest/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/n-triples")
        assert "hasChildCount" in response.text
        assert response.headers["etag"].startswith('W/"')

    def test_put_creates(self, client):
        """PUT creates a missing resource and stores its properties."""
        response = client.put("/rest/book", content=title_body("/book", "Moby Dick"), headers=NT)
        assert response.status_code == 201
        assert response.headers["location"] == BASE + "/book"

        response = client.get("/rest/book", params={"include": "properties"})
        assert response.status_code == 200
        assert response.text == title_body("/book", "Moby Dick")

    def test_put_replaces(self, client):
        """PUT on an existing resource replaces its properties."""
        client.put("/rest/book", content=title_body("/book", "Old"), headers=NT)
        response = client.put("/rest/book", content=title_body("/book", "New"), headers=NT)
        assert response.status_code == 204

        text = client.get("/rest/book", params={"include": "properties"}).text
        assert '"New"' in text
        assert '"Old"' not in text

    def test_put_unsupported_media_type(self, client):
        """PUT only accepts N-Triples."""
        response = client.put("/rest/book", content="{}", headers={"Content-Type": "application/json"})
        assert response.status_code == 415

    def test_put_unparsable_body(self, client):
        """Syntax errors in the body are client errors."""
        response = client.put("/rest/book", content="not n-triples", headers=NT)
        assert response.status_code == 400

    def test_put_invalid_utf8(self, client):
        """Bodies that are not UTF-8 are client errors."""
        response = client.put("/rest/x", content=b'"\xff"', headers=NT)
        assert response.status_code == 400
        assert client.get("/rest/x").status_code == 404

    def test_patch_invalid_utf8(self, client):
        """Updates that are not UTF-8 are client errors."""
        client.put("/rest/book", content="", headers=NT)
        response = client.patch("/rest/book", content=b"INSERT DATA { \xff }", headers=SPARQL)
        assert response.status_code == 400

    def test_put_foreign_subject(self, client):
        """Statements about other resources are rejected."""
        response = client.put("/rest/book", content=title_body("/other", "x"), headers=NT)
        assert response.status_code == 400
        assert client.get("/rest/book").status_code == 404

    def test_put_server_managed(self, client):
        """Server-managed predicates fail the request and nothing is committed."""
        body = (
            f'<{BASE}/book> <http://fedora.info/definitions/v4/repository#created> '
            f'"2020-01-01T00:00:00Z"^^<http://www.w3.org/2001/XMLSchema#dateTime> .\n'
        )
        response = client.put("/rest/book", content=body, headers=NT)
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["has_fatal"] is True
        assert detail["problems"][0]["error"] == "ServerManagedPropertyError"
        assert client.get("/rest/book").status_code == 404

    def test_put_creates_intermediate_nodes(self, client):
        """Missing ancestors are created and list their children."""
        for name in ("c1", "c2", "c3"):
            client.put(f"/rest/parent/{name}", content="", headers=NT)

        response = client.get("/rest/parent", params={"include": "children"}, headers={"Limit": "-1"})
        assert response.status_code == 200
        assert response.text.count("http://www.w3.org/ns/ldp#contains") == 3

        response = client.get("/rest/parent", params={"include": "children"})
        assert "ldp#contains" not in response.text
        assert '"3"^^<http://www.w3.org/2001/XMLSchema#integer>' in response.text

    def test_get_unknown_category(self, client):
        """Unknown categories are client errors."""
        response = client.get("/rest/", params={"include": "properties,bogus"})
        assert response.status_code == 400

    def test_get_missing(self, client):
        """Missing resources are 404."""
        assert client.get("/rest/nope").status_code == 404

    def test_patch(self, client):
        """PATCH applies a SPARQL Update."""
        client.put("/rest/book", content=title_body("/book", "a"), headers=NT)
        update = (
            "PREFIX dc: <http://purl.org/dc/elements/1.1/> "
            'DELETE { <> dc:title "a" } INSERT { <> dc:title "b" } WHERE { }'
        )
        response = client.patch("/rest/book", content=update, headers=SPARQL)
        assert response.status_code == 204

        text = client.get("/rest/book", params={"include": "properties"}).text
        assert text == title_body("/book", "b")

    def test_patch_requires_sparql_update(self, client):
        """PATCH only accepts SPARQL Update."""
        client.put("/rest/book", content="", headers=NT)
        response = client.patch("/rest/book", content="INSERT DATA { }", headers=NT)
        assert response.status_code == 415

    def test_patch_missing(self, client):
        """PATCH does not create resources."""
        response = client.patch("/rest/nope", content="INSERT DATA { }", headers=SPARQL)
        assert response.status_code == 404

    def test_patch_malformed(self, client):
        """Unparsable updates are client errors."""
        client.put("/rest/book", content="", headers=NT)
        response = client.patch("/rest/book", content="INSERT NONSENSE", headers=SPARQL)
        assert response.status_code == 400

    def test_delete(self, client):
        """DELETE removes the resource."""
        client.put("/rest/book", content="", headers=NT)
        assert client.delete("/rest/book").status_code == 204
        assert client.get("/rest/book").status_code == 404

    def test_delete_root(self, client):
        """The root cannot be deleted."""
        assert client.delete("/rest/").status_code == 409


class TestAccessControl:
    """Test access policy enforcement over HTTP."""

    @pytest.fixture
    def client(self):
        config = NodeGraphConfig(base_uri=BASE, access=AccessConfig(read_only_paths=["/book"]))
        return TestClient(create_app(config=config))

    def test_denied_write(self, client):
        """Refused statements give 403 and discard the request's changes."""
        response = client.put("/rest/book", content=title_body("/book", "x"), headers=NT)
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "AccessDeniedException"
        assert client.get("/rest/book").status_code == 404


class TestTransactions:
    """Test long-running transactions."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(config=NodeGraphConfig(base_uri=BASE)))

    def begin(self, client):
        response = client.post("/rest/fcr:tx")
        assert response.status_code == 201
        tx_id = response.json()["id"]
        assert response.headers["location"] == f"{BASE}/tx:{tx_id}"
        return tx_id

    def test_commit(self, client):
        """Changes in a transaction are visible outside only after commit."""
        tx_id = self.begin(client)
        response = client.put(f"/rest/tx:{tx_id}/txbook", content=title_body("/txbook", "T"), headers=NT)
        assert response.status_code == 201
        assert response.headers["location"] == f"{BASE}/tx:{tx_id}/txbook"

        assert client.get("/rest/txbook").status_code == 404
        inside = client.get(f"/rest/tx:{tx_id}/txbook")
        assert inside.status_code == 200
        assert inside.headers["link"] == f'<{BASE}/txbook>; rel="canonical"'

        assert client.post(f"/rest/tx:{tx_id}/fcr:tx/fcr:commit").status_code == 204
        assert client.get("/rest/txbook").status_code == 200

    def test_rollback(self, client):
        """Rolled back transactions leave no trace."""
        tx_id = self.begin(client)
        client.put(f"/rest/tx:{tx_id}/txbook", content="", headers=NT)
        assert client.post(f"/rest/tx:{tx_id}/fcr:tx/fcr:rollback").status_code == 204
        assert client.get("/rest/txbook").status_code == 404

    def test_unknown_transaction(self, client):
        """Requests against an unknown transaction are 404."""
        assert client.get("/rest/tx:missing/book").status_code == 404
        assert client.post("/rest/tx:missing/fcr:tx/fcr:commit").status_code == 404

    def test_finished_transaction(self, client):
        """A committed transaction cannot be used again."""
        tx_id = self.begin(client)
        client.post(f"/rest/tx:{tx_id}/fcr:tx/fcr:commit")
        assert client.get(f"/rest/tx:{tx_id}/").status_code == 404
