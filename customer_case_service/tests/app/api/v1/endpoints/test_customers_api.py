import pytest

from fastapi.testclient import TestClient

from customer_case_service.app.main import app
from customer_case_service.app.dependencies.record_store import get_record_store


@pytest.fixture
def client(seeded_store):
    app.dependency_overrides = {}
    app.dependency_overrides[get_record_store] = lambda: seeded_store
    yield TestClient(app)
    app.dependency_overrides = {}


def test_upsert_and_get_organization(client: TestClient, seeded_store):
    response = client.put("/api/v1/organizations/org-x", json={"name": "Org X", "designated_contact_id": "ind-2"})

    assert response.status_code == 200
    assert seeded_store.organizations["org-x"].designated_contact_id == "ind-2"
    assert client.get("/api/v1/organizations/org-x").json()["name"] == "Org X"


def test_get_organization_not_found(client: TestClient):
    assert client.get("/api/v1/organizations/nope").status_code == 404


def test_designated_contact_lookup(client: TestClient):
    response = client.get("/api/v1/organizations/org-b/designated-contact")

    assert response.status_code == 200
    assert response.json() == {"id": "org-b", "designated_contact_id": "ind-1", "designated_contact_name": "Jane Doe"}


def test_designated_contact_lookup_not_found(client: TestClient):
    response = client.get("/api/v1/organizations/nope/designated-contact")

    assert response.status_code == 404
    assert response.json()["detail"] == "Organization with ID 'nope' not found."


def test_upsert_and_get_individual(client: TestClient):
    response = client.put("/api/v1/individuals/ind-5", json={"display_name": "Sam Poe", "email": "sam@example.com"})

    assert response.status_code == 200
    assert client.get("/api/v1/individuals/ind-5").json()["email"] == "sam@example.com"


def test_individual_quick_view_hides_empty_fields(client: TestClient):
    response = client.get("/api/v1/individuals/ind-1/quick-view")

    assert response.status_code == 200
    body = response.json()
    assert body["individual"]["display_name"] == "Jane Doe"
    assert body["visible_fields"] == {"email": True, "mobile_phone": False}
    assert body["messages"] == []


def test_individual_quick_view_not_found(client: TestClient):
    assert client.get("/api/v1/individuals/nope/quick-view").status_code == 404
