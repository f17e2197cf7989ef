import pytest
from fastapi.testclient import TestClient

import api as api_module
from database import AUTHORS, StoreFailure


@pytest.fixture
def client(catalog):
    # Point the app at the per-test catalog
    api_module.app.state.catalog = catalog
    test_client = TestClient(api_module.app)
    try:
        yield test_client
    finally:
        api_module.app.state.catalog = None


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["db"] is True

def test_index_counts(client, seeded):
    response = client.get("/catalog")
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "index"
    assert body["data"] == {"author_count": 2, "book_count": 2}

def test_book_list_is_serialized_with_authors(client, seeded):
    response = client.get("/catalog/books")
    assert response.status_code == 200
    books = response.json()["book_list"]
    assert [b["title"] for b in books] == ["Emma", "Persuasion"]
    assert books[0]["author"]["name"] == "Austen, Jane"
    assert books[0]["url"] == f"/catalog/book/{seeded['emma'].id}"

def test_author_create_redirects(client, store):
    payload = {"first_name": "Toni", "family_name": "Morrison", "date_of_birth": "1931-02-18"}
    response = client.post("/catalog/author/create", json=payload, follow_redirects=False)
    assert response.status_code == 302
    [doc] = store.find_all(AUTHORS)
    assert response.headers["location"] == f"/catalog/author/{doc['id']}"

    detail = client.get(response.headers["location"])
    assert detail.json()["author"]["date_of_birth"] == "1931-02-18"

def test_author_create_validation_errors_are_rendered(client, store):
    response = client.post("/catalog/author/create", json={"first_name": "", "family_name": "Doe"})
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "author_form"
    assert body["errors"] == [{"field": "first_name", "msg": "First name must be specified.", "value": ""}]
    assert body["author"]["family_name"] == "Doe"
    assert store.count(AUTHORS) == 0

def test_missing_author_is_404(client):
    assert client.get("/catalog/author/missing").status_code == 404
    assert client.get("/catalog/author/missing/update").status_code == 404
    assert client.get("/catalog/book/missing").status_code == 404

def test_author_delete_refused_then_allowed(client, seeded):
    austen_id = seeded["austen"].id
    refused = client.post(f"/catalog/author/{austen_id}/delete", follow_redirects=False)
    assert refused.status_code == 200
    assert [b["title"] for b in refused.json()["author_books"]] == ["Emma", "Persuasion"]

    for key in ("emma", "persuasion"):
        client.post(f"/catalog/book/{seeded[key].id}/delete", follow_redirects=False)

    allowed = client.post(f"/catalog/author/{austen_id}/delete", follow_redirects=False)
    assert allowed.status_code == 302
    assert allowed.headers["location"] == "/catalog/authors"
    assert client.get(f"/catalog/author/{austen_id}").status_code == 404

def test_book_update_post(client, seeded):
    emma_id = seeded["emma"].id
    payload = {"title": "Emma", "author": seeded["woolf"].id, "summary": "Revised", "isbn": "9780141439587"}
    response = client.post(f"/catalog/book/{emma_id}/update", json=payload, follow_redirects=False)
    assert response.status_code == 302
    detail = client.get(f"/catalog/book/{emma_id}").json()
    assert detail["book"]["summary"] == "Revised"
    assert detail["book"]["author"]["family_name"] == "Woolf"

def test_store_failure_is_500(client, catalog, monkeypatch):
    def broken(*args, **kwargs):
        raise StoreFailure("Read failed")

    monkeypatch.setattr(catalog.store, "count", broken)
    response = client.get("/catalog")
    assert response.status_code == 500

def test_null_field_reaches_the_validators(client, store):
    response = client.post("/catalog/author/create", json={"first_name": None, "family_name": "Doe"})
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "author_form"
    assert body["errors"] == [{"field": "first_name", "msg": "First name must be specified.", "value": ""}]
    assert store.count(AUTHORS) == 0

def test_non_string_values_are_validated_as_text(client, seeded):
    payload = {"title": "Numbers", "author": seeded["woolf"].id, "summary": 42, "isbn": 9780141439587}
    response = client.post("/catalog/book/create", json=payload, follow_redirects=False)
    assert response.status_code == 302
    book = client.get(response.headers["location"]).json()["book"]
    assert book["summary"] == "42"
    assert book["isbn"] == "9780141439587"

def test_form_encoded_submission_is_accepted(client, store):
    form = {"first_name": "Toni", "family_name": "Morrison", "date_of_birth": "1931-02-18"}
    response = client.post("/catalog/author/create", data=form, follow_redirects=False)
    assert response.status_code == 302
    [doc] = store.find_all(AUTHORS)
    assert doc["family_name"] == "Morrison"

def test_invalid_form_encoded_submission_rerenders_the_form(client, seeded):
    austen_id = seeded["austen"].id
    response = client.post(f"/catalog/author/{austen_id}/update", data={"first_name": "J@ne", "family_name": "Austen"})
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "author_form"
    assert body["author"]["id"] == austen_id
    assert body["errors"][0]["msg"] == "First name has non-alphanumeric characters."

def test_unparsable_json_body_renders_required_messages(client):
    response = client.post(
        "/catalog/book/create", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 200
    assert [e["field"] for e in response.json()["errors"]] == ["title", "author", "summary", "isbn"]
