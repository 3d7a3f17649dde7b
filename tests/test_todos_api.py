import asyncio
import importlib
import logging
import os

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid needing a MongoDB server
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

# Import the FastAPI app
from todo_api.exceptions import QueryError  # noqa: E402
from todo_api import main as main_module  # noqa: E402
from todo_api.main import app  # noqa: E402
from todo_api.routers.todos import get_dao  # noqa: E402


@pytest.fixture
def client():
    # Entering the client runs the lifespan, which opens a fresh memory store
    with TestClient(app) as c:
        yield c


def create_todo_payload(description="Do something", tags=None, deadline=None):
    payload = {"description": description}
    if tags is not None:
        payload["tags"] = tags
    if deadline is not None:
        payload["deadline"] = deadline
    return payload


def assert_todo_shape(todo: dict):
    assert set(todo) == {"id", "description", "tags", "deadline"}
    assert isinstance(todo["id"], int)
    assert isinstance(todo["description"], str)
    assert isinstance(todo["tags"], list)
    assert isinstance(todo["deadline"], str)


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "mongo")


class TestTodosCRUD:
    def test_create_todo_minimal(self, client):
        res = client.post("/api/v1/todos/", json=create_todo_payload("Buy milk"))
        assert res.status_code == 201
        todo = res.json()
        assert_todo_shape(todo)
        assert todo["id"] > 0
        assert todo["description"] == "Buy milk"
        assert todo["tags"] == []
        assert todo["deadline"] == ""

    def test_create_todo_with_deadline_date_string(self, client):
        payload = create_todo_payload("Pay bills", tags=["home"], deadline="2099-12-25")
        res = client.post("/api/v1/todos/", json=payload)
        assert res.status_code == 201
        todo = res.json()
        assert todo["deadline"] == "Fri, 25 Dec 2099 00:00:00 GMT"
        assert todo["tags"] == ["home"]

    def test_ids_increase(self, client):
        first = client.post("/api/v1/todos/", json=create_todo_payload("one")).json()["id"]
        second = client.post("/api/v1/todos/", json=create_todo_payload("two")).json()["id"]
        assert second > first

    def test_list_todos(self, client):
        before = len(client.get("/api/v1/todos/").json())
        client.post("/api/v1/todos/", json=create_todo_payload("Listed"))
        res = client.get("/api/v1/todos/")
        assert res.status_code == 200
        items = res.json()
        assert len(items) == before + 1
        for item in items:
            assert_todo_shape(item)

    def test_get_todo_and_not_found(self, client):
        res_create = client.post("/api/v1/todos/", json=create_todo_payload("Read book"))
        assert res_create.status_code == 201
        tid = res_create.json()["id"]

        res_get = client.get(f"/api/v1/todos/{tid}")
        assert res_get.status_code == 200
        assert res_get.json() == res_create.json()

        res_404 = client.get("/api/v1/todos/-1")
        assert res_404.status_code == 404
        assert res_404.json()["detail"] == "Todo not found"

    def test_put_replace_todo(self, client):
        res_create = client.post(
            "/api/v1/todos/", json=create_todo_payload("Initial", tags=["a"], deadline="2030-01-01")
        )
        tid = res_create.json()["id"]

        res_put = client.put(f"/api/v1/todos/{tid}", json=create_todo_payload("Replaced"))
        assert res_put.status_code == 200
        updated = res_put.json()
        assert updated == {"id": tid, "description": "Replaced", "tags": [], "deadline": ""}
        assert client.get(f"/api/v1/todos/{tid}").json() == updated

    def test_put_unchanged_todo_returns_item(self, client):
        payload = create_todo_payload("Unchanged", tags=["x"])
        tid = client.post("/api/v1/todos/", json=payload).json()["id"]
        res_put = client.put(f"/api/v1/todos/{tid}", json=payload)
        assert res_put.status_code == 200
        assert res_put.json()["description"] == "Unchanged"

    def test_put_not_found(self, client):
        res = client.put("/api/v1/todos/424242", json=create_todo_payload("Nope"))
        assert res.status_code == 404
        assert res.json()["detail"] == "Todo not found"

    def test_delete_todo(self, client):
        tid = client.post("/api/v1/todos/", json=create_todo_payload("ToDelete")).json()["id"]

        res_del = client.delete(f"/api/v1/todos/{tid}")
        assert res_del.status_code == 204
        assert res_del.text == ""

        assert client.get(f"/api/v1/todos/{tid}").status_code == 404
        res_del_again = client.delete(f"/api/v1/todos/{tid}")
        assert res_del_again.status_code == 404
        assert res_del_again.json()["detail"] == "Todo not found"


class TestValidationErrors:
    def test_create_validation_error_description_empty(self, client):
        res = client.post("/api/v1/todos/", json={"description": "", "tags": []})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_create_validation_error_bad_deadline(self, client):
        res = client.post("/api/v1/todos/", json=create_todo_payload("Bad", deadline="not-a-date"))
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert isinstance(body.get("detail"), list)


class _FailingDAO:
    async def list_all(self):
        raise QueryError("Failed to list items: boom")


class TestDataAccessErrors:
    def test_query_error_maps_to_500(self, client):
        app.dependency_overrides[get_dao] = lambda: _FailingDAO()
        try:
            res = client.get("/api/v1/todos/")
        finally:
            app.dependency_overrides.clear()
        assert res.status_code == 500
        assert res.json() == {"error": "QueryError", "message": "Failed to list items: boom"}

    def test_disconnected_store_maps_to_503(self, client):
        asyncio.run(app.state.store.disconnect())
        res = client.get("/api/v1/todos/")
        assert res.status_code == 503
        assert res.json()["error"] == "StoreConnectionError"


class TestAppSettings:
    def test_environment_change_after_startup_keeps_provisioned_collections(self, client, monkeypatch):
        monkeypatch.setenv("SEQUENCES_COLLECTION", "other-seq")
        monkeypatch.setenv("TODO_COLLECTION", "other-items")
        res = client.post("/api/v1/todos/", json=create_todo_payload("After env change"))
        assert res.status_code == 201
        tid = res.json()["id"]
        assert client.get(f"/api/v1/todos/{tid}").status_code == 200

    def test_import_does_not_configure_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda *a, **kw: calls.append((a, kw)))
        importlib.reload(main_module)
        assert calls == []

    def test_lifespan_sets_package_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        package_logger = logging.getLogger("todo_api")
        try:
            with TestClient(app):
                assert package_logger.level == logging.DEBUG
        finally:
            package_logger.setLevel(logging.NOTSET)
