"""Validation and failure handling for the ``/users`` API."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from usersapi.api import create_app
from usersapi.models import Found, NotFound, User

INVALID_ID = {"message": "Bad Request - Invalid id"}
INVALID_BODY = {"message": "Bad Request - firstName and lastName must be strings"}
INTERNAL_ERROR = {"message": "Internal Server Error"}


class UntouchableDatabase:
    """Fails the test if any store operation is reached."""

    def __getattr__(self, name: str):
        def _fail(*_args, **_kwargs):
            raise AssertionError(f"store accessed via {name}")

        return _fail


class BrokenDatabase:
    """Simulates a store that lost connectivity."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def _fail(self, name: str):
        self.calls.append(name)
        raise sqlite3.OperationalError("unable to open database file")

    def list_users(self):
        self._fail("list_users")

    def get_user(self, user_id):
        self._fail("get_user")

    def create_user(self, first_name, last_name):
        self._fail("create_user")

    def update_user(self, user_id, first_name, last_name):
        self._fail("update_user")

    def delete_user(self, user_id):
        self._fail("delete_user")


@pytest.fixture
def untouched_client():
    with TestClient(create_app(database=UntouchableDatabase())) as client:
        yield client


@pytest.mark.parametrize("raw_id", ["abc", "-1", "1.5", "12abc", "1_0", "0x1", "+5", "1e3"])
@pytest.mark.parametrize("method", ["GET", "PATCH", "DELETE"])
def test_invalid_id_is_rejected_before_store_access(untouched_client, method: str, raw_id: str) -> None:
    kwargs = {"json": {"firstName": "A", "lastName": "B"}} if method == "PATCH" else {}
    response = untouched_client.request(method, f"/users/{raw_id}", **kwargs)

    assert response.status_code == 400
    assert response.json() == INVALID_ID


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"firstName": "John"},
        {"lastName": "Doe"},
        {"firstName": 1, "lastName": "Doe"},
        {"firstName": "John", "lastName": None},
        {"firstName": ["John"], "lastName": "Doe"},
        {"firstName": True, "lastName": "Doe"},
        ["John", "Doe"],
        "John Doe",
    ],
)
def test_invalid_body_is_rejected_before_store_access(untouched_client, body) -> None:
    created = untouched_client.post("/users", json=body)
    assert created.status_code == 400
    assert created.json() == INVALID_BODY

    updated = untouched_client.patch("/users/1", json=body)
    assert updated.status_code == 400
    assert updated.json() == INVALID_BODY


def test_missing_and_malformed_bodies_are_rejected(untouched_client) -> None:
    missing = untouched_client.post("/users")
    assert missing.status_code == 400
    assert missing.json() == INVALID_BODY

    malformed = untouched_client.post(
        "/users",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert malformed.status_code == 400
    assert malformed.json() == INVALID_BODY


def test_unencodable_names_are_rejected_before_store_access(untouched_client) -> None:
    body = b'{"firstName": "\\ud800", "lastName": "Doe"}'
    headers = {"Content-Type": "application/json"}

    created = untouched_client.post("/users", content=body, headers=headers)
    assert created.status_code == 400
    assert created.json() == INVALID_BODY

    updated = untouched_client.patch("/users/1", content=body, headers=headers)
    assert updated.status_code == 400
    assert updated.json() == INVALID_BODY


def test_invalid_id_takes_precedence_over_invalid_body(untouched_client) -> None:
    response = untouched_client.patch("/users/abc", json={"firstName": 1})
    assert response.status_code == 400
    assert response.json() == INVALID_ID


@pytest.mark.parametrize(
    ("method", "path", "kwargs"),
    [
        ("GET", "/users", {}),
        ("POST", "/users", {"json": {"firstName": "A", "lastName": "B"}}),
        ("GET", "/users/1", {}),
        ("PATCH", "/users/1", {"json": {"firstName": "A", "lastName": "B"}}),
        ("DELETE", "/users/1", {}),
    ],
)
def test_store_failure_maps_to_500(method: str, path: str, kwargs: dict, caplog) -> None:
    database = BrokenDatabase()
    caplog.set_level(logging.ERROR, logger="usersapi.api")

    with TestClient(create_app(database=database)) as client:
        response = client.request(method, path, **kwargs)

    assert response.status_code == 500
    assert response.json() == INTERNAL_ERROR
    assert len(database.calls) == 1
    assert "unable to open database file" in caplog.text


def test_unexpected_error_maps_to_500(caplog) -> None:
    class VanishingDatabase(UntouchableDatabase):
        def create_user(self, first_name, last_name):
            raise RuntimeError("Failed to load user 1 after creation")

    caplog.set_level(logging.ERROR, logger="usersapi.api")
    app = create_app(database=VanishingDatabase())
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/users", json={"firstName": "A", "lastName": "B"})

    assert response.status_code == 500
    assert response.json() == INTERNAL_ERROR
    # The server logs re-raised exceptions; the handler must not repeat it.
    assert not [record for record in caplog.records if record.name == "usersapi.api"]


def test_handlers_accept_a_database_double() -> None:
    user = User(id=3, first_name="Grace", last_name="Hopper", created=datetime(2024, 2, 23, 7, 44, 54, tzinfo=timezone.utc))

    class FakeDatabase(UntouchableDatabase):
        def get_user(self, user_id):
            return Found(user) if user_id == 3 else NotFound()

    with TestClient(create_app(database=FakeDatabase())) as client:
        found = client.get("/users/3")
        missing = client.get("/users/4")

    assert found.status_code == 200
    assert found.json() == {
        "id": 3,
        "firstName": "Grace",
        "lastName": "Hopper",
        "created": "2024-02-23T07:44:54Z",
    }
    assert missing.status_code == 404
