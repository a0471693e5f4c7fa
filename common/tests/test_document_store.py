# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import pytest

from common.db.document_store import DocumentConflictError, SqlDocumentStore
from common.test_helpers.database import sqlite_session_local


@pytest.fixture
def store():
    session = sqlite_session_local()()
    yield SqlDocumentStore(session)
    session.close()


def test_create_and_get(store: SqlDocumentStore):
    created = store.create("claim", "a", {"status": "pending", "count": 1})
    assert created.version == 1
    stored = store.get("claim", "a")
    assert stored.body == {"status": "pending", "count": 1}
    assert store.get("claim", "missing") is None
    assert store.get("verification", "a") is None


def test_create_twice_conflicts(store: SqlDocumentStore):
    store.create("claim", "a", {})
    with pytest.raises(DocumentConflictError):
        store.create("claim", "a", {})
    # Same id in another collection is a different document
    store.create("verification", "a", {})


def test_replace_is_compare_and_set(store: SqlDocumentStore):
    store.create("claim", "a", {"status": "pending"})
    replaced = store.replace("claim", "a", {"status": "issued"}, expected_version=1)
    assert replaced.version == 2

    stale = store.replace("claim", "a", {"status": "revoked"}, expected_version=1)
    assert stale is None
    assert store.get("claim", "a").body == {"status": "issued"}
    assert store.get("claim", "a").version == 2


def test_returned_bodies_are_copies(store: SqlDocumentStore):
    body = {"status": "pending"}
    store.create("claim", "a", body)
    body["status"] = "changed"
    stored = store.get("claim", "a")
    stored.body["status"] = "changed"
    assert store.get("claim", "a").body == {"status": "pending"}


def test_find_filters_on_top_level_fields(store: SqlDocumentStore):
    store.create("claim", "a", {"status": "pending", "nonce": 1, "flag": True})
    store.create("claim", "b", {"status": "issued", "nonce": 2, "flag": False})
    store.create("claim", "c", {"status": "issued", "nonce": 3, "flag": True})
    store.create("verification", "d", {"status": "issued"})

    assert {d.id for d in store.find("claim")} == {"a", "b", "c"}
    assert {d.id for d in store.find("claim", {"status": "issued"})} == {"b", "c"}
    assert [d.id for d in store.find("claim", {"nonce": 2})] == ["b"]
    assert {d.id for d in store.find("claim", {"flag": True})} == {"a", "c"}
    assert [d.id for d in store.find("claim", {"status": "issued", "flag": True})] == ["c"]


def test_find_pages(store: SqlDocumentStore):
    for id in ["a", "b", "c"]:
        store.create("claim", id, {})
    first = store.find("claim", limit=2)
    rest = store.find("claim", limit=2, offset=2)
    assert len(first) == 2
    assert len(rest) == 1
    assert {d.id for d in first + rest} == {"a", "b", "c"}
