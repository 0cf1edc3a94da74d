from __future__ import annotations

import pytest

from callboard.db import init_db
from callboard.exceptions import ConflictError, NotFoundError
from callboard.store import (
    RecordStore,
    get_cached_summaries,
    get_credentials,
    mask_api_key,
    masked_credentials,
    save_cached_summary,
    save_credentials,
    search_customers,
    search_notes,
)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    init_db(path)
    return path


@pytest.fixture
def customers(db_path):
    return RecordStore("customers", "u1", db_path)


def test_insert_and_get(customers):
    created = customers.insert({"phone_number": "+15551234567", "name": "Ana", "tags": ["vip"]})
    assert created["id"] > 0
    assert created["user_id"] == "u1"
    assert created["tags"] == ["vip"]
    assert customers.get(created["id"])["name"] == "Ana"


def test_scoped_to_owner(db_path, customers):
    created = customers.insert({"phone_number": "+15551234567"})
    other = RecordStore("customers", "u2", db_path)
    assert other.find_one(id=created["id"]) is None
    with pytest.raises(NotFoundError):
        other.get(created["id"])
    with pytest.raises(NotFoundError):
        other.update(created["id"], {"name": "Hijack"})
    with pytest.raises(NotFoundError):
        other.delete(created["id"])


def test_find_all_any_match(customers):
    a = customers.insert({"phone_number": "+15550000001", "external_id": "rec1"})
    b = customers.insert({"phone_number": "+15550000002"})
    customers.insert({"phone_number": "+15550000003"})

    rows = customers.find_all(match="any", external_id="rec1", phone_number="+15550000002")
    assert [r["id"] for r in rows] == [a["id"], b["id"]]

    assert customers.find_all(external_id="rec1", phone_number="+15550000002") == []


def test_update_and_delete(customers):
    created = customers.insert({"phone_number": "+15551234567"})
    updated = customers.update(created["id"], {"name": "Bo"})
    assert updated["name"] == "Bo"
    assert updated["updated_at"] >= created["updated_at"]

    customers.delete(created["id"])
    with pytest.raises(NotFoundError):
        customers.get(created["id"])


def test_duplicate_phone_is_conflict(customers):
    customers.insert({"phone_number": "+15551234567"})
    with pytest.raises(ConflictError):
        customers.insert({"phone_number": "+15551234567"})


def test_unknown_column_rejected(customers):
    with pytest.raises(ValueError):
        customers.find_one(**{"1=1; DROP TABLE customers; --": 1})


def test_search_customers(db_path, customers):
    customers.insert({"phone_number": "+15550000001", "name": "Ana Lopez", "status": "active"})
    customers.insert({"phone_number": "+15550000002", "name": "Bo", "email": "bo@ana.io"})
    customers.insert({"phone_number": "+15550000003", "name": "Cy", "status": "blocked"})

    rows, total = search_customers("u1", search="ana", db_path=db_path)
    assert total == 2
    assert {r["name"] for r in rows} == {"Ana Lopez", "Bo"}

    rows, total = search_customers("u1", status="blocked", db_path=db_path)
    assert [r["name"] for r in rows] == ["Cy"]

    rows, total = search_customers("u1", limit=1, offset=1, db_path=db_path)
    assert total == 3
    assert len(rows) == 1

    # LIKE wildcards are matched literally
    assert search_customers("u1", search="%", db_path=db_path)[1] == 0


def test_search_notes_pinned_first(db_path, customers):
    customer = customers.insert({"phone_number": "+15551234567", "name": "Ana"})
    notes = RecordStore("notes", "u1", db_path)
    notes.insert({"customer_id": customer["id"], "title": "Old", "content": "x"})
    pinned = notes.insert(
        {"customer_id": customer["id"], "title": "Pinned", "content": "y", "is_pinned": True}
    )
    notes.insert({"customer_id": customer["id"], "title": "New", "content": "z"})

    rows = search_notes("u1", db_path=db_path)
    assert rows[0]["id"] == pinned["id"]
    assert rows[0]["is_pinned"] is True
    assert rows[0]["customer"]["name"] == "Ana"

    assert [r["title"] for r in search_notes("u1", search="z", db_path=db_path)] == ["New"]
    assert search_notes("u2", db_path=db_path) == []


def test_mask_api_key():
    assert mask_api_key("short") == "•••••"
    assert mask_api_key("12345678") == "••••••••"
    assert mask_api_key("sk-abcdefgh1234") == "sk-a•••••••1234"


def test_credentials_upsert(db_path):
    assert get_credentials("u1", db_path) is None
    save_credentials("u1", db_path, vapi_private_key="private-key-1", llm_api_key="llm-key-0001")
    save_credentials("u1", db_path, vapi_private_key="private-key-2", llm_api_key="")

    keys = get_credentials("u1", db_path)
    assert keys["vapi_private_key"] == "private-key-2"
    # empty values leave the stored key alone
    assert keys["llm_api_key"] == "llm-key-0001"
    assert keys["vapi_public_key"] is None

    masked = masked_credentials("u1", db_path)
    assert masked["vapi_private_key"] == "priv•••••ey-2"
    assert masked["vapi_public_key"] is None


def test_unknown_credential_rejected(db_path):
    with pytest.raises(ValueError):
        save_credentials("u1", db_path, password="hunter2")


def test_cached_summaries(db_path):
    save_cached_summary("u1", "call-2", "Other", db_path)
    save_cached_summary("u1", "call-2", "Replaced", db_path)
    assert get_cached_summaries("u1", ["call-2", "call-3"], db_path) == {"call-2": "Replaced"}
    assert get_cached_summaries("u2", ["call-2"], db_path) == {}
    assert get_cached_summaries("u1", [], db_path) == {}
