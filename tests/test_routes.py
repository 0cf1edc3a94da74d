from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from callboard.db import init_db
import callboard.db as db_module
from callboard.exceptions import UpstreamError
from callboard.models import CallRecord, Message, Page, SkippedRecord, SyncResult
from callboard.store import save_cached_summary

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture(autouse=True)
def use_temp_db(tmp_path, monkeypatch):
    """Use a temporary database for each test."""
    test_db = tmp_path / "test.db"
    monkeypatch.setattr(db_module, "DB_PATH", test_db)
    init_db(test_db)
    return test_db


@pytest.fixture
def client():
    from callboard.web import create_app

    app = create_app()
    return TestClient(app, headers=HEADERS)


@pytest.fixture
def vapi():
    fake = MagicMock()
    with patch("callboard.routes.vapi.client_for_user", return_value=fake):
        yield fake


def recent(hours=1):
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_requires_user_header(client):
    resp = client.get("/api/crm/customers", headers={"X-User-Id": ""})
    assert resp.status_code == 401


# --- customers ---

def test_customer_crud(client):
    resp = client.post("/api/crm/customers", json={"phone_number": "+15551234567", "name": "Ana"})
    assert resp.status_code == 201
    customer = resp.json()["customer"]
    assert customer["status"] == "active"

    resp = client.put(f"/api/crm/customers/{customer['id']}", json={"company": "Bistro"})
    assert resp.json()["customer"]["company"] == "Bistro"

    resp = client.get(f"/api/crm/customers/{customer['id']}")
    assert resp.json()["customer"]["name"] == "Ana"

    resp = client.delete(f"/api/crm/customers/{customer['id']}")
    assert resp.json() == {"message": "Customer deleted successfully"}
    assert client.get(f"/api/crm/customers/{customer['id']}").status_code == 404


def test_customer_validation_details(client):
    resp = client.post("/api/crm/customers", json={"phone_number": "555", "email": "nope"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert body["details"] == [
        "Phone number must be in E.164 format (e.g., +1234567890)",
        "Invalid email format",
    ]


def test_empty_status_is_bad_request(client):
    resp = client.post("/api/crm/customers", json={"phone_number": "+15551234567", "status": ""})
    assert resp.status_code == 400
    assert resp.json()["details"] == ["Status must be one of: active, inactive, blocked"]

    customer = client.post("/api/crm/customers", json={"phone_number": "+15551234567"}).json()["customer"]
    resp = client.put(f"/api/crm/customers/{customer['id']}", json={"status": ""})
    assert resp.status_code == 400


def test_duplicate_phone_conflict(client):
    client.post("/api/crm/customers", json={"phone_number": "+15551234567"})
    resp = client.post("/api/crm/customers", json={"phone_number": "+15551234567"})
    assert resp.status_code == 409


def test_customers_are_private(client):
    created = client.post("/api/crm/customers", json={"phone_number": "+15551234567"}).json()
    resp = client.get(
        f"/api/crm/customers/{created['customer']['id']}", headers={"X-User-Id": "user-2"}
    )
    assert resp.status_code == 404
    listing = client.get("/api/crm/customers", headers={"X-User-Id": "user-2"}).json()
    assert listing["customers"] == []


def test_customer_list_pagination(client):
    for i in range(3):
        client.post("/api/crm/customers", json={"phone_number": f"+1555000000{i}"})

    body = client.get("/api/crm/customers", params={"limit": 2}).json()
    assert len(body["customers"]) == 2
    assert body["pagination"] == {"total": 3, "limit": 2, "offset": 0, "hasMore": True}

    # unknown status filter is ignored
    body = client.get("/api/crm/customers", params={"status": "vip"}).json()
    assert body["pagination"]["total"] == 3


# --- notes ---

def test_note_flow(client):
    customer = client.post("/api/crm/customers", json={"phone_number": "+15551234567"}).json()["customer"]
    resp = client.post(
        "/api/crm/notes",
        json={"customer_id": customer["id"], "title": "Allergy", "content": "Peanuts"},
    )
    assert resp.status_code == 201
    note = resp.json()["note"]

    pinned = client.post(f"/api/crm/notes/{note['id']}/pin").json()["note"]
    assert pinned["is_pinned"] is True

    edited = client.patch(f"/api/crm/notes/{note['id']}", json={"priority": "high"}).json()["note"]
    assert edited["priority"] == "high"

    notes = client.get("/api/crm/notes", params={"customer_id": customer["id"]}).json()["notes"]
    assert [n["title"] for n in notes] == ["Allergy"]

    assert client.delete(f"/api/crm/notes/{note['id']}").json() == {"success": True}


def test_note_for_missing_customer(client):
    resp = client.post("/api/crm/notes", json={"customer_id": 42, "title": "t", "content": "c"})
    assert resp.status_code == 404


# --- sync ---

def test_sync_airtable(client):
    result = SyncResult(
        total=2,
        created=1,
        skipped=1,
        skipped_records=[SkippedRecord(external_id="rec2", phone="", reason="Missing phone number")],
    )
    with patch("callboard.routes.sync.sync_contacts", return_value=result) as mock_sync:
        body = client.post("/api/crm/sync-airtable").json()
    mock_sync.assert_called_once_with("user-1")
    assert body["success"] is True
    assert body["summary"] == {"total": 2, "created": 1, "updated": 0, "skipped": 1}
    assert body["skippedRecords"][0]["reason"] == "Missing phone number"


def test_sync_without_skips(client):
    with patch("callboard.routes.sync.sync_contacts", return_value=SyncResult(total=1, created=1)):
        body = client.post("/api/crm/sync-airtable").json()
    assert body["skippedRecords"] is None


# --- settings ---

def test_api_keys_are_masked(client):
    empty = client.get("/api/settings/api-keys").json()["apiKeys"]
    assert empty["vapi_private_key"] is None
    assert empty["llm_api_key"] is None

    resp = client.post(
        "/api/settings/api-keys",
        json={"vapi_private_key": "vapi-private-abcd", "llm_api_key": "sk-ant-1234"},
    )
    assert resp.json() == {"success": True}

    keys = client.get("/api/settings/api-keys").json()["apiKeys"]
    assert keys["vapi_private_key"] == "vapi•••••••••abcd"
    assert keys["llm_api_key"] == "sk-a•••1234"
    assert "vapi-private-abcd" not in str(keys)


def test_api_keys_reject_non_strings(client):
    resp = client.post("/api/settings/api-keys", json={"vapi_private_key": 1234})
    assert resp.status_code == 400


# --- vapi ---

def test_missing_vapi_key(client):
    resp = client.get("/api/vapi/calls")
    assert resp.status_code == 400
    assert "Vapi private API key" in resp.json()["error"]


def test_list_calls_with_cached_summary(client, vapi):
    vapi.list_calls.return_value = [
        CallRecord(id="c1", status="completed", created_at=recent(), cost=0.5),
        CallRecord(id="c2", status="failed", created_at=recent(), cost=0.25, summary="Own"),
    ]
    save_cached_summary("user-1", "c1", "Cached summary")

    body = client.get("/api/vapi/calls", params={"assistantId": "all", "limit": 5}).json()
    filters = vapi.list_calls.call_args.args[0]
    assert filters.assistant_id is None
    assert filters.limit == 5

    assert [c["summary"] for c in body["calls"]] == ["Cached summary", "Own"]
    assert body["analytics"] == {"totalCalls": 2, "successRate": 50.0, "avgDuration": 0.0, "cost": 0.75}


def test_upstream_error_is_bad_gateway(client, vapi):
    vapi.get_call.side_effect = UpstreamError(500, "boom", service="Vapi")
    resp = client.get("/api/vapi/calls/c1")
    assert resp.status_code == 502
    assert resp.json()["status"] == 500
    assert resp.json()["details"] == "boom"


def test_analytics_json(client, vapi):
    vapi.fetch_all_calls.return_value = [
        CallRecord(id="c1", status="completed", created_at=recent(), summary="menu question"),
        CallRecord(id="c2", status="completed", created_at=recent(24 * 20)),
    ]
    body = client.get("/api/vapi/analytics", params={"range": "30d"}).json()
    filters = vapi.fetch_all_calls.call_args.args[0]
    assert filters.limit == 100
    assert filters.created_at_gt is not None

    assert body["range"] == "30d"
    assert body["analytics"]["total_calls"] == 2
    assert len(body["analytics"]["peak_hours"]) == 24


def test_analytics_rejects_unknown_range(client, vapi):
    assert client.get("/api/vapi/analytics", params={"range": "1y"}).status_code == 400


def test_analytics_csv(client, vapi):
    vapi.fetch_all_calls.return_value = [CallRecord(id="c1", status="completed", created_at=recent())]
    resp = client.get("/api/vapi/analytics", params={"format": "csv"})
    assert resp.headers["content-type"].startswith("text/csv")
    assert "call-analytics-7d.csv" in resp.headers["content-disposition"]
    assert resp.text.splitlines()[0] == "Date,Total Calls,Successful Calls,Cost,Success Rate"


def test_assistants_and_chats(client, vapi):
    vapi.list_assistants.return_value = Page(items=[], next_cursor=None)
    vapi.list_chats.return_value = Page(items=[], next_cursor="p2")
    assert client.get("/api/vapi/assistants").json() == {"assistants": [], "nextCursor": None}
    assert client.get("/api/vapi/chats").json() == {"chats": [], "nextCursor": "p2"}


def test_summarize_call(client, vapi):
    client.post("/api/settings/api-keys", json={"llm_api_key": "sk-ant-1234"})
    vapi.get_call.return_value = CallRecord(
        id="c1", messages=[Message("user", "Table for two at eight")]
    )
    with patch("callboard.services.ai.summarize_conversation", return_value="Reservation for two") as summarize, \
            patch("callboard.services.ai.analyze_conversation", return_value={"sentiment": "positive"}):
        body = client.post("/api/vapi/calls/c1/summary").json()

    summarize.assert_called_once_with("sk-ant-1234", "user: Table for two at eight")
    assert body["summary"] == "Reservation for two"
    assert body["intent"] == "Reservation"

    # the generated summary is served from cache on the next read
    vapi.get_call.return_value = CallRecord(id="c1")
    assert client.get("/api/vapi/calls/c1").json()["call"]["summary"] == "Reservation for two"


def test_summarize_call_without_transcript(client, vapi):
    vapi.get_call.return_value = CallRecord(id="c1")
    resp = client.post("/api/vapi/calls/c1/summary")
    assert resp.status_code == 400
    assert resp.json()["details"] == ["Call has no transcript to summarize"]


# --- summaries ---

def test_summaries_requires_text(client):
    resp = client.post("/api/summaries", json={})
    assert resp.status_code == 400


def test_summaries(client):
    client.post("/api/settings/api-keys", json={"llm_api_key": "sk-ant-1234"})
    with patch("callboard.services.ai.summarize_conversation", return_value="Short summary"):
        resp = client.post("/api/summaries", json={"conversationText": "user: hi"})
    assert resp.json() == {"summary": "Short summary"}
