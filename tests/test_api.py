"""FastAPI endpoint tests using httpx.AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from errors import PersistenceError, SchemaError
from main import app
from services.audit_store import InMemoryAuditStore, get_audit_store
from tests.conftest import FORM_ID, OTHER_USER_ID, TENANT_ID, USER_ID

HEADERS = {"X-User-Id": USER_ID, "X-Tenant-Id": TENANT_ID}


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_audit_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _submit(client, answers, comments=None, headers=HEADERS):
    return await client.post(
        f"/api/forms/{FORM_ID}/audits",
        json={"answers": answers, "comments": comments},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["store"] == "InMemoryAuditStore"


# ── Forms ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_form(client):
    resp = await client.get(f"/api/forms/{FORM_ID}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["formId"] == FORM_ID
    assert data["schema"]["title"] == "Site Safety Walkthrough"
    assert len(data["schema"]["fields"]) == 6
    assert data["initialAnswers"]["ppe_worn"] is False
    assert data["initialAnswers"]["site_name"] == ""


@pytest.mark.asyncio
async def test_get_missing_form(client):
    resp = await client.get("/api/forms/unknown")
    assert resp.status_code == 404
    assert "unknown" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_evaluate_reports_missing_fields(client, store):
    resp = await client.post(f"/api/forms/{FORM_ID}/evaluate", json={"answers": {}})
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is False
    assert set(data["errors"]) == {"site_name", "fire_exits", "ppe_worn"}
    assert data["classification"] is None
    assert store.insert_count == 0


@pytest.mark.asyncio
async def test_evaluate_valid_answers(client, store):
    resp = await client.post(
        f"/api/forms/{FORM_ID}/evaluate",
        json={"answers": {"site_name": "Depot 4", "fire_exits": "Clear", "ppe_worn": "yes"}},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is True
    assert data["score"]["earnedPoints"] == 21
    assert data["autoFail"]["triggered"] is False
    assert data["classification"]["status"] == "completed"
    assert data["displayResult"] == "PASSED"
    assert store.insert_count == 0


@pytest.mark.asyncio
async def test_evaluate_auto_fail(client):
    resp = await client.post(
        f"/api/forms/{FORM_ID}/evaluate",
        json={"answers": {"site_name": "Depot 4", "fire_exits": "Blocked", "ppe_worn": True}},
    )
    data = resp.json()
    assert data["autoFail"]["fieldLabel"] == "Fire exits"
    assert data["classification"]["marks"] == 0.1
    assert data["displayResult"] == "FAILED"


@pytest.mark.asyncio
async def test_submit_requires_user_header(client, good_answers):
    resp = await _submit(client, good_answers, headers={})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_submit_validation_error(client, store):
    resp = await _submit(client, {"site_name": "Depot 4"})
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["errors"]["fire_exits"] == "Fire exits is required"
    assert "required field" in detail["message"]
    assert store.insert_count == 0


@pytest.mark.asyncio
async def test_submit_creates_audit(client, good_answers):
    resp = await _submit(client, good_answers, "All clear")
    assert resp.status_code == 201
    data = resp.json()
    assert data["id"] == 1
    assert data["formId"] == FORM_ID
    assert data["userId"] == USER_ID
    assert data["tenantId"] == TENANT_ID
    assert data["status"] == "completed"
    assert data["result"] == "pass"
    assert data["percentage"] == 100
    assert data["lastEditAt"] is None
    assert data["createdAt"].startswith("2026-03-02T09:30:00")


@pytest.mark.asyncio
async def test_submit_to_missing_form(client, good_answers):
    resp = await client.post(
        "/api/forms/unknown/audits", json={"answers": good_answers}, headers=HEADERS,
    )
    assert resp.status_code == 404


# ── Compliance ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_compliance(client, store):
    store.add_compliance(2, "Food Hygiene")
    store.add_compliance(1, "Workplace Safety", status="active", description="Site walkthroughs")

    resp = await client.get("/api/compliance")

    assert resp.status_code == 200
    assert resp.json() == [
        {"id": 1, "name": "Workplace Safety", "description": "Site walkthroughs", "status": "active"},
        {"id": 2, "name": "Food Hygiene", "description": None, "status": None},
    ]


@pytest.mark.asyncio
async def test_list_compliance_forms(client, store, site_safety_document):
    store.add_compliance(1, "Workplace Safety")
    store.add_form(7, site_safety_document, compliance_id=1, status="active")

    resp = await client.get("/api/compliance/1/forms")

    assert resp.status_code == 200
    forms = resp.json()
    assert [(f["id"], f["complianceId"], f["title"]) for f in forms] == [
        (7, 1, "Site Safety Walkthrough"),
    ]
    assert (await client.get("/api/compliance/99/forms")).json() == []


# ── Audits ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_history(client, good_answers):
    await _submit(client, good_answers)
    await _submit(client, {**good_answers, "extinguisher": "Expired"})

    resp = await client.get("/api/audits", headers=HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["summary"] == {"total": 2, "passed": 1, "failed": 1, "averagePercentage": 51}
    references = sorted(item["reference"] for item in data["items"])
    assert references == ["AR-0001", "AR-0002"]
    failed = next(item for item in data["items"] if item["reference"] == "AR-0002")
    assert failed["displayResult"] == "FAILED"
    assert failed["statusLabel"] == "Pending"
    assert failed["record"]["marks"] == 0.1


@pytest.mark.asyncio
async def test_history_carries_form_title(client, good_answers):
    await _submit(client, good_answers)
    item = (await client.get("/api/audits", headers=HEADERS)).json()["items"][0]
    assert item["formTitle"] == "Site Safety Walkthrough"


@pytest.mark.asyncio
async def test_history_lists_legacy_status_rows(client, store, good_answers):
    created = (await _submit(client, good_answers)).json()
    store._audits[str(created["id"])]["status"] = "in_progress"

    resp = await client.get("/api/audits", headers=HEADERS)

    assert resp.status_code == 200
    item = resp.json()["items"][0]
    assert item["record"]["status"] == "in_progress"
    assert item["statusLabel"] == "In Progress"
    assert item["statusTone"] == "warning"


@pytest.mark.asyncio
async def test_history_is_per_user(client, good_answers):
    await _submit(client, good_answers)
    resp = await client.get("/api/audits", headers={"X-User-Id": OTHER_USER_ID})
    assert resp.json()["summary"]["total"] == 0


@pytest.mark.asyncio
async def test_load_audit_for_edit(client, good_answers):
    created = (await _submit(client, good_answers)).json()

    resp = await client.get(f"/api/audits/{created['id']}", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["answers"]["site_name"] == "Depot 4"

    other = await client.get(f"/api/audits/{created['id']}", headers={"X-User-Id": OTHER_USER_ID})
    assert other.status_code == 404


@pytest.mark.asyncio
async def test_resubmit_updates_audit(client, good_answers):
    created = (await _submit(client, good_answers)).json()

    resp = await client.put(
        f"/api/audits/{created['id']}",
        json={"answers": {**good_answers, "fire_exits": "Blocked"}, "comments": "Pallets"},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == created["id"]
    assert data["createdAt"] == created["createdAt"]
    assert data["lastEditAt"] is not None
    assert data["status"] == "pending"
    assert data["comments"] == "Pallets"


@pytest.mark.asyncio
async def test_resubmit_other_users_audit(client, good_answers, store):
    created = (await _submit(client, good_answers)).json()

    resp = await client.put(
        f"/api/audits/{created['id']}",
        json={"answers": good_answers},
        headers={"X-User-Id": OTHER_USER_ID},
    )
    assert resp.status_code == 404
    assert store.update_count == 0


@pytest.mark.asyncio
async def test_resubmit_stale_precondition(client, good_answers):
    created = (await _submit(client, good_answers)).json()
    body = {"answers": good_answers, "expectedLastEditAt": None}

    first = await client.put(f"/api/audits/{created['id']}", json=body, headers=HEADERS)
    assert first.status_code == 200

    second = await client.put(f"/api/audits/{created['id']}", json=body, headers=HEADERS)
    assert second.status_code == 409

    fresh = {"answers": good_answers, "expectedLastEditAt": first.json()["lastEditAt"]}
    third = await client.put(f"/api/audits/{created['id']}", json=fresh, headers=HEADERS)
    assert third.status_code == 200


# ── Error mapping ──────────────────────────────────────────────


class _TimeoutStore(InMemoryAuditStore):
    async def insert_audit(self, record):
        raise PersistenceError("POST /audit did not complete: timed out", outcome_unknown=True)


class _BrokenSchemaStore(InMemoryAuditStore):
    async def fetch_form(self, form_id):
        raise SchemaError("field 'q': kind 'slider' is not supported", field_id="q")


@pytest.mark.asyncio
async def test_persistence_error_maps_to_502(site_safety_document, good_answers):
    store = _TimeoutStore()
    store.add_form(FORM_ID, site_safety_document)
    app.dependency_overrides[get_audit_store] = lambda: store
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            resp = await _submit(ac, good_answers)
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 502
    assert resp.json()["detail"]["outcomeUnknown"] is True


@pytest.mark.asyncio
async def test_schema_error_maps_to_500():
    app.dependency_overrides[get_audit_store] = lambda: _BrokenSchemaStore()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            resp = await ac.get(f"/api/forms/{FORM_ID}")
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert "slider" in resp.json()["detail"]
