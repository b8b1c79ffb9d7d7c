import pytest
from fastapi.testclient import TestClient

from engines.rights.repository import InMemoryRightsRepository
from engines.rights.server import create_app
from engines.rights.service import RightsService, get_rights_service

HEADERS = {"X-Tenant-Id": "t_demo", "X-Env": "dev", "X-User-Id": "legal@studio.com"}

RIGHTS_PAYLOAD = {
    "asset_id": "asset-2",
    "rights_holder": {"name": "Music Licensing Co", "contact_email": "sync@musicco.com", "contract_id": "MLC-2024-045"},
    "valid_from": "2025-01-01T00:00:00Z",
    "valid_until": "2025-02-01T00:00:00Z",
    "allowed_usage_types": ["internal", "broadcast", "digital"],
    "restricted_usage_types": [],
    "allowed_territories": "worldwide",
    "restricted_territories": ["CN", "RU"],
    "requires_approval": True,
    "approver_roles": ["LEGAL", "PRODUCER"],
    "current_downloads": 15,
}


@pytest.fixture
def client(now):
    app = create_app()
    service = RightsService(repo=InMemoryRightsRepository(), clock=lambda: now)
    app.dependency_overrides[get_rights_service] = lambda: service
    return TestClient(app)


def _request(**overrides):
    body = {
        "id": "req-1",
        "asset_id": "asset-2",
        "requested_by": "editor@studio.com",
        "intended_usage": "broadcast",
        "territory": "US",
    }
    body.update(overrides)
    return body


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_tenant_header_required(client):
    resp = client.get("/rights/assets")
    assert resp.status_code == 400


def test_register_and_overview(client):
    resp = client.put("/rights/assets/asset-2", json=RIGHTS_PAYLOAD, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["allowed_territories"] == {"kind": "worldwide"}

    resp = client.get("/rights/assets", headers=HEADERS)
    assert resp.status_code == 200
    views = resp.json()
    assert len(views) == 1
    assert views[0]["status"] == "valid"
    assert views[0]["days_until_expiry"] == 17

    resp = client.get("/rights/expiring", params={"days": 30}, headers=HEADERS)
    assert [v["rights"]["asset_id"] for v in resp.json()] == ["asset-2"]


def test_path_and_body_must_agree(client):
    resp = client.put("/rights/assets/asset-9", json=RIGHTS_PAYLOAD, headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"]["code"] == "rights.asset_mismatch"


def test_invalid_window_rejected(client):
    payload = dict(RIGHTS_PAYLOAD, valid_from="2025-03-01T00:00:00Z")
    resp = client.put("/rights/assets/asset-2", json=payload, headers=HEADERS)
    assert resp.status_code == 422


def test_missing_rights(client):
    resp = client.get("/rights/assets/nope", headers=HEADERS)
    assert resp.status_code == 404
    assert resp.json()["detail"]["error"]["code"] == "asset_rights.not_found"

    resp = client.get("/rights/assets/nope/status", headers=HEADERS)
    assert resp.json() == {"asset_id": "nope", "status": "unknown"}

    resp = client.post("/rights/validate", json=_request(asset_id="nope"), headers=HEADERS)
    body = resp.json()
    assert body["allowed"] is False
    assert body["blockers"] == ["No rights information on file for this asset"]


def test_validate_with_approval_warning(client):
    client.put("/rights/assets/asset-2", json=RIGHTS_PAYLOAD, headers=HEADERS)
    resp = client.post("/rights/validate", json=_request(), headers=HEADERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["allowed"] is True
    assert "This download requires approval from: LEGAL, PRODUCER" in body["warnings"]
    assert "Submit for approval to: LEGAL, PRODUCER" in body["suggestions"]


def test_record_download_flow(client):
    client.put("/rights/assets/asset-2", json=RIGHTS_PAYLOAD, headers=HEADERS)
    client.put("/rights/assets/asset-2/name", json={"name": "Background_Music_Track.wav"}, headers=HEADERS)

    resp = client.post(
        "/rights/downloads",
        json={"request": _request(), "format": "wav", "file_size": 1024},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["asset_name"] == "Background_Music_Track.wav"

    denied = client.post("/rights/downloads", json={"request": _request(territory="CN")}, headers=HEADERS)
    assert denied.status_code == 403
    error = denied.json()["detail"]["error"]
    assert error["code"] == "rights.download_denied"
    assert error["gate"] == "rights"
    assert error["details"]["allowed"] is False

    logs = client.get("/rights/downloads", params={"asset_id": "asset-2"}, headers=HEADERS).json()
    assert len(logs) == 1

    report = client.get("/rights/reports", headers=HEADERS).json()
    assert report["summary"]["assets_with_valid_rights"] == 1
    assert report["summary"]["assets_with_expiring_rights"] == 1
    assert report["assets"][0]["total_downloads"] == 1
    assert report["assets"][0]["asset_name"] == "Background_Music_Track.wav"
