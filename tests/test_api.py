import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db
from app.main import create_app
from app.models.signing import DownloadToken
from app.services import store
from tests.helpers import PDF_BYTES, PDF_URL, session_token, unique_email


@pytest.fixture()
def client(db_session, workflow):
    app = create_app(workflow)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(user):
    return {"X-User-Id": str(user.id)}


def _create_payload(roles=("signer",), with_field=False, send_now=False):
    payload = {
        "title": "Consulting Agreement",
        "file": {"url": PDF_URL, "filename": "consulting.pdf", "size_bytes": len(PDF_BYTES)},
        "recipients": [
            {"name": f"Person {i + 1}", "email": unique_email(role), "role": role}
            for i, role in enumerate(roles)
        ],
        "send_now": send_now,
    }
    if with_field:
        payload["fields"] = [
            {"recipient_index": 0, "type": "signature", "x": 10, "y": 80, "width": 30, "height": 8}
        ]
    return payload


def _create(client, auth_headers, **kwargs):
    response = client.post("/api/v1/documents", json=_create_payload(**kwargs), headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_exposes_request_counters(client):
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "signing_session_rejections_total" in response.text


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-Id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


def test_sender_routes_require_a_user(client):
    response = client.post("/api/v1/documents", json=_create_payload())

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "http_401"
    assert body["message"] == "Unauthorized"
    assert body["request_id"]


def test_unknown_user_is_unauthorized(client):
    response = client.get(
        "/api/v1/documents/00000000-0000-0000-0000-000000000000",
        headers={"X-User-Id": "not-a-uuid"},
    )

    assert response.status_code == 401


def test_validation_errors_use_error_envelope(client, auth_headers):
    payload = _create_payload()
    payload["recipients"][0]["email"] = "not-an-email"

    response = client.post("/api/v1/documents", json=payload, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["details"]


def test_blank_title_is_rejected(client, auth_headers):
    payload = _create_payload()
    payload["title"] = "   "

    response = client.post("/api/v1/documents", json=payload, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["details"][0]["loc"][-1] == "title"


def test_create_and_fetch_document(client, auth_headers):
    created = _create(client, auth_headers, roles=("signer", "cc"), with_field=True)

    assert created["status"] == "draft"
    assert [r["role"] for r in created["recipients"]] == ["signer", "cc"]
    assert len(created["fields"]) == 1

    response = client.get(f"/api/v1/documents/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Consulting Agreement"


def test_other_organization_gets_not_found(client, auth_headers, other_user):
    created = _create(client, auth_headers)

    response = client.get(
        f"/api/v1/documents/{created['id']}", headers={"X-User-Id": str(other_user.id)}
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Document not found"


def test_full_signing_flow(client, auth_headers, db_session, dispatcher):
    created = _create(client, auth_headers, with_field=True)
    document_id = created["id"]
    recipient_id = created["recipients"][0]["id"]
    field_id = created["fields"][0]["id"]

    sent = client.post(f"/api/v1/documents/{document_id}/send", headers=auth_headers)
    assert sent.status_code == 200
    assert sent.json()["status"] == "pending"
    assert sent.json()["deliveries"][0]["success"] is True

    token = session_token(db_session, recipient_id)
    room = client.get(f"/sign/{token}")
    assert room.status_code == 200
    assert room.json()["fields"][0]["id"] == field_id

    missing = client.post(f"/sign/{token}", json={"field_values": {}})
    assert missing.status_code == 400
    assert missing.json()["message"] == "Required fields are missing"
    assert missing.json()["details"] == {"fields": [field_id]}

    signed = client.post(
        f"/sign/{token}",
        json={"field_values": {field_id: "data:image/png;base64,AAAA"}},
        headers={"X-Forwarded-For": "198.51.100.8, 10.0.0.1"},
    )
    assert signed.status_code == 200
    assert signed.json() == {"success": True, "document_completed": True}

    again = client.post(f"/sign/{token}", json={"field_values": {}})
    assert again.status_code == 409
    assert again.json()["code"] == "already_signed"
    assert again.json()["message"] == "Already signed."

    audit = client.get(f"/api/v1/documents/{document_id}/audit", headers=auth_headers)
    assert audit.status_code == 200
    events = audit.json()
    assert events[0]["event_type"] == "document.created"
    signed_event = next(e for e in events if e["event_type"] == "recipient.signed")
    assert signed_event["ip_address"] == "198.51.100.8"
    assert "metadata" in signed_event

    certificate = client.get(f"/api/v1/documents/{document_id}/certificate", headers=auth_headers)
    assert certificate.status_code == 200
    assert certificate.json()["certificate_id"].startswith("CERT-")

    assert len(dispatcher.of_kind("completion")) == 2


def test_public_download_link(client, auth_headers, db_session):
    created = _create(client, auth_headers, send_now=True)
    recipient_id = created["recipients"][0]["id"]
    token = session_token(db_session, recipient_id)
    client.post(f"/sign/{token}", json={"field_values": {}})
    download = store.find_one(db_session, DownloadToken, email=created["recipients"][0]["email"])

    response = client.get(f"/download/{download.token}")

    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="consulting.pdf"'


def test_unknown_links_are_rejected(client):
    sign = client.get(f"/sign/{'0' * 64}")
    download = client.get(f"/download/{'0' * 64}")

    assert sign.status_code == 404
    assert sign.json()["code"] == "invalid_link"
    assert download.status_code == 404
    assert download.json()["code"] == "invalid_download_link"


def test_decline_then_void(client, auth_headers, db_session):
    created = _create(client, auth_headers, roles=("signer", "signer"), send_now=True)
    document_id = created["id"]
    token = session_token(db_session, created["recipients"][0]["id"])

    declined = client.post(f"/sign/{token}/decline", json={"reason": "Not my company"})
    assert declined.status_code == 200
    assert declined.json() == {"success": True}

    voided = client.post(
        f"/api/v1/documents/{document_id}/void",
        json={"reason": "Recipient declined"},
        headers=auth_headers,
    )
    assert voided.status_code == 200
    assert voided.json()["status"] == "voided"

    other_token = session_token(db_session, created["recipients"][1]["id"])
    response = client.get(f"/sign/{other_token}")
    assert response.status_code == 410
    assert response.json()["code"] == "document_voided"


def test_remind_endpoint(client, auth_headers, dispatcher):
    created = _create(client, auth_headers, send_now=True)

    response = client.post(
        f"/api/v1/documents/{created['id']}/remind",
        json={"recipient_id": created["recipients"][0]["id"]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert len(dispatcher.of_kind("reminder")) == 1


def test_authenticated_download(client, auth_headers):
    created = _create(client, auth_headers)

    response = client.get(f"/api/v1/documents/{created['id']}/download", headers=auth_headers)

    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-disposition"] == 'attachment; filename="consulting.pdf"'
