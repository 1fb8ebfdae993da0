"""
Tests for API endpoints including health checks, error envelopes and the intake flow.
"""
import asyncio
import json
import pytest

from secure_upload.models.access_log import AccessAction

API = "/api/v1"
PDF_BYTES = b"%PDF-1.4 signed offer letter"

ONBOARDING = {
    "name": "Onboarding",
    "description": "New hire documents",
    "fields": [
        {
            "field_name": "full_name",
            "field_type": "text",
            "field_label": "Full Name",
            "is_required": True,
            "display_order": 1,
        }
    ],
}


def _create_link(client, headers, job_number="JOB-100"):
    template = client.post(f"{API}/form-templates", json=ONBOARDING, headers=headers).json()["data"]
    response = client.post(
        f"{API}/upload-links",
        json={"job_number": job_number, "form_template_id": template["id"]},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


def _submit(client, session_id, form_data, files):
    return client.post(
        f"{API}/upload-sessions/{session_id}/submit",
        data={"form_data": json.dumps(form_data)},
        files=files,
    )


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client):
        """Health check endpoint should return healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert {"message", "version", "docs"} <= set(response.json())


class TestSecurityHeaders:
    """Tests for security headers in responses."""

    def test_csp_header(self, client):
        response = client.get("/health")

        assert "default-src 'none'" in response.headers["Content-Security-Policy"]

    def test_static_headers(self, client):
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "no-store" in response.headers["Cache-Control"]

    def test_request_id_echoed(self, client):
        """A valid incoming X-Request-ID is returned unchanged."""
        request_id = "0b6f3d2e-4a1c-4f8e-9d7a-2c5b8e1f3a90"

        response = client.get(f"{API}/upload-links/missing/validate", headers={"X-Request-ID": request_id})

        assert response.headers["X-Request-ID"] == request_id


class TestErrorResponses:
    """Tests for the error envelope."""

    def test_404_unknown_route(self, client):
        response = client.get("/nonexistent-endpoint")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_missing_token(self, client):
        response = client.get(f"{API}/form-templates")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Authentication required"}

    def test_invalid_token(self, client):
        response = client.get(f"{API}/upload-links", headers={"Authorization": "Bearer invalid_token"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    def test_unknown_template(self, client, admin, auth_headers):
        response = client.get(f"{API}/form-templates/missing", headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Template not found"}

    def test_request_validation_envelope(self, client, admin, auth_headers):
        response = client.post(f"{API}/upload-links", json={"form_template_id": "x"}, headers=auth_headers(admin))

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "job_number" in body["error"]

    def test_zero_field_template(self, client, manager, auth_headers):
        response = client.post(f"{API}/form-templates", json={"name": "Empty"}, headers=auth_headers(manager))

        assert response.status_code == 400
        assert response.json()["error"] == "At least one field is required"


class TestTemplateEndpoints:
    """Tests for role restrictions and ownership over HTTP."""

    def test_recruiter_cannot_create_template(self, client, recruiter, auth_headers):
        response = client.post(f"{API}/form-templates", json=ONBOARDING, headers=auth_headers(recruiter))

        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_listing_is_scoped(self, client, manager, compliance, auth_headers):
        client.post(f"{API}/form-templates", json=ONBOARDING, headers=auth_headers(manager))
        client.post(f"{API}/form-templates", json={**ONBOARDING, "name": "Audit"}, headers=auth_headers(compliance))

        mine = client.get(f"{API}/form-templates", headers=auth_headers(manager)).json()
        everything = client.get(f"{API}/form-templates", headers=auth_headers(compliance)).json()

        assert [t["name"] for t in mine["data"]] == ["Onboarding"]
        assert mine["count"] == 1
        assert everything["count"] == 2

    def test_duplicate_job_number(self, client, manager, auth_headers):
        headers = auth_headers(manager)
        link = _create_link(client, headers)

        response = client.post(
            f"{API}/upload-links",
            json={"job_number": "JOB-100", "form_template_id": link["form_template_id"]},
            headers=headers,
        )

        assert response.status_code == 409
        assert response.json()["error"] == "A link for this job number already exists"


class TestIntakeFlow:
    """End-to-end: template, link, session, submission, download."""

    def test_onboarding_scenario(self, client, api_store, manager, other_recruiter, auth_headers):
        headers = auth_headers(manager)
        link = _create_link(client, headers)

        validation = client.get(f"{API}/upload-links/{link['id']}/validate").json()["data"]
        assert validation["is_valid"] is True
        assert validation["link"]["job_number"] == "JOB-100"
        assert "created_by" not in validation["link"]

        form = client.get(f"{API}/upload-links/{link['id']}/form").json()["data"]
        assert [f["field_name"] for f in form["fields"]] == ["full_name"]

        created = client.post(f"{API}/upload-sessions", json={"upload_link_id": link["id"]})
        assert created.status_code == 201
        session_id = created.json()["data"]["id"]
        assert created.json()["data"]["status"] == "in_progress"

        submitted = _submit(
            client,
            session_id,
            {"full_name": "Jane Doe"},
            {"full_name": ("offer.pdf", PDF_BYTES, "application/pdf")},
        )
        assert submitted.status_code == 200
        result = submitted.json()["data"]
        assert result["files_uploaded"] == 1
        assert result["session"]["status"] == "completed"
        assert result["session"]["form_data"] == {"full_name": "Jane Doe"}

        session = client.get(f"{API}/upload-sessions/{session_id}", headers=headers).json()["data"]
        assert len(session["uploaded_files"]) == 1
        file_info = session["uploaded_files"][0]
        assert "file_path" not in file_info
        assert file_info["original_name"] == "offer.pdf"

        download = client.get(f"{API}/upload-sessions/files/{file_info['id']}/download", headers=headers)
        assert download.status_code == 200
        assert download.content == PDF_BYTES
        assert "attachment" in download.headers["Content-Disposition"]

        denied = client.get(
            f"{API}/upload-sessions/files/{file_info['id']}/download",
            headers=auth_headers(other_recruiter),
        )
        assert denied.status_code == 403

        history = asyncio.run(api_store.access_log.list_for_file(file_info["id"]))
        assert [e.action for e in history] == [AccessAction.DOWNLOAD, AccessAction.ACCESS_DENIED]
        assert history[0].user_id == manager.id

    def test_session_on_disabled_link_rejected(self, client, manager, auth_headers):
        headers = auth_headers(manager)
        link = _create_link(client, headers, job_number="JOB-200")
        client.put(f"{API}/upload-links/{link['id']}", json={"status": "disabled"}, headers=headers)

        response = client.post(f"{API}/upload-sessions", json={"upload_link_id": link["id"]})

        assert response.status_code == 400
        assert response.json()["error"] == "Link is not active"
        sessions = client.get(f"{API}/upload-sessions/link/{link['id']}", headers=headers).json()
        assert sessions["count"] == 0

    def test_save_progress_then_submit(self, client, manager, auth_headers):
        link = _create_link(client, auth_headers(manager), job_number="JOB-300")
        session_id = client.post(f"{API}/upload-sessions", json={"upload_link_id": link["id"]}).json()["data"]["id"]

        saved = client.patch(f"{API}/upload-sessions/{session_id}/data", json={"form_data": {"full_name": "Jane"}})
        assert saved.json()["data"]["form_data"] == {"full_name": "Jane"}

        response = _submit(client, session_id, {}, None)

        assert response.status_code == 200
        assert response.json()["data"]["session"]["form_data"] == {"full_name": "Jane"}

    def test_disallowed_file_type(self, client, manager, auth_headers):
        link = _create_link(client, auth_headers(manager), job_number="JOB-400")
        session_id = client.post(f"{API}/upload-sessions", json={"upload_link_id": link["id"]}).json()["data"]["id"]

        response = _submit(
            client,
            session_id,
            {"full_name": "Jane Doe"},
            {"attachment": ("run.exe", b"MZ", "application/x-msdownload")},
        )

        assert response.status_code == 400
        assert "not allowed" in response.json()["error"]

    def test_delete_session(self, client, manager, compliance, auth_headers):
        headers = auth_headers(manager)
        link = _create_link(client, headers, job_number="JOB-500")
        session_id = client.post(f"{API}/upload-sessions", json={"upload_link_id": link["id"]}).json()["data"]["id"]
        result = _submit(
            client,
            session_id,
            {"full_name": "Jane Doe"},
            {"id_document": ("id.pdf", PDF_BYTES, "application/pdf")},
        ).json()["data"]
        file_id = result["session"]["uploaded_files"][0]["id"]

        response = client.delete(f"{API}/upload-sessions/{session_id}", headers=headers)

        assert response.status_code == 200
        assert client.get(f"{API}/upload-sessions/{session_id}", headers=headers).status_code == 404
        assert client.get(f"{API}/upload-sessions/files/{file_id}/download", headers=headers).status_code == 404
        history = client.get(f"{API}/upload-sessions/files/{file_id}/access-log", headers=auth_headers(compliance))
        assert [e["action"] for e in history.json()["data"]] == ["delete"]
        forbidden = client.get(f"{API}/upload-sessions/files/{file_id}/access-log", headers=headers)
        assert forbidden.status_code == 403

    def test_delete_link_records_file_deletions(self, client, manager, compliance, auth_headers):
        headers = auth_headers(manager)
        link_id = _create_link(client, headers, job_number="JOB-501")["id"]
        session_id = client.post(f"{API}/upload-sessions", json={"upload_link_id": link_id}).json()["data"]["id"]
        result = _submit(
            client,
            session_id,
            {"full_name": "Jane Doe"},
            {"id_document": ("id.pdf", PDF_BYTES, "application/pdf")},
        ).json()["data"]
        file_id = result["session"]["uploaded_files"][0]["id"]

        response = client.delete(f"{API}/upload-links/{link_id}", headers=headers)

        assert response.status_code == 200
        assert client.get(f"{API}/upload-sessions/{session_id}", headers=headers).status_code == 404
        history = client.get(f"{API}/upload-sessions/files/{file_id}/access-log", headers=auth_headers(compliance))
        entries = history.json()["data"]
        assert [e["action"] for e in entries] == ["delete"]
        assert entries[0]["details"] == {"link_id": link_id}


class TestDashboard:
    """Tests for link statistics."""

    def test_stats(self, client, manager, auth_headers):
        _create_link(client, auth_headers(manager), job_number="JOB-600")

        stats = client.get(f"{API}/upload-links/stats", headers=auth_headers(manager)).json()["data"]

        assert stats["active_links_count"] == 1
        assert stats["expiring_links_count"] == 0
        assert stats["expiring_links"] == []
