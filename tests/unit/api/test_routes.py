"""
Endpoint tests through the full application stack.

Authentication, logging and error middleware run for real; the database,
agents and AI limiter come from the ``client`` fixture.
"""

from sqlalchemy import select

from database.models import JobApplication
from tests.helpers import (
    ADMIN_ID,
    MEMBER_ID,
    OUTSIDER_ID,
    OWNER_ID,
    VIEWER_ID,
    auth_headers,
    resume_text,
    run_sync,
)


def shortlist_body(seeded, **overrides):
    body = {
        "jobId": seeded.job_id,
        "organizationId": seeded.org_id,
        "mode": "upload",
        "resumes": [
            {"fileName": "carol.txt", "text": resume_text("Carol", "White", "carol@example.com"), "type": "txt"},
        ],
    }
    body.update(overrides)
    return body


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestShortlistEndpoint:

    def test_requires_authentication(self, client, seeded):
        response = client.post("/api/ai-shortlist", json=shortlist_body(seeded))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_MISSING"

    def test_missing_job_id(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist", json=shortlist_body(seeded, jobId=None), headers=auth_headers(MEMBER_ID)
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Job ID is required"

    def test_missing_organization_id(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist",
            json=shortlist_body(seeded, organizationId=None),
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Organization ID is required"

    def test_viewer_is_denied(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist", json=shortlist_body(seeded), headers=auth_headers(VIEWER_ID)
        )

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "You do not have permission to use AI shortlisting"

    def test_other_organization_is_denied(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist", json=shortlist_body(seeded), headers=auth_headers(OUTSIDER_ID)
        )

        assert response.status_code == 403

    def test_unknown_job(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist",
            json=shortlist_body(seeded, jobId=seeded.other_job_id),
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Job not found"

    def test_upload(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist", json=shortlist_body(seeded), headers=auth_headers(MEMBER_ID)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["jobTitle"] == "Backend Engineer"
        assert data["message"] == "Analyzed 1 resumes"
        assert data["results"][0]["candidateName"] == "Carol White"
        assert data["results"][0]["matchScore"] == 80

    def test_batch(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist",
            json=shortlist_body(seeded, mode="batch", resumes=[]),
            headers=auth_headers(ADMIN_ID),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Analyzed 2 candidates"

    def test_invalid_mode(self, client, seeded):
        response = client.post(
            "/api/ai-shortlist",
            json=shortlist_body(seeded, mode="everything"),
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestPermissionsEndpoint:

    def test_admin(self, client, seeded):
        response = client.get(
            "/api/permissions",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(ADMIN_ID),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["organizationId"] == seeded.org_id
        assert data["role"] == "admin"
        assert "usage.read" in data["permissions"]
        assert "organization.delete" not in data["permissions"]
        assert data["permissions"] == sorted(data["permissions"])

    def test_defaults_to_first_membership(self, client, seeded):
        response = client.get("/api/permissions", headers=auth_headers(VIEWER_ID))

        data = response.json()
        assert data["organizationId"] == seeded.org_id
        assert data["role"] == "viewer"
        assert data["permissions"] == ["candidates.read", "jobs.read", "members.read"]

    def test_non_member_gets_empty_list(self, client, seeded):
        response = client.get(
            "/api/permissions",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(OUTSIDER_ID),
        )

        assert response.status_code == 200
        assert response.json()["role"] is None
        assert response.json()["permissions"] == []


class TestExportEndpoints:

    def test_usage_summary_needs_usage_read(self, client, seeded):
        response = client.get(
            "/api/usage/summary",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 403

    def test_usage_export_after_shortlisting(self, client, seeded):
        client.post("/api/ai-shortlist", json=shortlist_body(seeded), headers=auth_headers(MEMBER_ID))

        response = client.get(
            "/api/usage/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(ADMIN_ID),
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.split("\n")
        assert len(lines) == 3
        assert lines[0].startswith('"Date"')

    def test_empty_usage_export(self, client, seeded):
        response = client.get(
            "/api/usage/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(OWNER_ID),
        )

        assert response.status_code == 200
        assert response.text == ""

    def test_candidates_export(self, client, seeded):
        response = client.get(
            "/api/candidates/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 200
        lines = response.text.split("\n")
        assert len(lines) == 3
        assert "alice@example.com" in response.text
        assert "bob@example.com" in response.text

    def test_candidates_export_denied_for_viewer(self, client, seeded):
        response = client.get(
            "/api/candidates/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(VIEWER_ID),
        )

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Missing permission: candidates.export"

    def test_jobs_export_is_scoped_to_organization(self, client, seeded):
        response = client.get(
            "/api/jobs/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 200
        assert "Backend Engineer" in response.text
        assert "Designer" not in response.text

    def test_audit_export_records_exports(self, client, seeded):
        client.get(
            "/api/jobs/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(ADMIN_ID),
        )

        response = client.get(
            "/api/audit/export",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(ADMIN_ID),
        )

        assert response.status_code == 200
        lines = response.text.split("\n")
        assert len(lines) == 2
        assert '"export","job"' in lines[1]


class TestOverrideEndpoint:

    def _application_id(self, session_factory, candidate_id):
        async def fetch():
            async with session_factory() as session:
                return await session.scalar(
                    select(JobApplication.id).where(JobApplication.candidate_id == candidate_id)
                )
        return run_sync(fetch())

    def _run_batch(self, client, seeded):
        client.post(
            "/api/ai-shortlist",
            json=shortlist_body(seeded, mode="batch", resumes=[]),
            headers=auth_headers(ADMIN_ID),
        )

    def test_override(self, client, seeded, session_factory):
        self._run_batch(client, seeded)
        application_id = self._application_id(session_factory, seeded.bob_id)

        response = client.post(
            f"/api/applications/{application_id}/override",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(ADMIN_ID),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "overridden"
        assert response.json()["candidateId"] == seeded.bob_id

    def test_member_cannot_override(self, client, seeded, session_factory):
        self._run_batch(client, seeded)
        application_id = self._application_id(session_factory, seeded.bob_id)

        response = client.post(
            f"/api/applications/{application_id}/override",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(MEMBER_ID),
        )

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Missing permission: applications.override"

    def test_unknown_application(self, client, seeded):
        response = client.post(
            "/api/applications/9999/override",
            params={"organization_id": seeded.org_id},
            headers=auth_headers(OWNER_ID),
        )

        assert response.status_code == 404
