"""
Tests for the /api/v1/submissions operator endpoints.
"""

import uuid

from docrelay.config import settings
from docrelay.models.enums import SubmissionStatus


class TestSubmissionsApi:
    async def test_list_and_get(self, client, ledger, submitted_job):
        response = await client.get("/api/v1/submissions")
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["submissions"][0]["job_id"] == "J1"
        assert body["submissions"][0]["handle"] == str(submitted_job)

        detail = await client.get(f"/api/v1/submissions/{submitted_job}")
        assert detail.status_code == 200
        assert detail.json()["user_ref"] == "u1"

    async def test_status_filter(self, client, ledger, submitted_job):
        response = await client.get("/api/v1/submissions", params={"status": "DELIVERED"})
        assert response.json()["total"] == 0

    async def test_unknown_handle_404(self, client):
        response = await client.get(f"/api/v1/submissions/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_invalid_handle_400(self, client):
        response = await client.get("/api/v1/submissions/not-a-uuid")
        assert response.status_code == 400

    async def test_stats_report_awaiting_reconciliation(self, client, ledger, submitted_job):
        await ledger.try_transition("J1", SubmissionStatus.SUBMITTED, SubmissionStatus.COMPLETED, output_ref="R1")
        response = await client.get("/api/v1/submissions/stats")
        body = response.json()
        assert body["total"] == 1
        assert body["counts"]["COMPLETED"] == 1
        assert body["awaiting_reconciliation"] == 1

    async def test_correlations(self, client, submitted_job):
        response = await client.get("/api/v1/submissions/correlations")
        assert response.json() == {"correlations": {"J1": "u1"}, "count": 1}

    async def test_inline_sweep(self, client, ledger):
        await ledger.create("u1", "doc.pdf")
        response = await client.post("/api/v1/submissions/sweep", params={"inline": "true"})
        assert response.status_code == 202
        body = response.json()
        # Fresh rows are inside the TTL
        assert body["abandoned"] == 0
        assert body["enqueued"] is False

    async def test_api_key_enforced_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "k")
        assert (await client.get("/api/v1/submissions")).status_code == 401
        ok = await client.get("/api/v1/submissions", headers={"X-API-Key": "k"})
        assert ok.status_code == 200
