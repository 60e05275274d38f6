"""
Tests for the /turnitin-webhook callback endpoint.
"""

from docrelay.models.enums import CallbackOutcome, SubmissionStatus


async def _bind(ledger, user_ref: str, job_id: str):
    handle = await ledger.create(user_ref, "doc.pdf")
    await ledger.attach_job_id(handle, job_id)
    return handle


class TestScannerCallback:
    async def test_completed_report_delivered_once(self, client, ledger, whatsapp):
        await _bind(ledger, "15550001", "123")
        body = {
            "report_id": 123,
            "status": "completed",
            "plagiarism_report_url": "https://reports.example/123.pdf",
        }

        response = await client.post("/turnitin-webhook", json=body)
        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": CallbackOutcome.DELIVERED.value}
        assert whatsapp.documents == [("15550001", "https://reports.example/123.pdf", "Turnitin_Report.pdf")]

        row = await ledger.find_by_job_id("123")
        assert row.status == SubmissionStatus.DELIVERED.value

        replay = await client.post("/turnitin-webhook", json=body)
        assert replay.status_code == 200
        assert replay.json()["outcome"] == CallbackOutcome.DUPLICATE.value
        assert len(whatsapp.documents) == 1

    async def test_unknown_job_still_acknowledged(self, client, ledger, whatsapp):
        response = await client.post("/turnitin-webhook", json={
            "report_id": "J9",
            "status": "completed",
            "plagiarism_report_url": "https://reports.example/J9.pdf",
        })
        assert response.status_code == 200
        assert response.json()["outcome"] == CallbackOutcome.UNKNOWN_JOB.value
        assert whatsapp.documents == []
        _, total = await ledger.list_submissions()
        assert total == 0

    async def test_queued_callback_sends_notice(self, client, ledger, whatsapp):
        await _bind(ledger, "15550001", "55")
        response = await client.post("/turnitin-webhook", json={"report_id": "55", "status": "queued"})
        assert response.json()["outcome"] == CallbackOutcome.QUEUED_NOTICE_SENT.value
        assert len(whatsapp.texts) == 1

    async def test_generic_field_names_accepted(self, client, ledger, whatsapp):
        await _bind(ledger, "u1", "J1")
        response = await client.post("/turnitin-webhook", json={
            "job_id": "J1", "status": "COMPLETED", "report_ref": "R1",
        })
        assert response.json()["outcome"] == CallbackOutcome.DELIVERED.value
        assert whatsapp.documents[0][:2] == ("u1", "R1")

    async def test_missing_job_id_ignored(self, client):
        response = await client.post("/turnitin-webhook", json={"status": "completed"})
        assert response.status_code == 200
        assert response.json()["outcome"] == CallbackOutcome.IGNORED.value

    async def test_malformed_body_ignored(self, client):
        response = await client.post(
            "/turnitin-webhook",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json()["outcome"] == CallbackOutcome.IGNORED.value
