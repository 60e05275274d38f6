"""
Tests for the WhatsApp /webhook endpoints.
"""

import hashlib
import hmac
import json

from docrelay.config import settings
from docrelay.core.inbound import MSG_RECEIVED, MSG_SUBMITTED, MSG_USAGE
from docrelay.dependencies import signature_matches


def _payload(message: dict) -> dict:
    return {"entry": [{"changes": [{"value": {"messages": [message]}}]}]}


PDF_MESSAGE = {
    "from": "15551234567",
    "id": "wamid.1",
    "type": "document",
    "document": {"id": "media-1", "mime_type": "application/pdf", "filename": "essay.pdf"},
}


class TestVerification:
    async def test_matching_token_echoes_challenge(self, client):
        response = await client.get("/webhook", params={
            "hub.mode": "subscribe",
            "hub.verify_token": "verify-me",
            "hub.challenge": "1158201444",
        })
        assert response.status_code == 200
        assert response.text == "1158201444"

    async def test_wrong_token_forbidden(self, client):
        response = await client.get("/webhook", params={
            "hub.mode": "subscribe",
            "hub.verify_token": "nope",
            "hub.challenge": "x",
        })
        assert response.status_code == 403

    async def test_missing_params_bad_request(self, client):
        response = await client.get("/webhook")
        assert response.status_code == 400


class TestInboundMessages:
    async def test_pdf_processed_after_ack(self, client, ledger, whatsapp, scanner):
        response = await client.post("/webhook", json=_payload(PDF_MESSAGE))
        assert response.status_code == 200
        assert response.json() == {"received": True}

        assert [text for _, text in whatsapp.texts] == [MSG_RECEIVED, MSG_SUBMITTED]
        assert scanner.submitted[0][1] == "essay.pdf"
        row = await ledger.find_by_job_id("J1")
        assert row.user_ref == "15551234567"

    async def test_text_message_gets_usage_hint(self, client, whatsapp):
        message = {"from": "u1", "type": "text", "text": {"body": "hello"}}
        response = await client.post("/webhook", json=_payload(message))
        assert response.status_code == 200
        assert whatsapp.texts == [("u1", MSG_USAGE)]

    async def test_status_update_without_messages(self, client, whatsapp):
        body = {"entry": [{"changes": [{"value": {"statuses": [{"status": "read"}]}}]}]}
        response = await client.post("/webhook", json=body)
        assert response.status_code == 200
        assert whatsapp.texts == []

    async def test_garbage_payload_acknowledged(self, client, whatsapp):
        response = await client.post("/webhook", json={"entry": "oops"})
        assert response.status_code == 200
        assert whatsapp.texts == []


class TestSignature:
    def test_signature_matches(self):
        body = b'{"a":1}'
        digest = hmac.new(b"secret", body, hashlib.sha256).hexdigest()
        assert signature_matches("secret", body, f"sha256={digest}")
        assert not signature_matches("secret", body, "sha256=deadbeef")
        assert not signature_matches("secret", body, None)

    async def test_unsigned_request_rejected_when_secret_set(self, client, whatsapp, monkeypatch):
        monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", "s3cret")
        response = await client.post("/webhook", json=_payload(PDF_MESSAGE))
        assert response.status_code == 403
        assert whatsapp.texts == []

    async def test_signed_request_accepted(self, client, whatsapp, monkeypatch):
        monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", "s3cret")
        body = json.dumps(_payload(PDF_MESSAGE)).encode("utf-8")
        digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        response = await client.post(
            "/webhook",
            content=body,
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={digest}"},
        )
        assert response.status_code == 200
        assert whatsapp.texts[0][1] == MSG_RECEIVED
