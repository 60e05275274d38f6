"""
Tests for the WhatsApp Cloud API client against a mocked transport.
"""

import json

import httpx
import pytest

from docrelay.clients.whatsapp_client import WhatsAppClient
from docrelay.core.delivery import DeliveryGuard
from docrelay.errors import DispatchFailure, WhatsAppError
from docrelay.models.enums import DeliveryOutcome, SubmissionStatus


def make_client(handler) -> WhatsAppClient:
    return WhatsAppClient(
        access_token="tok",
        phone_number_id="PHONE",
        api_version="v19.0",
        base_url="https://graph.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestMedia:
    async def test_fetch_media_resolves_url_then_downloads(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, str(request.url), request.headers.get("Authorization")))
            if request.url.host == "graph.test":
                return httpx.Response(200, json={"url": "https://cdn.test/file"})
            return httpx.Response(200, content=b"%PDF-data")

        client = make_client(handler)
        assert await client.fetch_media("MEDIA1") == b"%PDF-data"
        assert seen == [
            ("GET", "https://graph.test/v19.0/MEDIA1", "Bearer tok"),
            ("GET", "https://cdn.test/file", "Bearer tok"),
        ]

    async def test_missing_url_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(WhatsAppError):
            await client.get_media_url("MEDIA1")


class TestNotify:
    async def test_notify_text_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

        await make_client(handler).notify_text("15550001", "hello")

        assert captured["url"] == "https://graph.test/v19.0/PHONE/messages"
        assert captured["body"] == {
            "messaging_product": "whatsapp",
            "to": "15550001",
            "type": "text",
            "text": {"body": "hello"},
        }

    async def test_notify_text_failure_is_dispatch_failure(self):
        client = make_client(lambda request: httpx.Response(500, json={"error": "down"}))
        with pytest.raises(DispatchFailure):
            await client.notify_text("15550001", "hello")

    async def test_notify_document_downloads_uploads_and_sends(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path))
            if request.url.host == "reports.test":
                assert "Authorization" not in request.headers
                return httpx.Response(200, content=b"%PDF-report")
            if request.url.path.endswith("/media"):
                assert b"%PDF-report" in request.content
                return httpx.Response(200, json={"id": "uploaded-1"})
            body = json.loads(request.content)
            assert body["document"] == {"id": "uploaded-1", "filename": "Report.pdf"}
            assert body["to"] == "15550001"
            return httpx.Response(200, json={})

        await make_client(handler).notify_document("15550001", "https://reports.test/r.pdf", "Report.pdf")

        assert calls == [
            ("GET", "/r.pdf"),
            ("POST", "/v19.0/PHONE/media"),
            ("POST", "/v19.0/PHONE/messages"),
        ]

    async def test_notify_document_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(DispatchFailure):
            await make_client(handler).notify_document("u1", "https://reports.test/r.pdf", "Report.pdf")

    async def test_non_json_upload_reply_is_dispatch_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "reports.test":
                return httpx.Response(200, content=b"%PDF-report")
            return httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(DispatchFailure):
            await make_client(handler).notify_document("u1", "https://reports.test/r.pdf", "Report.pdf")

    async def test_non_json_send_reply_is_dispatch_failure(self):
        client = make_client(lambda request: httpx.Response(200, text="ok"))
        with pytest.raises(DispatchFailure):
            await client.notify_text("u1", "hello")

    async def test_invalid_report_url_is_dispatch_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("Invalid port")

        with pytest.raises(DispatchFailure):
            await make_client(handler).notify_document("u1", "https://reports.test/r.pdf", "Report.pdf")


class TestDeliveryThroughClient:
    async def test_garbled_upload_reply_leaves_record_completed(self, ledger, submitted_job):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "reports.test":
                return httpx.Response(200, content=b"%PDF-report")
            return httpx.Response(200, text="<html>gateway</html>")

        guard = DeliveryGuard(ledger, make_client(handler), report_filename="Report.pdf")
        outcome = await guard.deliver("J1", "https://reports.test/r.pdf")

        assert outcome == DeliveryOutcome.DISPATCH_FAILED
        row = await ledger.find_by_job_id("J1")
        assert row.status == SubmissionStatus.COMPLETED.value
        assert row.delivered_at is None
