"""
WhatsApp Cloud API client.
Sends text and document messages and downloads user media.
"""

import time
from typing import Any, Optional

import httpx
import structlog

from docrelay.clients.base import MediaSource, NotificationDispatcher
from docrelay.config import settings
from docrelay.errors import DispatchFailure, WhatsAppError
from docrelay.observability.metrics import (
    dispatch_failures_total,
    external_api_errors_total,
    external_api_latency_seconds,
)

logger = structlog.get_logger(__name__)

SERVICE = "whatsapp"


class WhatsAppClient(NotificationDispatcher, MediaSource):
    """Thin async wrapper over the Graph API endpoints the relay uses."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        api_version: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.CLOUD_API_ACCESS_TOKEN
        self.phone_number_id = phone_number_id if phone_number_id is not None else settings.WA_PHONE_NUMBER_ID
        self.api_version = api_version or settings.CLOUD_API_VERSION
        self.base_url = (base_url or settings.CLOUD_API_BASE_URL).rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── URLs ─────────────────────────────────────────────────

    def _graph_url(self, path: str) -> str:
        return f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"

    @property
    def messages_url(self) -> str:
        return self._graph_url(f"{self.phone_number_id}/messages")

    @property
    def media_url(self) -> str:
        return self._graph_url(f"{self.phone_number_id}/media")

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    # ── Transport ────────────────────────────────────────────

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Perform one request, recording latency; raise WhatsAppError on failure."""
        start = time.monotonic()
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            external_api_errors_total.labels(service=SERVICE, operation=operation).inc()
            detail = e.response.text[:500]
            logger.error(
                "whatsapp_request_failed",
                operation=operation,
                status_code=e.response.status_code,
                detail=detail,
            )
            raise WhatsAppError(f"{operation} failed: {detail}", status_code=e.response.status_code) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            external_api_errors_total.labels(service=SERVICE, operation=operation).inc()
            logger.error("whatsapp_request_failed", operation=operation, error=str(e))
            raise WhatsAppError(f"{operation} failed: {e}") from e
        finally:
            external_api_latency_seconds.labels(service=SERVICE, operation=operation).observe(
                time.monotonic() - start
            )

    @staticmethod
    def _json(operation: str, response: httpx.Response) -> dict:
        """Decode a JSON object body; raise WhatsAppError when the body is not one."""
        try:
            body = response.json()
        except ValueError as e:
            external_api_errors_total.labels(service=SERVICE, operation=operation).inc()
            logger.error("whatsapp_bad_response", operation=operation, detail=response.text[:200])
            raise WhatsAppError(f"{operation} returned a non-JSON body", status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise WhatsAppError(f"{operation} returned an unexpected body", status_code=response.status_code)
        return body

    # ── Media ────────────────────────────────────────────────

    async def get_media_url(self, media_id: str) -> str:
        """Exchange a media id for a short-lived download URL."""
        response = await self._request(
            "get_media_url", "GET", self._graph_url(media_id), headers=self._auth_headers()
        )
        url = self._json("get_media_url", response).get("url")
        if not url:
            raise WhatsAppError(f"No download URL returned for media {media_id}")
        return url

    async def download(self, url: str, authenticated: bool = True) -> bytes:
        headers = self._auth_headers() if authenticated else {}
        response = await self._request("download", "GET", url, headers=headers)
        return response.content

    async def fetch_media(self, media_id: str) -> bytes:
        url = await self.get_media_url(media_id)
        data = await self.download(url)
        logger.info("media_downloaded", media_id=media_id, size_bytes=len(data))
        return data

    async def upload_media(self, data: bytes, filename: str, mime_type: str = "application/pdf") -> str:
        """Upload a file to the Cloud API and return its media id."""
        response = await self._request(
            "upload_media",
            "POST",
            self.media_url,
            headers=self._auth_headers(),
            data={"messaging_product": "whatsapp", "type": "document"},
            files={"file": (filename, data, mime_type)},
            timeout=settings.UPLOAD_TIMEOUT_SECONDS,
        )
        media_id = self._json("upload_media", response).get("id")
        if not media_id:
            raise WhatsAppError("Media upload returned no id")
        return media_id

    # ── Messages ─────────────────────────────────────────────

    async def send_message(self, payload: dict) -> dict:
        body = {"messaging_product": "whatsapp", **payload}
        response = await self._request(
            "send_message", "POST", self.messages_url, headers=self._auth_headers(), json=body
        )
        return self._json("send_message", response)

    async def notify_text(self, user_ref: str, text: str) -> None:
        try:
            await self.send_message({"to": user_ref, "type": "text", "text": {"body": text}})
        except WhatsAppError as e:
            dispatch_failures_total.labels(kind="text").inc()
            raise DispatchFailure(str(e)) from e
        logger.info("text_sent", user_ref=user_ref)

    async def notify_document(self, user_ref: str, doc_ref: str, filename: str) -> None:
        """Download the report from doc_ref, upload it to WhatsApp and send it."""
        try:
            # Report URLs are public links on the scanner side
            data = await self.download(doc_ref, authenticated=False)
            media_id = await self.upload_media(data, filename)
            await self.send_message({
                "to": user_ref,
                "type": "document",
                "document": {"id": media_id, "filename": filename},
            })
        except WhatsAppError as e:
            dispatch_failures_total.labels(kind="document").inc()
            raise DispatchFailure(str(e)) from e
        logger.info("document_sent", user_ref=user_ref, filename=filename)
