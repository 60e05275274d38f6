"""
Turnitin scanning client (Plagwise submit-file API).
"""

import time
from typing import Optional

import httpx
import structlog

from docrelay.clients.base import ScanningClient
from docrelay.config import settings
from docrelay.errors import ScannerError
from docrelay.observability.metrics import external_api_errors_total, external_api_latency_seconds

logger = structlog.get_logger(__name__)


def _flag(value: bool) -> str:
    return "1" if value else "0"


class TurnitinClient(ScanningClient):
    """Submits PDFs for plagiarism checking. Reports arrive via the callback webhook."""

    def __init__(
        self,
        submit_url: Optional[str] = None,
        email: Optional[str] = None,
        api_key: Optional[str] = None,
        environment: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.submit_url = submit_url or settings.SCANNER_SUBMIT_URL
        self.email = email if email is not None else settings.TURNITIN_EMAIL
        self.api_key = api_key if api_key is not None else settings.TURNITIN_API_KEY
        self.environment = environment or settings.TURNITIN_ENVIRONMENT
        self._http = http_client or httpx.AsyncClient(timeout=settings.UPLOAD_TIMEOUT_SECONDS)

    @property
    def service_name(self) -> str:
        return "turnitin"

    async def aclose(self) -> None:
        await self._http.aclose()

    def _form_fields(self, options: Optional[dict]) -> dict[str, str]:
        fields = {
            "email": self.email,
            "api_key": self.api_key,
            "environment": self.environment,
            "submission_type": "file",
            "exclude_bibliography": _flag(settings.SCANNER_EXCLUDE_BIBLIOGRAPHY),
            "exclude_quotes": _flag(settings.SCANNER_EXCLUDE_QUOTES),
        }
        for key, value in (options or {}).items():
            fields[key] = _flag(value) if isinstance(value, bool) else str(value)
        return fields

    async def submit(
        self,
        document_bytes: bytes,
        filename: str,
        options: Optional[dict] = None,
    ) -> str:
        start = time.monotonic()
        try:
            response = await self._http.post(
                self.submit_url,
                data=self._form_fields(options),
                files={"submitted_file": (filename, document_bytes, "application/pdf")},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            external_api_errors_total.labels(service=self.service_name, operation="submit").inc()
            logger.error("scanner_submit_failed", filename=filename, error=str(e))
            raise ScannerError(f"Scanner unreachable or returned an invalid response: {e}") from e
        finally:
            external_api_latency_seconds.labels(service=self.service_name, operation="submit").observe(
                time.monotonic() - start
            )

        report_id = body.get("report_id") if isinstance(body, dict) else None
        if not (isinstance(body, dict) and body.get("success") and report_id):
            errors = body.get("errors") if isinstance(body, dict) else body
            external_api_errors_total.labels(service=self.service_name, operation="submit").inc()
            logger.error("scanner_submit_rejected", filename=filename, errors=errors)
            raise ScannerError(f"Turnitin submission failed: {errors}")

        job_id = str(report_id)
        logger.info("scanner_submit_accepted", filename=filename, job_id=job_id, size_bytes=len(document_bytes))
        return job_id
