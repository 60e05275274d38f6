"""
Shared test fixtures.
"""

import asyncio
import os
import tempfile

# Settings are read at import time; point them at a throwaway database first.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="docrelay-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB_DIR}/app.sqlite")
os.environ.setdefault("USE_WORKER_QUEUE", "false")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")
os.environ.setdefault("WEBHOOK_VERIFICATION_TOKEN", "verify-me")

from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from docrelay.clients.base import MediaSource, NotificationDispatcher, ScanningClient
from docrelay.errors import DispatchFailure, ScannerError, WhatsAppError
from docrelay.ledger.submission_ledger import SubmissionLedger
from docrelay.models.database import create_engine_for_url, create_session_factory, init_db


class FakeWhatsApp(NotificationDispatcher, MediaSource):
    """Records every message instead of calling the Cloud API."""

    def __init__(self):
        self.texts: list[tuple[str, str]] = []
        self.documents: list[tuple[str, str, str]] = []
        self.fail_texts = False
        self.fail_documents = False
        self.fail_media = False
        self.media: dict[str, bytes] = {}

    async def notify_text(self, user_ref: str, text: str) -> None:
        await asyncio.sleep(0)
        if self.fail_texts:
            raise DispatchFailure("text send failed")
        self.texts.append((user_ref, text))

    async def notify_document(self, user_ref: str, doc_ref: str, filename: str) -> None:
        # Yield so concurrent deliveries genuinely interleave
        await asyncio.sleep(0)
        if self.fail_documents:
            raise DispatchFailure("document send failed")
        self.documents.append((user_ref, doc_ref, filename))

    async def fetch_media(self, media_id: str) -> bytes:
        if self.fail_media:
            raise WhatsAppError(f"media {media_id} unavailable", status_code=404)
        return self.media.get(media_id, b"%PDF-1.4 test")


class FakeScanner(ScanningClient):
    """Hands out job ids in order; raises ScannerError when told to."""

    def __init__(self, job_ids: Optional[list[str]] = None):
        self.job_ids = list(job_ids or ["J1"])
        self.submitted: list[tuple[bytes, str]] = []
        self.error: Optional[str] = None

    @property
    def service_name(self) -> str:
        return "fake"

    async def submit(self, document_bytes: bytes, filename: str, options: Optional[dict] = None) -> str:
        if self.error:
            raise ScannerError(self.error)
        self.submitted.append((document_bytes, filename))
        return self.job_ids.pop(0)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh file-backed SQLite ledger."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path}/ledger.sqlite")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def ledger(session_factory) -> SubmissionLedger:
    return SubmissionLedger(session_factory)


@pytest.fixture
def whatsapp() -> FakeWhatsApp:
    return FakeWhatsApp()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest_asyncio.fixture
async def submitted_job(ledger):
    """A submission for user u1 bound to job J1, still SUBMITTED."""
    handle = await ledger.create("u1", "doc.pdf")
    await ledger.attach_job_id(handle, "J1")
    return handle


@pytest_asyncio.fixture
async def client(ledger, whatsapp, scanner):
    """HTTPX client bound to the app, with the ledger and clients swapped for fakes."""
    from docrelay.dependencies import get_ledger, get_scanner_client, get_whatsapp_client
    from docrelay.main import create_app

    app = create_app()
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_whatsapp_client] = lambda: whatsapp
    app.dependency_overrides[get_scanner_client] = lambda: scanner

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
