"""
FastAPI dependency injection.
Provides the ledger, external clients, the core engines, and request verification.
"""

import hashlib
import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from docrelay.clients.turnitin_client import TurnitinClient
from docrelay.clients.whatsapp_client import WhatsAppClient
from docrelay.config import settings
from docrelay.core.correlation import CorrelationEngine
from docrelay.core.delivery import DeliveryGuard
from docrelay.core.inbound import InboundMessageHandler
from docrelay.core.intake import SubmissionIntake
from docrelay.ledger.submission_ledger import SubmissionLedger
from docrelay.models.database import async_session_factory


# ── Singleton instances ──────────────────────────────────────
_ledger: Optional[SubmissionLedger] = None
_whatsapp: Optional[WhatsAppClient] = None
_scanner: Optional[TurnitinClient] = None


def get_ledger() -> SubmissionLedger:
    """Get or create the ledger singleton."""
    global _ledger
    if _ledger is None:
        _ledger = SubmissionLedger(async_session_factory)
    return _ledger


def get_whatsapp_client() -> WhatsAppClient:
    """Get or create the WhatsApp client singleton."""
    global _whatsapp
    if _whatsapp is None:
        _whatsapp = WhatsAppClient()
    return _whatsapp


def get_scanner_client() -> TurnitinClient:
    """Get or create the scanner client singleton."""
    global _scanner
    if _scanner is None:
        _scanner = TurnitinClient()
    return _scanner


async def close_clients() -> None:
    """Close pooled HTTP connections held by the client singletons."""
    global _whatsapp, _scanner
    if _whatsapp is not None:
        await _whatsapp.aclose()
        _whatsapp = None
    if _scanner is not None:
        await _scanner.aclose()
        _scanner = None


def get_correlation_engine(
    ledger: SubmissionLedger = Depends(get_ledger),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client),
) -> CorrelationEngine:
    guard = DeliveryGuard(ledger, whatsapp)
    return CorrelationEngine(ledger, whatsapp, guard)


def get_inbound_handler(
    ledger: SubmissionLedger = Depends(get_ledger),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client),
    scanner: TurnitinClient = Depends(get_scanner_client),
) -> InboundMessageHandler:
    return InboundMessageHandler(SubmissionIntake(ledger), whatsapp, whatsapp, scanner)


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """
    Verify API key if configured.
    If API_KEY is not set, all requests are allowed (dev mode).
    """
    if settings.API_KEY is None:
        return None

    if x_api_key is None or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key


def signature_matches(secret: str, body: bytes, signature_header: Optional[str]) -> bool:
    """Check a Meta 'sha256=<hex>' signature over the raw request body."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len("sha256="):])


async def verify_whatsapp_signature(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
) -> None:
    """
    Verify the webhook signature if WHATSAPP_APP_SECRET is configured.
    Unsigned requests are accepted in dev mode.
    """
    if settings.WHATSAPP_APP_SECRET is None:
        return
    body = await request.body()
    if not signature_matches(settings.WHATSAPP_APP_SECRET, body, x_hub_signature_256):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")
