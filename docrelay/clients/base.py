"""
Abstract contracts for the relay's external collaborators.
The core only ever talks to these interfaces, never to a concrete HTTP client.
"""

from abc import ABC, abstractmethod
from typing import Optional


class NotificationDispatcher(ABC):
    """
    Sends messages to an end user.

    Implementations must:
    1. Raise DispatchFailure when the message was not accepted
    2. Never retry internally (retry policy belongs to operations)
    """

    @abstractmethod
    async def notify_text(self, user_ref: str, text: str) -> None:
        """Send a plain text message."""
        ...

    @abstractmethod
    async def notify_document(self, user_ref: str, doc_ref: str, filename: str) -> None:
        """Send the document found at doc_ref as an attachment named filename."""
        ...


class ScanningClient(ABC):
    """
    Submits documents to the asynchronous scanning service.
    Completion is reported later through the callback webhook, never here.
    """

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Identifier used in logs and metrics."""
        ...

    @abstractmethod
    async def submit(
        self,
        document_bytes: bytes,
        filename: str,
        options: Optional[dict] = None,
    ) -> str:
        """
        Submit a document and return the scanner's job_id.
        Must raise ScannerError on rejection or transport failure.
        """
        ...


class MediaSource(ABC):
    """Fetches user-uploaded media from the messaging platform."""

    @abstractmethod
    async def fetch_media(self, media_id: str) -> bytes:
        """Resolve media_id to a download URL and return the file bytes."""
        ...
