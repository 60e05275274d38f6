"""
Subset of the WhatsApp Cloud API webhook payload the relay reads.
Unknown fields are ignored; shapes follow entry[].changes[].value.messages[].
"""

from pydantic import BaseModel, Field
from typing import Optional


class DocumentPayload(BaseModel):
    id: str
    mime_type: Optional[str] = None
    filename: Optional[str] = None
    sha256: Optional[str] = None

    model_config = {"extra": "ignore"}


class InboundMessage(BaseModel):
    """A single user message."""
    id: Optional[str] = None
    from_: str = Field(alias="from")
    type: str
    document: Optional[DocumentPayload] = None

    model_config = {"extra": "ignore", "populate_by_name": True}

    @property
    def is_pdf(self) -> bool:
        return (
            self.type == "document"
            and self.document is not None
            and self.document.mime_type == "application/pdf"
        )


class ChangeValue(BaseModel):
    messages: list[InboundMessage] = []

    model_config = {"extra": "ignore"}


class Change(BaseModel):
    value: ChangeValue = ChangeValue()

    model_config = {"extra": "ignore"}


class Entry(BaseModel):
    changes: list[Change] = []

    model_config = {"extra": "ignore"}


class WebhookPayload(BaseModel):
    entry: list[Entry] = []

    model_config = {"extra": "ignore"}

    def first_message(self) -> Optional[InboundMessage]:
        """The first message of the first change, as the Cloud API batches one per call."""
        if not self.entry or not self.entry[0].changes:
            return None
        messages = self.entry[0].changes[0].value.messages
        return messages[0] if messages else None
