"""
Inbound WhatsApp message handling.
PDFs go through intake; anything else gets the usage hint.
"""

import structlog

from docrelay.clients.base import MediaSource, NotificationDispatcher, ScanningClient
from docrelay.core.intake import SubmissionIntake
from docrelay.errors import DispatchFailure, SubmissionError
from docrelay.observability.metrics import inbound_messages_total
from docrelay.schemas.whatsapp import InboundMessage

logger = structlog.get_logger(__name__)

MSG_RECEIVED = "PDF received! Processing your document..."
MSG_SUBMITTED = (
    "Your document has been submitted for plagiarism checking. "
    "You will receive a PDF when the report is ready."
)
MSG_FAILED = "There was an error processing your document. Please try again later."
MSG_USAGE = "Please send your PDF document for plagiarism checking."

DEFAULT_FILENAME = "document.pdf"


class InboundMessageHandler:
    def __init__(
        self,
        intake: SubmissionIntake,
        dispatcher: NotificationDispatcher,
        media: MediaSource,
        scanner: ScanningClient,
    ):
        self.intake = intake
        self.dispatcher = dispatcher
        self.media = media
        self.scanner = scanner

    async def _say(self, user_ref: str, text: str) -> None:
        """Send a status text; failures are logged, not raised."""
        try:
            await self.dispatcher.notify_text(user_ref, text)
        except DispatchFailure as e:
            logger.warning("status_text_failed", user_ref=user_ref, error=e.message)

    async def handle(self, message: InboundMessage) -> str:
        """Process one message. Returns the job_id for accepted PDFs, else ''."""
        user_ref = message.from_
        if not message.is_pdf:
            inbound_messages_total.labels(message_type=message.type or "unknown").inc()
            await self._say(user_ref, MSG_USAGE)
            return ""

        inbound_messages_total.labels(message_type="pdf").inc()
        document = message.document
        filename = document.filename or DEFAULT_FILENAME
        await self._say(user_ref, MSG_RECEIVED)

        async def submit_to_scanner() -> str:
            data = await self.media.fetch_media(document.id)
            return await self.scanner.submit(data, filename)

        try:
            job_id = await self.intake.submit(
                user_ref=user_ref,
                input_ref=f"whatsapp-media:{document.id}",
                external_submit_fn=submit_to_scanner,
                file_name=filename,
            )
        except SubmissionError as e:
            logger.warning("inbound_submission_failed", user_ref=user_ref, error_code=e.error_code)
            await self._say(user_ref, MSG_FAILED)
            return ""

        await self._say(user_ref, MSG_SUBMITTED)
        return job_id
