"""Google Document AI acquisition capability.

Sends the raw document to a Document AI processor and returns the OCR text
plus any typed entities the processor reports (e.g. the W-2 parser's
``wages_tips_other_compensation``).  Transient failures are retried a fixed
number of times with a fixed delay.
"""

import logging
import time
from typing import Callable, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import documentai_v1 as documentai
from google.oauth2 import service_account

from .document_parser import AcquiredText, AcquisitionError, Entity, SourceDocument

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 5.0
REQUEST_TIMEOUT_SECONDS = 60.0

TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.TooManyRequests,
    gcp_exceptions.RetryError,
    ConnectionError,
    TimeoutError,
)


class DocumentAIClient:
    """Document AI capability with explicit credentials and bounded retries."""

    name = "document_ai"

    def __init__(
        self,
        project_id: str,
        processor_id: str,
        location: str = "us",
        credentials_file: Optional[str] = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            project_id: Google Cloud project owning the processor
            processor_id: Document AI processor ID
            location: Processor region ("us" or "eu")
            credentials_file: Service-account JSON key; application default
                credentials are used when omitted
            max_attempts: Total attempts for transient failures
            retry_delay: Seconds to wait between attempts
            timeout: Per-request timeout in seconds
            client: Pre-built DocumentProcessorServiceClient (tests inject a fake)
            sleep: Delay function between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep
        self.processor_name = documentai.DocumentProcessorServiceClient.processor_path(
            project_id, location, processor_id
        )
        if client is None:
            credentials = None
            if credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    credentials_file
                )
            client = documentai.DocumentProcessorServiceClient(
                credentials=credentials,
                client_options={"api_endpoint": f"{location}-documentai.googleapis.com"},
            )
        self._client = client

    def acquire(self, document: SourceDocument) -> AcquiredText:
        """Process a document, retrying transient failures."""
        request = documentai.ProcessRequest(
            name=self.processor_name,
            raw_document=documentai.RawDocument(
                content=document.content,
                mime_type=document.mime_type,
            ),
        )

        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self._client.process_document(request=request, timeout=self.timeout)
                return self._to_acquired_text(result)
            except TRANSIENT_ERRORS as e:
                last_error = e
                logger.warning("Document AI attempt %d/%d failed: %s",
                               attempt, self.max_attempts, e)
                if attempt < self.max_attempts:
                    self._sleep(self.retry_delay)
            except gcp_exceptions.GoogleAPICallError as e:
                raise AcquisitionError(f"Document AI rejected the document: {e}") from e

        raise AcquisitionError(
            f"Document AI failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    def _to_acquired_text(self, result) -> AcquiredText:
        document = getattr(result, "document", None)
        if document is None:
            raise AcquisitionError("Document AI returned no document")

        entities = []
        for entity in document.entities:
            normalized = getattr(entity, "normalized_value", None)
            entities.append(Entity(
                type=entity.type_,
                mention_text=entity.mention_text,
                normalized_value=(normalized.text or None) if normalized else None,
                confidence=entity.confidence,
            ))
        return AcquiredText(text=document.text or "", entities=entities, source=self.name)
