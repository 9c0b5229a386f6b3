"""
AI service package for blueprint knowledge extraction.

This package provides modular AI functionality split into:
- prompts: Template registry and prompt rendering
- transport: The single OpenAI-compatible chat-completion call
- response: Tolerant JSON recovery from LLM replies
- normalize: Recursive whitespace cleanup of extracted payloads
- extraction: The end-to-end extraction pipeline
- stream: Progress events for the live endpoint

The AIService class ties the pipeline to a transport and settings.
"""

import logging
import uuid
from typing import AsyncGenerator

from ...config import Settings, get_settings
from ...exceptions import (
    AIServiceError,
    EmptyDocumentError,
    EmptyUpstreamReplyError,
    ExtractionError,
    InternalError,
    MalformedJSONError,
    MissingCredentialError,
    UnreadableDocumentError,
    UpstreamUnavailableError,
)
from ...models import ExtractionOutcome, ExtractionRequest, TemplateId
from ..pdf_service import PDFService
from .extraction import ExtractionPipeline, build_degraded_payload, project
from .normalize import normalize, normalize_text
from .prompts import TEMPLATES, OutputField, PromptTemplate, build_prompt, get_template
from .response import extract_json
from .stream import stream_extraction
from .transport import LLMTransport, OpenAICompatibleTransport, get_transport

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "EmptyDocumentError",
    "EmptyUpstreamReplyError",
    "ExtractionError",
    "ExtractionPipeline",
    "InternalError",
    "LLMTransport",
    "MalformedJSONError",
    "MissingCredentialError",
    "OpenAICompatibleTransport",
    "OutputField",
    "PromptTemplate",
    "TEMPLATES",
    "UnreadableDocumentError",
    "UpstreamUnavailableError",
    "build_degraded_payload",
    "build_prompt",
    "extract_json",
    "get_ai_service",
    "get_template",
    "normalize",
    "normalize_text",
    "project",
    "stream_extraction",
]


def new_request_id() -> str:
    """Short identifier used to correlate the log lines of one request."""
    return uuid.uuid4().hex[:12]


# =============================================================================
# AIService Class
# =============================================================================


class AIService:
    """
    Service for LLM-powered blueprint extraction.

    Each call builds a fresh ExtractionPipeline, so concurrent requests share
    nothing but the read-only transport configuration and settings.
    """

    def __init__(
        self,
        transport: LLMTransport | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            transport: LLM transport. If None, the OpenAI-compatible transport
                configured from settings is used.
            settings: Application settings. If None, reads from config/environment.
        """
        self.settings = settings or get_settings()
        self.transport = transport or get_transport()

    def pipeline(self, request_id: str | None = None) -> ExtractionPipeline:
        return ExtractionPipeline(
            self.transport,
            settings=self.settings,
            request_id=request_id or new_request_id(),
        )

    async def extract(
        self, request: ExtractionRequest, request_id: str | None = None
    ) -> ExtractionOutcome:
        """
        Run one extraction and return the shaped result.

        Args:
            request: Source text, template and credential.
            request_id: Log correlation id. Generated when omitted.

        Returns:
            ExtractionOutcome with the projected payload.
        """
        return await self.pipeline(request_id).run(request)

    def stream(
        self,
        pdf_service: PDFService,
        *,
        credential: str | None,
        template_id: TemplateId = TemplateId.ANALYZE,
        file_name: str | None = None,
        file_bytes: bytes | None = None,
        request_id: str | None = None,
    ) -> AsyncGenerator[str, None]:
        """Return the SSE frame generator for a streaming extraction."""
        return stream_extraction(
            self.pipeline(request_id),
            pdf_service,
            credential=credential,
            template_id=template_id,
            file_name=file_name,
            file_bytes=file_bytes,
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service
