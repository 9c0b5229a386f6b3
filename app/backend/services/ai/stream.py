"""
Progress streaming for the live analysis endpoint.

Wraps the extraction pipeline and reports each stage transition as a
Server-Sent Event (``data: <json>\\n\\n``). A stream carries zero or more
``process`` events followed by exactly one ``result`` or ``error`` event.
"""

import json
import logging
from contextlib import aclosing
from typing import AsyncGenerator, AsyncIterator

from starlette.concurrency import run_in_threadpool

from ...exceptions import (
    INTERNAL_ERROR_MESSAGE,
    EmptyDocumentError,
    ExtractionError,
    MissingCredentialError,
)
from ...models import (
    ErrorEvent,
    ExtractionRequest,
    ProcessEvent,
    ResultEvent,
    StreamEvent,
    TemplateId,
)
from ..pdf_service import PDFService
from .extraction import ExtractionPipeline

logger = logging.getLogger(__name__)

FALLBACK_ERROR_FRAME = 'data: {"type": "error", "error": "Failed to serialize stream event"}\n\n'


def sse(event: StreamEvent) -> str | None:
    """Serialize an event as an SSE data frame, or None if it cannot be encoded."""
    try:
        return f"data: {json.dumps(event.model_dump(), ensure_ascii=False)}\n\n"
    except (TypeError, ValueError) as e:
        logger.error("Failed to serialize %s event: %s", event.type, e)
        return None


async def _pipeline_events(
    pipeline: ExtractionPipeline,
    pdf_service: PDFService,
    *,
    credential: str | None,
    template_id: TemplateId,
    file_name: str | None,
    file_bytes: bytes | None,
) -> AsyncIterator[StreamEvent]:
    """Run the pipeline step by step, yielding an event around each stage."""
    try:
        if not credential:
            raise MissingCredentialError("Missing LLM credential")
        if not file_bytes:
            raise EmptyDocumentError("No file received")

        size_mb = len(file_bytes) / (1024 * 1024)
        logger.info(
            "Received '%s' (%.2f MB) for streaming '%s' [%s]",
            file_name,
            size_mb,
            template_id.value,
            pipeline.request_id,
        )
        yield ProcessEvent(message=f"Received document {file_name or ''} ({size_mb:.2f} MB)")

        yield ProcessEvent(message="Parsing document...")
        text = await run_in_threadpool(pdf_service.extract_text, file_bytes)
        request = ExtractionRequest(
            source_text=text,
            template_id=template_id,
            credential=credential,
        )
        template = pipeline.validate(request)
        prompt = pipeline.build(request)

        yield ProcessEvent(message=f"Parsing complete, {len(text)} characters extracted")
        yield ProcessEvent(message="Calling analysis service...")
        raw_content = await pipeline.call_llm(request, prompt)

        yield ProcessEvent(message="Response received, parsing result...")
        payload, degraded = pipeline.parse(template, raw_content)
        if degraded:
            yield ProcessEvent(
                message="Result could not be parsed as structured JSON, returning raw reply excerpt"
            )
        else:
            yield ProcessEvent(message="Structured parsing succeeded")

        yield ResultEvent(data=pipeline.shape(template, payload))
        logger.info("Streaming analysis finished (degraded=%s) [%s]", degraded, pipeline.request_id)

    except ExtractionError as e:
        logger.warning("Streaming analysis failed: %s [%s]", e.message, pipeline.request_id)
        yield ErrorEvent(error=e.message)
    except Exception:
        logger.exception("Streaming analysis failed unexpectedly [%s]", pipeline.request_id)
        yield ErrorEvent(error=INTERNAL_ERROR_MESSAGE)


async def stream_extraction(
    pipeline: ExtractionPipeline,
    pdf_service: PDFService,
    *,
    credential: str | None,
    template_id: TemplateId = TemplateId.ANALYZE,
    file_name: str | None = None,
    file_bytes: bytes | None = None,
) -> AsyncGenerator[str, None]:
    """
    Yield SSE frames for one streaming analysis.

    Stops right after the first terminal event. If an event cannot be
    serialized, a minimal error frame is written and the stream ends.
    """
    events = _pipeline_events(
        pipeline,
        pdf_service,
        credential=credential,
        template_id=template_id,
        file_name=file_name,
        file_bytes=file_bytes,
    )
    async with aclosing(events):
        async for event in events:
            frame = sse(event)
            if frame is None:
                yield FALLBACK_ERROR_FRAME
                return
            yield frame
            if not isinstance(event, ProcessEvent):
                return
