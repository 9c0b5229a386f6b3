"""
Router for blueprint extraction endpoints.

Handles:
- Live full analysis with progress events (POST /api/blueprint/analyze)
- The full analysis as a single JSON body (POST /api/blueprint/analyze/json)
- One JSON endpoint per knowledge section (POST /api/blueprint/{template_id})

Domain failures are raised as ExtractionError subclasses and rendered by the
application-level exception handlers as ``{"error": ...}`` bodies.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from ..config import Settings, get_settings
from ..exceptions import (
    INTERNAL_ERROR_MESSAGE,
    EmptyDocumentError,
    ExtractionError,
    InternalError,
    MissingCredentialError,
)
from ..models import ErrorResponse, ExtractionRequest, TemplateId
from ..services.ai import AIService, get_ai_service, new_request_id
from ..services.pdf_service import PDFService, get_pdf_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blueprint", tags=["blueprint"])

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Missing credential or empty document"},
    422: {"model": ErrorResponse, "description": "Unreadable document"},
    500: {"model": ErrorResponse, "description": "Internal error"},
    502: {"model": ErrorResponse, "description": "Empty or unparseable LLM reply"},
    503: {"model": ErrorResponse, "description": "LLM service unavailable"},
}


def get_credential(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str | None:
    """Read the caller's LLM credential from the configured header."""
    return request.headers.get(settings.credential_header) or None


async def _extract(
    template_id: TemplateId,
    credential: str | None,
    ai_service: AIService,
    pdf_service: PDFService,
    file: UploadFile | None,
) -> dict[str, Any]:
    request_id = new_request_id()

    if not credential:
        logger.warning("Missing LLM credential [%s]", request_id)
        raise MissingCredentialError("Missing LLM credential")

    if file is None:
        logger.warning("Missing file [%s]", request_id)
        raise EmptyDocumentError("No file received")

    try:
        file_bytes = await file.read()

        if not file_bytes:
            raise EmptyDocumentError("Empty file provided")

        logger.info(
            "Processing '%s' for '%s' (%.2f MB) [%s]",
            file.filename,
            template_id.value,
            len(file_bytes) / (1024 * 1024),
            request_id,
        )

        text = await run_in_threadpool(pdf_service.extract_text, file_bytes)
        logger.info("PDF parsed: %d characters [%s]", len(text), request_id)

        outcome = await ai_service.extract(
            ExtractionRequest(
                source_text=text,
                template_id=template_id,
                credential=credential,
            ),
            request_id=request_id,
        )
        return outcome.data

    except ExtractionError:
        raise
    except Exception as e:
        logger.exception("Unexpected error analyzing blueprint [%s]", request_id)
        raise InternalError(INTERNAL_ERROR_MESSAGE) from e
    finally:
        await file.close()


@router.post(
    "/analyze",
    summary="Analyze a blueprint, streaming progress via Server-Sent Events",
)
async def analyze(
    credential: Annotated[str | None, Depends(get_credential)],
    ai_service: Annotated[AIService, Depends(get_ai_service)],
    pdf_service: Annotated[PDFService, Depends(get_pdf_service)],
    file: Annotated[UploadFile | None, File(description="PDF blueprint to analyze")] = None,
    template: TemplateId = TemplateId.ANALYZE,
) -> StreamingResponse:
    """
    Analyze a blueprint and report progress as it happens.

    Event JSON schema (sent in ``data:`` lines):
      type: process | result | error
      message: stage description (process events)
      data: projected result (result event)
      error: human-readable message (error event)
    """
    request_id = new_request_id()
    file_bytes: bytes | None = None
    file_name: str | None = None

    # Without a credential nothing is read; the stream reports the error.
    if credential and file is not None:
        try:
            file_bytes = await file.read()
            file_name = file.filename
        finally:
            await file.close()

    return StreamingResponse(
        ai_service.stream(
            pdf_service,
            credential=credential,
            template_id=template,
            file_name=file_name,
            file_bytes=file_bytes,
            request_id=request_id,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post(
    "/analyze/json",
    responses=ERROR_RESPONSES,
    summary="Run the full analysis and return it as one JSON body",
)
async def analyze_json(
    credential: Annotated[str | None, Depends(get_credential)],
    ai_service: Annotated[AIService, Depends(get_ai_service)],
    pdf_service: Annotated[PDFService, Depends(get_pdf_service)],
    file: Annotated[UploadFile | None, File(description="PDF blueprint to analyze")] = None,
) -> dict[str, Any]:
    """Upload a blueprint PDF and return every section from a single LLM call."""
    return await _extract(TemplateId.ANALYZE, credential, ai_service, pdf_service, file)


@router.post(
    "/{template_id}",
    responses=ERROR_RESPONSES,
    summary="Extract one knowledge section from a blueprint",
)
async def extract_section(
    template_id: TemplateId,
    credential: Annotated[str | None, Depends(get_credential)],
    ai_service: Annotated[AIService, Depends(get_ai_service)],
    pdf_service: Annotated[PDFService, Depends(get_pdf_service)],
    file: Annotated[UploadFile | None, File(description="PDF blueprint to analyze")] = None,
) -> dict[str, Any]:
    """
    Upload a blueprint PDF and return the structured extraction.

    The response body holds exactly the declared keys of the requested
    template. ``analyze`` itself is served by the streaming route above.
    """
    return await _extract(template_id, credential, ai_service, pdf_service, file)
