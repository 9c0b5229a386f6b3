"""Pytest configuration and fixtures."""

import json
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from app.backend.config import Settings, get_settings
from app.backend.exceptions import ExtractionError
from app.backend.main import app
from app.backend.models import TemplateId
from app.backend.services.ai import AIService, ExtractionPipeline, get_ai_service
from app.backend.services.ai.prompts import OutputField, get_template
from app.backend.services.pdf_service import PDFService, get_pdf_service

CREDENTIAL = "sk-test-credential"


class FakeTransport:
    """Records every call and answers with a canned reply or error."""

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        credential: str,
        timeout: float,
    ) -> str | None:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "credential": credential,
                "timeout": timeout,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


class FakePDFService(PDFService):
    """PDF service that returns fixed text instead of parsing the upload."""

    def __init__(self, text: str = "", error: ExtractionError | None = None):
        super().__init__()
        self.text = text
        self.error = error
        self.calls = 0

    def extract_text(self, file_bytes) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


def _sample_value(field: OutputField) -> Any:
    if field.fields:
        return {sub.name: _sample_value(sub) for sub in field.fields}
    return f"  {field.name} line 1\n\n\n\n   {field.name} line 2  "


def reply_for(template_id: TemplateId, **overrides: Any) -> str:
    """Build a well-formed LLM reply holding every declared key."""
    template = get_template(template_id)
    payload: dict[str, Any] = {f.name: _sample_value(f) for f in template.output_fields}
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


def parse_sse(body: str) -> list[dict[str, Any]]:
    """Split an SSE body into decoded event payloads."""
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


@pytest.fixture
def settings() -> Settings:
    """Settings with the default pipeline bounds."""
    return Settings(
        max_source_chars=15_000,
        full_analysis_timeout=120.0,
        section_timeout=60.0,
        credential_header="X-Qwen-Secret",
    )


@pytest.fixture
def document_text() -> str:
    """Plain text standing in for a parsed blueprint."""
    return (
        "Project Blueprint: Smart Grid Asset Management\n"
        "Customer: Eastern Power Co., utility, 12,000 employees.\n"
        "Pain points: fragmented asset records, manual dispatching.\n"
    )


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Transport answering with a valid full-analysis reply."""
    return FakeTransport(reply=reply_for(TemplateId.ANALYZE))


@pytest.fixture
def fake_pdf_service(document_text: str) -> FakePDFService:
    """PDF service returning the sample document text."""
    return FakePDFService(text=document_text)


@pytest.fixture
def pipeline(fake_transport: FakeTransport, settings: Settings) -> ExtractionPipeline:
    """Pipeline wired to the fake transport."""
    return ExtractionPipeline(fake_transport, settings=settings, request_id="test")


@pytest.fixture
def client(
    fake_transport: FakeTransport,
    fake_pdf_service: FakePDFService,
    settings: Settings,
) -> Generator[TestClient, None, None]:
    """Create a test client with the LLM transport and PDF parsing faked out."""
    ai_service = AIService(transport=fake_transport, settings=settings)
    app.dependency_overrides[get_ai_service] = lambda: ai_service
    app.dependency_overrides[get_pdf_service] = lambda: fake_pdf_service
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Headers carrying the caller's LLM credential."""
    return {"X-Qwen-Secret": CREDENTIAL}


@pytest.fixture
def pdf_upload() -> dict[str, tuple[str, bytes, str]]:
    """Multipart payload for a small PDF upload."""
    return {"file": ("blueprint.pdf", b"%PDF-1.4 fake blueprint", "application/pdf")}


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"
