"""Tests for FastAPI endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import CREDENTIAL, FakeTransport, parse_sse, reply_for

from app.backend.exceptions import UnreadableDocumentError, UpstreamUnavailableError
from app.backend.models import TemplateId
from app.backend.services.ai.extraction import DEGRADED_MARKER
from app.backend.services.ai.prompts import get_template


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client: TestClient):
        """Test root endpoint returns health status."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_health_endpoint(self, client: TestClient):
        """Test /health endpoint returns health status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"


class TestExtractEndpoint:
    """Tests for POST /api/blueprint/{template_id}."""

    @pytest.mark.parametrize("template_id", list(TemplateId))
    def test_returns_exactly_declared_keys(
        self,
        client: TestClient,
        fake_transport: FakeTransport,
        auth_headers,
        pdf_upload,
        template_id: TemplateId,
    ):
        """Test that every template answers with its declared keys in order."""
        fake_transport.reply = reply_for(template_id)
        path = "analyze/json" if template_id == TemplateId.ANALYZE else template_id.value

        response = client.post(f"/api/blueprint/{path}", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 200
        assert list(response.json()) == get_template(template_id).keys

    @pytest.mark.parametrize(
        "path",
        [
            "project-overview",
            "business-architecture",
            "role-value-transformation",
            "pain-points",
            "it-architecture",
            "solution-strategy",
            "change-management",
            "asset-scheduling",
            "standards",
            "industry-assets",
        ],
    )
    def test_section_paths(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload, path
    ):
        """Test the public path of every section endpoint."""
        fake_transport.reply = reply_for(TemplateId(path))

        response = client.post(f"/api/blueprint/{path}", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 200

    @pytest.mark.parametrize("path", ["overview", "role-value"])
    def test_old_section_paths_rejected(self, client: TestClient, auth_headers, pdf_upload, path):
        """Test that abbreviated section names are not routed."""
        response = client.post(f"/api/blueprint/{path}", headers=auth_headers, files=pdf_upload)
        assert response.status_code == 422

    def test_analyze_json_nested_sections(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that the full analysis returns the nested overview and pain points."""
        response = client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        data = response.json()
        assert list(data["projectOverview"]) == ["customerName", "coreProblems", "solutionSummary"]
        assert list(data["painPoints"]) == ["executive", "management", "senior"]
        assert list(data["solutionStrategy"]) == ["masterData", "painSolutions"]
        assert "roleValueTransformation" in data

    def test_result_is_normalized(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that whitespace in the reply is cleaned up."""
        fake_transport.reply = reply_for(TemplateId.PAIN_POINTS, management="  a \n\n\n\n b  ")

        response = client.post("/api/blueprint/pain-points", headers=auth_headers, files=pdf_upload)

        assert response.json()["management"] == "a\n\nb"

    def test_missing_credential(
        self, client: TestClient, fake_transport, fake_pdf_service, pdf_upload
    ):
        """Test that requests without a credential are rejected before any work."""
        response = client.post("/api/blueprint/analyze/json", files=pdf_upload)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing LLM credential"}
        assert fake_transport.calls == []
        assert fake_pdf_service.calls == 0

    def test_empty_credential_header(self, client: TestClient, fake_transport, pdf_upload):
        """Test that a blank header counts as missing."""
        response = client.post(
            "/api/blueprint/analyze/json",
            headers={"X-Qwen-Secret": ""},
            files=pdf_upload,
        )
        assert response.status_code == 400
        assert fake_transport.calls == []

    def test_missing_file(self, client: TestClient, fake_transport, auth_headers):
        """Test that a request without an upload is rejected."""
        response = client.post("/api/blueprint/analyze/json", headers=auth_headers)

        assert response.status_code == 400
        assert "error" in response.json()
        assert fake_transport.calls == []

    def test_empty_file(self, client: TestClient, auth_headers):
        """Test that a zero-byte upload is rejected."""
        response = client.post(
            "/api/blueprint/analyze/json",
            headers=auth_headers,
            files={"file": ("empty.pdf", b"", "application/pdf")},
        )
        assert response.status_code == 400
        assert "error" in response.json()

    def test_unknown_template(self, client: TestClient, auth_headers, pdf_upload):
        """Test that unknown extraction kinds are rejected."""
        response = client.post("/api/blueprint/unknown-kind", headers=auth_headers, files=pdf_upload)
        assert response.status_code == 422

    def test_blank_document_text(
        self, client: TestClient, fake_pdf_service, fake_transport, auth_headers, pdf_upload
    ):
        """Test that a document without text is rejected before the LLM call."""
        fake_pdf_service.text = "  \n  "

        response = client.post("/api/blueprint/project-overview", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 400
        assert fake_transport.calls == []

    def test_unreadable_document(
        self, client: TestClient, fake_pdf_service, auth_headers, pdf_upload
    ):
        """Test that unparseable PDFs map to 422."""
        fake_pdf_service.error = UnreadableDocumentError("Invalid or corrupted PDF file: broken xref")

        response = client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 422
        assert response.json() == {"error": "Invalid or corrupted PDF file: broken xref"}

    def test_upstream_unavailable(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that transport failures map to 503."""
        fake_transport.error = UpstreamUnavailableError("LLM service unavailable: timed out")

        response = client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 503
        assert response.json()["error"] == "LLM service unavailable: timed out"

    def test_empty_reply(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that an empty LLM reply maps to 502."""
        fake_transport.reply = None

        response = client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 502
        assert "error" in response.json()

    def test_section_malformed_reply(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that section templates return 502 with a raw excerpt."""
        fake_transport.reply = "I could not find any stakeholders."

        response = client.post(
            "/api/blueprint/change-management", headers=auth_headers, files=pdf_upload
        )

        assert response.status_code == 502
        body = response.json()
        assert "JSON" in body["error"]
        assert body["raw"] == "I could not find any stakeholders."

    def test_analyze_malformed_reply_degrades(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that the full analysis answers 200 with placeholder text."""
        fake_transport.reply = "Here is my analysis in prose only."

        response = client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 200
        data = response.json()
        assert list(data) == get_template(TemplateId.ANALYZE).keys
        assert DEGRADED_MARKER in data["businessArchitecture"]
        assert list(data["projectOverview"]) == ["customerName", "coreProblems", "solutionSummary"]
        assert all(DEGRADED_MARKER in value for value in data["painPoints"].values())

    def test_unexpected_error(
        self, client: TestClient, fake_pdf_service, auth_headers, pdf_upload
    ):
        """Test that unexpected failures map to 500 without leaking details."""
        fake_pdf_service.error = RuntimeError("disk on fire")

        response = client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 500
        assert "disk on fire" not in response.json()["error"]

    def test_credential_forwarded(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that the header value reaches the LLM call verbatim."""
        client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert len(fake_transport.calls) == 1
        assert fake_transport.calls[0]["credential"] == CREDENTIAL

    def test_document_text_reaches_prompt(
        self, client: TestClient, fake_transport: FakeTransport, document_text, auth_headers, pdf_upload
    ):
        """Test that the parsed document is embedded in the user prompt."""
        client.post("/api/blueprint/analyze/json", headers=auth_headers, files=pdf_upload)

        assert document_text.strip() in fake_transport.calls[0]["user_prompt"]


class TestStreamEndpoint:
    """Tests for POST /api/blueprint/analyze."""

    def test_streams_progress_then_result(self, client: TestClient, auth_headers, pdf_upload):
        """Test the content type and event order."""
        response = client.post("/api/blueprint/analyze", headers=auth_headers, files=pdf_upload)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = parse_sse(response.text)
        assert [e["type"] for e in events[:-1]] == ["process"] * (len(events) - 1)
        assert events[-1]["type"] == "result"
        assert list(events[-1]["data"]) == get_template(TemplateId.ANALYZE).keys

    def test_template_query_parameter(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test streaming a section template."""
        fake_transport.reply = reply_for(TemplateId.ROLE_VALUE_TRANSFORMATION)

        response = client.post(
            "/api/blueprint/analyze?template=role-value-transformation",
            headers=auth_headers,
            files=pdf_upload,
        )

        events = parse_sse(response.text)
        assert list(events[-1]["data"]) == get_template(TemplateId.ROLE_VALUE_TRANSFORMATION).keys

    def test_missing_credential_yields_error_event(
        self, client: TestClient, fake_transport, fake_pdf_service, pdf_upload
    ):
        """Test that the stream reports a missing credential as its only event."""
        response = client.post("/api/blueprint/analyze", files=pdf_upload)

        assert response.status_code == 200
        assert parse_sse(response.text) == [{"type": "error", "error": "Missing LLM credential"}]
        assert fake_transport.calls == []
        assert fake_pdf_service.calls == 0

    def test_missing_file_yields_error_event(self, client: TestClient, auth_headers):
        """Test that the stream reports a missing upload."""
        response = client.post("/api/blueprint/analyze", headers=auth_headers)

        events = parse_sse(response.text)
        assert events == [{"type": "error", "error": "No file received"}]

    def test_upstream_failure_yields_error_event(
        self, client: TestClient, fake_transport: FakeTransport, auth_headers, pdf_upload
    ):
        """Test that transport errors terminate the stream with an error event."""
        fake_transport.error = UpstreamUnavailableError("LLM service unavailable: 401")

        response = client.post("/api/blueprint/analyze", headers=auth_headers, files=pdf_upload)

        events = parse_sse(response.text)
        assert events[-1] == {"type": "error", "error": "LLM service unavailable: 401"}


class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_headers_present(self, client: TestClient):
        """Test that CORS headers are returned for allowed origins."""
        response = client.options(
            "/health",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        # OPTIONS requests should be handled
        assert response.status_code in (200, 405)

    def test_cors_allows_localhost_3000(self, client: TestClient):
        """Test that localhost:3000 is allowed."""
        response = client.get(
            "/health",
            headers={"Origin": "http://localhost:3000"},
        )
        assert response.status_code == 200
        assert (
            response.headers.get("access-control-allow-origin")
            == "http://localhost:3000"
        )

    def test_cors_exposes_credential_header(self, client: TestClient):
        """Test that browsers may send the credential header cross-origin."""
        response = client.options(
            "/api/blueprint/analyze",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "X-Qwen-Secret",
            },
        )
        assert response.status_code == 200
        assert "x-qwen-secret" in response.headers.get("access-control-allow-headers", "").lower()
