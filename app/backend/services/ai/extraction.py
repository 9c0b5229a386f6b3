"""
Extraction orchestrator: one document text in, one shaped result out.

The pipeline is split into steps so the progress stream can report each
transition. ``run`` chains them for the plain JSON endpoints.
"""

import logging
from typing import Any

from ...config import Settings, get_settings
from ...exceptions import (
    INTERNAL_ERROR_MESSAGE,
    RAW_EXCERPT_LIMIT,
    EmptyDocumentError,
    ExtractionError,
    InternalError,
    MalformedJSONError,
    MissingCredentialError,
)
from ...models import ExtractionOutcome, ExtractionRequest, FieldShape
from .normalize import normalize
from .prompts import OutputField, PromptTemplate, RenderedPrompt, build_prompt, get_template
from .response import extract_json
from .transport import LLMTransport

logger = logging.getLogger(__name__)

DEGRADED_MARKER = "Failed to parse the analysis result as structured JSON. Raw reply excerpt:"


def _degraded_value(field: OutputField, marker: str) -> Any:
    if field.fields:
        return {sub.name: _degraded_value(sub, marker) for sub in field.fields}
    if field.shape == FieldShape.OBJECT:
        return {"error": marker}
    return marker


def build_degraded_payload(template: PromptTemplate, raw_content: str) -> dict[str, Any]:
    """
    Placeholder payload used when a full-analysis reply is not valid JSON.

    Every declared key, down to the sub-keys of object fields, carries the
    failure marker and the first 500 characters of the raw reply so the
    caller can see what went wrong.
    """
    marker = f"{DEGRADED_MARKER}\n\n{raw_content[:RAW_EXCERPT_LIMIT]}"
    return {field.name: _degraded_value(field, marker) for field in template.output_fields}


def _project_fields(
    fields: tuple[OutputField, ...], payload: dict[str, Any], path: str
) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for field in fields:
        value = payload.get(field.name)
        if value is None:
            result[field.name] = field.empty_value()
        elif field.fields and isinstance(value, dict):
            result[field.name] = _project_fields(field.fields, value, f"{path}.{field.name}")
        else:
            # Wrong-shaped values pass through unchanged
            result[field.name] = value

    dropped = [k for k in payload if k not in result]
    if dropped:
        logger.info("Dropping undeclared keys from '%s' reply: %s", path, dropped)
    return result


def project(template: PromptTemplate, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Shape a payload onto the template's declared keys.

    Keys are emitted in declared order, and object fields with declared
    sub-keys are shaped the same way. Missing or null keys get the empty
    value for their shape; undeclared keys are dropped.
    """
    return _project_fields(template.output_fields, payload, template.id.value)


class ExtractionPipeline:
    """
    Drives a single extraction request end to end.

    Instances hold no per-request state beyond the request id used in logs,
    so one pipeline per request is cheap and nothing is shared between
    concurrent requests.

    Args:
        transport: LLM transport used for the single completion call.
        settings: Application settings. Defaults to the cached settings.
        request_id: Identifier attached to log lines.
    """

    def __init__(
        self,
        transport: LLMTransport,
        settings: Settings | None = None,
        request_id: str = "-",
    ):
        self.transport = transport
        self.settings = settings or get_settings()
        self.request_id = request_id

    def validate(self, request: ExtractionRequest) -> PromptTemplate:
        """Check the request and resolve its template."""
        if not request.credential:
            raise MissingCredentialError("Missing LLM credential")
        if not request.source_text.strip():
            raise EmptyDocumentError("Document contains no text to analyze")
        return get_template(request.template_id)

    def build(self, request: ExtractionRequest) -> RenderedPrompt:
        """Render the prompt for the request's template."""
        template = get_template(request.template_id)
        return build_prompt(template, request.source_text, self.settings.max_source_chars)

    def timeout_for(self, template: PromptTemplate) -> float:
        if template.full_analysis:
            return self.settings.full_analysis_timeout
        return self.settings.section_timeout

    async def call_llm(self, request: ExtractionRequest, prompt: RenderedPrompt) -> str | None:
        """Make the single LLM call. Transport errors propagate unchanged."""
        template = get_template(request.template_id)
        timeout = self.timeout_for(template)
        logger.info(
            "Calling LLM for '%s' (timeout=%.0fs, prompt=%d chars) [%s]",
            template.id.value,
            timeout,
            len(prompt.user),
            self.request_id,
        )
        raw_content = await self.transport.complete(
            prompt.system, prompt.user, request.credential, timeout
        )
        logger.info("LLM call succeeded [%s]", self.request_id)
        return raw_content

    def parse(self, template: PromptTemplate, raw_content: str | None) -> tuple[dict[str, Any], bool]:
        """
        Recover the JSON payload from the reply.

        Returns:
            Tuple of (payload, degraded). ``degraded`` is True when the
            full-analysis fallback was used.

        Raises:
            EmptyUpstreamReplyError: If the reply has no content.
            MalformedJSONError: For section templates whose reply is not JSON.
        """
        try:
            return extract_json(raw_content), False
        except MalformedJSONError as e:
            if not template.full_analysis:
                raise
            logger.warning(
                "Using degraded payload for '%s': %s [%s]",
                template.id.value,
                e.detail,
                self.request_id,
            )
            return build_degraded_payload(template, raw_content or ""), True

    def shape(self, template: PromptTemplate, payload: dict[str, Any]) -> dict[str, Any]:
        """Normalize string leaves, then project onto the declared keys."""
        return project(template, normalize(payload))

    async def run(self, request: ExtractionRequest) -> ExtractionOutcome:
        """
        Run the whole pipeline for one request.

        Raises:
            ExtractionError: Any domain failure; unexpected exceptions are
                wrapped in InternalError.
        """
        try:
            template = self.validate(request)
            prompt = self.build(request)
            raw_content = await self.call_llm(request, prompt)
            payload, degraded = self.parse(template, raw_content)
            data = self.shape(template, payload)
        except ExtractionError:
            raise
        except Exception as e:
            logger.exception("Extraction pipeline failed [%s]", self.request_id)
            raise InternalError(INTERNAL_ERROR_MESSAGE) from e

        logger.info(
            "Extraction finished for '%s' (degraded=%s) [%s]",
            template.id.value,
            degraded,
            self.request_id,
        )
        return ExtractionOutcome(data=data, degraded=degraded)
