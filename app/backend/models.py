"""
Pydantic models for the blueprint extraction pipeline.

Defines the extraction kinds, the per-request input, the pipeline outcome,
the progress stream events and the API response bodies.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TemplateId(str, Enum):
    """Supported extraction kinds. Values double as the URL path segments."""

    ANALYZE = "analyze"  # Full analysis: every section in one call
    PROJECT_OVERVIEW = "project-overview"
    BUSINESS_ARCHITECTURE = "business-architecture"
    ROLE_VALUE_TRANSFORMATION = "role-value-transformation"
    PAIN_POINTS = "pain-points"
    IT_ARCHITECTURE = "it-architecture"
    SOLUTION_STRATEGY = "solution-strategy"
    CHANGE_MANAGEMENT = "change-management"
    ASSET_SCHEDULING = "asset-scheduling"
    STANDARDS = "standards"
    INDUSTRY_ASSETS = "industry-assets"


class FieldShape(str, Enum):
    """Declared shape of a result field."""

    TEXT = "text"
    OBJECT = "object"


class ExtractionRequest(BaseModel):
    """
    Input of one pipeline run.

    Attributes:
        source_text: Text extracted from the uploaded document.
        template_id: Which extraction to perform.
        credential: Caller-supplied LLM credential, forwarded verbatim.
    """

    model_config = ConfigDict(frozen=True)

    source_text: str = Field(..., description="Extracted document text")
    template_id: TemplateId = Field(
        default=TemplateId.ANALYZE,
        description="Extraction template to apply",
    )
    credential: str = Field(..., description="Bearer credential for the LLM service")


class ExtractionOutcome(BaseModel):
    """Result of a pipeline run."""

    data: dict[str, Any] = Field(
        ...,
        description="Normalized payload projected onto the template's declared keys",
    )
    degraded: bool = Field(
        default=False,
        description="Whether the reply was unparseable and placeholder text was substituted",
    )


# =============================================================================
# Progress Stream Events
# =============================================================================


class ProcessEvent(BaseModel):
    """A pipeline stage transition."""

    type: Literal["process"] = "process"
    message: str


class ResultEvent(BaseModel):
    """Terminal event carrying the projected payload."""

    type: Literal["result"] = "result"
    data: dict[str, Any]


class ErrorEvent(BaseModel):
    """Terminal event carrying a human-readable error message."""

    type: Literal["error"] = "error"
    error: str

    @field_validator("error")
    @classmethod
    def non_empty_message(cls, v: str) -> str:
        """Never send a blank error to the client."""
        return v.strip() or "Unknown error"


StreamEvent = ProcessEvent | ResultEvent | ErrorEvent


# =============================================================================
# API Response Models
# =============================================================================


class ErrorResponse(BaseModel):
    """Error body returned by the non-streaming endpoints."""

    error: str = Field(..., description="Human-readable error message")
    raw: str | None = Field(
        default=None,
        description="Bounded excerpt of the LLM reply, for unparseable replies only",
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str = Field(default="")
    version: str = Field(default="1.0.0")
