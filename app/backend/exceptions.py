"""
Exceptions for the blueprint extraction pipeline.

Every error carries a human-readable message and the HTTP status the API
layer should answer with. The stream emitter uses the same message for its
terminal error event.
"""

RAW_EXCERPT_LIMIT = 500
INTERNAL_ERROR_MESSAGE = "Internal server error, please check the server logs."


class ExtractionError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredentialError(ExtractionError):
    """Raised when the caller did not supply an LLM credential."""

    status_code = 400


class EmptyDocumentError(ExtractionError):
    """Raised when no file was uploaded or it yields no usable text."""

    status_code = 400


class UnreadableDocumentError(ExtractionError):
    """Raised when the uploaded document cannot be parsed."""

    status_code = 422


class AIServiceError(ExtractionError):
    """Raised when the LLM step of the pipeline fails."""

    status_code = 502


class UpstreamUnavailableError(AIServiceError):
    """Raised on network errors, timeouts or non-2xx replies from the LLM service."""

    status_code = 503


class EmptyUpstreamReplyError(AIServiceError):
    """Raised when the LLM call succeeded but returned no content."""

    pass


class MalformedJSONError(AIServiceError):
    """Raised when the LLM reply cannot be recovered as a JSON object."""

    def __init__(self, detail: str, raw_excerpt: str = ""):
        super().__init__(f"LLM reply could not be parsed as JSON: {detail}")
        self.detail = detail
        self.raw_excerpt = raw_excerpt[:RAW_EXCERPT_LIMIT]


class InternalError(ExtractionError):
    """Raised for unexpected failures inside the pipeline."""

    pass
