"""
Unified exception hierarchy for IntelliLearn.

All domain exceptions inherit from IntelliLearnError and carry:
- error_code: machine-readable string (e.g. "CHAPTER_NOT_FOUND")
- status_code: HTTP status code
- message: human-readable description
- context: optional structured metadata dict
"""

from typing import Optional, Dict, Any


class IntelliLearnError(Exception):
    """Base exception for all IntelliLearn domain errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)


class ValidationError(IntelliLearnError):
    """400-level validation / bad-request errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_REQUEST",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=400, context=context)


class NotFoundError(IntelliLearnError):
    """404 resource-not-found errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "NOT_FOUND",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=404, context=context)


class UnsupportedMediaTypeError(IntelliLearnError):
    """Uploaded file has a MIME type the pipeline cannot consume."""

    def __init__(self, mime_type: Optional[str], context: Optional[Dict[str, Any]] = None):
        self.mime_type = mime_type
        ctx = {"mime_type": mime_type}
        if context:
            ctx.update(context)
        super().__init__(
            f"Unsupported file type: {mime_type or 'unknown'}. "
            "Please upload a PDF, DOC(X), PPT(X), .txt or image file.",
            error_code="UNSUPPORTED_MEDIA_TYPE",
            status_code=415,
            context=ctx,
        )


class StaleSourceError(IntelliLearnError):
    """Artifact was generated from a source that is no longer the chapter's current one."""

    def __init__(self, chapter_id: str, context: Optional[Dict[str, Any]] = None):
        ctx = {"chapter_id": chapter_id}
        if context:
            ctx.update(context)
        super().__init__(
            f"Source content of chapter {chapter_id} changed during generation",
            error_code="STALE_SOURCE",
            status_code=409,
            context=ctx,
        )


class ConfigurationError(IntelliLearnError):
    """Missing or invalid runtime configuration."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFIGURATION_ERROR", status_code=500, context=context)


class GenerationFailedError(IntelliLearnError):
    """Backend call-level generation failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERATION_FAILED",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=502, context=context)


class ContentBlockedError(GenerationFailedError):
    """Backend returned no content and explained why (safety refusal)."""

    def __init__(self, reason: str, context: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(
            f"Generation was blocked by the backend: {reason}",
            error_code="CONTENT_BLOCKED",
            context=context,
        )


class ScriptGenerationFailedError(GenerationFailedError):
    """Manga script phase failed; no panels were produced."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Manga script generation failed: {message}",
            error_code="SCRIPT_GENERATION_FAILED",
            context=context,
        )


class ParseError(IntelliLearnError):
    """Structured model output could not be turned into data."""

    def __init__(
        self,
        message: str,
        error_code: str = "PARSE_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=502, context=context)


class EmptyResponseError(ParseError):
    """Model returned an empty response."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__("Received an empty response from the AI", error_code="EMPTY_RESPONSE", context=context)


class NoStructuralTokenError(ParseError):
    """Model response contains no JSON object or array."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "No JSON object or array found in the AI response",
            error_code="NO_STRUCTURAL_TOKEN",
            context=context,
        )


class MalformedJsonError(ParseError):
    """Model response looked like JSON but did not parse."""

    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Received an invalid JSON response from the AI: {detail}",
            error_code="MALFORMED_JSON",
            context=context,
        )


class StorageError(IntelliLearnError):
    """500-level storage failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=500, context=context)
