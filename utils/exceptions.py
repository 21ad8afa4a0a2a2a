"""
Unified exception hierarchy for the study notes service.

All domain exceptions inherit from NotesError and carry:
- error_code: machine-readable string (e.g. "NOTES_NOT_FOUND")
- status_code: HTTP status code
- message: human-readable description shown to the viewer
- redirect_to: optional route the front-end should navigate to
- context: optional structured metadata dict
"""

from typing import Optional, Dict, Any


class NotesError(Exception):
    """Base exception for all study notes domain errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        redirect_to: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.redirect_to = redirect_to
        self.context = context or {}
        super().__init__(message)


class ValidationError(NotesError):
    """400-level validation / bad-request errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_REQUEST",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=400, context=context)


class AuthenticationError(NotesError):
    """401 - no signed-in viewer."""

    def __init__(
        self,
        message: str,
        redirect_to: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code="NOT_AUTHENTICATED",
            status_code=401,
            redirect_to=redirect_to,
            context=context,
        )


class AccessDeniedError(NotesError):
    """403 - viewer is neither enrolled nor owns the course."""

    def __init__(
        self,
        message: str,
        error_code: str = "NOT_ENROLLED",
        redirect_to: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code=error_code,
            status_code=403,
            redirect_to=redirect_to,
            context=context,
        )


class NotFoundError(NotesError):
    """404 resource-not-found errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "NOT_FOUND",
        redirect_to: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code=error_code,
            status_code=404,
            redirect_to=redirect_to,
            context=context,
        )


class NotesLoadError(NotesError):
    """502 - the backend failed while the notes page was loading."""

    def __init__(
        self,
        message: str,
        redirect_to: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code="NOTES_LOAD_FAILED",
            status_code=502,
            redirect_to=redirect_to,
            context=context,
        )


class CheckoutError(NotesError):
    """502 - checkout session could not be created."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CHECKOUT_FAILED", status_code=502, context=context)


class GenerationError(NotesError):
    """500-level note generation failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERATION_FAILED",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=500, context=context)


class StorageError(NotesError):
    """500-level database / storage failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=500, context=context)


class RequestCancelled(NotesError):
    """The caller went away before the work finished."""

    def __init__(self, message: str = "Request cancelled", context: Optional[Dict[str, Any]] = None):
        # 499 mirrors nginx's "client closed request"
        super().__init__(message, error_code="REQUEST_CANCELLED", status_code=499, context=context)


class ChannelNotOwnedError(NotesError):
    """409 - audio channel is held by a different owner."""

    def __init__(self, owner: str, current_owner: Optional[str]):
        super().__init__(
            "Another clip is using the audio channel",
            error_code="AUDIO_CHANNEL_NOT_OWNED",
            status_code=409,
            context={"owner": owner, "current_owner": current_owner},
        )
