"""Global error handling middleware and the application error taxonomy."""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            details=details,
        )


class ValidationError(APIError):
    """Request validation error."""

    def __init__(self, message: str = "Validation error", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type="validation_error",
            details=details,
        )


class AuthenticationError(APIError):
    """Authentication failure error."""

    def __init__(self, message: str = "Authentication required", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="authentication_error",
            details=details,
        )


class AuthorizationError(APIError):
    """Authorization failure error."""

    def __init__(self, message: str = "Access denied", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_type="authorization_error",
            details=details,
        )


class ConflictError(APIError):
    """The request conflicts with the current page state."""

    def __init__(
        self,
        message: str = "Conflict with current state",
        error_type: str = "conflict",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_type=error_type,
            details=details,
        )


class PromptBusyError(ConflictError):
    """A confirmation prompt is already open."""

    def __init__(self, message: str = "Another confirmation prompt is already open") -> None:
        super().__init__(message=message, error_type="prompt_busy")


class ActionInProgressError(ConflictError):
    """The same account action is already in flight."""

    def __init__(self, action: str) -> None:
        super().__init__(
            message=f"Action already in progress: {action}",
            error_type="action_in_progress",
        )
        self.action = action


class ConfigurationError(APIError):
    """Administrator configuration cannot be used as-is."""

    def __init__(self, message: str = "Invalid configuration", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="configuration_error",
            details=details,
        )


class RemoteServiceError(APIError):
    """A remote account call failed.

    ``code`` and ``payload`` carry the server's error verbatim so that it can
    be reported to the user unchanged.
    """

    def __init__(
        self,
        message: str = "Remote call failed",
        code: str = "remote_error",
        payload: dict[str, Any] | None = None,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            error_type=code,
            details=[payload] if payload else None,
        )
        self.code = code
        self.payload = payload or {}


class ReauthenticationError(RemoteServiceError):
    """The typed current password was rejected."""

    def __init__(self, message: str = "Invalid password", payload: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            code="error-invalid-password",
            payload=payload,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class OwnerConflictError(RemoteServiceError):
    """Deleting the account would orphan resources the user solely owns."""

    def __init__(
        self,
        should_change_owner: bool,
        should_be_removed: bool,
        message: str = "User is the last owner of one or more rooms",
    ) -> None:
        super().__init__(
            message=message,
            code="user-last-owner",
            payload={
                "shouldChangeOwner": should_change_owner,
                "shouldBeRemoved": should_be_removed,
            },
            status_code=status.HTTP_409_CONFLICT,
        )
        self.should_change_owner = should_change_owner
        self.should_be_removed = should_be_removed


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Middleware to catch and format all exceptions.

    Ensures consistent error response format across the application.
    Logs full stack traces for debugging while returning safe messages to clients.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        response = await call_next(request)
        return response

    except APIError as e:
        logger.warning(
            "API error: %s - %s",
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
        )

    except HTTPException as e:
        logger.warning(
            "HTTP exception: %s - %s",
            e.status_code,
            e.detail,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception as e:
        # Unexpected exceptions - log full stack trace
        logger.error(
            "Unhandled exception: %s\n%s",
            str(e),
            traceback.format_exc(),
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
