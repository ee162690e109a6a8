"""Error taxonomy and FastAPI exception handlers.

Validation, authentication and conflict errors are meant to be resolved by
the page handlers that raise them (shown to the user as a specific message).
Storage and upstream failures are logged and surfaced as a generic message.
The handlers registered here cover everything that escapes a route.
"""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .templating import templates

GENERIC_ERROR_MESSAGE = "Something went wrong on our end. Please try again."


class ContactManagerError(Exception):
    """Base exception for contact manager errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class NotFound(ContactManagerError):
    """A user or contact does not exist."""

    def __init__(self, resource: str, identifier, code: str = "NOT_FOUND"):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=f"{resource} not found",
            code=code,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class UserNotFound(NotFound):
    """No account exists for the given username."""

    def __init__(self, username: str):
        super().__init__("User", username, code="USER_NOT_FOUND")
        self.message = "No account found with that username."


class ValidationFailed(ContactManagerError):
    """A required field is missing or a rule is not met."""

    def __init__(self, message: str, reason: str = "invalid_input"):
        self.reason = reason
        super().__init__(
            message=message,
            code="VALIDATION_FAILED",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class AuthenticationFailed(ContactManagerError):
    """Supplied credentials do not match."""

    def __init__(self, message: str = "Invalid username or password."):
        super().__init__(
            message=message,
            code="AUTHENTICATION_FAILED",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class Conflict(ContactManagerError):
    """A record with the same unique key already exists."""

    def __init__(self, message: str):
        super().__init__(
            message=message, code="CONFLICT", status_code=status.HTTP_409_CONFLICT
        )


class UpstreamUnavailable(ContactManagerError):
    """The geocoding provider failed or could not be reached."""

    def __init__(self, service: str, detail: str | None = None):
        self.detail = detail
        super().__init__(
            message=f"{service} service unavailable",
            code="UPSTREAM_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class StorageFailure(ContactManagerError):
    """The database rejected or failed a read or write."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            message=GENERIC_ERROR_MESSAGE,
            code="STORAGE_FAILURE",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class LoginRequired(ContactManagerError):
    """An anonymous caller reached a route that needs an identity."""

    def __init__(self, return_to: str):
        self.return_to = return_to
        super().__init__(
            message="Please log in to access that page.",
            code="LOGIN_REQUIRED",
            status_code=status.HTTP_303_SEE_OTHER,
        )


class AlreadyAuthenticated(ContactManagerError):
    """An authenticated caller reached the login or signup page."""

    def __init__(self):
        super().__init__(
            message="Already logged in.",
            code="ALREADY_AUTHENTICATED",
            status_code=status.HTTP_303_SEE_OTHER,
        )


def wants_json(request: Request) -> bool:
    """Return True when the request targets a JSON endpoint."""
    if "/api/" in request.url.path:
        return True
    if request.method == "DELETE":
        return True
    return "application/json" in request.headers.get("accept", "")


def create_error_response(message: str, code: str, status_code: int) -> JSONResponse:
    """Create the JSON error body shared by all API endpoints."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": code},
    )


def render_error_page(request: Request, title: str, message: str, status_code: int):
    """Render the HTML error page."""
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": title, "message": message, "status_code": status_code},
        status_code=status_code,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI app."""

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        request.state.session.set("return_to", exc.return_to)
        return RedirectResponse(
            "/auth/login?error=auth_required", status_code=status.HTTP_303_SEE_OTHER
        )

    @app.exception_handler(AlreadyAuthenticated)
    async def already_authenticated_handler(
        request: Request, exc: AlreadyAuthenticated
    ):
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)

    @app.exception_handler(ContactManagerError)
    async def contact_manager_error_handler(
        request: Request, exc: ContactManagerError
    ):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}")
        else:
            logger.warning(f"{exc.code} - {exc.message}")
        if wants_json(request):
            return create_error_response(exc.message, exc.code, exc.status_code)
        return render_error_page(request, "Error", exc.message, exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if wants_json(request):
            return create_error_response(str(exc.detail), "HTTP_ERROR", exc.status_code)
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return render_error_page(
                request,
                "Page Not Found",
                "The page you are looking for does not exist.",
                exc.status_code,
            )
        return render_error_page(request, "Error", str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}\n"
            f"{traceback.format_exc()}"
        )
        if wants_json(request):
            return create_error_response(
                "Internal Server Error",
                "INTERNAL_ERROR",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return render_error_page(
            request,
            "Server Error",
            GENERIC_ERROR_MESSAGE,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
