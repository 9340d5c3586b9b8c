"""Map access decisions and retrieval outcomes to HTTP responses.

Denials only ever carry a JSON error body; content bytes are attached
exclusively by ``content_response``.
"""

from fastapi.responses import JSONResponse, Response
from starlette.background import BackgroundTask

from .access import AccessDecision
from .models import Crate
from .utils import content_disposition

NOT_FOUND = "Crate not found"
SERVER_ERROR = "Failed to retrieve crate content"

_DENIALS = {
    AccessDecision.DENY_EXPIRED: (410, {"error": "This crate has expired"}),
    AccessDecision.DENY_PASSWORD_REQUIRED: (
        401,
        {"error": "Password required to view this crate", "passwordRequired": True},
    ),
    AccessDecision.DENY_FORBIDDEN: (403, {"error": "You don't have permission to access this crate"}),
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def not_found() -> JSONResponse:
    return error_response(404, NOT_FOUND)


def server_error(message: str = SERVER_ERROR) -> JSONResponse:
    return error_response(500, message)


def denial_response(decision: AccessDecision) -> JSONResponse:
    """Response for any decision other than ``ALLOW``."""
    if decision.allowed:
        raise ValueError("denial_response() called with an allow decision")
    status_code, body = _DENIALS[decision]
    return JSONResponse(dict(body), status_code=status_code)


def content_response(buffer: bytes, crate: Crate, background: BackgroundTask | None = None) -> Response:
    return Response(
        content=buffer,
        headers={
            "Content-Type": crate.mime_type,
            "Content-Disposition": content_disposition(crate.title),
        },
        background=background,
    )
