"""FastAPI exception handlers for converting PaymentError to HTTP responses.

Every PaymentError subclass carries its own HTTP status; the body shape
is ``{success: false, error_code, message, details}``. Unexpected
exceptions become a 500 whose message is hidden in production.

Usage:
    from storefront_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.models.errors import PaymentError
from storefront.utils.error_handler import handle_error


def _to_response(request: Request, exc: Exception) -> JSONResponse:
    body = handle_error(
        exc,
        {"operation": f"{request.method} {request.url.path}"},
    )
    status_code = body.pop("status_code")
    return JSONResponse(status_code=status_code, content=body)


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    """Handle PaymentError exceptions and convert to JSON response."""
    return _to_response(request, exc)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with a generic error response."""
    return _to_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(PaymentError, payment_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
