"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for business, provider and consistency errors
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..llm.types import (
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderDisabledError,
    ProviderResponseError,
)
from ..utils.exceptions import (
    BusinessException,
    ValidationException,
    DealNotFoundException,
    TermsNotFoundException,
    OfferNotFoundException,
    ParticipantNotFoundException,
    ParticipantForbiddenException,
    DealClosedException,
    OfferNotLiveException,
    OfferAlreadyAnsweredException,
    InvalidTransitionException,
    PersistenceException,
    InternalConsistencyError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Checked in order; first match wins
BUSINESS_STATUS_CODES = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    ((DealNotFoundException, TermsNotFoundException, OfferNotFoundException, ParticipantNotFoundException),
     status.HTTP_404_NOT_FOUND),
    (ParticipantForbiddenException, status.HTTP_403_FORBIDDEN),
    ((DealClosedException, OfferNotLiveException, OfferAlreadyAnsweredException, InvalidTransitionException),
     status.HTTP_409_CONFLICT),
    (PersistenceException, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "error": code,
        "message": message,
        "details": details,
        "timestamp": datetime.now().isoformat()
    }


# code, status, hint per provider failure
PROVIDER_ERRORS = {
    ProviderDisabledError: ("LLM_PROVIDER_DISABLED", status.HTTP_400_BAD_REQUEST, "Check LLM_PROVIDER configuration"),
    ProviderTimeoutError: ("LLM_TIMEOUT", status.HTTP_503_SERVICE_UNAVAILABLE, "LLM provider request timed out"),
    ProviderUnavailableError: ("LLM_UNAVAILABLE", status.HTTP_503_SERVICE_UNAVAILABLE, "LLM provider is not reachable"),
    ProviderResponseError: ("LLM_BAD_GATEWAY", status.HTTP_502_BAD_GATEWAY, "LLM provider returned an invalid response"),
}


async def provider_error_handler(request: Request, exc: ProviderError):
    """
    Handle provider failures that reach the HTTP layer.

    Drafting never lets these escape; only status paths surface them.
    """
    code, status_code, hint = PROVIDER_ERRORS.get(
        type(exc), ("LLM_ERROR", status.HTTP_502_BAD_GATEWAY, "LLM provider failed")
    )
    if status_code >= 500:
        logger.error(f"Provider failure on {request.url.path}: {code} - {exc}")
    else:
        logger.warning(f"Provider failure on {request.url.path}: {code} - {exc}")
    return JSONResponse(status_code=status_code, content=_error_body(code, str(exc), hint))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Render request validation failures as 400.

    Field errors use the same shape as ValidationException details.
    """
    field_errors = []
    for error in exc.errors():
        # Drop the "body"/"query"/"header" prefix from the location
        loc = [str(part) for part in error.get("loc", ())[1:]]
        field_errors.append({
            "field": ".".join(loc) or None,
            "msg": error.get("msg"),
            "type": error.get("type"),
        })
    logger.warning(f"Request validation failed on {request.url.path}: {field_errors}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", {"field_errors": field_errors})
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle BusinessException and its subclasses.

    WHAT: Domain error raised by the orchestrator or its components
    WHY: Each error family has a fixed HTTP status
    HOW: Look up the first matching family in BUSINESS_STATUS_CODES
    """
    status_code = status.HTTP_400_BAD_REQUEST
    for exc_types, code in BUSINESS_STATUS_CODES:
        if isinstance(exc, exc_types):
            status_code = code
            break

    if isinstance(exc, PersistenceException):
        logger.error(f"Business exception: {exc.code} - {exc.message}")
    else:
        logger.warning(f"Business exception: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details)
    )


async def internal_consistency_handler(request: Request, exc: InternalConsistencyError):
    """Fatal invariant violation; the transaction has already been rolled back."""
    logger.critical(f"Internal consistency violation on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_CONSISTENCY_VIOLATION", str(exc))
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(InternalConsistencyError, internal_consistency_handler)

    logger.info("Exception handlers registered")
