"""
Custom business exceptions for the negotiation API.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across orchestrator and endpoints
HOW: Custom exception classes with error codes and messages
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ValidationException(BusinessException):
    """Raised for validation errors. Never mutates state."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )


class DealNotFoundException(BusinessException):
    """Raised when a deal is not found."""

    def __init__(self, deal_id: str):
        super().__init__(
            message=f"Deal not found: {deal_id}",
            code="DEAL_NOT_FOUND",
            details={"deal_id": deal_id}
        )


class TermsNotFoundException(BusinessException):
    """Raised when a deal has no terms row."""

    def __init__(self, deal_id: str):
        super().__init__(
            message=f"Terms not found for deal: {deal_id}",
            code="TERMS_NOT_FOUND",
            details={"deal_id": deal_id}
        )


class OfferNotFoundException(BusinessException):
    """Raised when an offer does not exist or belongs to another deal."""

    def __init__(self, deal_id: str, offer_id: str):
        super().__init__(
            message=f"Offer {offer_id} not found for deal {deal_id}",
            code="OFFER_NOT_FOUND",
            details={"deal_id": deal_id, "offer_id": offer_id}
        )


class ParticipantNotFoundException(BusinessException):
    """Raised when a participant token is unknown."""

    def __init__(self):
        super().__init__(
            message="Participant token not recognized",
            code="PARTICIPANT_NOT_FOUND"
        )


class ParticipantForbiddenException(BusinessException):
    """Raised when a token is not allowed to act on a deal or role."""

    def __init__(self, deal_id: str, reason: str):
        super().__init__(
            message=f"Participant not allowed on deal {deal_id}: {reason}",
            code="PARTICIPANT_FORBIDDEN",
            details={"deal_id": deal_id}
        )


class DealClosedException(BusinessException):
    """Raised when acting on a deal in a terminal status."""

    def __init__(self, deal_id: str, current_status: str):
        super().__init__(
            message=f"Deal {deal_id} is closed. Current status: {current_status}",
            code="DEAL_CLOSED",
            details={"deal_id": deal_id, "current_status": current_status}
        )


class OfferNotLiveException(BusinessException):
    """Raised when responding to an offer that is no longer the live one."""

    def __init__(self, deal_id: str, offer_id: str):
        super().__init__(
            message=f"Offer {offer_id} is not the live offer for deal {deal_id}",
            code="OFFER_NOT_LIVE",
            details={"deal_id": deal_id, "offer_id": offer_id}
        )


class OfferAlreadyAnsweredException(BusinessException):
    """Raised when a role tries to change an answer it already gave."""

    def __init__(self, offer_id: str, role: str, current: str):
        super().__init__(
            message=f"{role} already answered offer {offer_id} with '{current}'",
            code="OFFER_ALREADY_ANSWERED",
            details={"offer_id": offer_id, "role": role, "current": current}
        )


class InvalidTransitionException(BusinessException):
    """Raised when a status write is not in the transition table."""

    def __init__(self, deal_id: str, current_status: str, trigger: str):
        super().__init__(
            message=f"Transition '{trigger}' not allowed for deal {deal_id} in status {current_status}",
            code="INVALID_TRANSITION",
            details={"deal_id": deal_id, "current_status": current_status, "trigger": trigger}
        )


class PersistenceException(BusinessException):
    """Raised when the store fails. Callers may retry."""

    def __init__(self, operation: str, cause: str):
        super().__init__(
            message=f"Persistence failure during {operation}",
            code="PERSISTENCE_ERROR",
            details={"operation": operation, "cause": cause, "retryable": True}
        )


class InternalConsistencyError(Exception):
    """
    Fatal invariant violation (e.g. a heuristic price outside the zone).

    Deliberately not a BusinessException: nothing in the request path may
    recover from it, and the surrounding transaction is rolled back.
    """
