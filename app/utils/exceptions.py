"""
Custom Exceptions and Error Handling
Standardized error responses across the application
"""

from typing import Optional
from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
from fastapi import Request
import logging

logger = logging.getLogger(__name__)


class PetSyncException(Exception):
    """Base exception for PetSync application"""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[dict] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to API response format"""
        response = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response


# Authorization Exceptions
class AuthorizationError(PetSyncException):
    """Authorization failed - insufficient permissions"""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=status.HTTP_403_FORBIDDEN
        )


# Resource Exceptions
class ResourceNotFoundError(PetSyncException):
    """Requested resource not found"""

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} with ID '{resource_id}' not found"
        super().__init__(
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            message=message,
            status_code=status.HTTP_404_NOT_FOUND
        )


class ResourceExistsError(PetSyncException):
    """Resource already exists (conflict)"""

    def __init__(self, resource_type: str, field: str = ""):
        message = f"{resource_type} already exists"
        if field:
            message = f"A {resource_type.lower()} with this {field} already exists"
        super().__init__(
            code=f"{resource_type.upper().replace(' ', '_')}_EXISTS",
            message=message,
            status_code=status.HTTP_409_CONFLICT
        )


class ResourceInUseError(PetSyncException):
    """Resource cannot be deleted because it's in use"""

    def __init__(self, resource_type: str, reason: str = ""):
        message = f"Cannot delete {resource_type} - it is currently in use"
        if reason:
            message = f"Cannot delete {resource_type}: {reason}"
        super().__init__(
            code=f"{resource_type.upper().replace(' ', '_')}_IN_USE",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST
        )


# Scheduling Exceptions
class SchedulingConflictError(PetSyncException):
    """Requested slot overlaps an existing booking"""

    def __init__(self, conflicts: list[dict]):
        super().__init__(
            code="SCHEDULING_CONFLICT",
            message="Time slot is not available",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"conflicts": conflicts}
        )


class BusinessClosedError(PetSyncException):
    """Business is closed on requested date/time"""

    def __init__(self, when: str):
        super().__init__(
            code="BUSINESS_CLOSED",
            message=f"Business is closed on {when}",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class BookingWindowError(PetSyncException):
    """Date outside what the business accepts"""

    def __init__(self, message: str):
        super().__init__(
            code="OUTSIDE_BOOKING_WINDOW",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST
        )


class ServiceRequirementError(PetSyncException):
    """Pet does not meet the service's eligibility rules"""

    def __init__(self, reasons: list[str]):
        super().__init__(
            code="SERVICE_REQUIREMENTS_NOT_MET",
            message="; ".join(reasons),
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"reasons": reasons}
        )


class InvalidStatusTransitionError(PetSyncException):
    """Status change not allowed from the current status"""

    def __init__(self, current: str, action: str):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot {action} an appointment that is {current}",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current, "action": action}
        )


class CancellationPolicyError(PetSyncException):
    """Too late for the client to cancel"""

    def __init__(self, hours_required: int):
        super().__init__(
            code="CANCELLATION_TOO_LATE",
            message=f"Appointments must be cancelled at least {hours_required} hours in advance",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class InvoiceStateError(PetSyncException):
    """Operation not valid for the invoice's status"""

    def __init__(self, message: str):
        super().__init__(
            code="INVALID_INVOICE_STATE",
            message=message,
            status_code=status.HTTP_409_CONFLICT
        )


# Exception Handlers for FastAPI
async def petsync_exception_handler(request: Request, exc: PetSyncException) -> JSONResponse:
    """Handle PetSync custom exceptions"""
    logger.warning(f"PetSync exception: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response()
    )


async def validation_exception_handler(request: Request, exc) -> JSONResponse:
    """Handle request validation errors"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    # First problem doubles as the message the frontend toasts
    message = "Input validation failed"
    if errors:
        message = f"{errors[0]['field']}: {errors[0]['message']}"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": message,
                "details": {"errors": errors}
            }
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions"""
    detail = exc.detail
    error = {"code": "HTTP_ERROR", "message": str(detail)}
    if isinstance(detail, dict):
        error = {
            "code": detail.get("code", "HTTP_ERROR"),
            "message": detail.get("message", str(detail))
        }
        if detail.get("details"):
            error["details"] = detail["details"]

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": error},
        headers=getattr(exc, "headers", None)
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    app.add_exception_handler(PetSyncException, petsync_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
