"""
Exceptions raised by the billing and quota services.

Routes translate these into HTTP responses; the webhook route logs them
and still acknowledges receipt.
"""
from fastapi import HTTPException, status


class BillingError(Exception):
    """Base class for candidate billing failures."""


class NotFoundError(BillingError):
    """Referenced plan, order, user or application limit does not exist."""


class PlanStateError(BillingError):
    """Request is not valid for the current state of a plan or order."""


class PaymentProcessorError(BillingError):
    """Stripe rejected or failed a request."""


def to_http_exception(error: BillingError) -> HTTPException:
    """Map a service error onto the HTTPException the routes raise."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PaymentProcessorError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment processor error - try again"
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
