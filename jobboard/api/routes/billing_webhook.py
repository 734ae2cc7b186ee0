import logging
from fastapi import APIRouter, Request, Header, Depends
from sqlalchemy.orm import Session

from jobboard.core.auth_dependency import get_db
from jobboard.services import stripe_service
from jobboard.services.reconciliation_service import handle_webhook_event
from jobboard.schemas.billing import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/candidate-payments", tags=["Billing Webhook"])


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
):
    """
    Receive Stripe events.

    Always answers 200 so Stripe does not retry forever; verification and
    processing failures are logged for operator follow-up instead.
    """
    payload = await request.body()

    try:
        event = stripe_service.verify_webhook(payload, stripe_signature)
    except Exception as e:
        logger.error(f"Webhook verification failed: {e}")
        return {"received": True}

    try:
        result = handle_webhook_event(db, event)
        logger.info(
            f"Webhook processed: type={event.get('type')}, id={event.get('id')}, "
            f"result={result['result']}, order_id={result['order_id']}"
        )
    except Exception as e:
        db.rollback()
        logger.error(
            f"Webhook processing failed: type={event.get('type')}, id={event.get('id')}, error={e}",
            exc_info=True
        )

    return {"received": True}
