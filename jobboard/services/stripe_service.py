"""
Stripe service for products, prices, customers, payment intents and webhooks.

Every call is a synchronous network round trip with no internal retry.
Stripe failures are logged and re-raised as PaymentProcessorError.
"""
import logging
from typing import Optional, Dict, Any
import stripe
from jobboard.core.config import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from jobboard.core.errors import PaymentProcessorError
from jobboard.core.plan_billing import to_minor_units
from jobboard.core.logging_config import sanitize_log_data

logger = logging.getLogger(__name__)

# Initialize Stripe client
if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


def _require_configured():
    if not STRIPE_SECRET_KEY:
        raise PaymentProcessorError("Stripe not configured - STRIPE_SECRET_KEY required")


def create_product(name: str, description: Optional[str] = None) -> str:
    """
    Create a Stripe product mirroring a candidate plan.

    Returns:
        Stripe product ID
    """
    _require_configured()
    try:
        product = stripe.Product.create(
            name=name,
            description=description or "Candidate job application plan",
        )
        logger.info(f"Created Stripe product: product_id={product.id}, name={name}")
        return product.id
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating product: {e}")
        raise PaymentProcessorError(f"Failed to create product: {e}") from e


def create_one_time_price(product_id: str, amount, currency: str) -> str:
    """
    Create a one-time (non-recurring) price for a product.

    Args:
        product_id: Stripe product ID
        amount: Decimal amount in major units (converted to minor units)
        currency: ISO currency code

    Returns:
        Stripe price ID
    """
    _require_configured()
    try:
        price = stripe.Price.create(
            product=product_id,
            unit_amount=to_minor_units(amount, currency),
            currency=currency,
        )
        logger.info(f"Created Stripe price: price_id={price.id}, product_id={product_id}")
        return price.id
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating price: {e}")
        raise PaymentProcessorError(f"Failed to create price: {e}") from e


def update_product(product_id: str, name: str, description: Optional[str]) -> None:
    """Mirror name/description changes onto the Stripe product."""
    _require_configured()
    try:
        stripe.Product.modify(product_id, name=name, description=description or "")
        logger.info(f"Updated Stripe product: product_id={product_id}")
    except stripe.StripeError as e:
        logger.error(f"Stripe error updating product: {e}")
        raise PaymentProcessorError(f"Failed to update product: {e}") from e


def _is_missing_resource(error: stripe.StripeError) -> bool:
    return getattr(error, "code", None) == "resource_missing"


def archive_product(product_id: str) -> None:
    """
    Deactivate a Stripe product. Already archived or deleted products count as archived.
    """
    _require_configured()
    try:
        stripe.Product.modify(product_id, active=False)
        logger.info(f"Archived Stripe product: product_id={product_id}")
    except stripe.InvalidRequestError as e:
        if not _is_missing_resource(e):
            logger.error(f"Stripe error archiving product: {e}")
            raise PaymentProcessorError(f"Failed to archive product: {e}") from e
        logger.warning(f"Stripe product already gone, treating as archived: product_id={product_id}")
    except stripe.StripeError as e:
        logger.error(f"Stripe error archiving product: {e}")
        raise PaymentProcessorError(f"Failed to archive product: {e}") from e


def archive_price(price_id: str) -> None:
    """Deactivate a Stripe price. Already archived or deleted prices count as archived."""
    _require_configured()
    try:
        stripe.Price.modify(price_id, active=False)
        logger.info(f"Archived Stripe price: price_id={price_id}")
    except stripe.InvalidRequestError as e:
        if not _is_missing_resource(e):
            logger.error(f"Stripe error archiving price: {e}")
            raise PaymentProcessorError(f"Failed to archive price: {e}") from e
        logger.warning(f"Stripe price already gone, treating as archived: price_id={price_id}")
    except stripe.StripeError as e:
        logger.error(f"Stripe error archiving price: {e}")
        raise PaymentProcessorError(f"Failed to archive price: {e}") from e


def create_customer(user_id: int, email: str, name: Optional[str] = None) -> str:
    """
    Create a Stripe customer for a user.

    Returns:
        Stripe customer ID
    """
    _require_configured()
    try:
        customer = stripe.Customer.create(
            email=email,
            name=name,
            metadata={"user_id": str(user_id)},
        )
        logger.info(f"Created Stripe customer: user_id={user_id}, customer_id={customer.id}")
        return customer.id
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating customer: {e}")
        raise PaymentProcessorError(f"Failed to create customer: {e}") from e


def create_payment_intent(
    amount,
    currency: str,
    customer_id: str,
    metadata: Dict[str, str],
) -> Dict[str, Any]:
    """
    Create a Stripe payment intent.

    Returns:
        Dictionary with 'id', 'client_secret' and 'status'
    """
    _require_configured()
    try:
        intent = stripe.PaymentIntent.create(
            amount=to_minor_units(amount, currency),
            currency=currency,
            customer=customer_id,
            metadata=metadata,
        )
        logger.info(f"Created payment intent: intent_id={intent.id}, customer_id={customer_id}")
        return {"id": intent.id, "client_secret": intent.client_secret, "status": intent.status}
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating payment intent: {e}")
        raise PaymentProcessorError(f"Failed to create payment intent: {e}") from e


def retrieve_payment_intent(intent_id: str) -> Dict[str, Any]:
    """
    Retrieve a Stripe payment intent.

    Returns:
        Dictionary with 'id', 'client_secret', 'status' and 'metadata'
    """
    _require_configured()
    try:
        intent = stripe.PaymentIntent.retrieve(intent_id)
        result = {
            "id": intent.id,
            "client_secret": intent.client_secret,
            "status": intent.status,
            "metadata": dict(intent.metadata or {}),
        }
        logger.debug(f"Retrieved payment intent: {sanitize_log_data(result)}")
        return result
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving payment intent: {e}")
        raise PaymentProcessorError(f"Failed to retrieve payment intent: {e}") from e


def verify_webhook(request_body: bytes, signature: Optional[str]) -> dict:
    """
    Verify and parse Stripe webhook event.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Parsed event dictionary

    Raises:
        ValueError: If webhook verification fails
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise ValueError("STRIPE_WEBHOOK_SECRET not configured")
    if not signature:
        raise ValueError("Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(
            request_body, signature, STRIPE_WEBHOOK_SECRET
        ).to_dict()
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValueError(f"Invalid webhook payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise ValueError(f"Invalid signature: {e}") from e

    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event
