"""Hosted checkout through Stripe."""
import logging
from typing import List

import stripe

from .config import get_settings
from .errors import UpstreamFailure

logger = logging.getLogger(__name__)


class PaymentGateway:
    def __init__(self, api_key: str | None, success_url: str, cancel_url: str):
        self.api_key = api_key
        self.success_url = success_url
        self.cancel_url = cancel_url

    def create_checkout_session(self, line_items: List[dict]) -> str:
        """Ask Stripe for a hosted checkout session and return its id."""
        if not self.api_key:
            raise UpstreamFailure("payment gateway is not configured")
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                line_items=line_items,
                mode="payment",
                success_url=self.success_url,
                cancel_url=self.cancel_url,
            )
        except stripe.StripeError as e:
            logger.error("stripe checkout session failed: %s", e)
            raise UpstreamFailure("Checkout session could not be created")
        logger.info("created checkout session %s with %d line items", session.id, len(line_items))
        return session.id


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with a fake gateway."""
    settings = get_settings()
    return PaymentGateway(settings.stripe_secret_key, settings.checkout_success_url, settings.checkout_cancel_url)
