import json
import logging

import stripe

from autoship.core.config import settings

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    pass


class PaymentGatewayError(Exception):
    pass


class PaymentGateway:
    """Thin wrapper over the Stripe SDK so routes can swap it out in tests."""

    def __init__(self, secret_key: str, webhook_secret: str):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def create_intent(self, *, amount: int, currency: str, metadata: dict, description: str) -> dict:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
                description=description,
            )
        except stripe.StripeError as e:
            logger.error("payment intent create failed: %s", e)
            raise PaymentGatewayError(str(e)) from e
        return {"id": intent.id, "client_secret": intent.client_secret}

    def verify_event(self, payload: bytes, signature: str) -> dict:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise WebhookSignatureError(str(e)) from e
        # Plain dicts downstream; the SDK object is only needed for the signature check.
        return json.loads(payload)


def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway(settings.stripe_secret_key, settings.stripe_webhook_secret)
