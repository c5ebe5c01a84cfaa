"""
Webhook signature verifiers.

Each provider authenticates its webhook deliveries differently. Verifiers
answer a yes/no question and never raise, so the dispatcher can reject a
delivery before touching its contents.
"""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from typing import Optional

import stripe

logger = logging.getLogger(__name__)


class SignatureVerifier(ABC):
    """Abstract webhook signature verifier."""

    @abstractmethod
    def verify(self, raw_body: bytes, signature_header: Optional[str], shared_secret: Optional[str]) -> bool:
        """
        Check that ``raw_body`` was signed with ``shared_secret``.

        Args:
            raw_body: Exact request body bytes as received
            signature_header: Value of the provider's signature header
            shared_secret: Webhook secret; an empty secret never verifies

        Returns:
            True if the signature is valid
        """
        pass


class HmacSignatureVerifier(SignatureVerifier):
    """Hex-encoded HMAC over the raw body (Paystack uses SHA-512)."""

    def __init__(self, hash_name: str = "sha512"):
        self.hash_name = hash_name
        self._digestmod = getattr(hashlib, hash_name)

    def sign(self, raw_body: bytes, shared_secret: str) -> str:
        return hmac.new(shared_secret.encode("utf-8"), raw_body, self._digestmod).hexdigest()

    def verify(self, raw_body: bytes, signature_header: Optional[str], shared_secret: Optional[str]) -> bool:
        if not shared_secret:
            logger.warning("Webhook secret not configured; rejecting delivery")
            return False
        if not signature_header:
            return False

        expected = self.sign(raw_body, shared_secret)
        # compare_digest rejects non-ASCII str operands with TypeError
        return hmac.compare_digest(
            expected.encode("ascii"),
            signature_header.strip().lower().encode("utf-8"),
        )


class StripeSignatureVerifier(SignatureVerifier):
    """
    Stripe ``Stripe-Signature`` verification via the Stripe SDK.

    The header carries a timestamp; deliveries older than ``tolerance_seconds``
    are rejected to block replays.
    """

    def __init__(self, tolerance_seconds: int = 300):
        self.tolerance_seconds = tolerance_seconds

    def verify(self, raw_body: bytes, signature_header: Optional[str], shared_secret: Optional[str]) -> bool:
        if not shared_secret:
            logger.warning("Stripe webhook secret not configured; rejecting delivery")
            return False
        if not signature_header or not signature_header.isascii():
            return False

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            return False

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                shared_secret,
                tolerance=self.tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, TypeError, ValueError) as e:
            logger.warning(f"Stripe webhook signature verification failed: {e}")
            return False
        return True
