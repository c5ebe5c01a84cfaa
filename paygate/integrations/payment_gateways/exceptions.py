"""
Payment gateway error taxonomy.

Every error raised by the gateway layer derives from PaymentError so that
API boundaries can translate them into responses in one place.
"""

from typing import Any, Dict, Optional


class PaymentError(Exception):
    """Base class for payment gateway errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
        gateway_response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_message = message
        self.error_code = error_code
        self.provider = provider
        self.gateway_response = gateway_response


class ValidationError(PaymentError):
    """
    Raised for malformed caller input.

    Never reaches a provider: validation runs before any network call.
    """


class UnsupportedProviderError(PaymentError):
    """Raised when an explicitly requested provider is unknown or disabled."""


class ProviderRequestError(PaymentError):
    """
    Raised when a provider rejected or failed to process a call.

    The provider-native detail is kept in ``gateway_response`` for operators;
    it is not a stable contract for programmatic matching. ``transient`` marks
    network-level failures (timeouts, connection resets) where an idempotent
    call may be repeated.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
        gateway_response: Optional[Dict[str, Any]] = None,
        transient: bool = False,
    ):
        super().__init__(
            message,
            error_code=error_code,
            provider=provider,
            gateway_response=gateway_response,
        )
        self.transient = transient


class MalformedPayloadError(PaymentError):
    """Raised when a webhook body cannot be decoded into a provider event."""
