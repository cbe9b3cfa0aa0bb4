"""
errors.py - Domain exceptions for SoulMirror.

Each exception carries the HTTP status and semantic code that main.py's
exception handler turns into the standard {error, code} envelope.
Business logic raises these; no HTTPException outside the routes.
"""
from typing import Optional


class SoulMirrorError(Exception):
    """Base class for errors surfaced to the client with a fixed status."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Payment gate
# ---------------------------------------------------------------------------

class PaymentRequired(SoulMirrorError):
    """Neither paymentId nor paymentToken was supplied."""
    status_code = 402
    code = "PAYMENT_REQUIRED"
    default_message = "Payment required"


class PaymentInvalid(SoulMirrorError):
    """Session unknown to the gate, not yet paid, or token mismatch."""
    status_code = 402
    code = "PAYMENT_INVALID"
    default_message = "Payment not completed"


class PaymentNotFound(SoulMirrorError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Payment not found"


class PaymentExpired(SoulMirrorError):
    status_code = 410
    code = "EXPIRED"
    default_message = "Payment expired"


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class ImageGenerationError(SoulMirrorError):
    code = "IMAGE_GENERATION_FAILED"
    default_message = "Failed to generate QR code"


class UpstreamError(SoulMirrorError):
    """Gemini call failed (after the structured-output fallback, if any)."""
    code = "UPSTREAM_ERROR"
    default_message = "Gemini request failed"


__all__ = [
    "SoulMirrorError",
    "PaymentRequired",
    "PaymentInvalid",
    "PaymentNotFound",
    "PaymentExpired",
    "ImageGenerationError",
    "UpstreamError",
]
