"""
store.py - In-memory payment session manager for the SoulMirror paywall.

Provides the only API that touches the session table. Routes receive a
PaymentStore instance (created once in main.py lifespan, stored on
app.state.payment_store) through backend.deps - there is no module-level table.

State machine:
  pending ──confirm──▶ paid
     │
     └──(now > expires_at, observed on read)──▶ expired

  - paid and expired are terminal; nothing moves a session backwards
  - expiry is lazy: every read reconciles a pending session whose deadline
    has passed, there is no background sweep
  - sessions are never deleted; the table lives exactly as long as the process

Design principles:
  - Time comes from an injected Clock so tests can step past the TTL
  - Each mutation is a single read-modify-write under one lock
  - Returns model copies - callers never hold a reference into the table
  - Logs only payment_id / status - never the token
"""
import logging
import secrets
import threading
import time
import uuid
from enum import Enum
from typing import Callable, Optional, Protocol
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict

from backend.errors import PaymentExpired, PaymentNotFound

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS: int = 300
DEFAULT_AMOUNT: float = 2
WALLET_PATH = "/pay-wallet"


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class Clock(Protocol):
    def now_ms(self) -> int:
        ...


class SystemClock:
    """Wall-clock time in epoch milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Domain types
# ---------------------------------------------------------------------------

class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    expired = "expired"


class GateDecision(str, Enum):
    ok = "ok"
    payment_required = "payment_required"  # neither id nor token supplied
    not_found = "not_found"
    not_paid = "not_paid"
    expired = "expired"
    token_invalid = "token_invalid"        # id and token both supplied, token differs


class PaymentSession(BaseModel):
    """One purchase attempt. Timestamps are epoch milliseconds."""
    model_config = ConfigDict(extra="forbid")

    id: str
    token: str
    amount: float
    status: PaymentStatus = PaymentStatus.pending
    created_at: int
    expires_at: int
    paid_at: Optional[int] = None
    pay_url: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def new_payment_id() -> str:
    return str(uuid.uuid4())


def new_payment_token() -> str:
    """36 hex chars from the OS CSPRNG - the token is the bearer proof of payment."""
    return secrets.token_hex(18)


def build_pay_url(base_url: str, payment_id: str, token: str) -> str:
    """Wallet link encoded into the QR code: {base}/pay-wallet?paymentId=..&token=.."""
    query = urlencode({"paymentId": payment_id, "token": token})
    return f"{base_url.strip().rstrip('/')}{WALLET_PATH}?{query}"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class PaymentStore:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        default_amount: float = DEFAULT_AMOUNT,
    ):
        self._clock: Clock = clock or SystemClock()
        self._ttl_ms = ttl_seconds * 1000
        self._default_amount = default_amount
        self._sessions: dict[str, PaymentSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    # ── internal ────────────────────────────────────────────────────────────

    def _reconcile(self, record: PaymentSession) -> PaymentSession:
        """Rewrite a pending session to expired once its deadline has passed. Caller holds the lock."""
        if record.status is PaymentStatus.pending and self._clock.now_ms() > record.expires_at:
            record.status = PaymentStatus.expired
            logger.info("Payment expired payment_id=%s", record.id)
        return record

    def _lookup(self, payment_id: Optional[str]) -> Optional[PaymentSession]:
        if not payment_id:
            return None
        record = self._sessions.get(payment_id)
        return self._reconcile(record) if record is not None else None

    def _scan_token(self, token: str) -> Optional[PaymentSession]:
        # Linear scan - fine for a single-process, low-volume paywall
        record = next((s for s in self._sessions.values() if s.token == token), None)
        return self._reconcile(record) if record is not None else None

    def _mark_paid(self, record: PaymentSession) -> PaymentSession:
        if record.status is PaymentStatus.expired:
            raise PaymentExpired()
        if record.status is PaymentStatus.pending:
            record.status = PaymentStatus.paid
            record.paid_at = self._clock.now_ms()
            logger.info("Payment confirmed payment_id=%s", record.id)
        return record.model_copy()

    # ── operations ──────────────────────────────────────────────────────────

    def create(
        self,
        base_url: str,
        render_image: Callable[[str], str],
        amount: Optional[float] = None,
    ) -> tuple[PaymentSession, str]:
        """
        Issue a new pending session and its QR image.

        render_image(pay_url) runs BEFORE the record is stored, so a rendering
        failure (ImageGenerationError) leaves the table untouched.

        Returns (session, rendered_image).
        """
        payment_id = new_payment_id()
        token = new_payment_token()
        created_at = self._clock.now_ms()
        pay_url = build_pay_url(base_url, payment_id, token)

        image = render_image(pay_url)

        record = PaymentSession(
            id=payment_id,
            token=token,
            amount=amount or self._default_amount,
            created_at=created_at,
            expires_at=created_at + self._ttl_ms,
            pay_url=pay_url,
        )
        with self._lock:
            self._sessions[payment_id] = record
        logger.info("Payment created payment_id=%s amount=%s", payment_id, record.amount)
        return record.model_copy(), image

    def get(self, payment_id: Optional[str]) -> Optional[PaymentSession]:
        """Return a reconciled snapshot of the session, or None if unknown."""
        with self._lock:
            record = self._lookup(payment_id)
            return record.model_copy() if record is not None else None

    def get_status(self, payment_id: str) -> PaymentSession:
        """Like get(), but raises PaymentNotFound for unknown ids."""
        record = self.get(payment_id)
        if record is None:
            raise PaymentNotFound()
        return record

    def confirm(self, payment_id: str) -> PaymentSession:
        """
        Mark a session paid.

        Raises:
            PaymentNotFound: unknown id
            PaymentExpired:  effective status is expired (including a pending
                             session read past its deadline right now)

        Confirming an already-paid session is a no-op; paid_at keeps its first value.
        """
        with self._lock:
            record = self._lookup(payment_id)
            if record is None:
                raise PaymentNotFound()
            return self._mark_paid(record)

    def confirm_scan(self, payment_id: Optional[str], token: Optional[str]) -> PaymentSession:
        """
        Simulated wallet callback: the QR link carries both id and token.

        A missing session and a wrong token both raise PaymentNotFound so the
        callback does not reveal which half was wrong.
        """
        with self._lock:
            record = self._lookup(payment_id)
            if record is None or not token or record.token != token:
                raise PaymentNotFound()
            return self._mark_paid(record)

    def authorize(
        self,
        payment_id: Optional[str] = None,
        payment_token: Optional[str] = None,
    ) -> GateDecision:
        """
        Decide whether a request may pass the paywall.

        Resolution order:
          1. look up by payment_id
          2. if that finds nothing and payment_token was given, scan all sessions by token
        The session must be paid; when both id and token are supplied the stored
        token must equal the supplied one.
        """
        if not payment_id and not payment_token:
            return GateDecision.payment_required

        with self._lock:
            record = self._lookup(payment_id)
            if record is None and payment_token:
                record = self._scan_token(payment_token)

            if record is None:
                return GateDecision.not_found
            if record.status is PaymentStatus.expired:
                return GateDecision.expired
            if record.status is not PaymentStatus.paid:
                return GateDecision.not_paid
            if payment_token and record.token != payment_token:
                return GateDecision.token_invalid
            return GateDecision.ok

    def validate(
        self,
        payment_id: Optional[str] = None,
        payment_token: Optional[str] = None,
    ) -> bool:
        return self.authorize(payment_id, payment_token) is GateDecision.ok


__all__ = [
    "Clock",
    "SystemClock",
    "PaymentStatus",
    "GateDecision",
    "PaymentSession",
    "PaymentStore",
    "build_pay_url",
]
