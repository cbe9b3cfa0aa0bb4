"""
PaymentAgent HTTP routes - POST /api/pay/create,
                            GET  /api/pay/status,
                            POST /api/pay/confirm,
                            GET  /api/pay/mock-scan,
                            GET  /pay-wallet

Mock checkout: no money moves. A session is created with a QR code of the
wallet link; opening that link (or calling /api/pay/confirm) marks it paid.
The two wallet callbacks answer with a small HTML page because they are
opened on the phone that scanned the code, not by the SPA.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from backend.agents.payment_agent.qr_service import render_qr_data_uri
from backend.agents.payment_agent.schemas import (
    ConfirmPaymentRequest,
    CreatePaymentRequest,
    PaymentCreated,
    PaymentStatusResponse,
)
from backend.agents.payment_agent.store import PaymentStore
from backend.config import settings
from backend.deps import get_payment_store
from backend.errors import PaymentExpired, PaymentNotFound

router = APIRouter(prefix="/api/pay", tags=["payment_agent"])
wallet_router = APIRouter(tags=["payment_agent"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wallet callback pages
# ---------------------------------------------------------------------------

PAID_PAGE = (
    '<div style="font-family: sans-serif; padding: 24px; text-align:center;">'
    "<h2>支付成功</h2><p>请返回网页查看解析结果。</p></div>"
)
NOT_FOUND_PAGE = "<h3>订单不存在</h3>"
EXPIRED_PAGE = "<h3>订单已过期</h3>"


def _confirm_scan_page(
    store: PaymentStore,
    payment_id: Optional[str],
    token: Optional[str],
) -> HTMLResponse:
    """Shared body of /api/pay/mock-scan and /pay-wallet."""
    try:
        session = store.confirm_scan(payment_id, token)
    except PaymentNotFound:
        logger.info("Wallet scan rejected payment_id=%s reason=not_found", payment_id)
        return HTMLResponse(NOT_FOUND_PAGE, status_code=404)
    except PaymentExpired:
        logger.info("Wallet scan rejected payment_id=%s reason=expired", payment_id)
        return HTMLResponse(EXPIRED_PAGE, status_code=410)

    logger.info("Wallet scan accepted payment_id=%s", session.id)
    return HTMLResponse(PAID_PAGE)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/create")
async def create_payment(
    request: Request,
    body: Optional[CreatePaymentRequest] = None,
    store: PaymentStore = Depends(get_payment_store),
) -> JSONResponse:
    """
    Open a pending payment session.

    Returns:
        200: {paymentId, amount, qrImage, expiresAt, payUrl}
        500: QR rendering failed - no session was stored
    """
    amount = body.amount if body is not None else None
    base_url = settings.pay_base_url.strip() or str(request.base_url)

    # Pillow rendering runs in a worker thread
    session, qr_image = await asyncio.to_thread(
        store.create, base_url, render_qr_data_uri, amount=amount
    )

    created = PaymentCreated(
        payment_id=session.id,
        amount=session.amount,
        qr_image=qr_image,
        expires_at=session.expires_at,
        pay_url=session.pay_url,
    )
    return JSONResponse(status_code=200, content=created.model_dump(by_alias=True))


@router.get("/status")
async def payment_status(
    payment_id: Optional[str] = Query(default=None, alias="id"),
    store: PaymentStore = Depends(get_payment_store),
) -> JSONResponse:
    """
    Poll a session. Expired sessions are reconciled on this read.

    paymentToken is included only once the session is paid.
    """
    if not payment_id:
        raise HTTPException(status_code=400, detail="Missing payment id")

    session = store.get_status(payment_id)
    body = PaymentStatusResponse.from_session(session)
    return JSONResponse(
        status_code=200,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.post("/confirm")
async def confirm_payment(
    body: Optional[ConfirmPaymentRequest] = None,
    store: PaymentStore = Depends(get_payment_store),
) -> JSONResponse:
    """
    The SPA's "I have paid" button.

    Returns:
        200: {status: "paid", paymentId, paymentToken}
        400: missing paymentId
        404: unknown session
        410: session expired
    """
    payment_id = body.payment_id if body is not None else None
    if not payment_id:
        raise HTTPException(status_code=400, detail="Missing payment id")

    session = store.confirm(payment_id)
    response = PaymentStatusResponse.from_session(session)
    return JSONResponse(
        status_code=200,
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.get("/mock-scan", response_class=HTMLResponse)
async def mock_scan(
    payment_id: Optional[str] = Query(default=None, alias="id"),
    token: Optional[str] = Query(default=None),
    store: PaymentStore = Depends(get_payment_store),
) -> HTMLResponse:
    """Simulated payment-provider callback (id / token query params)."""
    return _confirm_scan_page(store, payment_id, token)


@wallet_router.get("/pay-wallet", response_class=HTMLResponse)
async def pay_wallet(
    payment_id: Optional[str] = Query(default=None, alias="paymentId"),
    token: Optional[str] = Query(default=None),
    store: PaymentStore = Depends(get_payment_store),
) -> HTMLResponse:
    """Target of the QR code - scanning it marks the session paid."""
    return _confirm_scan_page(store, payment_id, token)
