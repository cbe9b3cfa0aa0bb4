"""
ReadingAgent HTTP routes - POST /api/hook, POST /api/report

Order of checks on every request:
  1. No GEMINI_API_KEY  → 200 {disabled: true, error}  (degraded mode, no gate, no call)
  2. Paywall (settings.require_payment) → 402 before any Gemini call
  3. Gemini call (structured, one plain-text retry) → parse → respond
  4. Gemini failure → 500 {error: <shortened message>, code: UPSTREAM_ERROR}

The payment store and Gemini client come from app.state via backend.deps.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.agents.payment_agent.store import GateDecision, PaymentStore
from backend.agents.reading_agent.llm_service import GeminiClient
from backend.agents.reading_agent.reading_service import generate_hook, generate_report
from backend.agents.reading_agent.schemas import DisabledResponse, ReadingRequest
from backend.config import settings
from backend.deps import get_llm_client, get_payment_store
from backend.errors import PaymentInvalid, PaymentRequired

router = APIRouter(prefix="/api", tags=["reading_agent"])
logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Missing GEMINI_API_KEY"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _disabled_response() -> JSONResponse:
    body = DisabledResponse(error=MISSING_KEY_MESSAGE)
    return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))


def ensure_payment(store: PaymentStore, req: ReadingRequest) -> None:
    """
    Raise a 402 error unless the request carries proof of a paid session.
    No-op when settings.require_payment is off (development mode).
    """
    if not settings.require_payment:
        return

    decision = store.authorize(req.payment_id, req.payment_token)
    if decision is GateDecision.ok:
        return

    logger.info("Paywall rejected payment_id=%s decision=%s", req.payment_id, decision.value)
    if decision is GateDecision.payment_required:
        raise PaymentRequired()
    if decision is GateDecision.token_invalid:
        raise PaymentInvalid("Payment token invalid")
    raise PaymentInvalid()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/hook")
async def hook_endpoint(
    body: Optional[ReadingRequest] = None,
    store: PaymentStore = Depends(get_payment_store),
    client: GeminiClient = Depends(get_llm_client),
) -> JSONResponse:
    """
    One-line teaser for the paywall screen.

    Returns:
        200: {sentiment, hookLine} or {disabled: true, error}
        402: paywall not satisfied
        500: Gemini failed
    """
    if not settings.gemini_api_key:
        return _disabled_response()
    req = body or ReadingRequest()
    ensure_payment(store, req)

    result = await generate_hook(client, req)
    return JSONResponse(status_code=200, content=result.model_dump(by_alias=True))


@router.post("/report")
async def report_endpoint(
    body: Optional[ReadingRequest] = None,
    store: PaymentStore = Depends(get_payment_store),
    client: GeminiClient = Depends(get_llm_client),
) -> JSONResponse:
    """
    Full three-part reading.

    Returns:
        200: {sections} or {text} or {disabled: true, error}
        402: paywall not satisfied
        500: Gemini failed
    """
    if not settings.gemini_api_key:
        return _disabled_response()
    req = body or ReadingRequest()
    ensure_payment(store, req)

    result = await generate_report(client, req)
    return JSONResponse(status_code=200, content=result.model_dump(by_alias=True))
