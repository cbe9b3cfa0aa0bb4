"""
llm_service.py - Gemini async generation layer for SoulMirror readings.

Components:
  build_request_body() - generateContent payload (contents, generationConfig, systemInstruction)
  parse_api_error()    - pull error.message / error.status out of a Gemini error body
  to_short_error()     - bounded, client-safe description of a failure and its cause
  extract_text()       - join the text parts of the first candidate
  GeminiClient         - POST wrapper with the structured-output fallback

The httpx.AsyncClient is created once in main.py lifespan and passed in
(connection pool reuse; timeout from settings.gemini_timeout_seconds).

No HTTPException anywhere - this is pure business logic, HTTP layer is routes.py.
"""
import json
import logging
from typing import Any, Optional

import httpx

from backend.errors import UpstreamError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Gemini API constants
# ---------------------------------------------------------------------------

GEMINI_TOP_P = 0.9
DEFAULT_MAX_TOKENS = 5120
DEFAULT_TEMPERATURE = 0.7
JSON_MIME_TYPE = "application/json"

FALLBACK_ERROR_MESSAGE = "Gemini request failed"
SHORT_ERROR_LIMIT = 600


# ---------------------------------------------------------------------------
# Payload / error helpers
# ---------------------------------------------------------------------------

def build_request_body(
    prompt: str,
    system: Optional[str] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
    json_mode: bool = False,
) -> dict[str, Any]:
    """Build a generateContent request. json_mode asks for responseMimeType=application/json."""
    body: dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "topP": GEMINI_TOP_P,
            "maxOutputTokens": max_tokens,
        },
    }
    if json_mode:
        body["generationConfig"]["responseMimeType"] = JSON_MIME_TYPE
    if system:
        body["systemInstruction"] = {
            "role": "system",
            "parts": [{"text": system}],
        }
    return body


def parse_api_error(text: str) -> str:
    """Gemini error bodies look like {"error": {"code", "message", "status"}}; fall back to raw text."""
    if not text:
        return FALLBACK_ERROR_MESSAGE
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("status") or text
    return text


def to_short_error(exc: BaseException) -> str:
    """
    Client-safe failure text: "<message> | <cause message> (<cause code>)",
    truncated to SHORT_ERROR_LIMIT characters.
    """
    raw = str(exc)
    cause = exc.__cause__ or (None if exc.__suppress_context__ else exc.__context__)
    cause_message = ""
    if cause is not None:
        code = getattr(cause, "code", None) or getattr(cause, "errno", None)
        cause_message = f"{cause}{f' ({code})' if code else ''}"

    combined = " | ".join(part for part in (raw, cause_message) if part)
    if not combined:
        return FALLBACK_ERROR_MESSAGE
    if len(combined) > SHORT_ERROR_LIMIT:
        return f"{combined[:SHORT_ERROR_LIMIT]}…"
    return combined


def extract_text(data: Any) -> str:
    """
    Concatenate candidates[0].content.parts[*].text; empty string if absent.

    Raises ValueError when the body has the wrong shape, which generate()
    treats like any other failed call.
    """
    if not isinstance(data, dict):
        raise ValueError("Malformed Gemini response: body is not an object")
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ValueError("Malformed Gemini response: candidates is not a list")
    if not candidates:
        return ""

    first = candidates[0]
    if not isinstance(first, dict):
        raise ValueError("Malformed Gemini response: candidate is not an object")
    content = first.get("content") or {}
    if not isinstance(content, dict):
        raise ValueError("Malformed Gemini response: content is not an object")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise ValueError("Malformed Gemini response: parts is not a list")

    texts = []
    for part in parts:
        if not isinstance(part, dict):
            raise ValueError("Malformed Gemini response: part is not an object")
        if part.get("text"):
            texts.append(str(part["text"]))
    return "".join(texts)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class GeminiClient:
    """
    Thin async client for models/{model}:generateContent.

    generate(json_mode=True) retries exactly once with json_mode off when the
    structured request fails - some models reject responseMimeType. Transient
    network failures are NOT retried beyond that single fallback.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        model: str,
        base_url: str,
    ):
        self._http = http
        self._api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(self, payload: dict[str, Any]) -> str:
        response = await self._http.post(
            self.url,
            params={"key": self._api_key},
            json=payload,
        )
        if response.is_error:
            raise UpstreamError(parse_api_error(response.text))
        return extract_text(response.json())

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        json_mode: bool = False,
    ) -> str:
        """
        Return the model's text.

        Raises:
            UpstreamError: the call failed (after the plain-text retry when json_mode=True).
                           Its message is already shortened by to_short_error().
        """
        options = dict(system=system, max_tokens=max_tokens, temperature=temperature)
        logger.info(
            "Calling Gemini model=%s json_mode=%s max_tokens=%d",
            self.model, json_mode, max_tokens,
        )

        try:
            text = await self._send(build_request_body(prompt, json_mode=json_mode, **options))
        except (httpx.HTTPError, UpstreamError, ValueError) as exc:
            if not json_mode:
                logger.error("Gemini request failed model=%s: %s", self.model, exc)
                raise UpstreamError(to_short_error(exc)) from exc
            logger.warning(
                "Gemini structured request failed model=%s - retrying without JSON mode: %s",
                self.model, exc,
            )
        else:
            logger.info("Gemini response received text_len=%d json_mode=%s", len(text), json_mode)
            return text

        try:
            text = await self._send(build_request_body(prompt, json_mode=False, **options))
        except (httpx.HTTPError, UpstreamError, ValueError) as exc:
            logger.error("Gemini fallback request failed model=%s: %s", self.model, exc)
            raise UpstreamError(to_short_error(exc)) from exc

        logger.info("Gemini fallback response received text_len=%d", len(text))
        return text


__all__ = [
    "GeminiClient",
    "build_request_body",
    "extract_text",
    "parse_api_error",
    "to_short_error",
]
