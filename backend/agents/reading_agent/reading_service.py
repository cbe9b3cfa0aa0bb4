"""
reading_service.py - Hook and full-report generation on top of GeminiClient.

Both operations ask Gemini for JSON and degrade to plain text:
  hook   → {sentiment, hookLine}   else {sentiment: "complex", hookLine: <sanitized text>}
  report → {sections}              else {text: <sanitized text>}
"""
import logging
from typing import Union

from backend.agents.reading_agent.llm_service import GeminiClient
from backend.agents.reading_agent.parsing import safe_parse_json, sanitize_text
from backend.agents.reading_agent.prompts import build_hook_prompt, build_report_prompt
from backend.agents.reading_agent.schemas import (
    HookResponse,
    ReadingRequest,
    ReportSections,
    ReportText,
)

logger = logging.getLogger(__name__)

READING_TEMPERATURE = 1.2
HOOK_MAX_TOKENS = 7000
REPORT_MAX_TOKENS = 5000
DEFAULT_SENTIMENT = "complex"


def hook_from_text(text: str) -> HookResponse:
    parsed = safe_parse_json(text)
    hook_line = sanitize_text(str(parsed.get("hookLine") or "")) if parsed else ""
    if hook_line:
        return HookResponse(
            sentiment=str(parsed.get("sentiment") or DEFAULT_SENTIMENT),
            hook_line=hook_line,
        )
    return HookResponse(sentiment=DEFAULT_SENTIMENT, hook_line=sanitize_text(text))


def report_from_text(text: str) -> Union[ReportSections, ReportText]:
    parsed = safe_parse_json(text)
    sections = parsed.get("sections") if parsed else None
    if isinstance(sections, list) and sections:
        return ReportSections(sections=sections)
    return ReportText(text=sanitize_text(text))


async def generate_hook(client: GeminiClient, req: ReadingRequest) -> HookResponse:
    text = await client.generate(
        build_hook_prompt(req),
        max_tokens=HOOK_MAX_TOKENS,
        temperature=READING_TEMPERATURE,
        json_mode=True,
    )
    result = hook_from_text(text)
    logger.info("Hook generated sentiment=%s", result.sentiment)
    return result


async def generate_report(client: GeminiClient, req: ReadingRequest) -> Union[ReportSections, ReportText]:
    text = await client.generate(
        build_report_prompt(req),
        max_tokens=REPORT_MAX_TOKENS,
        temperature=READING_TEMPERATURE,
        json_mode=True,
    )
    result = report_from_text(text)
    if isinstance(result, ReportSections):
        logger.info("Report generated sections=%d", len(result.sections))
    else:
        logger.info("Report generated as plain text text_len=%d", len(result.text))
    return result
