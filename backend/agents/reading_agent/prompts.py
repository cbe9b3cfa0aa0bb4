"""
prompts.py - Deterministic prompt text for the SoulMirror readings.

The prompt is opaque to the rest of the system: nothing parses it back.
Only two formatting rules apply to the inputs:
  - a missing value renders as PLACEHOLDER
  - list-valued keywords are joined with KEYWORD_SEPARATOR
"""
import math
from typing import List, Optional, Union

from backend.agents.reading_agent.schemas import ReadingRequest

PLACEHOLDER = "未提供"  # "not provided"
KEYWORD_SEPARATOR = " / "

PERSONA = """# Role Definition
You are "SoulMirror," a Jungian analyst combined with a mystic Tarot reader. Your tone is empathetic, slightly mysterious, insightful, and sharply observant (Cold Reading style). You never use generic clichés. You speak to the user's subconscious."""

REPORT_RULES = """# Report Structure & Rules (Strictly Follow)

1. **The Mirror (The Hook)**
- Do NOT say "Based on your input...". Start directly.
- Synthesize the MBTI and Zodiac into a specific "Archetype Name" (e.g., "The Strategic Mystic").
- Acknowledge their Tarot choice and their input text.
- *Crucial:* Use "Cold Reading" techniques. Point out a contradiction between their logical exterior (MBTI) and emotional interior (Input text).

2. **The Shadow (The Conflict)**
- Analyze *why* they are stuck. Use the Tarot card metaphor.
- Connect their specific words in the free writing to the meaning of the card.
- Explain what their subconscious is trying to tell them.

3. **The Alchemy (The Advice)**
- Give 2 concrete, actionable, yet spiritual pieces of advice.
- Advice must be tailored to their MBTI cognitive functions (e.g., if J, tell them to embrace chaos; if P, tell them to build a structure)."""

HOOK_OUTPUT = """# Task
Write ONE sentence (max 60 Chinese characters) that makes the user feel instantly seen - the opening line of the report above, in the same Cold Reading style.

# Output Format
Return ONLY a JSON object, no Markdown:
{"sentiment": "<one of: hopeful | melancholic | restless | complex>", "hookLine": "<the sentence, Simplified Chinese>"}"""

REPORT_OUTPUT = """# Task
Generate a psychological & spiritual analysis report.

# Output Format
- Language: Simplified Chinese (Mainland aesthetic, high-quality literary style).
- Length: approx 800 words in total.
- Return ONLY a JSON object, no Markdown fences:
{"sections": [{"title": "<section title>", "content": "<section body, Markdown allowed>"}]}
- Exactly three sections, in the order The Mirror, The Shadow, The Alchemy."""


# ---------------------------------------------------------------------------
# Field formatting
# ---------------------------------------------------------------------------

def _or_placeholder(value: Optional[str]) -> str:
    return value.strip() if value and value.strip() else PLACEHOLDER


def format_keywords(keywords: Optional[Union[List[str], str]]) -> str:
    if isinstance(keywords, list):
        joined = KEYWORD_SEPARATOR.join(str(k).strip() for k in keywords if str(k).strip())
        return joined or PLACEHOLDER
    return _or_placeholder(keywords)


def format_energy(energy_level: Optional[Union[float, str]]) -> str:
    """'7/10' for anything numeric, PLACEHOLDER otherwise."""
    if energy_level is None or energy_level == "":
        return PLACEHOLDER
    try:
        value = float(energy_level)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if not math.isfinite(value):
        return PLACEHOLDER
    return f"{value:g}/10"


def build_input_block(req: ReadingRequest) -> str:
    """The '# Input Data' section shared by both prompts."""
    lines = [
        "# Input Data",
        f"- User's MBTI: {_or_placeholder(req.type_code)} (e.g., INTJ)",
        f"- MBTI archetype name: {_or_placeholder(req.type_name)}",
        f"- User's Sun Sign: {_or_placeholder(req.zodiac)} (e.g., Scorpio)",
        f"- Drawn Tarot Card: {_or_placeholder(req.tarot)} (e.g., The Fool)",
        f'- User\'s Free Writing (The Key): "{_or_placeholder(req.reflection)}"',
        f"- Current status: {_or_placeholder(req.status)}",
        f"- Focus area: {_or_placeholder(req.focus)}",
        f"- Intent: {_or_placeholder(req.intent)}",
        f"- Energy level: {format_energy(req.energy_level)}",
        f"- Keywords: {format_keywords(req.keywords)}",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------

def build_hook_prompt(req: ReadingRequest) -> str:
    return "\n\n".join([PERSONA, build_input_block(req), REPORT_RULES, HOOK_OUTPUT])


def build_report_prompt(req: ReadingRequest) -> str:
    return "\n\n".join([PERSONA, build_input_block(req), REPORT_RULES, REPORT_OUTPUT])
