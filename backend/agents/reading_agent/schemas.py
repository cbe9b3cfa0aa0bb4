"""
schemas.py - ReadingAgent Pydantic v2 data contracts.

Defines:
  - ReadingRequest   (POST /api/hook and /api/report body - profile + payment proof)
  - HookResponse     ({sentiment, hookLine})
  - ReportSections   ({sections}) / ReportText ({text}) - the two report shapes
  - DisabledResponse ({disabled: true, error}) - no Gemini key configured

Every profile field is optional: the SPA sends whatever the user filled in and
prompts.py substitutes a placeholder for the rest. Unknown keys are ignored.
"""
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class ReadingRequest(_CamelModel):
    """
    Profile answers collected by the SPA plus the paywall proof.

    Never rejects a JSON object: stray types are coerced to text or dropped,
    so a sloppy client still reaches the disabled check and the paywall.
    """

    type_code: Optional[str] = Field(default=None, description="MBTI code, e.g. 'INTJ'")
    type_name: Optional[str] = None
    zodiac: Optional[str] = Field(default=None, description="Sun sign, e.g. 'Scorpio'")
    status: Optional[str] = None
    tarot: Optional[str] = Field(default=None, description="Drawn card, e.g. 'The Fool'")
    reflection: Optional[str] = Field(default=None, description="Free writing - the key input")
    focus: Optional[str] = None
    energy_level: Optional[Union[float, str]] = Field(default=None, description="0-10 self rating")
    intent: Optional[str] = None
    keywords: Optional[Union[List[Optional[str]], str]] = None

    # --- Paywall proof (either is enough to look the session up) ---
    payment_id: Optional[str] = None
    payment_token: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def non_object_body_is_empty(cls, data: Any) -> Any:
        return data if isinstance(data, dict) else {}

    @field_validator(
        "type_code", "type_name", "zodiac", "status", "tarot", "reflection",
        "focus", "intent", "payment_id", "payment_token",
        mode="before",
    )
    @classmethod
    def scalar_to_text(cls, value: Any) -> Optional[str]:
        if isinstance(value, (str, bool, int, float)):
            return str(value)
        return None

    @field_validator("energy_level", mode="before")
    @classmethod
    def energy_scalar_only(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return None
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def keywords_as_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value if isinstance(item, (str, bool, int, float))]
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
        return None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class HookResponse(_CamelModel):
    sentiment: str
    hook_line: str


class ReportSections(_CamelModel):
    sections: List[Any]


class ReportText(_CamelModel):
    text: str


class DisabledResponse(_CamelModel):
    """Returned with 200 - a degraded mode, not an error."""
    disabled: Literal[True] = True
    error: str


__all__ = [
    "ReadingRequest",
    "HookResponse",
    "ReportSections",
    "ReportText",
    "DisabledResponse",
]
