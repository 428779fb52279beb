import json
import logging
import re
from typing import Any

from openai import AsyncOpenAI

from backend.app.config import settings

logger = logging.getLogger(__name__)


class LLMUnavailableError(RuntimeError):
    """No API key configured, callers go straight to their fallback."""


class LLMResponseParseError(ValueError):
    """Model answered, but not with JSON we can read."""


def _extract_fenced_block(text: str) -> str | None:
    blocks = re.findall(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL | re.IGNORECASE)
    return blocks[0].strip() if blocks else None


def _extract_balanced_json_span(text: str) -> str | None:
    """First balanced top-level JSON object/array in the text, if any."""
    starts = []
    first_obj = text.find("{")
    first_arr = text.find("[")
    if first_obj != -1:
        starts.append((first_obj, "{", "}"))
    if first_arr != -1:
        starts.append((first_arr, "[", "]"))
    if not starts:
        return None

    start_idx, open_ch, close_ch = min(starts, key=lambda x: x[0])
    depth = 0
    in_string = False
    escape = False
    for i in range(start_idx, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[start_idx:i + 1]
    return None


def parse_json_reply(raw_text: str) -> Any:
    """Parse a chat reply that should be JSON, tolerating fences and chatter around it."""
    text = (raw_text or "").strip()
    if not text:
        raise LLMResponseParseError("Model returned empty content")

    candidates = [text]
    fenced = _extract_fenced_block(text)
    if fenced:
        candidates.insert(0, fenced)
    balanced = _extract_balanced_json_span(text)
    if balanced:
        candidates.append(balanced)

    errors: list[str] = []
    for candidate in candidates:
        try:
            return json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            errors.append(str(e))
    raise LLMResponseParseError("Unable to parse JSON reply: " + " | ".join(errors[:3]))


class LLMClient:
    """Thin wrapper over the OpenAI chat-completions API returning parsed JSON."""

    def __init__(
        self,
        model_name: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.model_name = model_name or settings.openai_model
        self.api_key = api_key or settings.openai_api_key
        self.client = None
        if self.api_key:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=base_url or settings.openai_base_url,
            )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> Any:
        if self.client is None:
            raise LLMUnavailableError("OPENAI_API_KEY not set")

        logger.info("Issuing JSON request to model %s...", self.model_name)
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )

        if not getattr(response, "choices", None):
            raise ValueError(f"Provider {self.model_name} returned no output")

        text_response = response.choices[0].message.content
        if not text_response:
            raise ValueError(f"No response from {self.model_name}")

        try:
            return parse_json_reply(text_response)
        except LLMResponseParseError:
            logger.warning("Failed to parse reply from %s: %.200s", self.model_name, text_response)
            raise
