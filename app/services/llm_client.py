"""
LLM Client - profile photo alt text.
Works with any OpenAI-compatible provider (OpenAI, OpenRouter, Ollama); the
'mock' provider returns a plain description without calling out.
"""
from openai import AsyncOpenAI, OpenAIError
import json
import logging
import re

from ..config import Settings, get_llm_config

logger = logging.getLogger(__name__)

ALT_TEXT_PROMPT = (
    "Write alt text for this profile photo of {name} for a screen reader user. "
    "Describe the person and setting in one sentence of at most 20 words. "
    'Respond with JSON: {{"altText": "..."}}'
)


def fallback_alt_text(name: str) -> str:
    return f"A photo of {name}" if name else "Profile photo"


class AltTextGenerator:
    """Describes profile photos with a vision-capable chat model."""

    def __init__(self, config: Settings):
        self.provider = config.llm_provider
        if self.provider == "mock":
            self.client = None
            self.model = "mock"
            self.max_tokens = config.llm_max_tokens
            return

        llm = get_llm_config(config)
        self.client = AsyncOpenAI(api_key=llm["api_key"], base_url=llm["base_url"])
        self.model = llm["model"]
        self.max_tokens = llm["max_tokens"]

    async def describe_photo(self, photo_url: str, name: str = "") -> str:
        """
        Generate alt text for a photo.

        Falls back to a generic description when the provider fails or returns
        something unusable, so profile updates never depend on the LLM.
        """
        if self.client is None:
            return fallback_alt_text(name)

        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": ALT_TEXT_PROMPT.format(name=name or "the user")},
                {"type": "image_url", "image_url": {"url": photo_url}},
            ],
        }]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content or ""
        except OpenAIError as e:
            logger.error(f"Alt text generation failed: {e}")
            return fallback_alt_text(name)

        alt_text = self._parse_json_response(content).get("altText")
        if not isinstance(alt_text, str) or not alt_text.strip():
            logger.warning("Alt text response had no altText field")
            return fallback_alt_text(name)
        return alt_text.strip()

    def _parse_json_response(self, text: str) -> dict:
        """Parse a JSON object from the response, tolerating markdown code fences."""
        text = text.strip()
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None

        if parsed is None:
            json_match = re.search(r'```(?:json)?\s*([\s\S]*?)```', text)
            if json_match:
                try:
                    parsed = json.loads(json_match.group(1).strip())
                except json.JSONDecodeError:
                    pass
        return parsed if isinstance(parsed, dict) else {}
