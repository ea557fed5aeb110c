"""Claude provider."""

from __future__ import annotations

from anthropic import Anthropic
from anthropic.types import TextBlock

from prsift_core.providers.base import BaseReviewer


class AnthropicReviewer(BaseReviewer):
    name = "anthropic"
    MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None):
        self.client = Anthropic(api_key=api_key)
        self.model = model or self.MODEL

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        message = self.client.messages.create(
            model=self.model,
            max_tokens=self.MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        # Only text blocks carry the findings array.
        return "".join(block.text for block in message.content if isinstance(block, TextBlock)).strip()
