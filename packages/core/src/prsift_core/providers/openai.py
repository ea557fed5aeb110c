"""GPT provider."""

from __future__ import annotations

from openai import OpenAI

from prsift_core.providers.base import BaseReviewer


class OpenAIReviewer(BaseReviewer):
    name = "openai"
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        self.client = OpenAI(api_key=api_key)
        self.model = model or self.MODEL

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        completion = self.client.chat.completions.create(
            model=self.model,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        content = completion.choices[0].message.content
        return content.strip() if content else ""
