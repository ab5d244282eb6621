from __future__ import annotations

import os
from typing import Optional, Sequence

from openai import AsyncOpenAI

from app.ai.types import ChatMessage, ProviderError


class OpenAIProvider:
    name = "openai"

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 60.0,
        max_retries: int = 2,
        temperature: float = 0.2,
        max_output_tokens: int = 4096,
    ):
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        key = (api_key or os.getenv("OPENAI_API_KEY") or "").strip()
        if not key:
            raise ProviderError("OPENAI_API_KEY is missing", code="provider_not_configured")

        self._client = AsyncOpenAI(
            api_key=key,
            base_url=(base_url or os.getenv("OPENAI_BASE_URL") or None),
            timeout=float(os.getenv("OPENAI_TIMEOUT_S", str(timeout_s))),
            max_retries=int(os.getenv("OPENAI_MAX_RETRIES", str(max_retries))),
        )

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        payload = [{"role": m.role, "content": m.content} for m in messages]
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=payload,
            temperature=self._temperature,
            response_format={"type": "json_object"},
            max_tokens=self._max_output_tokens,
        )
        content = response.choices[0].message.content if response.choices else ""
        return content or ""
