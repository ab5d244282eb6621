from __future__ import annotations

import os
from typing import Optional, Sequence

from google import genai
from google.genai import types

from app.ai.types import ChatMessage, ProviderError


class GeminiProvider:
    name = "gemini"

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout_s: float = 60.0,
        temperature: float = 0.2,
        max_output_tokens: int = 4096,
    ):
        self._model = model
        key = (api_key or os.getenv("GEMINI_API_KEY") or "").strip()
        if not key:
            raise ProviderError("GEMINI_API_KEY is missing", code="provider_not_configured")

        self._client = genai.Client(
            api_key=key,
            http_options=types.HttpOptions(timeout=int(timeout_s * 1000)),
        )
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[types.Part(text=m.content)],
            )
            for m in messages
            if m.role != "system"
        ]
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=system or None,
                temperature=self._temperature,
                max_output_tokens=self._max_output_tokens,
                response_mime_type="application/json",
            ),
        )
        return response.text or ""
