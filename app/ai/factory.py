from functools import lru_cache

from app.ai.config import load_ai_config
from app.ai.types import AIClient, ProviderError

from app.ai.providers.openai_provider import OpenAIProvider
from app.ai.providers.gemini_provider import GeminiProvider


@lru_cache(maxsize=1)
def get_ai_client() -> AIClient:
    cfg = load_ai_config()

    if cfg.provider == "gemini":
        return GeminiProvider(model=cfg.model, timeout_s=cfg.timeout_s)

    if cfg.provider == "openai":
        return OpenAIProvider(model=cfg.model, timeout_s=cfg.timeout_s)

    raise ProviderError(f"Unsupported AI_PROVIDER='{cfg.provider}'", code="provider_unsupported")
