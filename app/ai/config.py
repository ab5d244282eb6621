from dataclasses import dataclass

from app.core.config import settings

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-4o-mini",
}


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    timeout_s: float


def load_ai_config() -> AIConfig:
    provider = settings.ai_provider
    model = (settings.ai_model or DEFAULT_MODELS.get(provider, "")).strip()
    return AIConfig(provider=provider, model=model, timeout_s=settings.provider_timeout_s)
