"""Provider selection from configuration."""

from __future__ import annotations

from patchwise_core.providers.anthropic import AnthropicReviewer
from patchwise_core.providers.base import BaseReviewer
from patchwise_core.providers.gemini import GeminiReviewer
from patchwise_core.providers.openai import OpenAIReviewer

PROVIDERS = ("anthropic", "openai", "gemini")

_API_KEY_SETTINGS = {
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "gemini": ("gemini_api_key", "GEMINI_API_KEY"),
}


def api_key_env_var(provider: str) -> str:
    return _API_KEY_SETTINGS[provider][1]


def missing_api_key(config: dict) -> str | None:
    """Return the env var the configured provider needs but lacks, or None."""
    provider = config.get("model")
    if provider not in _API_KEY_SETTINGS:
        return None
    key, env_var = _API_KEY_SETTINGS[provider]
    return None if config.get(key) else env_var


def get_reviewer(config: dict) -> BaseReviewer:
    provider = config["model"]
    model_name = config.get("model_name")
    if provider == "anthropic":
        return AnthropicReviewer(api_key=config["anthropic_api_key"], model=model_name)
    if provider == "openai":
        return OpenAIReviewer(api_key=config["openai_api_key"], model=model_name)
    if provider == "gemini":
        return GeminiReviewer(api_key=config["gemini_api_key"], model=model_name)
    raise ValueError(f"Unknown model provider: {provider!r}. Choose one of: {', '.join(PROVIDERS)}.")
