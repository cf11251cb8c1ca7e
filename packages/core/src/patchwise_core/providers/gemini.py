"""Google Gemini provider, through the google-genai SDK."""

from __future__ import annotations

try:
    from google import genai
    from google.genai import types as genai_types
except ImportError:
    genai = None  # type: ignore[assignment]
    genai_types = None  # type: ignore[assignment]

from patchwise_core.providers.base import BaseReviewer


class GeminiReviewer(BaseReviewer):
    name = "gemini"
    MODEL = "gemini-2.5-flash"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        if genai is None:
            raise ImportError(
                "The 'google-genai' package is required for this provider. "
                "Install it with: pip install 'patchwise[gemini]'"
            )
        self.client = genai.Client(api_key=api_key)
        self.model = model or self.MODEL

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.TEMPERATURE,
                max_output_tokens=self.MAX_TOKENS,
            ),
        )
        return response.text or ""

    def _status_code(self, exc: Exception) -> int | None:
        # google.genai.errors.APIError carries the HTTP status as `code`.
        code = getattr(exc, "code", None)
        if isinstance(code, int):
            return code
        return super()._status_code(exc)
