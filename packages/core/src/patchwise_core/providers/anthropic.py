from __future__ import annotations

from patchwise_core.providers.base import BaseReviewer


class AnthropicReviewer(BaseReviewer):
    name = "anthropic"
    MODEL = "claude-sonnet-4-20250514"
    # Low temperature keeps the JSON comment list stable between runs, which
    # matters more here than phrasing: cached reviews are replayed verbatim.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'patchwise[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key, max_retries=0)
        self.model = model or self.MODEL

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
