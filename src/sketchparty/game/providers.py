"""AI theme-word providers."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol

import structlog

from sketchparty.game.exceptions import ThemeProviderError

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = structlog.get_logger(__name__)

_SPLIT = re.compile(r"[,\n]+")
_PROMPT = (
    "Generate a list of {count} single words or very short expressions (max 2 words) "
    "to draw in a Pictionary game, on the theme: {theme!r}. Reply with the words "
    "separated by commas and nothing else."
)


class ThemeWordProvider(Protocol):
    """Generates drawable words for a theme."""

    async def generate(self, theme: str, count: int) -> list[str]:
        """Return up to ``count`` words for ``theme``.

        Raises:
            Exception: Any failure; callers fall back to the dictionary.
        """


class OpenAIThemeProvider:
    """Theme-word provider backed by an OpenAI chat model.

    Requires the ``ai`` extra (``openai``).
    """

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: AsyncOpenAI | None = None) -> None:
        """Initialize the provider.

        Args:
            api_key: OpenAI API key.
            model: Chat model name.
            client: Pre-built client, mostly for tests.
        """
        self.api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                msg = "openai is not installed. Install with: pip install sketchparty[ai]"
                raise ImportError(msg) from e
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, theme: str, count: int) -> list[str]:
        """Ask the model for ``count`` words on ``theme``.

        Args:
            theme: Free-text theme chosen by the room leader.
            count: Number of words wanted.

        Returns:
            The parsed words, deduplicated, in the model's order.

        Raises:
            ThemeProviderError: If the model answered with no content.
        """
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": _PROMPT.format(count=count, theme=theme)}],
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ThemeProviderError(theme, "empty response")

        words = [w.strip().strip(".\"'").strip() for w in _SPLIT.split(content)]
        words = list(dict.fromkeys(w for w in words if w))
        logger.debug("Theme words generated", theme=theme, requested=count, received=len(words))
        return words[:count]
