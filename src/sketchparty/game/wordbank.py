"""Word sources for drawing turns.

Two sources feed the guessing modes:

- :class:`WordBank`, the dictionary (a one-word-per-line file or the bundled
  list), used by every mode;
- :class:`ThemedWordPool`, a per-game pool filled by an AI
  :class:`~sketchparty.game.providers.ThemeWordProvider` and topped up from
  the dictionary whenever the provider fails.
"""

from __future__ import annotations

import math
import random
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from sketchparty.game.exceptions import ThemeProviderError
from sketchparty.game.word_lists import DEFAULT_WORDS, FALLBACK_WORDS

if TYPE_CHECKING:
    from sketchparty.game.providers import ThemeWordProvider

logger = structlog.get_logger(__name__)

# A provider answer shorter than this fraction of the request counts as a failure.
MIN_PROVIDER_YIELD = 0.5


def normalize_word(word: str) -> str:
    """Uppercase a dictionary word and spell out the ``œ`` ligature."""
    return word.strip().replace("œ", "oe").replace("Œ", "OE").upper()


class WordBank:
    """Dictionary of drawable words.

    Attributes:
        words: The loaded, normalized words.
    """

    def __init__(self, words: list[str] | tuple[str, ...] | None = None) -> None:
        """Initialize the word bank.

        Args:
            words: Words to use. Defaults to the bundled list.
        """
        cleaned = [normalize_word(w) for w in (words if words is not None else DEFAULT_WORDS) if w.strip()]
        self.words: list[str] = list(dict.fromkeys(cleaned)) or list(FALLBACK_WORDS)

    @classmethod
    def from_file(cls, file_path: str | Path) -> WordBank:
        """Load a dictionary from a text file (one word per line).

        An unreadable or empty file falls back to a tiny built-in list so a
        game can always start.

        Args:
            file_path: Path to the text file containing words.

        Returns:
            The loaded word bank.
        """
        path = Path(file_path)
        try:
            with path.open(encoding="utf-8") as f:
                words = [line.strip() for line in f if line.strip()]
        except OSError as e:
            logger.error("Failed to load dictionary, using fallback words", path=str(path), error=str(e))
            return cls(list(FALLBACK_WORDS))

        if not words:
            logger.warning("Dictionary file is empty, using fallback words", path=str(path))
            return cls(list(FALLBACK_WORDS))

        logger.info("Dictionary loaded", path=str(path), word_count=len(words))
        return cls(words)

    def random_word(self) -> str:
        """Pick one random word."""
        return random.choice(self.words)

    def random_words(self, count: int) -> list[str]:
        """Pick ``count`` random words, distinct while the dictionary allows it.

        Args:
            count: Number of words to return.

        Returns:
            The selected words.
        """
        if count <= 0:
            return []
        if count <= len(self.words):
            return random.sample(self.words, count)
        return [random.choice(self.words) for _ in range(count)]

    def __len__(self) -> int:
        return len(self.words)


class ThemedWordPool:
    """Per-game pool of theme words.

    The pool is filled once when the game starts and topped up on demand. Any
    provider failure, including an answer with fewer than half the requested
    words, degrades to dictionary words.
    """

    def __init__(self, theme: str, fallback: WordBank, provider: ThemeWordProvider | None = None) -> None:
        """Initialize the pool.

        Args:
            theme: Theme words are generated for.
            fallback: Dictionary used when the provider fails or is missing.
            provider: AI theme-word provider. Dictionary only when None.
        """
        self.theme = theme
        self.fallback = fallback
        self.provider = provider
        self._words: list[str] = []

    async def prepare(self, count: int) -> None:
        """Fill the pool ahead of the first turn.

        Args:
            count: Number of words to request.
        """
        words = await self._generate(count)
        if not words:
            words = self.fallback.random_words(count)
        random.shuffle(words)
        self._words = words
        logger.info("Themed word pool prepared", theme=self.theme, word_count=len(self._words))

    async def take(self, count: int) -> list[str]:
        """Draw ``count`` words from the pool, topping it up when it runs low.

        Args:
            count: Number of words needed.

        Returns:
            Exactly ``count`` words.
        """
        if len(self._words) < count:
            extra = await self._generate(count * 2)
            random.shuffle(extra)
            self._words.extend(extra)
        if len(self._words) < count:
            self._words.extend(self.fallback.random_words(count - len(self._words)))
        taken, self._words = self._words[:count], self._words[count:]
        return taken

    async def _generate(self, count: int) -> list[str]:
        if self.provider is None or not self.theme:
            return []
        try:
            words = await self.provider.generate(self.theme, count)
            unique = list(dict.fromkeys(normalize_word(w) for w in words if w and w.strip()))
            if len(unique) < math.ceil(count * MIN_PROVIDER_YIELD):
                raise ThemeProviderError(self.theme, f"only {len(unique)} of {count} words returned")
        except Exception as e:  # noqa: BLE001
            logger.warning("Theme word generation failed, using dictionary", theme=self.theme, error=str(e))
            return []
        return unique

    def __len__(self) -> int:
        return len(self._words)
