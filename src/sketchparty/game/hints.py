"""Hint rendering and guess matching for guessing modes."""

from __future__ import annotations

import random
import re
import unicodedata
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

_LETTER = re.compile(r"[a-zA-Z0-9À-ÿ]")


def is_hintable(char: str) -> bool:
    """Check whether a character is hidden behind an underscore in hints."""
    return bool(_LETTER.fullmatch(char))


def hintable_indices(word: str) -> set[int]:
    """Get the indices of ``word`` that can be revealed as hints.

    Spaces, hyphens, and other punctuation are always visible and never count
    as revealable positions.
    """
    return {i for i, char in enumerate(word) if is_hintable(char)}


def render_hint(word: str, revealed: Iterable[int] = ()) -> str:
    """Render the masked form of ``word``.

    Revealed or non-letter characters are shown as-is, every other character
    becomes ``_``; characters are separated by single spaces.

    Example:
        >>> render_hint("CHAT", {0, 2})
        'C _ A _'

    Args:
        word: The secret word.
        revealed: Indices to show.

    Returns:
        The masked word.
    """
    shown = set(revealed)
    return " ".join(
        char if (not is_hintable(char) or i in shown) else "_" for i, char in enumerate(word)
    ).strip()


def pick_hidden_index(word: str, revealed: Iterable[int], rng: random.Random | None = None) -> int | None:
    """Choose a random hintable index that is not yet revealed.

    Returns:
        The index, or None when every letter is already shown.
    """
    candidates = sorted(hintable_indices(word) - set(revealed))
    if not candidates:
        return None
    return (rng or random).choice(candidates)


def strip_accents(text: str) -> str:
    """Remove diacritics (``É`` becomes ``E``)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_guess(text: str, *, fuzzy: bool = False) -> str:
    """Normalize a guess or word for comparison.

    Args:
        text: Raw text.
        fuzzy: Also strip diacritics.

    Returns:
        Trimmed, uppercased text.
    """
    normalized = text.strip().upper()
    return strip_accents(normalized) if fuzzy else normalized


def is_correct_guess(word: str, guess: str, *, fuzzy: bool = False) -> bool:
    """Check a chat message against the current word.

    Args:
        word: The secret word.
        guess: The chat message.
        fuzzy: Accept guesses differing only in diacritics.

    Returns:
        True if the guess matches.
    """
    if not guess.strip():
        return False
    return normalize_guess(guess, fuzzy=fuzzy) == normalize_guess(word, fuzzy=fuzzy)
