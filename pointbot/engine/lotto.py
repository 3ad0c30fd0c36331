"""
pointbot.engine.lotto — Draw Generation & Guess Scoring
========================================================

Pure functions, no Discord or DB I/O.

A guess wins by *position*: digit ``i`` of the guess must equal digit ``i``
of the draw.  With a draw of ``0 6 0 6``::

    1 0 6 9  → 0 matches →       0 points
    1 3 4 6  → 1 match   →     400 points
    6 0 0 6  → 2 matches →   1,000 points
    2 6 0 6  → 3 matches →   5,000 points
    0 6 0 6  → 4 matches → 100,000 points
"""

from __future__ import annotations

import random
import secrets
from collections.abc import Sequence

from pointbot.constants import LOTTO_DIGITS, LOTTO_REWARDS

_SYSTEM_RANDOM = secrets.SystemRandom()


def generate_numbers(rng: random.Random | None = None) -> list[int]:
    """Return ``LOTTO_DIGITS`` independent uniform digits in ``[0, 9]``."""
    source = rng or _SYSTEM_RANDOM
    return [source.randint(0, 9) for _ in range(LOTTO_DIGITS)]


def validate_numbers(numbers: Sequence[int]) -> list[int]:
    """Return *numbers* as a list, or raise ``ValueError`` if malformed."""
    values = list(numbers)
    if len(values) != LOTTO_DIGITS:
        raise ValueError(f"Expected {LOTTO_DIGITS} numbers, got {len(values)}")
    for n in values:
        if not isinstance(n, int) or not 0 <= n <= 9:
            raise ValueError(f"Lotto numbers must be digits 0-9, got {n!r}")
    return values


def count_matches(guess: Sequence[int], draw: Sequence[int]) -> int:
    """Number of positions where ``guess[i] == draw[i]``."""
    return sum(1 for g, d in zip(guess, draw) if g == d)


def reward_for(matched: int) -> int:
    return LOTTO_REWARDS.get(matched, 0)


def score_guess(guess: Sequence[int], draw: Sequence[int]) -> tuple[int, int]:
    """Return ``(matched_count, reward_points)`` for *guess* against *draw*."""
    matched = count_matches(validate_numbers(guess), validate_numbers(draw))
    return matched, reward_for(matched)
