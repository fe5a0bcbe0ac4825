"""Deterministic randomness for humanised patterns.

Patterns that vary pitch choice or timing draw from a :class:`SeededRandom`
instead of the global :mod:`random` module. The generator is a plain linear
congruential generator computed with exact integer arithmetic, so the same
seed produces the same sequence on every platform. The composer seeds one
generator per section from the section's effective start time (see
:func:`section_seed`), which keeps repeated runs on identical input
byte-for-byte identical.
"""

from __future__ import annotations

import math
from typing import MutableSequence, Sequence, TypeVar

__all__ = ["SeededRandom", "section_seed"]

T = TypeVar("T")

_MULTIPLIER = 1103515245
_INCREMENT = 12345
_MODULUS = 2 ** 31


def section_seed(start_time: float) -> int:
    """Return the seed for a section starting at ``start_time`` seconds."""

    return math.floor(start_time * 1000) % 1000


class SeededRandom:
    """Small reproducible random source.

    Instances are callable so they can be passed wherever a zero-argument
    ``random()`` function is expected, e.g. to
    :func:`~pattern_composer.strategies.humanize_value`.

    >>> rng = SeededRandom(0)
    >>> rng() == 12345 / 2 ** 31
    True
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed) % _MODULUS

    def random(self) -> float:
        """Advance the generator and return a float in ``[0, 1)``."""

        self.seed = (self.seed * _MULTIPLIER + _INCREMENT) % _MODULUS
        return self.seed / _MODULUS

    __call__ = random

    def randint_below(self, n: int) -> int:
        """Return an integer in ``[0, n)``."""

        if n <= 0:
            raise ValueError("n must be positive")
        return int(self.random() * n)

    def choice(self, seq: Sequence[T]) -> T:
        """Return a random element of the non-empty ``seq``."""

        if not seq:
            raise IndexError("cannot choose from an empty sequence")
        return seq[self.randint_below(len(seq))]

    def shuffle(self, items: MutableSequence[T]) -> None:
        """Shuffle ``items`` in place (Fisher-Yates)."""

        for i in range(len(items) - 1, 0, -1):
            j = self.randint_below(i + 1)
            items[i], items[j] = items[j], items[i]

