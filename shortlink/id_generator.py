"""Short id generation.

Ids are drawn uniformly from a fixed alphabet with nanoid's masking method.
By default the random bytes come from ``os.urandom`` (``nanoid.generate``).
Passing a ``seed`` swaps the byte source for a seeded ``random.Random`` so
the sequence of ids is reproducible, which is what tests rely on.

There is no collision probe: uniqueness is left to the primary key at insert
time (36**7 ≈ 7.8e10 possible ids with the default settings).
"""

import random

from nanoid import generate
from nanoid.method import method

from shortlink.config import Settings

__all__ = ["ShortIdGenerator"]


class ShortIdGenerator:
    def __init__(self, alphabet: str, length: int, seed: int | None = None) -> None:
        if len(set(alphabet)) < 2 or len(set(alphabet)) != len(alphabet):
            raise ValueError("alphabet must contain at least two distinct, non-repeated characters")
        if length < 1:
            raise ValueError(f"length must be a positive integer, got {length!r}")
        self.alphabet = alphabet
        self.length = length
        self._rng = random.Random(seed) if seed is not None else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShortIdGenerator":
        return cls(settings.SHORT_ID_ALPHABET, settings.SHORT_ID_LENGTH, settings.SHORT_ID_SEED)

    def _seeded_bytes(self, size: int) -> bytearray:
        return bytearray(self._rng.randbytes(size))

    def __call__(self) -> str:
        if self._rng is None:
            return generate(self.alphabet, self.length)
        return method(self._seeded_bytes, self.alphabet, self.length)
