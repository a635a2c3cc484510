"""Sampling strategies for drawing questions out of a section's remaining pool."""
from __future__ import annotations

import hashlib
import random
from abc import ABC, abstractmethod
from typing import List, Sequence


class SamplingStrategy(ABC):
    @abstractmethod
    def draw(self, candidates: Sequence[str], count: int) -> List[str]:
        """Pick ``count`` distinct ids from ``candidates``. Order is unspecified."""

    def shuffle(self, question_ids: List[str]) -> List[str]:
        return list(question_ids)


class UniformSampler(SamplingStrategy):
    """
    Uniform random selection without replacement.

    An optional seed makes a sampler reproducible (useful for audits and
    demos); by default every draw uses fresh system randomness.
    """

    def __init__(self, seed: str | int | None = None):
        self._rng = random.Random(self._create_seed(seed)) if seed is not None else random.SystemRandom()

    @staticmethod
    def _create_seed(seed: str | int) -> int:
        """Create a reproducible integer seed from string or int."""
        if isinstance(seed, int):
            return seed

        hash_bytes = hashlib.sha256(str(seed).encode()).digest()
        return int.from_bytes(hash_bytes[:8], byteorder="big")

    def draw(self, candidates: Sequence[str], count: int) -> List[str]:
        if count < 0:
            raise ValueError(f"cannot draw a negative number of questions ({count})")
        pool = list(dict.fromkeys(candidates))
        if count > len(pool):
            raise ValueError(f"cannot draw {count} from {len(pool)} candidates")
        return self._rng.sample(pool, count)

    def shuffle(self, question_ids: List[str]) -> List[str]:
        shuffled = list(question_ids)
        self._rng.shuffle(shuffled)
        return shuffled
