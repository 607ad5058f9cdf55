"""64-bit pseudo-random generators: SplitMix64 and xoshiro256**."""

from __future__ import annotations

from collections.abc import Iterable

_MASK64 = (1 << 64) - 1


def _rotl(x: int, k: int) -> int:
    return ((x << k) | (x >> (64 - k))) & _MASK64


class SplitMix64:
    """SplitMix64 generator; calling the instance yields the next 64-bit value."""

    MIN = 0
    MAX = _MASK64

    def __init__(self, state: int) -> None:
        self._s = state & _MASK64

    def __call__(self) -> int:
        self._s = (self._s + 0x9E3779B97F4A7C15) & _MASK64
        z = self._s
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK64
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK64
        return z ^ (z >> 31)


class Xoshiro256StarStar:
    """xoshiro256** generator seeded with four 64-bit words."""

    MIN = 0
    MAX = _MASK64

    def __init__(self, state: Iterable[int]) -> None:
        words = [w & _MASK64 for w in state]
        if len(words) != 4:
            raise ValueError("xoshiro256** state needs exactly 4 words")
        self._s = words

    def __call__(self) -> int:
        s = self._s
        result = (_rotl((s[1] * 5) & _MASK64, 7) * 9) & _MASK64
        t = (s[1] << 17) & _MASK64
        s[2] ^= s[0]
        s[3] ^= s[1]
        s[1] ^= s[2]
        s[0] ^= s[3]
        s[2] ^= t
        s[3] = _rotl(s[3], 45)
        return result