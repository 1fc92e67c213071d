"""Seeded pseudo-random source (mulberry32) shared by every stochastic path"""

import math
from typing import Callable, Sequence, TypeVar, Union

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, result kept as unsigned"""
    return (a * b) & _MASK32


def hash_seed(seed: str) -> int:
    """
    Hash a string seed into a non-negative 32-bit integer.

    Works on UTF-16 code units so "é" and emoji hash the same way across
    implementations. The running hash is wrapped to signed 32 bits at each
    step and the absolute value of the result is the seed.
    """
    data = seed.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + code) & _MASK32
    if value & 0x80000000:
        value -= _TWO_POW_32
    return abs(value)


def round_half_up(value: float) -> int:
    """Round .5 towards positive infinity"""
    return math.floor(value + 0.5)


def to_base36(value: int) -> str:
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return sign + "".join(reversed(out))


class SeededRandom:
    """
    Deterministic float/int/choice stream.

    Same seed, same sequence. Not thread-safe: every call mutates state.
    """

    def __init__(self, seed: Union[str, int, float]):
        if isinstance(seed, str):
            self.state = hash_seed(seed)
        else:
            self.state = int(seed) & _MASK32

    def next(self) -> float:
        """Next float in [0, 1)"""
        self.state = (self.state + _INCREMENT) & _MASK32
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32

    def next_int(self, min_value: int, max_value: int) -> int:
        """Integer in [min_value, max_value], both inclusive"""
        return math.floor(self.next() * (max_value - min_value + 1)) + min_value

    def next_with_variance(self, base: float, variance_percent: float) -> int:
        """base +/- variance_percent, rounded to an integer"""
        factor = 1 + ((self.next() * 2 - 1) * variance_percent) / 100
        return round_half_up(base * factor)

    def next_boolean(self, probability: float = 0.5) -> bool:
        return self.next() < probability

    def pick(self, items: Sequence[T]) -> T:
        return items[math.floor(self.next() * len(items))]

    def pick_weighted(self, items: Sequence[T], weight: Callable[[T], float]) -> T:
        """
        Pick an item with probability proportional to its weight.

        Falls back to the last item if rounding leaves a positive remainder.
        """
        total = sum(weight(item) for item in items)
        remaining = self.next() * total
        for item in items:
            remaining -= weight(item)
            if remaining <= 0:
                return item
        return items[-1]
