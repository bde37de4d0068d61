from __future__ import annotations
from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")

def chunks(xs: Sequence[T], n: int) -> Iterator[list[T]]:
    if n <= 0:
        raise ValueError("chunk size must be positive")
    for i in range(0, len(xs), n):
        yield list(xs[i:i+n])
