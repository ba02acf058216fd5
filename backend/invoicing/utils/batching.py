"""Helpers for processing items in bounded groups."""

from collections.abc import Iterable
from itertools import batched
from typing import TypeVar

T = TypeVar("T")


def chunk(items: Iterable[T], size: int) -> list[list[T]]:
    """Split items into consecutive groups of at most ``size``."""
    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    return [list(group) for group in batched(items, size)]
