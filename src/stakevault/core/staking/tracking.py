"""
Enumeration sets for the stake registry.

Membership is hash-indexed; removal swaps the last member into the freed
slot, so enumeration order is not stable across removals.
"""

from __future__ import annotations

from typing import Generic, Hashable, Iterator, TypeVar

T = TypeVar("T", bound=Hashable)


class TrackedSet(Generic[T]):
    """Set with O(1) insert/remove/contains and indexable enumeration."""

    def __init__(self) -> None:
        self._members: list[T] = []
        self._index: dict[T, int] = {}

    def add(self, member: T) -> bool:
        """Insert ``member`` if absent. Returns True if it was inserted."""
        if member in self._index:
            return False
        self._index[member] = len(self._members)
        self._members.append(member)
        return True

    def remove(self, member: T) -> bool:
        """Remove ``member`` if present. Returns True if it was removed."""
        position = self._index.pop(member, None)
        if position is None:
            return False
        last = self._members.pop()
        if position < len(self._members):
            self._members[position] = last
            self._index[last] = position
        return True

    def values(self) -> list[T]:
        return list(self._members)

    def __contains__(self, member: object) -> bool:
        return member in self._index

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._members))

    def __getitem__(self, position: int) -> T:
        return self._members[position]

    def __repr__(self) -> str:
        return f"TrackedSet(size={len(self._members)})"
