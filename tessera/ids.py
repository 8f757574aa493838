"""Identifier allocation shared by the physical streams of one document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AllocatorState:
    """Captured counters, used to resume allocation in the next stream."""

    next_markup_id: int = 1
    structural_position: int = 0


class IdAllocator:
    """Issues inline-markup ids and numbers structural tags.

    A document such as an office package can be made of several streams
    (content, styles) that share one numbering space. Parse them with the same
    instance, or ``snapshot()`` after one stream and build the next allocator
    from that state. Instances are not thread-safe.
    """

    def __init__(self, state: Optional[AllocatorState] = None) -> None:
        state = state or AllocatorState()
        self._next_markup_id = state.next_markup_id
        self._structural_position = state.structural_position

    def next_inline_markup_id(self) -> int:
        markup_id = self._next_markup_id
        self._next_markup_id += 1
        return markup_id

    def current_structural_position(self) -> int:
        return self._structural_position

    def advance_structural_position(self) -> int:
        """Return the current structural position and move past it."""

        position = self._structural_position
        self._structural_position += 1
        return position

    @property
    def inline_markup_counter(self) -> int:
        return self._next_markup_id

    @inline_markup_counter.setter
    def inline_markup_counter(self, value: int) -> None:
        self._next_markup_id = value

    @property
    def structural_position(self) -> int:
        return self._structural_position

    @structural_position.setter
    def structural_position(self, value: int) -> None:
        self._structural_position = value

    def snapshot(self) -> AllocatorState:
        return AllocatorState(
            next_markup_id=self._next_markup_id,
            structural_position=self._structural_position,
        )

    def restore(self, state: AllocatorState) -> None:
        self._next_markup_id = state.next_markup_id
        self._structural_position = state.structural_position
