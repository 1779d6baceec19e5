"""Pure transforms over the shared source, job and log collections.

Every function takes a tuple and returns a new tuple; items are matched by
their ``id`` attribute, never by position, so interleaved additions and
removals by other actors survive.
"""

from __future__ import annotations

from typing import Iterable, Protocol, TypeVar


class _Identified(Protocol):
    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=_Identified)


def replace_by_id(items: tuple[T, ...], updated: T) -> tuple[T, ...]:
    """Swap the item sharing ``updated.id``; absent ids leave ``items`` untouched."""

    return tuple(updated if item.id == updated.id else item for item in items)


def remove_by_id(items: tuple[T, ...], item_id: str) -> tuple[T, ...]:
    return tuple(item for item in items if item.id != item_id)


def append_item(items: tuple[T, ...], item: T) -> tuple[T, ...]:
    return (*items, item)


def prepend_capped(items: tuple[T, ...], new_items: Iterable[T], cap: int) -> tuple[T, ...]:
    """Place ``new_items`` before ``items`` and keep only the first ``cap``."""

    if cap <= 0:
        return ()
    return (*new_items, *items)[:cap]


def contains_id(items: Iterable[_Identified], item_id: str) -> bool:
    return any(item.id == item_id for item in items)


__all__ = ["append_item", "contains_id", "prepend_capped", "remove_by_id", "replace_by_id"]
