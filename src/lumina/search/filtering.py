"""Substring filter applied to the cached tool list."""

from __future__ import annotations

from typing import Protocol, Sequence, TypeVar


class Named(Protocol):
    @property
    def name(self) -> str:
        ...


T = TypeVar("T", bound=Named)


def filter_items(query: str, items: Sequence[T]) -> list[T]:
    """Return the items whose lower-cased name contains the lower-cased ``query``.

    A blank query (empty or whitespace only) matches everything. Surrounding
    whitespace in the query is ignored. The result keeps the input order; no
    ranking is applied.
    """

    needle = query.strip().lower()
    if not needle:
        return list(items)
    return [item for item in items if needle in item.name.lower()]


__all__ = ["Named", "filter_items"]
