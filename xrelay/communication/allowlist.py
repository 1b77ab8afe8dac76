"""Allow-list of correspondents authorised to talk to the relay."""

from bisect import bisect_left
from typing import Iterable, Iterator


class AllowList:
    """Sorted, read-only set of bare identifiers.

    The same list receives broadcasts, may issue commands and may hold a
    presence subscription. Sorted once here; lookups are binary searches.
    """

    def __init__(self, identifiers: Iterable[str]):
        self._items: tuple[str, ...] = tuple(sorted(set(identifiers)))

    def __contains__(self, identifier: object) -> bool:
        if not isinstance(identifier, str):
            return False
        idx = bisect_left(self._items, identifier)
        return idx < len(self._items) and self._items[idx] == identifier

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"AllowList({list(self._items)!r})"
