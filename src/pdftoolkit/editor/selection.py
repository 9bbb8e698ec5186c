"""
PdfToolkit - Page Selection

The set of currently selected working page ids.
"""

from collections.abc import Iterable, Iterator


class SelectionSet:
    """Selected page ids.

    Keeps insertion order for stable iteration; callers that need list
    order must order by the working page list instead.
    """

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: dict[str, None] = dict.fromkeys(ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._ids

    def __bool__(self) -> bool:
        return bool(self._ids)

    def toggle(self, page_id: str) -> bool:
        """Flip the selection state of a page.

        Returns:
            True if the page is selected afterwards
        """
        if page_id in self._ids:
            del self._ids[page_id]
            return False
        self._ids[page_id] = None
        return True

    def replace(self, ids: Iterable[str]) -> None:
        self._ids = dict.fromkeys(ids)

    def clear(self) -> None:
        self._ids.clear()

    def select_odd(self, ordered_ids: list[str]) -> None:
        """Select pages at odd 1-based positions (1st, 3rd, ...)."""
        self.replace(ordered_ids[0::2])

    def select_even(self, ordered_ids: list[str]) -> None:
        """Select pages at even 1-based positions (2nd, 4th, ...)."""
        self.replace(ordered_ids[1::2])

    def retain(self, valid_ids: Iterable[str]) -> None:
        """Drop every id that is not in valid_ids."""
        valid = set(valid_ids)
        self._ids = {page_id: None for page_id in self._ids if page_id in valid}

    def in_order(self, ordered_ids: Iterable[str]) -> list[str]:
        """Selected ids sorted by their position in ordered_ids."""
        return [page_id for page_id in ordered_ids if page_id in self._ids]
