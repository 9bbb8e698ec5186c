"""
PdfToolkit - Page Edit Session

The page-edit session: owns the source document, the working page list,
the selection and the undo/redo history, and enforces their invariants.

All mutating operations are synchronous and all-or-nothing: the new page
list is built and validated before it replaces the current one.
"""

import itertools
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from pdftoolkit.config import DEFAULT_DOCUMENT_NAME, HISTORY_LIMIT, PAGE_ID_PREFIX
from pdftoolkit.editor.history import HistoryStack
from pdftoolkit.editor.page_model import (
    RotationDirection,
    SourceDocument,
    WorkingPage,
    WorkingPageList,
    effective_rotation,
    rotation_step,
)
from pdftoolkit.editor.selection import SelectionSet
from pdftoolkit.utils.exceptions import DecodeError, OperationRejected
from pdftoolkit.utils.logger import logger

if TYPE_CHECKING:
    from pdftoolkit.services.pdf_backend import PageDecoder


class SessionState(Enum):
    """Lifecycle state of an edit session."""

    EMPTY = auto()
    LOADING = auto()
    READY = auto()
    EXPORTING = auto()


_BUSY_STATES = (SessionState.LOADING, SessionState.EXPORTING)


@dataclass(frozen=True)
class ExportPlan:
    """Immutable capture of what an export has to produce."""

    source: SourceDocument
    pages: tuple[WorkingPage, ...]


class EditSession:
    """Non-destructive page editor over one source document.

    Args:
        decoder: Decoder used by load_bytes (defaults to the pikepdf backend)
        history_limit: Capacity of each of the undo and redo stacks
        allow_delete_all: Whether delete_selected may empty the page list
    """

    def __init__(
        self,
        decoder: "PageDecoder | None" = None,
        *,
        history_limit: int = HISTORY_LIMIT,
        allow_delete_all: bool = True,
    ) -> None:
        if decoder is None:
            from pdftoolkit.services.pdf_backend import PikepdfBackend

            decoder = PikepdfBackend()

        self._decoder = decoder
        self.allow_delete_all = allow_delete_all

        self._lock = threading.RLock()
        self._state = SessionState.EMPTY
        self._source: SourceDocument | None = None
        # Handle decoded by load_bytes, released when the source is replaced
        self._owned_handle: Any = None
        self._pages = WorkingPageList()
        self._selection = SelectionSet()
        self._history = HistoryStack(history_limit)
        self._id_counter = itertools.count(1)

    # -- Read-only views ----------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state in _BUSY_STATES

    @property
    def source(self) -> SourceDocument | None:
        return self._source

    @property
    def pages(self) -> tuple[WorkingPage, ...]:
        """Current working pages in display order."""
        return self._pages.snapshot()

    @property
    def page_ids(self) -> list[str]:
        return self._pages.ids()

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def selection(self) -> tuple[str, ...]:
        """Selected ids in page list order."""
        return tuple(self._selection.in_order(self._pages.ids()))

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def selected_pages(self) -> list[WorkingPage]:
        """Selected working pages in page list order."""
        return [page for page in self._pages if page.id in self._selection]

    def effective_rotation_of(self, page_id: str) -> int:
        """Final rotation of a working page (native + editor delta).

        Raises:
            KeyError: If no page has this id
        """
        page = self._pages.get(page_id)
        if page is None or self._source is None:
            raise KeyError(page_id)
        return effective_rotation(
            self._source.native_rotation(page.source_index), page.rotation_delta
        )

    # -- Internal helpers ---------------------------------------------------

    def _next_id(self) -> str:
        return f"{PAGE_ID_PREFIX}{next(self._id_counter)}"

    def _require_ready(self, operation: str) -> None:
        if self._state is SessionState.EMPTY:
            raise OperationRejected(operation, OperationRejected.NOT_LOADED)
        if self._state in _BUSY_STATES:
            raise OperationRejected(operation, OperationRejected.BUSY)

    def _commit(self, pages: list[WorkingPage]) -> None:
        """Validate a new page list and install it as a history-logged change."""
        new_list = WorkingPageList(pages)
        new_list.validate(self._source)

        self._history.record(self._pages.snapshot())
        self._pages = new_list
        self._selection.retain(new_list.ids())

    def _install(self, source: SourceDocument, owned_handle: Any = None) -> None:
        previous = self._owned_handle
        self._source = source
        self._owned_handle = owned_handle
        if previous is not None and previous is not owned_handle:
            try:
                self._decoder.release(previous)
            except Exception as e:
                logger.warning(f"Could not release previous document: {e}")
        self._pages = WorkingPageList.from_source(source, self._next_id)
        self._selection.clear()
        self._history.clear()
        self._state = SessionState.READY
        logger.info(f"Loaded '{source.name}' with {source.page_count} page(s)")

    # -- Loading ------------------------------------------------------------

    def load(self, source: SourceDocument) -> None:
        """Replace the session's document and reset all edit state.

        Raises:
            OperationRejected: If a load or export is in progress
        """
        with self._lock:
            if self._state in _BUSY_STATES:
                raise OperationRejected("load", OperationRejected.BUSY)
            self._install(source)

    def load_bytes(self, data: bytes, name: str = DEFAULT_DOCUMENT_NAME) -> SourceDocument:
        """Decode document bytes and load them into the session.

        On failure the session keeps whatever it had before.

        Args:
            data: Raw document bytes
            name: Display name of the file

        Returns:
            The new SourceDocument

        Raises:
            OperationRejected: If a load or export is in progress
            DecodeError: If the decoder cannot parse the data
        """
        with self._lock:
            if self._state in _BUSY_STATES:
                raise OperationRejected("load", OperationRejected.BUSY)
            previous_state = self._state
            self._state = SessionState.LOADING

        try:
            data = bytes(data)
            decoded = self._decoder.decode(data)
            source = SourceDocument(
                data=data,
                page_count=decoded.page_count,
                native_rotations=tuple(decoded.native_rotations),
                page_sizes=tuple(decoded.page_sizes),
                handle=decoded.handle,
                name=name,
            )
        except DecodeError as e:
            with self._lock:
                self._state = previous_state
            logger.error(f"Failed to load '{name}': {e}")
            raise
        except Exception as e:
            with self._lock:
                self._state = previous_state
            logger.error(f"Failed to load '{name}': {e}")
            raise DecodeError(str(e), name=name) from e

        with self._lock:
            self._install(source, owned_handle=decoded.handle)
        return source

    # -- Ordering -----------------------------------------------------------

    def reorder(self, new_order: Iterable[str]) -> bool:
        """Re-sequence the pages to match a permutation of the current ids.

        Returns:
            True if the order changed, False if it was already in this order

        Raises:
            OperationRejected: If the ids are not exactly the current ids
        """
        new_order = list(new_order)
        with self._lock:
            self._require_ready("reorder")
            current_ids = self._pages.ids()
            if len(new_order) != len(current_ids) or set(new_order) != set(current_ids):
                logger.warning("Rejected reorder: ids do not match the current pages")
                raise OperationRejected("reorder", "ids do not match the current pages")
            if new_order == current_ids:
                return False

            by_id = {page.id: page for page in self._pages}
            self._commit([by_id[page_id] for page_id in new_order])
            logger.info(f"Reordered {len(new_order)} page(s)")
            return True

    def move_pages(self, page_ids: Iterable[str], target_index: int) -> bool:
        """Move a block of pages so it starts at target_index.

        The moved pages keep their relative order; target_index counts
        positions among the pages that are not moved.

        Returns:
            True if the order changed
        """
        with self._lock:
            self._require_ready("move_pages")
            moving_ids = set(page_ids)
            unknown = moving_ids.difference(self._pages.ids())
            if unknown:
                raise OperationRejected("move_pages", f"unknown page ids: {sorted(unknown)}")
            if not moving_ids:
                return False

            moving = [page for page in self._pages if page.id in moving_ids]
            rest = [page for page in self._pages if page.id not in moving_ids]
            target_index = max(0, min(target_index, len(rest)))
            new_pages = rest[:target_index] + moving + rest[target_index:]
            return self.reorder(page.id for page in new_pages)

    # -- Selection ----------------------------------------------------------

    def toggle_select(self, page_id: str) -> bool:
        """Flip selection of one page.

        Returns:
            True if the page is selected afterwards
        """
        with self._lock:
            self._require_ready("toggle_select")
            if page_id not in self._pages:
                raise OperationRejected("toggle_select", f"unknown page id: {page_id}")
            return self._selection.toggle(page_id)

    def select_all(self) -> None:
        with self._lock:
            self._require_ready("select_all")
            self._selection.replace(self._pages.ids())

    def deselect_all(self) -> None:
        with self._lock:
            self._require_ready("deselect_all")
            self._selection.clear()

    def select_odd(self) -> None:
        """Select the 1st, 3rd, 5th... page of the current order."""
        with self._lock:
            self._require_ready("select_odd")
            self._selection.select_odd(self._pages.ids())

    def select_even(self) -> None:
        """Select the 2nd, 4th, 6th... page of the current order."""
        with self._lock:
            self._require_ready("select_even")
            self._selection.select_even(self._pages.ids())

    # -- Page edits ---------------------------------------------------------

    def rotate(self, direction: RotationDirection | str) -> bool:
        """Rotate every selected page one step (90° clockwise or counter-clockwise).

        Returns:
            True if pages were rotated, False if nothing is selected
        """
        rotation_step(direction)
        with self._lock:
            self._require_ready("rotate")
            if not self._selection:
                return False

            self._commit(
                [
                    page.rotated(direction) if page.id in self._selection else page
                    for page in self._pages
                ]
            )
            logger.info(
                f"Rotated {len(self._selection)} page(s) by {rotation_step(direction)}°"
            )
            return True

    def delete_selected(self) -> bool:
        """Remove every selected page and clear the selection.

        Returns:
            True if pages were removed, False if nothing is selected

        Raises:
            OperationRejected: If this would remove every page while
                allow_delete_all is False
        """
        with self._lock:
            self._require_ready("delete_selected")
            if not self._selection:
                return False

            remaining = [page for page in self._pages if page.id not in self._selection]
            if not remaining and not self.allow_delete_all:
                raise OperationRejected("delete_selected", "cannot remove all pages")

            removed = len(self._pages) - len(remaining)
            self._commit(remaining)
            self._selection.clear()
            logger.info(f"Deleted {removed} page(s), {len(remaining)} remaining")
            return True

    def duplicate_selected(self, count_per_page: int = 1) -> bool:
        """Insert copies of every selected page right after it.

        Copies keep the source page and rotation of their anchor, get fresh
        ids and are not selected.

        Returns:
            True if pages were added, False if nothing is selected

        Raises:
            ValueError: If count_per_page < 1
        """
        if count_per_page < 1:
            raise ValueError("count_per_page must be >= 1")

        with self._lock:
            self._require_ready("duplicate_selected")
            if not self._selection:
                return False

            new_pages: list[WorkingPage] = []
            for page in self._pages:
                new_pages.append(page)
                if page.id in self._selection:
                    new_pages.extend(
                        page.copy_with_id(self._next_id()) for _ in range(count_per_page)
                    )

            self._commit(new_pages)
            logger.info(
                f"Duplicated {len(self._selection)} page(s) x{count_per_page}, "
                f"{len(new_pages)} total"
            )
            return True

    # -- History ------------------------------------------------------------

    def undo(self) -> bool:
        """Restore the page list as it was before the last operation.

        Returns:
            True if a step was undone
        """
        with self._lock:
            self._require_ready("undo")
            previous = self._history.undo(self._pages.snapshot())
            if previous is None:
                return False
            self._pages = WorkingPageList(previous)
            self._selection.clear()
            logger.debug(f"Undo: {len(self._pages)} page(s)")
            return True

    def redo(self) -> bool:
        """Re-apply the last undone operation.

        Returns:
            True if a step was redone
        """
        with self._lock:
            self._require_ready("redo")
            following = self._history.redo(self._pages.snapshot())
            if following is None:
                return False
            self._pages = WorkingPageList(following)
            self._selection.clear()
            logger.debug(f"Redo: {len(self._pages)} page(s)")
            return True

    # -- Export hand-off ----------------------------------------------------

    def begin_export(self, selected_only: bool = False) -> ExportPlan:
        """Enter the EXPORTING state and capture the pages to write.

        Every begin_export must be paired with finish_export.

        Raises:
            OperationRejected: If nothing is loaded or the session is busy
        """
        operation = "export_selected_only" if selected_only else "export"
        with self._lock:
            self._require_ready(operation)
            pages = self.selected_pages() if selected_only else list(self._pages)
            self._state = SessionState.EXPORTING
            return ExportPlan(source=self._source, pages=tuple(pages))

    def finish_export(self) -> None:
        """Leave the EXPORTING state."""
        with self._lock:
            if self._state is SessionState.EXPORTING:
                self._state = SessionState.READY
