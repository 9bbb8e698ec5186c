"""
PdfToolkit - Edit History

Bounded undo/redo stacks of working page list snapshots.
"""

from collections import deque

from pdftoolkit.config import HISTORY_LIMIT
from pdftoolkit.editor.page_model import Snapshot


class HistoryStack:
    """Undo and redo stacks, each keeping at most ``capacity`` snapshots.

    When a stack is full the oldest snapshot is discarded.
    """

    def __init__(self, capacity: int = HISTORY_LIMIT) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._undo: deque[Snapshot] = deque(maxlen=capacity)
        self._redo: deque[Snapshot] = deque(maxlen=capacity)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def record(self, before: Snapshot) -> None:
        """Log the state preceding a mutating operation.

        A new operation invalidates everything that could have been redone.
        """
        self._undo.append(before)
        self._redo.clear()

    def undo(self, current: Snapshot) -> Snapshot | None:
        """Step back one operation.

        Args:
            current: The state being left, kept for redo

        Returns:
            The state to install, or None if there is nothing to undo
        """
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(current)
        return previous

    def redo(self, current: Snapshot) -> Snapshot | None:
        """Re-apply the last undone operation.

        Args:
            current: The state being left, kept for undo

        Returns:
            The state to install, or None if there is nothing to redo
        """
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(current)
        return following

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
