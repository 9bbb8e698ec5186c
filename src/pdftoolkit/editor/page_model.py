"""
PdfToolkit - Page Edit Model

Data models for the page-edit session: the immutable source document,
the working pages derived from it, and the ordered working page list.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from pdftoolkit.constants import VALID_ROTATIONS


class RotationDirection(str, Enum):
    """Direction of a rotate action."""

    CLOCKWISE = "cw"
    COUNTER_CLOCKWISE = "ccw"


def normalize_rotation(degrees: int) -> int:
    """Normalize an angle to one of 0, 90, 180 or 270.

    Angles that are not a multiple of 90 are rounded to the nearest valid one.
    """
    rotation = degrees % 360
    if rotation not in VALID_ROTATIONS:
        rotation = round(rotation / 90) * 90 % 360
    return rotation


def effective_rotation(native_rotation: int, rotation_delta: int) -> int:
    """Compose the stored rotation of a page with the editor's delta.

    This is the only place rotations are combined; previews and export
    both call it.

    Args:
        native_rotation: Rotation stored in the source document
        rotation_delta: Rotation accumulated in the editor

    Returns:
        Final rotation in degrees (0, 90, 180 or 270)
    """
    return (native_rotation + rotation_delta) % 360


def rotation_step(direction: RotationDirection | str) -> int:
    """Degrees added by one rotate action in the given direction.

    Raises:
        ValueError: If direction is not "cw" or "ccw"
    """
    if RotationDirection(direction) is RotationDirection.CLOCKWISE:
        return 90
    return 270


@dataclass(frozen=True)
class SourceDocument:
    """The originally loaded document. Never modified after load.

    Attributes:
        data: Raw document bytes
        page_count: Number of pages reported by the decoder
        native_rotations: Stored /Rotate of each page (0, 90, 180, 270)
        page_sizes: (width, height) in points of each page, if known
        handle: Opaque decoder handle used by the encoder to copy pages
        name: Display name of the file
    """

    data: bytes
    page_count: int
    native_rotations: tuple[int, ...]
    page_sizes: tuple[tuple[float, float], ...] = ()
    handle: Any = field(default=None, compare=False, repr=False)
    name: str = "document.pdf"

    def __post_init__(self) -> None:
        if self.page_count < 0:
            raise ValueError(f"page_count must be >= 0, got {self.page_count}")
        if len(self.native_rotations) != self.page_count:
            raise ValueError(
                f"Expected {self.page_count} native rotations, got {len(self.native_rotations)}"
            )
        if self.page_sizes and len(self.page_sizes) != self.page_count:
            raise ValueError(
                f"Expected {self.page_count} page sizes, got {len(self.page_sizes)}"
            )
        for rotation in self.native_rotations:
            if rotation not in VALID_ROTATIONS:
                raise ValueError(f"Invalid native rotation: {rotation}")

    def is_valid_index(self, source_index: int) -> bool:
        return 0 <= source_index < self.page_count

    def native_rotation(self, source_index: int) -> int:
        """Get the stored rotation of a source page.

        Raises:
            IndexError: If source_index is out of range
        """
        if not self.is_valid_index(source_index):
            raise IndexError(
                f"Source page {source_index} out of range (document has {self.page_count})"
            )
        return self.native_rotations[source_index]

    def page_size(self, source_index: int) -> tuple[float, float] | None:
        """Get the (width, height) of a source page, or None if unknown."""
        if not self.page_sizes:
            return None
        if not self.is_valid_index(source_index):
            raise IndexError(
                f"Source page {source_index} out of range (document has {self.page_count})"
            )
        return self.page_sizes[source_index]


@dataclass(frozen=True)
class WorkingPage:
    """One page of the edited view.

    Attributes:
        id: Stable identifier, unique within a session and never reused
        source_index: Index of the page in the SourceDocument (0-based)
        rotation_delta: Editor rotation added on top of the native rotation
    """

    id: str
    source_index: int
    rotation_delta: int = 0

    def __post_init__(self) -> None:
        if self.rotation_delta not in VALID_ROTATIONS:
            raise ValueError(f"Invalid rotation delta: {self.rotation_delta}")
        if self.source_index < 0:
            raise ValueError(f"Invalid source index: {self.source_index}")

    def rotated(self, direction: RotationDirection | str) -> "WorkingPage":
        """Return a copy rotated one step in the given direction."""
        return replace(
            self,
            rotation_delta=(self.rotation_delta + rotation_step(direction)) % 360,
        )

    def copy_with_id(self, page_id: str) -> "WorkingPage":
        """Return a copy of this page under a new identifier."""
        return replace(self, id=page_id)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary representation of the page
        """
        return {
            "id": self.id,
            "source_index": self.source_index,
            "rotation_delta": self.rotation_delta,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkingPage":
        """Create a WorkingPage from a dictionary.

        Args:
            data: Dictionary with page data

        Returns:
            New WorkingPage instance
        """
        return cls(
            id=data["id"],
            source_index=data["source_index"],
            rotation_delta=normalize_rotation(data.get("rotation_delta", 0)),
        )


Snapshot = tuple[WorkingPage, ...]


class WorkingPageList:
    """Ordered sequence of working pages. Order is display and export order.

    Pages are immutable, so a snapshot is a plain tuple of the current pages.
    """

    def __init__(self, pages: Iterable[WorkingPage] = ()) -> None:
        self._pages: list[WorkingPage] = list(pages)
        self._check_unique_ids(self._pages)

    @classmethod
    def from_source(
        cls, source: SourceDocument, next_id: Callable[[], str]
    ) -> "WorkingPageList":
        """Create one page per source page, in natural order, unrotated."""
        return cls(WorkingPage(id=next_id(), source_index=i) for i in range(source.page_count))

    @staticmethod
    def _check_unique_ids(pages: list[WorkingPage]) -> None:
        seen: set[str] = set()
        for page in pages:
            if page.id in seen:
                raise ValueError(f"Duplicate page id: {page.id}")
            seen.add(page.id)

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[WorkingPage]:
        return iter(self._pages)

    def __getitem__(self, position: int) -> WorkingPage:
        return self._pages[position]

    def __contains__(self, page_id: object) -> bool:
        return any(page.id == page_id for page in self._pages)

    def ids(self) -> list[str]:
        """Get page ids in list order."""
        return [page.id for page in self._pages]

    def index_of(self, page_id: str) -> int:
        """Get the position of a page.

        Raises:
            KeyError: If no page has this id
        """
        for position, page in enumerate(self._pages):
            if page.id == page_id:
                return position
        raise KeyError(page_id)

    def get(self, page_id: str) -> WorkingPage | None:
        for page in self._pages:
            if page.id == page_id:
                return page
        return None

    def snapshot(self) -> Snapshot:
        """Capture the current order and rotations."""
        return tuple(self._pages)

    def validate(self, source: SourceDocument) -> None:
        """Check list invariants against the source document.

        Raises:
            ValueError: On a duplicate id or an out-of-range source index
        """
        self._check_unique_ids(self._pages)
        for page in self._pages:
            if not source.is_valid_index(page.source_index):
                raise ValueError(
                    f"Page {page.id} references source page {page.source_index}, "
                    f"document has {source.page_count}"
                )
