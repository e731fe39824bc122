from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..contracts import PdfMetadata, RectStamp, TextStamp


class PdfDocumentEngine(ABC):
    """
    PDF document capability used by every page tool and by scan assembly.

    Documents are opaque handles owned by the engine that created them.
    Engines must:
    - surface every backend failure as PdfLibraryError
    - never return bytes from a save that did not complete
    - treat page indices as 0-based
    """

    @abstractmethod
    def backend_id(self) -> str:
        raise NotImplementedError

    def backend_version(self) -> str | None:
        return None

    @abstractmethod
    def create(self) -> Any:
        raise NotImplementedError

    @abstractmethod
    def load(self, data: bytes) -> Any:
        raise NotImplementedError

    @abstractmethod
    def save(self, doc: Any) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def page_count(self, doc: Any) -> int:
        raise NotImplementedError

    @abstractmethod
    def page_size(self, doc: Any, index: int) -> tuple[float, float]:
        """(width, height) in points of the page media box."""
        raise NotImplementedError

    @abstractmethod
    def visible_size(self, doc: Any, index: int) -> tuple[float, float]:
        """(width, height) in points of the page crop box, the area a viewer shows."""
        raise NotImplementedError

    @abstractmethod
    def copy_pages(self, dst: Any, src: Any, indices: list[int]) -> None:
        """
        Append copies of `src` pages to `dst`, in the order given.

        Repeated indices produce independent page copies.
        """
        raise NotImplementedError

    @abstractmethod
    def insert_blank_page(self, doc: Any, index: int, size: tuple[float, float]) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_page(self, doc: Any, index: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_rotation(self, doc: Any, index: int) -> int:
        raise NotImplementedError

    @abstractmethod
    def set_rotation(self, doc: Any, index: int, degrees: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def draw_text(self, doc: Any, index: int, stamp: TextStamp) -> None:
        raise NotImplementedError

    @abstractmethod
    def draw_rectangle(self, doc: Any, index: int, stamp: RectStamp) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_crop_box(self, doc: Any, index: int, box: tuple[float, float, float, float]) -> None:
        """Set media and crop box to (left, bottom, right, top)."""
        raise NotImplementedError

    @abstractmethod
    def compress(self, doc: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_metadata(self, doc: Any, metadata: PdfMetadata) -> None:
        raise NotImplementedError

    @abstractmethod
    def read_metadata(self, doc: Any) -> PdfMetadata:
        raise NotImplementedError

    @abstractmethod
    def add_image_page(
        self, doc: Any, image_bytes: bytes, size: tuple[float, float] | None = None
    ) -> None:
        """
        Append a page showing the image edge to edge.

        Without `size`, the page is the image pixel size in points.
        """
        raise NotImplementedError
