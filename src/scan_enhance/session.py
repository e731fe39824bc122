from __future__ import annotations

import logging
from typing import Iterable, Literal

from pdf_tools.engines import PdfDocumentEngine

from .contracts import ScannedPage
from .module import assemble_pdf

log = logging.getLogger(__name__)


class ScanSession:
    """
    Ordered list of scanned pages between capture and PDF assembly.

    Pages can be appended, removed by id, nudged up or down, or cleared.
    List order is PDF page order.
    """

    def __init__(self, pages: Iterable[ScannedPage] = ()) -> None:
        self._pages: list[ScannedPage] = []
        self.add_pages(pages)

    @property
    def pages(self) -> list[ScannedPage]:
        return list(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def add_pages(self, pages: Iterable[ScannedPage]) -> None:
        known = {p.page_id for p in self._pages}
        for page in pages:
            if page.page_id in known:
                raise ValueError(f"duplicate page_id: {page.page_id}")
            known.add(page.page_id)
            self._pages.append(page)

    def remove(self, page_id: str) -> bool:
        for i, page in enumerate(self._pages):
            if page.page_id == page_id:
                del self._pages[i]
                return True
        return False

    def move(self, index: int, direction: Literal["up", "down"]) -> bool:
        """
        Swap the page at `index` with its neighbour. Moving past either end
        (or from an invalid index) does nothing and returns False.
        """

        if direction not in ("up", "down"):
            raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
        target = index - 1 if direction == "up" else index + 1
        if not (0 <= index < len(self._pages)) or not (0 <= target < len(self._pages)):
            return False
        self._pages[index], self._pages[target] = self._pages[target], self._pages[index]
        return True

    def clear(self) -> None:
        self._pages.clear()

    def build_pdf(self, engine: PdfDocumentEngine | None = None) -> bytes:
        log.info("building PDF from %d page(s)", len(self._pages))
        return assemble_pdf(self._pages, engine=engine)
