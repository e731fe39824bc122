from __future__ import annotations

from PIL import Image

from ..contracts import PdfLibraryError


class Pypdfium2Renderer:
    """
    Rasterizes PDF pages. Used where a tool needs pixels rather than document
    structure (grayscale conversion).
    """

    def backend_id(self) -> str:
        return "pypdfium2"

    def backend_version(self) -> str | None:
        try:
            import pypdfium2 as pdfium  # type: ignore

            return getattr(pdfium, "__version__", None)
        except Exception:
            return None

    def _require_pdfium(self):
        try:
            import pypdfium2 as pdfium  # type: ignore

            return pdfium
        except ImportError as e:
            raise RuntimeError("Missing dependency: pypdfium2 is required for page rendering.") from e

    def render_pages(self, *, data: bytes, dpi: int, pages: list[int] | None = None) -> list[Image.Image]:
        """
        Render 1-indexed `pages` (default: all, in order) at `dpi` to RGB images.
        """

        pdfium = self._require_pdfium()
        try:
            doc = pdfium.PdfDocument(data)
        except Exception as e:
            raise PdfLibraryError(f"render failed: {e!r}") from e

        try:
            page_count = len(doc)
            if pages is None:
                pages = list(range(1, page_count + 1))
            for page_num in pages:
                if page_num < 1 or page_num > page_count:
                    raise ValueError(f"Page out of range: {page_num} (1..{page_count})")

            scale = dpi / 72.0  # PDF points are 1/72 inch

            rendered: list[Image.Image] = []
            for page_num in pages:
                try:
                    bitmap = doc[page_num - 1].render(scale=scale)
                    rendered.append(bitmap.to_pil().convert("RGB"))
                except Exception as e:
                    raise PdfLibraryError(f"render failed on page {page_num}: {e!r}") from e
            return rendered
        finally:
            doc.close()
