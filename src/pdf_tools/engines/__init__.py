from .base import PdfDocumentEngine
from .pypdf_engine import PypdfDocument, PypdfEngine
from .pypdfium2_render import Pypdfium2Renderer

__all__ = ["PdfDocumentEngine", "PypdfDocument", "PypdfEngine", "Pypdfium2Renderer"]
