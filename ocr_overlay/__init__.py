"""Searchable PDFs from scanned page images.

Each scan becomes one PDF page showing the image, with the text found by an
external OCR engine (Tesseract or Cuneiform, via hOCR) laid over it as
invisible, correctly sized and positioned text.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
