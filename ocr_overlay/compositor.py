from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import fitz  # PyMuPDF

from .types import PendingPlacement

INVISIBLE = 3  # PDF text render mode: neither fill nor stroke
FILL = 0

DEBUG_TEXT_COLOR = (1, 0, 0)
GRID_COLOR = (0, 0.5, 0)


@dataclass(frozen=True)
class OverlayCompositor:
    """Writes resolved geometry onto PyMuPDF pages. Makes no layout decisions."""

    font: str  # PyMuPDF Base-14 code, e.g. "hebo"
    debug: bool = False

    def new_page(self, doc: fitz.Document, width: float, height: float) -> fitz.Page:
        return doc.new_page(width=width, height=height)

    def place_background(self, page: fitz.Page, image_path: str | Path) -> None:
        page.insert_image(page.rect, filename=str(image_path))

    def draw_grid(self, page: fitz.Page, spacing: int = 72) -> None:
        """Label every inch with its PDF coordinate, for checking alignment."""
        w, h = page.rect.width, page.rect.height
        for x in range(0, int(w), spacing):
            for y in range(0, int(h), spacing):
                page.insert_text(
                    fitz.Point(x, h - y),
                    f"[{x},{y}]",
                    fontsize=5,
                    fontname=self.font,
                    color=GRID_COLOR,
                )

    def place_text(self, page: fitz.Page, placements: list[PendingPlacement]) -> int:
        """Write every run of every placement; returns the number of runs written.

        Coordinates arrive in PDF space (origin bottom-left) and are flipped
        to PyMuPDF's top-left origin here.
        """
        page_h = page.rect.height
        render_mode = FILL if self.debug else INVISIBLE
        color = DEBUG_TEXT_COLOR if self.debug else None
        placed = 0
        for pl in placements:
            for run in pl.runs:
                x, y = run.bbox.x1, run.bbox.y1
                if pl.angle:
                    # Rotation pivots on the baseline start; centre it in the box.
                    x += run.bbox.width / 2
                page.insert_text(
                    fitz.Point(x, page_h - y),
                    run.text + " ",
                    fontsize=pl.font_size,
                    fontname=self.font,
                    rotate=pl.angle,
                    render_mode=render_mode,
                    color=color,
                )
                run.line.kept.append(run.text)
                placed += 1
        return placed
