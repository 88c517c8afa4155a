from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .types import BBox, TextRun
from .utils import round1


class BoxMapper(Protocol):
    def map_box(self, box: BBox) -> BBox: ...


@dataclass(frozen=True)
class CoordinateMapper:
    """hOCR pixels (origin top-left) -> PDF points (origin bottom-left)."""

    ocr_width: float
    ocr_height: float
    width: float
    height: float

    def map_x(self, x: float) -> float:
        return round1(x * self.width / self.ocr_width)

    def map_y(self, y: float) -> float:
        return round1(self.height - y * self.height / self.ocr_height)

    def map_box(self, box: BBox) -> BBox:
        # OCR y2 is the lower edge, which becomes the PDF bottom (y1).
        return BBox(self.map_x(box.x1), self.map_y(box.y2), self.map_x(box.x2), self.map_y(box.y1))


@dataclass
class FallbackMapper:
    """Stand-in used when the hOCR page bbox is missing.

    Has no real geometry: every run is stacked at x=10 in a strip ``step``
    points tall, counting down from the top of the page, keeping its pixel
    width. Enough to keep some searchable text on a damaged page.
    """

    height: float
    step: float = 10
    x: float = 10
    _top: float = field(init=False)

    def __post_init__(self) -> None:
        self._top = self.height

    def map_box(self, box: BBox) -> BBox:
        top = self._top
        self._top -= self.step
        return BBox(self.x, round1(top - self.step), round1(self.x + box.width), round1(top))


def build_mapper(page_bbox: BBox | None, width: float, height: float) -> BoxMapper:
    if page_bbox is not None and page_bbox.x2 > 0 and page_bbox.y2 > 0:
        return CoordinateMapper(page_bbox.x2, page_bbox.y2, width, height)
    return FallbackMapper(height)


def map_runs(runs: Iterable[TextRun], mapper: BoxMapper) -> int:
    """Map run boxes in place; runs already mapped are left alone."""
    n = 0
    for run in runs:
        if run.mapped:
            continue
        run.bbox = mapper.map_box(run.bbox)
        run.mapped = True
        n += 1
    return n
