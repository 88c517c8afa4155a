from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .filters import LineFilter


class Engine(str, Enum):
    TESSERACT = "Tesseract"
    CUNEIFORM = "Cuneiform"


class Granularity(str, Enum):
    """Unit at which runs share one font size / rotation decision (finest first)."""

    WORD = "Word"
    LINE = "Line"
    PARAGRAPH = "Paragraph"
    BLOCK = "Block"


class Role(Enum):
    PAGE = "page"
    AREA = "area"
    PARAGRAPH = "paragraph"
    LINE = "line"
    WORD = "word"
    UNRECOGNIZED = "unrecognized"


# hOCR class attribute -> structural role. Newer Tesseract releases emit a few
# line flavours besides ocr_line; they nest words the same way.
ROLE_BY_CLASS: dict[str, Role] = {
    "ocr_page": Role.PAGE,
    "ocr_carea": Role.AREA,
    "ocr_par": Role.PARAGRAPH,
    "ocr_line": Role.LINE,
    "ocr_header": Role.LINE,
    "ocr_caption": Role.LINE,
    "ocr_textfloat": Role.LINE,
    "ocrx_word": Role.WORD,
    "ocr_word": Role.WORD,
}


@dataclass(frozen=True)
class NodeRole:
    role: Role
    raw_class: str  # kept for diagnostics

    @classmethod
    def from_class(cls, raw_class: str) -> "NodeRole":
        return cls(ROLE_BY_CLASS.get(raw_class, Role.UNRECOGNIZED), raw_class)


@dataclass(frozen=True)
class BBox:
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def to_list(self) -> list[float]:
        return [self.x1, self.y1, self.x2, self.y2]


@dataclass(eq=False)
class TextRun:
    """One placeable unit (a word, or a whole line for Cuneiform output).

    ``bbox`` starts in OCR pixel space and is replaced exactly once by the
    mapper; afterwards ``y1`` is the bottom edge and ``y2`` the top edge in
    PDF points.
    """

    text: str
    bbox: BBox
    line: "LineGroup" = field(repr=False)
    engine: str = ""
    mapped: bool = False


@dataclass(eq=False)
class LineGroup:
    runs: list[TextRun] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    _verdict: str | None = field(default=None, repr=False)
    _checked: bool = field(default=False, repr=False)

    @property
    def words(self) -> list[str]:
        return [r.text for r in self.runs]

    @property
    def text(self) -> str:
        return " ".join(self.words)

    @property
    def checked(self) -> bool:
        return self._checked

    def verdict(self, line_filter: "LineFilter | None") -> str | None:
        """Rejection reason for this line, or None when admitted. Computed once."""
        if not self._checked:
            self._verdict = line_filter.check(self) if line_filter is not None else None
            self._checked = True
        return self._verdict


@dataclass(eq=False)
class PendingPlacement:
    runs: list[TextRun]
    font_size: float
    angle: int
    char_count: int


@dataclass(eq=False)
class PageState:
    index: int  # 1-based, creation order
    width: float
    height: float
    source: Path
    ocr_source: Path
    scaled_image: Path
    pdf_page: Any = field(default=None, repr=False)
    done: bool = False
    pending: list[PendingPlacement] = field(default_factory=list, repr=False)
    metrics: dict[str, Any] = field(default_factory=dict)
