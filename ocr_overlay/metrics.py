from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

import fitz  # PyMuPDF

from .types import PendingPlacement, TextRun
from .utils import round2

# Reference size used only to measure relative rendered width; the real size
# is this value scaled by box width (or height) over rendered width.
PROBE_FONT_SIZE = 10

BELOW_MIN = "font below minimum"
ABOVE_MAX = "font above maximum"


class TextMeasure(Protocol):
    def width(self, text: str) -> float: ...


class FontProbe:
    """Measures advance widths for one PDF font at PROBE_FONT_SIZE.

    Built once per pipeline; font selection never changes afterwards.
    """

    def __init__(self, code: str, size: float = PROBE_FONT_SIZE):
        self.code = code
        self.size = size
        self._font = fitz.Font(code)

    def width(self, text: str) -> float:
        return self._font.text_length(text, fontsize=self.size)


@dataclass
class Estimate:
    placement: PendingPlacement | None = None
    reason: str | None = None  # bound discard reason, tallied
    error: str | None = None  # degenerate geometry, reported
    squashed: list[str] = field(default_factory=list)


@dataclass
class MetricsEstimator:
    probe: TextMeasure
    min_font_pt: float | None = None
    max_font_pt: float | None = None
    probe_size: float = PROBE_FONT_SIZE

    def estimate(self, runs: list[TextRun]) -> Estimate:
        """Resolve font size and rotation for runs that share one context."""
        kept: list[TextRun] = []
        squashed: list[str] = []
        for run in runs:
            if run.bbox.width <= 0 or run.bbox.height <= 0:
                squashed.append(run.text)
            else:
                kept.append(run)

        w = sum(r.bbox.width for r in kept)
        h = sum(r.bbox.height for r in kept)
        chars = sum(len(r.text) for r in kept)
        string = " ".join(r.text for r in runs)
        if not (w and h):
            return Estimate(squashed=squashed, error=f"[w,h] = [{w:g},{h:g}] : Squashed text content '{string}'")

        rendered = sum(self.probe.width(r.text) for r in kept)
        if not rendered:
            return Estimate(squashed=squashed, error=f"Text rendered to zero width '{string}'")

        if h / w > 1 and chars > 3:
            # Tall, thin boxes are taken as text rotated 90 degrees.
            angle = 90
            scale = h / rendered
        else:
            angle = 0
            scale = w / rendered

        size = round2(self.probe_size * scale)
        if self.min_font_pt is not None and size < self.min_font_pt:
            return Estimate(squashed=squashed, reason=BELOW_MIN)
        if self.max_font_pt is not None and size > self.max_font_pt:
            return Estimate(squashed=squashed, reason=ABOVE_MAX)
        return Estimate(
            squashed=squashed,
            placement=PendingPlacement(runs=kept, font_size=size, angle=angle, char_count=chars),
        )


@dataclass
class ResolvedPage:
    placements: list[PendingPlacement] = field(default_factory=list)
    tally: Counter[str] = field(default_factory=Counter)
    issues: list[str] = field(default_factory=list)
    font_histogram: Counter[int] = field(default_factory=Counter)


def resolve_placements(groups: list[list[TextRun]], estimator: MetricsEstimator) -> ResolvedPage:
    out = ResolvedPage()
    for runs in groups:
        if not runs:
            continue
        est = estimator.estimate(runs)
        if est.squashed and (est.placement is not None or est.reason):
            out.issues.extend(f"Squashed text content '{t}'" for t in est.squashed)
        if est.error:
            out.issues.append(est.error)
        elif est.reason:
            out.tally[est.reason] += 1
        elif est.placement is not None:
            out.placements.append(est.placement)
            out.font_histogram[int(est.placement.font_size)] += est.placement.char_count
    return out
