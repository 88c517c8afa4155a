"""Test font size and orientation estimation.

Uses a fixed-advance probe (5 units per character at the probe size) so the
expected sizes can be worked out by hand.
"""
from __future__ import annotations

import pytest

from ocr_overlay.metrics import (
    ABOVE_MAX,
    BELOW_MIN,
    FontProbe,
    MetricsEstimator,
    resolve_placements,
)
from ocr_overlay.types import BBox, LineGroup, TextRun


class FixedProbe:
    def __init__(self, advance: float = 5):
        self.advance = advance
        self.calls = 0

    def width(self, text: str) -> float:
        self.calls += 1
        return self.advance * len(text)


def _runs(*items: tuple[str, tuple[float, float, float, float]]) -> list[TextRun]:
    line = LineGroup()
    for text, box in items:
        line.runs.append(TextRun(text=text, bbox=BBox(*box), line=line, mapped=True))
    return list(line.runs)


def _estimator(**kw) -> MetricsEstimator:
    kw.setdefault("min_font_pt", None)
    return MetricsEstimator(probe=FixedProbe(), **kw)


# ═══════════════════════════════════════════════════════════════════════════════
# ESTIMATE
# ═══════════════════════════════════════════════════════════════════════════════

class TestEstimate:
    def test_horizontal(self):
        est = _estimator().estimate(_runs(("abcd", (0, 0, 100, 20))))
        assert est.error is None and est.reason is None
        assert est.placement.angle == 0
        assert est.placement.font_size == 50
        assert est.placement.char_count == 4

    def test_vertical(self):
        est = _estimator().estimate(_runs(("abcd", (0, 0, 20, 100))))
        assert est.placement.angle == 90
        assert est.placement.font_size == 50

    def test_short_text_never_vertical(self):
        est = _estimator().estimate(_runs(("abc", (0, 0, 20, 100))))
        assert est.placement.angle == 0
        assert est.placement.font_size == 13.33

    def test_group_sums(self):
        est = _estimator().estimate(_runs(("ab", (0, 0, 40, 10)), ("cd", (50, 0, 110, 10))))
        # 100 units wide over 20 units rendered.
        assert est.placement.font_size == 50
        assert len(est.placement.runs) == 2

    def test_below_minimum(self):
        est = _estimator(min_font_pt=5).estimate(_runs(("abcd", (0, 0, 8, 5))))
        assert est.placement is None
        assert est.reason == BELOW_MIN

    def test_above_maximum(self):
        est = _estimator(max_font_pt=15).estimate(_runs(("abcd", (0, 0, 100, 20))))
        assert est.placement is None
        assert est.reason == ABOVE_MAX

    def test_within_bounds(self):
        est = _estimator(min_font_pt=5, max_font_pt=60).estimate(_runs(("abcd", (0, 0, 100, 20))))
        assert est.placement is not None

    def test_squashed_alone(self):
        est = _estimator().estimate(_runs(("x", (5, 5, 5, 20))))
        assert est.placement is None
        assert est.error == "[w,h] = [0,0] : Squashed text content 'x'"
        assert est.squashed == ["x"]

    def test_squashed_member_dropped(self):
        est = _estimator().estimate(_runs(("abcd", (0, 0, 100, 20)), ("flat", (0, 0, 30, 0))))
        assert [r.text for r in est.placement.runs] == ["abcd"]
        assert est.squashed == ["flat"]

    def test_zero_rendered_width(self):
        est = MetricsEstimator(probe=FixedProbe(advance=0)).estimate(_runs(("abcd", (0, 0, 100, 20))))
        assert est.placement is None
        assert est.error == "Text rendered to zero width 'abcd'"


# ═══════════════════════════════════════════════════════════════════════════════
# PAGE RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════════

class TestResolvePlacements:
    def test_tally_and_histogram(self):
        est = _estimator(min_font_pt=5, max_font_pt=60)
        groups = [
            _runs(("abcd", (0, 0, 100, 20))),
            _runs(("abcd", (0, 0, 8, 5))),
            _runs(("ef", (0, 0, 200, 5))),
            _runs(("gh", (0, 0, 4, 5))),
            [],
        ]
        page = resolve_placements(groups, est)
        assert len(page.placements) == 1
        assert page.tally == {BELOW_MIN: 2, ABOVE_MAX: 1}
        assert page.font_histogram == {50: 4}
        assert page.issues == []

    def test_issues_reported(self):
        groups = [
            _runs(("x", (0, 0, 0, 0))),
            _runs(("abcd", (0, 0, 100, 20)), ("flat", (0, 0, 30, 0))),
        ]
        page = resolve_placements(groups, _estimator())
        assert page.issues == [
            "[w,h] = [0,0] : Squashed text content 'x'",
            "Squashed text content 'flat'",
        ]
        assert len(page.placements) == 1


class TestFontProbe:
    def test_real_font_measures(self):
        probe = FontProbe("hebo")
        assert probe.width("Hello") > probe.width("Hi") > 0

    def test_scales_with_probe_size(self):
        small, big = FontProbe("helv", size=10), FontProbe("helv", size=20)
        assert big.width("text") == pytest.approx(2 * small.width("text"))
