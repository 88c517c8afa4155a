from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Protocol

from .types import LineGroup, PendingPlacement


class LineFilter(Protocol):
    def check(self, line: LineGroup) -> str | None:
        """Return None to admit the line, or a human-readable rejection reason."""
        ...


class AdmitAll:
    """Used when no filter is configured."""

    def check(self, line: LineGroup) -> str | None:
        return None


@dataclass(frozen=True)
class FunctionFilter:
    """Adapts a plain ``fn(line_text) -> reason | None`` predicate."""

    fn: Callable[[str], str | None]

    def check(self, line: LineGroup) -> str | None:
        reason = self.fn(line.text)
        return str(reason) if reason else None


@dataclass(frozen=True)
class DottedLineFilter:
    """Rejects lines made up mostly of the glyphs OCR invents for dotted rules.

    Fine dotted/dashed leaders tend to come back as runs of small characters
    such as ``i``, ``:``, ``.`` and ``f``. A line is rejected when the share of
    characters left after removing those falls below ``min_visible_ratio``.
    """

    chars: str = "i:.f"
    min_visible_ratio: float = 0.2

    def check(self, line: LineGroup) -> str | None:
        txt = line.text.strip()
        if not txt:
            return "Empty line"
        visible = [c for c in txt if c not in self.chars and not c.isspace()]
        if len(visible) / len(txt) < self.min_visible_ratio:
            return "Likely dotted line"
        return None


def apply_line_filter(
    placements: list[PendingPlacement],
    line_filter: LineFilter | None,
    tally: Counter[str],
) -> list[PendingPlacement]:
    """Drop runs whose owning line is rejected; lines are judged as a whole."""
    if line_filter is None:
        line_filter = AdmitAll()

    out: list[PendingPlacement] = []
    for pl in placements:
        runs = []
        for run in pl.runs:
            first_look = not run.line.checked
            reason = run.line.verdict(line_filter)
            if reason:
                if first_look:
                    tally[reason] += 1
                continue
            runs.append(run)
        if runs:
            pl.runs = runs
            out.append(pl)
    return out
