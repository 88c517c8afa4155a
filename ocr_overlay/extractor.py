from __future__ import annotations

import re
from dataclasses import dataclass, field

from lxml import etree

from .types import BBox, Engine, Granularity, LineGroup, NodeRole, Role, TextRun

_BBOX_RE = re.compile(r"bbox\s+(\d+)\s+(\d+)\s+(\d+)\s+(\d+)")


@dataclass
class ExtractedPage:
    page_bbox: BBox | None = None
    groups: list[list[TextRun]] = field(default_factory=list)
    lines: list[LineGroup] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    @property
    def runs(self) -> list[TextRun]:
        return [r for g in self.groups for r in g]


def _is_element(node) -> bool:
    # Comments and processing instructions have a non-string tag.
    return isinstance(node.tag, str)


def local_name(el: etree._Element) -> str:
    return etree.QName(el).localname


def classify_node(el: etree._Element) -> NodeRole:
    return NodeRole.from_class(el.get("class") or "")


def parse_bbox(el: etree._Element) -> BBox | None:
    m = _BBOX_RE.search(el.get("title") or "")
    if not m:
        return None
    x1, y1, x2, y2 = (int(v) for v in m.groups())
    return BBox(x1, y1, x2, y2)


def node_text(el: etree._Element) -> str:
    """Concatenated text of ``el`` and its descendants in document order."""
    kids = [c for c in el if _is_element(c)]
    if not kids:
        return el.text or ""
    parts = [el.text or ""]
    for child in el:
        if _is_element(child):
            parts.append(node_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


class _Walker:
    def __init__(self, mode: Granularity):
        self.mode = mode
        self.out = ExtractedPage()
        self._group: list[TextRun] = []

    def start_group(self) -> None:
        if self._group:
            self.out.groups.append(self._group)
        self._group = []

    def issue(self, msg: str) -> None:
        self.out.issues.append(msg)

    def walk(self, root: etree._Element) -> ExtractedPage:
        for area in root.iter():
            if not _is_element(area) or local_name(area) != "div":
                continue
            role = classify_node(area)
            if role.role == Role.PAGE:
                self._page(area, role)
            elif role.role == Role.AREA:
                if self.mode == Granularity.BLOCK:
                    self.start_group()
                for para in area.iter():
                    if _is_element(para) and local_name(para) == "p":
                        self._paragraph(para)
            else:
                self.issue(f"Unexpected hOCR DIV '{role.raw_class}'")
        self.start_group()
        return self.out

    def _page(self, el: etree._Element, role: NodeRole) -> None:
        bbox = parse_bbox(el)
        if self.out.page_bbox is not None:
            self.issue(f"Multiple hOCR DIV '{role.raw_class}'")
        elif bbox is None:
            self.issue(f"Failed to identify bbox for '{role.raw_class}'")
        else:
            self.out.page_bbox = bbox

    def _paragraph(self, para: etree._Element) -> None:
        if self.mode == Granularity.PARAGRAPH:
            self.start_group()
        via = para.get("via") or ""
        cuneiform = via == Engine.CUNEIFORM.value
        word_roles = {Role.LINE} if cuneiform else {Role.WORD}

        for line_el in para:
            if not _is_element(line_el):
                continue
            line_role = classify_node(line_el).role
            if cuneiform:
                # No word level nodes; the line is the run.
                if line_role != Role.LINE:
                    continue
                words = [line_el]
            elif line_role == Role.LINE:
                words = [w for w in line_el if _is_element(w)]
            elif line_role == Role.WORD:
                words = [line_el]
            else:
                continue

            if self.mode == Granularity.LINE:
                self.start_group()
            line = LineGroup()
            self.out.lines.append(line)
            for word in words:
                if classify_node(word).role not in word_roles:
                    continue
                txt = node_text(word).strip()
                if not txt:
                    continue
                bbox = parse_bbox(word)
                if bbox is None:
                    self.issue(f"Failed to identify bbox for word '{txt}'")
                    continue
                if self.mode == Granularity.WORD:
                    self.start_group()
                run = TextRun(text=txt, bbox=bbox, line=line, engine=via)
                line.runs.append(run)
                self._group.append(run)


def extract_page(root: etree._Element, mode: Granularity = Granularity.WORD) -> ExtractedPage:
    """Page bbox plus runs grouped per ``mode`` from a parsed hOCR tree."""
    return _Walker(mode).walk(root)
