"""Test hOCR repair and parsing.

Tests cover:
1. Stray markup escaping for legacy Tesseract output
2. Cuneiform structure repair
3. File level normalization and strict parsing
"""
from __future__ import annotations

from pathlib import Path

import pytest

from ocr_overlay.extractor import extract_page, node_text
from ocr_overlay.normalizer import (
    Dialect,
    MarkupError,
    dialect_for,
    escape_stray_markup,
    normalize_hocr,
    parse_markup,
    parse_markup_text,
    repair_cuneiform_hocr,
)

from hocr_samples import CUNEIFORM_HTML, LEGACY_HTML, MODERN_HOCR


# ═══════════════════════════════════════════════════════════════════════════════
# LEGACY TESSERACT
# ═══════════════════════════════════════════════════════════════════════════════

class TestEscapeStrayMarkup:
    def test_valid_markup_unchanged(self):
        s = "<span class='ocrx_word' title='bbox 1 2 3 4'>word</span>"
        assert escape_stray_markup(s) == s

    def test_stray_ampersand(self):
        assert escape_stray_markup("<b>AT&T</b>") == "<b>AT&#x26;T</b>"

    def test_stray_angle_brackets(self):
        assert escape_stray_markup("<b>x > y</b>") == "<b>x &#x3E; y</b>"
        assert escape_stray_markup("<b>a<b</b>") == "<b>a&#x3C;b</b>"
        assert escape_stray_markup("<b>a < b</b>") == "<b>a &#x3C; b</b>"

    def test_entities_preserved(self):
        s = "<p>&amp; &#169; &#xA9; &quot;</p>"
        assert escape_stray_markup(s) == s

    def test_non_ascii_becomes_char_ref(self):
        assert escape_stray_markup("<i>café</i>") == "<i>caf&#xE9;</i>"

    def test_non_ascii_inside_tag_attribute(self):
        """Placeholders nested in a protected tag are restored too."""
        out = escape_stray_markup("<span title='né'>é</span>")
        assert out == "<span title='n&#xE9;'>&#xE9;</span>"
        assert "\x00" not in out

    def test_control_characters_removed(self):
        assert escape_stray_markup("<b>a\x01b\x0c</b>") == "<b>ab</b>"

    def test_multiline_doctype_survives(self):
        s = '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN"\n    "http://x/y.dtd">\n<html/>'
        assert escape_stray_markup(s) == s

    def test_order_preserved(self):
        out = escape_stray_markup("<w>&é<é&</w>")
        assert out == "<w>&#x26;&#xE9;&#x3C;&#xE9;&#x26;</w>"

    def test_legacy_page_parses(self):
        root = parse_markup_text(escape_stray_markup(LEGACY_HTML))
        page = extract_page(root)
        assert [r.text for r in page.runs] == ["AT&T", "café", "a<b"]


# ═══════════════════════════════════════════════════════════════════════════════
# CUNEIFORM
# ═══════════════════════════════════════════════════════════════════════════════

class TestCuneiformRepair:
    def test_meta_closed(self):
        out = repair_cuneiform_hocr("<meta name='ocr-system' content='openocr'>\n")
        assert out.strip() == "<meta name='ocr-system' content='openocr' />"

    def test_wrapper_structure_synthesized(self):
        out = repair_cuneiform_hocr(CUNEIFORM_HTML)
        assert "<div class='ocr_carea'>" in out
        assert "<p via='Cuneiform' class='ocr_par'>" in out
        assert "</p></div>" in out

    def test_char_spans_and_breaks(self):
        out = repair_cuneiform_hocr(CUNEIFORM_HTML)
        assert "ocr_cinfo" not in out
        assert "<br />" in out
        assert "<br>" not in out

    def test_unquoted_paragraph_attributes(self):
        out = repair_cuneiform_hocr("<p align=left><span class='ocr_line' title='bbox 1 2 3 4'>x</span>\n")
        assert "<p align='left' via='Cuneiform' class='ocr_par'>" in out

    def test_repaired_page_parses(self):
        root = parse_markup_text(repair_cuneiform_hocr(CUNEIFORM_HTML))
        page = extract_page(root)
        assert page.page_bbox is not None
        assert [r.text for r in page.runs] == ["Hello world", "Second line here"]
        assert all(r.engine == "Cuneiform" for r in page.runs)


# ═══════════════════════════════════════════════════════════════════════════════
# FILES
# ═══════════════════════════════════════════════════════════════════════════════

class TestFiles:
    def test_dialect_for(self):
        assert dialect_for("a/scan-HOCR.hocr") == Dialect.HOCR
        assert dialect_for("a/scan-HOCR.c.html") == Dialect.CUNEIFORM
        assert dialect_for("a/scan-HOCR.html") == Dialect.LEGACY

    def test_normalize_legacy_file(self, tmp_path: Path):
        src = tmp_path / "scan-HOCR.html"
        src.write_text(LEGACY_HTML, encoding="utf-8")
        xml = normalize_hocr(src, tmp_path / "out" / "scan.xml")
        assert xml.exists()
        root = parse_markup(xml)
        assert len(extract_page(root).runs) == 3

    def test_normalize_latin1_file(self, tmp_path: Path):
        src = tmp_path / "scan-HOCR.html"
        src.write_bytes(LEGACY_HTML.encode("latin-1"))
        root = parse_markup(normalize_hocr(src, tmp_path / "scan.xml"))
        assert "café" in [r.text for r in extract_page(root).runs]

    def test_normalize_missing_file(self, tmp_path: Path):
        with pytest.raises(MarkupError):
            normalize_hocr(tmp_path / "nope.html", tmp_path / "nope.xml")

    def test_modern_hocr_parses_directly(self, tmp_path: Path):
        src = tmp_path / "scan-HOCR.hocr"
        src.write_text(MODERN_HOCR, encoding="utf-8")
        root = parse_markup(src)
        assert node_text(root).strip().endswith("Hello")

    def test_unrepaired_legacy_fails(self, tmp_path: Path):
        src = tmp_path / "broken.xml"
        src.write_text(LEGACY_HTML, encoding="utf-8")
        with pytest.raises(MarkupError):
            parse_markup(src)

    def test_missing_markup(self, tmp_path: Path):
        with pytest.raises(MarkupError):
            parse_markup(tmp_path / "missing.xml")
