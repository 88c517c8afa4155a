"""hOCR repair and parsing.

Three flavours of OCR output reach this module:

- ``*.hocr``   current Tesseract, already well-formed XHTML; parsed as-is.
- ``*.html``   older Tesseract. Frequently carries raw control characters,
               non-ASCII bytes and unescaped ``&``, ``<``, ``>`` inside word
               text, any of which breaks a strict XML parser.
- ``*.c.html`` Cuneiform. Unclosed ``<meta>`` tags, per-character
               ``ocr_cinfo`` spans, and lines that sit directly in ``<p>``
               instead of the carea/par/line/word nesting Tesseract uses.

Both broken flavours are rewritten to an ``.xml`` file next to the other
intermediate artifacts; everything downstream only sees parsed lxml trees.
"""
from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from lxml import etree


class MarkupError(RuntimeError):
    pass


class Dialect(str, Enum):
    HOCR = "hocr"
    LEGACY = "legacy"
    CUNEIFORM = "cuneiform"


def dialect_for(path: str | Path) -> Dialect:
    name = Path(path).name.lower()
    if name.endswith(".hocr"):
        return Dialect.HOCR
    if name.endswith(".c.html"):
        return Dialect.CUNEIFORM
    return Dialect.LEGACY


# ---------------------------------------------------------------------------
# Legacy Tesseract
# ---------------------------------------------------------------------------

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_NON_ASCII_RE = re.compile(r"[^\t\n\r\x20-\x7e]")
_PROTECTED_RE = re.compile(
    r"&(?:#\d+|#x[0-9A-Fa-f]+|amp|lt|gt|quot|apos);"
    r"|</?[A-Za-z!?][^<>*]*>"
)
_STRAY_RE = re.compile(r"[&<>]")
# NUL delimits placeholders; it is removed by _CONTROL_RE so can not clash.
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")


def _char_ref(ch: str) -> str:
    return f"&#x{ord(ch):X};"


def escape_stray_markup(text: str) -> str:
    """Make legacy hOCR text safe for a strict XML parser.

    Structural tags and well-formed entities are parked behind placeholders,
    non-ASCII characters become numeric references, and whatever ``&``, ``<``
    or ``>`` is still exposed is escaped. Placeholders are then restored in
    order, so markup that was already valid comes back unchanged.
    """
    text = _CONTROL_RE.sub("", text)
    found: list[str] = []

    def stash(value: str) -> str:
        found.append(value)
        return f"\x00{len(found) - 1}\x00"

    text = _NON_ASCII_RE.sub(lambda m: stash(_char_ref(m.group())), text)
    text = _PROTECTED_RE.sub(lambda m: stash(m.group()), text)
    text = _STRAY_RE.sub(lambda m: stash(_char_ref(m.group())), text)

    # A protected tag may itself hold placeholders (non-ASCII attribute text).
    def restore(m: re.Match[str]) -> str:
        return _PLACEHOLDER_RE.sub(restore, found[int(m.group(1))])

    return _PLACEHOLDER_RE.sub(restore, text)


# ---------------------------------------------------------------------------
# Cuneiform
# ---------------------------------------------------------------------------

# HTML 4 doctypes carry no system literal, which XML rejects.
_DOCTYPE_RE = re.compile(r"^\s*<!DOCTYPE[^>]*>\s*$", re.IGNORECASE)
_META_RE = re.compile(r"^(\s*<meta.+[^/\s])\s*>\s*$", re.IGNORECASE)
_PARA_LINE_RE = re.compile(r"^(<p[^>]*>)?(<span.+class=['\"]ocr_line['\"].+)")
_CLOSE_PARA_RE = re.compile(r"^\s*</p>\s*$")
_CINFO_RE = re.compile(r"<span class=['\"]ocr_cinfo['\"].+?</span>")
_UNQUOTED_ATTR_RE = re.compile(r"=([^'\"\s>]+)")
_BR_RE = re.compile(r"<br\s*>")


def repair_cuneiform_hocr(text: str) -> str:
    out: list[str] = []
    for raw in text.splitlines():
        if _DOCTYPE_RE.match(raw):
            continue

        m = _META_RE.match(raw)
        if m:
            out.append(f"{m.group(1)} />")
            continue

        m = _PARA_LINE_RE.match(raw)
        if m:
            para, line = m.group(1), m.group(2)
            if para:
                para = _UNQUOTED_ATTR_RE.sub(r"='\1'", para[:-1])
                # Tesseract-like nesting, tagged so the extractor treats
                # each line as a single run.
                out.append("<div class='ocr_carea'>")
                out.append(f"{para} via='Cuneiform' class='ocr_par'>")
            line = _CINFO_RE.sub("", line)
            line = _BR_RE.sub("<br />", line)
            out.append(f"  {line.rstrip()}")
            continue

        if _CLOSE_PARA_RE.match(raw):
            out.append("</p></div>")
            continue

        out.append(raw)
    return "\n".join(out) + "\n"


# ---------------------------------------------------------------------------
# File level
# ---------------------------------------------------------------------------

def _read_markup(path: Path) -> str:
    data = path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def normalize_hocr(hocr_path: str | Path, xml_path: str | Path) -> Path:
    """Rewrite a legacy or Cuneiform hOCR file as parseable XML at ``xml_path``."""
    hocr_path = Path(hocr_path)
    xml_path = Path(xml_path)
    dialect = dialect_for(hocr_path)
    try:
        text = _read_markup(hocr_path)
    except OSError as e:
        raise MarkupError(f"Failed to open HTML file for cleaning: {hocr_path}: {e}") from e

    if dialect == Dialect.CUNEIFORM:
        fixed = repair_cuneiform_hocr(text)
    elif dialect == Dialect.LEGACY:
        fixed = escape_stray_markup(text)
    else:
        fixed = text

    try:
        xml_path.parent.mkdir(parents=True, exist_ok=True)
        xml_path.write_text(fixed, encoding="utf-8")
    except OSError as e:
        raise MarkupError(f"Failed to create XML file: {xml_path}: {e}") from e
    return xml_path


def parse_markup(path: str | Path) -> etree._Element:
    """Parse normalized markup strictly; returns the root element."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=True)
    try:
        return etree.parse(str(path), parser).getroot()
    except (OSError, etree.XMLSyntaxError) as e:
        raise MarkupError(f"Failed to read hOCR file: {path}: {e}") from e


def parse_markup_text(text: str) -> etree._Element:
    parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)
    try:
        return etree.fromstring(text.encode("utf-8"), parser)
    except etree.XMLSyntaxError as e:
        raise MarkupError(f"Failed to parse hOCR markup: {e}") from e
