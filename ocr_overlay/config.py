from __future__ import annotations

import dataclasses
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .filters import FunctionFilter, LineFilter
from .types import Engine, Granularity
from .utils import load_json


class ConfigError(ValueError):
    pass


# PDF Base-14 font names -> PyMuPDF reserved font codes.
BASE14_FONTS: dict[str, str] = {
    "helvetica": "helv",
    "helvetica-oblique": "heit",
    "helvetica-bold": "hebo",
    "helvetica-boldoblique": "hebi",
    "courier": "cour",
    "courier-oblique": "coit",
    "courier-bold": "cobo",
    "courier-boldoblique": "cobi",
    "times-roman": "tiro",
    "times-italic": "tiit",
    "times-bold": "tibo",
    "times-bolditalic": "tibi",
    "symbol": "symb",
    "zapfdingbats": "zadb",
}

_NUMERIC_RE = re.compile(r"^(\d+|\d*\.\d+)$")


def _numeric(name: str, value: Any, lo: float | None = None, hi: float | None = None) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"Parameter '{name}' must be numeric, not '{value}'")
    if isinstance(value, str):
        if not _NUMERIC_RE.match(value.strip()):
            raise ConfigError(f"Parameter '{name}' must be numeric, not '{value}'")
        value = float(value)
    elif not isinstance(value, (int, float)):
        raise ConfigError(f"Parameter '{name}' must be numeric, not '{value}'")
    if not math.isfinite(value):
        raise ConfigError(f"Parameter '{name}' must be a finite number, not '{value}'")
    if lo is not None and value < lo:
        raise ConfigError(f"Parameter '{name}' must be >= {lo}, not '{value}'")
    if hi is not None and value > hi:
        raise ConfigError(f"Parameter '{name}' must be <= {hi}, not '{value}'")
    return value


def parse_engine(value: str | Engine) -> Engine:
    if isinstance(value, Engine):
        return value
    v = str(value or "").lower()
    if "tess" in v:
        return Engine.TESSERACT
    if "cune" in v:
        return Engine.CUNEIFORM
    raise ConfigError(f"Could not interpret OCR engine '{value}'")


def parse_mode(value: str | Granularity) -> Granularity:
    if isinstance(value, Granularity):
        return value
    v = str(value or "").lower()
    if "word" in v:
        return Granularity.WORD
    if "line" in v:
        return Granularity.LINE
    if "para" in v:
        return Granularity.PARAGRAPH
    if "block" in v:
        return Granularity.BLOCK
    raise ConfigError(f"Unrecognized mode '{value}'")


def font_code(font: str) -> str:
    key = str(font or "").strip().lower()
    if key in BASE14_FONTS:
        return BASE14_FONTS[key]
    if key in BASE14_FONTS.values():
        return key
    raise ConfigError(f"Unknown font '{font}' (expected a PDF Base-14 font name)")


@dataclass(frozen=True)
class OverlayConfig:
    engine: Engine | str = Engine.TESSERACT
    mode: Granularity | str = Granularity.WORD
    scan_dpi: float = 400
    pdf_dpi: float = 150
    jpeg_quality: int = 80
    font: str = "Helvetica-Bold"
    min_font_pt: float | None = 5
    max_font_pt: float | None = None
    work_dir: str = "ocr_overlay"
    suffix: str = ""
    clean_params: str | None = None
    language: str | None = None
    debug: bool = False
    line_filter: LineFilter | Callable[[str], str | None] | None = None
    errors_path: str | None = None

    def __post_init__(self) -> None:
        # Normalize in place; any failure aborts construction.
        def set_(name: str, value: Any) -> None:
            object.__setattr__(self, name, value)

        set_("engine", parse_engine(self.engine))
        set_("mode", parse_mode(self.mode))
        set_("scan_dpi", _numeric("scan_dpi", self.scan_dpi, 1))
        set_("pdf_dpi", _numeric("pdf_dpi", self.pdf_dpi, 1))
        set_("jpeg_quality", int(_numeric("jpeg_quality", self.jpeg_quality, 1, 100)))
        font_code(self.font)
        # A bound of 0 means unset.
        for name in ("min_font_pt", "max_font_pt"):
            v = getattr(self, name)
            if v is not None and v != "":
                set_(name, _numeric(name, v, 0) or None)
            else:
                set_(name, None)

        wd = str(self.work_dir or "")
        if re.search(r"[\\/\"']", wd):
            raise ConfigError("work_dir can not have slashes or quotes")
        set_("work_dir", wd)

        set_("suffix", re.sub(r"[\"']", "", str(self.suffix or "")))

        if self.clean_params:
            if re.search(r"[\"\\]", self.clean_params):
                raise ConfigError(f"Can not set parameters with quotes or slashes: {self.clean_params}")
        else:
            set_("clean_params", None)

        if self.language is not None and not re.fullmatch(r"[A-Za-z0-9_+]+", str(self.language)):
            raise ConfigError(f"Invalid OCR language '{self.language}'")

        lf = self.line_filter
        if lf is not None and not hasattr(lf, "check"):
            if not callable(lf):
                raise ConfigError("line_filter should be a callable or a LineFilter")
            set_("line_filter", FunctionFilter(lf))

        set_("debug", bool(self.debug))

    @property
    def font_code(self) -> str:
        return font_code(self.font)

    @property
    def jpeg_scale(self) -> int:
        """Percent used to down-sample the scan to the PDF resolution."""
        return int(0.5 + 100 * self.pdf_dpi / self.scan_dpi)

    def with_changes(self, **changes: Any) -> "OverlayConfig":
        return dataclasses.replace(self, **changes)


_FIELDS = {f.name for f in dataclasses.fields(OverlayConfig)}


def load_config(config_path: str | Path | None = None, **overrides: Any) -> OverlayConfig:
    data: dict[str, Any] = {}
    if config_path:
        raw = load_json(config_path)
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must hold a JSON object: {config_path}")
        data.update(raw)
    data.update({k: v for k, v in overrides.items() if v is not None})

    unknown = sorted(set(data) - _FIELDS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    return OverlayConfig(**data)
