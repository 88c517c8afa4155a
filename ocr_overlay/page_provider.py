from __future__ import annotations

import re
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from .config import OverlayConfig
from .job import RunLog, derived_filename
from .utils import is_nonempty_file

_CLEAN_FORMAT_RE = re.compile(r"^(.+)\s+(png|jpg|tiff)\s*$", re.IGNORECASE)
_UNSAFE_NAME_RE = re.compile(r"['\"\\]")


@dataclass(frozen=True)
class PreparedImage:
    source: Path
    ocr_source: Path  # cleaned image when pre-processing is configured
    scaled: Path
    width_px: int
    height_px: int


def split_clean_params(params: str) -> tuple[str, str]:
    """Split a trailing output format token off an ImageMagick option string."""
    m = _CLEAN_FORMAT_RE.match(params)
    if m:
        return m.group(1), m.group(2).lower()
    return params, "jpg"


@dataclass
class PageImageProvider:
    """Pre-cleans and down-samples scans, reusing artifacts already on disk."""

    cfg: OverlayConfig
    log: RunLog

    def _derived(self, src: Path, mod: str) -> Path:
        return derived_filename(src, mod, strip_ext=True, work_dir=self.cfg.work_dir, suffix=self.cfg.suffix)

    def clean(self, src: Path, *, page: int | None = None) -> Path | None:
        params, fmt = split_clean_params(self.cfg.clean_params or "")
        out = self._derived(src, f"-cleaned.{fmt}")
        if is_nonempty_file(out):
            return out

        cmd = ["convert", str(src), *shlex.split(params), str(out)]
        self.log.log(f"Clean image: {shlex.join(cmd)}")
        try:
            subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            self.log.error("Failed to run image cleaner", shlex.join(cmd), e, page=page, stage="clean")
            return None
        if not is_nonempty_file(out):
            self.log.error("Failed to clean input image", shlex.join(cmd), page=page, stage="clean")
            return None
        return out

    def scale(self, src: Path, *, page: int | None = None) -> Path | None:
        out = self._derived(src, "-scaled.jpg")
        if is_nonempty_file(out):
            return out
        if not is_nonempty_file(src):
            self.log.error("Can not scale image - no such file", src, page=page, stage="scale")
            return None

        pct = self.cfg.jpeg_scale
        quality = self.cfg.jpeg_quality
        try:
            with Image.open(src) as img:
                img = img.convert("RGB")
                size = (max(1, round(img.width * pct / 100)), max(1, round(img.height * pct / 100)))
                img.resize(size, Image.LANCZOS).save(out, format="JPEG", quality=quality)
        except (OSError, ValueError) as e:
            # A half-written artifact would be reused by the next run.
            out.unlink(missing_ok=True)
            self.log.error("Failed to add JPEG file", src, e, page=page, stage="scale")
            return None
        self.log.log(f'Scaled Image by {pct:.2f}%, Quality {quality} "{src}" -> "{out}"')
        return out

    def prepare(self, src: str | Path, *, page: int | None = None) -> PreparedImage | None:
        src = Path(src)
        if _UNSAFE_NAME_RE.search(str(src)):
            self.log.error("Image names can not have quotes or backslashes", src, page=page, stage="prepare")
            return None

        ocr_source = src
        if self.cfg.clean_params:
            cleaned = self.clean(src, page=page)
            if cleaned is None:
                return None
            ocr_source = cleaned

        scaled = self.scale(ocr_source, page=page)
        if scaled is None:
            return None
        try:
            with Image.open(scaled) as img:
                w, h = img.size
        except (OSError, ValueError) as e:
            self.log.error("Failed to add JPEG file", scaled, e, page=page, stage="scale")
            return None
        return PreparedImage(source=src, ocr_source=ocr_source, scaled=scaled, width_px=w, height_px=h)
