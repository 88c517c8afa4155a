from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .job import RunLog, derived_filename
from .types import Engine
from .utils import is_nonempty_file


@dataclass
class OCRRunner:
    """Runs the external OCR engine, or reuses hOCR it produced earlier."""

    engine: Engine
    log: RunLog
    work_dir: str = ""
    suffix: str = ""
    language: str | None = None

    def targets_and_command(self, src: Path) -> tuple[list[Path], list[str]]:
        base = derived_filename(src, "-HOCR", strip_ext=True, work_dir=self.work_dir, suffix=self.suffix)
        lang = ["-l", self.language] if self.language else []
        if self.engine == Engine.CUNEIFORM:
            target = base.with_name(base.name + ".c.html")
            return [target], ["cuneiform", *lang, "-f", "hocr", "-o", str(target), str(src)]
        # Older Tesseract releases wrote .html instead of .hocr.
        targets = [base.with_name(base.name + ".hocr"), base.with_name(base.name + ".html")]
        return targets, ["tesseract", str(src), str(base), *lang, "hocr"]

    def hocr_for_image(self, src: str | Path, *, page: int | None = None) -> Path | None:
        src = Path(src)
        targets, cmd = self.targets_and_command(src)
        for out in targets:
            if is_nonempty_file(out):
                return out

        self.log.log(f"OCR Command: {shlex.join(cmd)}")
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            self.log.error("Failed to run OCR engine", shlex.join(cmd), e, page=page, stage="ocr")
            return None

        for out in targets:
            if is_nonempty_file(out):
                return out

        details = [str(t) for t in targets]
        if proc.returncode:
            details.append(f"exit status {proc.returncode}: {(proc.stderr or '').strip()[:200]}")
        self.log.error("Could not find expected hOCR output file", *details, page=page, stage="ocr")
        return None
