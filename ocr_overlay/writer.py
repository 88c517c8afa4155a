from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF

from .job import RunLog
from .utils import utc_now_iso, write_json, write_text


@dataclass
class JobWriter:
    log: RunLog

    def write_final(
        self,
        document: fitz.Document,
        pdf_path: str | Path,
        metrics: dict[str, Any],
        *,
        text_path: str | Path | None = None,
        log_path: str | Path | None = None,
        metrics_path: str | Path | None = None,
    ) -> None:
        if document.page_count == 0:
            raise ValueError("Can not write a PDF without pages")
        pdf_path = Path(pdf_path)
        pdf_path.parent.mkdir(parents=True, exist_ok=True)
        document.save(str(pdf_path), garbage=3, deflate=True)

        metrics_out = dict(metrics)
        metrics_out["finished"] = True
        metrics_out["completed_at"] = utc_now_iso()
        metrics_out["errors_total"] = len(self.log.errors)

        if text_path:
            write_text(text_path, self.log.text)
        if log_path:
            write_text(log_path, self.log.log_text())
        if metrics_path:
            write_json(metrics_path, metrics_out)
