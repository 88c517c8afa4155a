from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import fitz  # PyMuPDF

from .compositor import OverlayCompositor
from .config import OverlayConfig
from .extractor import extract_page
from .filters import apply_line_filter
from .job import RunLog, derived_filename
from .mapper import CoordinateMapper, build_mapper, map_runs
from .metrics import FontProbe, MetricsEstimator, resolve_placements
from .normalizer import Dialect, MarkupError, dialect_for, normalize_hocr, parse_markup
from .ocr import OCRRunner
from .page_provider import PageImageProvider
from .types import PageState
from .utils import is_nonempty_file, utc_now_iso
from .writer import JobWriter


class OverlayPipeline:
    """Builds a searchable PDF, one page per registered image.

    Usage::

        with OverlayPipeline(load_config(min_font_pt=5, max_font_pt=15)) as p:
            p.add_image("scan1.tiff")
            p.ocr()
            p.save("document.pdf")
            transcript = p.text()
    """

    def __init__(self, cfg: OverlayConfig, log: RunLog | None = None):
        self.cfg = cfg
        self.log = log or RunLog(errors_path=Path(cfg.errors_path) if cfg.errors_path else None)
        self.document = fitz.open()
        self.pages: list[PageState] = []

        self.probe = FontProbe(cfg.font_code)
        self.images = PageImageProvider(cfg=cfg, log=self.log)
        self.ocr_runner = OCRRunner(
            engine=cfg.engine,
            log=self.log,
            work_dir=cfg.work_dir,
            suffix=cfg.suffix,
            language=cfg.language,
        )
        self.estimator = MetricsEstimator(
            probe=self.probe,
            min_font_pt=cfg.min_font_pt,
            max_font_pt=cfg.max_font_pt,
        )
        self.compositor = OverlayCompositor(font=cfg.font_code, debug=cfg.debug)
        self.writer = JobWriter(log=self.log)

        self.metrics: dict[str, Any] = {
            "created_at": utc_now_iso(),
            "pages_total": 0,
            "pages_processed": 0,
            "pages_text_skipped": 0,
            "placements_total": 0,
            "runs_placed": 0,
            "images_failed": 0,
            "pages": [],
        }

    # -- lifecycle ---------------------------------------------------------

    def __enter__(self) -> "OverlayPipeline":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        if not self.document.is_closed:
            self.document.close()

    # -- accessors ---------------------------------------------------------

    def text(self) -> str:
        return self.log.text

    def log_text(self) -> str:
        return self.log.log_text()

    # -- pages -------------------------------------------------------------

    def add_image(self, src: str | Path) -> PageState | None:
        """Register a scan: prepare its images and lay down the background."""
        index = len(self.pages) + 1
        prepared = self.images.prepare(src, page=index)
        if prepared is None:
            self.metrics["images_failed"] += 1
            return None

        scale = 72 / self.cfg.pdf_dpi
        w, h = prepared.width_px * scale, prepared.height_px * scale
        pdf_page = self.compositor.new_page(self.document, w, h)
        self.compositor.place_background(pdf_page, prepared.scaled)
        if self.cfg.debug:
            self.compositor.draw_grid(pdf_page)

        page = PageState(
            index=index,
            width=w,
            height=h,
            source=prepared.source,
            ocr_source=prepared.ocr_source,
            scaled_image=prepared.scaled,
            pdf_page=pdf_page,
        )
        self.pages.append(page)
        self.metrics["pages_total"] += 1
        self.log.log(f'PDF page {index} added: {w / 72:.1f}x{h / 72:.1f}" <- "{prepared.scaled}"')
        return page

    def add_images(self, sources: Iterable[str | Path]) -> list[PageState]:
        return [p for p in (self.add_image(s) for s in sources) if p is not None]

    def ocr(self) -> None:
        """Add the text layer to every page that does not have one yet."""
        for page in self.pages:
            if page.done:
                continue
            page.done = True
            try:
                self.process_page(page)
            except Exception as e:
                self.log.error("Page processing failed", e, page=page.index, stage="page")

    def markup_for(self, page: PageState) -> Path | None:
        xml = derived_filename(page.ocr_source, ".xml", work_dir=self.cfg.work_dir, suffix=self.cfg.suffix)
        if is_nonempty_file(xml):
            return xml
        hocr = self.ocr_runner.hocr_for_image(page.ocr_source, page=page.index)
        if hocr is None:
            return None
        if dialect_for(hocr) == Dialect.HOCR:
            return hocr
        return normalize_hocr(hocr, xml)

    def process_page(self, page: PageState) -> None:
        page.metrics = {"page": page.index, "source": str(page.source), "text_layer": False}
        self.metrics["pages"].append(page.metrics)

        try:
            markup = self.markup_for(page)
            root = parse_markup(markup) if markup is not None else None
        except MarkupError as e:
            self.log.error(str(e), page=page.index, stage="markup")
            root = None
        if root is None:
            # Background image stays; only the text layer is lost.
            self.metrics["pages_text_skipped"] += 1
            self.log.add_page_text(page.index, [])
            return

        extracted = extract_page(root, self.cfg.mode)
        for issue in extracted.issues:
            self.log.error(issue, page=page.index, stage="extract")

        mapper = build_mapper(extracted.page_bbox, page.width, page.height)
        if not isinstance(mapper, CoordinateMapper):
            self.log.error("No usable hOCR page bbox, using fallback placement", page=page.index, stage="extract")
        map_runs(extracted.runs, mapper)

        resolved = resolve_placements(extracted.groups, self.estimator)
        for issue in resolved.issues:
            self.log.error(issue, page=page.index, stage="metrics")

        tally = resolved.tally
        page.pending = apply_line_filter(resolved.placements, self.cfg.line_filter, tally)
        placed = self.compositor.place_text(page.pdf_page, page.pending)

        if tally:
            self.log.log(
                "User filters applied:",
                *(f"  {tally[reason]:4d} : {reason}" for reason in sorted(tally)),
            )
        self.log.add_page_text(page.index, [line.kept for line in extracted.lines])

        page.metrics.update(
            {
                "text_layer": True,
                "lines": len(extracted.lines),
                "placements": len(page.pending),
                "runs_placed": placed,
                "filtered": dict(tally),
                "font_histogram": {str(k): v for k, v in sorted(resolved.font_histogram.items())},
            }
        )
        self.metrics["pages_processed"] += 1
        self.metrics["placements_total"] += len(page.pending)
        self.metrics["runs_placed"] += placed
        page.pending = []

    # -- output ------------------------------------------------------------

    def save(
        self,
        pdf_path: str | Path,
        *,
        text_path: str | Path | None = None,
        log_path: str | Path | None = None,
        metrics_path: str | Path | None = None,
    ) -> None:
        self.writer.write_final(
            self.document,
            pdf_path,
            self.metrics,
            text_path=text_path,
            log_path=log_path,
            metrics_path=metrics_path,
        )
