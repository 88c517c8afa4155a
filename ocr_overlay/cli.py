from __future__ import annotations

import argparse
from pathlib import Path

from .config import ConfigError, load_config
from .filters import DottedLineFilter
from .job import RunLog
from .normalizer import Dialect, MarkupError, dialect_for, normalize_hocr, parse_markup
from .pipeline import OverlayPipeline

LINE_FILTERS = {
    "none": None,
    "dotted": DottedLineFilter,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ocr_overlay")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="OCR scanned images into a searchable PDF")
    run.add_argument("images", nargs="+", help="Scanned page images, one PDF page each")
    run.add_argument("--out", required=True, help="Output PDF path")
    run.add_argument("--text", default=None, help="Write the OCR transcript here")
    run.add_argument("--log", default=None, help="Write the diagnostic log here")
    run.add_argument("--metrics", default=None, help="Write run metrics JSON here")
    run.add_argument("--errors", default=None, help="Append structured error records (jsonl) here")
    run.add_argument("--config", default=None, help="JSON config file (CLI flags override it)")
    run.add_argument("--engine", default=None, help="OCR engine: tesseract or cuneiform")
    run.add_argument("--mode", default=None, help="Granularity: word, line, paragraph or block")
    run.add_argument("--scan-dpi", default=None, help="Resolution of the scanned images")
    run.add_argument("--pdf-dpi", default=None, help="Resolution of the images embedded in the PDF")
    run.add_argument("--quality", default=None, help="JPEG quality of embedded images (1-100)")
    run.add_argument("--font", default=None, help="PDF Base-14 font used for the text layer")
    run.add_argument("--min-font", default=None, help="Discard text smaller than this (pt)")
    run.add_argument("--max-font", default=None, help="Discard text larger than this (pt)")
    run.add_argument("--workdir", default=None, help="Subdirectory name for intermediate files")
    run.add_argument("--suffix", default=None, help="Tag added to intermediate file names")
    run.add_argument("--clean-params", default=None, help="ImageMagick options for pre-cleaning, e.g. '-despeckle png'")
    run.add_argument("--lang", default=None, help="OCR language code passed to the engine")
    run.add_argument("--line-filter", default="none", choices=sorted(LINE_FILTERS))
    run.add_argument("--debug", action="store_true", help="Draw the text layer in red plus a coordinate grid")
    run.add_argument("--strict", action="store_true", help="Exit 1 when any error was recorded")

    norm = sub.add_parser("normalize", help="Repair a legacy or Cuneiform hOCR file into XML")
    norm.add_argument("hocr", help="hOCR input (.html, .c.html or .hocr)")
    norm.add_argument("--out", required=True, help="XML output path")

    return p


def cmd_run(args: argparse.Namespace) -> int:
    filter_cls = LINE_FILTERS[args.line_filter]
    try:
        cfg = load_config(
            args.config,
            engine=args.engine,
            mode=args.mode,
            scan_dpi=args.scan_dpi,
            pdf_dpi=args.pdf_dpi,
            jpeg_quality=args.quality,
            font=args.font,
            min_font_pt=args.min_font,
            max_font_pt=args.max_font,
            work_dir=args.workdir,
            suffix=args.suffix,
            clean_params=args.clean_params,
            language=args.lang,
            debug=True if args.debug else None,
            line_filter=filter_cls() if filter_cls else None,
            errors_path=args.errors,
        )
    except (ConfigError, OSError) as e:
        print(f"config_error: {e}")
        return 2

    log = RunLog(errors_path=Path(cfg.errors_path) if cfg.errors_path else None, echo=True)
    with OverlayPipeline(cfg, log=log) as pipeline:
        pipeline.add_images(args.images)
        if not pipeline.pages:
            print("no_pages: none of the images could be prepared")
            return 1
        pipeline.ocr()
        pipeline.save(args.out, text_path=args.text, log_path=args.log, metrics_path=args.metrics)
        m = pipeline.metrics

    print(
        f"pages={m['pages_total']} processed={m['pages_processed']} "
        f"text_skipped={m['pages_text_skipped']} runs_placed={m['runs_placed']} errors={len(log.errors)}"
    )
    print(str(args.out))
    if args.strict and log.errors:
        return 1
    return 0


def cmd_normalize(args: argparse.Namespace) -> int:
    src = Path(args.hocr)
    try:
        if dialect_for(src) == Dialect.HOCR:
            out = Path(args.out)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(src.read_bytes())
        else:
            out = normalize_hocr(src, args.out)
        parse_markup(out)
    except (MarkupError, OSError) as e:
        print(f"normalize_failed: {e}")
        return 1
    print(str(out))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        return cmd_run(args)

    if args.command == "normalize":
        return cmd_normalize(args)

    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
