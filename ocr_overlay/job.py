from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import append_jsonl, ensure_dir

_EXT_RE = re.compile(r"\.[a-z]{2,5}$", re.IGNORECASE)


def derived_filename(
    src: str | Path,
    mod: str,
    *,
    strip_ext: bool = False,
    work_dir: str = "",
    suffix: str = "",
) -> Path:
    """Path for an intermediate artifact derived from ``src``.

    Layout: ``<src dir>/<work_dir>/<basename><suffix><mod>``. The working
    subdirectory is created on demand and not nested again when ``src``
    already lives inside it.
    """
    src = Path(src)
    name = src.name
    if strip_ext:
        name = _EXT_RE.sub("", name)

    parent = src.parent
    if work_dir and parent.name != work_dir:
        parent = parent / work_dir
        ensure_dir(parent)

    if suffix:
        name += suffix
    return parent / f"{name}{mod}"


@dataclass
class RunLog:
    """Accumulated line log, structured error records and OCR transcript.

    Shared by every page of a pipeline run and never reset between pages.
    """

    errors_path: Path | None = None
    echo: bool = False
    lines: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    text: str = ""

    def log(self, *messages: str | None) -> None:
        for m in messages:
            if m is not None:
                self.lines.append(str(m))

    def error(self, message: str, *details: Any, page: int | None = None, stage: str = "") -> None:
        rec = {
            "page": page,
            "stage": stage,
            "message": message,
            "details": [str(d) for d in details],
        }
        self.errors.append(rec)
        if self.errors_path is not None:
            append_jsonl(self.errors_path, rec)
        if self.echo:
            print("[!!]", message, *rec["details"], file=sys.stderr)
        self.log(*(f"  ERR: {m}" for m in (message, *rec["details"])))

    def log_text(self) -> str:
        return "\n".join(self.lines) + "\n"

    def add_page_text(self, page_num: int, lines: list[list[str]]) -> None:
        bar = "-" * 30
        self.text += f"\n{bar} {page_num:2d} {bar}\n\n"
        for words in lines:
            if words:
                self.text += " ".join(words) + "\n"
