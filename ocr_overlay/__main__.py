"""Entry point for running ocr_overlay as a module.

Usage:
    python -m ocr_overlay <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
