#!/usr/bin/env python3
"""
Run the extraction pipeline on a receipt file and print the storage payload.

Usage:
    python scripts/extract_receipt.py receipt.jpg
    python scripts/extract_receipt.py receipt.pdf --category Groceries --category Travel
    python scripts/extract_receipt.py ocr_output.txt --text
"""

import argparse
import json
import logging
import mimetypes
import sys
import os
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.config import get_settings
from app.services.chain import ProviderChain
from app.services.pipeline import ExtractionPipeline


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Extract structured fields from a receipt")
    parser.add_argument("path", type=Path, help="Receipt image/PDF, or a text file with --text")
    parser.add_argument("--mime", help="MIME type (guessed from the file name by default)")
    parser.add_argument("--category", action="append", default=[],
                        help="Configured category name (repeatable)")
    parser.add_argument("--text", action="store_true",
                        help="Treat the file as already-recognized UTF-8 text")
    parser.add_argument("--candidates", action="store_true",
                        help="Include per-field candidates in the output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.path.exists():
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1

    if args.text:
        pipeline = ExtractionPipeline(ProviderChain(), date_order=get_settings().DATE_ORDER)
        draft = pipeline.extract_from_text(args.path.read_text(encoding="utf-8"), args.category)
    else:
        mime_type = args.mime or mimetypes.guess_type(args.path.name)[0] or "application/octet-stream"
        pipeline = ExtractionPipeline.from_settings(categories=args.category)
        draft = pipeline.extract(args.path.read_bytes(), mime_type, args.category)

    output = draft.to_payload().model_dump(by_alias=True)
    if args.candidates:
        output["candidates"] = draft.candidates
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
