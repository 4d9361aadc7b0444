#!/usr/bin/env python3
"""
merge_images_pdfs.py
--------------------------------
Turn images into PDF pages and merge them with existing PDFs into ONE PDF.

Features:
- Works on Windows/macOS/Linux (Python 3.8+).
- Every image becomes one page, centered and scaled to fit inside the margins.
- Every PDF contributes all of its pages, unmodified and in order.
- Handles encrypted PDFs: use a common password with --password, or get prompted per-file.
- Stable, human-friendly ordering (natural sort by filename). Optionally, order by mtime
  or keep the order given on the command line.
- Choose whether a broken item aborts the whole run or is skipped.

Usage (common cases):
  python merge_images_pdfs.py ./scans
  python merge_images_pdfs.py cover.png report.pdf back.jpg --order given -o booklet.pdf
  python merge_images_pdfs.py ./pdfs --password "COMMON_PASS"
  python merge_images_pdfs.py ./photos --recursive --pattern "IMG_*" --on-error skip
  python merge_images_pdfs.py ./photos --page-width 612 --page-height 792 --margin 36

Install dependencies:
  python -m pip install PyPDF2 Pillow reportlab
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from getpass import getpass
from typing import List, Optional, Sequence

from PyPDF2 import PdfReader

from nekopdf.core import (
    ON_ERROR_ABORT,
    ON_ERROR_CHOICES,
    AssemblyOutput,
    MergeItem,
    assemble,
    discover_inputs,
    is_image_name,
    is_pdf_name,
    item_from_path,
    natural_key,
    try_decrypt,
)
from nekopdf.errors import NekoPDFError
from nekopdf.layout import A4_HEIGHT, A4_WIDTH, DEFAULT_MARGIN, PageGeometry

logger = logging.getLogger("merge_images_pdfs")


def collect_inputs(paths: Sequence[str], recursive: bool, pattern: str, order_mode: str) -> List[str]:
    """Expand files and folders in *paths* into an ordered list of input files."""

    collected: List[str] = []
    for path in paths:
        if os.path.isdir(path):
            found = discover_inputs(path, recursive=recursive, pattern=pattern)
            collected.extend(sorted(found, key=lambda p: natural_key(os.path.basename(p))))
        elif os.path.isfile(path):
            if is_pdf_name(path) or is_image_name(path):
                collected.append(os.path.abspath(path))
            else:
                print(f"Skipping unsupported file: {path}")
        else:
            print(f"Not found: {path}", file=sys.stderr)

    if order_mode == "mtime":
        return sorted(collected, key=lambda path: os.path.getmtime(path))
    if order_mode == "name":
        return sorted(collected, key=lambda path: natural_key(os.path.basename(path)))
    return collected


def _resolve_password(path: str, common_password: Optional[str], prompt_missing_passwords: bool) -> Optional[str]:
    """Return a password that unlocks the PDF at *path*, or None if it is not encrypted/unlockable."""

    try:
        reader = PdfReader(path)
    except Exception as exc:
        logger.debug("Could not peek at '%s': %s", path, exc)
        return None
    if not getattr(reader, "is_encrypted", False):
        return None

    rel = os.path.relpath(path)
    if try_decrypt(reader, ""):
        return None
    if common_password and try_decrypt(PdfReader(path), common_password):
        return common_password

    while prompt_missing_passwords:
        password = getpass(f"  Password for '{rel}': ")
        if not password:
            break
        if try_decrypt(PdfReader(path), password):
            return password
        print("  Wrong password.")
    return None


def _print_summary(result: AssemblyOutput) -> None:
    print(f"\nSummary: items={result.item_count}, merged={result.merged_count}, skipped={result.skipped_count}")


def assemble_files(
    inputs: Sequence[str],
    output_path: str,
    geometry: PageGeometry,
    common_password: Optional[str] = None,
    prompt_missing_passwords: bool = True,
    on_error: str = ON_ERROR_ABORT,
) -> int:
    """Assemble the files at *inputs*, in order, into *output_path*. Returns the page count."""

    items: List[MergeItem] = []
    for path in inputs:
        print(f"Adding: {os.path.relpath(path)}")
        password = None
        if is_pdf_name(path):
            password = _resolve_password(path, common_password, prompt_missing_passwords)
        items.append(item_from_path(path, password=password))

    result = assemble(items, geometry, on_error=on_error, default_password=common_password)

    for name in result.skipped_items:
        print(f"  Skipped: {name}")

    if not result.has_output or result.buffer is None:
        print("\nNothing could be assembled; nothing to write.")
        _print_summary(result)
        return 0

    try:
        os.makedirs(os.path.dirname(os.path.abspath(output_path)) or ".", exist_ok=True)
        with open(output_path, "wb") as out_file:
            out_file.write(result.buffer)
        print(f"\n✅ Saved {result.page_count}-page PDF to: {output_path}")
    except Exception as exc:
        print(f"\n❌ Failed to write output '{output_path}': {exc}")
        raise

    _print_summary(result)
    return result.page_count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Turn images into PDF pages and merge them with existing PDFs into one PDF.")
    parser.add_argument("paths", nargs="+", help="Image/PDF files or folders containing them")
    parser.add_argument("-o", "--output", default="merged.pdf", help="Output PDF path (default: merged.pdf)")
    parser.add_argument("--password", help="Common password used by all/most encrypted PDFs (optional)")
    parser.add_argument("--no-prompt", action="store_true", help="Do NOT prompt for per-file passwords")
    parser.add_argument("--recursive", action="store_true", help="Recurse into subfolders")
    parser.add_argument("--pattern", default="*", help="Filename pattern to include from folders (default: *)")
    parser.add_argument(
        "--order",
        choices=["name", "mtime", "given"],
        default="name",
        help="Merge order: natural by filename, by modification time, or as given on the command line",
    )
    parser.add_argument(
        "--on-error",
        choices=list(ON_ERROR_CHOICES),
        default=ON_ERROR_ABORT,
        help="What to do with an item that cannot be read: abort the run or skip the item",
    )
    parser.add_argument("--page-width", type=float, default=A4_WIDTH, help=f"Generated page width in points (default: {A4_WIDTH:g})")
    parser.add_argument("--page-height", type=float, default=A4_HEIGHT, help=f"Generated page height in points (default: {A4_HEIGHT:g})")
    parser.add_argument("--margin", type=float, default=DEFAULT_MARGIN, help=f"Margin around images in points (default: {DEFAULT_MARGIN:g})")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        geometry = PageGeometry(width=args.page_width, height=args.page_height, margin=args.margin)
    except NekoPDFError as exc:
        parser.error(str(exc))

    inputs = collect_inputs(args.paths, recursive=args.recursive, pattern=args.pattern, order_mode=args.order)
    if not inputs:
        print("No images or PDFs found with the given criteria.")
        return 1

    print(f"Found {len(inputs)} file(s). Order: {args.order}. Output: {args.output}")
    try:
        pages = assemble_files(
            inputs,
            output_path=args.output,
            geometry=geometry,
            common_password=args.password,
            prompt_missing_passwords=not args.no_prompt,
            on_error=args.on_error,
        )
    except KeyboardInterrupt:
        print("\nAborted by user.")
        raise
    except NekoPDFError as exc:
        print(f"\n❌ {exc}", file=sys.stderr)
        return 1

    return 0 if pages else 1


if __name__ == "__main__":
    sys.exit(main())
