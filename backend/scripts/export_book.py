"""Export a stored book as a KDP PDF or a project ZIP without running the API.

Usage (from the backend directory):
    python -m scripts.export_book --book-id 1 [--format pdf|zip] [--out path]

Without --out the file is written to the current directory using the same
file name the HTTP export would offer.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from db import SessionLocal, init_db
from repositories import BooksRepository, ChaptersRepository, StoryStateRepository
from services.export_bundle import build_project_zip
from services.render_pdf import export_filename, render_book_to_pdf

logger = logging.getLogger("export_book")


def main(argv: Optional[List[str]] = None) -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Export a book as a print PDF or a project bundle.")
    parser.add_argument("--book-id", type=int, required=True, help="Id of the book to export.")
    parser.add_argument("--format", choices=["pdf", "zip"], default="pdf")
    parser.add_argument("--out", default=None, help="Output file; defaults to the export file name.")
    args = parser.parse_args(argv)

    init_db()
    with SessionLocal() as session:
        book = BooksRepository().get_book(session, args.book_id)
        if not book:
            logger.error("Book %s not found", args.book_id)
            return 1
        chapters = ChaptersRepository().list_chapters(session, args.book_id)
        story_state = StoryStateRepository().get_state(session, args.book_id)

    if args.format == "pdf":
        payload = render_book_to_pdf(book, chapters)
        default_name = export_filename(book, f"_KDP_{book.trim_size.value}.pdf")
    else:
        payload = build_project_zip(book, chapters, story_state)
        default_name = export_filename(book, "_KDP_Package.zip")

    out_path = Path(args.out) if args.out else Path.cwd() / default_name
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(payload)
    logger.info("Wrote %s (%d bytes, %d chapters)", out_path, len(payload), len(chapters))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
