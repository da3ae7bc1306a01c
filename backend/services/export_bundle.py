"""
Project bundle export.

Packs a book's stored state into a ZIP: plain-text manuscript, raw chapter
records, a metadata sheet, the cover (when stored inline) and a small
series-bible summary. Everything is derived from stored data; no provider
calls happen here.
"""
import io
import json
import logging
import zipfile
from typing import Iterable, List, Optional

from domain.models import Book, Chapter, StoryState
from services.image_data import ImageDecodeError, decode_data_url, is_data_url, to_png
from services.render_pdf import chapters_in_reading_order

logger = logging.getLogger(__name__)

MANUSCRIPT_NAME = "manuscript.txt"
CHAPTER_DATA_NAME = "chapter_data.json"
METADATA_NAME = "metadata_pack.txt"
COVER_NAME = "cover.png"
SERIES_BIBLE_NAME = "series_bible.json"


def build_manuscript_text(book: Book, chapters: Iterable[Chapter]) -> str:
    """Title block followed by every chapter heading and body, in reading order."""
    text = f"{book.title}\n{book.subtitle or ''}\nBy {book.author_name}\n\n"
    for chapter in chapters_in_reading_order(chapters):
        text += f"CHAPTER {chapter.order}: {chapter.title}\n\n{chapter.content or ''}\n\n"
    return text


def build_metadata_text(book: Book) -> str:
    return (
        f"Title: {book.title}\n"
        f"Subtitle: {book.subtitle or ''}\n"
        f"Author: {book.author_name}\n"
        f"Category: {book.category}\n"
        f"Keywords: {', '.join(book.keywords)}\n"
        f"Blurb: {book.outline or ''}\n"
    )


def build_series_bible(book: Book, story_state: Optional[StoryState] = None) -> dict:
    return {
        "title": book.title,
        "transparencyReport": book.transparency_report,
        "isKdpCompliant": book.is_kdp_compliant,
        "storyState": story_state.state if story_state else {},
    }


def _cover_png(book: Book) -> Optional[bytes]:
    if not is_data_url(book.cover_image_url):
        return None
    try:
        return to_png(decode_data_url(book.cover_image_url))
    except ImageDecodeError as exc:
        logger.warning("[export_bundle] Skipping cover for book %s: %s", book.id, exc)
        return None


def build_project_zip(
    book: Book, chapters: Iterable[Chapter], story_state: Optional[StoryState] = None
) -> bytes:
    """Return the ZIP archive bytes for a book."""
    ordered: List[Chapter] = chapters_in_reading_order(chapters)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        archive.writestr(MANUSCRIPT_NAME, build_manuscript_text(book, ordered))
        archive.writestr(
            CHAPTER_DATA_NAME,
            json.dumps([c.to_dict() for c in ordered], indent=2, ensure_ascii=False),
        )
        archive.writestr(METADATA_NAME, build_metadata_text(book))
        cover = _cover_png(book)
        if cover:
            archive.writestr(COVER_NAME, cover)
        archive.writestr(
            SERIES_BIBLE_NAME,
            json.dumps(build_series_bible(book, story_state), indent=2, ensure_ascii=False),
        )
    logger.info("[export_bundle] Packed book %s with %d chapters", book.id, len(ordered))
    return buf.getvalue()
