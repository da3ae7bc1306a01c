"""
Export API routes.

Handles print-ready PDF output and the downloadable project bundle.
"""
import logging

from fastapi import APIRouter, HTTPException, Response

from db import SessionLocal
from repositories import BooksRepository, ChaptersRepository, StoryStateRepository
from services.export_bundle import build_project_zip
from services.render_pdf import export_filename, render_book_to_pdf

router = APIRouter()
books_repo = BooksRepository()
chapters_repo = ChaptersRepository()
story_repo = StoryStateRepository()
logger = logging.getLogger(__name__)


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{book_id}/export-pdf")
def export_pdf(book_id: int):
    """Render the book as a KDP paperback interior PDF."""
    with SessionLocal() as session:
        book = books_repo.get_book(session, book_id)
        if not book:
            raise HTTPException(status_code=404, detail="Book not found")
        chapters = chapters_repo.list_chapters(session, book_id)
    try:
        pdf = render_book_to_pdf(book, chapters)
    except Exception:
        logger.exception("PDF export failed for book %s", book_id)
        raise HTTPException(status_code=500, detail="Failed to export PDF")
    return _attachment(pdf, "application/pdf", export_filename(book, f"_KDP_{book.trim_size.value}.pdf"))


@router.get("/{book_id}/export-project")
def export_project(book_id: int):
    """Bundle manuscript, chapter data, metadata, cover and story notes as a ZIP."""
    with SessionLocal() as session:
        book = books_repo.get_book(session, book_id)
        if not book:
            raise HTTPException(status_code=404, detail="Book not found")
        chapters = chapters_repo.list_chapters(session, book_id)
        story_state = story_repo.get_state(session, book_id)
    try:
        bundle = build_project_zip(book, chapters, story_state)
    except Exception:
        logger.exception("Project export failed for book %s", book_id)
        raise HTTPException(status_code=500, detail="Failed to export project")
    return _attachment(bundle, "application/zip", export_filename(book, "_KDP_Package.zip"))
