"""
Chapter API routes.

Chapter CRUD plus the chapter-planning and staged drafting actions that
operate on a single book or chapter.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, HTTPException, Response

from api.schemas import (
    ArchitectRequest,
    ChapterCreate,
    ChapterResponse,
    ChapterUpdate,
    DraftChunkRequest,
    DraftChunkResponse,
)
from db import SessionLocal
from domain.errors import NotFoundError
from domain.models import Chapter
from repositories import BooksRepository, ChaptersRepository
from repositories.chapters import REQUIRED_CHAPTER_FIELDS
from services.generation import (
    architect_chapters,
    bootstrap_chapters_if_empty,
    count_words,
    draft_chapter_chunk,
    is_bootstrap_book,
)
from services.providers import get_text_provider

router = APIRouter()
books_repo = BooksRepository()
chapters_repo = ChaptersRepository()
logger = logging.getLogger(__name__)


def chapter_to_response(chapter: Chapter) -> ChapterResponse:
    return ChapterResponse.model_validate(chapter)


def _chapter_fields(data, partial: bool) -> dict:
    fields = data.model_dump(exclude_unset=partial)
    for name in list(fields):
        if fields[name] is None and name in REQUIRED_CHAPTER_FIELDS:
            if partial:
                raise HTTPException(status_code=400, detail=f"{name} cannot be null")
            del fields[name]
    # word count follows content unless the caller sets it explicitly
    if fields.get("content") is not None and "word_count" not in fields:
        fields["word_count"] = count_words(fields["content"])
    return fields


@router.get("/books/{book_id}/chapters", response_model=List[ChapterResponse])
def list_chapters(book_id: int):
    """
    List a book's chapters in reading order.

    For the configured bootstrap book an empty chapter list is filled with
    a generated plan before returning.
    """
    with SessionLocal() as session:
        if is_bootstrap_book(book_id):
            try:
                bootstrap_chapters_if_empty(session, get_text_provider(), book_id)
            except Exception:
                session.rollback()
                logger.exception("Chapter bootstrap failed for book %s", book_id)
        return [chapter_to_response(c) for c in chapters_repo.list_chapters(session, book_id)]


@router.post("/books/{book_id}/chapters/resequence", response_model=List[ChapterResponse])
def resequence_chapters(book_id: int):
    """Renumber a book's chapters 1..N, keeping their current relative order."""
    with SessionLocal() as session:
        if not books_repo.get_book(session, book_id):
            raise HTTPException(status_code=404, detail="Book not found")
        return [chapter_to_response(c) for c in chapters_repo.resequence(session, book_id)]


@router.post("/books/{book_id}/architect", response_model=List[ChapterResponse])
def architect_book(book_id: int, data: Optional[ArchitectRequest] = Body(None)):
    """Generate a fresh title/goal/beats chapter plan for a book."""
    data = data or ArchitectRequest()
    try:
        with SessionLocal() as session:
            created = architect_chapters(
                session,
                get_text_provider(),
                book_id,
                chapter_count=data.chapter_count,
                replace=data.replace,
            )
            return [chapter_to_response(c) for c in created]
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except Exception:
        logger.exception("Chapter planning failed for book %s", book_id)
        raise HTTPException(status_code=500, detail="Failed to plan chapters")


@router.get("/chapters/{chapter_id}", response_model=ChapterResponse)
def get_chapter(chapter_id: int):
    with SessionLocal() as session:
        chapter = chapters_repo.get_chapter(session, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter_to_response(chapter)


@router.post("/chapters", response_model=ChapterResponse, status_code=201)
def create_chapter(data: ChapterCreate):
    fields = _chapter_fields(data, partial=False)
    with SessionLocal() as session:
        if not books_repo.get_book(session, data.book_id):
            raise HTTPException(status_code=404, detail="Book not found")
        chapter = chapters_repo.create_chapter(session, fields)
    return chapter_to_response(chapter)


@router.put("/chapters/{chapter_id}", response_model=ChapterResponse)
def update_chapter(chapter_id: int, data: ChapterUpdate):
    fields = _chapter_fields(data, partial=True)
    with SessionLocal() as session:
        if "book_id" in fields and not books_repo.get_book(session, fields["book_id"]):
            raise HTTPException(status_code=404, detail="Book not found")
        chapter = chapters_repo.update_chapter(session, chapter_id, fields)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter_to_response(chapter)


@router.delete("/chapters/{chapter_id}", status_code=204)
def delete_chapter(chapter_id: int):
    with SessionLocal() as session:
        deleted = chapters_repo.delete_chapter(session, chapter_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return Response(status_code=204)


@router.post("/chapters/{chapter_id}/draft-chunk", response_model=DraftChunkResponse)
def draft_chunk(chapter_id: int, data: DraftChunkRequest):
    """Append one of the four drafting stages to a chapter."""
    try:
        with SessionLocal() as session:
            result = draft_chapter_chunk(session, get_text_provider(), chapter_id, data.stage)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except Exception:
        logger.exception("Draft stage %s failed for chapter %s", data.stage, chapter_id)
        raise HTTPException(status_code=500, detail="Failed to draft chapter")
    return DraftChunkResponse(content=result.content, stage=result.stage, word_count=result.word_count)
