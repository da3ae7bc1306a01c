"""
Generation orchestrator.

Each operation follows the same steps: load the book/chapter (NotFoundError
if absent), render a prompt, make one or more provider round trips, extract
whatever structure the response carries, and write the recognised fields
back through the repositories. Provider exceptions propagate to the caller;
writes that already happened are not rolled back.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from domain.errors import NotFoundError
from domain.models import Book, Chapter, ChapterPipeline, ComplianceReport
from repositories import BooksRepository, ChaptersRepository, StoryStateRepository
from services.json_extraction import (
    coerce_text,
    extract_json_object,
    parse_chapter_result,
    parse_compliance_report,
    parse_keywords,
)
from services.prompt_templates import (
    DRAFT_CHUNK_STAGES,
    build_architect_prompt,
    build_chapter_draft_prompt,
    build_chapter_image_prompt,
    build_compliance_prompt,
    build_cover_prompt,
    build_draft_chunk_prompt,
    build_keywords_prompt,
    build_outline_prompt,
    build_refine_prompt,
)
from services.providers import GenerationProvider
from settings import settings

logger = logging.getLogger(__name__)

books_repo = BooksRepository()
chapters_repo = ChaptersRepository()
story_repo = StoryStateRepository()

# Outline keys -> book columns
OUTLINE_BOOK_FIELDS = {
    "outline": "outline",
    "authorBio": "author_bio",
    "conclusion": "conclusion",
    "dedication": "dedication",
    "copyright": "copyright",
}

_bootstrap_locks: Dict[int, threading.Lock] = {}
_bootstrap_locks_guard = threading.Lock()


@dataclass
class OutlineResult:
    fields: Dict[str, Optional[str]]
    chapters: List[Chapter] = field(default_factory=list)


@dataclass
class ChapterGenerationResult:
    chapter: Chapter
    content: str
    compliance: ComplianceReport
    word_count: int


@dataclass
class DraftChunkResult:
    chapter: Chapter
    content: str
    stage: int
    word_count: int


def count_words(text: Optional[str]) -> int:
    """Whitespace-delimited word count; empty tokens are not counted."""
    return len((text or "").split())


def _require_book(session: Session, book_id: int) -> Book:
    book = books_repo.get_book(session, book_id)
    if not book:
        raise NotFoundError("Book", book_id)
    return book


def _require_chapter(session: Session, chapter_id: int) -> Chapter:
    chapter = chapters_repo.get_chapter(session, chapter_id)
    if not chapter:
        raise NotFoundError("Chapter", chapter_id)
    return chapter


def _chapter_items(
    entries: Any, summary_key: str = "summary", beats_key: str = "beatSheet"
) -> List[Dict[str, Any]]:
    """
    Turn a provider ``chapters`` array into chapter rows.

    ``order`` is the 1-based position in the provider's array; the
    provider's ordering is taken as is.
    """
    if not isinstance(entries, list):
        return []
    items: List[Dict[str, Any]] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        position = len(items) + 1
        items.append(
            {
                "title": coerce_text(entry.get("title")) or f"Chapter {position}",
                "summary": coerce_text(entry.get(summary_key)),
                "beat_sheet": coerce_text(entry.get(beats_key)),
                "content": "",
                "order": position,
                "word_count": 0,
                "is_completed": False,
            }
        )
    return items


def generate_outline(session: Session, provider: GenerationProvider, book_id: int) -> OutlineResult:
    """Write outline + front/back matter onto the book and bulk-create its chapters."""
    book = _require_book(session, book_id)
    raw = provider.generate_text(build_outline_prompt(book), json_mode=True)
    data = extract_json_object(raw)

    if data is None:
        logger.warning("Outline for book %s was not JSON; storing raw text as outline", book_id)
        fields: Dict[str, Optional[str]] = {"outline": (raw or "").strip()}
        items: List[Dict[str, Any]] = []
    else:
        fields = {
            column: coerce_text(data[key])
            for key, column in OUTLINE_BOOK_FIELDS.items()
            if data.get(key) is not None
        }
        items = _chapter_items(data.get("chapters"))

    if fields:
        books_repo.update_book(session, book_id, fields)
    created = chapters_repo.create_chapters(session, book_id, items) if items else []
    logger.info("Outline generated for book %s: %d chapters created", book_id, len(created))
    return OutlineResult(fields=fields, chapters=created)


def _architect_items(provider: GenerationProvider, book: Book, chapter_count: int) -> List[Dict[str, Any]]:
    raw = provider.generate_text(build_architect_prompt(book, chapter_count), json_mode=True)
    data = extract_json_object(raw) or {}
    return _chapter_items(data.get("chapters"), summary_key="goal", beats_key="beats")


def architect_chapters(
    session: Session,
    provider: GenerationProvider,
    book_id: int,
    chapter_count: Optional[int] = None,
    replace: bool = True,
) -> List[Chapter]:
    """Generate a title/goal/beats chapter plan; with ``replace`` existing chapters are dropped first."""
    book = _require_book(session, book_id)
    items = _architect_items(provider, book, chapter_count or settings.BOOTSTRAP_CHAPTER_COUNT)
    if replace:
        chapters_repo.delete_by_book(session, book_id)
    created = chapters_repo.create_chapters(session, book_id, items) if items else []
    logger.info("Architected %d chapters for book %s (replace=%s)", len(created), book_id, replace)
    return created


def is_bootstrap_book(book_id: int) -> bool:
    return settings.BOOTSTRAP_BOOK_ID is not None and book_id == settings.BOOTSTRAP_BOOK_ID


def _bootstrap_lock(book_id: int) -> threading.Lock:
    with _bootstrap_locks_guard:
        return _bootstrap_locks.setdefault(book_id, threading.Lock())


def split_title(title: str) -> tuple[str, str]:
    """'Main: Sub: More' -> ('Main', 'Sub: More')."""
    main, _, rest = title.partition(":")
    return main.strip(), rest.strip()


def bootstrap_chapters_if_empty(
    session: Session,
    provider: GenerationProvider,
    book_id: int,
    chapter_count: Optional[int] = None,
) -> List[Chapter]:
    """
    Generate chapters for a book if and only if it has none.

    The emptiness check is repeated under a per-book lock right before the
    insert, and all chapters go in with one commit, so two concurrent
    callers cannot both create a set.
    """
    if chapters_repo.count_by_book(session, book_id) > 0:
        return []
    with _bootstrap_lock(book_id):
        # end any open read transaction so the re-check sees other writers
        session.commit()
        if chapters_repo.count_by_book(session, book_id) > 0:
            return []
        book = books_repo.get_book(session, book_id)
        if not book:
            return []
        if book.has_split_title:
            title, subtitle = split_title(book.title)
            book = books_repo.update_book(session, book_id, {"title": title, "subtitle": subtitle}) or book

        items = _architect_items(provider, book, chapter_count or settings.BOOTSTRAP_CHAPTER_COUNT)
        if not items:
            return []
        created = chapters_repo.create_chapters(session, book_id, items)
    logger.info("Bootstrapped %d chapters for book %s", len(created), book_id)
    return created


def generate_chapter(
    session: Session,
    provider: GenerationProvider,
    chapter_id: int,
    context: Optional[str] = None,
    pipeline: Optional[ChapterPipeline] = None,
) -> ChapterGenerationResult:
    """
    Replace a chapter's content with generated prose.

    ``chained`` runs draft -> refine -> compliance check, each step
    consuming the previous step's text; ``single`` stops after the draft.
    The compliance verdict is stored on the owning book.
    """
    chapter = _require_chapter(session, chapter_id)
    book = _require_book(session, chapter.book_id)
    pipeline = ChapterPipeline(pipeline or settings.CHAPTER_PIPELINE)

    draft = parse_chapter_result(
        provider.generate_text(build_chapter_draft_prompt(book, chapter, context))
    )
    content = draft.content
    compliance = draft.compliance

    if pipeline is ChapterPipeline.CHAINED:
        refined = parse_chapter_result(
            provider.generate_text(build_refine_prompt(book, chapter, content))
        )
        if refined.content.strip():
            content = refined.content
        compliance = parse_compliance_report(
            provider.generate_text(build_compliance_prompt(book, chapter, content), json_mode=True)
        )

    word_count = count_words(content)
    updated = chapters_repo.update_chapter(
        session, chapter.id, {"content": content, "word_count": word_count}
    ) or chapter
    books_repo.update_book(
        session,
        book.id,
        {
            "is_kdp_compliant": compliance.is_compliant,
            "transparency_report": compliance.transparency_report,
        },
    )
    logger.info(
        "Chapter %s generated via %s pipeline: %d words, compliant=%s",
        chapter.id, pipeline.value, word_count, compliance.is_compliant,
    )
    return ChapterGenerationResult(
        chapter=updated, content=content, compliance=compliance, word_count=word_count
    )


def draft_chapter_chunk(
    session: Session, provider: GenerationProvider, chapter_id: int, stage: int
) -> DraftChunkResult:
    """Append one drafting stage to a chapter and log it in the book's story state."""
    if not 1 <= stage <= DRAFT_CHUNK_STAGES:
        raise ValueError(f"stage must be between 1 and {DRAFT_CHUNK_STAGES}")
    chapter = _require_chapter(session, chapter_id)
    book = _require_book(session, chapter.book_id)
    story = story_repo.get_state(session, book.id)

    new_content = (
        provider.generate_text(build_draft_chunk_prompt(book, chapter, stage, story.state)) or ""
    ).strip()
    existing = chapter.content or ""
    combined = f"{existing}\n\n{new_content}" if existing.strip() else new_content
    word_count = count_words(combined)
    updated = chapters_repo.update_chapter(
        session, chapter.id, {"content": combined, "word_count": word_count}
    ) or chapter

    story_repo.merge_state(
        session,
        book.id,
        {"lastEvents": story.last_events + [f"Finished stage {stage} of chapter {chapter.order}"]},
    )
    return DraftChunkResult(chapter=updated, content=new_content, stage=stage, word_count=word_count)


def generate_chapter_image(session: Session, provider: GenerationProvider, chapter_id: int) -> str:
    """Illustration for a chapter. Returned, not stored."""
    chapter = _require_chapter(session, chapter_id)
    book = _require_book(session, chapter.book_id)
    return provider.generate_image(build_chapter_image_prompt(book, chapter))


def generate_cover(session: Session, provider: GenerationProvider, book_id: int) -> str:
    """Cover art for a book. Returned, not stored."""
    book = _require_book(session, book_id)
    return provider.generate_image(build_cover_prompt(book))


def generate_keywords(session: Session, provider: GenerationProvider, book_id: int) -> List[str]:
    book = _require_book(session, book_id)
    keywords = parse_keywords(provider.generate_text(build_keywords_prompt(book), json_mode=True))
    books_repo.update_book(session, book_id, {"keywords": keywords})
    return keywords
