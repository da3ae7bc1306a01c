"""
Book repository backed by SQLAlchemy/SQLite.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from domain.models import Book, CoverFinish, PaperType, TrimSize
from repositories.models import BookORM, ChapterORM, StoryStateORM

# Columns callers may write; id and created_at are assigned here.
BOOK_FIELDS = frozenset(
    c.name for c in BookORM.__table__.columns if c.name not in ("id", "created_at")
)
REQUIRED_BOOK_FIELDS = frozenset(
    c.name for c in BookORM.__table__.columns if c.name in BOOK_FIELDS and not c.nullable
)


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - BOOK_FIELDS
    if unknown:
        raise ValueError(f"Unknown book fields: {', '.join(sorted(unknown))}")
    cleaned = {k: _column_value(v) for k, v in fields.items()}
    if "keywords" in cleaned and cleaned["keywords"] is not None:
        cleaned["keywords"] = [str(k) for k in cleaned["keywords"]]
    return cleaned


def _book_from_orm(orm: BookORM) -> Book:
    return Book(
        id=orm.id,
        title=orm.title,
        subtitle=orm.subtitle,
        author_name=orm.author_name,
        language=orm.language,
        category=orm.category,
        target_audience=orm.target_audience,
        tone_style=orm.tone_style,
        pov=orm.pov,
        min_word_count=orm.min_word_count,
        target_chapters=orm.target_chapters,
        words_per_chapter=orm.words_per_chapter,
        trim_size=TrimSize(orm.trim_size) if orm.trim_size else TrimSize.SIZE_6X9,
        paper_type=PaperType(orm.paper_type) if orm.paper_type else None,
        bleed=bool(orm.bleed),
        cover_finish=CoverFinish(orm.cover_finish) if orm.cover_finish else None,
        outline=orm.outline,
        author_bio=orm.author_bio,
        conclusion=orm.conclusion,
        dedication=orm.dedication,
        copyright=orm.copyright,
        keywords=list(orm.keywords or []),
        cover_image_url=orm.cover_image_url,
        is_kdp_compliant=orm.is_kdp_compliant,
        transparency_report=orm.transparency_report,
        created_at=orm.created_at,
    )


class BooksRepository:
    """CRUD operations for books."""

    def list_books(self, session: Session) -> List[Book]:
        books = session.query(BookORM).order_by(BookORM.created_at, BookORM.id).all()
        return [_book_from_orm(b) for b in books]

    def get_book(self, session: Session, book_id: int) -> Optional[Book]:
        orm = session.get(BookORM, book_id)
        if not orm:
            return None
        return _book_from_orm(orm)

    def create_book(self, session: Session, fields: Dict[str, Any]) -> Book:
        orm = BookORM(created_at=datetime.utcnow(), **_clean_fields(fields))
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _book_from_orm(orm)

    def update_book(self, session: Session, book_id: int, updates: Dict[str, Any]) -> Optional[Book]:
        """Merge ``updates`` into the stored book. Returns None when it does not exist."""
        orm = session.get(BookORM, book_id)
        if not orm:
            return None
        cleaned = _clean_fields(updates)
        if cleaned:
            for key, value in cleaned.items():
                setattr(orm, key, value)
            session.add(orm)
            session.commit()
            session.refresh(orm)
        return _book_from_orm(orm)

    def delete_book(self, session: Session, book_id: int) -> bool:
        """Delete a book, its chapters first, then its story state."""
        orm = session.get(BookORM, book_id)
        if not orm:
            return False
        session.query(ChapterORM).filter(ChapterORM.book_id == book_id).delete()
        session.query(StoryStateORM).filter(StoryStateORM.book_id == book_id).delete()
        session.delete(orm)
        session.commit()
        return True
