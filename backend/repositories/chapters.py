"""
Chapter repository backed by SQLAlchemy/SQLite.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from domain.models import Chapter
from repositories.models import ChapterORM

CHAPTER_FIELDS = frozenset(
    c.name for c in ChapterORM.__table__.columns if c.name not in ("id", "created_at")
)
REQUIRED_CHAPTER_FIELDS = frozenset(
    c.name for c in ChapterORM.__table__.columns if c.name in CHAPTER_FIELDS and not c.nullable
)


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - CHAPTER_FIELDS
    if unknown:
        raise ValueError(f"Unknown chapter fields: {', '.join(sorted(unknown))}")
    return dict(fields)


def _chapter_from_orm(orm: ChapterORM) -> Chapter:
    return Chapter(
        id=orm.id,
        book_id=orm.book_id,
        title=orm.title,
        summary=orm.summary,
        beat_sheet=orm.beat_sheet,
        content=orm.content,
        order=orm.order,
        word_count=orm.word_count or 0,
        is_completed=bool(orm.is_completed),
        image_url=orm.image_url,
        created_at=orm.created_at,
    )


class ChaptersRepository:
    """CRUD operations for chapters."""

    def list_chapters(self, session: Session, book_id: int) -> List[Chapter]:
        chapters = (
            session.query(ChapterORM)
            .filter(ChapterORM.book_id == book_id)
            .order_by(ChapterORM.order.asc(), ChapterORM.id.asc())
            .all()
        )
        return [_chapter_from_orm(c) for c in chapters]

    def get_chapter(self, session: Session, chapter_id: int) -> Optional[Chapter]:
        orm = session.get(ChapterORM, chapter_id)
        return _chapter_from_orm(orm) if orm else None

    def create_chapter(self, session: Session, fields: Dict[str, Any]) -> Chapter:
        orm = ChapterORM(created_at=datetime.utcnow(), **_clean_fields(fields))
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _chapter_from_orm(orm)

    def create_chapters(
        self, session: Session, book_id: int, items: Iterable[Dict[str, Any]], commit: bool = True
    ) -> List[Chapter]:
        """Bulk insert chapters for one book. With ``commit=False`` the caller owns the transaction."""
        now = datetime.utcnow()
        orms = [
            ChapterORM(book_id=book_id, created_at=now, **_clean_fields(item))
            for item in items
        ]
        session.add_all(orms)
        if not commit:
            session.flush()
            return [_chapter_from_orm(o) for o in orms]
        session.commit()
        for orm in orms:
            session.refresh(orm)
        return [_chapter_from_orm(o) for o in orms]

    def update_chapter(
        self, session: Session, chapter_id: int, updates: Dict[str, Any]
    ) -> Optional[Chapter]:
        orm = session.get(ChapterORM, chapter_id)
        if not orm:
            return None
        cleaned = _clean_fields(updates)
        if cleaned:
            for key, value in cleaned.items():
                setattr(orm, key, value)
            session.add(orm)
            session.commit()
            session.refresh(orm)
        return _chapter_from_orm(orm)

    def delete_chapter(self, session: Session, chapter_id: int) -> bool:
        orm = session.get(ChapterORM, chapter_id)
        if not orm:
            return False
        session.delete(orm)
        session.commit()
        return True

    def delete_by_book(self, session: Session, book_id: int) -> None:
        session.query(ChapterORM).filter(ChapterORM.book_id == book_id).delete()
        session.commit()

    def count_by_book(self, session: Session, book_id: int) -> int:
        return (
            session.query(func.count(ChapterORM.id))
            .filter(ChapterORM.book_id == book_id)
            .scalar()
            or 0
        )

    def resequence(self, session: Session, book_id: int) -> List[Chapter]:
        """Stable-sort a book's chapters by current order and renumber them 1..N."""
        chapters = (
            session.query(ChapterORM)
            .filter(ChapterORM.book_id == book_id)
            .order_by(ChapterORM.order.asc(), ChapterORM.id.asc())
            .all()
        )
        for position, orm in enumerate(chapters, start=1):
            if orm.order != position:
                orm.order = position
                session.add(orm)
        session.commit()
        for orm in chapters:
            session.refresh(orm)
        return [_chapter_from_orm(c) for c in chapters]
