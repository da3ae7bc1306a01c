"""
Story state repository: per-book running notes kept next to books/chapters.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy.orm import Session

from domain.models import StoryState
from repositories.models import StoryStateORM


def _state_from_orm(orm: StoryStateORM) -> StoryState:
    return StoryState(book_id=orm.book_id, state=dict(orm.state or {}), updated_at=orm.updated_at)


class StoryStateRepository:
    """Read and merge story state rows."""

    def get_state(self, session: Session, book_id: int) -> StoryState:
        orm = session.get(StoryStateORM, book_id)
        if not orm:
            return StoryState(book_id=book_id, state={"lastEvents": []})
        return _state_from_orm(orm)

    def merge_state(self, session: Session, book_id: int, update: Dict[str, Any]) -> StoryState:
        """Shallow-merge ``update`` into the stored state (last write wins per key)."""
        orm = session.get(StoryStateORM, book_id)
        if not orm:
            orm = StoryStateORM(book_id=book_id, state={"lastEvents": []})
        merged = dict(orm.state or {})
        merged.update(update)
        # reassign so the JSON column is flagged dirty
        orm.state = merged
        orm.updated_at = datetime.utcnow()
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _state_from_orm(orm)
