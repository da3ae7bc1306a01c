"""
SQLAlchemy ORM models for persistence.
"""
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from db import Base


class BookORM(Base):
    __tablename__ = "books"
    # ids are never reused after a delete
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False)
    subtitle = Column(String, nullable=True)
    author_name = Column(String, nullable=False)
    language = Column(String, nullable=False, default="English")
    category = Column(String, nullable=False)
    target_audience = Column(String, nullable=False)
    tone_style = Column(String, nullable=False)
    pov = Column(String, nullable=False)
    min_word_count = Column(Integer, nullable=False)
    target_chapters = Column(Integer, nullable=False, default=10)
    words_per_chapter = Column(Integer, nullable=False, default=2000)
    trim_size = Column(String, nullable=False, default="6x9")
    paper_type = Column(String, nullable=True)
    bleed = Column(Boolean, nullable=False, default=False)
    cover_finish = Column(String, nullable=True)
    outline = Column(Text, nullable=True)
    author_bio = Column(Text, nullable=True)
    conclusion = Column(Text, nullable=True)
    dedication = Column(Text, nullable=True)
    copyright = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=True)
    cover_image_url = Column(Text, nullable=True)
    is_kdp_compliant = Column(Boolean, nullable=True)
    transparency_report = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    chapters = relationship(
        "ChapterORM",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ChapterORM(Base):
    __tablename__ = "chapters"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    summary = Column(Text, nullable=True)
    beat_sheet = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)
    word_count = Column(Integer, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    book = relationship("BookORM", back_populates="chapters")


class StoryStateORM(Base):
    __tablename__ = "story_states"

    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True)
    state = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
