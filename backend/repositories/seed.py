"""
Demo data for local development.
"""
import logging
from sqlalchemy.orm import Session

from repositories.books import BooksRepository

logger = logging.getLogger(__name__)

DEMO_BOOK = {
    "title": "The Silent Echo",
    "subtitle": "A Mystery in the Mountains",
    "author_name": "Eleanor Vance",
    "language": "English",
    "category": "Mystery, Thriller & Suspense",
    "target_audience": "Adult",
    "tone_style": "Suspenseful, Atmospheric",
    "pov": "Third Person Limited",
    "min_word_count": 60000,
    "target_chapters": 12,
    "words_per_chapter": 5000,
    "outline": (
        "A woman returns to her hometown to uncover the truth about her sister's "
        "disappearance, only to find that the town itself is hiding a dark secret."
    ),
}


def seed_demo_books(session: Session, books_repo: BooksRepository | None = None) -> bool:
    """Insert the demo book when the store is empty. Returns True if seeded."""
    books_repo = books_repo or BooksRepository()
    if books_repo.list_books(session):
        return False
    logger.info("Seeding database with demo book %r", DEMO_BOOK["title"])
    books_repo.create_book(session, dict(DEMO_BOOK))
    return True
