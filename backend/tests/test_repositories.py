import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db import init_db
from domain.models import TrimSize
from repositories import BooksRepository, ChaptersRepository, StoryStateRepository
from repositories.seed import DEMO_BOOK, seed_demo_books

books_repo = BooksRepository()
chapters_repo = ChaptersRepository()
story_repo = StoryStateRepository()


def _chapter(title, order, **extra):
    fields = {"title": title, "order": order}
    fields.update(extra)
    return fields


def test_create_and_get_book_round_trip(session, book_fields):
    created = books_repo.create_book(session, {**book_fields, "keywords": ["lanterns", "dragons"]})

    assert created.id is not None
    assert created.language == "English"
    assert created.trim_size is TrimSize.SIZE_6X9
    assert created.bleed is False

    fetched = books_repo.get_book(session, created.id)
    assert fetched.title == "The Lantern Keeper"
    assert fetched.keywords == ["lanterns", "dragons"]
    assert fetched.created_at == created.created_at


def test_get_missing_book_returns_none(session):
    assert books_repo.get_book(session, 999) is None


def test_create_book_rejects_unknown_fields(session, book_fields):
    with pytest.raises(ValueError, match="Unknown book fields"):
        books_repo.create_book(session, {**book_fields, "colour": "blue"})


def test_list_books_in_creation_order(session, book_fields):
    first = books_repo.create_book(session, {**book_fields, "title": "First"})
    second = books_repo.create_book(session, {**book_fields, "title": "Second"})

    assert [b.id for b in books_repo.list_books(session)] == [first.id, second.id]


def test_update_book_merges_fields(session, book_fields):
    book = books_repo.create_book(session, book_fields)

    updated = books_repo.update_book(session, book.id, {"subtitle": "A Tale", "trim_size": TrimSize.SIZE_5X8})

    assert updated.subtitle == "A Tale"
    assert updated.trim_size is TrimSize.SIZE_5X8
    assert updated.title == book.title


def test_update_book_with_empty_updates_returns_unchanged(session, book_fields):
    book = books_repo.create_book(session, book_fields)

    assert books_repo.update_book(session, book.id, {}) == book


def test_update_missing_book_returns_none(session):
    assert books_repo.update_book(session, 42, {"title": "Nope"}) is None


def test_last_write_wins_across_sessions(tmp_path, book_fields):
    engine = create_engine(f"sqlite:///{tmp_path / 'books.db'}", connect_args={"check_same_thread": False})
    init_db(bind=engine)
    session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    with session_factory() as setup:
        book = books_repo.create_book(setup, book_fields)

    with session_factory() as first, session_factory() as second:
        books_repo.get_book(first, book.id)
        books_repo.get_book(second, book.id)
        books_repo.update_book(first, book.id, {"outline": "first"})
        books_repo.update_book(second, book.id, {"outline": "second"})

    with session_factory() as check:
        assert books_repo.get_book(check, book.id).outline == "second"
    engine.dispose()


def test_delete_book_removes_chapters_and_story_state(session, book_fields):
    book = books_repo.create_book(session, book_fields)
    other = books_repo.create_book(session, {**book_fields, "title": "Other"})
    chapters_repo.create_chapters(session, book.id, [_chapter("One", 1), _chapter("Two", 2)])
    chapters_repo.create_chapters(session, other.id, [_chapter("Kept", 1)])
    story_repo.merge_state(session, book.id, {"lastEvents": ["x"]})

    assert books_repo.delete_book(session, book.id) is True

    assert books_repo.get_book(session, book.id) is None
    assert chapters_repo.list_chapters(session, book.id) == []
    assert story_repo.get_state(session, book.id).last_events == []
    assert [c.title for c in chapters_repo.list_chapters(session, other.id)] == ["Kept"]


def test_delete_missing_book_returns_false(session):
    assert books_repo.delete_book(session, 7) is False


def test_list_chapters_orders_by_order_then_id(session, book_fields):
    book = books_repo.create_book(session, book_fields)
    chapters_repo.create_chapter(session, {"book_id": book.id, **_chapter("Third", 3)})
    first = chapters_repo.create_chapter(session, {"book_id": book.id, **_chapter("First", 1)})
    dup = chapters_repo.create_chapter(session, {"book_id": book.id, **_chapter("Also first", 1)})

    listed = chapters_repo.list_chapters(session, book.id)

    assert [c.title for c in listed] == ["First", "Also first", "Third"]
    assert listed[0].id == first.id and listed[1].id == dup.id


def test_chapter_defaults(session, book_fields):
    book = books_repo.create_book(session, book_fields)

    chapter = chapters_repo.create_chapter(session, {"book_id": book.id, **_chapter("Opening", 1)})

    assert chapter.word_count == 0
    assert chapter.is_completed is False
    assert chapter.content is None


def test_update_and_delete_chapter(session, book_fields):
    book = books_repo.create_book(session, book_fields)
    chapter = chapters_repo.create_chapter(session, {"book_id": book.id, **_chapter("Opening", 1)})

    updated = chapters_repo.update_chapter(session, chapter.id, {"is_completed": True, "content": "Hi there"})
    assert updated.is_completed is True
    assert updated.content == "Hi there"

    assert chapters_repo.delete_chapter(session, chapter.id) is True
    assert chapters_repo.get_chapter(session, chapter.id) is None
    assert chapters_repo.delete_chapter(session, chapter.id) is False
    assert chapters_repo.update_chapter(session, chapter.id, {"title": "x"}) is None


def test_resequence_renumbers_densely(session, book_fields):
    book = books_repo.create_book(session, book_fields)
    chapters_repo.create_chapters(
        session,
        book.id,
        [_chapter("C", 10), _chapter("A", 2), _chapter("B", 2), _chapter("D", 40)],
    )

    resequenced = chapters_repo.resequence(session, book.id)

    assert [(c.title, c.order) for c in resequenced] == [("A", 1), ("B", 2), ("C", 3), ("D", 4)]
    assert chapters_repo.count_by_book(session, book.id) == 4


def test_story_state_defaults_and_merges(session, book_fields):
    book = books_repo.create_book(session, book_fields)

    assert story_repo.get_state(session, book.id).state == {"lastEvents": []}

    story_repo.merge_state(session, book.id, {"lastEvents": ["one"], "mood": "tense"})
    story_repo.merge_state(session, book.id, {"lastEvents": ["one", "two"]})

    state = story_repo.get_state(session, book.id)
    assert state.last_events == ["one", "two"]
    assert state.state["mood"] == "tense"


def test_seed_demo_books_only_when_empty(session):
    assert seed_demo_books(session) is True
    assert seed_demo_books(session) is False

    books = books_repo.list_books(session)
    assert [b.title for b in books] == [DEMO_BOOK["title"]]


def test_ids_are_not_reused_after_delete(session, book_fields):
    book = books_repo.create_book(session, book_fields)
    chapter = chapters_repo.create_chapter(session, {"book_id": book.id, **_chapter("Opening", 1)})
    chapters_repo.delete_chapter(session, chapter.id)
    books_repo.delete_book(session, book.id)

    new_book = books_repo.create_book(session, book_fields)
    new_chapter = chapters_repo.create_chapter(session, {"book_id": new_book.id, **_chapter("Again", 1)})

    assert new_book.id > book.id
    assert new_chapter.id > chapter.id
    assert books_repo.get_book(session, book.id) is None
    assert chapters_repo.get_chapter(session, chapter.id) is None
