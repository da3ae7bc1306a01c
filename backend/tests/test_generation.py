import json
import threading
import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import StubProvider
from db import init_db
from domain.errors import NotFoundError, ProviderError
from domain.models import ChapterPipeline
from repositories import BooksRepository, ChaptersRepository, StoryStateRepository
from services import generation
from settings import settings

books_repo = BooksRepository()
chapters_repo = ChaptersRepository()
story_repo = StoryStateRepository()

OUTLINE_JSON = json.dumps(
    {
        "outline": "A keeper of lanterns guards the last light.",
        "authorBio": "Mara writes by candlelight.",
        "conclusion": "The light endures.",
        "dedication": "For the night owls.",
        "copyright": "All rights reserved.",
        "chapters": [
            {"title": "Embers", "summary": "The flame dims.", "beatSheet": "- spark\n- gust"},
            {"title": "Smoke", "summary": "A stranger arrives.", "beatSheet": ["arrival", "warning"]},
            {"title": "Dawn", "summary": "Light returns.", "beatSheet": "- sunrise"},
        ],
    }
)

ARCHITECT_JSON = json.dumps(
    {
        "chapters": [
            {"title": "The Gate", "goal": "Cross over", "beats": ["knock", "open", "step"]},
            {"title": "The Road", "goal": "Survive", "beats": ["walk", "storm", "shelter"]},
        ]
    }
)


@pytest.fixture
def book(session, book_fields):
    return books_repo.create_book(session, book_fields)


@pytest.fixture
def chapter(session, book):
    return chapters_repo.create_chapter(
        session,
        {"book_id": book.id, "title": "Embers", "order": 1, "summary": "The flame dims.", "beat_sheet": "- spark"},
    )


def test_count_words_collapses_whitespace():
    assert generation.count_words("one two  three") == 3
    assert generation.count_words("  ") == 0
    assert generation.count_words(None) == 0


def test_generate_outline_updates_book_and_creates_chapters(session, book):
    provider = StubProvider([f"Here you go:\n```json\n{OUTLINE_JSON}\n```"])

    result = generation.generate_outline(session, provider, book.id)

    assert provider.prompts[0][1] is True  # json mode
    stored = books_repo.get_book(session, book.id)
    assert stored.outline == "A keeper of lanterns guards the last light."
    assert stored.author_bio == "Mara writes by candlelight."
    assert stored.dedication == "For the night owls."

    chapters = chapters_repo.list_chapters(session, book.id)
    assert [(c.title, c.order) for c in chapters] == [("Embers", 1), ("Smoke", 2), ("Dawn", 3)]
    assert chapters[1].beat_sheet == "arrival\nwarning"
    assert all(c.content == "" and c.word_count == 0 and not c.is_completed for c in chapters)
    assert [c.id for c in result.chapters] == [c.id for c in chapters]


def test_generate_outline_raw_text_becomes_outline(session, book):
    provider = StubProvider(["Just a paragraph describing the book."])

    result = generation.generate_outline(session, provider, book.id)

    assert result.chapters == []
    assert books_repo.get_book(session, book.id).outline == "Just a paragraph describing the book."
    assert chapters_repo.count_by_book(session, book.id) == 0


def test_generate_outline_missing_book(session):
    with pytest.raises(NotFoundError):
        generation.generate_outline(session, StubProvider(), 404)


def test_generate_outline_provider_failure_writes_nothing(session, book):
    provider = StubProvider([ProviderError("rate limited")])

    with pytest.raises(ProviderError):
        generation.generate_outline(session, provider, book.id)

    assert books_repo.get_book(session, book.id).outline is None
    assert chapters_repo.count_by_book(session, book.id) == 0


def test_generate_chapter_chained_pipeline(session, book, chapter):
    provider = StubProvider(
        [
            json.dumps({"content": "Draft words here", "compliance": {"isCompliant": True}}),
            "Refined words that read better now",
            '{"isCompliant": false, "violations": ["lyrics"], "transparencyReport": "Quoted a song."}',
        ]
    )

    result = generation.generate_chapter(session, provider, chapter.id)

    assert len(provider.prompts) == 3
    assert "Draft words here" in provider.prompts[1][0]
    assert "Refined words that read better now" in provider.prompts[2][0]
    assert provider.prompts[2][1] is True

    assert result.content == "Refined words that read better now"
    assert result.word_count == 6
    assert result.compliance.is_compliant is False
    assert result.compliance.violations == ["lyrics"]

    stored = chapters_repo.get_chapter(session, chapter.id)
    assert stored.content == "Refined words that read better now"
    assert stored.word_count == 6
    book_after = books_repo.get_book(session, book.id)
    assert book_after.is_kdp_compliant is False
    assert book_after.transparency_report == "Quoted a song."


def test_generate_chapter_keeps_draft_when_refine_is_empty(session, book, chapter):
    provider = StubProvider(["one two  three", "   ", '{"isCompliant": true}'])

    result = generation.generate_chapter(session, provider, chapter.id)

    assert result.content == "one two  three"
    assert result.word_count == 3


def test_generate_chapter_single_pipeline_uses_raw_text(session, book, chapter):
    provider = StubProvider(["Plain prose only."])

    result = generation.generate_chapter(
        session, provider, chapter.id, context="It is winter.", pipeline=ChapterPipeline.SINGLE
    )

    assert len(provider.prompts) == 1
    assert "Extra Context: It is winter." in provider.prompts[0][0]
    assert result.content == "Plain prose only."
    assert result.compliance.is_compliant is True
    assert result.compliance.transparency_report == "Raw text generated."
    assert books_repo.get_book(session, book.id).is_kdp_compliant is True


def test_generate_chapter_pipeline_from_settings(session, book, chapter, monkeypatch):
    monkeypatch.setattr(settings, "CHAPTER_PIPELINE", "single")
    provider = StubProvider(['{"content": "Only the draft."}'])

    result = generation.generate_chapter(session, provider, chapter.id)

    assert result.content == "Only the draft."
    assert len(provider.prompts) == 1


def test_generate_chapter_reads_fenced_reply_after_prose(session, book, chapter):
    provider = StubProvider(['Here is your result:\n```json\n{"content":"X"}\n```'])

    result = generation.generate_chapter(session, provider, chapter.id, pipeline=ChapterPipeline.SINGLE)

    assert result.content == "X"
    stored = chapters_repo.get_chapter(session, chapter.id)
    assert stored.content == "X"
    assert stored.word_count == 1


def test_generate_chapter_keeps_paragraph_breaks_and_verdict(session, book, chapter):
    reply = (
        '{"content": "The lamp flickered.\n\nThen it went out.", '
        '"compliance": {"isCompliant": false, "violations": ["brand"], "transparencyReport": "One brand."}}'
    )
    provider = StubProvider([reply])

    result = generation.generate_chapter(session, provider, chapter.id, pipeline=ChapterPipeline.SINGLE)

    assert result.compliance.is_compliant is False
    assert chapters_repo.get_chapter(session, chapter.id).content == "The lamp flickered.\n\nThen it went out."
    stored_book = books_repo.get_book(session, book.id)
    assert stored_book.is_kdp_compliant is False
    assert stored_book.transparency_report == "One brand."


def test_generate_chapter_missing_chapter(session):
    with pytest.raises(NotFoundError):
        generation.generate_chapter(session, StubProvider(), 99)


def test_draft_chunk_appends_and_records_story_state(session, book, chapter):
    provider = StubProvider(["First stage text.", "Second stage text."])

    first = generation.draft_chapter_chunk(session, provider, chapter.id, 1)
    second = generation.draft_chapter_chunk(session, provider, chapter.id, 2)

    assert first.content == "First stage text."
    assert second.word_count == 6
    stored = chapters_repo.get_chapter(session, chapter.id)
    assert stored.content == "First stage text.\n\nSecond stage text."
    assert story_repo.get_state(session, book.id).last_events == [
        "Finished stage 1 of chapter 1",
        "Finished stage 2 of chapter 1",
    ]
    # second prompt carries the story state written by the first stage
    assert "Finished stage 1 of chapter 1" in provider.prompts[1][0]


@pytest.mark.parametrize("stage", [0, 5])
def test_draft_chunk_rejects_out_of_range_stage(session, chapter, stage):
    with pytest.raises(ValueError):
        generation.draft_chapter_chunk(session, StubProvider(), chapter.id, stage)


def test_architect_replaces_existing_chapters(session, book, chapter):
    provider = StubProvider([ARCHITECT_JSON])

    created = generation.architect_chapters(session, provider, book.id, chapter_count=2)

    assert "2-chapter outline" in provider.prompts[0][0]
    assert [(c.title, c.order) for c in created] == [("The Gate", 1), ("The Road", 2)]
    assert created[0].summary == "Cross over"
    assert created[0].beat_sheet == "knock\nopen\nstep"
    assert chapters_repo.get_chapter(session, chapter.id) is None


def test_bootstrap_only_when_empty_and_splits_title(session, book_fields, monkeypatch):
    book = books_repo.create_book(session, {**book_fields, "title": "Lanterns: The Last Light"})
    monkeypatch.setattr(settings, "BOOTSTRAP_BOOK_ID", book.id)
    provider = StubProvider([ARCHITECT_JSON])

    assert generation.is_bootstrap_book(book.id)
    created = generation.bootstrap_chapters_if_empty(session, provider, book.id)
    again = generation.bootstrap_chapters_if_empty(session, provider, book.id)

    assert len(created) == 2
    assert again == []
    assert len(provider.prompts) == 1
    stored = books_repo.get_book(session, book.id)
    assert stored.title == "Lanterns"
    assert stored.subtitle == "The Last Light"


def test_bootstrap_disabled_when_unset():
    assert generation.is_bootstrap_book(2) is False


def test_split_title():
    assert generation.split_title("Main: Sub: More") == ("Main", "Sub: More")


def test_concurrent_bootstrap_creates_one_chapter_set(tmp_path, book_fields):
    engine = create_engine(f"sqlite:///{tmp_path / 'bootstrap.db'}", connect_args={"check_same_thread": False})
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with factory() as setup:
        book = books_repo.create_book(setup, book_fields)

    class SlowProvider(StubProvider):
        def generate_text(self, prompt, json_mode=False):
            time.sleep(0.2)
            return super().generate_text(prompt, json_mode)

    provider = SlowProvider(default=ARCHITECT_JSON)
    barrier = threading.Barrier(2)
    errors = []

    def worker():
        try:
            with factory() as s:
                barrier.wait()
                generation.bootstrap_chapters_if_empty(s, provider, book.id)
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with factory() as check:
        assert chapters_repo.count_by_book(check, book.id) == 2
    assert len(provider.prompts) == 1
    engine.dispose()


def test_keywords_are_persisted(session, book):
    provider = StubProvider(['{"keywords": ["lantern fantasy", "cozy magic"]}'])

    keywords = generation.generate_keywords(session, provider, book.id)

    assert keywords == ["lantern fantasy", "cozy magic"]
    assert books_repo.get_book(session, book.id).keywords == keywords


def test_images_are_returned_not_stored(session, book, chapter):
    provider = StubProvider(image_url="https://img.example/cover.png")

    assert generation.generate_cover(session, provider, book.id) == "https://img.example/cover.png"
    assert generation.generate_chapter_image(session, provider, chapter.id) == "https://img.example/cover.png"
    assert "The Lantern Keeper" in provider.image_prompts[0]
    assert books_repo.get_book(session, book.id).cover_image_url is None
    assert chapters_repo.get_chapter(session, chapter.id).image_url is None
