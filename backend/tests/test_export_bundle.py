import base64
import io
import json
import zipfile

from PIL import Image

from domain.models import Book, Chapter, StoryState
from services.export_bundle import (
    CHAPTER_DATA_NAME,
    COVER_NAME,
    MANUSCRIPT_NAME,
    METADATA_NAME,
    SERIES_BIBLE_NAME,
    build_manuscript_text,
    build_project_zip,
)


def _book(**overrides):
    fields = dict(
        id=1,
        title="The Lantern Keeper",
        author_name="Mara Quill",
        category="Fantasy",
        target_audience="Young Adult",
        tone_style="Whimsical",
        pov="First Person",
        min_word_count=30000,
        keywords=["cozy fantasy", "lantern magic"],
        outline="A keeper guards the light.",
    )
    fields.update(overrides)
    return Book(**fields)


def _jpeg_data_url() -> str:
    buf = io.BytesIO()
    Image.new("RGB", (10, 10), color=(0, 80, 160)).save(buf, format="JPEG")
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def _open(payload: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(payload))


def test_empty_book_bundle_has_manuscript_and_no_cover():
    with _open(build_project_zip(_book(), [])) as archive:
        names = set(archive.namelist())
        assert {MANUSCRIPT_NAME, CHAPTER_DATA_NAME, METADATA_NAME, SERIES_BIBLE_NAME} <= names
        assert COVER_NAME not in names
        assert json.loads(archive.read(CHAPTER_DATA_NAME)) == []
        assert archive.read(MANUSCRIPT_NAME).decode("utf-8") == "The Lantern Keeper\n\nBy Mara Quill\n\n"


def test_manuscript_lists_chapters_in_order():
    chapters = [
        Chapter(id=2, book_id=1, title="Smoke", order=2, content="Second."),
        Chapter(id=1, book_id=1, title="Embers", order=1, content="First."),
    ]

    text = build_manuscript_text(_book(subtitle="A Tale"), chapters)

    assert text.startswith("The Lantern Keeper\nA Tale\nBy Mara Quill\n\n")
    assert text.index("CHAPTER 1: Embers\n\nFirst.") < text.index("CHAPTER 2: Smoke\n\nSecond.")


def test_bundle_contents():
    chapters = [Chapter(id=1, book_id=1, title="Embers", order=1, content="First.", word_count=1)]
    story = StoryState(book_id=1, state={"lastEvents": ["Finished stage 1 of chapter 1"]})
    book = _book(cover_image_url=_jpeg_data_url(), transparency_report="AI assisted.", is_kdp_compliant=True)

    with _open(build_project_zip(book, chapters, story)) as archive:
        cover = archive.read(COVER_NAME)
        assert cover.startswith(b"\x89PNG")

        chapter_data = json.loads(archive.read(CHAPTER_DATA_NAME))
        assert chapter_data[0]["title"] == "Embers"
        assert chapter_data[0]["wordCount"] == 1

        metadata = archive.read(METADATA_NAME).decode("utf-8")
        assert "Keywords: cozy fantasy, lantern magic" in metadata
        assert "Blurb: A keeper guards the light." in metadata

        bible = json.loads(archive.read(SERIES_BIBLE_NAME))
        assert bible["transparencyReport"] == "AI assisted."
        assert bible["isKdpCompliant"] is True
        assert bible["storyState"]["lastEvents"] == ["Finished stage 1 of chapter 1"]


def test_undecodable_cover_is_left_out():
    book = _book(cover_image_url="data:image/png;base64,bm90IGFuIGltYWdl")

    with _open(build_project_zip(book, [])) as archive:
        assert COVER_NAME not in archive.namelist()
