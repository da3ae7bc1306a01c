import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from db import init_db  # noqa: E402
from services.providers import GenerationProvider  # noqa: E402
from settings import settings  # noqa: E402


BOOK_FIELDS = {
    "title": "The Lantern Keeper",
    "author_name": "Mara Quill",
    "category": "Fantasy",
    "target_audience": "Young Adult",
    "tone_style": "Whimsical",
    "pov": "First Person",
    "min_word_count": 30000,
    "target_chapters": 3,
    "words_per_chapter": 1500,
}


class StubProvider(GenerationProvider):
    """Scripted provider: returns queued responses in order and records every prompt."""

    name = "stub"

    def __init__(self, responses=None, default=None, image_url="data:image/png;base64,AAAA"):
        self.responses = list(responses or [])
        self.default = default
        self.image_url = image_url
        self.prompts = []
        self.image_prompts = []

    def generate_text(self, prompt, json_mode=False):
        self.prompts.append((prompt, json_mode))
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default
        else:
            raise AssertionError("unexpected provider call")
        if isinstance(response, Exception):
            raise response
        return response

    def generate_image(self, prompt, size="1024x1024"):
        self.image_prompts.append(prompt)
        if isinstance(self.image_url, Exception):
            raise self.image_url
        return self.image_url


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def book_fields():
    return dict(BOOK_FIELDS)


@pytest.fixture(autouse=True)
def no_bootstrap(monkeypatch):
    """Chapter bootstrap stays off unless a test turns it on."""
    monkeypatch.setattr(settings, "BOOTSTRAP_BOOK_ID", None)
    monkeypatch.setattr(settings, "CHAPTER_PIPELINE", "chained")


@pytest.fixture
def client(session_factory, monkeypatch):
    from fastapi.testclient import TestClient

    from api import main
    from api.routes import ai, books, chapters, exports

    for module in (ai, books, chapters, exports):
        monkeypatch.setattr(module, "SessionLocal", session_factory)
    return TestClient(main.app)
