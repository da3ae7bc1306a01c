"""
Core domain models for the book studio.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class TrimSize(str, Enum):
    """KDP paperback trim sizes (inches) plus plain US letter."""
    SIZE_5X8 = "5x8"
    SIZE_5_25X8 = "5.25x8"
    SIZE_5_5X8_5 = "5.5x8.5"
    SIZE_6X9 = "6x9"
    SIZE_8_5X11 = "8.5x11"
    LETTER = "letter"


class PaperType(str, Enum):
    WHITE = "white"
    CREAM = "cream"
    COLOR = "color"


class CoverFinish(str, Enum):
    MATTE = "matte"
    GLOSSY = "glossy"


class ChapterPipeline(str, Enum):
    """How chapter bodies are generated."""
    SINGLE = "single"  # one draft call
    CHAINED = "chained"  # draft -> refine -> compliance check


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ComplianceReport:
    """Policy-risk verdict attached to generated content."""
    is_compliant: bool = True
    violations: List[str] = field(default_factory=list)
    transparency_report: str = "Self-validated."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCompliant": self.is_compliant,
            "violations": list(self.violations),
            "transparencyReport": self.transparency_report,
        }


@dataclass
class Book:
    """
    A writing project.

    Descriptive and planning attributes are set by the author; outline,
    front/back matter, keywords and compliance fields are usually written
    by the generation services.
    """
    id: int
    title: str
    author_name: str
    category: str
    target_audience: str
    tone_style: str
    pov: str
    min_word_count: int
    subtitle: Optional[str] = None
    language: str = "English"
    target_chapters: int = 10
    words_per_chapter: int = 2000
    # KDP print attributes
    trim_size: TrimSize = TrimSize.SIZE_6X9
    paper_type: Optional[PaperType] = None
    bleed: bool = False
    cover_finish: Optional[CoverFinish] = None
    # Generated content
    outline: Optional[str] = None
    author_bio: Optional[str] = None
    conclusion: Optional[str] = None
    dedication: Optional[str] = None
    copyright: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    cover_image_url: Optional[str] = None
    is_kdp_compliant: Optional[bool] = None
    transparency_report: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def has_split_title(self) -> bool:
        """True when the title still carries a 'Main: Sub' subtitle."""
        return ":" in self.title and not self.subtitle


@dataclass
class Chapter:
    """
    One unit of manuscript content, owned by exactly one book.

    ``order`` is meant to increase densely within a book but is not
    enforced: duplicates and gaps are tolerated by every reader.
    """
    id: int
    book_id: int
    title: str
    order: int
    summary: Optional[str] = None
    beat_sheet: Optional[str] = None
    content: Optional[str] = None
    word_count: int = 0
    is_completed: bool = False
    image_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Raw record as exported in project bundles."""
        return {
            "id": self.id,
            "bookId": self.book_id,
            "title": self.title,
            "summary": self.summary,
            "beatSheet": self.beat_sheet,
            "content": self.content,
            "order": self.order,
            "wordCount": self.word_count,
            "isCompleted": self.is_completed,
            "imageUrl": self.image_url,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class StoryState:
    """
    Running story notes for a book (events drafted so far, etc.).

    The ``state`` dict is free-form; ``lastEvents`` is the only key the
    services rely on.
    """
    book_id: int
    state: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @property
    def last_events(self) -> List[str]:
        return list(self.state.get("lastEvents") or [])


@dataclass
class ChapterDraft:
    """Parsed result of a chapter generation call."""
    content: str
    compliance: ComplianceReport = field(default_factory=ComplianceReport)
