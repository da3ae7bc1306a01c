"""
Request/response models shared by the API routers.

Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.models import CoverFinish, PaperType, TrimSize


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorResponse(CamelModel):
    message: str
    field: Optional[str] = None


# ---------- Books ----------

class BookCreate(CamelModel):
    title: str = Field(min_length=1)
    subtitle: Optional[str] = None
    author_name: str = Field(min_length=1)
    language: str = "English"
    category: str = Field(min_length=1)
    target_audience: str
    tone_style: str
    pov: str
    min_word_count: int = Field(ge=0)
    target_chapters: int = Field(10, ge=0)
    words_per_chapter: int = Field(2000, ge=0)
    trim_size: TrimSize = TrimSize.SIZE_6X9
    paper_type: Optional[PaperType] = None
    bleed: bool = False
    cover_finish: Optional[CoverFinish] = None
    outline: Optional[str] = None
    author_bio: Optional[str] = None
    conclusion: Optional[str] = None
    dedication: Optional[str] = None
    copyright: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = None
    is_kdp_compliant: Optional[bool] = None
    transparency_report: Optional[str] = None


class BookUpdate(CamelModel):
    """Partial update: only fields present in the request body are written."""
    title: Optional[str] = Field(None, min_length=1)
    subtitle: Optional[str] = None
    author_name: Optional[str] = Field(None, min_length=1)
    language: Optional[str] = None
    category: Optional[str] = None
    target_audience: Optional[str] = None
    tone_style: Optional[str] = None
    pov: Optional[str] = None
    min_word_count: Optional[int] = Field(None, ge=0)
    target_chapters: Optional[int] = Field(None, ge=0)
    words_per_chapter: Optional[int] = Field(None, ge=0)
    trim_size: Optional[TrimSize] = None
    paper_type: Optional[PaperType] = None
    bleed: Optional[bool] = None
    cover_finish: Optional[CoverFinish] = None
    outline: Optional[str] = None
    author_bio: Optional[str] = None
    conclusion: Optional[str] = None
    dedication: Optional[str] = None
    copyright: Optional[str] = None
    keywords: Optional[List[str]] = None
    cover_image_url: Optional[str] = None
    is_kdp_compliant: Optional[bool] = None
    transparency_report: Optional[str] = None


class BookResponse(CamelModel):
    id: int
    title: str
    subtitle: Optional[str] = None
    author_name: str
    language: str
    category: str
    target_audience: str
    tone_style: str
    pov: str
    min_word_count: int
    target_chapters: int
    words_per_chapter: int
    trim_size: TrimSize
    paper_type: Optional[PaperType] = None
    bleed: bool
    cover_finish: Optional[CoverFinish] = None
    outline: Optional[str] = None
    author_bio: Optional[str] = None
    conclusion: Optional[str] = None
    dedication: Optional[str] = None
    copyright: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = None
    is_kdp_compliant: Optional[bool] = None
    transparency_report: Optional[str] = None
    created_at: datetime


# ---------- Chapters ----------

class ChapterCreate(CamelModel):
    book_id: int
    title: str = Field(min_length=1)
    summary: Optional[str] = None
    beat_sheet: Optional[str] = None
    content: Optional[str] = None
    order: int
    word_count: Optional[int] = Field(None, ge=0)
    is_completed: bool = False
    image_url: Optional[str] = None


class ChapterUpdate(CamelModel):
    book_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1)
    summary: Optional[str] = None
    beat_sheet: Optional[str] = None
    content: Optional[str] = None
    order: Optional[int] = None
    word_count: Optional[int] = Field(None, ge=0)
    is_completed: Optional[bool] = None
    image_url: Optional[str] = None


class ChapterResponse(CamelModel):
    id: int
    book_id: int
    title: str
    summary: Optional[str] = None
    beat_sheet: Optional[str] = None
    content: Optional[str] = None
    order: int
    word_count: int
    is_completed: bool
    image_url: Optional[str] = None
    created_at: datetime


# ---------- Generation ----------

class GenerateOutlineRequest(CamelModel):
    book_id: int


class GenerateChapterRequest(CamelModel):
    chapter_id: int
    context: Optional[str] = None


class GenerateChapterImageRequest(CamelModel):
    chapter_id: int


class GenerateCoverRequest(CamelModel):
    book_id: int


class GenerateKeywordsRequest(CamelModel):
    book_id: int


class DraftChunkRequest(CamelModel):
    stage: int = Field(ge=1, le=4)


class ArchitectRequest(CamelModel):
    chapter_count: Optional[int] = Field(None, ge=1, le=100)
    replace: bool = True


class OutlineResponse(CamelModel):
    outline: Optional[str] = None
    author_bio: Optional[str] = None
    conclusion: Optional[str] = None
    dedication: Optional[str] = None
    copyright: Optional[str] = None
    chapters: List[ChapterResponse] = Field(default_factory=list)


class ComplianceResponse(CamelModel):
    is_compliant: bool
    violations: List[str] = Field(default_factory=list)
    transparency_report: str


class ChapterGenerationResponse(CamelModel):
    content: str
    compliance: ComplianceResponse
    word_count: int


class DraftChunkResponse(CamelModel):
    content: str
    stage: int
    word_count: int


class ImageResponse(CamelModel):
    image_url: str


class KeywordsResponse(CamelModel):
    keywords: List[str]
