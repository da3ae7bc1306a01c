"""
Generation API routes.

Each endpoint makes one or more blocking provider round trips, so they are
plain ``def`` handlers and run in the threadpool.
"""
import logging
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException

from api.routes.chapters import chapter_to_response
from api.schemas import (
    ChapterGenerationResponse,
    ComplianceResponse,
    GenerateChapterImageRequest,
    GenerateChapterRequest,
    GenerateCoverRequest,
    GenerateKeywordsRequest,
    GenerateOutlineRequest,
    ImageResponse,
    KeywordsResponse,
    OutlineResponse,
)
from db import SessionLocal
from domain.errors import NotFoundError
from services import generation
from services.providers import get_image_provider, get_text_provider

router = APIRouter()
logger = logging.getLogger(__name__)


@contextmanager
def _generation_errors(action: str):
    """Map NotFoundError to 404 and anything else to a logged, generic 500."""
    try:
        yield
    except HTTPException:
        raise
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except Exception:
        logger.exception("Failed to %s", action)
        raise HTTPException(status_code=500, detail=f"Failed to {action}")


@router.post("/generate-outline", response_model=OutlineResponse)
def generate_outline(data: GenerateOutlineRequest):
    with _generation_errors("generate outline"):
        with SessionLocal() as session:
            result = generation.generate_outline(session, get_text_provider(), data.book_id)
    return OutlineResponse(
        **result.fields,
        chapters=[chapter_to_response(c) for c in result.chapters],
    )


@router.post("/generate-chapter", response_model=ChapterGenerationResponse)
def generate_chapter(data: GenerateChapterRequest):
    with _generation_errors("generate chapter"):
        with SessionLocal() as session:
            result = generation.generate_chapter(
                session, get_text_provider(), data.chapter_id, context=data.context
            )
    report = result.compliance
    return ChapterGenerationResponse(
        content=result.content,
        compliance=ComplianceResponse(
            is_compliant=report.is_compliant,
            violations=report.violations,
            transparency_report=report.transparency_report,
        ),
        word_count=result.word_count,
    )


@router.post("/generate-chapter-image", response_model=ImageResponse)
def generate_chapter_image(data: GenerateChapterImageRequest):
    with _generation_errors("generate chapter image"):
        with SessionLocal() as session:
            image_url = generation.generate_chapter_image(session, get_image_provider(), data.chapter_id)
    return ImageResponse(image_url=image_url)


@router.post("/generate-cover", response_model=ImageResponse)
def generate_cover(data: GenerateCoverRequest):
    with _generation_errors("generate cover"):
        with SessionLocal() as session:
            image_url = generation.generate_cover(session, get_image_provider(), data.book_id)
    return ImageResponse(image_url=image_url)


@router.post("/generate-keywords", response_model=KeywordsResponse)
def generate_keywords(data: GenerateKeywordsRequest):
    with _generation_errors("generate keywords"):
        with SessionLocal() as session:
            keywords = generation.generate_keywords(session, get_text_provider(), data.book_id)
    return KeywordsResponse(keywords=keywords)
