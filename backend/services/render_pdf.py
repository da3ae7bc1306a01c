"""
PDF rendering service.

Lays a book's stored content out as a print-ready paperback PDF using
reportlab's platypus flowables. Single pass, no reflow feedback: the table
of contents page numbers are an estimate that assumes one page per chapter.
"""
import io
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    Flowable,
    Image as PdfImage,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from domain.models import Book, Chapter, TrimSize
from services.image_data import ImageDecodeError, decode_data_url, image_size, is_data_url

logger = logging.getLogger(__name__)

TRIM_SIZES_IN = {
    TrimSize.SIZE_5X8: (5.0, 8.0),
    TrimSize.SIZE_5_25X8: (5.25, 8.0),
    TrimSize.SIZE_5_5X8_5: (5.5, 8.5),
    TrimSize.SIZE_6X9: (6.0, 9.0),
    TrimSize.SIZE_8_5X11: (8.5, 11.0),
}
# KDP bleed: 0.125" on the outside edge, top and bottom
BLEED_WIDTH_PT = 0.125 * inch
BLEED_HEIGHT_PT = 0.25 * inch

CHAPTER_IMAGE_MAX_HEIGHT_PT = 250
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n+")


@dataclass
class PrintContext:
    """Page geometry for one render."""
    page_width_pt: float
    page_height_pt: float
    margin_top_pt: float = 54
    margin_bottom_pt: float = 54
    margin_left_pt: float = 54
    margin_right_pt: float = 36

    @property
    def frame_width_pt(self) -> float:
        return self.page_width_pt - self.margin_left_pt - self.margin_right_pt

    @classmethod
    def for_book(cls, book: Book) -> "PrintContext":
        if book.trim_size == TrimSize.LETTER:
            width, height = letter
        else:
            w_in, h_in = TRIM_SIZES_IN.get(book.trim_size, TRIM_SIZES_IN[TrimSize.SIZE_6X9])
            width, height = w_in * inch, h_in * inch
        if book.bleed:
            width += BLEED_WIDTH_PT
            height += BLEED_HEIGHT_PT
        return cls(page_width_pt=width, page_height_pt=height)


def _styles() -> dict:
    return {
        "title": ParagraphStyle("BookTitle", fontName="Helvetica-Bold", fontSize=24, leading=30, alignment=TA_CENTER),
        "subtitle": ParagraphStyle("BookSubtitle", fontName="Helvetica-Oblique", fontSize=14, leading=18, alignment=TA_CENTER, spaceBefore=6),
        "by": ParagraphStyle("By", fontName="Helvetica", fontSize=12, leading=16, alignment=TA_CENTER),
        "author": ParagraphStyle("Author", fontName="Helvetica-Bold", fontSize=14, leading=18, alignment=TA_CENTER),
        "small": ParagraphStyle("Small", fontName="Helvetica", fontSize=9, leading=12, alignment=TA_LEFT),
        "dedication": ParagraphStyle("Dedication", fontName="Times-Italic", fontSize=12, leading=16, alignment=TA_CENTER),
        "section": ParagraphStyle("Section", fontName="Helvetica-Bold", fontSize=18, leading=22, alignment=TA_CENTER, spaceAfter=12),
        "toc": ParagraphStyle("Toc", fontName="Helvetica", fontSize=10, leading=14, leftIndent=20),
        "chapter_number": ParagraphStyle("ChapterNumber", fontName="Helvetica-Bold", fontSize=22, leading=26, alignment=TA_CENTER),
        "chapter_title": ParagraphStyle("ChapterTitle", fontName="Helvetica", fontSize=16, leading=20, alignment=TA_CENTER),
        "body": ParagraphStyle(
            "Body",
            fontName="Times-Roman",
            fontSize=12,
            leading=16,  # 12pt text + 4pt line gap
            alignment=TA_JUSTIFY,
            firstLineIndent=20,
            spaceAfter=12,
        ),
        "report": ParagraphStyle("Report", fontName="Helvetica", fontSize=10, leading=14, alignment=TA_JUSTIFY, spaceAfter=8),
    }


def _markup(text: str) -> str:
    """Escape text for a reportlab Paragraph, keeping single line breaks."""
    return escape(text.strip()).replace("\n", "<br/>")


def split_paragraphs(text: Optional[str]) -> List[str]:
    """Split body text on blank lines, dropping empty paragraphs."""
    if not text:
        return []
    return [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text) if p.strip()]


def chapters_in_reading_order(chapters: Iterable[Chapter]) -> List[Chapter]:
    """Ascending ``order``; ties keep their incoming order, gaps are kept."""
    return sorted(chapters, key=lambda c: c.order)


def front_matter_page_count(book: Book) -> int:
    """Title, copyright, optional dedication, contents."""
    return 3 + (1 if book.dedication else 0)


def estimate_chapter_pages(book: Book, chapters: List[Chapter]) -> List[Tuple[Chapter, int]]:
    """Pair each chapter with an estimated start page (one page per chapter)."""
    first = front_matter_page_count(book) + 1
    return [(chapter, first + idx) for idx, chapter in enumerate(chapters)]


def _fit(width: int, height: int, max_width: float, max_height: float) -> Tuple[float, float]:
    scale = min(max_width / width, max_height / height)
    return width * scale, height * scale


def _chapter_image(chapter: Chapter, ctx: PrintContext) -> Optional[Flowable]:
    """Decode a chapter's inline illustration; None (and a log line) if it cannot be used."""
    if not chapter.image_url:
        return None
    if not is_data_url(chapter.image_url):
        logger.debug("[render_pdf] chapter %s image is not inline data; skipping", chapter.id)
        return None
    try:
        data = decode_data_url(chapter.image_url)
        width, height = image_size(data)
    except ImageDecodeError as exc:
        logger.warning("[render_pdf] Error adding image for chapter %s: %s", chapter.id, exc)
        return None
    draw_w, draw_h = _fit(width, height, ctx.frame_width_pt, CHAPTER_IMAGE_MAX_HEIGHT_PT)
    img = PdfImage(io.BytesIO(data), width=draw_w, height=draw_h)
    img.hAlign = "CENTER"
    return img


def _title_page(book: Book, styles: dict) -> List[Flowable]:
    story: List[Flowable] = [Spacer(1, 4 * 24), Paragraph(_markup(book.title), styles["title"])]
    if book.subtitle:
        story.append(Paragraph(_markup(book.subtitle), styles["subtitle"]))
    story.extend(
        [
            Spacer(1, 36),
            Paragraph("by", styles["by"]),
            Spacer(1, 4),
            Paragraph(_markup(book.author_name), styles["author"]),
            PageBreak(),
        ]
    )
    return story


def default_copyright(book: Book) -> str:
    return f"© {date.today().year} {book.author_name}. All rights reserved."


def _copyright_page(book: Book, styles: dict) -> List[Flowable]:
    return [
        Spacer(1, 15 * 12),
        Paragraph(_markup(book.copyright or default_copyright(book)), styles["small"]),
        PageBreak(),
    ]


def _dedication_page(book: Book, styles: dict) -> List[Flowable]:
    if not book.dedication:
        return []
    return [Spacer(1, 10 * 12), Paragraph(_markup(book.dedication), styles["dedication"]), PageBreak()]


def _contents_page(book: Book, chapters: List[Chapter], styles: dict, ctx: PrintContext) -> List[Flowable]:
    story: List[Flowable] = [Paragraph("Contents", styles["section"])]
    rows = [
        [Paragraph(_markup(f"Chapter {chapter.order}: {chapter.title}"), styles["toc"]), str(page)]
        for chapter, page in estimate_chapter_pages(book, chapters)
    ]
    if rows:
        table = Table(rows, colWidths=[ctx.frame_width_pt - 36, 36])
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("LEFTPADDING", (0, 0), (-1, -1), 0),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 0),
                ]
            )
        )
        story.append(table)
    story.append(PageBreak())
    return story


def _chapter_block(chapter: Chapter, styles: dict, ctx: PrintContext) -> List[Flowable]:
    story: List[Flowable] = []
    image = _chapter_image(chapter, ctx)
    if image is not None:
        story.extend([image, Spacer(1, 24)])
    story.extend(
        [
            Spacer(1, 12),
            Paragraph(f"Chapter {chapter.order}", styles["chapter_number"]),
            Paragraph(_markup(chapter.title), styles["chapter_title"]),
            Spacer(1, 24),
        ]
    )
    for paragraph in split_paragraphs(chapter.content):
        story.append(Paragraph(_markup(paragraph), styles["body"]))
    story.append(PageBreak())
    return story


def _text_section(heading: str, text: Optional[str], style: ParagraphStyle, styles: dict) -> List[Flowable]:
    if not text:
        return []
    story: List[Flowable] = [Paragraph(heading, styles["section"])]
    for paragraph in split_paragraphs(text):
        story.append(Paragraph(_markup(paragraph), style))
    story.append(PageBreak())
    return story


def build_story(book: Book, chapters: Iterable[Chapter], ctx: PrintContext) -> List[Flowable]:
    """All flowables for the book, section by section, each on its own page."""
    styles = _styles()
    ordered = chapters_in_reading_order(chapters)

    story: List[Flowable] = []
    story.extend(_title_page(book, styles))
    story.extend(_copyright_page(book, styles))
    story.extend(_dedication_page(book, styles))
    story.extend(_contents_page(book, ordered, styles, ctx))
    for chapter in ordered:
        logger.debug("[render_pdf] Rendering chapter id=%s order=%s", chapter.id, chapter.order)
        story.extend(_chapter_block(chapter, styles, ctx))
    story.extend(_text_section("Conclusion", book.conclusion, styles["body"], styles))
    story.extend(_text_section("About the Author", book.author_bio, styles["body"], styles))
    story.extend(_text_section("AI Transparency Report", book.transparency_report, styles["report"], styles))

    # no trailing blank page
    while story and isinstance(story[-1], PageBreak):
        story.pop()
    return story


def render_book_to_pdf(book: Book, chapters: Iterable[Chapter]) -> bytes:
    """
    Render a book to PDF.

    Args:
        book: The book to render
        chapters: The book's chapters, in any order

    Returns:
        The PDF document bytes
    """
    ctx = PrintContext.for_book(book)
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=(ctx.page_width_pt, ctx.page_height_pt),
        leftMargin=ctx.margin_left_pt,
        rightMargin=ctx.margin_right_pt,
        topMargin=ctx.margin_top_pt,
        bottomMargin=ctx.margin_bottom_pt,
        title=book.title,
        author=book.author_name,
        subject=book.subtitle or "",
    )
    story = build_story(book, chapters, ctx)
    logger.info("[render_pdf] Rendering book %s (%d flowables)", book.id, len(story))
    doc.build(story)
    return buf.getvalue()


def export_filename(book: Book, suffix: str) -> str:
    """Title with non-alphanumerics replaced, e.g. 'My_Book_KDP_6x9.pdf'."""
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', book.title)}{suffix}"
