"""
Prompt builders for the generation providers.

Every function here is a pure string formatter. The text of each prompt
also fixes the response shape the orchestrator expects back:

- outline:        {"outline", "authorBio", "conclusion", "dedication",
                   "copyright", "chapters": [{"title", "summary", "beatSheet"}]}
- architect:      {"chapters": [{"title", "goal", "beats": [...]}]}
- chapter draft:  prose, or {"content", "compliance": {...}}
- refine:         prose, or {"content"}
- compliance:     {"isCompliant", "violations", "transparencyReport"}
- draft chunk:    prose
- keywords:       {"keywords": [7 strings]}
- images:         rendered image, not JSON
"""
import json
from textwrap import dedent
from typing import Any, Dict, Optional

from domain.models import Book, Chapter

# Stock phrases the refine pass is asked to remove.
FORMULAIC_PHRASES = (
    "delve",
    "tapestry",
    "shimmering",
    "a testament to",
    "little did they know",
    "in the blink of an eye",
    "it is important to note",
    "moreover",
    "furthermore",
    "needless to say",
)

DRAFT_CHUNK_STAGES = 4
DRAFT_CHUNK_WORDS = 600
KEYWORD_COUNT = 7


def _template(text: str) -> str:
    return dedent(text).strip() + "\n"


OUTLINE_TEMPLATE = _template("""
    **Role:** Senior AI Book Architect.
    **Objective:** Generate a professional {chapters}-chapter outline and Beat Sheets for the book "{title}".

    Book Details:
    - Category: {category}
    - Tone: {tone}
    - Target Audience: {audience}
    - POV: {pov}
    - Language: {language}
    - Words per chapter: {words_per_chapter}

    AMAZON KDP COMPLIANCE:
    - Outline must support a manuscript of at least {min_words} words.
    - No copyrighted terms or trademarks.

    Return a JSON object with:
    1. "outline": Comprehensive narrative summary.
    2. "authorBio": Engaging professional bio for {author}.
    3. "conclusion": Powerful ending summary.
    4. "dedication": Meaningful dedication.
    5. "copyright": Standard KDP copyright boilerplate.
    6. "chapters": Array of exactly {chapters} objects:
       - "title": Chapter name.
       - "summary": Detailed summary.
       - "beatSheet": Specific narrative beats (bullet points) for this chapter.
""")

ARCHITECT_TEMPLATE = _template("""
    **Role:** {category} Narrative Architect.
    **Objective:** Generate a {count}-chapter outline for "{title}".
    Style: {tone}.
    For each of the {count} chapters, provide:
    - title: Evocative chapter title.
    - goal: Dramatic goal.
    - beats: 3 key scene beats.
    Return JSON format: {{ "chapters": [...] }}
""")

CHAPTER_DRAFT_TEMPLATE = _template("""
    **Role:** Master Literary Author & KDP Compliance Expert.
    **Task:** Write Chapter {order}: "{chapter_title}".

    Book Context:
    - Title: {title}
    - Category: {category}
    - Tone: {tone}
    - POV: {pov}
    - Chapter Summary: {summary}
    - Beat Sheet: {beats}
    {extra}
    Writing Instructions:
    1. Write AT LEAST {words} words of professional literary prose.
    2. Use "Show, Don't Tell" with rich sensory descriptions to expand every scene.
    3. Avoid AI-isms (no "delve", "tapestry", "shimmering", etc.).
    4. Ensure a natural, human-like flow with varied sentence structures.
    5. Expand on character internal monologues, environmental details, and dialogue.
    6. Scan for KDP violations (copyrights/trademarks) and ensure compliance.

    Return a JSON object exactly in this format:
    {{
      "content": "Full chapter prose here...",
      "compliance": {{
        "isCompliant": true,
        "violations": [],
        "transparencyReport": "Brief report on language and compliance."
      }}
    }}
""")

REFINE_TEMPLATE = _template("""
    **Role:** Line Editor for {category} fiction.
    **Task:** Refine the draft of Chapter {order}: "{chapter_title}".

    Rules:
    - Remove formulaic transition phrases and AI-isms such as {phrases}.
    - Vary sentence rhythm; keep the tone {tone} and the POV {pov}.
    - Do not summarize, shorten, or change plot events.

    Return only the refined chapter prose, or a JSON object {{"content": "..."}}.

    DRAFT:
    {draft}
""")

COMPLIANCE_TEMPLATE = _template("""
    **Role:** Amazon KDP Compliance Reviewer.
    **Task:** Scan Chapter {order} of "{title}" for trademark, copyright,
    or content-policy risks (brand names, song lyrics, quoted works, real people).

    Return a JSON object exactly in this format:
    {{
      "isCompliant": true,
      "violations": ["short description of each risk"],
      "transparencyReport": "Brief report on AI assistance and compliance."
    }}

    CHAPTER TEXT:
    {content}
""")

DRAFT_CHUNK_TEMPLATE = _template("""
    **Role:** The Chronicler.
    **Task:** Write Stage {stage}/{stages} of Chapter "{chapter_title}".
    Each stage is ~{stage_words} words. Total chapter goal: {total_words} words.

    Current Story State: {story_state}
    Chapter Context: {summary}
    Beats: {beats}

    Prose: {category}, {tone}, sensory, intense.
""")

CHAPTER_IMAGE_TEMPLATE = _template("""
    Professional book illustration for a chapter titled "{chapter_title}" in a {category} book.
    Style: Modern, cinematic, highly detailed, artistic, and contemporary.
    Atmospheric lighting, professional digital art, high resolution.
    IMPORTANT: No text, letters, symbols, or words should appear in the image.
    The image should artistically represent the theme of "{theme}" through pure visual imagery without any typography or labels.
""")

COVER_TEMPLATE = _template("""
    Professional, cinematic book cover for a high-quality publication.
    Title: "{title}"
    Author: "{author}"
    Category: {category}
    Tone: {tone}
    Outline: {outline}

    Visual Requirements:
    - The background should be a powerful, artistic, and highly detailed illustration that represents the book's themes.
    - THE BOOK TITLE "{title}" AND AUTHOR NAME "{author}" MUST BE PROMINENTLY AND PROFESSIONALLY DISPLAYED WITH ELEGANT TYPOGRAPHY.
    - The composition should be balanced, high-resolution, and look like a best-selling Amazon Kindle cover.
    - Style: Atmospheric, professional graphic design, vivid colors, depth, and cinematic lighting.
""")

KEYWORDS_TEMPLATE = _template("""
    Generate {count} highly effective SEO keyword phrases for an Amazon Kindle book with these details:
    Title: {title}
    Category: {category}
    Audience: {audience}
    Outline: {outline}

    Return a JSON object with a single key "keywords" which is an array of {count} string phrases. Each phrase should be 20-50 characters.
""")


def _or(value: Optional[str], fallback: str = "n/a") -> str:
    return value if value else fallback


def build_outline_prompt(book: Book) -> str:
    """Full-book outline plus front/back matter and per-chapter beat sheets."""
    return OUTLINE_TEMPLATE.format(
        chapters=book.target_chapters,
        title=book.title,
        category=book.category,
        tone=book.tone_style,
        audience=book.target_audience,
        pov=book.pov,
        language=book.language,
        words_per_chapter=book.words_per_chapter,
        min_words=book.min_word_count,
        author=book.author_name,
    )


def build_architect_prompt(book: Book, chapter_count: int = 15) -> str:
    """Chapter-only outline (title, dramatic goal, scene beats)."""
    return ARCHITECT_TEMPLATE.format(
        category=book.category,
        count=chapter_count,
        title=book.title,
        tone=book.tone_style,
    )


def build_chapter_draft_prompt(book: Book, chapter: Chapter, context: Optional[str] = None) -> str:
    return CHAPTER_DRAFT_TEMPLATE.format(
        order=chapter.order,
        chapter_title=chapter.title,
        title=book.title,
        category=book.category,
        tone=book.tone_style,
        pov=book.pov,
        summary=_or(chapter.summary),
        beats=_or(chapter.beat_sheet),
        extra=f"- Extra Context: {context}\n" if context else "",
        words=book.words_per_chapter,
    )


def build_refine_prompt(book: Book, chapter: Chapter, draft: str) -> str:
    """Stylistic pass over a draft: strip formulaic transitions, keep the story."""
    return REFINE_TEMPLATE.format(
        category=book.category,
        order=chapter.order,
        chapter_title=chapter.title,
        phrases=", ".join(f'"{p}"' for p in FORMULAIC_PHRASES),
        tone=book.tone_style,
        pov=book.pov,
        draft=draft,
    )


def build_compliance_prompt(book: Book, chapter: Chapter, content: str) -> str:
    return COMPLIANCE_TEMPLATE.format(order=chapter.order, title=book.title, content=content)


def build_draft_chunk_prompt(
    book: Book, chapter: Chapter, stage: int, story_state: Dict[str, Any]
) -> str:
    return DRAFT_CHUNK_TEMPLATE.format(
        stage=stage,
        stages=DRAFT_CHUNK_STAGES,
        chapter_title=chapter.title,
        stage_words=DRAFT_CHUNK_WORDS,
        total_words=DRAFT_CHUNK_STAGES * DRAFT_CHUNK_WORDS,
        story_state=json.dumps(story_state, ensure_ascii=False),
        summary=_or(chapter.summary),
        beats=_or(chapter.beat_sheet),
        category=book.category,
        tone=book.tone_style,
    )


def build_chapter_image_prompt(book: Book, chapter: Chapter) -> str:
    return CHAPTER_IMAGE_TEMPLATE.format(
        chapter_title=chapter.title,
        category=book.category,
        theme=chapter.summary or chapter.title,
    )


def build_cover_prompt(book: Book) -> str:
    return COVER_TEMPLATE.format(
        title=book.title,
        author=book.author_name,
        category=book.category,
        tone=book.tone_style,
        outline=_or(book.outline, "A compelling story"),
    )


def build_keywords_prompt(book: Book) -> str:
    return KEYWORDS_TEMPLATE.format(
        count=KEYWORD_COUNT,
        title=book.title,
        category=book.category,
        audience=book.target_audience,
        outline=_or(book.outline),
    )
