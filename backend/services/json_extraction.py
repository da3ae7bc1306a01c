"""
Best-effort JSON extraction from provider responses.

Providers are asked for JSON but often wrap it in prose or markdown fences.
Parsing runs in stages: strict parse, fenced block, each balanced object,
greedy first-brace-to-last-brace span. Callers that cannot use the result
fall back to the raw text so a generation is never lost to a parse error.
"""
import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from domain.models import ChapterDraft, ComplianceReport

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL | re.IGNORECASE)
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")

# Lenient decoder that accepts raw control characters (newlines, tabs) inside strings
_LENIENT_DECODER = json.JSONDecoder(strict=False)

RAW_TEXT_REPORT = "Raw text generated."
SELF_VALIDATED_REPORT = "Self-validated."


def _ensure_dict(result: Any) -> Optional[Dict[str, Any]]:
    """Keep dicts; from a list keep the first dict element."""
    if isinstance(result, dict):
        return result
    if isinstance(result, list):
        for item in result:
            if isinstance(item, dict):
                return item
    return None


def _loads(text: str) -> Optional[Dict[str, Any]]:
    """Parse strictly, then leniently; None if neither yields a dict."""
    try:
        return _ensure_dict(json.loads(text))
    except (json.JSONDecodeError, ValueError):
        pass
    try:
        return _ensure_dict(_LENIENT_DECODER.decode(text))
    except (json.JSONDecodeError, ValueError):
        return None


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index of the ``}`` closing the brace at ``start``, ignoring braces in strings."""
    depth = 0
    in_string = False
    escape = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _balanced_objects(text: str) -> Iterator[str]:
    """Every balanced ``{...}`` span, by start position (nested spans included)."""
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is not None:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def extract_json_object(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Pull a JSON object out of ``raw``.

    Returns the parsed dict, or None when no stage yields one.
    """
    if not raw:
        return None
    text = raw.strip()

    parsed = _loads(text)
    if parsed is not None:
        return parsed

    for match in _JSON_FENCE_RE.finditer(text):
        parsed = _loads(match.group(1).strip())
        if parsed is not None:
            return parsed

    for span in _balanced_objects(text):
        parsed = _loads(span)
        if parsed is not None:
            return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        parsed = _loads(text[start : end + 1])
        if parsed is not None:
            return parsed

    logger.debug("No JSON object found in provider response (%d chars)", len(text))
    return None


def coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        return "\n".join(str(v) for v in value)
    return str(value)


def compliance_from_dict(data: Optional[Dict[str, Any]], default_report: str = SELF_VALIDATED_REPORT) -> ComplianceReport:
    """Coerce a ``{isCompliant, violations, transparencyReport}`` dict; missing keys are permissive."""
    if not isinstance(data, dict):
        return ComplianceReport(transparency_report=default_report)
    violations = data.get("violations") or []
    if not isinstance(violations, list):
        violations = [violations]
    is_compliant = data.get("isCompliant")
    if isinstance(is_compliant, str):
        is_compliant = is_compliant.strip().lower() in ("true", "yes", "1")
    return ComplianceReport(
        is_compliant=True if is_compliant is None else bool(is_compliant),
        violations=[str(v) for v in violations],
        transparency_report=coerce_text(data.get("transparencyReport")) or default_report,
    )


def parse_chapter_result(raw: Optional[str]) -> ChapterDraft:
    """
    Parse a chapter generation response.

    Falls back to the whole raw text as content with a compliant report
    when no object with string ``content`` can be extracted.
    """
    raw = raw or ""
    data = extract_json_object(raw)
    if data is None or not isinstance(data.get("content"), str):
        return ChapterDraft(
            content=raw.strip(),
            compliance=ComplianceReport(transparency_report=RAW_TEXT_REPORT),
        )
    return ChapterDraft(
        content=data["content"],
        compliance=compliance_from_dict(data.get("compliance")),
    )


def parse_compliance_report(raw: Optional[str]) -> ComplianceReport:
    data = extract_json_object(raw)
    if data is not None and isinstance(data.get("compliance"), dict):
        data = data["compliance"]
    return compliance_from_dict(data)


def parse_keywords(raw: Optional[str]) -> List[str]:
    """
    Keywords from ``{"keywords": [...]}`` (or a comma-separated string).

    Only a response with no JSON object at all is read one keyword per line;
    an object without usable keywords yields an empty list.
    """
    data = extract_json_object(raw)
    if data is not None:
        value = data.get("keywords")
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, list):
            logger.warning("Keyword response had no keywords list; keys=%s", sorted(data))
            return []
        return [str(k).strip() for k in value if str(k).strip()]
    keywords: List[str] = []
    for line in (raw or "").splitlines():
        cleaned = _LIST_MARKER_RE.sub("", line).strip().strip('"')
        if cleaned:
            keywords.append(cleaned)
    return keywords
