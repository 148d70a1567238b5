"""Prompts for the structured SEO operations and their local fallbacks.

The analysis mapping comes from the content analyzer and may carry
``summary``, ``main_content``, ``headings`` and ``keywords``.
"""

from typing import Any, Dict, List, Mapping, Optional

TITLE_SYSTEM_MESSAGE = "You are an SEO expert. Generate concise, compelling page titles."
DESCRIPTION_SYSTEM_MESSAGE = "You are an SEO expert. Generate compelling meta descriptions."
KEYWORDS_SYSTEM_MESSAGE = "You are an SEO expert. Generate relevant keywords."

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 160
MAX_KEYWORDS = 10


def _heading_texts(analysis: Mapping[str, Any]) -> List[str]:
    headings = analysis.get("headings") or []
    # Analyzers emit either [{"text": ...}] or {"h1": [...], "h2": [...]}
    if isinstance(headings, Mapping):
        texts: List[str] = []
        for level in sorted(headings):
            texts.extend(str(text) for text in headings[level] if text)
        return texts
    texts = []
    for heading in headings:
        if isinstance(heading, Mapping):
            if heading.get("text"):
                texts.append(str(heading["text"]))
        elif heading:
            texts.append(str(heading))
    return texts


def _keywords(analysis: Mapping[str, Any]) -> List[str]:
    return [str(k) for k in analysis.get("keywords") or [] if k]


def build_title_prompt(analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> str:
    options = options or {}
    lines = ["Generate an SEO-optimized title for this content:", ""]

    if analysis.get("summary"):
        lines.append(f"Content Summary: {analysis['summary']}")
    headings = _heading_texts(analysis)[:3]
    if headings:
        lines.append("Main Headings: " + ", ".join(headings))
    keywords = _keywords(analysis)[:5]
    if keywords:
        lines.append("Key Terms: " + ", ".join(keywords))

    max_length = options.get("max_length", TITLE_MAX_LENGTH)
    lines.append("")
    lines.append(
        f"Generate a title that is compelling, descriptive, and under {max_length} characters. "
        "Return only the title, nothing else."
    )
    return "\n".join(lines)


def build_description_prompt(analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> str:
    options = options or {}
    lines = ["Generate an SEO-optimized meta description for this content:", ""]

    if analysis.get("summary"):
        lines.append(f"Content Summary: {analysis['summary']}")
    if analysis.get("main_content"):
        lines.append(f"Content Preview: {str(analysis['main_content'])[:500]}...")
    keywords = _keywords(analysis)[:5]
    if keywords:
        lines.append("Key Terms: " + ", ".join(keywords))

    max_length = options.get("max_length", DESCRIPTION_MAX_LENGTH)
    lines.append("")
    lines.append(
        f"Generate a meta description that is engaging, informative, and between 120-{max_length} "
        "characters. Return only the description, nothing else."
    )
    return "\n".join(lines)


def build_keywords_prompt(analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> str:
    options = options or {}
    lines = ["Generate relevant SEO keywords for this content:", ""]

    if analysis.get("summary"):
        lines.append(f"Content Summary: {analysis['summary']}")
    if analysis.get("main_content"):
        lines.append(f"Content Preview: {str(analysis['main_content'])[:300]}...")

    max_keywords = options.get("max_keywords", MAX_KEYWORDS)
    lines.append("")
    lines.append(
        f"Generate up to {max_keywords} relevant keywords as a comma-separated list. "
        "Return only the list, nothing else."
    )
    return "\n".join(lines)


def generation_options(system_message: str, max_tokens: int, temperature: float,
                       options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Backend options for a structured operation; explicit options win."""
    merged: Dict[str, Any] = {
        "system_message": system_message,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    for key in ("system_message", "max_tokens", "temperature"):
        if options and key in options:
            merged[key] = options[key]
    return merged


def parse_keywords(text: str, limit: Optional[int] = None) -> List[str]:
    """Split a comma-separated answer into clean keywords."""
    keywords = [part.strip().strip('"').strip() for part in text.replace("\n", ",").split(",")]
    keywords = [k for k in keywords if k]
    return keywords[:limit] if limit else keywords


def fallback_title(analysis: Mapping[str, Any]) -> str:
    """Title derived locally when no backend could produce one."""
    headings = _heading_texts(analysis)
    if headings:
        return headings[0]
    if analysis.get("summary"):
        return str(analysis["summary"])[:TITLE_MAX_LENGTH]
    return "Untitled Page"


def fallback_description(analysis: Mapping[str, Any]) -> str:
    """Description derived locally when no backend could produce one."""
    if analysis.get("summary"):
        return str(analysis["summary"])[:DESCRIPTION_MAX_LENGTH]
    if analysis.get("main_content"):
        return str(analysis["main_content"])[:DESCRIPTION_MAX_LENGTH]
    return "No description available."


def fallback_keywords(analysis: Mapping[str, Any]) -> List[str]:
    """Keywords the analyzer already extracted."""
    return _keywords(analysis)
