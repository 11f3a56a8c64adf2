"""
Note extractors: build a task-specific prompt, call the completion client and
turn the reply into a result.

API failures always propagate as CompletionError. Malformed model output for
the two JSON extractors falls back to a canned result unless the caller passes
fallback=False, in which case MalformedResponseError is raised instead.
"""

import json
import logging
import math
import re
from typing import Any, List

from pydantic import BaseModel

from .errors import MalformedResponseError
from .mistral import MistralClient
from .prompts import (
    ANALYSIS_PROMPT,
    ANALYSIS_SYSTEM_PROMPT,
    GENERATION_PROMPT,
    GENERATION_SYSTEM_PROMPT,
    LINKS_PROMPT,
    LINKS_SYSTEM_PROMPT,
    MARKDOWN_GUIDE,
    QA_PROMPT,
    QA_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)

OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

DEFAULT_RELEVANCE = 0.5


class NoteAnalysisResult(BaseModel):
    summary: str
    keyThemes: List[str]
    suggestedLinks: List[str]
    knowledgeGaps: List[str]


class LinkSuggestion(BaseModel):
    title: str
    relevance: float
    reason: str


ANALYSIS_FALLBACK = NoteAnalysisResult(
    summary="Failed to generate summary. Please try again with more detailed content.",
    keyThemes=["Analysis failed"],
    suggestedLinks=["Try again with different content"],
    knowledgeGaps=["Unable to identify knowledge gaps"],
)

FALLBACK_LINK_REASON = "Potential connection based on content similarity"


def _reject_constant(name: str) -> Any:
    raise MalformedResponseError(f"Response contains non-standard JSON value {name}")


def _extract_json(text: str, pattern: re.Pattern) -> Any:
    """Decode the first matching JSON span, or the whole text if nothing matches."""
    match = pattern.search(text)
    json_string = match.group() if match else text
    try:
        # NaN and Infinity are not JSON
        return json.loads(json_string, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}")


def parse_analysis(text: str) -> NoteAnalysisResult:
    """
    Parse an analysis reply.

    Raises:
        MalformedResponseError: If the JSON is missing or lacks a summary and the three lists.
    """
    parsed = _extract_json(text, OBJECT_PATTERN)

    if (
        not isinstance(parsed, dict)
        or not parsed.get("summary")
        or not isinstance(parsed.get("keyThemes"), list)
        or not isinstance(parsed.get("suggestedLinks"), list)
        or not isinstance(parsed.get("knowledgeGaps"), list)
    ):
        raise MalformedResponseError("Invalid response structure")

    return NoteAnalysisResult(
        summary=str(parsed["summary"]),
        keyThemes=[str(item) for item in parsed["keyThemes"]],
        suggestedLinks=[str(item) for item in parsed["suggestedLinks"]],
        knowledgeGaps=[str(item) for item in parsed["knowledgeGaps"]],
    )


def _link_from_item(item: Any) -> LinkSuggestion:
    if not isinstance(item, dict):
        item = {}

    relevance = item.get("relevance")
    # bool is an int subclass but not a relevance score
    if isinstance(relevance, bool) or not isinstance(relevance, (int, float)):
        relevance = DEFAULT_RELEVANCE

    try:
        relevance = float(relevance)
    except OverflowError:
        relevance = DEFAULT_RELEVANCE
    if not math.isfinite(relevance):
        relevance = DEFAULT_RELEVANCE

    return LinkSuggestion(
        title=str(item.get("title") or "Untitled Note"),
        relevance=relevance,
        reason=str(item.get("reason") or "Related content"),
    )


def parse_link_suggestions(text: str) -> List[LinkSuggestion]:
    """
    Parse a link suggestion reply, defaulting missing fields per element.

    Raises:
        MalformedResponseError: If no JSON array can be decoded.
    """
    parsed = _extract_json(text, ARRAY_PATTERN)
    if not isinstance(parsed, list):
        raise MalformedResponseError("Invalid response structure")
    return [_link_from_item(item) for item in parsed]


def fallback_link_suggestions(existing_notes: List[str]) -> List[LinkSuggestion]:
    return [
        LinkSuggestion(title=note, relevance=DEFAULT_RELEVANCE, reason=FALLBACK_LINK_REASON)
        for note in existing_notes
    ]


def sort_by_relevance(suggestions: List[LinkSuggestion]) -> List[LinkSuggestion]:
    """Order suggestions for display, most relevant first."""
    return sorted(suggestions, key=lambda s: s.relevance, reverse=True)


async def analyze_note(
    note_content: str,
    client: MistralClient,
    fallback: bool = True,
) -> NoteAnalysisResult:
    """
    Summarize a note and list its themes, candidate links and knowledge gaps.

    Args:
        note_content: The note text
        client: Completion client
        fallback: Return ANALYSIS_FALLBACK on malformed output instead of raising

    Returns:
        NoteAnalysisResult
    """
    prompt = ANALYSIS_PROMPT.format(content=note_content)
    content = await client.complete_or_raise(prompt, ANALYSIS_SYSTEM_PROMPT)

    try:
        return parse_analysis(content)
    except MalformedResponseError as e:
        if not fallback:
            raise
        logger.warning(f"Failed to parse AI response: {e}")
        return ANALYSIS_FALLBACK.model_copy(deep=True)


async def suggest_links(
    note_content: str,
    existing_notes: List[str],
    client: MistralClient,
    fallback: bool = True,
) -> List[LinkSuggestion]:
    """
    Suggest which existing notes a note should link to.

    On malformed output every existing note is returned at the default
    relevance unless fallback is False.
    """
    prompt = LINKS_PROMPT.format(
        content=note_content,
        existing_notes="\n".join(existing_notes),
    )
    content = await client.complete_or_raise(prompt, LINKS_SYSTEM_PROMPT)

    try:
        return parse_link_suggestions(content)
    except MalformedResponseError as e:
        if not fallback:
            raise
        logger.warning(f"Failed to parse link suggestions: {e}")
        return fallback_link_suggestions(existing_notes)


async def generate_note(
    topic: str,
    related_notes: List[str],
    client: MistralClient,
) -> str:
    """Write a Markdown note about a topic, using related notes as context."""
    prompt = GENERATION_PROMPT.format(
        topic=topic,
        markdown_guide=MARKDOWN_GUIDE,
        context="\n".join(related_notes),
    )
    return await client.complete_or_raise(prompt, GENERATION_SYSTEM_PROMPT)


async def answer_question(
    question: str,
    vault_content: str,
    client: MistralClient,
) -> str:
    """Answer a question from the supplied vault content."""
    prompt = QA_PROMPT.format(
        markdown_guide=MARKDOWN_GUIDE,
        question=question,
        vault_content=vault_content,
    )
    return await client.complete_or_raise(prompt, QA_SYSTEM_PROMPT)


def note_filename(topic: str, fallback: str = "note") -> str:
    """Download filename for a generated note: first 30 chars, slugified, .md."""
    stem = re.sub(r"[^a-z0-9]", "-", topic[:30], flags=re.IGNORECASE).lower()
    return f"{stem or fallback}.md"
