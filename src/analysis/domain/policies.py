"""
Analysis Domain Policies
========================

Pure functions shared by the pipeline stages. No I/O happens here.
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.config import Priority
from src.analysis.domain.entities import ContextSnippet, Employee

MAX_PHRASE_WORDS = 4
MAX_TAGS = 3
MAX_TAG_LENGTH = 30

_TAG_INVALID = re.compile(r"[^a-z0-9]+")

RESPONSE_TONES = {
    Priority.URGENT: "On it! Let's fix this right away. Be direct and action-oriented.",
    Priority.HIGH: "On it! Let's fix this right away. Be direct and action-oriented.",
    Priority.MEDIUM: "Here's what we can do... Be calm and solution-focused.",
    Priority.LOW: "This is an easy fix! Be light and encouraging.",
}


def normalize_search_phrases(phrases: Iterable[str], limit: int) -> Tuple[str, ...]:
    """
    Collapse whitespace, keep at most four words per phrase, drop blanks and
    case-insensitive duplicates, and cap the count at ``limit``.
    """
    seen = set()
    normalized: List[str] = []
    for phrase in phrases:
        words = phrase.split()[:MAX_PHRASE_WORDS]
        if not words:
            continue
        candidate = " ".join(words)
        key = candidate.lower()
        if key in seen:
            continue
        seen.add(key)
        normalized.append(candidate)
        if len(normalized) == limit:
            break
    return tuple(normalized)


def merge_snippets(batches: Iterable[Sequence[ContextSnippet]]) -> Tuple[ContextSnippet, ...]:
    """
    Merge per-phrase results into one ranked list.

    One snippet per document survives (the most similar one). Output is
    sorted by similarity descending, ties broken by document id.
    """
    best: Dict[str, ContextSnippet] = {}
    for batch in batches:
        for snippet in batch:
            current = best.get(snippet.document_id)
            if current is None or snippet.similarity > current.similarity:
                best[snippet.document_id] = snippet
    return tuple(sorted(best.values(), key=lambda s: (-s.similarity, s.document_id)))


def normalize_tag(tag: str) -> str:
    """Lower-case, hyphen-separated, at most 30 characters."""
    slug = _TAG_INVALID.sub("-", tag.strip().lower()).strip("-")
    return slug[:MAX_TAG_LENGTH].rstrip("-")


def normalize_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    result: List[str] = []
    for tag in tags:
        slug = normalize_tag(tag)
        if slug and slug not in result:
            result.append(slug)
    return tuple(result[:MAX_TAGS])


def usable_employees(employees: Iterable[Employee]) -> Tuple[Employee, ...]:
    """Roster entries that can actually receive a ticket."""
    return tuple(e for e in employees if e.id and e.name and e.name.strip())


def response_tone(priority: Priority) -> str:
    return RESPONSE_TONES[priority]


def customer_facing_rejection(
    response_message: str,
    translated_response: Optional[str],
    translation_needed: bool
) -> str:
    """Prefer the localized rejection when the inquiry was not in English."""
    if translation_needed and translated_response and translated_response.strip():
        return translated_response.strip()
    return response_message.strip()


def ticket_title(inquiry: str, max_length: int = 120) -> str:
    """First line of the inquiry, shortened for a ticket subject."""
    first_line = inquiry.strip().splitlines()[0].strip() if inquiry.strip() else ""
    if len(first_line) <= max_length:
        return first_line
    return first_line[:max_length - 3].rstrip() + "..."
