"""
Facet filter engine.

filter_items(view, items, state, now) applies a view's predicates in
sequence. Every predicate is conjunctive, so the order only matters for cost:
cheap categorical checks run before the keyword scan.

    contests : status → type → data-link → date range → keyword
    learning : type → difficulty → tag chip → keyword
    snippets : category → keyword

Keyword matching is a case-insensitive substring test of the term set
{committed query} ∪ expanded terms against title + tags. An item matches if
ANY term occurs. An empty committed query lets everything through.

Filtering never reorders and never raises on sparse records, so
filter(filter(x)) == filter(x).
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime

from discovery.models import CodeSnippet, Contest, ContentItem, LearningItem
from discovery.state import (
    CONTEST_TYPE_KEYWORDS,
    CONTESTS,
    LEARNING,
    SNIPPETS,
    QueryState,
)

log = logging.getLogger(__name__)

Predicate = Callable[[ContentItem, QueryState, datetime], bool]


# ---------------------------------------------------------------------------
# Shared predicates
# ---------------------------------------------------------------------------

def matches_terms(item: ContentItem, terms: Iterable[str]) -> bool:
    haystack = item.search_text
    return any(term in haystack for term in terms)


def _keyword(item: ContentItem, state: QueryState, now: datetime) -> bool:
    terms = state.search_terms()
    if not terms:
        return True
    return matches_terms(item, terms)


# ---------------------------------------------------------------------------
# Contests
# ---------------------------------------------------------------------------

def _contest_status(item: Contest, state: QueryState, now: datetime) -> bool:
    status = state.facets.get("status")
    if status is None:
        return True
    ongoing = item.is_ongoing(now)
    if status == "ongoing":
        return ongoing
    if status == "practice":
        return item.practice
    # "ended" never includes practice rounds
    return not ongoing and not item.practice


def _contest_type(item: Contest, state: QueryState, now: datetime) -> bool:
    kind = state.facets.get("type")
    if kind is None:
        return True
    title = item.title.lower()
    return any(keyword in title for keyword in CONTEST_TYPE_KEYWORDS[kind])


def _contest_data_link(item: Contest, state: QueryState, now: datetime) -> bool:
    if not state.facets.get("data_links_only"):
        return True
    return bool(item.url)


def _contest_date_range(item: Contest, state: QueryState, now: datetime) -> bool:
    """Keep contests whose period overlaps the selected window."""
    window_start = state.facets.get("date_from")
    window_end = state.facets.get("date_to")
    if window_start is None and window_end is None:
        return True
    if window_end is not None and item.start is not None and item.start.date() > window_end:
        return False
    if window_start is not None and item.end is not None and item.end.date() < window_start:
        return False
    return True


# ---------------------------------------------------------------------------
# Learning content
# ---------------------------------------------------------------------------

def _learning_type(item: LearningItem, state: QueryState, now: datetime) -> bool:
    kind = state.facets.get("type")
    return kind is None or item.kind == kind


def _learning_difficulty(item: LearningItem, state: QueryState, now: datetime) -> bool:
    difficulty = state.facets.get("difficulty")
    return difficulty is None or item.difficulty == difficulty


def _learning_tag(item: LearningItem, state: QueryState, now: datetime) -> bool:
    tag = state.facets.get("tag")
    return tag is None or tag.lower() in item.search_text


# ---------------------------------------------------------------------------
# Code snippets
# ---------------------------------------------------------------------------

def _snippet_category(item: CodeSnippet, state: QueryState, now: datetime) -> bool:
    category = state.facets.get("category")
    return category is None or item.category == category


PREDICATES: dict[str, tuple[Predicate, ...]] = {
    CONTESTS: (_contest_status, _contest_type, _contest_data_link, _contest_date_range, _keyword),
    LEARNING: (_learning_type, _learning_difficulty, _learning_tag, _keyword),
    SNIPPETS: (_snippet_category, _keyword),
}


def filter_items(
    view: str,
    items: Sequence[ContentItem],
    state: QueryState,
    now: datetime | None = None,
) -> list[ContentItem]:
    """Return the items of one collection that pass every active predicate, in input order."""
    now = now or datetime.now()
    predicates = PREDICATES[view]
    kept = [item for item in items if all(p(item, state, now) for p in predicates)]
    log.debug("filter view=%s in=%d out=%d terms=%r", view, len(items), len(kept), state.search_terms())
    return kept
