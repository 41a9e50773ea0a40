"""
Ranking engine.

rank_items(view, items, state, now) orders a filtered result list with a fixed
tie-break chain; each tier only decides between items the previous tier left
tied:

    1. temporal priority  — contests only: ongoing before finished
    2. query relevance    — items whose title/keywords contain the raw committed
                            query before items that matched only via expansion
    3. user criterion     — the view's selected sort key and direction
    4. original order     — nothing else moves

Implemented as successive stable sorts, least significant tier first. Python's
sort is stable (also with reverse=True), so fully tied items always keep their
input order.

Public API:
    rank_items(view, items, state, now) → list
    parse_prize(text) → float
"""

import math
import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from discovery.models import CodeSnippet, Contest, ContentItem, LearningItem
from discovery.state import CONTESTS, DESC, LEARNING, SNIPPETS, QueryState

DIFFICULTY_ORDER = {"초급": 1, "중급": 2, "고급": 3}
UNKNOWN_DIFFICULTY = 99

_LARGE_UNITS = {"억": 100_000_000, "만": 10_000, "": 1}
_SMALL_UNITS = {"천": 1_000, "백": 100, "": 1}

# A number with Korean magnitude units ("3천만", "1억", "5천"), or a bare number
# not glued to a Hangul word such as "1등" (a rank). A trailing "원" is allowed.
_PRIZE_AMOUNT = re.compile(
    r"(?<![\d.])(\d+(?:\.\d+)?)"
    r"(?:([천백]?)([억만])|([천백])|(?=원|[^가-힣\d.]|$))"
)


def parse_prize(text: str | None) -> float:
    """
    Parse free-text prize information into a comparable amount.

    "총 상금 1,000만원" → 10_000_000
    "1억 5000만원"      → 150_000_000
    "3천만원"           → 30_000_000
    "$10,000"           → 10_000
    "상금 없음" / None  → 0
    """
    if not text or "없음" in text:
        return 0.0
    sanitized = re.sub(r"[,\s]", "", text)
    total = 0.0
    for number, small, large, small_only in _PRIZE_AMOUNT.findall(sanitized):
        total += float(number) * _SMALL_UNITS[small or small_only] * _LARGE_UNITS[large]
    return total if math.isfinite(total) else 0.0


def _timestamp(value: datetime | None, missing: float) -> float:
    return value.timestamp() if value is not None else missing


# ---------------------------------------------------------------------------
# Sort keys per view (None = keep the incoming order)
# ---------------------------------------------------------------------------

SortKey = Callable[[Any], Any] | None

CONTEST_KEYS: dict[str, SortKey] = {
    "start":        lambda c: _timestamp(c.start, -math.inf),
    "deadline":     lambda c: _timestamp(c.end, math.inf),
    "participants": lambda c: c.participants,
    "prize":        lambda c: parse_prize(c.prize_info),
}

LEARNING_KEYS: dict[str, SortKey] = {
    "status":       lambda i: (i.status == "NEW", i.id),
    "id":           lambda i: i.id,
    "title":        lambda i: i.title.casefold(),
    "difficulty":   lambda i: DIFFICULTY_ORDER.get(i.difficulty, UNKNOWN_DIFFICULTY),
    "duration":     lambda i: i.duration_minutes,
    "participants": lambda i: i.participants,
}

SNIPPET_KEYS: dict[str, SortKey] = {
    "original": None,
    "title":    lambda s: s.title.casefold(),
    "id":       lambda s: s.id,
}

SORT_KEYS: dict[str, dict[str, SortKey]] = {
    CONTESTS: CONTEST_KEYS,
    LEARNING: LEARNING_KEYS,
    SNIPPETS: SNIPPET_KEYS,
}


def matches_raw_query(item: ContentItem, query: str) -> bool:
    return query in item.title.lower() or query in item.keyword_text


def rank_items(
    view: str,
    items: Sequence[Contest | LearningItem | CodeSnippet],
    state: QueryState,
    now: datetime | None = None,
) -> list:
    now = now or datetime.now()
    ranked = list(items)

    key = SORT_KEYS[view].get(state.sort_criterion)
    if key is not None:
        ranked.sort(key=key, reverse=state.sort_direction == DESC)

    query = state.normalized_query
    if query:
        ranked.sort(key=lambda item: not matches_raw_query(item, query))

    if view == CONTESTS:
        ranked.sort(key=lambda item: not item.is_ongoing(now))

    return ranked
