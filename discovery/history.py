"""
Search history: persisted recent searches, popular keywords, suggestions.

The preference file is the only process-wide state. It holds two optional
values and is rewritten on every change:

    {"recent_searches": ["rag", "의료", ...], "theme": "webtoon"}

A malformed file or value is discarded and the default restored; it never
stops the service from starting.

Public API:
    PreferenceStore(path)
    SearchHistory(store).record_search(query, initial=False)
    compute_popular(items, extractor, top_n, vocabulary=None) → list[str]
    suggestions(input_value, recent, popular) → dict
"""

import json
import logging
from collections import Counter
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from discovery.config import MAX_RECENT_SEARCHES

log = logging.getLogger(__name__)

THEMES = ("glass", "neumorphic", "webtoon")
DEFAULT_THEME = "webtoon"

# Full-text vocabulary used for learning content, whose tags are too sparse
# to rank on their own.
LEARNING_VOCABULARY = (
    "파이썬", "딥러닝", "머신러닝", "AI", "데이터", "LangChain", "RAG", "LLM",
    "CNN", "LSTM", "회귀", "분류", "시각화", "챗봇", "프로젝트",
)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class PreferenceStore:
    def __init__(self, path: Path):
        self.path = path
        self.recent_searches: list[str] = []
        self.theme: str = DEFAULT_THEME
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Discarding unreadable preferences %s: %s", self.path, exc)
            return
        if not isinstance(data, dict):
            log.warning("Discarding malformed preferences %s", self.path)
            return

        recent = data.get("recent_searches")
        if _is_string_list(recent):
            self.recent_searches = normalize_recent(recent)
        elif recent is not None:
            log.debug("Ignoring malformed recent_searches: %r", recent)

        theme = data.get("theme")
        if theme in THEMES:
            self.theme = theme
        elif theme is not None:
            log.debug("Ignoring unknown theme: %r", theme)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"recent_searches": self.recent_searches, "theme": self.theme}
        self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"theme must be one of {', '.join(THEMES)}")
        self.theme = theme
        self.save()


def normalize_recent(entries: Iterable[str], limit: int = MAX_RECENT_SEARCHES) -> list[str]:
    """Trim, drop blanks and case-insensitive duplicates (first wins), cap at limit."""
    seen: set[str] = set()
    result: list[str] = []
    for entry in entries:
        text = entry.strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        result.append(text)
    return result[:limit]


class SearchHistory:
    """Most-recent-first list of committed searches, bounded and case-insensitively unique."""

    def __init__(self, store: PreferenceStore, limit: int = MAX_RECENT_SEARCHES):
        self.store = store
        self.limit = limit

    @property
    def recent(self) -> list[str]:
        return list(self.store.recent_searches)

    def record_search(self, query: str, initial: bool = False) -> bool:
        """
        Put query at the front of the recent list and persist it.

        Blank queries and the initial (seeded) commit of a session are not
        recorded. Returns True when the list was updated.
        """
        text = query.strip()
        if initial or not text:
            return False
        updated = [text] + [s for s in self.store.recent_searches if s.lower() != text.lower()]
        self.store.recent_searches = updated[: self.limit]
        self.store.save()
        log.info("Recorded search %r (%d recent)", text, len(self.store.recent_searches))
        return True

    def clear(self) -> None:
        self.store.recent_searches = []
        self.store.save()


# ---------------------------------------------------------------------------
# Popular keywords
# ---------------------------------------------------------------------------

def split_keywords(value: str | None, delimiter: str = "|") -> list[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(delimiter) if token.strip()]


def compute_popular(
    items: Iterable[Any],
    extractor: Callable[[Any], Iterable[str] | str],
    top_n: int,
    vocabulary: Iterable[str] | None = None,
) -> list[str]:
    """
    Rank keywords by how many items mention them.

    Without a vocabulary, extractor returns each item's keyword tokens (a
    '|'-joined string is split). With a vocabulary, extractor returns the
    item's full text and each vocabulary word found in it counts once.
    Ties keep first-encountered order (Counter preserves insertion order).
    """
    counts: Counter[str] = Counter()
    vocab = list(vocabulary) if vocabulary is not None else None

    for item in items:
        extracted = extractor(item)
        if extracted is None:
            continue
        if vocab is not None:
            text = (extracted if isinstance(extracted, str) else " ".join(extracted)).lower()
            counts.update(word for word in vocab if word.lower() in text)
        else:
            tokens = split_keywords(extracted) if isinstance(extracted, str) else extracted
            counts.update(t.strip() for t in tokens if t and t.strip())

    return [keyword for keyword, _ in counts.most_common(top_n)]


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

def suggestions(input_value: str, recent: list[str], popular: list[str]) -> dict[str, list[str]]:
    """
    Suggestion lists for the search box.

    Empty input: {"recent": [...], "popular": [...minus anything already recent]}
    Otherwise:   {"filtered": [...recent + popular containing the input]}
    """
    if not input_value:
        recent_lower = {r.lower() for r in recent}
        return {
            "recent": list(recent),
            "popular": [p for p in popular if p.lower() not in recent_lower],
        }

    needle = input_value.lower()
    combined = list(dict.fromkeys([*recent, *popular]))
    return {
        "filtered": [s for s in combined if needle in s.lower() and s.lower() != needle],
    }
