"""
Typed catalog records.

Raw catalog payloads are loosely shaped (numbers as strings, null tag arrays,
several date formats). Everything is coerced here, at the boundary, so the
filter / rank / paginate pipeline only ever sees well-formed values:

    missing or null tags   → ()
    unparseable numbers    → 0
    unparseable dates      → None

Public API:
    Contest, LearningItem, CodeSnippet   (all ContentItem subclasses)
    parse_datetime(value) → datetime | None
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-ish date/datetime string; naive local time, None if unusable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text[:10])
            except ValueError:
                return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip().replace(",", "")))
        except ValueError:
            return 0
    return 0


def coerce_tags(value: Any) -> tuple[str, ...]:
    """
    Normalise the different tag encodings seen in catalog payloads.

    Accepts a '|'-joined string, a list of strings, or a list of
    {"tag_title": ...} objects. Blank entries are dropped, order is kept.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        raw = value.split("|")
    elif isinstance(value, (list, tuple)):
        raw = []
        for entry in value:
            if isinstance(entry, dict):
                raw.append(entry.get("tag_title") or "")
            elif isinstance(entry, str):
                raw.append(entry)
    else:
        return ()
    return tuple(t.strip() for t in raw if isinstance(t, str) and t.strip())


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class ContentItem(BaseModel):
    """Shape shared by every collection: id, primary text, tags, time range."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    tags: tuple[str, ...] = ()
    start: datetime | None = None
    end: datetime | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> tuple[str, ...]:
        return coerce_tags(v)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _dates(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @property
    def keyword_text(self) -> str:
        return " ".join(self.tags).lower()

    @property
    def search_text(self) -> str:
        """Lower-cased primary text + tags, the haystack for keyword matching."""
        return f"{self.title} {' '.join(self.tags)}".lower()

    def is_ongoing(self, now: datetime) -> bool:
        return self.end is not None and now <= self.end


class Contest(ContentItem):
    practice: bool = False
    participants: int = 0
    prize_info: str | None = None
    url: str | None = None

    @field_validator("practice", mode="before")
    @classmethod
    def _practice(cls, v: Any) -> bool:
        return coerce_int(v) == 1

    @field_validator("participants", mode="before")
    @classmethod
    def _participants(cls, v: Any) -> int:
        return coerce_int(v)

    @field_validator("prize_info", "url", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> str | None:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class LearningItem(ContentItem):
    kind: str = "course"
    difficulty: str = ""
    status: str = ""
    participants: int = 0
    duration_minutes: int = 0
    created_at: datetime | None = None
    link: str = ""

    @field_validator("participants", "duration_minutes", mode="before")
    @classmethod
    def _numbers(cls, v: Any) -> int:
        return coerce_int(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _created(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @field_validator("difficulty", "status", "link", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""


class CodeSnippet(ContentItem):
    category: str = ""
    url: str = ""

    @field_validator("category", "url", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""
