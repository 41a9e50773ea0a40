"""
ETL pipeline: fetches the live catalog, merges it with the bundled dataset,
and normalizes everything into typed records.

Merge strategy:
  - Contests: the API list is the base; bundled contests fill in ids the API
    did not return, and back-fill fields the API left empty (url, prize_info)
  - Learning: courses, hackathons and ranker lectures from the API; if the
    call fails or returns nothing, bundled courses + ranker lectures instead,
    with tags derived from the title where a record has none
  - Snippets: always the bundled dataset
  - Every failed source adds a degradation message to `errors`

Records without a usable id or title are dropped with a warning.
"""

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from discovery.config import DATA_DIR
from discovery.models import CodeSnippet, Contest, LearningItem, coerce_int, parse_datetime
from etl import dacon_api

log = logging.getLogger(__name__)

STATIC_CONTESTS_FILE = "static_contests.json"
STATIC_COURSES_FILE  = "static_courses.json"
RANKER_LECTURES_FILE = "ranker_lectures.json"
BASE_CODE_FILE       = "base_code.json"

CONTEST_MERGE_FIELDS = ("url", "prize_info", "keyword", "period_start", "period_end")

# Title keywords promoted to tags for bundled learning items that carry none
TITLE_TAG_VOCABULARY = ("python", "llm", "langchain", "rag", "cnn", "lstm", "파이썬", "딥러닝", "머신러닝")

CONTEST_FALLBACK_MESSAGE  = "Contest catalog unavailable; showing bundled contests only."
LEARNING_FALLBACK_MESSAGE = "Learning catalog unavailable; showing bundled courses and lectures only."


@dataclass
class CatalogData:
    contests: list[Contest] = field(default_factory=list)
    learning: list[LearningItem] = field(default_factory=list)
    snippets: list[CodeSnippet] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def load(path: Path) -> list[dict]:
    """Load a JSON array from disk; return [] if the file doesn't exist."""
    if not path.exists():
        log.warning("Bundled dataset missing: %s", path)
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    return [d for d in data if isinstance(d, dict)] if isinstance(data, list) else []


def _build(model: type, raw: dict, source: str) -> Any | None:
    try:
        item = model(**raw)
    except ValidationError as exc:
        log.warning("Dropping %s record %r: %s", source, raw.get("id"), exc.errors()[0]["msg"])
        return None
    if not item.title:
        log.warning("Dropping %s record %r without a title", source, item.id)
        return None
    return item


def _has_id(value: Any) -> bool:
    return coerce_int(value) > 0


# ---------------------------------------------------------------------------
# Contests
# ---------------------------------------------------------------------------

def merge_contests(api: list[dict], static: list[dict]) -> list[dict]:
    """
    Merge API and bundled contest dicts by cpt_id.

    Returns API contests in API order, then bundled contests the API lacked.
    """
    index: dict[int, dict] = {}

    for contest in api:
        cid = coerce_int(contest.get("cpt_id"))
        if cid:
            index[cid] = dict(contest)

    for contest in static:
        cid = coerce_int(contest.get("cpt_id"))
        if not cid:
            continue
        if cid in index:
            for name in CONTEST_MERGE_FIELDS:
                if not index[cid].get(name) and contest.get(name):
                    index[cid][name] = contest[name]
        else:
            index[cid] = dict(contest)

    return list(index.values())


def to_contest(raw: dict) -> Contest | None:
    if not _has_id(raw.get("cpt_id")):
        log.warning("Dropping contest without cpt_id: %r", raw.get("name"))
        return None
    return _build(Contest, {
        "id":           raw.get("cpt_id"),
        "title":        raw.get("name"),
        "tags":         raw.get("keyword"),
        "start":        raw.get("period_start"),
        "end":          raw.get("period_end"),
        "practice":     raw.get("practice"),
        "participants": raw.get("user_count"),
        "prize_info":   raw.get("prize_info"),
        "url":          raw.get("url"),
    }, "contest")


# ---------------------------------------------------------------------------
# Learning content
# ---------------------------------------------------------------------------

def _section(payload: dict, name: str) -> list[dict]:
    section = payload.get(name)
    if not isinstance(section, dict) or not isinstance(section.get("list"), list):
        return []
    return [entry for entry in section["list"] if isinstance(entry, dict)]


def learning_from_api(payload: dict, now: datetime) -> list[dict]:
    """Map the three API sections onto one learning-record shape."""
    records: list[dict] = []

    for item in _section(payload, "projects"):
        records.append({
            "id":               item.get("project_id"),
            "title":            re.sub(r"🎪$", "", str(item.get("title") or "")).strip(),
            "kind":             "course",
            "difficulty":       item.get("difficulty"),
            "status":           item.get("status"),
            "tags":             item.get("tags"),
            "participants":     item.get("participant_count"),
            "duration_minutes": item.get("duration_in_minutes"),
            "created_at":       item.get("created_at"),
            "link":             f"https://dacon.io/edu/{item.get('project_id')}",
        })

    for item in _section(payload, "hackathons"):
        end = parse_datetime(item.get("period_end"))
        records.append({
            "id":               item.get("cpt_id"),
            "title":            item.get("title"),
            "kind":             "hackathon",
            "difficulty":       "중급",
            "status":           "OPEN" if end is not None and now <= end else "ENDED",
            "tags":             item.get("keyword"),
            "participants":     item.get("participant_count"),
            "duration_minutes": 120,
            "created_at":       item.get("period_start"),
            "start":            item.get("period_start"),
            "end":              item.get("period_end"),
            "link":             f"https://dacon.io/competitions/official/{item.get('cpt_id')}/overview/description",
        })

    for item in _section(payload, "rankerVideos"):
        records.append({
            "id":               item.get("tb_id"),
            "title":            item.get("title"),
            "kind":             "lecture",
            "difficulty":       "고급",
            "status":           "OPEN",
            "tags":             ["랭커특강"],
            "participants":     0,
            "duration_minutes": 60,
            "created_at":       item.get("created_at"),
            "link":             f"https://dacon.io/forum/{item.get('tb_id')}",
        })

    return records


def learning_from_bundle(courses: list[dict], lectures: list[dict]) -> list[dict]:
    """Bundled courses + ranker lectures; untagged records get tags from their title."""
    records = []
    for item in [*courses, *lectures]:
        record = {
            "id":               item.get("project_id"),
            "title":            item.get("title"),
            "kind":             item.get("type") or "course",
            "difficulty":       item.get("difficulty"),
            "status":           item.get("status"),
            "tags":             item.get("tags"),
            "participants":     item.get("participant_count"),
            "duration_minutes": item.get("duration_in_minutes"),
            "created_at":       item.get("created_at"),
            "link":             item.get("link"),
        }
        if not record["tags"]:
            title = str(record["title"] or "").lower()
            derived = [kw for kw in TITLE_TAG_VOCABULARY if kw in title]
            if derived:
                record["tags"] = derived
        records.append(record)
    return records


def to_learning_item(raw: dict) -> LearningItem | None:
    if not _has_id(raw.get("id")):
        log.warning("Dropping learning record without id: %r", raw.get("title"))
        return None
    return _build(LearningItem, raw, "learning")


def to_snippet(raw: dict) -> CodeSnippet | None:
    if not _has_id(raw.get("id")):
        log.warning("Dropping snippet without id: %r", raw.get("title"))
        return None
    return _build(CodeSnippet, {**raw, "tags": raw.get("keywords")}, "snippet")


def _keep(items: list[Any | None]) -> list[Any]:
    return [item for item in items if item is not None]


# ---------------------------------------------------------------------------
# Entry point (importable, not a CLI)
# ---------------------------------------------------------------------------

def run(
    fetch_contests: Callable[[], list[dict] | None] = dacon_api.fetch_contests,
    fetch_learning: Callable[[], dict | None] = dacon_api.fetch_learning,
    data_dir: Path = DATA_DIR,
    now: datetime | None = None,
) -> CatalogData:
    """Fetch, merge with bundled data, normalize; never raises on source failure."""
    now = now or datetime.now()
    data = CatalogData()

    # 1. Contests
    static_contests = load(data_dir / STATIC_CONTESTS_FILE)
    api_contests = fetch_contests()
    if api_contests is None:
        log.warning("Contest API failed; using %d bundled contests.", len(static_contests))
        data.errors.append(CONTEST_FALLBACK_MESSAGE)
        raw_contests = static_contests
    else:
        raw_contests = merge_contests(api_contests, static_contests)
    data.contests = _keep([to_contest(c) for c in raw_contests])

    # 2. Learning content
    payload = fetch_learning()
    raw_learning = learning_from_api(payload, now) if payload is not None else []
    if not raw_learning:
        if payload is None:
            log.warning("Learning API failed; using bundled courses and lectures.")
            data.errors.append(LEARNING_FALLBACK_MESSAGE)
        else:
            log.info("Learning API returned no items; using bundled courses and lectures.")
        raw_learning = learning_from_bundle(
            load(data_dir / STATIC_COURSES_FILE),
            load(data_dir / RANKER_LECTURES_FILE),
        )
    data.learning = _keep([to_learning_item(r) for r in raw_learning])

    # 3. Snippets
    data.snippets = _keep([to_snippet(s) for s in load(data_dir / BASE_CODE_FILE)])

    log.info(
        "Catalog built: %d contests, %d learning items, %d snippets (%d degraded sources)",
        len(data.contests), len(data.learning), len(data.snippets), len(data.errors),
    )
    return data
