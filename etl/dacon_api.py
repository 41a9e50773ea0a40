"""
Client for the Dacon catalog endpoints.

Both endpoints are public JSON APIs, fetched with plain requests:

  - Contests: {DACON_API_BASE}/api/v1/competition/list?offset=0&range=10000
      → {"status": 1, "data": [{cpt_id, name, period_start, period_end,
                                user_count, prize_info, keyword, practice}, ...]}
  - Learning: {DACON_DEV_API_BASE}/api/v2/edu/getAllMainList
      → {"projects":     {"list": [...]},   courses
         "hackathons":   {"list": [...]},   hackathons
         "rankerVideos": {"list": [...]}}   ranker lectures

Each fetch returns None when the endpoint could not be reached or answered
with something that is not JSON, so the caller can fall back to bundled data.
"""

import logging
import time
from typing import Any

import requests

from discovery.config import (
    DACON_API_BASE,
    DACON_DEV_API_BASE,
    REQUEST_RETRIES,
    REQUEST_TIMEOUT,
)

CONTESTS_URL = f"{DACON_API_BASE}/api/v1/competition/list?offset=0&range=10000"
LEARNING_URL = f"{DACON_DEV_API_BASE}/api/v2/edu/getAllMainList"

log = logging.getLogger(__name__)

SESSION = requests.Session()
SESSION.headers["User-Agent"] = "Catalog-Discovery/1.0 (search service)"


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------

def _get(url: str, retries: int = REQUEST_RETRIES) -> requests.Response | None:
    """GET a URL with exponential-backoff retries."""
    for attempt in range(retries):
        try:
            resp = SESSION.get(url, timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
            return resp
        except requests.RequestException as exc:
            log.warning("Request failed (attempt %d/%d) %s: %s", attempt + 1, retries, url, exc)
            if attempt < retries - 1:
                time.sleep(2 ** attempt)
    return None


def _get_json(url: str) -> Any | None:
    resp = _get(url)
    if resp is None:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        log.warning("Non-JSON response from %s: %s", url, exc)
        return None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

def fetch_contests() -> list[dict] | None:
    """Raw contest records, [] for an unexpected envelope, None on failure."""
    payload = _get_json(CONTESTS_URL)
    if payload is None:
        return None
    if not isinstance(payload, dict) or payload.get("status") != 1 or not isinstance(payload.get("data"), list):
        log.warning("Unexpected contest payload envelope; treating as empty.")
        return []
    contests = [c for c in payload["data"] if isinstance(c, dict)]
    log.info("Fetched %d contests from %s", len(contests), CONTESTS_URL)
    return contests


def fetch_learning() -> dict | None:
    """Raw learning payload (projects / hackathons / rankerVideos), None on failure."""
    payload = _get_json(LEARNING_URL)
    if payload is None:
        return None
    if not isinstance(payload, dict):
        log.warning("Unexpected learning payload type %s; treating as empty.", type(payload).__name__)
        return {}
    return payload
