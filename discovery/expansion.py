"""
Query expansion client.

Every committed query of two or more characters is sent to an expansion
oracle that returns related terms ("의료" → medical, 병원, 헬스케어 ...). The
terms widen the keyword predicate of the filter engine.

Requests are fire-and-forget asyncio tasks tagged with a generation number.
A response is only installed if its generation is still the current one, so
while the user keeps typing the last committed query always wins:

    commit("A")  → gen 1 in flight
    commit("B")  → gen 2 in flight
    gen 2 resolves → terms(B) installed
    gen 1 resolves → discarded (stale)

Failures clear the terms and raise a user-facing notification; there is no
automatic retry.

Public API:
    ExpansionClient(oracle, on_terms, on_error).on_commit(query)
    OpenAIExpansionOracle().expand(query) → list[str]
    build_oracle() → OpenAIExpansionOracle | None
    parse_terms(text) → list[str]
"""

import asyncio
import json
import logging
import re
from collections.abc import Callable, Iterable
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from discovery.config import (
    EXPANSION_MIN_LENGTH,
    EXPANSION_MODEL,
    EXPANSION_TIMEOUT,
    OPENAI_API_KEY,
)

log = logging.getLogger(__name__)

MAX_TERM_LENGTH = 40

SYSTEM_PROMPT = (
    "You are a search enhancement AI for 'Dacon', a data science competition "
    "and learning platform. Given a user's search query, return 5-7 related "
    "keywords in both Korean and English that would help find relevant "
    "contests and courses. Respond ONLY with the keywords, comma-separated. "
    "Example: for '의료' return 'medical, health, 헬스케어, 진단, 병원, medical imaging'."
)


class ExpansionError(Exception):
    """The oracle could not produce terms (network, timeout, bad response)."""


class ExpansionOracle(Protocol):
    async def expand(self, query: str) -> list[str]: ...


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def normalize_terms(terms: Iterable[str]) -> list[str]:
    """Lower-case, trim, drop blanks and duplicates; keep first-seen order."""
    result: list[str] = []
    for term in terms:
        text = term.strip().strip("\"'`").strip().lower()
        if text and len(text) <= MAX_TERM_LENGTH and text not in result:
            result.append(text)
    return result


def parse_terms(text: str | None) -> list[str]:
    """
    Turn an oracle reply into a term list.

    Accepts a JSON array of strings or comma / newline separated text, with
    optional list bullets. Anything else (prose, empty reply) yields [].
    """
    if not text or not text.strip():
        return []
    body = text.strip()

    if body.startswith("["):
        try:
            data = json.loads(body)
        except ValueError:
            data = None
        if isinstance(data, list):
            return normalize_terms(str(v) for v in data if isinstance(v, (str, int, float)))
        body = body.strip("[]")

    pieces = re.split(r"[,\n]", body)
    return normalize_terms(re.sub(r"^\s*(?:[-*•]|\d+[.)])\s*", "", p) for p in pieces)


# ---------------------------------------------------------------------------
# OpenAI oracle
# ---------------------------------------------------------------------------

class OpenAIExpansionOracle:
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = EXPANSION_MODEL,
        timeout: float = EXPANSION_TIMEOUT,
    ):
        self.client  = client or AsyncOpenAI(api_key=OPENAI_API_KEY)
        self.model   = model
        self.timeout = timeout

    async def expand(self, query: str) -> list[str]:
        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user",   "content": f"Search query: {query}"},
                    ],
                    max_tokens=100,
                    temperature=0.3,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExpansionError(f"expansion timed out after {self.timeout:.0f}s") from exc
        except OpenAIError as exc:
            raise ExpansionError(str(exc)) from exc

        if not completion.choices:
            return []
        return parse_terms(completion.choices[0].message.content)


def build_oracle() -> OpenAIExpansionOracle | None:
    """The configured oracle, or None when no API key is set (expansion disabled)."""
    if not OPENAI_API_KEY:
        log.info("OPENAI_API_KEY not set; query expansion disabled.")
        return None
    return OpenAIExpansionOracle()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ExpansionClient:
    def __init__(
        self,
        oracle: ExpansionOracle | None,
        on_terms: Callable[[list[str]], None],
        on_error: Callable[[str], None],
        min_length: int = EXPANSION_MIN_LENGTH,
    ):
        self.oracle     = oracle
        self.on_terms   = on_terms
        self.on_error   = on_error
        self.min_length = min_length
        self._generation = 0
        self._current: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_expanding(self) -> bool:
        return self._current is not None and not self._current.done()

    def on_commit(self, query: str) -> None:
        """Start expanding a newly committed query; supersedes any earlier request."""
        self._generation += 1
        self._current = None

        text = query.strip()
        if self.oracle is None or len(text) < self.min_length:
            self.on_terms([])
            return

        task = asyncio.get_running_loop().create_task(self._expand(self._generation, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._current = task

    async def _expand(self, generation: int, query: str) -> None:
        try:
            terms = await self.oracle.expand(query)
        except Exception as exc:
            if generation != self._generation:
                log.debug("Ignoring failure of stale expansion %r: %s", query, exc)
                return
            log.warning("Expansion failed for %r: %s", query, exc,
                        exc_info=not isinstance(exc, ExpansionError))
            self.on_terms([])
            self.on_error("Related-keyword expansion is unavailable; showing exact matches only.")
            return

        if generation != self._generation:
            log.debug("Discarding stale expansion for %r", query)
            return
        terms = normalize_terms(terms)
        log.info("Expanded %r → %s", query, terms)
        self.on_terms(terms)

    async def wait(self) -> None:
        """Block until the request for the current query has settled."""
        if self._current is not None and not self._current.done():
            await asyncio.wait({self._current})

    def close(self) -> None:
        self._generation += 1
        self._current = None
        for task in list(self._tasks):
            task.cancel()
