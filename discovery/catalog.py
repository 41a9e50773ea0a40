"""
Catalog snapshot and periodic refresh.

A CatalogSnapshot is immutable: every refresh builds a complete new snapshot
in a worker thread and swaps the store's reference in one assignment, so a
request always sees one consistent catalog.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from discovery.config import CATALOG_REFRESH_SECONDS, POPULAR_CONTEST_TOP_N, POPULAR_LEARNING_TOP_N
from discovery.history import LEARNING_VOCABULARY, compute_popular
from discovery.models import CodeSnippet, Contest, LearningItem
from discovery.state import CONTESTS, LEARNING, SNIPPETS
from etl import pipeline

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogSnapshot:
    contests: tuple[Contest, ...] = ()
    learning: tuple[LearningItem, ...] = ()
    snippets: tuple[CodeSnippet, ...] = ()
    popular: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    errors: tuple[str, ...] = ()
    loaded_at: datetime | None = None

    @classmethod
    def from_data(cls, data: pipeline.CatalogData, loaded_at: datetime | None = None) -> "CatalogSnapshot":
        popular = {
            CONTESTS: tuple(compute_popular(data.contests, lambda c: c.tags, POPULAR_CONTEST_TOP_N)),
            LEARNING: tuple(compute_popular(
                data.learning, lambda i: i.search_text, POPULAR_LEARNING_TOP_N, vocabulary=LEARNING_VOCABULARY,
            )),
            SNIPPETS: tuple(compute_popular(data.snippets, lambda s: s.tags, POPULAR_CONTEST_TOP_N)),
        }
        return cls(
            contests=tuple(data.contests),
            learning=tuple(data.learning),
            snippets=tuple(data.snippets),
            popular=MappingProxyType(popular),
            errors=tuple(data.errors),
            loaded_at=loaded_at or datetime.now(),
        )

    def items(self, view: str) -> tuple:
        return {CONTESTS: self.contests, LEARNING: self.learning, SNIPPETS: self.snippets}[view]

    def popular_for(self, view: str) -> list[str]:
        return list(self.popular.get(view, ()))

    def counts(self) -> dict[str, int]:
        return {CONTESTS: len(self.contests), LEARNING: len(self.learning), SNIPPETS: len(self.snippets)}


class CatalogStore:
    """Holds the current snapshot; `load` replaces it, `refresh_forever` does so on a timer."""

    def __init__(self, loader: Callable[[], pipeline.CatalogData] = pipeline.run):
        self._loader = loader
        self.snapshot = CatalogSnapshot()

    def load(self) -> CatalogSnapshot:
        snapshot = CatalogSnapshot.from_data(self._loader())
        self.snapshot = snapshot
        log.info("Catalog snapshot swapped in: %s", snapshot.counts())
        return snapshot

    async def refresh(self) -> CatalogSnapshot:
        return await asyncio.to_thread(self.load)

    async def refresh_forever(self, interval: float = CATALOG_REFRESH_SECONDS) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except Exception:
                log.exception("Catalog refresh failed; keeping the previous snapshot.")
