"""
Interactive search session: wires the query pipeline together.

    type_input ─► Debouncer ─► commit ─┬─► SearchHistory.record_search
                                       └─► ExpansionClient ─► expanded terms
    current_page() = paginate(rank(filter(snapshot items, state)))

One session per user. All mutation happens on the event loop, inside a
request handler, the debounce timer callback or an expansion task.

Public API:
    SearchSession(catalog, history, oracle, view, query)
    .type_input / .submit / .set_facet / .set_sort / .set_view
    .go_to_page / .reset / .current_page / .suggestions / .close

An empty result page carries a search tip (EMPTY_RESULT_TIPS).
"""

import logging
import random
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from discovery.catalog import CatalogStore
from discovery.config import DEBOUNCE_SECONDS
from discovery.debounce import Debouncer
from discovery.expansion import ExpansionClient, ExpansionOracle
from discovery.filters import filter_items
from discovery.history import SearchHistory, suggestions as build_suggestions
from discovery.paginator import is_valid_page, page_count, paginate, total_items
from discovery.ranking import rank_items
from discovery.state import CONTESTS, RESERVE_ALWAYS, RESERVE_DEFAULT_VIEW, QueryState

log = logging.getLogger(__name__)

# Shown with an empty result list, one picked at random per page build
EMPTY_RESULT_TIPS = (
    {"title": "검색 팁: 키워드 조합",
     "content": "더 정확한 결과를 위해 '시계열 예측'처럼 두 단어 이상의 구체적인 키워드를 사용해보세요."},
    {"title": "새로운 분야 탐색",
     "content": "결과가 없나요? 'NLP'나 '비전' 같은 인기 키워드로 검색하여 새로운 분야의 대회를 탐색해보는 건 어떠세요?"},
    {"title": "필터 활용하기",
     "content": "'진행중' 상태 필터를 사용해 지금 바로 참여할 수 있는 대회를 찾아보세요! 좋은 기회가 기다리고 있을지 모릅니다."},
)


class SearchSession:
    def __init__(
        self,
        catalog: CatalogStore,
        history: SearchHistory,
        oracle: ExpansionOracle | None = None,
        view: str = CONTESTS,
        query: str = "",
        debounce_delay: float = DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.id       = uuid.uuid4().hex
        self.catalog  = catalog
        self.history  = history
        self.clock    = clock
        self.state    = QueryState.for_view(view)
        self.notifications: list[str] = []
        self.last_seen = 0.0
        self.closed    = False

        self.debouncer = Debouncer(self._commit, delay=debounce_delay)
        self.expansion = ExpansionClient(oracle, self._install_terms, self.notify)

        if query.strip():
            self.state.raw_input = query
            self._commit(query, initial=True)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def type_input(self, text: str, submit: bool = False) -> None:
        """A keystroke; the query commits after the debounce delay, or now if submit."""
        self.state.raw_input = text
        self.debouncer.push(text)
        if submit:
            self.debouncer.flush()

    def submit(self, text: str | None = None) -> None:
        """Commit immediately (Enter key, suggestion or popular-keyword click)."""
        self.type_input(self.state.raw_input if text is None else text, submit=True)

    def _commit(self, query: str, initial: bool = False) -> None:
        if not self.state.commit_query(query):
            return
        log.info("session=%s commit %r", self.id[:8], query)
        self.state.set_expanded_terms(())
        self.history.record_search(query, initial=initial)
        self.expansion.on_commit(query)

    def _install_terms(self, terms: list[str]) -> None:
        self.state.set_expanded_terms(terms)

    def notify(self, message: str) -> None:
        self.notifications.append(message)

    def pop_notifications(self) -> list[str]:
        messages, self.notifications = self.notifications, []
        return messages

    @property
    def is_expanding(self) -> bool:
        return self.expansion.is_expanding

    async def wait_for_expansion(self) -> None:
        await self.expansion.wait()

    # ------------------------------------------------------------------
    # Facets, sort, view, pages
    # ------------------------------------------------------------------

    def set_facet(self, name: str, value: Any) -> bool:
        return self.state.set_facet(name, value)

    def set_sort(self, criterion: str, direction: str | None = None) -> None:
        self.state.set_sort(criterion, direction)

    def set_view(self, view: str) -> bool:
        return self.state.set_view(view)

    def reset(self) -> None:
        """Clear query, facets and sort on the current view."""
        self.debouncer.cancel()
        self.state.reset()
        self.expansion.on_commit("")

    def go_to_page(self, page: int) -> bool:
        """Move to page; out-of-range requests are ignored."""
        count = len(self.results())
        config = self.state.config
        special = self.special_first_page()
        if not is_valid_page(page, count, config.page_size, config.reserved_slots, special):
            log.debug("session=%s ignoring page %d (count=%d)", self.id[:8], page, count)
            return False
        self.state.current_page = page
        return True

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def special_first_page(self) -> bool:
        config = self.state.config
        if config.reserved_slots <= 0:
            return False
        if config.reserve == RESERVE_ALWAYS:
            return True
        return config.reserve == RESERVE_DEFAULT_VIEW and not self.state.has_active_filters()

    def results(self) -> list:
        now = self.clock()
        view = self.state.view
        items = self.catalog.snapshot.items(view)
        return rank_items(view, filter_items(view, items, self.state, now), self.state, now)

    def current_page(self) -> dict[str, Any]:
        """The page payload; drains pending notifications."""
        snapshot = self.catalog.snapshot
        config = self.state.config
        ranked = self.results()
        special = self.special_first_page()

        # A catalog refresh can shrink the result set under the current page
        pages = page_count(total_items(len(ranked), config.reserved_slots, special), config.page_size)
        if self.state.current_page > max(pages, 1):
            self.state.current_page = max(pages, 1)

        page = paginate(ranked, self.state.current_page, config.page_size, config.reserved_slots, special)
        return {
            "view":               self.state.view,
            "items":              [item.model_dump(mode="json") for item in page.items],
            "page":               page.page,
            "page_count":         page.page_count,
            "total_items":        page.total_items,
            "items_per_page":     page.items_per_page,
            "reserved_slots":     page.reserved_slots,
            "result_count":       len(ranked),
            "raw_input":          self.state.raw_input,
            "committed_query":    self.state.committed_query,
            "expanded_terms":     list(self.state.expanded_terms),
            "is_expanding":       self.is_expanding,
            "has_active_filters": self.state.has_active_filters(),
            "facets":             {k: (v.isoformat() if hasattr(v, "isoformat") else v)
                                   for k, v in self.state.facets.items()},
            "sort":               {"criterion": self.state.sort_criterion,
                                   "direction": self.state.sort_direction},
            "notifications":      self.pop_notifications(),
            "errors":             list(snapshot.errors),
            "tip":                random.choice(EMPTY_RESULT_TIPS) if not ranked else None,
        }

    def suggestions(self) -> dict[str, list[str]]:
        popular = self.catalog.snapshot.popular_for(self.state.view)
        return build_suggestions(self.state.raw_input, self.history.recent, popular)

    def close(self) -> None:
        self.debouncer.close()
        self.expansion.close()
        self.closed = True
        log.info("session=%s closed", self.id[:8])
