import asyncio

import pytest

from discovery.catalog import CatalogSnapshot, CatalogStore
from discovery.session import EMPTY_RESULT_TIPS, SearchSession
from discovery.state import ASC, LEARNING, SNIPPETS
from etl.pipeline import CatalogData
from tests.conftest import NOW, FakeOracle, make_contest

DELAY = 0.02


def item_ids(page):
    return [item["id"] for item in page["items"]]


@pytest.fixture
def session(catalog, history):
    return SearchSession(catalog, history, clock=lambda: NOW, debounce_delay=DELAY)


class TestDefaultView:
    """Test the page produced before the user does anything."""

    def test_default_contest_page_reserves_promo_slots(self, session):
        page = session.current_page()
        assert page["view"] == "contests"
        assert item_ids(page) == [3, 1, 5, 2, 4]
        assert page["reserved_slots"] == 2
        assert page["total_items"] == 7
        assert page["page_count"] == 1
        assert page["has_active_filters"] is False

    def test_active_filter_releases_reserved_slots(self, session):
        session.set_facet("status", "ongoing")
        page = session.current_page()
        assert item_ids(page) == [3, 1]
        assert page["reserved_slots"] == 0
        assert page["total_items"] == 2
        assert page["facets"] == {"status": "ongoing"}

    def test_non_default_sort_counts_as_filter(self, session):
        session.set_sort("start")
        page = session.current_page()
        assert page["sort"] == {"criterion": "start", "direction": ASC}
        assert page["has_active_filters"] is True
        assert page["reserved_slots"] == 0

    def test_empty_results_carry_a_search_tip(self, catalog, history):
        session = SearchSession(catalog, history, query="존재하지 않는 키워드", clock=lambda: NOW)
        page = session.current_page()
        assert page["items"] == []
        assert page["tip"] in EMPTY_RESULT_TIPS

    def test_non_empty_results_have_no_tip(self, session):
        assert session.current_page()["tip"] is None

    def test_thirty_ongoing_contests(self, history):
        data = CatalogData(contests=[make_contest(i) for i in range(1, 31)])
        store = CatalogStore(lambda: data)
        store.snapshot = CatalogSnapshot.from_data(data, loaded_at=NOW)
        session = SearchSession(store, history, clock=lambda: NOW)

        first = session.current_page()
        assert len(first["items"]) == 25
        assert first["reserved_slots"] == 2
        assert first["page_count"] == 2

        assert session.go_to_page(2)
        second = session.current_page()
        assert len(second["items"]) == 5
        assert second["reserved_slots"] == 0


class TestQueryFlow:
    def test_seeded_query_is_committed_but_not_recorded(self, catalog, history):
        session = SearchSession(catalog, history, query="llm", clock=lambda: NOW)
        page = session.current_page()
        assert page["committed_query"] == "llm"
        assert item_ids(page) == [3]
        assert history.recent == []

    @pytest.mark.asyncio
    async def test_typing_commits_after_quiet_period(self, session, history):
        for text in ("l", "ll", "llm"):
            session.type_input(text)
        assert session.current_page()["committed_query"] == ""

        await asyncio.sleep(DELAY * 5)
        page = session.current_page()
        assert page["committed_query"] == "llm"
        assert item_ids(page) == [3]
        assert history.recent == ["llm"]

    @pytest.mark.asyncio
    async def test_submit_commits_immediately(self, session, history):
        session.submit("프롬프트")
        assert session.state.committed_query == "프롬프트"
        assert history.recent == ["프롬프트"]

    @pytest.mark.asyncio
    async def test_expansion_widens_results(self, catalog, history):
        oracle = FakeOracle({"의료": ["Medical", "LLM"]})
        session = SearchSession(catalog, history, oracle=oracle, clock=lambda: NOW)
        session.submit("의료")
        assert session.is_expanding

        await session.wait_for_expansion()
        page = session.current_page()
        assert page["expanded_terms"] == ["medical", "llm"]
        # direct match on the 의료 tag ranks ahead of the expansion-only match
        assert item_ids(page) == [1, 3]

    @pytest.mark.asyncio
    async def test_expansion_failure_is_a_drained_notification(self, catalog, history):
        session = SearchSession(catalog, history, oracle=FakeOracle(fail=True), clock=lambda: NOW)
        session.submit("rag")
        await session.wait_for_expansion()

        page = session.current_page()
        assert page["expanded_terms"] == []
        assert len(page["notifications"]) == 1
        assert session.current_page()["notifications"] == []

    @pytest.mark.asyncio
    async def test_close_suppresses_pending_commit(self, session):
        session.type_input("rag")
        session.close()
        await asyncio.sleep(DELAY * 5)
        assert session.state.committed_query == ""


class TestNavigation:
    def test_view_change_clears_facets_and_keeps_query(self, catalog, history):
        session = SearchSession(catalog, history, query="rag", clock=lambda: NOW)
        session.set_facet("status", "ended")
        session.set_view(LEARNING)
        page = session.current_page()
        assert page["facets"] == {}
        assert page["sort"] == {"criterion": "status", "direction": "desc"}
        assert page["committed_query"] == "rag"
        assert item_ids(page) == [11]

    def test_learning_always_reserves_slots(self, session):
        session.set_view(LEARNING)
        session.set_facet("difficulty", "고급")
        page = session.current_page()
        assert page["reserved_slots"] == 2
        assert page["total_items"] == 4

    def test_snippets_never_reserve_slots(self, session):
        session.set_view(SNIPPETS)
        page = session.current_page()
        assert page["reserved_slots"] == 0
        assert page["total_items"] == 3

    def test_out_of_range_page_is_ignored(self, session):
        assert not session.go_to_page(2)
        assert not session.go_to_page(0)
        assert session.current_page()["page"] == 1

    def test_invalid_facet_raises(self, session):
        with pytest.raises(ValueError):
            session.set_facet("status", "someday")
        with pytest.raises(ValueError):
            session.set_facet("category", "비전")

    def test_reset_stays_on_view(self, catalog, history):
        session = SearchSession(catalog, history, query="rag", view=LEARNING, clock=lambda: NOW)
        session.set_facet("type", "course")
        session.set_sort("title")
        session.reset()
        page = session.current_page()
        assert page["view"] == LEARNING
        assert page["committed_query"] == ""
        assert page["facets"] == {}
        assert page["sort"] == {"criterion": "status", "direction": "desc"}

    def test_suggestions_use_view_popular_keywords(self, session, history):
        history.record_search("의료")
        result = session.suggestions()
        assert result["recent"] == ["의료"]
        assert "의료" not in result["popular"]
        assert "정형" in result["popular"]
