import pytest

from discovery.ranking import parse_prize, rank_items
from discovery.state import ASC, CONTESTS, DESC, LEARNING, SNIPPETS, QueryState
from tests.conftest import make_contest, make_learning, make_snippet


def ids(items):
    return [item.id for item in items]


class TestParsePrize:
    @pytest.mark.parametrize("text, expected", [
        ("총 상금 1,000만원", 10_000_000),
        ("1억 5000만원", 150_000_000),
        ("1.5억", 150_000_000),
        ("총 상금 3천만원", 30_000_000),
        ("1억 5천만원", 150_000_000),
        ("5백만원", 5_000_000),
        ("5천원", 5_000),
        ("$10,000", 10_000),
        ("10,000,000원", 10_000_000),
        ("1등 500만원, 2등 300만원", 8_000_000),
        ("상금 없음", 0),
        ("", 0),
        (None, 0),
        ("추후 공지", 0),
    ])
    def test_parse_prize(self, text, expected):
        assert parse_prize(text) == expected


class TestContestRanking:
    """Test the temporal → relevance → criterion chain for contests."""

    def test_default_sort_is_ongoing_first_then_latest_start(self, contests, now):
        state = QueryState.for_view(CONTESTS)
        assert ids(rank_items(CONTESTS, contests, state, now)) == [3, 1, 5, 2, 4]

    def test_deadline_ascending_within_temporal_tiers(self, contests, now):
        state = QueryState.for_view(CONTESTS)
        state.set_sort("deadline")
        assert state.sort_direction == ASC
        assert ids(rank_items(CONTESTS, contests, state, now)) == [1, 3, 4, 2, 5]

    def test_prize_uses_parsed_amounts(self, contests, now):
        state = QueryState.for_view(CONTESTS)
        state.set_sort("prize")
        assert ids(rank_items(CONTESTS, contests, state, now)) == [3, 1, 5, 2, 4]

    def test_participants_toggle_direction(self, contests, now):
        state = QueryState.for_view(CONTESTS)
        state.set_sort("participants")
        assert ids(rank_items(CONTESTS, contests, state, now)) == [3, 1, 4, 5, 2]
        state.set_sort("participants")
        assert state.sort_direction == ASC
        assert ids(rank_items(CONTESTS, contests, state, now)) == [1, 3, 2, 5, 4]

    def test_raw_query_matches_rank_before_expansion_matches(self, now):
        expanded_only = make_contest(1, "프롬프트 대회", start="2025-05-30")
        direct = make_contest(2, "LLM 대회", start="2025-05-02")
        state = QueryState.for_view(CONTESTS)
        state.commit_query("LLM")
        state.set_expanded_terms(["프롬프트"])
        assert ids(rank_items(CONTESTS, [expanded_only, direct], state, now)) == [2, 1]

    def test_temporal_priority_precedes_relevance(self, now):
        ended_direct = make_contest(1, "LLM 대회", start="2024-01-01", end="2024-02-01")
        ongoing_expanded = make_contest(2, "프롬프트 대회")
        state = QueryState.for_view(CONTESTS)
        state.commit_query("llm")
        state.set_expanded_terms(["프롬프트"])
        assert ids(rank_items(CONTESTS, [ended_direct, ongoing_expanded], state, now)) == [2, 1]

    def test_missing_dates_sort_last_by_start(self, now):
        undated = make_contest(1, "날짜 미정", start=None, end="2025-12-31")
        dated = make_contest(2, "날짜 있음")
        state = QueryState.for_view(CONTESTS)
        assert ids(rank_items(CONTESTS, [undated, dated], state, now)) == [2, 1]

    def test_thousand_unit_prize_outranks_smaller_amount(self, now):
        small = make_contest(1, "작은 대회", prize_info="총 상금 100만원")
        large = make_contest(2, "큰 대회", prize_info="총 상금 3천만원")
        state = QueryState.for_view(CONTESTS)
        state.set_sort("prize")
        assert ids(rank_items(CONTESTS, [small, large], state, now)) == [2, 1]


class TestStability:
    def test_fully_tied_items_keep_input_order(self, now):
        tied = [make_contest(i, "같은 대회", participants=10) for i in (7, 3, 9, 1)]
        state = QueryState.for_view(CONTESTS)
        state.set_sort("participants")
        assert ids(rank_items(CONTESTS, tied, state, now)) == [7, 3, 9, 1]
        state.set_sort("participants")
        assert ids(rank_items(CONTESTS, tied, state, now)) == [7, 3, 9, 1]

    def test_ranking_does_not_mutate_input(self, contests, now):
        before = ids(contests)
        rank_items(CONTESTS, contests, QueryState.for_view(CONTESTS), now)
        assert ids(contests) == before


class TestLearningAndSnippetRanking:
    def test_learning_status_puts_new_first_then_id_desc(self, learning, now):
        state = QueryState.for_view(LEARNING)
        assert (state.sort_criterion, state.sort_direction) == ("status", DESC)
        assert ids(rank_items(LEARNING, learning, state, now)) == [11, 13, 12, 10]

    def test_learning_difficulty_order(self, learning, now):
        items = [*learning, make_learning(14, "난이도 미정")]
        state = QueryState.for_view(LEARNING)
        state.set_sort("difficulty")
        assert ids(rank_items(LEARNING, items, state, now)) == [10, 12, 11, 13, 14]

    def test_learning_duration_desc(self, learning, now):
        state = QueryState.for_view(LEARNING)
        state.set_sort("duration")
        assert ids(rank_items(LEARNING, learning, state, now)) == [11, 10, 12, 13]

    def test_snippets_original_order_by_default(self, snippets, now):
        state = QueryState.for_view(SNIPPETS)
        assert ids(rank_items(SNIPPETS, snippets, state, now)) == [1, 2, 3]

    def test_snippets_title_and_id(self, now):
        items = [make_snippet(1, "b"), make_snippet(2, "A"), make_snippet(3, "c")]
        state = QueryState.for_view(SNIPPETS)
        state.set_sort("title")
        assert ids(rank_items(SNIPPETS, items, state, now)) == [2, 1, 3]
        state.set_sort("id")
        assert ids(rank_items(SNIPPETS, items, state, now)) == [3, 2, 1]
