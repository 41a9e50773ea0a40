import pytest

from discovery.paginator import is_valid_page, page_bounds, paginate


class TestReservedFirstPage:
    """Test the special regime that reserves promotional slots on page 1."""

    def test_thirty_items_twenty_seven_per_page_two_reserved(self):
        items = list(range(30))

        first = paginate(items, 1, per_page=27, reserved=2, special_first_page=True)
        assert first.items == list(range(25))
        assert first.reserved_slots == 2
        assert first.total_items == 32
        assert first.page_count == 2

        second = paginate(items, 2, per_page=27, reserved=2, special_first_page=True)
        assert second.items == list(range(25, 30))
        assert second.reserved_slots == 0

    def test_later_pages_are_offset_by_the_short_first_page(self):
        assert page_bounds(1, 24, 2, True) == (0, 22)
        assert page_bounds(2, 24, 2, True) == (22, 46)
        assert page_bounds(3, 24, 2, True) == (46, 70)

    def test_special_regime_without_reserved_slots_is_standard(self):
        page = paginate(list(range(10)), 1, per_page=4, reserved=0, special_first_page=True)
        assert page.items == [0, 1, 2, 3]
        assert page.total_items == 10
        assert page.reserved_slots == 0


class TestStandardPages:
    def test_standard_regime(self):
        items = list(range(30))
        assert paginate(items, 1, per_page=27).items == list(range(27))
        last = paginate(items, 2, per_page=27)
        assert last.items == [27, 28, 29]
        assert last.total_items == 30
        assert last.page_count == 2

    def test_empty_results(self):
        for special in (False, True):
            page = paginate([], 1, per_page=24, reserved=2, special_first_page=special)
            assert page.items == []
            assert page.total_items == 0
            assert page.page_count == 0
            assert page.reserved_slots == 0


class TestContinuity:
    @pytest.mark.parametrize("count", [1, 24, 25, 26, 27, 52, 53, 100])
    @pytest.mark.parametrize("special", [False, True])
    def test_pages_reproduce_the_ranked_list_once(self, count, special):
        items = list(range(count))
        first = paginate(items, 1, per_page=27, reserved=2, special_first_page=special)

        seen = []
        for n in range(1, first.page_count + 1):
            seen.extend(paginate(items, n, per_page=27, reserved=2, special_first_page=special).items)

        assert seen == items
        assert paginate(items, first.page_count, 27, 2, special).items, "last page must not be empty"


class TestPageValidity:
    def test_out_of_range_pages_are_invalid(self):
        assert is_valid_page(1, 30, 27, 2, True)
        assert is_valid_page(2, 30, 27, 2, True)
        assert not is_valid_page(3, 30, 27, 2, True)
        assert not is_valid_page(0, 30, 27, 2, True)
        assert not is_valid_page(1, 0, 27, 2, True)
