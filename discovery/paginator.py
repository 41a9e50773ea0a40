"""
Paginator with an optional reserved-slot first page.

In the special regime the first page leaves R slots free for promotional
cards that the caller renders inline, so it carries P - R real items; every
later page carries P items starting at (P - R) + (page - 2) * P. The total
reported to the pager is inflated by R so that page-count arithmetic matches
that layout.

    special  : page 1 → items[0 : P-R]        total = count + R
               page n → items[(P-R)+(n-2)P : +P]
    standard : page n → items[(n-1)P : nP]    total = count

An empty result set reports a total of 0 in both regimes (nothing to page).
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Page:
    items: list[Any]
    page: int
    page_count: int
    total_items: int
    items_per_page: int
    reserved_slots: int   # promotional slots the caller should render on THIS page


def total_items(count: int, reserved: int, special_first_page: bool) -> int:
    if count == 0:
        return 0
    return count + reserved if special_first_page else count


def page_count(total: int, per_page: int) -> int:
    if per_page <= 0:
        return 0
    return math.ceil(total / per_page)


def page_bounds(page: int, per_page: int, reserved: int, special_first_page: bool) -> tuple[int, int]:
    """Slice bounds [start, stop) of the real items shown on a 1-based page."""
    if not special_first_page or reserved <= 0:
        start = (page - 1) * per_page
        return start, start + per_page

    first = max(per_page - reserved, 0)
    if page == 1:
        return 0, first
    start = first + (page - 2) * per_page
    return start, start + per_page


def is_valid_page(page: int, count: int, per_page: int, reserved: int, special_first_page: bool) -> bool:
    pages = page_count(total_items(count, reserved, special_first_page), per_page)
    return 1 <= page <= pages


def paginate(
    items: Sequence[Any],
    page: int,
    per_page: int,
    reserved: int = 0,
    special_first_page: bool = False,
) -> Page:
    """Cut one page out of a ranked sequence."""
    special = special_first_page and reserved > 0
    total = total_items(len(items), reserved, special)
    start, stop = page_bounds(page, per_page, reserved, special)
    return Page(
        items=list(items[start:stop]),
        page=page,
        page_count=page_count(total, per_page),
        total_items=total,
        items_per_page=per_page,
        reserved_slots=reserved if special and page == 1 and items else 0,
    )
