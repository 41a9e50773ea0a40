"""
Per-session query state and the registry of collection views.

QueryState is mutated in place by user actions. Every mutator that changes
what the result set looks like (query, facet, sort, view) sends the user back
to page 1, so callers never have to remember to do it.

Public API:
    VIEWS[name] → ViewConfig
    QueryState.for_view(name)
    QueryState.commit_query / set_facet / set_sort / set_view / reset
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

CONTESTS = "contests"
LEARNING = "learning"
SNIPPETS = "snippets"

ASC  = "asc"
DESC = "desc"

# Reservation rules for the promotional first-page slots
RESERVE_DEFAULT_VIEW = "default_view"   # only while no filter is active
RESERVE_ALWAYS       = "always"
RESERVE_NEVER        = "never"

CONTEST_TYPE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "algorithm": ("알고리즘",),
    "prompt":    ("프롬프트",),
    "service":   ("서비스개발", "서비스 개발", "앱개발", "앱 개발", "개발"),
    "idea":      ("아이디어",),
}

LEARNING_TYPES      = ("course", "hackathon", "lecture")
DIFFICULTIES        = ("초급", "중급", "고급")
SNIPPET_CATEGORIES  = ("생성AI", "NLP", "정형", "전처리", "데이터분석", "비전")
CONTEST_STATUSES    = ("ongoing", "ended", "practice")

# Values that mean "no filter" for any facet
_CLEARED = (None, "", "all", False)


def _choice(*options: str) -> Callable[[Any], str]:
    def validate(value: Any) -> str:
        if value not in options:
            raise ValueError(f"expected one of {', '.join(options)}; got {value!r}")
        return value
    return validate


def _iso_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"expected a YYYY-MM-DD date; got {value!r}") from None


def _flag(value: Any) -> bool:
    if value is True:
        return True
    raise ValueError(f"expected a boolean; got {value!r}")


def _text(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise ValueError("expected a non-empty string")
    return text


@dataclass(frozen=True)
class ViewConfig:
    name: str
    page_size: int
    reserved_slots: int
    reserve: str
    facets: Mapping[str, Callable[[Any], Any]]
    # criterion → default direction; the first entry is the view's default sort
    sort_criteria: Mapping[str, str]

    @property
    def default_sort(self) -> str:
        return next(iter(self.sort_criteria))


VIEWS: dict[str, ViewConfig] = {
    CONTESTS: ViewConfig(
        name=CONTESTS,
        page_size=27,
        reserved_slots=2,
        reserve=RESERVE_DEFAULT_VIEW,
        facets={
            "status":          _choice(*CONTEST_STATUSES),
            "type":            _choice(*CONTEST_TYPE_KEYWORDS),
            "date_from":       _iso_date,
            "date_to":         _iso_date,
            "data_links_only": _flag,
        },
        sort_criteria={
            "start":        DESC,
            "deadline":     ASC,
            "participants": DESC,
            "prize":        DESC,
        },
    ),
    LEARNING: ViewConfig(
        name=LEARNING,
        page_size=24,
        reserved_slots=2,
        reserve=RESERVE_ALWAYS,
        facets={
            "type":       _choice(*LEARNING_TYPES),
            "difficulty": _choice(*DIFFICULTIES),
            "tag":        _text,
        },
        sort_criteria={
            "status":       DESC,
            "id":           DESC,
            "title":        ASC,
            "difficulty":   ASC,
            "duration":     DESC,
            "participants": DESC,
        },
    ),
    SNIPPETS: ViewConfig(
        name=SNIPPETS,
        page_size=24,
        reserved_slots=0,
        reserve=RESERVE_NEVER,
        facets={
            "category": _choice(*SNIPPET_CATEGORIES),
        },
        sort_criteria={
            "original": ASC,
            "title":    ASC,
            "id":       DESC,
        },
    ),
}


def get_view(name: str) -> ViewConfig:
    try:
        return VIEWS[name]
    except KeyError:
        raise ValueError(f"unknown view {name!r}") from None


@dataclass
class QueryState:
    view: str = CONTESTS
    raw_input: str = ""
    committed_query: str = ""
    expanded_terms: tuple[str, ...] = ()
    facets: dict[str, Any] = field(default_factory=dict)
    sort_criterion: str = "start"
    sort_direction: str = DESC
    current_page: int = 1

    @classmethod
    def for_view(cls, view: str = CONTESTS) -> "QueryState":
        config = get_view(view)
        return cls(
            view=view,
            sort_criterion=config.default_sort,
            sort_direction=config.sort_criteria[config.default_sort],
        )

    @property
    def config(self) -> ViewConfig:
        return VIEWS[self.view]

    @property
    def normalized_query(self) -> str:
        return self.committed_query.strip().lower()

    def search_terms(self) -> list[str]:
        """The committed query plus its expansions; empty when there is no query."""
        query = self.normalized_query
        if not query:
            return []
        terms = [query]
        for term in self.expanded_terms:
            if term and term not in terms:
                terms.append(term)
        return terms

    def has_active_filters(self) -> bool:
        config = self.config
        return bool(
            self.normalized_query
            or self.facets
            or self.sort_criterion != config.default_sort
            or self.sort_direction != config.sort_criteria[config.default_sort]
        )

    # ------------------------------------------------------------------
    # Mutators (each resets to page 1 when something changed)
    # ------------------------------------------------------------------

    def commit_query(self, query: str) -> bool:
        if query == self.committed_query:
            return False
        self.committed_query = query
        self.current_page = 1
        return True

    def set_expanded_terms(self, terms: list[str] | tuple[str, ...]) -> None:
        self.expanded_terms = tuple(terms)

    def set_facet(self, name: str, value: Any) -> bool:
        """Validate and apply a facet value; a cleared value removes the facet."""
        validator = self.config.facets.get(name)
        if validator is None:
            raise ValueError(f"view {self.view!r} has no facet {name!r}")

        if value in _CLEARED:
            if name not in self.facets:
                return False
            del self.facets[name]
        else:
            normalized = validator(value)
            if self.facets.get(name) == normalized:
                return False
            self.facets[name] = normalized

        self.current_page = 1
        return True

    def set_sort(self, criterion: str, direction: str | None = None) -> None:
        """
        Select a sort criterion.

        Re-selecting the active criterion flips the direction; a new criterion
        starts from its default direction unless one is given explicitly.
        """
        defaults = self.config.sort_criteria
        if criterion not in defaults:
            raise ValueError(f"view {self.view!r} cannot sort by {criterion!r}")
        if direction is not None and direction not in (ASC, DESC):
            raise ValueError(f"sort direction must be {ASC!r} or {DESC!r}")

        if direction is None:
            if criterion == self.sort_criterion:
                direction = ASC if self.sort_direction == DESC else DESC
            else:
                direction = defaults[criterion]

        self.sort_criterion = criterion
        self.sort_direction = direction
        self.current_page = 1

    def set_view(self, view: str) -> bool:
        config = get_view(view)
        if view == self.view:
            return False
        self.view = view
        self.facets.clear()
        self.sort_criterion = config.default_sort
        self.sort_direction = config.sort_criteria[config.default_sort]
        self.current_page = 1
        return True

    def reset(self) -> None:
        """Clear query, facets and sort; stay on the current view."""
        config = self.config
        self.raw_input = ""
        self.committed_query = ""
        self.expanded_terms = ()
        self.facets.clear()
        self.sort_criterion = config.default_sort
        self.sort_direction = config.sort_criteria[config.default_sort]
        self.current_page = 1
