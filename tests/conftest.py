import asyncio
from datetime import datetime

import pytest

from discovery.catalog import CatalogSnapshot, CatalogStore
from discovery.expansion import ExpansionError
from discovery.history import PreferenceStore, SearchHistory
from discovery.models import CodeSnippet, Contest, LearningItem
from etl.pipeline import CatalogData

NOW = datetime(2025, 6, 1, 12, 0, 0)


def make_contest(id: int, title: str = "", **fields) -> Contest:
    fields.setdefault("start", "2025-05-01 10:00:00")
    fields.setdefault("end", "2025-07-01 10:00:00")
    return Contest(id=id, title=title or f"Contest {id}", **fields)


def make_learning(id: int, title: str = "", **fields) -> LearningItem:
    return LearningItem(id=id, title=title or f"Course {id}", **fields)


def make_snippet(id: int, title: str = "", **fields) -> CodeSnippet:
    return CodeSnippet(id=id, title=title or f"Snippet {id}", **fields)


class FakeOracle:
    """Oracle whose replies are released by the test, one future per query."""

    def __init__(self, replies: dict[str, list[str]] | None = None, fail: bool = False):
        self.replies = replies or {}
        self.fail = fail
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    def gate(self, query: str) -> asyncio.Event:
        return self.gates.setdefault(query, asyncio.Event())

    async def expand(self, query: str) -> list[str]:
        self.calls.append(query)
        if query in self.gates:
            await self.gates[query].wait()
        if self.fail:
            raise ExpansionError("oracle unavailable")
        return self.replies.get(query, [])


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def contests():
    """A small mixed contest catalog around NOW."""
    return [
        make_contest(1, "병원 데이터 분석 경진대회", tags="의료|정형", participants=300,
                     prize_info="총 상금 1,000만원", url="https://dacon.io/c/1"),
        make_contest(2, "알고리즘 챌린지", tags="알고리즘", participants=50, prize_info="상금 없음",
                     start="2024-01-01", end="2024-02-01"),
        make_contest(3, "LLM 프롬프트 해커톤", tags="LLM|프롬프트", participants=900,
                     prize_info="1억 5000만원", start="2025-05-20", end="2025-08-01"),
        make_contest(4, "[연습] 타이타닉 분류", tags="정형|분류", practice=1, participants=5000,
                     start="2022-01-01", end="2022-12-31"),
        make_contest(5, "앱 개발 아이디어 공모전", tags=None, participants=120,
                     prize_info="$10,000", start="2025-03-01", end="2025-04-01"),
    ]


@pytest.fixture
def learning():
    return [
        make_learning(10, "파이썬 기초", kind="course", difficulty="초급", status="OPEN",
                      tags=[{"tag_title": "데이터분석"}], duration_minutes=180, participants=900),
        make_learning(11, "LangChain RAG 챗봇", kind="course", difficulty="고급", status="NEW",
                      tags=["rag", "langchain"], duration_minutes=300, participants=200),
        make_learning(12, "시계열 해커톤", kind="hackathon", difficulty="중급", status="OPEN",
                      tags="시계열|정형", duration_minutes=120, participants=450),
        make_learning(13, "랭커 특강: 딥러닝 노하우", kind="lecture", difficulty="고급", status="OPEN",
                      tags=["랭커특강"], duration_minutes=60),
    ]


@pytest.fixture
def snippets():
    return [
        make_snippet(1, "LangChain RAG 베이스라인", category="생성AI", tags=["RAG", "LLM"]),
        make_snippet(2, "KoBERT 문장 분류", category="NLP", tags=["BERT"]),
        make_snippet(3, "YOLO 객체 탐지", category="비전", tags=None),
    ]


@pytest.fixture
def catalog_data(contests, learning, snippets):
    return CatalogData(contests=contests, learning=learning, snippets=snippets)


@pytest.fixture
def catalog(catalog_data):
    store = CatalogStore(lambda: catalog_data)
    store.snapshot = CatalogSnapshot.from_data(catalog_data, loaded_at=NOW)
    return store


@pytest.fixture
def preferences(tmp_path):
    return PreferenceStore(tmp_path / "preferences.json")


@pytest.fixture
def history(preferences):
    return SearchHistory(preferences)
