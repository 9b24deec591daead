"""Unit tests for search analytics and suggestions."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from nexa_search.domain.models import utcnow
from nexa_search.domain.services.search_analytics import (
    MAX_QUERY_LENGTH,
    POPULAR_QUERIES_LIMIT,
    SearchAnalytics,
    SearchAnalyticsRecorder,
    SearchLogEntry,
    SearchLogStore,
)
from nexa_search.observability.metrics import MetricsCollector
from tests.factories import create_search_log


class TestGroupCount:
    def test_most_frequent_first(self):
        entries = [SearchLogEntry(query=q, result_count=0, execution_time=1) for q in "abab" "b"]

        assert SearchLogStore.group_count(entries, key=lambda e: e.query) == [("b", 3), ("a", 2)]

    def test_empty(self):
        assert SearchLogStore.group_count([], key=lambda e: e.query) == []


class TestSearchLogStore:
    @pytest.mark.asyncio
    async def test_append_and_query(self, log_store):
        await log_store.append(SearchLogEntry(query="jane", result_count=2, execution_time=7))

        entries = await log_store.query_by_time_range(utcnow() - timedelta(hours=1))

        assert len(entries) == 1
        assert entries[0].query == "jane"
        assert entries[0].result_count == 2
        assert entries[0].execution_time == 7

    @pytest.mark.asyncio
    async def test_append_truncates_long_queries(self, log_store):
        await log_store.append(
            SearchLogEntry(query="x" * (MAX_QUERY_LENGTH + 50), result_count=0, execution_time=1)
        )

        entries = await log_store.query_by_time_range(utcnow() - timedelta(hours=1))

        assert len(entries[0].query) == MAX_QUERY_LENGTH

    @pytest.mark.asyncio
    async def test_time_range_bounds(self, log_store, db_session):
        await create_search_log(db_session, query="old", days_ago=10)
        await create_search_log(db_session, query="mid", days_ago=5)
        await create_search_log(db_session, query="new", days_ago=0)
        await db_session.commit()

        now = utcnow()
        entries = await log_store.query_by_time_range(
            now - timedelta(days=7), now - timedelta(days=1)
        )

        assert [e.query for e in entries] == ["mid"]

    @pytest.mark.asyncio
    async def test_query_containing_is_case_insensitive(self, log_store, db_session):
        await create_search_log(db_session, query="Jane Roe")
        await create_search_log(db_session, query="acme")
        await db_session.commit()

        entries = await log_store.query_containing("jane")

        assert [e.query for e in entries] == ["Jane Roe"]


class TestSearchAnalyticsRecorder:
    @pytest.mark.asyncio
    async def test_analytics_window_excludes_old_entries(self, recorder, db_session):
        for days_ago in [0, 1, 3, 6, 9]:
            await create_search_log(db_session, query="recent", days_ago=days_ago)
        for _ in range(2):
            await create_search_log(db_session, query="stale", days_ago=40)
        await db_session.commit()

        analytics = await recorder.get_analytics(30)

        assert analytics.total_searches == 5
        assert analytics.popular_queries == [("recent", 5)]

    @pytest.mark.asyncio
    async def test_report_contents(self, recorder, db_session):
        await create_search_log(db_session, query="jane", result_count=2, days_ago=1)
        await create_search_log(db_session, query="jane", result_count=4, days_ago=1)
        await create_search_log(db_session, query="acme", result_count=0, days_ago=0)
        await db_session.commit()

        analytics = await recorder.get_analytics()

        assert analytics.total_searches == 3
        assert analytics.popular_queries == [("jane", 2), ("acme", 1)]
        assert analytics.average_results == 2.0
        assert analytics.zero_result_queries == 1
        assert sum(c for _, c in analytics.search_trends) == 3
        assert [d for d, _ in analytics.search_trends] == sorted(
            d for d, _ in analytics.search_trends
        )

    @pytest.mark.asyncio
    async def test_popular_queries_capped(self, recorder, db_session):
        for i in range(POPULAR_QUERIES_LIMIT + 3):
            await create_search_log(db_session, query=f"q{i}")
        await db_session.commit()

        analytics = await recorder.get_analytics()

        assert len(analytics.popular_queries) == POPULAR_QUERIES_LIMIT

    @pytest.mark.asyncio
    async def test_empty_window(self, recorder):
        analytics = await recorder.get_analytics(7)

        assert analytics == SearchAnalytics(
            total_searches=0,
            popular_queries=[],
            search_trends=[],
            average_results=0.0,
            zero_result_queries=0,
        )

    @pytest.mark.asyncio
    async def test_suggestions_exclude_exact_query(self, recorder, db_session):
        for q in ["ja", "ja", "ja", "jane", "jane", "james", "Jakarta"]:
            await create_search_log(db_session, query=q)
        await db_session.commit()

        suggestions = await recorder.suggest("ja")

        assert "ja" not in suggestions
        assert suggestions == ["jane", "james", "Jakarta"]

    @pytest.mark.asyncio
    async def test_suggestions_limited(self, recorder, db_session):
        for i in range(8):
            await create_search_log(db_session, query=f"term {i}")
        await db_session.commit()

        assert len(await recorder.suggest("term")) == 5
        assert len(await recorder.suggest("term", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_log_persists_entry(self, recorder, log_store):
        await recorder.log("acme", 1, 12)

        entries = await log_store.query_by_time_range(utcnow() - timedelta(hours=1))
        assert [(e.query, e.result_count, e.execution_time) for e in entries] == [("acme", 1, 12)]

    @pytest.mark.asyncio
    async def test_log_failure_is_swallowed(self):
        store = MagicMock(spec=SearchLogStore)
        store.append = AsyncMock(side_effect=RuntimeError("db down"))
        metrics = MetricsCollector()
        recorder = SearchAnalyticsRecorder(store, metrics=metrics)

        await recorder.log("jane", 1, 5)

        assert metrics.get("search.analytics_failures") == 1


class TestSearchAnalyticsToDict:
    def test_camel_case_keys(self):
        analytics = SearchAnalytics(
            total_searches=3,
            popular_queries=[("jane", 2)],
            search_trends=[("2026-01-01", 3)],
            average_results=1.5,
            zero_result_queries=0,
        )

        assert analytics.to_dict() == {
            "totalSearches": 3,
            "popularQueries": [{"query": "jane", "count": 2}],
            "searchTrends": [{"date": "2026-01-01", "count": 3}],
            "averageResults": 1.5,
            "zeroResultQueries": 0,
        }
