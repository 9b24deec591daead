"""Integration tests for the search API routes."""

import json
from unittest.mock import AsyncMock

import pytest

from nexa_search.domain.services.search import SearchError
from tests.factories import create_company, create_search_log, create_user


@pytest.fixture
async def seeded(db_session):
    await create_user(db_session, name="Jane Roe", email="jane@x.com")
    await create_user(db_session, name="John Doe", email="john@x.com", active=False)
    await create_company(db_session, name="Acme", code="ACME")
    await db_session.commit()


class TestSearchEndpoint:
    """Tests for GET /search."""

    @pytest.mark.asyncio
    async def test_search_returns_envelope(self, client, seeded):
        response = await client.get("/search", params={"q": "jane"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["page"] == 1
        assert data["limit"] == 20
        assert data["pages"] == 1
        assert data["query"] == "jane"
        assert data["filters"] == {}
        assert isinstance(data["executionTime"], int)
        assert data["data"][0]["name"] == "Jane Roe"
        assert data["data"][0]["_search"]["index_id"] == "users"

    @pytest.mark.asyncio
    async def test_filters_json(self, client, seeded):
        response = await client.get(
            "/search",
            params={"filters": json.dumps({"active": False})},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["data"][0]["name"] == "John Doe"
        assert data["filters"] == {"active": False}

    @pytest.mark.asyncio
    async def test_invalid_filters_rejected(self, client):
        response = await client.get("/search", params={"filters": "not json"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_non_object_filters_rejected(self, client):
        response = await client.get("/search", params={"filters": "[1, 2]"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_include_comma_separated(self, client, seeded):
        response = await client.get("/search", params={"include": "companies,partners"})

        assert response.status_code == 200
        assert [r["name"] for r in response.json()["data"]] == ["Acme"]

    @pytest.mark.asyncio
    async def test_repeated_exclude(self, client, seeded):
        response = await client.get(
            "/search",
            params=[("exclude", "users"), ("exclude", "partners")],
        )

        assert response.status_code == 200
        assert [r["name"] for r in response.json()["data"]] == ["Acme"]

    @pytest.mark.asyncio
    async def test_sort_and_order(self, client, seeded):
        response = await client.get(
            "/search",
            params={"include": "users", "sort": "name", "order": "asc"},
        )

        assert [r["name"] for r in response.json()["data"]] == ["Jane Roe", "John Doe"]

    @pytest.mark.asyncio
    async def test_invalid_order_rejected(self, client):
        response = await client.get("/search", params={"order": "sideways"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_limit_bounds(self, client):
        assert (await client.get("/search", params={"limit": 0})).status_code == 422
        assert (await client.get("/search", params={"page": 0})).status_code == 422

    @pytest.mark.asyncio
    async def test_limit_above_maximum_is_clamped(self, client):
        response = await client.get("/search", params={"limit": 101})

        assert response.status_code == 200
        assert response.json()["limit"] == 100

    @pytest.mark.asyncio
    async def test_search_failure_returns_500(self, client, search_engine):
        await search_engine.initialize()
        search_engine.search = AsyncMock(side_effect=SearchError("Search failed: boom"))

        response = await client.get("/search", params={"q": "x"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Search failed: boom"


class TestConfiguredPageSize:
    """Page size defaults and bounds come from settings."""

    @pytest.fixture
    def test_settings(self, test_settings):
        return test_settings.model_copy(
            update={"search_default_limit": 5, "search_max_limit": 500}
        )

    @pytest.fixture
    async def many_users(self, db_session):
        for i in range(15):
            await create_user(db_session, name=f"Member {i}", email=f"member{i}@x.com")
        await db_session.commit()

    @pytest.mark.asyncio
    async def test_default_limit_from_settings(self, client, many_users):
        response = await client.get("/search", params={"q": "member"})

        assert response.status_code == 200
        data = response.json()
        assert data["limit"] == 5
        assert data["total"] == 15
        assert data["pages"] == 3
        assert len(data["data"]) == 5

    @pytest.mark.asyncio
    async def test_limit_up_to_configured_maximum(self, client, many_users):
        response = await client.get("/search", params={"q": "member", "limit": 200})

        assert response.status_code == 200
        data = response.json()
        assert data["limit"] == 200
        assert len(data["data"]) == 15

    @pytest.mark.asyncio
    async def test_limit_clamped_to_configured_maximum(self, client):
        response = await client.get("/search", params={"limit": 900})

        assert response.json()["limit"] == 500


class TestSuggestionsEndpoint:
    @pytest.mark.asyncio
    async def test_suggestions(self, client, seeded, db_session):
        await create_search_log(db_session, query="jane roe")
        await create_search_log(db_session, query="jane")
        await db_session.commit()

        response = await client.get("/search/suggestions", params={"q": "jane"})

        assert response.status_code == 200
        data = response.json()
        assert [r["name"] for r in data["results"]] == ["Jane Roe"]
        assert data["suggestions"] == ["jane roe"]

    @pytest.mark.asyncio
    async def test_suggestion_failure_still_returns_results(self, client, seeded, search_engine):
        search_engine.analytics.suggest = AsyncMock(side_effect=RuntimeError("db down"))

        response = await client.get("/search/suggestions", params={"q": "jane"})

        assert response.status_code == 200
        data = response.json()
        assert [r["name"] for r in data["results"]] == ["Jane Roe"]
        assert data["suggestions"] == []


class TestAnalyticsEndpoint:
    @pytest.mark.asyncio
    async def test_analytics(self, client, db_session):
        await create_search_log(db_session, query="jane", result_count=0)
        await create_search_log(db_session, query="jane", result_count=2)
        await create_search_log(db_session, query="acme", result_count=1, days_ago=45)
        await db_session.commit()

        response = await client.get("/search/analytics", params={"days": 30})

        assert response.status_code == 200
        data = response.json()
        assert data["totalSearches"] == 2
        assert data["popularQueries"] == [{"query": "jane", "count": 2}]
        assert data["averageResults"] == 1.0
        assert data["zeroResultQueries"] == 1
        assert len(data["searchTrends"]) == 1

    @pytest.mark.asyncio
    async def test_days_validated(self, client):
        response = await client.get("/search/analytics", params={"days": 0})

        assert response.status_code == 422


class TestIndexAdministration:
    """Tests for /search/indexes."""

    @pytest.mark.asyncio
    async def test_list_default_indexes(self, client):
        response = await client.get("/search/indexes")

        assert response.status_code == 200
        assert [i["id"] for i in response.json()] == ["users", "companies", "partners"]

    @pytest.mark.asyncio
    async def test_get_index(self, client):
        response = await client.get("/search/indexes/users")

        assert response.status_code == 200
        assert response.json()["fields"] == ["name", "email", "phone"]

    @pytest.mark.asyncio
    async def test_get_unknown_index(self, client):
        response = await client.get("/search/indexes/ghosts")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_register_index(self, client, seeded):
        response = await client.post(
            "/search/indexes",
            json={"id": "staff", "name": "Staff", "fields": ["email"], "table": "users"},
        )

        assert response.status_code == 201
        assert response.json()["table"] == "users"

        search = await client.get("/search", params={"q": "john", "include": "staff"})
        assert search.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_register_requires_fields(self, client):
        response = await client.post(
            "/search/indexes",
            json={"id": "staff", "name": "Staff", "fields": []},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_index(self, client, seeded):
        response = await client.patch("/search/indexes/users", json={"enabled": False})

        assert response.status_code == 200
        assert response.json()["enabled"] is False

        search = await client.get("/search", params={"q": "jane"})
        assert search.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_update_unknown_index(self, client):
        response = await client.patch("/search/indexes/ghosts", json={"enabled": False})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_attributes(self, client):
        response = await client.patch("/search/indexes/users", json={"boost": 2})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_index_is_idempotent(self, client):
        first = await client.delete("/search/indexes/partners")
        second = await client.delete("/search/indexes/partners")

        assert first.status_code == 204
        assert second.status_code == 204
        listing = await client.get("/search/indexes")
        assert [i["id"] for i in listing.json()] == ["users", "companies"]


class TestAdminToken:
    @pytest.fixture
    def test_settings(self, test_settings):
        return test_settings.model_copy(update={"search_admin_token": "s3cret"})

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, client):
        response = await client.get("/search/indexes")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or missing admin token"

    @pytest.mark.asyncio
    async def test_wrong_token_rejected(self, client):
        response = await client.delete(
            "/search/indexes/users", headers={"X-Admin-Token": "nope"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_token_accepted(self, client):
        response = await client.get(
            "/search/indexes", headers={"X-Admin-Token": "s3cret"}
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_search_is_public(self, client):
        response = await client.get("/search", params={"q": "x"})

        assert response.status_code == 200


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_healthz(self, client):
        response = await client.get("/healthz")

        assert response.json() == {"ok": True, "service": "nexa-search"}

    @pytest.mark.asyncio
    async def test_ready_reports_indexes(self, client):
        response = await client.get("/api/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True
        assert response.json()["indexes"] == 3

    @pytest.mark.asyncio
    async def test_metrics(self, client):
        response = await client.get("/api/metrics")

        assert response.status_code == 200
        assert set(response.json()["application"]) == {"counters", "gauges", "histograms"}


class TestRequestIds:
    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, client):
        response = await client.get("/healthz")

        assert len(response.headers["X-Request-ID"]) == 32

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get(
            "/search", params={"q": "x"}, headers={"X-Request-ID": "trace-abc"}
        )

        assert response.headers["X-Request-ID"] == "trace-abc"

    @pytest.mark.asyncio
    async def test_degraded_table_is_logged_with_request_id(self, client, caplog):
        with caplog.at_level("WARNING", logger="nexa_search.domain.services.search"):
            response = await client.get(
                "/search",
                params={"filters": '{"role": "ADMIN"}'},
                headers={"X-Request-ID": "trace-xyz"},
            )

        assert response.status_code == 200
        degraded = [r for r in caplog.records if getattr(r, "index_id", None) == "companies"]
        assert degraded
        assert degraded[0].request_id == "trace-xyz"
