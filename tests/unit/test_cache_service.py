"""
Unit tests for the cache service (in-memory backend).
"""

from uuid import uuid4

import pytest

from bizsuite.services.cache import CacheService

pytestmark = pytest.mark.unit


@pytest.fixture
def cache() -> CacheService:
    # No Redis attached: entries live in process memory
    return CacheService()


@pytest.mark.asyncio
class TestCacheEntries:
    """Test set, get and invalidation."""

    async def test_set_and_get_round_trip(self, cache: CacheService):
        org_id = uuid4()
        assert await cache.set_cache("dashboard", {"deals": 3}, organization_id=org_id) is True
        assert await cache.get_cache("dashboard", organization_id=org_id) == {"deals": 3}

    async def test_keys_are_namespaced_per_organization(self, cache: CacheService):
        await cache.set_cache("dashboard", {"deals": 3}, organization_id=uuid4())
        assert await cache.get_cache("dashboard", organization_id=uuid4()) is None

    async def test_expired_entry_is_a_miss(self, cache: CacheService):
        await cache.set_cache("stale", 1, ttl=60)
        cache.memory["stale"].expires = 0

        assert await cache.get_cache("stale") is None
        assert "stale" not in cache.memory

    async def test_invalidate_by_pattern(self, cache: CacheService):
        org_id = uuid4()
        await cache.set_cache("crm:customers:1", 1, organization_id=org_id)
        await cache.set_cache("crm:customers:2", 2, organization_id=org_id)
        await cache.set_cache("hr:employees:1", 3, organization_id=org_id)

        removed = await cache.invalidate_cache("crm:*", organization_id=org_id)

        assert removed == 2
        assert await cache.get_cache("hr:employees:1", organization_id=org_id) == 3

    async def test_invalidate_by_tags_only_touches_own_tenant(self, cache: CacheService):
        org_a, org_b = uuid4(), uuid4()
        await cache.set_cache("a", 1, tags=["invoices"], organization_id=org_a)
        await cache.set_cache("b", 2, tags=["invoices", "reports"], organization_id=org_a)
        await cache.set_cache("c", 3, tags=["projects"], organization_id=org_a)
        await cache.set_cache("a", 4, tags=["invoices"], organization_id=org_b)

        removed = await cache.invalidate_cache_by_tags(["invoices"], organization_id=org_a)

        assert removed == 2
        assert await cache.get_cache("c", organization_id=org_a) == 3
        assert await cache.get_cache("a", organization_id=org_b) == 4

    async def test_hit_rate(self, cache: CacheService):
        org_id = uuid4()
        await cache.set_cache("k", "v", organization_id=org_id)
        await cache.get_cache("k", organization_id=org_id)
        await cache.get_cache("k", organization_id=org_id)
        await cache.get_cache("missing", organization_id=org_id)
        await cache.get_cache("missing2", organization_id=org_id)

        metrics = await cache.get_performance_metrics(org_id)

        assert metrics["backend"] == "memory"
        assert metrics["hits"] == 2
        assert metrics["misses"] == 2
        assert metrics["hit_rate"] == 50.0
        assert metrics["entries"] == 1

    async def test_optimize_resources_purges_expired(self, cache: CacheService):
        await cache.set_cache("old", 1)
        await cache.set_cache("fresh", 2)
        cache.memory["old"].expires = 0

        result = await cache.optimize_resources()

        assert result["optimizations"]["cache"]["expired_keys_removed"] == 1
        assert list(cache.memory) == ["fresh"]


class TestQueryOptimization:
    """Test query analysis heuristics."""

    def test_select_star_is_rewritten(self):
        cache = CacheService()
        result = cache.optimize_query("SELECT * FROM deals WHERE status = 'OPEN'", execution_time=50)

        types = [s["type"] for s in result["suggestions"]]
        assert types == ["add_index", "select_specific_columns"]
        assert result["optimized_query"] == "SELECT id, name, status FROM deals WHERE status = 'OPEN'"
        assert result["applied_optimizations"] == types

    def test_slow_join_suggestions(self):
        suggestions = CacheService.analyze_query("SELECT a.id FROM a JOIN b ON a.id = b.a_id", 600)
        assert [s["type"] for s in suggestions] == ["batch_queries", "optimize_joins"]

    def test_well_optimized_query(self):
        cache = CacheService()
        result = cache.optimize_query("SELECT id FROM deals", execution_time=5)

        assert result["suggestions"] == []
        assert result["optimized_query"] == "SELECT id FROM deals"
        assert result["recommendation"] == "Query is already well optimized."

    @pytest.mark.asyncio
    async def test_recommendations_flag_low_hit_rate(self):
        cache = CacheService()
        org_id = uuid4()
        await cache.get_cache("missing", organization_id=org_id)

        recommendations = await cache.get_recommendations(org_id)

        assert "Improve cache hit rate by optimizing cache keys and TTL values" in recommendations

    @pytest.mark.asyncio
    async def test_same_query_is_tracked_per_organization(self):
        cache = CacheService()
        first, second = uuid4(), uuid4()
        query = "SELECT * FROM deals"

        cache.optimize_query(query, execution_time=10, organization_id=first)
        cache.optimize_query(query, execution_time=10, organization_id=first)
        cache.optimize_query(query, execution_time=30, organization_id=second)

        first_stats = await cache.get_optimization_analytics(first)
        second_stats = await cache.get_optimization_analytics(second)

        assert first_stats["query_optimizations"]["total"] == 1
        assert first_stats["query_optimizations"]["top"][0]["usage"] == 2
        assert first_stats["query_optimizations"]["top"][0]["execution_time"] == 10
        assert second_stats["query_optimizations"]["top"][0]["usage"] == 1
        assert second_stats["query_optimizations"]["top"][0]["organization_id"] == str(second)
