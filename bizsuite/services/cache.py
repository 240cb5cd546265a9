"""
Response cache with tag invalidation and query optimization hints.

Entries go to Redis when a connection is available and to an in-process
map otherwise. Keys are namespaced by organization.
"""

import base64
import fnmatch
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from redis.asyncio import RedisError

from bizsuite.config.settings import get_settings
from bizsuite.infrastructure.redis import RedisClient
from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)

# Heuristic limits
SLOW_QUERY_MS = 100
SLOW_JOIN_MS = 500
LOW_HIT_RATE = 70
HIGH_MEMORY_BYTES = 80 * 1024 * 1024


@dataclass
class CacheEntry:
    value: str
    expires: float
    tags: List[str] = field(default_factory=list)
    priority: str = "MEDIUM"


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0


class CacheService:
    """Tenant namespaced cache over Redis with an in-memory fallback."""

    def __init__(self, redis_client: Optional[RedisClient] = None):
        self.redis_client = redis_client
        self.memory: Dict[str, CacheEntry] = {}
        self.stats: Dict[str, CacheStats] = {}
        self.optimizations: Dict[Tuple[Optional[UUID], str], Dict[str, Any]] = {}

    def attach_redis(self, redis_client: Optional[RedisClient]) -> None:
        self.redis_client = redis_client

    @property
    def redis(self):
        if self.redis_client and self.redis_client.is_connected:
            return self.redis_client.get_client()
        return None

    @staticmethod
    def full_key(key: str, organization_id: Optional[UUID] = None) -> str:
        return f"{organization_id}:{key}" if organization_id else key

    def _stats(self, organization_id: Optional[UUID]) -> CacheStats:
        return self.stats.setdefault(str(organization_id), CacheStats())

    # Entries

    async def set_cache(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        tags: Optional[List[str]] = None,
        priority: str = "MEDIUM",
        organization_id: Optional[UUID] = None,
    ) -> bool:
        ttl = ttl or get_settings().cache_default_ttl
        tags = tags or []
        full_key = self.full_key(key, organization_id)
        serialized = json.dumps(value, default=str)

        redis = self.redis
        if redis is not None:
            try:
                await redis.setex(full_key, ttl, serialized)
                for tag in tags:
                    await redis.sadd(f"tag:{tag}", full_key)
                return True
            except RedisError as e:
                logger.error(f"Cache set failed for {full_key}: {e}")
                return False

        self.memory[full_key] = CacheEntry(serialized, time.time() + ttl, list(tags), priority)
        return True

    async def get_cache(self, key: str, organization_id: Optional[UUID] = None) -> Optional[Any]:
        full_key = self.full_key(key, organization_id)
        stats = self._stats(organization_id)

        redis = self.redis
        if redis is not None:
            try:
                raw = await redis.get(full_key)
            except RedisError as e:
                logger.error(f"Cache get failed for {full_key}: {e}")
                raw = None
        else:
            raw = None
            entry = self.memory.get(full_key)
            if entry is not None:
                if entry.expires > time.time():
                    raw = entry.value
                else:
                    del self.memory[full_key]

        if raw is None:
            stats.misses += 1
            return None

        stats.hits += 1
        return json.loads(raw)

    async def invalidate_cache(self, pattern: str, organization_id: Optional[UUID] = None) -> int:
        """Delete keys matching a glob pattern; returns the number removed."""
        full_pattern = self.full_key(pattern, organization_id)

        redis = self.redis
        if redis is not None:
            keys = [key async for key in redis.scan_iter(match=full_pattern)]
            if keys:
                await redis.delete(*keys)
            return len(keys)

        keys = [key for key in self.memory if fnmatch.fnmatchcase(key, full_pattern)]
        for key in keys:
            del self.memory[key]
        return len(keys)

    async def invalidate_cache_by_tags(self, tags: List[str], organization_id: Optional[UUID] = None) -> int:
        prefix = f"{organization_id}:" if organization_id else ""

        redis = self.redis
        if redis is not None:
            removed = 0
            for tag in tags:
                tag_key = f"tag:{tag}"
                members = [key for key in await redis.smembers(tag_key) if key.startswith(prefix)]
                if members:
                    removed += await redis.delete(*members)
                    await redis.srem(tag_key, *members)
            return removed

        keys = [
            key
            for key, entry in self.memory.items()
            if key.startswith(prefix) and any(tag in tags for tag in entry.tags)
        ]
        for key in keys:
            del self.memory[key]
        return len(keys)

    # Query optimization

    @staticmethod
    def hash_query(query: str, params: Optional[List[Any]] = None) -> str:
        content = query + json.dumps(params or [], default=str)
        return base64.b64encode(content.encode()).decode()[:32]

    @staticmethod
    def analyze_query(query: str, execution_time: float) -> List[Dict[str, str]]:
        suggestions = []
        if "WHERE" in query and "INDEX" not in query:
            suggestions.append(
                {"type": "add_index", "description": "Consider adding index for WHERE clause", "impact": "high"}
            )
        if "SELECT" in query and execution_time > SLOW_QUERY_MS:
            suggestions.append(
                {"type": "batch_queries", "description": "Consider batching related queries", "impact": "medium"}
            )
        if "JOIN" in query and execution_time > SLOW_JOIN_MS:
            suggestions.append(
                {"type": "optimize_joins", "description": "Consider optimizing JOIN operations", "impact": "high"}
            )
        if "SELECT *" in query:
            suggestions.append(
                {"type": "select_specific_columns", "description": "Select only required columns", "impact": "low"}
            )
        return suggestions

    @staticmethod
    def rewrite_query(query: str, suggestions: List[Dict[str, str]]) -> str:
        if any(s["type"] == "select_specific_columns" for s in suggestions):
            return query.replace("SELECT *", "SELECT id, name, status")
        return query

    @staticmethod
    def recommendation_for(suggestions: List[Dict[str, str]]) -> str:
        if suggestions:
            return "Consider applying: " + ", ".join(s["description"] for s in suggestions)
        return "Query is already well optimized."

    def optimize_query(
        self,
        query: str,
        params: Optional[List[Any]] = None,
        execution_time: float = 0.0,
        organization_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """Record heuristic suggestions for a query and return the rewrite."""
        query_hash = self.hash_query(query, params)
        suggestions = self.analyze_query(query, execution_time)
        optimized_query = self.rewrite_query(query, suggestions)

        record = self.optimizations.get((organization_id, query_hash))
        if record is None:
            record = {
                "query_hash": query_hash,
                "organization_id": str(organization_id) if organization_id else None,
                "original_query": query,
                "optimized_query": optimized_query if optimized_query != query else None,
                "usage": 0,
            }
            self.optimizations[(organization_id, query_hash)] = record

        record.update(
            {
                "execution_time": execution_time,
                "suggestions": suggestions,
                "is_active": optimized_query != query,
                "usage": record["usage"] + 1,
            }
        )

        return {
            "query_hash": query_hash,
            "original_query": query,
            "optimized_query": optimized_query,
            "execution_time": execution_time,
            "applied_optimizations": [s["type"] for s in suggestions] if optimized_query != query else [],
            "suggestions": suggestions,
            "recommendation": self.recommendation_for(suggestions),
        }

    # Reporting

    async def memory_usage(self) -> int:
        redis = self.redis
        if redis is not None:
            try:
                info = await redis.info("memory")
                return int(info.get("used_memory", 0))
            except RedisError as e:
                logger.error(f"Failed to read Redis memory info: {e}")
                return 0
        return sum(len(key) + len(entry.value) for key, entry in self.memory.items())

    async def get_performance_metrics(self, organization_id: Optional[UUID] = None) -> Dict[str, Any]:
        stats = self._stats(organization_id)
        prefix = f"{organization_id}:" if organization_id else ""
        return {
            "backend": "redis" if self.redis is not None else "memory",
            "entries": sum(1 for key in self.memory if key.startswith(prefix)),
            "hits": stats.hits,
            "misses": stats.misses,
            "hit_rate": stats.hit_rate,
            "memory_usage": await self.memory_usage(),
        }

    def _organization_optimizations(self, organization_id: Optional[UUID]) -> List[Dict[str, Any]]:
        return [
            record
            for (owner, _), record in self.optimizations.items()
            if organization_id is None or owner == organization_id
        ]

    async def get_recommendations(self, organization_id: Optional[UUID] = None) -> List[str]:
        metrics = await self.get_performance_metrics(organization_id)
        optimizations = self._organization_optimizations(organization_id)
        recommendations = []

        if metrics["hit_rate"] < LOW_HIT_RATE:
            recommendations.append("Improve cache hit rate by optimizing cache keys and TTL values")

        active = sum(1 for record in optimizations if record["is_active"])
        if optimizations and active < len(optimizations) * 0.5:
            recommendations.append("Review and activate more query optimizations")

        if metrics["memory_usage"] > HIGH_MEMORY_BYTES:
            recommendations.append("Consider increasing cache memory or implementing better eviction policies")

        if not recommendations:
            recommendations.append("Performance is well optimized. Continue monitoring.")

        return recommendations

    async def get_optimization_analytics(self, organization_id: Optional[UUID] = None) -> Dict[str, Any]:
        optimizations = self._organization_optimizations(organization_id)
        return {
            "query_optimizations": {
                "total": len(optimizations),
                "active": sum(1 for record in optimizations if record["is_active"]),
                "top": sorted(optimizations, key=lambda r: r["execution_time"], reverse=True)[:10],
            },
            "cache_performance": await self.get_performance_metrics(organization_id),
            "recommendations": await self.get_recommendations(organization_id),
        }

    def purge_expired(self) -> int:
        now = time.time()
        expired = [key for key, entry in self.memory.items() if entry.expires <= now]
        for key in expired:
            del self.memory[key]
        return len(expired)

    async def optimize_resources(self) -> Dict[str, Any]:
        """Purge expired in-memory entries. Redis expires its own keys."""
        removed = self.purge_expired()
        logger.info(f"Cache optimization removed {removed} expired entries")
        return {
            "status": "completed",
            "optimizations": {"cache": {"expired_keys_removed": removed}},
            "timestamp": utc_now().isoformat(),
        }


_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get the process-wide cache service."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
