"""
Integration tests for performance, GraphQL, dashboard, audit log and health endpoints.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import Organization, PerformanceMetric
from bizsuite.models.base import utc_now
from bizsuite.services.cache import get_cache_service

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
class TestPerformance:
    """Test /api/v1/performance."""

    async def test_metric_raises_alert(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        response = await client.post(
            "/api/v1/performance/metrics", headers=admin_headers, json={"metric_type": "CPU_USAGE", "value": 95}
        )
        assert response.status_code == 201
        assert response.json()["cpu_usage"] == 95

        alerts = (await client.get("/api/v1/performance/alerts", headers=admin_headers)).json()["alerts"]
        assert len(alerts) == 1
        assert alerts[0]["severity"] == "CRITICAL"
        assert alerts[0]["threshold"] == 90

        response = await client.post(
            f"/api/v1/performance/alerts/{alerts[0]['id']}/acknowledge", headers=other_headers
        )
        assert response.status_code == 404

        response = await client.post(
            f"/api/v1/performance/alerts/{alerts[0]['id']}/acknowledge", headers=admin_headers
        )
        assert response.json() == {"id": alerts[0]["id"], "acknowledged": True}

        alerts = (await client.get("/api/v1/performance/alerts", headers=admin_headers)).json()["alerts"]
        assert alerts == []

    async def test_list_metrics_by_type(self, client: AsyncClient, admin_headers: dict):
        for metric_type, value in (("CPU_USAGE", 20), ("MEMORY_USAGE", 30), ("CPU_USAGE", 25)):
            await client.post(
                "/api/v1/performance/metrics", headers=admin_headers, json={"metric_type": metric_type, "value": value}
            )

        response = await client.get(
            "/api/v1/performance/metrics", headers=admin_headers, params={"metric_type": "CPU_USAGE"}
        )

        assert sorted(m["value"] for m in response.json()) == [20, 25]

    async def test_stats(self, client: AsyncClient, admin_headers: dict):
        await client.post(
            "/api/v1/performance/metrics", headers=admin_headers, json={"metric_type": "CPU_USAGE", "value": 40}
        )

        response = await client.get("/api/v1/performance/stats", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["average_cpu_usage"] == 40

    async def test_endpoint_threshold(self, client: AsyncClient, admin_headers: dict, member_headers: dict):
        threshold = {
            "metric_type": "API_RESPONSE_TIME",
            "warning": 200,
            "critical": 400,
            "endpoint": "/api/v1/reports/slow",
        }

        response = await client.put("/api/v1/performance/thresholds", headers=member_headers, json=threshold)
        assert response.status_code == 403

        response = await client.put("/api/v1/performance/thresholds", headers=admin_headers, json=threshold)
        assert response.status_code == 200

        await client.post(
            "/api/v1/performance/metrics",
            headers=admin_headers,
            json={"metric_type": "API_RESPONSE_TIME", "value": 250, "endpoint": "/api/v1/reports/slow"},
        )
        alerts = (await client.get("/api/v1/performance/alerts", headers=admin_headers)).json()["alerts"]
        assert [a["severity"] for a in alerts] == ["HIGH"]

    async def test_threshold_stays_in_tenant(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        response = await client.put(
            "/api/v1/performance/thresholds",
            headers=other_headers,
            json={"metric_type": "CPU_USAGE", "warning": 1, "critical": 2},
        )
        assert response.status_code == 200

        await client.post(
            "/api/v1/performance/metrics", headers=admin_headers, json={"metric_type": "CPU_USAGE", "value": 5}
        )
        alerts = (await client.get("/api/v1/performance/alerts", headers=admin_headers)).json()["alerts"]
        assert alerts == []

        def cpu_critical(thresholds: list) -> float:
            return next(t["critical"] for t in thresholds if t["metric_type"] == "CPU_USAGE" and not t["endpoint"])

        mine = (await client.get("/api/v1/performance/thresholds", headers=admin_headers)).json()["thresholds"]
        theirs = (await client.get("/api/v1/performance/thresholds", headers=other_headers)).json()["thresholds"]
        assert cpu_critical(mine) == 90
        assert cpu_critical(theirs) == 2

    async def test_cleanup_stays_in_tenant(
        self,
        client: AsyncClient,
        test_db: AsyncSession,
        admin_headers: dict,
        other_headers: dict,
        test_organization: Organization,
    ):
        test_db.add(
            PerformanceMetric(
                organization_id=test_organization.id,
                metric_type="CPU_USAGE",
                value=10,
                timestamp=utc_now() - timedelta(days=5),
            )
        )
        await test_db.commit()

        response = await client.delete("/api/v1/performance/metrics", headers=other_headers, params={"days": 1})
        assert response.json() == {"removed": 0}

        response = await client.get("/api/v1/performance/metrics", headers=admin_headers)
        assert len(response.json()) == 1

        response = await client.delete("/api/v1/performance/metrics", headers=admin_headers, params={"days": 1})
        assert response.json() == {"removed": 1}

    async def test_threshold_order(self, client: AsyncClient, admin_headers: dict):
        response = await client.put(
            "/api/v1/performance/thresholds",
            headers=admin_headers,
            json={"metric_type": "CPU_USAGE", "warning": 90, "critical": 50, "endpoint": "/x"},
        )
        assert response.status_code == 400

        response = await client.put(
            "/api/v1/performance/thresholds",
            headers=admin_headers,
            json={"metric_type": "THROUGHPUT", "warning": 5, "critical": 10, "endpoint": "/x"},
        )
        assert response.status_code == 400

    async def test_cache_invalidation(
        self, client: AsyncClient, admin_headers: dict, test_organization: Organization
    ):
        cache = get_cache_service()
        await cache.set_cache("crm:customers", [1, 2], organization_id=test_organization.id)
        await cache.set_cache("crm:deals", [3], organization_id=test_organization.id)

        response = await client.post("/api/v1/performance/cache/invalidate", headers=admin_headers, json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Either pattern or tags is required"

        response = await client.post(
            "/api/v1/performance/cache/invalidate", headers=admin_headers, json={"pattern": "crm:*"}
        )
        assert response.json() == {"invalidated": 2}
        assert await cache.get_cache("crm:deals", organization_id=test_organization.id) is None

    async def test_query_optimization(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/performance/optimization/query",
            headers=admin_headers,
            json={"query": "SELECT * FROM deals WHERE status = 'OPEN'", "execution_time": 50},
        )

        assert response.status_code == 200
        assert response.json()["optimized_query"] == "SELECT id, name, status FROM deals WHERE status = 'OPEN'"

        response = await client.get(
            "/api/v1/performance/optimization", headers=admin_headers, params={"action": "recommendations"}
        )
        assert isinstance(response.json()["recommendations"], list)


@pytest.mark.asyncio
class TestGraphQL:
    """Test /api/v1/graphql."""

    async def test_query_projects(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        await client.post("/api/v1/projects", headers=admin_headers, json={"name": "Mine"})
        await client.post("/api/v1/projects", headers=other_headers, json={"name": "Theirs"})

        response = await client.post(
            "/api/v1/graphql", headers=admin_headers, json={"query": "query { projects { id name } }"}
        )

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]["projects"]] == ["Mine"]

    async def test_too_complex(self, client: AsyncClient, admin_headers: dict):
        query = "query { " + " ".join(f"widgets{i} {{ id }}" for i in range(40)) + " }"

        response = await client.post("/api/v1/graphql", headers=admin_headers, json={"query": query})
        assert response.status_code == 400
        assert response.json()["error"] == "Query complexity exceeds limit"

        response = await client.get("/api/v1/graphql/analytics", headers=admin_headers)
        assert response.json()["total_queries"] == 1
        assert response.json()["error_rate"] == 100.0

    async def test_operation_name_alias(self, client: AsyncClient, admin_headers: dict):
        await client.post(
            "/api/v1/graphql",
            headers=admin_headers,
            json={"query": "{ users { email } }", "operationName": "TeamList"},
        )

        response = await client.get("/api/v1/graphql/analytics", headers=admin_headers)

        assert response.json()["top_queries"] == [{"name": "TeamList", "count": 1}]

    async def test_variables_are_part_of_the_cache_key(self, client: AsyncClient, admin_headers: dict):
        project = (await client.post("/api/v1/projects", headers=admin_headers, json={"name": "Live"})).json()
        await client.put(f"/api/v1/projects/{project['id']}", headers=admin_headers, json={"status": "ACTIVE"})
        query = "query ListProjects { projects { id name status } }"

        response = await client.post(
            "/api/v1/graphql", headers=admin_headers, json={"query": query, "variables": {"status": "ACTIVE"}}
        )
        assert [p["name"] for p in response.json()["data"]["projects"]] == ["Live"]

        response = await client.post(
            "/api/v1/graphql", headers=admin_headers, json={"query": query, "variables": {"status": "COMPLETED"}}
        )
        assert response.json()["data"]["projects"] == []

    async def test_malformed_variables(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/graphql", headers=admin_headers, json={"query": "{ tasks { id } }", "variables": {"limit": "ten"}}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Variable 'limit' must be an integer"

        response = await client.post(
            "/api/v1/graphql",
            headers=admin_headers,
            json={"query": "query ($p: ID) { tasks(projectId: $p) { id } }", "variables": {"projectId": "nope"}},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Variable 'projectId' must be a UUID"

    async def test_limit_is_bounded(self, client: AsyncClient, admin_headers: dict):
        for i in range(3):
            await client.post("/api/v1/projects", headers=admin_headers, json={"name": f"P{i}"})

        response = await client.post(
            "/api/v1/graphql", headers=admin_headers, json={"query": "{ projects { id } }", "variables": {"limit": -1}}
        )

        assert response.status_code == 200
        assert len(response.json()["data"]["projects"]) == 1


@pytest.mark.asyncio
class TestDashboard:
    async def test_stats(self, client: AsyncClient, admin_headers: dict, test_user_admin):
        await client.post("/api/v1/crm/customers", headers=admin_headers, json={"company_name": "Globex"})
        await client.post(
            "/api/v1/crm/leads", headers=admin_headers, json={"first_name": "Max", "last_name": "Muster"}
        )
        await client.post("/api/v1/crm/deals", headers=admin_headers, json={"name": "Deal", "amount": 1200})

        response = await client.get("/api/v1/dashboard/stats", headers=admin_headers)

        assert response.status_code == 200
        stats = response.json()
        assert stats["total_customers"] == 1
        assert stats["active_customers"] == 1
        assert stats["new_leads_this_month"] == 1
        assert stats["leads_by_status"] == [{"status": "NEW", "count": 1}]
        assert stats["open_deals"] == 1
        assert stats["pipeline_value"] == 1200
        assert stats["total_users"] == 1
        assert len(stats["recent_activities"]) == 3
        assert stats["recent_activities"][0]["user_email"] == test_user_admin.email

    async def test_stats_are_tenant_scoped(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        await client.post("/api/v1/crm/customers", headers=admin_headers, json={"company_name": "Globex"})

        response = await client.get("/api/v1/dashboard/stats", headers=other_headers)

        assert response.json()["total_customers"] == 0
        assert response.json()["recent_activities"] == []


@pytest.mark.asyncio
class TestAuditLogs:
    """Test /api/v1/security/audit-logs."""

    async def test_filter_by_action(self, client: AsyncClient, admin_headers: dict):
        await client.post("/api/v1/crm/customers", headers=admin_headers, json={"company_name": "Globex"})
        await client.post("/api/v1/projects", headers=admin_headers, json={"name": "Relaunch"})

        response = await client.get(
            "/api/v1/security/audit-logs", headers=admin_headers, params={"action": "CUSTOMER_CREATED"}
        )

        assert response.status_code == 200
        logs = response.json()["audit_logs"]
        assert [log["action"] for log in logs] == ["CUSTOMER_CREATED"]
        assert logs[0]["event_type"] == "customer_created"
        assert logs[0]["context_data"]["company_name"] == "Globex"

    async def test_member_cannot_read(self, client: AsyncClient, member_headers: dict):
        response = await client.get("/api/v1/security/audit-logs", headers=member_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: security:read required"

    async def test_other_tenant_logs_hidden(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        await client.post("/api/v1/crm/customers", headers=admin_headers, json={"company_name": "Globex"})

        response = await client.get("/api/v1/security/audit-logs", headers=other_headers)

        assert response.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
class TestHealth:
    async def test_health_report(self, client: AsyncClient):
        response = await client.get("/api/health")

        # Disk or memory pressure on the test host may turn the report unhealthy
        assert response.status_code in (200, 503)
        data = response.json()
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["redis"]["status"] == "degraded"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/health"
