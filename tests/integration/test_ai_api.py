"""
Integration tests for AI endpoints: insights, predictions, decisions,
voice commands and GDPR compliance.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import VoiceCommand

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
class TestInsights:
    """Test /api/v1/ai/insights."""

    async def test_anomaly_insight(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/insights",
            headers=admin_headers,
            json={"type": "ANOMALY_DETECTION", "category": "FINANCE", "data": {"values": [10, 11, 9, 10, 10, 11, 9, 10, 10, 60]}},
        )

        assert response.status_code == 201
        insight = response.json()
        assert insight["title"] == "1 anomalies detected"
        assert insight["impact"] == "MEDIUM"
        assert insight["confidence"] == 0.85
        assert insight["is_read"] is False
        assert insight["data"]["result"]["anomalies"][0]["index"] == 9

    async def test_mark_read(self, client: AsyncClient, admin_headers: dict):
        insight = (
            await client.post(
                "/api/v1/ai/insights",
                headers=admin_headers,
                json={"type": "RISK_ASSESSMENT", "data": {"factors": {"churn": 0.9}}},
            )
        ).json()

        response = await client.patch(
            f"/api/v1/ai/insights/{insight['id']}",
            headers=admin_headers,
            json={"is_read": True, "action_taken": "Called the customer"},
        )
        assert response.json()["is_read"] is True

        response = await client.get("/api/v1/ai/insights", headers=admin_headers, params={"is_read": "false"})
        assert response.json()["pagination"]["total"] == 0

    async def test_member_cannot_create_insight(self, client: AsyncClient, member_headers: dict):
        response = await client.post("/api/v1/ai/insights", headers=member_headers, json={"type": "RISK_ASSESSMENT"})

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: ai:create required"

        response = await client.get("/api/v1/ai/insights", headers=member_headers)
        assert response.status_code == 200

    async def test_unknown_type(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/ai/insights", headers=admin_headers, json={"type": "MAGIC"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid analysis type: MAGIC"

    async def test_malformed_values(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/insights",
            headers=admin_headers,
            json={"type": "PREDICTIVE_ANALYSIS", "data": {"values": ["a", "b"]}},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "'values' must be a list of numbers"

    async def test_insight_of_other_tenant(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        insight = (
            await client.post("/api/v1/ai/insights", headers=admin_headers, json={"type": "RISK_ASSESSMENT"})
        ).json()

        response = await client.patch(
            f"/api/v1/ai/insights/{insight['id']}", headers=other_headers, json={"is_read": True}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Insight not found"


@pytest.mark.asyncio
class TestPredictions:
    async def test_forecast_from_history(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/predictions",
            headers=admin_headers,
            json={"prediction_type": "REVENUE", "history": [1, 3, 5, 7]},
        )

        assert response.status_code == 201
        prediction = response.json()
        assert prediction["predicted_value"] == 9
        assert prediction["confidence"] == 1
        assert prediction["status"] == "ACTIVE"

        response = await client.post(
            f"/api/v1/ai/predictions/{prediction['id']}/actual", headers=admin_headers, json={"actual_value": 8}
        )

        assert response.json()["status"] == "COMPLETED"
        assert response.json()["accuracy"] == pytest.approx(0.8889)

    async def test_explicit_value_defaults_confidence(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/predictions",
            headers=admin_headers,
            json={"prediction_type": "CHURN", "predicted_value": 0.2},
        )

        assert response.json()["confidence"] == 0.5

    async def test_value_or_history_required(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/predictions", headers=admin_headers, json={"prediction_type": "CHURN"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Either predicted_value or history is required"


@pytest.mark.asyncio
class TestDecisions:
    """Test autonomous decisions and feedback."""

    async def test_make_decision(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/decisions", headers=admin_headers, json={"type": "RESOURCE_ALLOCATION"}
        )

        assert response.status_code == 201
        result = response.json()
        assert result["selected_option"]["id"] == "balanced_allocation"
        assert result["confidence"] == pytest.approx(0.83)
        assert len(result["alternatives"]) == 2

        response = await client.get("/api/v1/ai/decisions", headers=admin_headers)
        assert response.json()["decisions"][0]["id"] == result["decision_id"]

    async def test_feedback(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        result = (
            await client.post("/api/v1/ai/decisions", headers=admin_headers, json={"type": "TASK_PRIORITY"})
        ).json()
        url = f"/api/v1/ai/decisions/{result['decision_id']}/feedback"

        response = await client.post(url, headers=admin_headers, json={"feedback": 2})
        assert response.status_code == 400

        response = await client.post(url, headers=other_headers, json={"feedback": 0.5})
        assert response.status_code == 404
        assert response.json()["error"] == "Decision not found"

        response = await client.post(url, headers=admin_headers, json={"feedback": 0.5, "outcome": {"saved_hours": 12}})
        assert response.status_code == 200
        assert response.json()["status"] == "EVALUATED"
        assert response.json()["actual_outcome"] == {"saved_hours": 12}

    async def test_analytics(self, client: AsyncClient, admin_headers: dict):
        await client.post("/api/v1/ai/decisions", headers=admin_headers, json={"type": "RISK_MITIGATION"})

        response = await client.get("/api/v1/ai/decisions/analytics", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["total_decisions"] == 1
        assert response.json()["decisions_by_type"] == {"RISK_MITIGATION": 1}

    async def test_unknown_decision_type(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/ai/decisions", headers=admin_headers, json={"type": "HIRING"})

        assert response.status_code == 400

    async def test_malformed_constraints(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/decisions",
            headers=admin_headers,
            json={"type": "RESOURCE_ALLOCATION", "constraints": {"budget_limit": "high"}},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    async def test_constraints_are_stored(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/decisions",
            headers=admin_headers,
            json={"type": "TASK_PRIORITY", "constraints": {"budget_limit": 0.5, "time_constraint": True}},
        )

        assert response.status_code == 201
        decisions = (await client.get("/api/v1/ai/decisions", headers=admin_headers)).json()["decisions"]
        assert decisions[0]["context"]["constraints"] == {"budget_limit": 0.5, "time_constraint": True}

    async def test_member_cannot_decide(self, client: AsyncClient, member_headers: dict):
        response = await client.post(
            "/api/v1/ai/decisions", headers=member_headers, json={"type": "RESOURCE_ALLOCATION"}
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: ai:create required"


@pytest.mark.asyncio
class TestVoiceCommands:
    """Test /api/v1/ai/voice-commands."""

    async def test_navigation_command(self, client: AsyncClient, test_db: AsyncSession, member_headers: dict):
        response = await client.post(
            "/api/v1/ai/voice-commands",
            headers=member_headers,
            json={"command": "Go to Dashboard", "confidence": 0.95},
        )

        assert response.status_code == 200
        result = response.json()
        assert result["intent"] == "NAVIGATE"
        assert result["action"] == {"action": "navigate", "url": "/dashboard"}

        stored = (await test_db.execute(select(VoiceCommand))).scalar_one()
        assert stored.transcript == "Go to Dashboard"

    async def test_unknown_command_is_recorded(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/ai/voice-commands", headers=admin_headers, json={"command": "xyzzy plugh"}
        )
        assert response.json()["intent"] == "UNKNOWN"
        assert response.json()["action"] is None

        response = await client.get("/api/v1/ai/voice-commands", headers=admin_headers)
        assert response.json()["total_commands"] == 1
        assert response.json()["most_used_intents"] == {"UNKNOWN": 1}

    async def test_mixed_case_custom_phrase(self, client: AsyncClient, admin_headers: dict):
        command = {"phrase": "Open Books", "intent": "NAVIGATE", "action": "navigate_to_finance", "confidence": 0.9}

        response = await client.post("/api/v1/ai/voice-commands/custom", headers=admin_headers, json=command)
        assert response.json()["phrase"] == "open books"

        response = await client.post(
            "/api/v1/ai/voice-commands", headers=admin_headers, json={"command": "Open Books", "confidence": 0.95}
        )
        assert response.json()["intent"] == "NAVIGATE"
        assert response.json()["action"] == {"action": "navigate", "url": "/finance"}

    async def test_custom_commands(self, client: AsyncClient, admin_headers: dict, member_headers: dict):
        command = {
            "phrase": "open the warehouse",
            "intent": "NAVIGATE",
            "action": "navigate_to_dashboard",
            "confidence": 0.9,
        }

        response = await client.post("/api/v1/ai/voice-commands/custom", headers=member_headers, json=command)
        assert response.status_code == 403

        response = await client.post("/api/v1/ai/voice-commands/custom", headers=admin_headers, json=command)
        assert response.status_code == 201

        response = await client.get(
            "/api/v1/ai/voice-commands", headers=admin_headers, params={"action": "commands"}
        )
        assert "open the warehouse" in response.json()["commands"]

        response = await client.delete(
            "/api/v1/ai/voice-commands/custom", headers=admin_headers, params={"phrase": "open the warehouse"}
        )
        assert response.status_code == 204

        response = await client.delete(
            "/api/v1/ai/voice-commands/custom", headers=admin_headers, params={"phrase": "open the warehouse"}
        )
        assert response.status_code == 404


@pytest.mark.asyncio
class TestCompliance:
    """Test the GDPR endpoints."""

    async def test_consent_workflow(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/ai/compliance/checks", headers=admin_headers)
        assert response.json()["overall"] == "non_compliant"
        assert response.json()["critical_issues"] == 1

        response = await client.post(
            "/api/v1/ai/compliance/consents",
            headers=admin_headers,
            json={
                "data_subject_id": "customer-17",
                "email": "jane@example.com",
                "purposes": ["marketing-communications"],
            },
        )
        assert response.status_code == 201
        consent = response.json()
        assert consent["consent_given"] is True

        response = await client.post("/api/v1/ai/compliance/checks", headers=admin_headers)
        assert response.json()["overall"] == "compliant"

        response = await client.delete(f"/api/v1/ai/compliance/consents/{consent['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(
            "/api/v1/ai/compliance", headers=admin_headers, params={"action": "metrics"}
        )
        assert response.json()["total_consents"] == 1
        assert response.json()["withdrawn_consents"] == 1

    async def test_report(self, client: AsyncClient, admin_headers: dict):
        await client.post(
            "/api/v1/ai/compliance/consents",
            headers=admin_headers,
            json={"data_subject_id": "s-1", "email": "a@example.com", "purposes": ["crm-customer-data"]},
        )

        response = await client.get("/api/v1/ai/compliance", headers=admin_headers, params={"action": "report"})

        assert response.json()["consent_overview"]["by_purpose"] == {"crm-customer-data": 1}

    async def test_withdraw_unknown_consent(self, client: AsyncClient, admin_headers: dict):
        response = await client.delete("/api/v1/ai/compliance/consents/consent_missing", headers=admin_headers)

        assert response.status_code == 404

    async def test_consents_are_tenant_scoped(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        consent = (
            await client.post(
                "/api/v1/ai/compliance/consents",
                headers=admin_headers,
                json={"data_subject_id": "s-1", "email": "a@example.com", "purposes": ["marketing-communications"]},
            )
        ).json()

        response = await client.delete(f"/api/v1/ai/compliance/consents/{consent['id']}", headers=other_headers)

        assert response.status_code == 404
