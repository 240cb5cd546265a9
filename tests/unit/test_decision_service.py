"""
Unit tests for autonomous decision scoring.
"""

from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import AutonomousDecision, Organization
from bizsuite.services.decisions import (
    HISTORY_LIMIT,
    AutonomousDecisionService,
    DecisionContext,
    DecisionType,
)

pytestmark = pytest.mark.unit


class TestScoring:
    """Test weights and option scores."""

    def test_default_weights(self):
        weights = AutonomousDecisionService.get_evaluation_weights(
            DecisionContext(type=DecisionType.TASK_PRIORITY)
        )
        assert weights == {"impact": 0.3, "cost": 0.2, "risk": 0.2, "feasibility": 0.2, "benefits": 0.1}

    def test_constraints_shift_weights(self):
        weights = AutonomousDecisionService.get_evaluation_weights(
            DecisionContext(
                type=DecisionType.TASK_PRIORITY,
                constraints={"budget_limit": 0.5, "time_constraint": True},
            )
        )
        assert weights["cost"] == 0.4
        assert weights["impact"] == 0.2
        assert weights["feasibility"] == 0.4
        assert weights["risk"] == 0.1

    def test_resource_allocation_ranking(self):
        service = AutonomousDecisionService()
        context = DecisionContext(type=DecisionType.RESOURCE_ALLOCATION)

        ranked = service.evaluate_options(
            service.generate_options(context.type), context, uuid4()
        )

        assert [o.id for o in ranked] == ["balanced_allocation", "priority_based", "dynamic_optimization"]
        assert ranked[0].score == pytest.approx(0.665)
        assert ranked[1].score == pytest.approx(0.595)
        assert ranked[2].score == pytest.approx(0.57)

    def test_objectives_raise_context_fit(self):
        service = AutonomousDecisionService()
        context = DecisionContext(type=DecisionType.RESOURCE_ALLOCATION, objectives=["priority"])

        ranked = service.evaluate_options(service.generate_options(context.type), context, uuid4())
        fits = {o.id: o.context_fit for o in ranked}

        assert fits["priority_based"] == pytest.approx(0.8)
        assert fits["balanced_allocation"] == pytest.approx(0.5)

    def test_malformed_constraints_rejected(self):
        with pytest.raises(ValidationError):
            DecisionContext(type=DecisionType.RESOURCE_ALLOCATION, constraints={"budget_limit": "high"})

    def test_budget_limit_lowers_context_fit(self):
        service = AutonomousDecisionService()
        context = DecisionContext(type=DecisionType.RESOURCE_ALLOCATION, constraints={"budget_limit": 0.55})

        ranked = service.evaluate_options(service.generate_options(context.type), context, uuid4())
        fits = {o.id: o.context_fit for o in ranked}

        assert fits["balanced_allocation"] == pytest.approx(0.7)
        assert fits["priority_based"] == pytest.approx(0.6)

    def test_confidence_gap_measured_against_runner_up(self):
        service = AutonomousDecisionService()
        ranked = service.generate_options(DecisionType.RESOURCE_ALLOCATION)
        ranked[0].score, ranked[1].score, ranked[2].score = 0.7, 0.6, 0.5

        # A learning bonus promoted the runner-up, so there is no gap to reward
        confidence = service.calculate_confidence(ranked[1], ranked)

        assert confidence == pytest.approx(0.6 + ranked[1].feasibility * 0.1)

    def test_improvement_trend(self):
        trend = AutonomousDecisionService.calculate_improvement_trend
        assert trend([0.7] * 5) == "insufficient_data"
        assert trend([0.6] * 5 + [0.8] * 5) == "improving"
        assert trend([0.8] * 5 + [0.6] * 5) == "declining"
        assert trend([0.7] * 10) == "stable"


@pytest.mark.asyncio
class TestDecisions:
    """Test persisted decisions and the feedback loop."""

    async def test_make_decision_persists(self, test_db: AsyncSession, test_organization: Organization):
        service = AutonomousDecisionService()
        result = await service.make_decision(
            test_db, DecisionContext(type=DecisionType.RESOURCE_ALLOCATION), test_organization.id
        )

        assert result.selected_option.id == "balanced_allocation"
        # 0.6 + gap (0.07 * 2) + feasibility (0.9 * 0.1)
        assert result.confidence == pytest.approx(0.83)
        assert len(result.alternatives) == 2
        assert result.reasoning.startswith('Selected "Distribute resources evenly')
        assert "Resource utilization rate" in result.expected_outcome["metrics"]

        decision = await test_db.get(AutonomousDecision, result.decision_id)
        assert decision.selected_option["id"] == "balanced_allocation"
        assert decision.status == "EXECUTED"

    async def test_positive_feedback_lowers_risk_and_boosts_option(
        self, test_db: AsyncSession, test_organization: Organization
    ):
        service = AutonomousDecisionService()
        context = DecisionContext(type=DecisionType.RESOURCE_ALLOCATION)
        result = await service.make_decision(test_db, context, test_organization.id)

        decision = await service.provide_feedback(test_db, result.decision_id, test_organization.id, 1.0)
        assert decision.status == "EVALUATED"

        second = await service.make_decision(test_db, context, test_organization.id)
        assert second.selected_option.adjusted_risk == pytest.approx(0.15)
        assert second.selected_option.adjusted_score == pytest.approx(0.665 * 1.1)

    async def test_feedback_is_scoped_to_organization(
        self,
        test_db: AsyncSession,
        test_organization: Organization,
        other_organization: Organization,
    ):
        service = AutonomousDecisionService()
        result = await service.make_decision(
            test_db, DecisionContext(type=DecisionType.RISK_MITIGATION), test_organization.id
        )

        with pytest.raises(LookupError):
            await service.provide_feedback(test_db, result.decision_id, other_organization.id, 0.5)

    async def test_feedback_out_of_range(self, test_db: AsyncSession, test_organization: Organization):
        service = AutonomousDecisionService()
        with pytest.raises(ValueError):
            await service.provide_feedback(test_db, uuid4(), test_organization.id, 2.0)

    async def test_history_is_capped(self, test_db: AsyncSession, test_organization: Organization):
        service = AutonomousDecisionService()
        context = DecisionContext(type=DecisionType.TASK_PRIORITY)
        result = await service.make_decision(test_db, context, test_organization.id)

        for _ in range(HISTORY_LIMIT + 20):
            await service.provide_feedback(test_db, result.decision_id, test_organization.id, -0.5)

        assert len(service._history[(test_organization.id, "TASK_PRIORITY")]) == HISTORY_LIMIT

    async def test_analytics(self, test_db: AsyncSession, test_organization: Organization):
        service = AutonomousDecisionService()
        first = await service.make_decision(
            test_db, DecisionContext(type=DecisionType.SYSTEM_OPTIMIZATION), test_organization.id
        )
        await service.make_decision(
            test_db, DecisionContext(type=DecisionType.TASK_PRIORITY), test_organization.id
        )
        await service.provide_feedback(test_db, first.decision_id, test_organization.id, 0.8)
        await test_db.commit()

        analytics = await service.get_decision_analytics(test_db, test_organization.id)

        assert analytics["total_decisions"] == 2
        assert analytics["decisions_by_type"] == {"SYSTEM_OPTIMIZATION": 1, "TASK_PRIORITY": 1}
        assert analytics["success_rate"] == 1.0
        assert analytics["trend_analysis"]["improvement_trend"] == "insufficient_data"
