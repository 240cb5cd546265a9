"""Autonomous decision scoring.

Generates a fixed set of options per decision type, scores them with a
weighted multi-criteria formula, applies a learning adjustment from
feedback history and persists the chosen option.

Key Components:
- DecisionType: supported decision categories
- DecisionOption: one candidate with its evaluation results
- AutonomousDecisionService: process-local scorer with feedback history
"""

import logging
from collections import defaultdict, deque
from datetime import timedelta
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple, Union
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import AutonomousDecision
from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


class DecisionType(str, Enum):
    RESOURCE_ALLOCATION = "RESOURCE_ALLOCATION"
    TASK_PRIORITY = "TASK_PRIORITY"
    SYSTEM_OPTIMIZATION = "SYSTEM_OPTIMIZATION"
    RISK_MITIGATION = "RISK_MITIGATION"


class DecisionOption(BaseModel):
    """A candidate option; the evaluation fields are filled in by the scorer."""

    id: str
    description: str
    impact: Dict[str, float]
    cost: float
    risk: float
    benefits: List[str]
    drawbacks: List[str]
    feasibility: float

    score: float = 0.0
    adjusted_score: float = 0.0
    adjusted_risk: float = 0.0
    context_fit: float = 0.0


class DecisionConstraints(BaseModel):
    """Limits an option is checked against; cost and risk are on the 0-1 option scale."""

    budget_limit: Optional[float] = Field(None, ge=0)
    risk_tolerance: Optional[float] = Field(None, ge=0, le=1)
    # A flag or a deadline; any value marks the decision as time constrained
    time_constraint: Optional[Union[bool, str]] = None


class DecisionContext(BaseModel):
    """Input for a decision."""

    type: DecisionType
    data: Dict[str, Any] = Field(default_factory=dict)
    constraints: Optional[DecisionConstraints] = None
    objectives: Optional[List[str]] = None
    stakeholders: Optional[List[str]] = None


class DecisionResult(BaseModel):
    decision_id: UUID
    selected_option: DecisionOption
    confidence: float
    reasoning: str
    alternatives: List[DecisionOption]
    expected_outcome: Dict[str, Any]
    risk_assessment: Dict[str, Any]


def _option(id, description, impact, cost, risk, benefits, drawbacks, feasibility) -> DecisionOption:
    return DecisionOption(
        id=id,
        description=description,
        impact=impact,
        cost=cost,
        risk=risk,
        benefits=benefits,
        drawbacks=drawbacks,
        feasibility=feasibility,
    )


def _resource_allocation_options() -> List[DecisionOption]:
    return [
        _option(
            "balanced_allocation", "Distribute resources evenly across all demands",
            {"efficiency": 0.7, "satisfaction": 0.8}, 0.5, 0.3,
            ["Fair distribution", "Reduced conflicts"],
            ["May not optimize individual performance"], 0.9,
        ),
        _option(
            "priority_based", "Allocate resources based on priority ranking",
            {"efficiency": 0.9, "satisfaction": 0.6}, 0.6, 0.4,
            ["High-priority items get adequate resources"],
            ["Lower priority items may suffer"], 0.8,
        ),
        _option(
            "dynamic_optimization", "Continuously optimize allocation based on real-time metrics",
            {"efficiency": 0.95, "satisfaction": 0.85}, 0.8, 0.5,
            ["Optimal efficiency", "Adaptive to changes"],
            ["Higher complexity", "More overhead"], 0.7,
        ),
    ]


def _task_priority_options() -> List[DecisionOption]:
    return [
        _option(
            "deadline_first", "Prioritize tasks by deadline urgency",
            {"on_time_delivery": 0.9, "quality": 0.7}, 0.4, 0.3,
            ["Meets deadlines", "Clear prioritization"],
            ["May sacrifice quality"], 0.9,
        ),
        _option(
            "value_optimization", "Prioritize tasks by business value and impact",
            {"business_value": 0.95, "on_time_delivery": 0.7}, 0.6, 0.4,
            ["Maximizes business value", "Strategic alignment"],
            ["May miss some deadlines"], 0.8,
        ),
        _option(
            "balanced_scoring", "Use weighted scoring combining multiple factors",
            {"overall": 0.85}, 0.5, 0.3,
            ["Balanced approach", "Considers multiple factors"],
            ["Complex to manage"], 0.8,
        ),
    ]


def _system_optimization_options() -> List[DecisionOption]:
    return [
        _option(
            "performance_focus", "Optimize for maximum system performance",
            {"performance": 0.95, "cost": 0.3}, 0.8, 0.4,
            ["High performance", "User satisfaction"],
            ["Higher resource usage"], 0.7,
        ),
        _option(
            "cost_efficiency", "Optimize for cost reduction while maintaining quality",
            {"cost": 0.9, "performance": 0.7}, 0.3, 0.3,
            ["Lower operational costs", "Sustainable"],
            ["May limit performance"], 0.9,
        ),
        _option(
            "adaptive_optimization", "Continuously adapt optimization based on usage patterns",
            {"adaptability": 0.95, "efficiency": 0.9}, 0.7, 0.5,
            ["Learns and improves", "Self-optimizing"],
            ["Complex implementation"], 0.6,
        ),
    ]


def _risk_mitigation_options() -> List[DecisionOption]:
    return [
        _option(
            "preventive_measures", "Implement preventive measures to avoid risks",
            {"risk_reduction": 0.9, "operational_impact": 0.4}, 0.7, 0.2,
            ["Prevents issues", "Proactive approach"],
            ["Higher upfront cost"], 0.8,
        ),
        _option(
            "contingency_planning", "Develop robust contingency plans",
            {"preparedness": 0.85, "response_time": 0.9}, 0.5, 0.3,
            ["Quick response", "Planned recovery"],
            ["Reactive approach"], 0.9,
        ),
        _option(
            "risk_transfer", "Transfer risks through insurance or partnerships",
            {"risk_exposure": 0.8, "flexibility": 0.6}, 0.6, 0.4,
            ["Reduced exposure", "Shared responsibility"],
            ["Ongoing costs", "Less control"], 0.7,
        ),
    ]


OPTION_GENERATORS = {
    DecisionType.RESOURCE_ALLOCATION: _resource_allocation_options,
    DecisionType.TASK_PRIORITY: _task_priority_options,
    DecisionType.SYSTEM_OPTIMIZATION: _system_optimization_options,
    DecisionType.RISK_MITIGATION: _risk_mitigation_options,
}


class AutonomousDecisionService:
    """Multi-criteria decision scorer.

    Feedback history is kept per (organization, decision type) in process
    memory and is lost on restart; persisted decisions are not replayed.
    """

    def __init__(self):
        self._history: Dict[Tuple[UUID, str], Deque[Dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=HISTORY_LIMIT)
        )

    # Option generation and scoring

    def generate_options(self, decision_type: DecisionType) -> List[DecisionOption]:
        return OPTION_GENERATORS[decision_type]()

    @staticmethod
    def get_evaluation_weights(context: DecisionContext) -> Dict[str, float]:
        weights = {"impact": 0.3, "cost": 0.2, "risk": 0.2, "feasibility": 0.2, "benefits": 0.1}
        constraints = context.constraints or DecisionConstraints()

        if constraints.budget_limit:
            weights["cost"] = 0.4
            weights["impact"] = 0.2

        if constraints.time_constraint:
            weights["feasibility"] = 0.4
            weights["risk"] = 0.1

        return weights

    @staticmethod
    def calculate_option_score(option: DecisionOption, weights: Dict[str, float]) -> float:
        impact_score = sum(option.impact.values()) / len(option.impact) if option.impact else 0.0
        return (
            impact_score * weights["impact"]
            + (1 - option.cost) * weights["cost"]
            + (1 - option.risk) * weights["risk"]
            + option.feasibility * weights["feasibility"]
            + len(option.benefits) / 10 * weights["benefits"]
        )

    def _success_rate(self, organization_id: UUID, decision_type: str) -> Optional[float]:
        history = self._history[(organization_id, decision_type)]
        if not history:
            return None
        return sum(1 for entry in history if entry["feedback"] > 0) / len(history)

    def adjust_risk(self, base_risk: float, organization_id: UUID, decision_type: str) -> float:
        adjusted = base_risk
        success_rate = self._success_rate(organization_id, decision_type)
        if success_rate is not None:
            adjusted *= 1 - success_rate * 0.5
        return max(0.1, min(1.0, adjusted))

    @staticmethod
    def calculate_context_fit(option: DecisionOption, context: DecisionContext) -> float:
        fit = 0.5

        if context.objectives:
            description = option.description.lower()
            matches = sum(1 for objective in context.objectives if objective.lower() in description)
            fit += matches / len(context.objectives) * 0.3

        if context.constraints:
            constraints = context.constraints
            compliance = 1.0
            if constraints.budget_limit and option.cost > constraints.budget_limit:
                compliance *= 0.5
            if constraints.risk_tolerance and option.risk > constraints.risk_tolerance:
                compliance *= 0.7
            if constraints.time_constraint and option.feasibility < 0.7:
                compliance *= 0.6
            fit += compliance * 0.2

        return max(0.1, min(1.0, fit))

    def evaluate_options(
        self, options: List[DecisionOption], context: DecisionContext, organization_id: UUID
    ) -> List[DecisionOption]:
        weights = self.get_evaluation_weights(context)
        for option in options:
            option.score = self.calculate_option_score(option, weights)
            option.adjusted_score = option.score
            option.adjusted_risk = self.adjust_risk(option.risk, organization_id, context.type.value)
            option.context_fit = self.calculate_context_fit(option, context)
        return sorted(options, key=lambda o: o.score, reverse=True)

    def _learning_bonus(self, organization_id: UUID, decision_type: str, option_id: str) -> float:
        feedback = [
            entry["feedback"]
            for entry in self._history[(organization_id, decision_type)]
            if entry["option_id"] == option_id
        ]
        if not feedback:
            return 0.0
        return sum(max(value, 0.0) for value in feedback) / len(feedback) * 0.1

    def select_best_option(
        self, ranked: List[DecisionOption], context: DecisionContext, organization_id: UUID
    ) -> DecisionOption:
        top = ranked[:3]
        for option in top:
            bonus = self._learning_bonus(organization_id, context.type.value, option.id)
            option.adjusted_score = option.score * (1 + bonus)
        return max(top, key=lambda o: o.adjusted_score)

    # Explanation

    @staticmethod
    def _comparison_reason(selected: DecisionOption, alternative: DecisionOption) -> str:
        if selected.risk < alternative.risk:
            return "higher risk"
        if selected.cost < alternative.cost:
            return "higher cost"
        if selected.feasibility > alternative.feasibility:
            return "lower feasibility"
        return "lower overall score"

    def generate_reasoning(self, selected: DecisionOption, alternatives: List[DecisionOption]) -> List[str]:
        reasons = [f'Selected "{selected.description}" based on comprehensive analysis.']

        if selected.score > 0.8:
            reasons.append(f"This option scored {selected.score * 100:.1f}% in our evaluation criteria.")
        if selected.feasibility > 0.8:
            reasons.append("High feasibility makes this option practical to implement.")
        if selected.risk < 0.4:
            reasons.append("Low risk profile aligns with conservative approach.")
        if len(selected.benefits) > 2:
            reasons.append(f"Multiple benefits identified: {', '.join(selected.benefits[:2])}.")

        if alternatives:
            next_best = alternatives[0]
            reasons.append(
                f'Alternative "{next_best.description}" was considered but ranked lower due to '
                f"{self._comparison_reason(selected, next_best)}."
            )

        return reasons

    @staticmethod
    def calculate_confidence(selected: DecisionOption, ranked: List[DecisionOption]) -> float:
        """The gap is measured against the runner-up of the base ranking, which may be the selection itself."""
        next_score = ranked[1].score if len(ranked) > 1 else 0.0
        gap_bonus = min(0.3, (selected.score - next_score) * 2)
        return min(0.95, 0.6 + gap_bonus + selected.feasibility * 0.1)

    @staticmethod
    def assess_risks(option: DecisionOption, context: DecisionContext) -> Dict[str, Any]:
        return {
            "overall": option.adjusted_risk or option.risk,
            "categories": {
                "implementation": "medium" if option.feasibility < 0.7 else "low",
                "operational": "medium" if option.cost > 0.7 else "low",
                "strategic": "low" if context.constraints else "medium",
            },
            "mitigation": [f"Monitor and mitigate: {drawback}" for drawback in option.drawbacks],
            "monitoring": [
                "Track implementation progress",
                "Monitor outcome metrics",
                "Review after 30 days",
            ],
        }

    @staticmethod
    def predict_outcome(option: DecisionOption, context: DecisionContext) -> Dict[str, Any]:
        metrics = []
        if context.type == DecisionType.RESOURCE_ALLOCATION:
            metrics.extend(["Resource utilization rate", "Task completion time", "User satisfaction"])
        if context.type == DecisionType.SYSTEM_OPTIMIZATION:
            metrics.extend(["System performance", "Cost reduction", "Error rate"])
        metrics.extend(["Decision outcome rating", "Stakeholder feedback", "Goal achievement"])

        return {
            "short_term": {"probability": 0.8, "impact": dict(option.impact), "timeline": "1-4 weeks"},
            "long_term": {
                "probability": 0.6,
                "impact": {key: round(value * 1.15, 4) for key, value in option.impact.items()},
                "timeline": "3-6 months",
            },
            "metrics": metrics,
        }

    # Public operations

    async def make_decision(
        self,
        db: AsyncSession,
        context: DecisionContext,
        organization_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> DecisionResult:
        """Score the options for a context, persist the winner and explain it."""
        ranked = self.evaluate_options(self.generate_options(context.type), context, organization_id)
        selected = self.select_best_option(ranked, context, organization_id)
        alternatives = [option for option in ranked if option.id != selected.id]

        reasoning = self.generate_reasoning(selected, alternatives)
        confidence = self.calculate_confidence(selected, ranked)
        risk_assessment = self.assess_risks(selected, context)
        expected_outcome = self.predict_outcome(selected, context)

        decision = AutonomousDecision(
            organization_id=organization_id,
            user_id=user_id,
            decision_type=context.type.value,
            context={
                "data": context.data,
                "constraints": context.constraints.model_dump(exclude_none=True) if context.constraints else None,
                "objectives": context.objectives,
            },
            selected_option=selected.model_dump(),
            alternatives=[option.model_dump() for option in alternatives],
            confidence=confidence,
            reasoning=reasoning,
            risk_assessment=risk_assessment,
            expected_outcome=expected_outcome,
        )
        db.add(decision)
        await db.flush()

        logger.info(
            f"Decision {decision.id} ({context.type.value}) selected {selected.id} "
            f"with confidence {confidence:.2f}"
        )

        return DecisionResult(
            decision_id=decision.id,
            selected_option=selected,
            confidence=confidence,
            reasoning=" ".join(reasoning),
            alternatives=alternatives,
            expected_outcome=expected_outcome,
            risk_assessment=risk_assessment,
        )

    async def provide_feedback(
        self,
        db: AsyncSession,
        decision_id: UUID,
        organization_id: UUID,
        feedback: float,
        outcome: Optional[Dict[str, Any]] = None,
    ) -> AutonomousDecision:
        """Record feedback (-1..1) for a decision.

        Raises:
            ValueError: If feedback is out of range
            LookupError: If the decision does not exist in the organization
        """
        if not -1.0 <= feedback <= 1.0:
            raise ValueError("Feedback must be between -1 and 1")

        result = await db.execute(
            select(AutonomousDecision).where(
                AutonomousDecision.id == decision_id,
                AutonomousDecision.organization_id == organization_id,
            )
        )
        decision = result.scalar_one_or_none()
        if decision is None:
            raise LookupError(f"Decision {decision_id} not found")

        decision.feedback = feedback
        decision.actual_outcome = outcome
        decision.status = "EVALUATED"
        decision.feedback_at = utc_now()

        self._history[(organization_id, decision.decision_type)].append(
            {
                "option_id": decision.selected_option.get("id"),
                "feedback": feedback,
                "outcome": "success" if feedback > 0 else "failure",
            }
        )
        return decision

    async def get_decision_analytics(self, db: AsyncSession, organization_id: UUID) -> Dict[str, Any]:
        result = await db.execute(
            select(AutonomousDecision)
            .where(AutonomousDecision.organization_id == organization_id)
            .order_by(AutonomousDecision.created_at.desc())
            .limit(HISTORY_LIMIT)
        )
        decisions = list(result.scalars().all())

        by_type: Dict[str, int] = {}
        for decision in decisions:
            by_type[decision.decision_type] = by_type.get(decision.decision_type, 0) + 1

        with_feedback = [d for d in decisions if d.feedback is not None]
        success_rate = (
            sum(1 for d in with_feedback if d.feedback > 0) / len(with_feedback) if with_feedback else 0.0
        )

        cutoff = utc_now() - timedelta(days=30)
        recent = sorted((d for d in decisions if d.created_at > cutoff), key=lambda d: d.created_at)

        daily: Dict[str, int] = {}
        for decision in recent:
            day = decision.created_at.date().isoformat()
            daily[day] = daily.get(day, 0) + 1

        return {
            "total_decisions": len(decisions),
            "avg_confidence": _mean([d.confidence for d in decisions]),
            "decisions_by_type": by_type,
            "success_rate": success_rate,
            "trend_analysis": {
                "recent_decisions": len(recent),
                "avg_recent_confidence": _mean([d.confidence for d in recent]),
                "improvement_trend": self.calculate_improvement_trend([d.confidence for d in recent]),
            },
            "daily_decisions": daily,
        }

    @staticmethod
    def calculate_improvement_trend(confidences: List[float]) -> str:
        """Compare the older and newer halves of chronologically ordered confidences."""
        if len(confidences) < 10:
            return "insufficient_data"

        middle = len(confidences) // 2
        first_avg = _mean(confidences[:middle])
        second_avg = _mean(confidences[middle:])
        improvement = (second_avg - first_avg) / first_avg if first_avg else 0.0

        if improvement > 0.05:
            return "improving"
        if improvement < -0.05:
            return "declining"
        return "stable"


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


_decision_service: Optional[AutonomousDecisionService] = None


def get_decision_service() -> AutonomousDecisionService:
    """Get the process-wide decision service."""
    global _decision_service
    if _decision_service is None:
        _decision_service = AutonomousDecisionService()
    return _decision_service
