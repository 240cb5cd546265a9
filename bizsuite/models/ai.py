"""
AI feature models: insights, predictions, autonomous decisions and voice commands.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Text, Float, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from bizsuite.models.base import Base, TenantScopedMixin


class AIInsight(TenantScopedMixin, Base):
    """Generated business insight shown on dashboards until read."""

    __tablename__ = "ai_insights"

    type: Mapped[str] = mapped_column(String(50), nullable=False)  # ANOMALY_DETECTION, PREDICTIVE_ANALYSIS, RISK_ASSESSMENT
    category: Mapped[str] = mapped_column(String(50), default="GENERAL", index=True)  # CRM, HR, FINANCE, PROJECTS, GENERAL
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    impact: Mapped[str] = mapped_column(String(20), default="MEDIUM")  # LOW, MEDIUM, HIGH
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    action_taken: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<AIInsight(id={self.id}, type={self.type}, title={self.title})>"


class AIPrediction(TenantScopedMixin, Base):
    """Forecast value that is later scored against the actual outcome."""

    __tablename__ = "ai_predictions"

    prediction_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # REVENUE_FORECAST, CHURN_RISK, ...
    target: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    predicted_value: Mapped[float] = mapped_column(Float, nullable=False)
    actual_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    accuracy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    target_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", index=True)  # ACTIVE, COMPLETED, EXPIRED
    model_version: Mapped[str] = mapped_column(String(20), default="linear-1")
    input_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AIPrediction(id={self.id}, type={self.prediction_type}, value={self.predicted_value})>"


class AutonomousDecision(TenantScopedMixin, Base):
    """Decision taken by the scoring engine, with feedback once the outcome is known."""

    __tablename__ = "autonomous_decisions"

    decision_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    selected_option: Mapped[dict] = mapped_column(JSON, nullable=False)
    alternatives: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    risk_assessment: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    expected_outcome: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="EXECUTED")  # EXECUTED, EVALUATED
    feedback: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # -1.0 .. 1.0
    actual_outcome: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    feedback_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<AutonomousDecision(id={self.id}, type={self.decision_type}, confidence={self.confidence})>"


class VoiceCommand(TenantScopedMixin, Base):
    """Processed voice command transcript."""

    __tablename__ = "voice_commands"

    user_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    transcript: Mapped[str] = mapped_column(Text, nullable=False)
    intent: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    parameters: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    entities: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    execution_time: Mapped[float] = mapped_column(Float, default=0.0)  # milliseconds
    language: Mapped[str] = mapped_column(String(10), default="en-US")

    def __repr__(self) -> str:
        return f"<VoiceCommand(id={self.id}, intent={self.intent}, confidence={self.confidence})>"
