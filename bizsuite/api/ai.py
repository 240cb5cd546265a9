"""
AI API routes.

- Insights: statistical analyses stored as dashboard insights
- Predictions: linear forecasts scored against actual values
- Decisions: autonomous option scoring with feedback
- Voice commands: transcript matching and execution
- Compliance: GDPR checklist, consent records and reports
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.api.pagination import (
    PageParams,
    Pagination,
    apply_status,
    get_tenant_record,
    page_params,
    paginate,
    tenant_query,
)
from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, require_permissions
from bizsuite.models import AIInsight, AIPrediction, AutonomousDecision, Customer, User
from bizsuite.models.base import utc_now
from bizsuite.services import insights as insight_analysis
from bizsuite.services.audit import commit_with_audit, record_audit
from bizsuite.services.compliance import get_compliance_service, serialize
from bizsuite.services.decisions import DecisionContext, DecisionResult, get_decision_service
from bizsuite.services.voice import VoiceCommandDefinition, get_voice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/ai", tags=["ai"])


# Pydantic schemas
class InsightCreate(BaseModel):
    type: str
    category: str = Field("GENERAL", pattern=r"^(CRM|HR|FINANCE|PROJECTS|GENERAL)$")
    data: Dict[str, Any] = Field(default_factory=dict)


class InsightUpdate(BaseModel):
    is_read: Optional[bool] = None
    action_taken: Optional[str] = None


class InsightResponse(BaseModel):
    id: UUID
    type: str
    category: str
    title: str
    description: str
    confidence: float
    impact: str
    data: Optional[Dict[str, Any]]
    is_read: bool
    action_taken: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class InsightList(BaseModel):
    insights: List[InsightResponse]
    pagination: Pagination


class PredictionCreate(BaseModel):
    prediction_type: str = Field(..., min_length=1, max_length=50)
    target: Optional[str] = Field(None, max_length=255)
    predicted_value: Optional[float] = None
    history: Optional[List[float]] = None
    periods: int = Field(1, ge=1, le=24)
    confidence: Optional[float] = Field(None, ge=0, le=1)
    target_date: Optional[datetime] = None


class PredictionActual(BaseModel):
    actual_value: float


class PredictionResponse(BaseModel):
    id: UUID
    prediction_type: str
    target: Optional[str]
    predicted_value: float
    actual_value: Optional[float]
    accuracy: Optional[float]
    confidence: float
    target_date: Optional[datetime]
    status: str
    model_version: str
    input_data: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class PredictionList(BaseModel):
    predictions: List[PredictionResponse]
    pagination: Pagination


class DecisionFeedback(BaseModel):
    feedback: float
    outcome: Optional[Dict[str, Any]] = None


class DecisionResponse(BaseModel):
    id: UUID
    decision_type: str
    context: Optional[Dict[str, Any]]
    selected_option: Dict[str, Any]
    confidence: float
    reasoning: Optional[List[str]]
    risk_assessment: Optional[Dict[str, Any]]
    expected_outcome: Optional[Dict[str, Any]]
    status: str
    feedback: Optional[float]
    actual_outcome: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class DecisionList(BaseModel):
    decisions: List[DecisionResponse]
    pagination: Pagination


class VoiceCommandRequest(BaseModel):
    command: str = Field(..., min_length=1, max_length=500)
    confidence: float = Field(1.0, ge=0, le=1)
    language: str = Field("en-US", max_length=10)


class ConsentCreate(BaseModel):
    data_subject_id: str = Field(..., min_length=1)
    email: EmailStr
    purposes: List[str] = Field(..., min_length=1)
    source: str = "api"
    version: str = "1.0"


# Insights

@router.get("/insights", response_model=InsightList)
async def list_insights(
    type: Optional[str] = None,
    category: Optional[str] = None,
    is_read: Optional[bool] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(AIInsight, current_user.organization_id)
    stmt = apply_status(stmt, AIInsight.type, type)
    stmt = apply_status(stmt, AIInsight.category, category)
    if is_read is not None:
        stmt = stmt.where(AIInsight.is_read == is_read)

    insights, pagination = await paginate(db, stmt.order_by(AIInsight.created_at.desc()), params)
    return {"insights": insights, "pagination": pagination}


@router.post("/insights", response_model=InsightResponse, status_code=status.HTTP_201_CREATED)
async def create_insight(
    data: InsightCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("ai:create")),
):
    """
    Run an analysis and store the result as an insight.

    Supported types: ANOMALY_DETECTION (data.values), PREDICTIVE_ANALYSIS
    (data.values, data.periods) and RISK_ASSESSMENT (data.factors, data.weights).

    Raises:
        HTTPException: 400 for an unknown analysis type or malformed data
    """
    try:
        analysis_type = insight_analysis.AnalysisType(data.type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid analysis type: {data.type}",
        )

    try:
        analysis = insight_analysis.analyze(analysis_type, data.data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    insight = AIInsight(
        organization_id=current_user.organization_id,
        type=analysis["type"],
        category=data.category,
        title=analysis["title"],
        description=analysis["description"],
        confidence=analysis["confidence"],
        impact=analysis["impact"],
        data={"input": data.data, "result": analysis["result"]},
    )
    db.add(insight)
    return await commit_with_audit(db, insight, current_user, "AI_INSIGHT_CREATED", "AI_INSIGHT", {"type": insight.type})


@router.patch("/insights/{insight_id}", response_model=InsightResponse)
async def update_insight(
    insight_id: UUID,
    data: InsightUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("ai:update")),
):
    insight = await get_tenant_record(db, AIInsight, insight_id, current_user.organization_id, name="Insight")

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(insight, field, value)

    return await commit_with_audit(
        db, insight, current_user, "AI_INSIGHT_UPDATED", "AI_INSIGHT", {"fields": sorted(update_data)}
    )


# Predictions

@router.get("/predictions", response_model=PredictionList)
async def list_predictions(
    prediction_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(AIPrediction, current_user.organization_id)
    stmt = apply_status(stmt, AIPrediction.prediction_type, prediction_type)
    stmt = apply_status(stmt, AIPrediction.status, status_filter)

    predictions, pagination = await paginate(db, stmt.order_by(AIPrediction.created_at.desc()), params)
    return {"predictions": predictions, "pagination": pagination}


@router.post("/predictions", response_model=PredictionResponse, status_code=status.HTTP_201_CREATED)
async def create_prediction(
    data: PredictionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("ai:create")),
):
    """
    Record a prediction.

    With a history the value is forecast `periods` steps ahead by a linear
    trend, and the confidence defaults to the fit's r-squared.

    Raises:
        HTTPException: 400 if neither predicted_value nor history is given
    """
    if data.history:
        trend = insight_analysis.linear_trend(data.history)
        predicted_value = insight_analysis.forecast(data.history, data.periods)[-1]
        confidence = data.confidence if data.confidence is not None else max(0.0, min(1.0, trend["r_squared"]))
        input_data = {"history": data.history, "periods": data.periods, "trend": trend}
    elif data.predicted_value is not None:
        predicted_value = data.predicted_value
        confidence = data.confidence if data.confidence is not None else 0.5
        input_data = None
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either predicted_value or history is required",
        )

    prediction = AIPrediction(
        organization_id=current_user.organization_id,
        prediction_type=data.prediction_type,
        target=data.target,
        predicted_value=round(predicted_value, 4),
        confidence=round(confidence, 4),
        target_date=data.target_date,
        status="ACTIVE",
        input_data=input_data,
    )
    db.add(prediction)
    return await commit_with_audit(
        db,
        prediction,
        current_user,
        "AI_PREDICTION_CREATED",
        "AI_PREDICTION",
        {"prediction_type": prediction.prediction_type, "predicted_value": prediction.predicted_value},
    )


@router.post("/predictions/{prediction_id}/actual", response_model=PredictionResponse)
async def record_prediction_actual(
    prediction_id: UUID,
    data: PredictionActual,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("ai:update")),
):
    """Score a prediction against the observed value and complete it."""
    prediction = await get_tenant_record(
        db, AIPrediction, prediction_id, current_user.organization_id, name="Prediction"
    )

    prediction.actual_value = data.actual_value
    prediction.accuracy = round(insight_analysis.prediction_accuracy(prediction.predicted_value, data.actual_value), 4)
    prediction.status = "COMPLETED"

    return await commit_with_audit(
        db, prediction, current_user, "AI_PREDICTION_COMPLETED", "AI_PREDICTION", {"accuracy": prediction.accuracy}
    )


# Autonomous decisions

@router.get("/decisions/analytics")
async def get_decision_analytics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_decision_service().get_decision_analytics(db, current_user.organization_id)


@router.get("/decisions", response_model=DecisionList)
async def list_decisions(
    decision_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(AutonomousDecision, current_user.organization_id)
    stmt = apply_status(stmt, AutonomousDecision.decision_type, decision_type)
    stmt = apply_status(stmt, AutonomousDecision.status, status_filter)

    decisions, pagination = await paginate(db, stmt.order_by(AutonomousDecision.created_at.desc()), params)
    return {"decisions": decisions, "pagination": pagination}


@router.post("/decisions", response_model=DecisionResult, status_code=status.HTTP_201_CREATED)
async def make_decision(
    context: DecisionContext,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("ai:create")),
):
    """
    Score the options for a decision type and persist the selected one.

    Returns:
        Selected option, confidence, reasoning, alternatives, risk assessment
        and expected outcome
    """
    result = await get_decision_service().make_decision(
        db, context, current_user.organization_id, current_user.id
    )
    record_audit(
        db,
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        action="AI_DECISION_CREATED",
        resource="AI_DECISION",
        resource_id=result.decision_id,
        details={"type": context.type.value, "selected": result.selected_option.id},
    )
    await db.commit()
    return result


@router.post("/decisions/{decision_id}/feedback", response_model=DecisionResponse)
async def decision_feedback(
    decision_id: UUID,
    data: DecisionFeedback,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("ai:update")),
):
    """
    Record feedback (-1 to 1) on a decision's outcome.

    Raises:
        HTTPException: 400 if feedback is out of range
        HTTPException: 404 if the decision is not in the organization
    """
    try:
        decision = await get_decision_service().provide_feedback(
            db, decision_id, current_user.organization_id, data.feedback, data.outcome
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Decision not found")

    return await commit_with_audit(
        db, decision, current_user, "AI_DECISION_FEEDBACK", "AI_DECISION", {"feedback": data.feedback}
    )


# Voice commands

@router.get("/voice-commands")
async def voice_commands(
    action: str = Query("analytics", pattern=r"^(analytics|commands)$"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Voice command analytics, or the phrases available with ?action=commands."""
    service = get_voice_service()
    if action == "commands":
        return {"commands": service.get_available_commands(current_user.organization_id)}
    return await service.get_voice_command_analytics(db, current_user.organization_id)


@router.post("/voice-commands")
async def process_voice_command(
    data: VoiceCommandRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Match a transcript against the command phrases.

    The action runs only when both the recognition and the phrase confidence
    reach 0.7; every transcript is stored.
    """
    result = await get_voice_service().process_voice_command(
        db,
        data.command,
        data.confidence,
        current_user.organization_id,
        current_user.id,
        data.language,
    )
    await db.commit()
    return result


@router.post("/voice-commands/custom", status_code=status.HTTP_201_CREATED)
async def add_custom_voice_command(
    command: VoiceCommandDefinition,
    current_user: User = Depends(require_permissions("admin:manage")),
):
    return get_voice_service().add_custom_command(current_user.organization_id, command)


@router.delete("/voice-commands/custom", status_code=status.HTTP_204_NO_CONTENT)
async def remove_custom_voice_command(
    phrase: str = Query(..., min_length=1),
    current_user: User = Depends(require_permissions("admin:manage")),
):
    if not get_voice_service().remove_custom_command(current_user.organization_id, phrase):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Custom voice command '{phrase}' not found",
        )
    logger.info(f"Custom voice command '{phrase}' removed by {current_user.email}")


# GDPR compliance

@router.get("/compliance")
async def compliance_overview(
    action: str = Query("status", pattern=r"^(status|metrics|report)$"),
    current_user: User = Depends(get_current_active_user),
):
    service = get_compliance_service()
    if action == "metrics":
        return service.get_compliance_metrics(current_user.organization_id)
    if action == "report":
        return service.generate_compliance_report(current_user.organization_id)
    return service.get_compliance_status(current_user.organization_id)


@router.post("/compliance/consents", status_code=status.HTTP_201_CREATED)
async def record_consent(
    data: ConsentCreate,
    request: Request,
    current_user: User = Depends(get_current_active_user),
):
    consent = get_compliance_service().record_consent(
        current_user.organization_id,
        data.data_subject_id,
        data.email,
        data.purposes,
        source=data.source,
        ip_address=request.client.host if request.client else "unknown",
        version=data.version,
    )
    return serialize(consent)


@router.delete("/compliance/consents/{consent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def withdraw_consent(
    consent_id: str,
    current_user: User = Depends(get_current_active_user),
):
    if not get_compliance_service().withdraw_consent(current_user.organization_id, consent_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consent not found")


@router.post("/compliance/checks")
async def run_compliance_checks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Run the compliance checklist.

    Customer records older than the retention period of customer data
    processing count as retention overruns.
    """
    service = get_compliance_service()
    activity = service.get_processing_activity(current_user.organization_id, "crm-customer-data")
    retention_years = activity.retention_period_years if activity else 7
    cutoff = utc_now() - timedelta(days=365 * retention_years)

    stmt = select(func.count(Customer.id)).where(
        Customer.organization_id == current_user.organization_id,
        Customer.deleted_at.is_(None),
        Customer.created_at < cutoff,
    )
    expired_records = (await db.execute(stmt)).scalar_one()

    return service.run_compliance_checks(current_user.organization_id, expired_records=expired_records)
