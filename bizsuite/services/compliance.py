"""
GDPR compliance checklist.

Each organization gets an in-memory register of processing activities,
consent records and compliance checks. Running the checks is
deterministic: an issue is keyed by what it is about, so re-running
updates it instead of adding a duplicate, and a condition that no longer
holds clears its issue.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)

CONSENT_RENEWAL_PERIOD = timedelta(days=2 * 365)
RECENT_WITHDRAWAL_PERIOD = timedelta(days=7)


@dataclass
class ProcessingActivity:
    id: str
    purpose: str
    data_categories: List[str]
    legal_basis: str
    retention_period_years: int
    data_subjects: List[str]
    recipients: List[str]
    third_country_transfer: bool = False
    safeguards: List[str] = field(default_factory=list)
    consent_required: bool = False
    automated: bool = True


@dataclass
class ConsentRecord:
    data_subject_id: str
    email: str
    purposes: List[str]
    source: str = "api"
    ip_address: str = "unknown"
    version: str = "1.0"
    consent_given: bool = True
    consent_date: datetime = field(default_factory=utc_now)
    withdrawal_date: Optional[datetime] = None
    id: str = field(default_factory=lambda: f"consent_{uuid4().hex[:12]}")


@dataclass
class ComplianceCheck:
    id: str
    type: str  # data_processing, consent_management, data_retention, data_transfer
    status: str  # compliant, non_compliant, warning, under_review
    description: str
    severity: str  # low, medium, high, critical
    legal_basis: str = "GDPR General Compliance"
    findings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=lambda: ["Review and take corrective action"])
    responsible: str = "Data Protection Officer"
    deadline: Optional[datetime] = None
    last_checked: datetime = field(default_factory=utc_now)
    next_check: datetime = field(default_factory=lambda: utc_now() + timedelta(days=7))


def serialize(record) -> Dict[str, Any]:
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


def standard_processing_activities() -> List[ProcessingActivity]:
    return [
        ProcessingActivity(
            id="crm-customer-data",
            purpose="Customer Relationship Management",
            data_categories=["contact_data", "communication_data", "transaction_data"],
            legal_basis="Contract performance (Art. 6(1)(b) GDPR)",
            retention_period_years=7,
            data_subjects=["customers", "prospects"],
            recipients=["sales_team", "customer_service"],
        ),
        ProcessingActivity(
            id="marketing-communications",
            purpose="Direct Marketing Communications",
            data_categories=["contact_data", "preference_data"],
            legal_basis="Consent (Art. 6(1)(a) GDPR)",
            retention_period_years=3,
            data_subjects=["prospects", "customers"],
            recipients=["marketing_team"],
            consent_required=True,
        ),
        ProcessingActivity(
            id="analytics-processing",
            purpose="Business Analytics and Insights",
            data_categories=["usage_data", "behavioral_data"],
            legal_basis="Legitimate interests (Art. 6(1)(f) GDPR)",
            retention_period_years=2,
            data_subjects=["users", "customers"],
            recipients=["analytics_team"],
        ),
    ]


def standard_checks() -> List[ComplianceCheck]:
    now = utc_now()
    return [
        ComplianceCheck(
            id="consent-validity-check",
            type="consent_management",
            status="compliant",
            description="Validity review of all recorded consents",
            severity="medium",
            legal_basis="Art. 7 GDPR - Conditions for consent",
            findings=["All active consents are documented"],
            recommendations=["Schedule regular consent renewal"],
            next_check=now + timedelta(days=30),
        ),
        ComplianceCheck(
            id="data-retention-compliance",
            type="data_retention",
            status="under_review",
            description="Monitoring of storage periods under GDPR storage limitation",
            severity="high",
            legal_basis="Art. 5(1)(e) GDPR - Storage limitation",
            findings=["Stored records have not yet been checked against retention periods"],
            recommendations=[
                "Automate deletion of expired records",
                "Review the data retention policy",
            ],
            responsible="IT Operations",
        ),
        ComplianceCheck(
            id="third-party-data-transfer",
            type="data_transfer",
            status="under_review",
            description="Assessment of data transfers to third countries",
            severity="medium",
            legal_basis="Art. 44-49 GDPR - Transfers to third countries",
            findings=["Standard Contractual Clauses are in place for cloud providers"],
            recommendations=["Carry out a Transfer Impact Assessment"],
            responsible="Legal Team",
            next_check=now + timedelta(days=14),
        ),
    ]


@dataclass
class OrganizationCompliance:
    activities: Dict[str, ProcessingActivity]
    checks: Dict[str, ComplianceCheck]
    consents: Dict[str, ConsentRecord] = field(default_factory=dict)


class GDPRComplianceService:
    """Per-organization GDPR checklist held in process memory."""

    def __init__(self):
        self._organizations: Dict[UUID, OrganizationCompliance] = {}

    def _state(self, organization_id: UUID) -> OrganizationCompliance:
        state = self._organizations.get(organization_id)
        if state is None:
            state = OrganizationCompliance(
                activities={a.id: a for a in standard_processing_activities()},
                checks={c.id: c for c in standard_checks()},
            )
            self._organizations[organization_id] = state
        return state

    # Register

    def add_processing_activity(self, organization_id: UUID, activity: ProcessingActivity) -> None:
        self._state(organization_id).activities[activity.id] = activity

    def get_processing_activity(self, organization_id: UUID, activity_id: str) -> Optional[ProcessingActivity]:
        return self._state(organization_id).activities.get(activity_id)

    # Consent

    def record_consent(
        self,
        organization_id: UUID,
        data_subject_id: str,
        email: str,
        purposes: List[str],
        source: str = "api",
        ip_address: str = "unknown",
        version: str = "1.0",
    ) -> ConsentRecord:
        consent = ConsentRecord(
            data_subject_id=data_subject_id,
            email=email,
            purposes=list(purposes),
            source=source,
            ip_address=ip_address,
            version=version,
        )
        self._state(organization_id).consents[consent.id] = consent
        logger.info(f"Consent {consent.id} recorded for organization {organization_id}")
        return consent

    def withdraw_consent(self, organization_id: UUID, consent_id: str) -> bool:
        consent = self._state(organization_id).consents.get(consent_id)
        if consent is None:
            return False
        consent.consent_given = False
        consent.withdrawal_date = utc_now()
        logger.info(f"Consent {consent_id} withdrawn for organization {organization_id}")
        return True

    def has_valid_consent(self, organization_id: UUID, activity_id: str) -> bool:
        return any(
            consent.consent_given and activity_id in consent.purposes
            for consent in self._state(organization_id).consents.values()
        )

    def find_expired_consents(self, organization_id: UUID) -> List[ConsentRecord]:
        cutoff = utc_now() - CONSENT_RENEWAL_PERIOD
        return [
            consent
            for consent in self._state(organization_id).consents.values()
            if consent.consent_given and consent.consent_date < cutoff
        ]

    # Checks

    def _set_issue(self, state: OrganizationCompliance, issue: ComplianceCheck, active: bool) -> None:
        if active:
            state.checks[issue.id] = issue
            logger.warning(f"GDPR compliance issue: {issue.description}")
        else:
            state.checks.pop(issue.id, None)

    def run_compliance_checks(self, organization_id: UUID, expired_records: int = 0) -> Dict[str, Any]:
        """Evaluate consents, retention, legal basis and transfers.

        Args:
            organization_id: Organization to check
            expired_records: Number of stored records past their retention period
        """
        state = self._state(organization_id)
        now = utc_now()

        expired_consents = self.find_expired_consents(organization_id)
        self._set_issue(
            state,
            ComplianceCheck(
                id="consent-renewal",
                type="consent_management",
                status="warning",
                description=f"{len(expired_consents)} consents require renewal",
                severity="medium",
                findings=[f"{len(expired_consents)} consents are older than two years"],
            ),
            bool(expired_consents),
        )

        retention = state.checks["data-retention-compliance"]
        retention.last_checked = now
        if expired_records:
            retention.status = "non_compliant"
            retention.findings = [f"{expired_records} records exceed their retention period"]
        else:
            retention.status = "compliant"
            retention.findings = ["No records exceed their retention period"]
        self._set_issue(
            state,
            ComplianceCheck(
                id="retention-overrun",
                type="data_retention",
                status="non_compliant",
                description=f"{expired_records} records exceed their retention period",
                severity="high",
                findings=[f"{expired_records} records scheduled for deletion"],
                deadline=now + timedelta(days=30),
            ),
            expired_records > 0,
        )

        for activity in state.activities.values():
            self._set_issue(
                state,
                ComplianceCheck(
                    id=f"missing-consent-{activity.id}",
                    type="data_processing",
                    status="non_compliant",
                    description=f"Missing consent for {activity.purpose}",
                    severity="critical",
                    findings=["Processing without valid consent"],
                ),
                activity.consent_required and not self.has_valid_consent(organization_id, activity.id),
            )
            self._set_issue(
                state,
                ComplianceCheck(
                    id=f"transfer-safeguards-{activity.id}",
                    type="data_transfer",
                    status="non_compliant",
                    description=f"Insufficient safeguards for third-country transfer: {activity.purpose}",
                    severity="high",
                    findings=["No appropriate safeguards recorded"],
                ),
                activity.third_country_transfer and not activity.safeguards,
            )

        return self.get_compliance_status(organization_id)

    def get_compliance_status(self, organization_id: UUID) -> Dict[str, Any]:
        checks = list(self._state(organization_id).checks.values())
        critical_issues = sum(1 for c in checks if c.severity == "critical" and c.status != "compliant")
        warnings = sum(1 for c in checks if c.status == "warning")
        non_compliant = sum(1 for c in checks if c.status == "non_compliant")

        if critical_issues or non_compliant:
            overall = "non_compliant"
        elif warnings:
            overall = "warning"
        else:
            overall = "compliant"

        return {
            "overall": overall,
            "checks": [serialize(c) for c in checks],
            "critical_issues": critical_issues,
            "warnings": warnings,
        }

    def get_compliance_metrics(self, organization_id: UUID) -> Dict[str, Any]:
        state = self._state(organization_id)
        checks = list(state.checks.values())
        consents = list(state.consents.values())
        compliant = sum(1 for c in checks if c.status == "compliant")

        return {
            "total_checks": len(checks),
            "compliant_checks": compliant,
            "non_compliant_checks": sum(1 for c in checks if c.status == "non_compliant"),
            "warning_checks": sum(1 for c in checks if c.status == "warning"),
            "compliance_rate": compliant / len(checks) * 100 if checks else 100.0,
            "total_consents": len(consents),
            "active_consents": sum(1 for c in consents if c.consent_given),
            "withdrawn_consents": sum(1 for c in consents if not c.consent_given),
        }

    def generate_compliance_report(self, organization_id: UUID) -> Dict[str, Any]:
        state = self._state(organization_id)
        consents = list(state.consents.values())

        by_purpose: Dict[str, int] = {}
        for consent in consents:
            if consent.consent_given:
                for purpose in consent.purposes:
                    by_purpose[purpose] = by_purpose.get(purpose, 0) + 1

        cutoff = utc_now() - RECENT_WITHDRAWAL_PERIOD
        return {
            "summary": self.get_compliance_metrics(organization_id),
            "processing_activities": [serialize(a) for a in state.activities.values()],
            "compliance_checks": [serialize(c) for c in state.checks.values()],
            "consent_overview": {
                "total_consents": len(consents),
                "by_purpose": by_purpose,
                "recent_withdrawals": [
                    serialize(c) for c in consents if c.withdrawal_date and c.withdrawal_date > cutoff
                ],
            },
        }


_compliance_service: Optional[GDPRComplianceService] = None


def get_compliance_service() -> GDPRComplianceService:
    """Get the process-wide GDPR compliance service."""
    global _compliance_service
    if _compliance_service is None:
        _compliance_service = GDPRComplianceService()
    return _compliance_service
