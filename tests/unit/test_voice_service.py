"""
Unit tests for the voice command matcher.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import Organization, VoiceCommand
from bizsuite.services.voice import (
    VoiceCommandDefinition,
    VoiceCommandService,
    calculate_match_score,
    extract_entities,
    extract_parameters,
)

pytestmark = pytest.mark.unit

ASSIGN = VoiceCommandDefinition(
    phrase="assign * to me",
    intent="UPDATE",
    parameters={"task": "*"},
    action="assign_task",
    confidence=0.9,
)


class TestMatching:
    """Test phrase scoring and entity extraction."""

    def test_exact_match(self):
        assert calculate_match_score("go to dashboard", "go to dashboard") == 1.0

    def test_partial_word_match(self):
        assert calculate_match_score("go to finance now", "go to finance") == 1.0
        assert calculate_match_score("go to reports", "go to finance") == pytest.approx(2 / 3)

    def test_wildcard_scores_half_per_literal_part(self):
        assert calculate_match_score("search for invoices", "search for *") == 0.5
        assert calculate_match_score("assign task 7 to me", "assign * to me") == 1.0

    def test_extract_entities(self):
        entities = extract_entities("move 3 tasks to next week")
        assert entities == {"numbers": [3], "time_reference": "next week"}

    def test_extract_wildcard_parameter(self):
        parameters = extract_parameters("assign task 42 to me", ASSIGN)
        assert parameters["task"] == "task 42"
        assert parameters["extracted_entities"] == {"numbers": [42]}


class TestCustomCommands:
    def test_custom_commands_are_per_organization(self):
        service = VoiceCommandService()
        org_id = uuid4()
        service.add_custom_command(org_id, ASSIGN)

        assert "assign * to me" in service.get_available_commands(org_id)
        assert "assign * to me" not in service.get_available_commands(uuid4())
        assert service.find_best_match("assign report to me", org_id).action == "assign_task"

    def test_remove_custom_command(self):
        service = VoiceCommandService()
        org_id = uuid4()
        service.add_custom_command(org_id, ASSIGN)

        assert service.remove_custom_command(org_id, "assign * to me") is True
        assert service.remove_custom_command(org_id, "assign * to me") is False

    def test_mixed_case_phrase_matches(self):
        service = VoiceCommandService()
        org_id = uuid4()
        stored = service.add_custom_command(
            org_id,
            VoiceCommandDefinition(phrase="Open  CRM", intent="NAVIGATE", action="navigate_to_crm", confidence=0.9),
        )

        assert stored.phrase == "open crm"
        assert service.find_best_match("open crm", org_id).action == "navigate_to_crm"
        assert service.remove_custom_command(org_id, "OPEN CRM") is True

    def test_help_lists_commands(self):
        service = VoiceCommandService()
        result = service.execute_action("show_help", {})
        assert result["action"] == "help"
        assert "go to dashboard" in result["commands"]


@pytest.mark.asyncio
class TestProcessCommand:
    """Test processing and persistence of transcripts."""

    async def test_confident_command_executes(self, test_db: AsyncSession, test_organization: Organization):
        service = VoiceCommandService()
        result = await service.process_voice_command(test_db, "Go to Dashboard", 0.95, test_organization.id)

        assert result["intent"] == "NAVIGATE"
        assert result["action"] == {"action": "navigate", "url": "/dashboard"}
        assert result["confidence"] == 0.9

        stored = (await test_db.execute(select(VoiceCommand))).scalar_one()
        assert stored.transcript == "Go to Dashboard"
        assert stored.result == {"action": "navigate", "url": "/dashboard"}

    async def test_low_confidence_is_not_executed(
        self, test_db: AsyncSession, test_organization: Organization
    ):
        service = VoiceCommandService()
        result = await service.process_voice_command(test_db, "open projects", 0.5, test_organization.id)

        assert result["intent"] == "NAVIGATE"
        assert result["action"] is None
        assert result["confidence"] == 0.5

    async def test_unknown_command(self, test_db: AsyncSession, test_organization: Organization):
        service = VoiceCommandService()
        result = await service.process_voice_command(test_db, "xyzzy plugh", 0.99, test_organization.id)

        assert result["intent"] == "UNKNOWN"
        assert result["confidence"] == 0.0
        assert result["action"] is None

    async def test_analytics(self, test_db: AsyncSession, test_organization: Organization):
        service = VoiceCommandService()
        await service.process_voice_command(test_db, "go to dashboard", 0.95, test_organization.id)
        await service.process_voice_command(test_db, "xyzzy plugh", 0.95, test_organization.id)
        await test_db.commit()

        analytics = await service.get_voice_command_analytics(test_db, test_organization.id)

        assert analytics["total_commands"] == 2
        assert analytics["most_used_intents"] == {"NAVIGATE": 1, "UNKNOWN": 1}
        assert analytics["success_rate"] == 0.5
        assert len(analytics["recent_activity"]) == 2
