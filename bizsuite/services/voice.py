"""
Voice command matcher.

Matches a recognized transcript against a static phrase list using
substring and wildcard scoring, extracts simple entities and maps the
matched command to a client-side action.
"""

import logging
import re
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import VoiceCommand
from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.6
EXECUTION_THRESHOLD = 0.7
TIME_REFERENCES = ["today", "tomorrow", "yesterday", "this week", "next week", "this month", "next month"]


class VoiceCommandDefinition(BaseModel):
    phrase: str
    intent: str
    parameters: Dict[str, str] = Field(default_factory=dict)
    action: str
    confidence: float = Field(ge=0, le=1)


def normalize_phrase(phrase: str) -> str:
    return " ".join(phrase.split()).lower()


def _command(phrase, intent, parameters, action, confidence) -> VoiceCommandDefinition:
    return VoiceCommandDefinition(
        phrase=phrase, intent=intent, parameters=parameters, action=action, confidence=confidence
    )


DEFAULT_COMMANDS = [
    _command("go to dashboard", "NAVIGATE", {"destination": "dashboard"}, "navigate_to_dashboard", 0.9),
    _command("open projects", "NAVIGATE", {"destination": "projects"}, "navigate_to_projects", 0.9),
    _command("show analytics", "NAVIGATE", {"destination": "analytics"}, "navigate_to_analytics", 0.9),
    _command("go to finance", "NAVIGATE", {"destination": "finance"}, "navigate_to_finance", 0.9),
    _command("search for *", "SEARCH", {"query": "*"}, "perform_search", 0.8),
    _command("find project *", "SEARCH", {"type": "project", "query": "*"}, "search_projects", 0.85),
    _command("show me invoices", "SEARCH", {"type": "invoice"}, "show_invoices", 0.9),
    _command("create new project", "CREATE", {"type": "project"}, "create_project", 0.9),
    _command("new task", "CREATE", {"type": "task"}, "create_task", 0.9),
    _command("add invoice", "CREATE", {"type": "invoice"}, "create_invoice", 0.9),
    _command("mark task complete", "UPDATE", {"action": "complete", "type": "task"}, "complete_task", 0.85),
    _command("update project status", "UPDATE", {"action": "status", "type": "project"}, "update_project_status", 0.8),
    _command("analyze performance", "ANALYZE", {"type": "performance"}, "analyze_performance", 0.8),
    _command("predict revenue", "PREDICT", {"type": "revenue"}, "predict_revenue", 0.8),
    _command("optimize resources", "OPTIMIZE", {"type": "resources"}, "optimize_resources", 0.8),
    _command("refresh data", "SYSTEM", {"action": "refresh"}, "refresh_data", 0.9),
    _command("export report", "SYSTEM", {"action": "export", "type": "report"}, "export_report", 0.85),
    _command("help", "SYSTEM", {"action": "help"}, "show_help", 0.95),
]

NAVIGATION_URLS = {
    "navigate_to_dashboard": "/dashboard",
    "navigate_to_projects": "/projects",
    "navigate_to_analytics": "/analytics",
    "navigate_to_finance": "/finance",
    "show_invoices": "/finance/invoices",
}

MODAL_ACTIONS = {"create_project", "create_task", "create_invoice"}


def calculate_match_score(text: str, pattern: str) -> float:
    """Score how well a transcript matches a command phrase (0..1)."""
    if "*" in pattern:
        score = sum(0.5 for part in pattern.split("*") if part.strip() and part.strip() in text)
        return min(1.0, score)

    if text == pattern:
        return 1.0

    input_words = text.split()
    pattern_words = pattern.split()
    if not pattern_words:
        return 0.0

    matches = sum(
        1
        for word in pattern_words
        if any(word in input_word or input_word in word for input_word in input_words)
    )
    return matches / len(pattern_words)


def extract_entities(text: str) -> Dict[str, Any]:
    entities: Dict[str, Any] = {}

    numbers = re.findall(r"\d+", text)
    if numbers:
        entities["numbers"] = [int(n) for n in numbers]

    lowered = text.lower()
    for reference in TIME_REFERENCES:
        if reference in lowered:
            entities["time_reference"] = reference
            break

    return entities


def extract_parameters(text: str, command: VoiceCommandDefinition) -> Dict[str, Any]:
    """Fill wildcard parameters from the transcript and attach entities."""
    parameters: Dict[str, Any] = dict(command.parameters)

    parts = command.phrase.split("*")
    if len(parts) == 2:
        prefix, suffix = parts[0].strip(), parts[1].strip()
        extracted = text
        if prefix:
            extracted = extracted.replace(prefix, "", 1).strip()
        if suffix:
            extracted = extracted.replace(suffix, "", 1).strip()
        for key, value in parameters.items():
            if value == "*":
                parameters[key] = extracted

    parameters["extracted_entities"] = extract_entities(text)
    return parameters


class VoiceCommandService:
    """Phrase matcher with per-organization custom commands."""

    def __init__(self):
        self.default_commands: List[VoiceCommandDefinition] = list(DEFAULT_COMMANDS)
        self.custom_commands: Dict[UUID, List[VoiceCommandDefinition]] = {}

    def get_commands(self, organization_id: Optional[UUID] = None) -> List[VoiceCommandDefinition]:
        custom = self.custom_commands.get(organization_id, []) if organization_id else []
        return self.default_commands + custom

    def get_available_commands(self, organization_id: Optional[UUID] = None) -> List[str]:
        return sorted(command.phrase for command in self.get_commands(organization_id))

    def add_custom_command(self, organization_id: UUID, command: VoiceCommandDefinition) -> VoiceCommandDefinition:
        # Transcripts are matched lowercased, so phrases are stored that way too
        command = command.model_copy(update={"phrase": normalize_phrase(command.phrase)})
        commands = self.custom_commands.setdefault(organization_id, [])
        commands[:] = [existing for existing in commands if existing.phrase != command.phrase]
        commands.append(command)
        logger.info(f"Added custom voice command '{command.phrase}' for organization {organization_id}")
        return command

    def remove_custom_command(self, organization_id: UUID, phrase: str) -> bool:
        commands = self.custom_commands.get(organization_id, [])
        phrase = normalize_phrase(phrase)
        remaining = [command for command in commands if command.phrase != phrase]
        self.custom_commands[organization_id] = remaining
        return len(remaining) != len(commands)

    def find_best_match(
        self, text: str, organization_id: Optional[UUID] = None
    ) -> Optional[VoiceCommandDefinition]:
        best_match = None
        best_score = 0.0
        for command in self.get_commands(organization_id):
            score = calculate_match_score(text, command.phrase)
            if score > best_score and score >= MATCH_THRESHOLD:
                best_match = command
                best_score = score
        return best_match

    def execute_action(
        self, action: str, parameters: Dict[str, Any], organization_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        if action in NAVIGATION_URLS:
            return {"action": "navigate", "url": NAVIGATION_URLS[action]}
        if action == "perform_search":
            return {"action": "search", "query": parameters.get("query"), "type": "global"}
        if action == "search_projects":
            return {"action": "search", "query": parameters.get("query"), "type": "projects"}
        if action in MODAL_ACTIONS:
            return {"action": "modal", "type": action}
        if action == "refresh_data":
            return {"action": "refresh"}
        if action == "show_help":
            return {"action": "help", "commands": self.get_available_commands(organization_id)}
        return {"action": "unknown", "message": f"Action {action} not implemented"}

    async def process_voice_command(
        self,
        db: AsyncSession,
        command: str,
        confidence: float,
        organization_id: UUID,
        user_id: Optional[UUID] = None,
        language: str = "en-US",
    ) -> Dict[str, Any]:
        """Match, optionally execute and persist one transcript."""
        started = time.perf_counter()
        text = command.strip().lower()

        matched = self.find_best_match(text, organization_id)
        if matched is None:
            intent = "UNKNOWN"
            parameters: Dict[str, Any] = {}
            match_confidence = 0.0
            action = None
        else:
            intent = matched.intent
            parameters = extract_parameters(text, matched)
            match_confidence = min(confidence, matched.confidence)
            action = None
            if confidence >= EXECUTION_THRESHOLD and matched.confidence >= EXECUTION_THRESHOLD:
                action = self.execute_action(matched.action, parameters, organization_id)

        execution_time = (time.perf_counter() - started) * 1000

        db.add(
            VoiceCommand(
                organization_id=organization_id,
                user_id=user_id,
                transcript=command,
                intent=intent,
                confidence=match_confidence,
                parameters=parameters,
                entities=parameters.get("extracted_entities"),
                result=action,
                execution_time=execution_time,
                language=language,
            )
        )
        await db.flush()

        return {
            "command": command,
            "intent": intent,
            "parameters": parameters,
            "confidence": match_confidence,
            "action": action,
            "execution_time": execution_time,
        }

    async def get_voice_command_analytics(self, db: AsyncSession, organization_id: UUID) -> Dict[str, Any]:
        result = await db.execute(
            select(VoiceCommand)
            .where(VoiceCommand.organization_id == organization_id)
            .order_by(VoiceCommand.created_at.desc())
            .limit(100)
        )
        commands = list(result.scalars().all())
        total = len(commands)

        intents: Dict[str, int] = {}
        for command in commands:
            intents[command.intent] = intents.get(command.intent, 0) + 1

        cutoff = utc_now() - timedelta(hours=24)
        return {
            "total_commands": total,
            "avg_confidence": sum(c.confidence for c in commands) / total if total else 0.0,
            "avg_execution_time": sum(c.execution_time for c in commands) / total if total else 0.0,
            "most_used_intents": intents,
            "success_rate": sum(1 for c in commands if c.confidence >= EXECUTION_THRESHOLD) / total if total else 0.0,
            "recent_activity": [
                {
                    "time": c.created_at.isoformat(),
                    "command": c.transcript,
                    "intent": c.intent,
                    "confidence": c.confidence,
                }
                for c in commands
                if c.created_at > cutoff
            ],
        }


_voice_service: Optional[VoiceCommandService] = None


def get_voice_service() -> VoiceCommandService:
    """Get the process-wide voice command service."""
    global _voice_service
    if _voice_service is None:
        _voice_service = VoiceCommandService()
    return _voice_service
