"""
Alert Orchestrator
Turns one carrier notice into a persisted conservation alert.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from conservation.core.repository import ConservationRepository, new_id
from conservation.pipeline.models import (
    DEFAULT_AGENT_NAME,
    AgentProfile,
    AlertPriority,
    AlertSource,
    AlertStatus,
    ClientMatch,
    ConservationAlert,
    ConservationReason,
    CreateAlertResult,
    ExtractedConservationData,
    OutreachContext,
    UNKNOWN,
)
from conservation.pipeline.state_machine import GRACE_PERIOD
from conservation.pipeline.steps import (
    OutreachComposerStep,
    RecordMatcherStep,
    SaveabilityAssessorStep,
    TextExtractorStep,
)
from conservation.utils.time_utils import utcnow


logger = logging.getLogger(__name__)


def first_name(full_name: Optional[str], fallback: str = "there") -> str:
    """First whitespace-separated token of a name, or the fallback."""
    parts = (full_name or "").split()
    if not parts or parts[0] == UNKNOWN:
        return fallback
    return parts[0]


def build_outreach_context(
    agent: AgentProfile,
    client_name: str,
    policy_type: Optional[str],
    policy_age: Optional[int],
    reason: ConservationReason,
    drip_number: int,
    premium_amount: Optional[float] = None,
    coverage_amount: Optional[float] = None,
) -> OutreachContext:
    """Assemble composer input from an agent and the alert's client fields."""
    return OutreachContext(
        client_first_name=first_name(client_name),
        client_name=client_name,
        agent_name=agent.name,
        agent_first_name=agent.first_name,
        policy_type=policy_type,
        policy_age=policy_age,
        reason=reason,
        scheduling_url=agent.scheduling_url,
        drip_number=drip_number,
        premium_amount=premium_amount,
        coverage_amount=coverage_amount,
    )


class AlertOrchestrator:
    """
    Runs extraction, matching, composition and assessment in order, then
    persists the alert and marks the matched policy as lapsed.

    Extraction and composition failures degrade to placeholder values.
    Persistence failures propagate.
    """

    def __init__(
        self,
        repository: ConservationRepository,
        extractor: TextExtractorStep,
        matcher: RecordMatcherStep,
        composer: OutreachComposerStep,
        assessor: Optional[SaveabilityAssessorStep] = None,
        clock: Optional[Callable[[], datetime]] = None,
        progress_callback: Optional[Callable[[int, str, str], None]] = None,
    ):
        """
        Initialize the orchestrator with its steps.

        Args:
            repository: Data access
            extractor: Step 1
            matcher: Step 2
            composer: Step 3
            assessor: Step 4 (deterministic, default instance if not provided)
            clock: Returns "now" as an aware UTC datetime
            progress_callback: Optional callback (step_number, step_name, status)
        """
        self.repository = repository
        self.extractor = extractor
        self.matcher = matcher
        self.composer = composer
        self.assessor = assessor or SaveabilityAssessorStep()
        self.clock = clock or utcnow
        self.progress_callback = progress_callback

    def _report_progress(self, step: int, name: str, status: str):
        """Report progress if callback is set."""
        if self.progress_callback:
            self.progress_callback(step, name, status)

    def _extract(self, raw_text: str) -> ExtractedConservationData:
        self._report_progress(1, "Text Extractor", "running")
        try:
            extracted = self.extractor.execute(raw_text)
        except Exception:
            logger.exception("Extraction failed; continuing with placeholder values")
            extracted = ExtractedConservationData.placeholder()
        self._report_progress(1, "Text Extractor", "complete")
        logger.info(
            f"Step 1 complete: {extracted.client_name} / {extracted.policy_number} "
            f"({extracted.reason.value}, confidence {extracted.confidence.value})"
        )
        return extracted

    def _compose(self, context: OutreachContext) -> str:
        self._report_progress(3, "Outreach Composer", "running")
        try:
            message = self.composer.execute(context)
        except Exception:
            logger.exception("Initial outreach composition failed; alert will have no message")
            message = ""
        self._report_progress(3, "Outreach Composer", "complete")
        logger.info(f"Step 3 complete: initial message {'composed' if message else 'empty'}")
        return message

    def create_alert(self, agent_id: str, raw_text: str, source: AlertSource) -> CreateAlertResult:
        """
        Create a conservation alert from a carrier notice.

        Args:
            agent_id: Owning agent
            raw_text: Non-empty carrier email body or pasted text
            source: email_forward or paste

        Returns:
            CreateAlertResult with the alert id, snapshot and matched flag

        Raises:
            ValueError: If raw_text is empty
            pymongo.errors.PyMongoError: If the alert cannot be persisted
        """
        if not raw_text or not raw_text.strip():
            raise ValueError("raw_text is required")

        now = self.clock()

        # Step 1: Extract
        extracted = self._extract(raw_text)

        # Step 2: Match
        self._report_progress(2, "Record Matcher", "running")
        match: Optional[ClientMatch] = self.matcher.execute(
            agent_id, extracted.client_name, extracted.policy_number
        )
        self._report_progress(2, "Record Matcher", "complete")
        logger.info(
            f"Step 2 complete: "
            f"{f'matched client {match.client_id}' if match else 'no matching client'}"
        )

        # Agent profile for personalization
        agent = self.repository.get_agent(agent_id) or AgentProfile(
            agent_id=agent_id, name=DEFAULT_AGENT_NAME
        )

        is_chargeback_risk = bool(match and match.is_chargeback_risk)
        priority = AlertPriority.HIGH if is_chargeback_risk else AlertPriority.LOW
        client_name = match.client_name if match else extracted.client_name

        # Step 3: Compose initial message
        message = self._compose(build_outreach_context(
            agent=agent,
            client_name=client_name,
            policy_type=match.policy_type if match else None,
            policy_age=match.policy_age if match else None,
            reason=extracted.reason,
            drip_number=0,
            premium_amount=match.premium_amount if match else None,
            coverage_amount=match.coverage_amount if match else None,
        ))

        # Step 4: Assess
        assessment = self.assessor.execute(match, extracted.reason)

        auto_schedule = priority == AlertPriority.HIGH and match is not None

        alert = ConservationAlert(
            alert_id=new_id(),
            agent_id=agent_id,
            source=source,
            raw_text=raw_text,
            client_name=client_name,
            policy_number=extracted.policy_number,
            carrier=extracted.carrier,
            reason=extracted.reason,
            extraction_confidence=extracted.confidence,
            extraction_failed=extracted.extraction_failed,
            client_id=match.client_id if match else None,
            policy_id=match.policy_id if match else None,
            policy_age=match.policy_age if match else None,
            is_chargeback_risk=is_chargeback_risk,
            priority=priority,
            premium_amount=match.premium_amount if match else None,
            policy_type=match.policy_type if match else None,
            client_has_app=match.client_has_app if match else False,
            client_policy_count=match.client_policy_count if match else None,
            status=AlertStatus.OUTREACH_SCHEDULED if auto_schedule else AlertStatus.NEW,
            scheduled_outreach_at=now + GRACE_PERIOD if auto_schedule else None,
            initial_message=message or None,
            ai_insight=assessment.summary if assessment else None,
            created_at=now,
        )

        self.repository.insert_alert(alert)
        logger.info(
            f"Created alert {alert.alert_id} for agent {agent_id}: "
            f"priority={priority.value}, status={alert.status.value}"
        )

        if match is not None:
            flipped = self.repository.update_policy_status(
                agent_id, match.client_id, match.policy_id, "Lapsed", expected_status="Active"
            )
            if flipped:
                logger.info(f"Policy {match.policy_id} marked Lapsed")

        return CreateAlertResult(alert_id=alert.alert_id, alert=alert, matched=match is not None)
