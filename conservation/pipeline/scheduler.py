"""
Outreach Scheduler
Periodic sweep that fires scheduled outreach and sends drip follow-ups.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from conservation.core.repository import ConservationRepository
from conservation.notifications.dispatcher import NotificationDispatcher
from conservation.pipeline.models import (
    AgentProfile,
    AlertStatus,
    ConservationAlert,
    DispatchResult,
    SweepResult,
)
from conservation.pipeline.orchestrator import build_outreach_context
from conservation.pipeline.state_machine import (
    DRIP_STATUSES,
    drip_step_for,
    require_transition,
)
from conservation.pipeline.steps import OutreachComposerStep
from conservation.utils.time_utils import ensure_utc, utcnow


logger = logging.getLogger(__name__)


def channel_stamps(dispatch: DispatchResult, now: datetime) -> Dict[str, Any]:
    """Per-channel sent timestamps; a channel that failed stays null."""
    return {
        "push_sent_at": now if dispatch.push_sent else None,
        "sms_sent_at": now if dispatch.sms_sent else None,
    }


def outreach_sent_fields(now: datetime) -> Dict[str, Any]:
    """Fields written when an alert moves to outreach_sent."""
    return {
        "status": AlertStatus.OUTREACH_SENT,
        "outreach_sent_at": now,
        "last_drip_at": now,
    }


class OutreachScheduler:
    """
    Advances alerts through the automated part of the state machine.

    Pass A fires the initial message once the grace period has passed.
    Pass B sends the day-2, day-5 and day-7 follow-ups. Each transition is
    claimed with a conditional update before anything is sent, so a
    concurrent sweep that loses the race sends nothing.
    """

    def __init__(
        self,
        repository: ConservationRepository,
        composer: OutreachComposerStep,
        dispatcher: NotificationDispatcher,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.composer = composer
        self.dispatcher = dispatcher
        self.clock = clock or utcnow

    def run_sweep(self) -> SweepResult:
        """
        Run both passes over every agent.

        Returns:
            SweepResult counters

        Raises:
            pymongo.errors.PyMongoError: If the agent list cannot be loaded
        """
        now = self.clock()
        result = SweepResult(started_at=now)

        agents = self.repository.list_agents()
        logger.info(f"Outreach sweep started for {len(agents)} agents")

        for agent in agents:
            try:
                self._fire_scheduled_outreach(agent, now, result)
                self._send_drips(agent, now, result)
            except Exception:
                logger.exception(f"Sweep failed for agent {agent.agent_id}")
                result.errors += 1

        logger.info(
            f"Outreach sweep complete: fired={result.outreach_fired}, "
            f"drips={result.drips_sent}, skipped={result.skipped}, errors={result.errors}"
        )
        return result

    # ------------------------------------------------------------------
    # Pass A
    # ------------------------------------------------------------------

    def _fire_scheduled_outreach(self, agent: AgentProfile, now: datetime, result: SweepResult):
        for alert in self.repository.list_alerts(agent.agent_id, AlertStatus.OUTREACH_SCHEDULED):
            scheduled_at = ensure_utc(alert.scheduled_outreach_at)
            if scheduled_at is None or scheduled_at > now:
                continue
            try:
                if self._fire_one(agent, alert, now):
                    result.outreach_fired += 1
                else:
                    result.skipped += 1
            except Exception:
                logger.exception(f"Scheduled outreach failed for alert {alert.alert_id}")
                result.errors += 1

    def _fire_one(self, agent: AgentProfile, alert: ConservationAlert, now: datetime) -> bool:
        client = (
            self.repository.get_client(agent.agent_id, alert.client_id)
            if alert.client_id else None
        )
        if client is None:
            logger.warning(f"Alert {alert.alert_id} has no client record; outreach skipped")
            return False

        message = (alert.initial_message or "").strip()
        if not message:
            logger.warning(f"Alert {alert.alert_id} has no initial message; outreach skipped")
            return False

        require_transition(AlertStatus.OUTREACH_SCHEDULED, AlertStatus.OUTREACH_SENT)
        claimed = self.repository.update_alert(
            agent.agent_id,
            alert.alert_id,
            outreach_sent_fields(now),
            expected_status=AlertStatus.OUTREACH_SCHEDULED,
        )
        if not claimed:
            return False

        dispatch = self.dispatcher.send_conservation_message(
            agent, client, message, include_booking_link=True
        )
        self.repository.update_alert(
            agent.agent_id,
            alert.alert_id,
            channel_stamps(dispatch, now),
            expected_status=AlertStatus.OUTREACH_SENT,
        )
        logger.info(
            f"Outreach sent for alert {alert.alert_id} "
            f"(push={dispatch.push_sent}, sms={dispatch.sms_sent})"
        )
        return True

    # ------------------------------------------------------------------
    # Pass B
    # ------------------------------------------------------------------

    def _send_drips(self, agent: AgentProfile, now: datetime, result: SweepResult):
        for status in DRIP_STATUSES:
            step = drip_step_for(status)
            for alert in self.repository.list_alerts(agent.agent_id, status):
                reference = ensure_utc(alert.last_drip_at or alert.outreach_sent_at)
                if reference is None or now - reference < step.delay:
                    continue
                try:
                    if self._drip_one(agent, alert, status, now):
                        result.drips_sent += 1
                    else:
                        result.skipped += 1
                except Exception:
                    logger.exception(f"Drip {step.drip_number} failed for alert {alert.alert_id}")
                    result.errors += 1

    def _drip_one(
        self,
        agent: AgentProfile,
        alert: ConservationAlert,
        status: AlertStatus,
        now: datetime,
    ) -> bool:
        step = drip_step_for(status)

        client = (
            self.repository.get_client(agent.agent_id, alert.client_id)
            if alert.client_id else None
        )
        if client is None:
            logger.warning(f"Alert {alert.alert_id} has no client record; drip skipped")
            return False

        message = self.composer.execute(build_outreach_context(
            agent=agent,
            client_name=alert.client_name,
            policy_type=alert.policy_type,
            policy_age=alert.policy_age,
            reason=alert.reason,
            drip_number=step.drip_number,
            premium_amount=alert.premium_amount,
        ))
        if not message:
            logger.warning(f"Empty drip {step.drip_number} for alert {alert.alert_id}; not sent")
            return False

        require_transition(status, step.next_status)
        claimed = self.repository.update_alert(
            agent.agent_id,
            alert.alert_id,
            {"status": step.next_status, "last_drip_at": now},
            expected_status=status,
            append_drip_message=message,
        )
        if not claimed:
            return False

        dispatch = self.dispatcher.send_conservation_message(agent, client, message)
        logger.info(
            f"Drip {step.drip_number} sent for alert {alert.alert_id} "
            f"(push={dispatch.push_sent}, sms={dispatch.sms_sent})"
        )
        return True
