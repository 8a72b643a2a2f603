"""
Agent-initiated alert actions: send now, cancel the scheduled send, resolve.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from conservation.core.repository import ConservationRepository
from conservation.exceptions import AlertStateError, RecordNotFoundError
from conservation.notifications.dispatcher import NotificationDispatcher
from conservation.pipeline.models import (
    AlertStatus,
    ConservationAlert,
    DispatchResult,
)
from conservation.pipeline.scheduler import channel_stamps, outreach_sent_fields
from conservation.pipeline.state_machine import (
    MANUAL_OUTREACH_STATUSES,
    RESOLVED_STATUSES,
    require_transition,
)
from conservation.utils.time_utils import ensure_utc, utcnow


logger = logging.getLogger(__name__)


class AlertActions:
    """
    Manual transitions an agent can make from the dashboard.
    Each one is a conditional update on the status the alert was read in.
    """

    def __init__(
        self,
        repository: ConservationRepository,
        dispatcher: NotificationDispatcher,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.clock = clock or utcnow

    def _load(self, agent_id: str, alert_id: str) -> ConservationAlert:
        alert = self.repository.get_alert(agent_id, alert_id)
        if alert is None:
            raise RecordNotFoundError(f"Alert {alert_id} not found")
        return alert

    def send_outreach(self, agent_id: str, alert_id: str) -> DispatchResult:
        """
        Send the initial message immediately instead of waiting for the sweep.

        Args:
            agent_id: Owning agent
            alert_id: Alert to send

        Returns:
            DispatchResult with per-channel outcome

        Raises:
            RecordNotFoundError: Alert, agent or client missing
            AlertStateError: Unmatched alert, no message, or wrong status
        """
        alert = self._load(agent_id, alert_id)
        if not alert.matched:
            raise AlertStateError("Alert is not matched to a client")
        if not alert.initial_message:
            raise AlertStateError("Alert has no outreach message")
        if alert.status not in MANUAL_OUTREACH_STATUSES:
            raise AlertStateError(f"Outreach cannot be sent from status {alert.status.value}")
        require_transition(alert.status, AlertStatus.OUTREACH_SENT)

        agent = self.repository.get_agent(agent_id)
        if agent is None:
            raise RecordNotFoundError(f"Agent {agent_id} not found")
        client = self.repository.get_client(agent_id, alert.client_id)
        if client is None:
            raise RecordNotFoundError(f"Client {alert.client_id} not found")

        now = self.clock()
        claimed = self.repository.update_alert(
            agent_id, alert_id, outreach_sent_fields(now), expected_status=alert.status
        )
        if not claimed:
            raise AlertStateError("Alert changed while sending; reload and try again")

        dispatch = self.dispatcher.send_conservation_message(
            agent, client, alert.initial_message, include_booking_link=True
        )
        self.repository.update_alert(
            agent_id, alert_id, channel_stamps(dispatch, now),
            expected_status=AlertStatus.OUTREACH_SENT,
        )
        logger.info(
            f"Manual outreach for alert {alert_id}: push={dispatch.push_sent}, sms={dispatch.sms_sent}"
        )
        return dispatch

    def cancel_outreach(self, agent_id: str, alert_id: str) -> ConservationAlert:
        """
        Cancel auto-outreach during the grace period; the alert goes back to new.

        Raises:
            RecordNotFoundError: Alert missing
            AlertStateError: Not scheduled, or the grace period already ended
        """
        alert = self._load(agent_id, alert_id)
        if alert.status != AlertStatus.OUTREACH_SCHEDULED:
            raise AlertStateError("No outreach is scheduled for this alert")

        scheduled_at = ensure_utc(alert.scheduled_outreach_at)
        if scheduled_at is not None and scheduled_at <= self.clock():
            raise AlertStateError("Grace period has expired; outreach may already be sending")

        require_transition(alert.status, AlertStatus.NEW)
        claimed = self.repository.update_alert(
            agent_id,
            alert_id,
            {"status": AlertStatus.NEW, "scheduled_outreach_at": None},
            expected_status=AlertStatus.OUTREACH_SCHEDULED,
        )
        if not claimed:
            raise AlertStateError("Alert changed before it could be cancelled")

        logger.info(f"Scheduled outreach cancelled for alert {alert_id}")
        return alert.model_copy(update={"status": AlertStatus.NEW, "scheduled_outreach_at": None})

    def resolve_alert(
        self,
        agent_id: str,
        alert_id: str,
        status: AlertStatus,
        notes: Optional[str] = None,
    ) -> ConservationAlert:
        """
        Mark an alert saved or lost.

        A saved alert with a matched policy puts that policy back to Active.

        Raises:
            ValueError: status is not saved or lost
            RecordNotFoundError: Alert missing
            AlertStateError: Alert already resolved
        """
        target = AlertStatus(status)
        if target not in RESOLVED_STATUSES:
            raise ValueError("status must be 'saved' or 'lost'")

        alert = self._load(agent_id, alert_id)
        if alert.status in RESOLVED_STATUSES:
            raise AlertStateError(f"Alert is already {alert.status.value}")
        require_transition(alert.status, target)

        fields = {"status": target, "resolved_at": self.clock()}
        if notes is not None:
            fields["notes"] = notes

        claimed = self.repository.update_alert(
            agent_id, alert_id, fields, expected_status=alert.status
        )
        if not claimed:
            raise AlertStateError("Alert changed before it could be resolved")

        if target == AlertStatus.SAVED and alert.matched and alert.policy_id:
            self.repository.update_policy_status(
                agent_id, alert.client_id, alert.policy_id, "Active"
            )
            logger.info(f"Policy {alert.policy_id} restored to Active")

        logger.info(f"Alert {alert_id} resolved as {target.value}")
        return alert.model_copy(update=fields)
