"""
Inbound email ingestion: agents forward carrier notices to a shared address
and each one becomes a conservation alert.
"""

import logging
import re
from typing import Any, Dict, Optional

from conservation.core.repository import ConservationRepository
from conservation.notifications.email import ConfirmationMailer
from conservation.pipeline.models import AlertSource
from conservation.pipeline.orchestrator import AlertOrchestrator


logger = logging.getLogger(__name__)

MIN_BODY_LENGTH = 10
RECEIVED_EVENT = "email.received"

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")
_BARE_ADDRESS = re.compile(r"([^\s<>]+@[^\s<>]+)")


def extract_sender_email(from_field: Optional[str]) -> Optional[str]:
    """
    Pull the address out of "Name <email>" or a bare address.

    Returns:
        Lower-cased address, or None
    """
    if not from_field:
        return None
    match = _ANGLE_ADDRESS.search(from_field) or _BARE_ADDRESS.search(from_field)
    if not match:
        return None
    address = match.group(1).strip().lower()
    return address if "@" in address else None


class InboundEmailProcessor:
    """
    Handles inbound-email webhook events.
    """

    def __init__(
        self,
        repository: ConservationRepository,
        orchestrator: AlertOrchestrator,
        mailer: Optional[ConfirmationMailer] = None,
    ):
        self.repository = repository
        self.orchestrator = orchestrator
        self.mailer = mailer

    def process(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create an alert from a received email.

        Args:
            event: Webhook payload with "type" and "data" (from, subject, text, html)

        Returns:
            Response body: {"received": True, ...} with either "skipped" or "alert_id"

        Raises:
            ValueError: If a received event has no data
        """
        event_type = event.get("type")
        if event_type != RECEIVED_EVENT:
            return {"received": True, "skipped": f"Unhandled event type: {event_type}"}

        data = event.get("data")
        if not data:
            raise ValueError("Missing email data")

        sender = extract_sender_email(data.get("from"))
        if not sender:
            logger.warning(f"Inbound email without a usable sender: {data.get('from')!r}")
            return {"received": True, "skipped": "No sender email"}

        agent = self.repository.find_agent_by_email(sender)
        if agent is None:
            logger.info(f"Inbound email from unknown sender {sender}; ignored")
            return {"received": True, "skipped": "Sender not recognized"}

        body = (data.get("text") or data.get("html") or data.get("subject") or "").strip()
        if len(body) < MIN_BODY_LENGTH:
            return {"received": True, "skipped": "Email body too short"}

        result = self.orchestrator.create_alert(agent.agent_id, body, AlertSource.EMAIL_FORWARD)

        if self.mailer is not None:
            try:
                self.mailer.send_alert_confirmation(agent, sender, result)
            except Exception:
                logger.exception(f"Confirmation email failed for alert {result.alert_id}")

        return {"received": True, "alert_id": result.alert_id, "matched": result.matched}
