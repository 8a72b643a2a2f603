"""
Multi-channel delivery of conservation messages (push + SMS) with a
notification log entry for every message that reached the client.
"""

import logging
from typing import Any, Dict, Optional

from conservation.core.repository import ConservationRepository
from conservation.notifications.phone import is_valid_e164, normalize_phone
from conservation.notifications.push import ExpoPushSender
from conservation.notifications.sms import TwilioSmsSender
from conservation.pipeline.models import (
    AgentProfile,
    ClientRecord,
    DispatchResult,
    NotificationLogEntry,
)
from conservation.utils.time_utils import utcnow


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Sends one message through every channel the client has.
    Channel failures are logged and never raised.
    """

    def __init__(
        self,
        push_sender: ExpoPushSender,
        sms_sender: TwilioSmsSender,
        repository: ConservationRepository,
    ):
        self.push_sender = push_sender
        self.sms_sender = sms_sender
        self.repository = repository

    def _push_data(
        self,
        agent: AgentProfile,
        client: ClientRecord,
        include_booking_link: bool,
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": "conservation",
            "agentId": agent.agent_id,
            "clientId": client.client_id,
        }
        if include_booking_link and agent.scheduling_url:
            data["schedulingUrl"] = agent.scheduling_url
            data["includeBookingLink"] = True
        return data

    def send_conservation_message(
        self,
        agent: AgentProfile,
        client: ClientRecord,
        message: str,
        include_booking_link: bool = False,
    ) -> DispatchResult:
        """
        Deliver a message by push (if the client has the app) and SMS (if the
        phone normalizes to E.164), then log it when any channel succeeded.

        Args:
            agent: Sending agent
            client: Recipient
            message: Text to send
            include_booking_link: Attach the agent's scheduling link to the push payload

        Returns:
            DispatchResult with per-channel outcome
        """
        title = f"Message from {agent.name}"
        push_sent = False
        sms_sent = False

        if client.push_token:
            push_sent = self.push_sender.send(
                token=client.push_token,
                title=title,
                body=message,
                data=self._push_data(agent, client, include_booking_link),
            )

        phone = normalize_phone(client.phone or "")
        if is_valid_e164(phone):
            sms_sent = self.sms_sender.send(
                to=phone,
                body=message,
                from_number=agent.twilio_phone_number,
            )
        elif client.phone:
            logger.warning(f"Client {client.client_id} phone is not a valid E.164 number; SMS skipped")

        result = DispatchResult(push_sent=push_sent, sms_sent=sms_sent)

        if result.delivered:
            booking_url: Optional[str] = agent.scheduling_url if include_booking_link else None
            self.repository.add_notification(NotificationLogEntry(
                agent_id=agent.agent_id,
                client_id=client.client_id,
                title=title,
                body=message,
                include_booking_link=bool(booking_url),
                scheduling_url=booking_url,
                push_sent=push_sent,
                sms_sent=sms_sent,
                status="sent" if push_sent else "failed",
                sent_at=utcnow(),
            ))
        else:
            logger.warning(f"No channel delivered the conservation message to client {client.client_id}")

        return result
