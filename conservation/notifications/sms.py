"""
Twilio SMS sender.
"""

import logging
from typing import Optional

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from conservation.config import Settings, get_settings


logger = logging.getLogger(__name__)

logging.getLogger("twilio.http_client").setLevel(logging.WARNING)


def build_twilio_client(settings: Optional[Settings] = None) -> Optional[Client]:
    """Create the Twilio REST client, or None when credentials are missing."""
    settings = settings or get_settings()
    if not settings.twilio_configured:
        logger.warning("Twilio credentials are not configured; SMS is disabled")
        return None
    return Client(settings.twilio_account_sid, settings.twilio_auth_token)


class TwilioSmsSender:
    """
    Sends SMS through Twilio. Failures are logged and reported as False.
    """

    def __init__(self, client: Optional[Client], default_from_number: Optional[str] = None):
        """
        Args:
            client: Twilio REST client (None disables SMS)
            default_from_number: Sender used when the agent has no number of their own
        """
        self.client = client
        self.default_from_number = default_from_number

    def send(self, to: str, body: str, from_number: Optional[str] = None) -> bool:
        """
        Send one SMS.

        Args:
            to: Recipient in E.164 format
            body: Message text
            from_number: Agent's provisioned number, if any

        Returns:
            True when Twilio accepted the message
        """
        sender = from_number or self.default_from_number
        if self.client is None or not sender:
            logger.warning("SMS skipped: Twilio client or sender number not configured")
            return False

        try:
            message = self.client.messages.create(body=body, from_=sender, to=to)
        except (TwilioException, requests.RequestException) as e:
            logger.error(f"Twilio SMS to {to} failed: {e}")
            return False

        logger.info(f"SMS queued to {to} (sid={getattr(message, 'sid', None)})")
        return True
