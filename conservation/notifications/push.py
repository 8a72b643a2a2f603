"""
Expo push notification sender.
"""

import logging
from typing import Any, Dict, Optional

import requests

from conservation.config import Settings, get_settings


logger = logging.getLogger(__name__)


class ExpoPushSender:
    """
    Posts a single message to the Expo push gateway.
    A ticket with status "ok" counts as delivered.
    """

    HEADERS = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
    }

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = settings or get_settings()
        self.push_url = settings.expo_push_url
        self.timeout = settings.push_timeout_seconds
        self.session = session or requests.Session()

    def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send a push notification.

        Args:
            token: Expo push token of the client's device
            title: Notification title
            body: Notification body
            data: Payload handed to the app when the notification is opened

        Returns:
            True when the gateway accepted the message
        """
        payload = {
            "to": token,
            "title": title,
            "body": body,
            "sound": "default",
            "data": data or {},
        }

        try:
            response = self.session.post(
                self.push_url,
                json=payload,
                headers=self.HEADERS,
                timeout=self.timeout,
            )
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Expo push request failed: {e}")
            return False

        ticket = result.get("data") if isinstance(result, dict) else None
        if isinstance(ticket, dict) and ticket.get("status") == "ok":
            return True

        message = ticket.get("message") if isinstance(ticket, dict) else result
        logger.error(f"Expo push rejected: {message}")
        return False
