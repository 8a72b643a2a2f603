"""
Notification channels for conservation outreach.
"""

from .phone import normalize_phone, is_valid_e164
from .push import ExpoPushSender
from .sms import TwilioSmsSender, build_twilio_client
from .email import ConfirmationMailer, build_confirmation_email
from .dispatcher import NotificationDispatcher

__all__ = [
    "normalize_phone",
    "is_valid_e164",
    "ExpoPushSender",
    "TwilioSmsSender",
    "build_twilio_client",
    "ConfirmationMailer",
    "build_confirmation_email",
    "NotificationDispatcher",
]
