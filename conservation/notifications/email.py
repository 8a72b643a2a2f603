"""
Confirmation email sent to an agent after a forwarded notice is processed.
"""

import html
import logging
from typing import Optional

import resend

from conservation.config import Settings, get_settings
from conservation.pipeline.models import (
    AgentProfile,
    AlertStatus,
    ConservationReason,
    CreateAlertResult,
)
from conservation.utils.time_utils import months_from_days


logger = logging.getLogger(__name__)

REASON_LABELS = {
    ConservationReason.LAPSED_PAYMENT: "Lapsed Payment",
    ConservationReason.CANCELLATION: "Cancellation",
    ConservationReason.OTHER: "Other",
}


def build_confirmation_email(
    agent: AgentProfile,
    result: CreateAlertResult,
    app_url: str,
) -> dict:
    """
    Build subject and HTML body summarizing a newly created alert.

    Returns:
        Dict with "subject" and "html" keys
    """
    alert = result.alert
    priority_label = "HIGH PRIORITY -- chargeback risk" if alert.is_chargeback_risk else "Low priority"

    if result.matched:
        written = ""
        if alert.policy_age is not None:
            written = f" (written {months_from_days(alert.policy_age)} months ago)"
        match_note = (
            f"We matched this to {alert.client_name}'s {alert.policy_type or 'policy'}{written}."
        )
    else:
        match_note = (
            "We couldn't auto-match this to a client in your book. "
            "You can match it manually on the dashboard."
        )

    if alert.status == AlertStatus.OUTREACH_SCHEDULED:
        outreach_note = (
            "Outreach is scheduled to send automatically in 2 hours. "
            "You can cancel from your dashboard if you want to handle it personally."
        )
    else:
        outreach_note = "This is logged on your dashboard."

    badge_style = (
        "background:#FEE2E2;color:#991B1B;" if alert.is_chargeback_risk
        else "background:#E5E7EB;color:#4B5563;"
    )
    esc = html.escape

    body = f"""
<div style="font-family:Arial,sans-serif;max-width:600px;color:#2D3748;line-height:1.6;">
  <h2 style="color:#0D4D4D;margin-bottom:8px;">Conservation Alert Received</h2>
  <p>Hi {esc(agent.first_name)},</p>
  <p>We processed your forwarded conservation notification.</p>
  <div style="background:#F7FAFC;border-radius:8px;padding:16px;margin:16px 0;">
    <p style="margin:4px 0;"><strong>Client:</strong> {esc(alert.client_name)}</p>
    <p style="margin:4px 0;"><strong>Policy:</strong> {esc(alert.policy_number)} ({esc(alert.carrier)})</p>
    <p style="margin:4px 0;"><strong>Reason:</strong> {REASON_LABELS[alert.reason]}</p>
    <p style="margin:4px 0;"><strong>Priority:</strong>
      <span style="display:inline-block;padding:2px 8px;border-radius:12px;font-size:12px;font-weight:600;{badge_style}">{priority_label}</span>
    </p>
  </div>
  <p>{esc(match_note)}</p>
  <p>{esc(outreach_note)}</p>
  <p style="margin-top:24px;">
    <a href="{esc(app_url)}/dashboard" style="display:inline-block;padding:12px 24px;background:#3DD6C3;color:#0D4D4D;text-decoration:none;border-radius:8px;font-weight:600;">Open Dashboard</a>
  </p>
</div>
"""

    return {
        "subject": f"Conservation Alert Received: {alert.client_name} -- {priority_label}",
        "html": body,
    }


class ConfirmationMailer:
    """
    Sends alert confirmations through Resend.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.api_key = settings.resend_api_key
        self.from_address = settings.confirmation_from_address
        self.app_url = settings.app_url.rstrip("/")
        if self.api_key:
            resend.api_key = self.api_key

    def send_alert_confirmation(
        self,
        agent: AgentProfile,
        recipient: str,
        result: CreateAlertResult,
    ) -> Optional[str]:
        """
        Email the forwarding agent a summary of the alert.

        Returns:
            Resend message id

        Raises:
            RuntimeError: If Resend is not configured
        """
        if not self.api_key:
            raise RuntimeError("RESEND_API_KEY is not configured")

        content = build_confirmation_email(agent, result, self.app_url)
        response = resend.Emails.send({
            "from": self.from_address,
            "to": recipient,
            "subject": content["subject"],
            "html": content["html"],
        })
        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"Confirmation email sent to {recipient} for alert {result.alert_id}")
        return message_id
