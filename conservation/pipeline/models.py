"""
Pydantic models for the conservation pipeline.
These models define the records read from storage, the data passed between
pipeline steps, and the persisted alert document.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from conservation.utils.time_utils import utcnow


UNKNOWN = "Unknown"
DEFAULT_AGENT_NAME = "Your Agent"


class ConservationReason(str, Enum):
    """Why the carrier flagged the policy."""
    LAPSED_PAYMENT = "lapsed_payment"
    CANCELLATION = "cancellation"
    OTHER = "other"


class ExtractionConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertSource(str, Enum):
    """How the carrier notice reached us."""
    EMAIL_FORWARD = "email_forward"
    PASTE = "paste"


class AlertPriority(str, Enum):
    HIGH = "high"
    LOW = "low"


class AlertStatus(str, Enum):
    """Workflow status of a conservation alert."""
    NEW = "new"
    OUTREACH_SCHEDULED = "outreach_scheduled"
    OUTREACH_SENT = "outreach_sent"
    DRIP_1 = "drip_1"
    DRIP_2 = "drip_2"
    DRIP_3 = "drip_3"
    SAVED = "saved"
    LOST = "lost"


# ---------------------------------------------------------------------------
# Records owned by the surrounding product (read-only here, except status)
# ---------------------------------------------------------------------------

class AgentProfile(BaseModel):
    """Agent details used to personalize outreach."""
    agent_id: str
    name: str = Field(default=DEFAULT_AGENT_NAME)
    email: Optional[str] = Field(default=None)
    scheduling_url: Optional[str] = Field(default=None, description="Booking link offered to clients")
    twilio_phone_number: Optional[str] = Field(default=None, description="Agent's provisioned SMS sender")

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0]


class PolicyRecord(BaseModel):
    """Policy embedded in a client document."""
    policy_id: str
    policy_number: Optional[str] = Field(default=None)
    policy_type: Optional[str] = Field(default=None)
    premium_amount: Optional[float] = Field(default=None, description="Monthly premium in dollars")
    coverage_amount: Optional[float] = Field(default=None, description="Face amount in dollars")
    status: Optional[str] = Field(default=None, description="Active, Lapsed, ...")
    created_at: Optional[datetime] = Field(default=None)


class ClientRecord(BaseModel):
    """Client in an agent's book, with policies in stored order."""
    client_id: str
    agent_id: str
    name: str = Field(default="")
    phone: Optional[str] = Field(default=None)
    push_token: Optional[str] = Field(default=None, description="Expo token when the companion app is installed")
    policies: List[PolicyRecord] = Field(default_factory=list)

    @property
    def has_app(self) -> bool:
        return bool(self.push_token)


# ---------------------------------------------------------------------------
# Step results
# ---------------------------------------------------------------------------

class ExtractedConservationData(BaseModel):
    """Step 1: Structured fields pulled from the carrier notice."""
    client_name: str = Field(default=UNKNOWN)
    policy_number: str = Field(default=UNKNOWN)
    carrier: str = Field(default=UNKNOWN)
    reason: ConservationReason = Field(default=ConservationReason.OTHER)
    confidence: ExtractionConfidence = Field(default=ExtractionConfidence.LOW)
    extraction_failed: bool = Field(
        default=False,
        description="True when the values are placeholders because the call or parse failed"
    )

    @classmethod
    def placeholder(cls) -> "ExtractedConservationData":
        return cls(extraction_failed=True)


class ClientMatch(BaseModel):
    """Step 2: Best-effort association of the notice to a client/policy."""
    client_id: str
    client_name: str
    client_phone: Optional[str] = Field(default=None)
    client_has_app: bool = Field(default=False)
    policy_id: str
    policy_age: Optional[int] = Field(default=None, description="Whole days since the policy was written")
    is_chargeback_risk: bool = Field(default=False)
    premium_amount: Optional[float] = Field(default=None)
    policy_type: Optional[str] = Field(default=None)
    coverage_amount: Optional[float] = Field(default=None)
    client_policy_count: int = Field(default=0)


class OutreachContext(BaseModel):
    """Input for composing one outreach text."""
    client_first_name: str
    client_name: str
    agent_name: str
    agent_first_name: str
    policy_type: Optional[str] = Field(default=None)
    policy_age: Optional[int] = Field(default=None)
    reason: ConservationReason = Field(default=ConservationReason.OTHER)
    scheduling_url: Optional[str] = Field(default=None)
    drip_number: int = Field(default=0, ge=0, le=3, description="0 = initial, 1-3 = follow-ups")
    premium_amount: Optional[float] = Field(default=None)
    coverage_amount: Optional[float] = Field(default=None)


class SaveabilityAssessment(BaseModel):
    """Deterministic outlook on whether the policy can be saved."""
    outlook: str
    factors: List[str] = Field(default_factory=list)

    @property
    def summary(self) -> str:
        return f"{self.outlook} -- {', '.join(self.factors)}."


# ---------------------------------------------------------------------------
# Persisted alert
# ---------------------------------------------------------------------------

class ConservationAlert(BaseModel):
    """One detected at-risk policy event."""
    alert_id: str
    agent_id: str

    # Identity
    source: AlertSource
    raw_text: str

    # Extracted identity
    client_name: str = Field(default=UNKNOWN)
    policy_number: str = Field(default=UNKNOWN)
    carrier: str = Field(default=UNKNOWN)
    reason: ConservationReason = Field(default=ConservationReason.OTHER)
    extraction_confidence: ExtractionConfidence = Field(default=ExtractionConfidence.LOW)
    extraction_failed: bool = Field(default=False)

    # Match result
    client_id: Optional[str] = Field(default=None)
    policy_id: Optional[str] = Field(default=None)

    # Derived
    policy_age: Optional[int] = Field(default=None)
    is_chargeback_risk: bool = Field(default=False)
    priority: AlertPriority = Field(default=AlertPriority.LOW)
    premium_amount: Optional[float] = Field(default=None)
    policy_type: Optional[str] = Field(default=None)
    client_has_app: bool = Field(default=False)
    client_policy_count: Optional[int] = Field(default=None)

    # Workflow
    status: AlertStatus = Field(default=AlertStatus.NEW)
    scheduled_outreach_at: Optional[datetime] = Field(default=None)
    outreach_sent_at: Optional[datetime] = Field(default=None)
    push_sent_at: Optional[datetime] = Field(default=None)
    sms_sent_at: Optional[datetime] = Field(default=None)
    last_drip_at: Optional[datetime] = Field(default=None)
    drip_count: int = Field(default=0)
    initial_message: Optional[str] = Field(default=None)
    drip_messages: List[str] = Field(default_factory=list)
    ai_insight: Optional[str] = Field(default=None, description="Saveability narrative")

    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = Field(default=None)

    @model_validator(mode="after")
    def _drip_messages_match_count(self) -> "ConservationAlert":
        if len(self.drip_messages) != self.drip_count:
            raise ValueError(
                f"drip_count {self.drip_count} does not match "
                f"{len(self.drip_messages)} drip messages"
            )
        return self

    @property
    def matched(self) -> bool:
        return self.client_id is not None


class CreateAlertResult(BaseModel):
    """Result of the alert orchestrator."""
    alert_id: str
    alert: ConservationAlert
    matched: bool


# ---------------------------------------------------------------------------
# Notifications and sweep bookkeeping
# ---------------------------------------------------------------------------

class NotificationLogEntry(BaseModel):
    """Record of a conservation message delivered to a client."""
    agent_id: str
    client_id: str
    type: str = Field(default="conservation")
    title: str
    body: str
    include_booking_link: bool = Field(default=False)
    scheduling_url: Optional[str] = Field(default=None)
    push_sent: bool = Field(default=False)
    sms_sent: bool = Field(default=False)
    status: str = Field(description="'sent' when the in-app push was delivered, else 'failed'")
    sent_at: datetime = Field(default_factory=utcnow)
    read_at: Optional[datetime] = Field(default=None)


class DispatchResult(BaseModel):
    """Which channels accepted a message."""
    push_sent: bool = Field(default=False)
    sms_sent: bool = Field(default=False)

    @property
    def delivered(self) -> bool:
        return self.push_sent or self.sms_sent


class SweepResult(BaseModel):
    """Counters for one outreach sweep."""
    outreach_fired: int = Field(default=0)
    drips_sent: int = Field(default=0)
    skipped: int = Field(default=0)
    errors: int = Field(default=0)
    started_at: datetime = Field(default_factory=utcnow)
