"""
Pydantic schemas for API request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from conservation.pipeline.models import AlertStatus, ConservationAlert


class CreateAlertRequest(BaseModel):
    """Request body for creating an alert from pasted carrier text."""
    raw_text: Optional[str] = Field(
        default=None,
        alias="rawText",
        description="Carrier email body or portal text",
        examples=[
            "Notice of lapse: Policy #WL-2024-88123 for insured John Smith "
            "has entered the grace period due to non-payment of premium."
        ]
    )

    class Config:
        populate_by_name = True


class AlertIdRequest(BaseModel):
    """Request body for actions on a single alert."""
    alert_id: Optional[str] = Field(default=None, alias="alertId")

    class Config:
        populate_by_name = True


class ResolveAlertRequest(AlertIdRequest):
    """Request body for marking an alert saved or lost."""
    status: Optional[str] = Field(default=None, description="'saved' or 'lost'")
    notes: Optional[str] = Field(default=None)


class CreateAlertResponse(BaseModel):
    """Response containing the created alert."""
    success: bool = True
    alert_id: str
    matched: bool
    alert: ConservationAlert


class OutreachResponse(BaseModel):
    """Channel outcome of a manual send."""
    success: bool = True
    push_sent: bool = False
    sms_sent: bool = False


class AlertStatusResponse(BaseModel):
    """Alert status after a manual transition."""
    success: bool = True
    alert_id: str
    status: AlertStatus


class SweepResponse(BaseModel):
    """Counters from one outreach sweep."""
    success: bool = True
    outreach_fired: int = 0
    drips_sent: int = 0
    skipped: int = 0
    errors: int = 0


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(default="healthy")
    version: str
    mongodb_connected: bool
    fireworks_configured: bool
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
