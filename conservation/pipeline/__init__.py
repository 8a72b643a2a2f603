"""
Conservation pipeline components.
"""

from .models import (
    AgentProfile,
    AlertPriority,
    AlertSource,
    AlertStatus,
    ClientMatch,
    ClientRecord,
    ConservationAlert,
    ConservationReason,
    CreateAlertResult,
    DispatchResult,
    ExtractedConservationData,
    ExtractionConfidence,
    OutreachContext,
    PolicyRecord,
    SaveabilityAssessment,
    SweepResult,
)

__all__ = [
    "AgentProfile",
    "AlertPriority",
    "AlertSource",
    "AlertStatus",
    "ClientMatch",
    "ClientRecord",
    "ConservationAlert",
    "ConservationReason",
    "CreateAlertResult",
    "DispatchResult",
    "ExtractedConservationData",
    "ExtractionConfidence",
    "OutreachContext",
    "PolicyRecord",
    "SaveabilityAssessment",
    "SweepResult",
]
