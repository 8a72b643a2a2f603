"""
API layer for the conservation system.
"""

from .routes import router
from .schemas import CreateAlertRequest, CreateAlertResponse, HealthResponse

__all__ = [
    "router",
    "CreateAlertRequest",
    "CreateAlertResponse",
    "HealthResponse",
]
