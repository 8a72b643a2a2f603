"""
Core services for the conservation system.
"""

from .mongodb_client import get_mongodb_client, get_database, get_collection, Collections
from .fireworks_client import FireworksClient, is_transient_error
from .identity import IdentityVerifier
from .repository import ConservationRepository

__all__ = [
    "get_mongodb_client",
    "get_database",
    "get_collection",
    "Collections",
    "FireworksClient",
    "is_transient_error",
    "IdentityVerifier",
    "ConservationRepository",
]
