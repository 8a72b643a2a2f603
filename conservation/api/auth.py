"""
Request dependencies: the service container, the calling agent, and the
cron shared secret.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from conservation.exceptions import AuthenticationError
from conservation.services import Services


security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    """Service container built during application startup."""
    return request.app.state.services


def get_current_agent_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: Services = Depends(get_services),
) -> str:
    """
    Dependency to get the authenticated agent id.
    Validates the identity token before any processing happens.
    """
    token = credentials.credentials if credentials else None
    try:
        return services.identity.verify(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> None:
    """
    Dependency for the scheduled sweep.
    When a cron secret is configured the header must be "Bearer <secret>".
    """
    secret = services.settings.cron_secret
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
