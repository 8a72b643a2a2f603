"""
Verification of agent identity tokens issued by the external identity provider.
"""

import logging
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from conservation.config import Settings, get_settings
from conservation.exceptions import AuthenticationError


logger = logging.getLogger(__name__)


class IdentityVerifier:
    """
    Decodes a bearer token and returns the agent id it was issued for.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.secret = settings.identity_jwt_secret
        self.algorithm = settings.identity_jwt_algorithm
        self.audience = settings.identity_jwt_audience

    def verify(self, token: Optional[str]) -> str:
        """
        Verify a token.

        Args:
            token: Raw JWT from the Authorization header

        Returns:
            Agent id (the "sub" claim, or "uid" when the provider uses that)

        Raises:
            AuthenticationError: Missing, invalid or expired token
        """
        if not token:
            raise AuthenticationError("Missing identity token")
        if not self.secret:
            raise AuthenticationError("Identity verification is not configured")

        options = {"verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except ExpiredSignatureError:
            raise AuthenticationError("Identity token has expired")
        except JWTError as e:
            logger.info(f"Rejected identity token: {e}")
            raise AuthenticationError("Invalid identity token")

        agent_id = payload.get("sub") or payload.get("uid")
        if not agent_id:
            raise AuthenticationError("Identity token has no subject")
        return str(agent_id)
