"""Session validation for API requests.

The auth backend issues HS256 session JWTs whose ``sub`` claim is the
user id. The API accepts them from an ``Authorization: Bearer`` header or
from the session cookie.
"""

import jwt

from tradelog.config import AuthSettings
from tradelog.exceptions import AuthenticationError
from tradelog.logging import get_logger

logger = get_logger(__name__)


class JwtSessionProvider:
    """Resolve a session token to the user id it was issued for."""

    def __init__(self, settings: AuthSettings) -> None:
        self._secret = settings.jwt_secret.get_secret_value()
        self._algorithm = settings.jwt_algorithm
        self._audience = settings.jwt_audience

    def authenticate(self, token: str | None) -> str:
        """Return the user id for a valid token.

        Raises:
            AuthenticationError: If the token is missing, expired, or invalid,
                or if no signing secret is configured.
        """
        if not token:
            raise AuthenticationError("Authentication required. Please log in.")
        if not self._secret:
            logger.error("auth_secret_not_configured")
            raise AuthenticationError("Authentication is not configured")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"require": ["sub", "exp"], "verify_aud": self._audience is not None},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Session expired. Please log in again.") from e
        except jwt.InvalidTokenError as e:
            logger.debug("invalid_session_token", error=str(e))
            raise AuthenticationError("Invalid session token") from e

        return str(payload["sub"])


def extract_token(authorization: str | None, cookie: str | None) -> str | None:
    """Pick the bearer token from the Authorization header, else the cookie."""
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return cookie or None
