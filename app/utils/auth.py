from datetime import timedelta
from typing import Optional, Dict, Any
import uuid
import jwt

from app.config.settings import settings
from app.utils.datetime_utils import utc_now
from app.utils.logging import get_logger

logger = get_logger()

# Claims every token must carry to reach a router
REQUIRED_CLAIMS = ["sub", "username", "user_type", "exp"]


class AuthUtils:
    """Bearer tokens for admins and faculty. Login lives in the identity provider."""

    @staticmethod
    def generate_access_token(
        user_id: str,
        username: str,
        user_type: str,
        expires_in_minutes: Optional[int] = None,
    ) -> str:
        now = utc_now()
        lifetime = timedelta(
            minutes=expires_in_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        payload = {
            "sub": str(user_id),
            "username": username,
            "user_type": user_type,
            "iat": now,
            "exp": now + lifetime,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(
            payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
        )

    @staticmethod
    def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
        """Decode a token, or return None when it is expired, forged or incomplete."""
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired access token")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected access token", reason=str(e))
            return None

    @staticmethod
    def extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
        if not authorization_header:
            return None

        scheme, _, token = authorization_header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()
