"""Session token verification"""

import logging

import jwt

logger = logging.getLogger(__name__)


class AuthService:
    """Validate session JWTs issued by the auth layer"""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        if not secret_key:
            raise ValueError("JWT secret key cannot be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify_token(self, token: str) -> dict | None:
        """Verify a session token and return the payload if valid"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        if payload.get("sub") is None:
            logger.warning("Session token missing sub")
            return None

        return payload
