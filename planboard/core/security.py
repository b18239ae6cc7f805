import uuid
from datetime import datetime, timedelta, UTC
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from planboard.core.config import settings


class TokenManager:
    """
    JWT access token utilities using python-jose.

    Tokens are issued by the authentication provider; this service only needs
    to verify them. ``create_access_token`` exists for tooling and tests.
    """

    @staticmethod
    def create_access_token(
        subject: str,
        user_id: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create a JWT access token with custom claims.
        :param subject: User identifier (email).
        :param user_id: Unique user ID (UUID).
        :param role: System role claimed by the provider.
        :param expires_delta: Optional expiration time delta for the token.
        :param additional_claims: Optional additional claims to include in the token.
        :return: Encoded token.
        """
        if expires_delta:
            expire = datetime.now(UTC) + expires_delta
        else:
            expire = datetime.now(UTC) + timedelta(
                minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
            )

        payload = {
            "sub": subject,
            "user_id": user_id,
            "role": role,
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
            "jti": str(uuid.uuid4()),
        }

        if additional_claims:
            payload.update(additional_claims)

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """
        Decode a JWT token and verify its signature.
        :param token: Encoded token.
        :return: Decoded token payload as a dictionary.
        :raises ValueError: If the token is expired or invalid.
        """
        try:
            return jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": True},
            )
        except JWTError as e:
            msg = str(e)
            if "Signature has expired" in msg:
                raise ValueError("Token has expired")
            raise ValueError(f"Invalid token: {msg}")
