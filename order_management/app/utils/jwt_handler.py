"""
JWT Handler for the Order Management Service

Signs and verifies the session credentials issued at login.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError
from pydantic import BaseModel


class TokenData(BaseModel):
    """Decoded credential claims"""

    user_id: int
    email: str = ""
    expires_at: datetime


class JWTHandler:
    """
    JWT token handler for encoding and decoding credentials.

    The secret and algorithm are supplied by the caller; nothing is read
    from global configuration.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        default_expires: timedelta = timedelta(days=7),
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.default_expires = default_expires

    def encode_token(
        self, payload: Dict[str, Any], expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Encode payload into a signed JWT.

        Args:
            payload: Token claims (must include ``user_id``)
            expires_delta: Token lifetime (default: handler's default_expires)

        Returns:
            Encoded JWT token string
        """
        to_encode = payload.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or self.default_expires)

        to_encode.update(
            {
                "exp": expire,
                "iat": int(now.timestamp()),
                "type": "access",
            }
        )
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> TokenData:
        """
        Decode and validate a JWT.

        Raises:
            ValueError: If token is malformed, expired, wrongly signed or is
                missing a usable ``user_id`` claim
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise ValueError("Token has expired")
        except JWTError as e:
            raise ValueError(f"Token validation failed: {e}")

        user_id = payload.get("user_id")
        exp = payload.get("exp")
        if user_id is None or exp is None:
            raise ValueError("Invalid token payload: missing user_id or exp")

        try:
            parsed_id = int(str(user_id))
        except ValueError:
            raise ValueError("Invalid token payload: malformed user_id")
        if parsed_id <= 0:
            raise ValueError("Invalid token payload: malformed user_id")

        return TokenData(
            user_id=parsed_id,
            email=payload.get("email") or "",
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
