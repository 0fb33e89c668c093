# callwave/core/jwt_auth.py
"""
JWT Authentication for multi-tenant API access.
Validates bearer tokens issued by the auth provider and extracts the owning user.
"""
import jwt
from typing import Optional, Dict, Any
from fastapi import HTTPException

from callwave.core.config import JWT_SECRET_KEY, JWT_ALGORITHM


class JWTAuth:
    """JWT Authentication handler"""

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """
        Decode and validate JWT token.

        Args:
            token: JWT token string

        Returns:
            Decoded token payload

        Raises:
            HTTPException: If token is invalid or expired
        """
        if not JWT_SECRET_KEY:
            raise HTTPException(status_code=401, detail="JWT authentication not configured")

        try:
            # Expiry is checked by PyJWT when the token carries an ``exp`` claim
            return jwt.decode(
                token,
                JWT_SECRET_KEY,
                algorithms=[JWT_ALGORITHM],
                options={"verify_aud": False}
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Token has expired")
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")

    @staticmethod
    def get_user_id(payload: Dict[str, Any]) -> Optional[str]:
        """
        Extract user_id from JWT payload.

        Args:
            payload: Decoded JWT payload

        Returns:
            User ID or None
        """
        user_id = (
            payload.get('user_id') or
            payload.get('sub') or
            payload.get('id')
        )
        return str(user_id) if user_id else None
