# callwave/api/deps.py
"""
API dependencies for authentication.
Supports JWT bearer tokens and, for development, an X-User-Id header.
"""
from typing import Optional, Dict, Any
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from callwave.core.jwt_auth import JWTAuth

# Security scheme (optional to allow the development header)
security = HTTPBearer(auto_error=False)


async def get_current_user_flexible(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Dict[str, Any]:
    """
    Flexible authentication - accepts JWT or development header.

    Priority:
    1. JWT Bearer token (for the dashboard / API clients)
    2. X-User-Id header (for development)

    Returns user info dict with auth_type, user_id
    """
    if credentials and credentials.credentials:
        payload = JWTAuth.decode_token(credentials.credentials)
        user_id = JWTAuth.get_user_id(payload)
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User ID not found in token"
            )
        return {
            "auth_type": "jwt",
            "user_id": user_id,
            "email": payload.get("email"),
            "payload": payload
        }

    user_id = request.headers.get("x-user-id")
    if user_id:
        return {
            "auth_type": "development",
            "user_id": user_id
        }

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required. Provide a JWT token or X-User-Id header for development."
    )


async def get_user_id_flexible(
    user: Dict[str, Any] = Depends(get_current_user_flexible)
) -> str:
    """Owning user for every query"""
    return user["user_id"]
