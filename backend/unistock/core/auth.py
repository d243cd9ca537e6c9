"""
Authentication for the UNISTOCK backend
Validates Supabase access tokens (JWT) and provides user context
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from .config import settings

logger = logging.getLogger(__name__)


# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


class TokenUser(BaseModel):
    """User data extracted from the Supabase JWT"""
    id: str
    email: Optional[str] = None
    role: str = "authenticated"


def decode_supabase_token(token: str) -> dict:
    """
    Decode and validate a Supabase access token.

    Supabase signs session tokens with the project's JWT secret (HS256):
    {
        "sub": "user uuid",
        "email": "loja@exemplo.com.br",
        "role": "authenticated",
        "aud": "authenticated",
        "exp": 1234567890
    }
    """
    secret = settings.SUPABASE_JWT_SECRET
    if not secret:
        raise ValueError("SUPABASE_JWT_SECRET environment variable is not set")

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE
        )
    except JWTError as e:
        if "expired" in str(e).lower():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from the JWT.

    Usage:
        @router.post("/listings/sync")
        async def sync(user: TokenUser = Depends(get_current_user)):
            ...
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_supabase_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return TokenUser(
        id=user_id,
        email=payload.get("email"),
        role=payload.get("role", "authenticated")
    )


async def verify_sync_key(x_sync_key: str = Header(None, alias="X-Sync-Key")):
    """
    Verify the X-Sync-Key header used by scheduled jobs (cron).

    If SYNC_API_KEY is not configured, allows all requests.
    If configured, requires matching key.
    """
    if not settings.SYNC_API_KEY:
        logger.warning("SYNC_API_KEY not configured - scheduled endpoints are unprotected!")
        return

    if not x_sync_key:
        logger.warning("Scheduled request without X-Sync-Key header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Sync-Key header. Authentication required."
        )

    if x_sync_key != settings.SYNC_API_KEY:
        logger.warning("Invalid sync key attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )
