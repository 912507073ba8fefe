"""
JWT Identity Boundary.

The storefront never issues sessions for shoppers itself; it trusts signed
JWTs from the identity provider. The token subject is the account id, and
an `admin` role claim grants access to the admin console.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# JWT Configuration
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: Optional[str] = None
    role: str = ROLE_CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def _get_secret_key() -> str:
    """Lazy-load the secret key to support testing."""
    from storefront.config import get_settings
    return get_settings().SECRET_KEY


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    role: str = ROLE_CUSTOMER,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT for an account.

    Args:
        user_id: The account id, stored as the `sub` claim.
        email: Registered email, used to match guest orders.
        role: `customer` or `admin`.
        expires_delta: Optional custom expiration time.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "role": role, "exp": expire}
    if email:
        to_encode["email"] = email

    return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)


def decode_identity(token: str) -> Optional[Identity]:
    """Return the Identity encoded in a token, or None if it is invalid."""
    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return Identity(
        user_id=user_id,
        email=payload.get("email"),
        role=payload.get("role", ROLE_CUSTOMER),
    )


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    # 1. Authorization header
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    # 2. HttpOnly cookie
    return request.cookies.get("auth_token")


async def get_optional_identity(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[Identity]:
    """Identity of the caller, or None for anonymous/guest callers."""
    token = _extract_token(request, authorization)
    if not token:
        return None
    return decode_identity(token)


async def get_current_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    """FastAPI dependency that requires an authenticated caller."""
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.info(f"🔑 Authenticated account: {identity.user_id}")
    return identity


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """FastAPI dependency for the admin console."""
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
