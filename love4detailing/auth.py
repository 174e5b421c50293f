import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def verify_supabase_token(token: str) -> dict:
    """
    Verify a Supabase access token (HS256, signed with the project's JWT secret).

    Returns:
        Decoded claims

    Raises:
        HTTPException: 500 when the secret is not configured, 401 for any invalid token
    """
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    if len(token.split(".")) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    try:
        claims = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Token verification failed") from e

    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token claims")
    return claims


def _user_from_claims(claims: dict, db: Session) -> User:
    """Load the profile row for a verified identity, creating it on first sight"""
    user_id = claims["sub"]
    email = (claims.get("email") or "").lower()

    user = db.query(User).filter(User.id == user_id).first()
    if user:
        return user

    if email:
        # Profile may predate the identity (e.g. provisioned during a guest booking)
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            return existing

    logger.info(f"🆕 Creating profile for authenticated user: {email}")
    metadata = claims.get("user_metadata") or {}
    user = User(id=user_id, email=email, full_name=metadata.get("full_name"), role="customer")
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except Exception:
        db.rollback()
        raise
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Current user when a valid bearer token is present, otherwise None"""
    if not credentials:
        return None
    try:
        claims = verify_supabase_token(credentials.credentials)
    except HTTPException as e:
        logger.debug(f"Ignoring unusable bearer token on public endpoint: {e.detail}")
        return None
    return _user_from_claims(claims, db)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from Supabase token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    claims = verify_supabase_token(credentials.credentials)
    user = _user_from_claims(claims, db)

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Only admins manage the schedule and booking statuses"""
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.email} attempted to access an admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
