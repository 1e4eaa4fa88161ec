import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .domain.scheduling.repository import ProfileRepository
from .models import Profile
from .shared.validators import validate_uuid

logger = logging.getLogger(__name__)

security = HTTPBearer()

ALGORITHM = "HS256"


def verify_access_token(token: str) -> dict:
    """
    Verify a Supabase-issued access token (HS256 signed with the project's
    JWT secret) and return its claims.
    """
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        return jwt.decode(token, SUPABASE_JWT_SECRET, algorithms=[ALGORITHM], audience=JWT_AUDIENCE)
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Get the caller's profile from the bearer token, creating it on first sight"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, token length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    claims = verify_access_token(token)
    user_id = claims.get("sub")
    if not user_id or not validate_uuid(user_id):
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    profile = ProfileRepository.get_profile(db, user_id)
    if not profile:
        metadata = claims.get("user_metadata") or {}
        profile = ProfileRepository.create_profile(
            db,
            user_id,
            email=claims.get("email"),
            full_name=metadata.get("full_name") or metadata.get("name"),
        )
        logger.info(f"✅ Profile created for new user {user_id}")

    return profile
