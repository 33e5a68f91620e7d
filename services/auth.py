"""
Session handling.

A `SessionContext` is resolved for every request from the bearer token
(a Firebase ID token) and handed to the handlers that need it. The first
time an identity is seen its profile row is created from the token claims.
Profiles are cached for a short TTL; signing out revokes the refresh tokens
and evicts the cached profile.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Header, Query, WebSocketException, status
from firebase_admin import auth as firebase_auth
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, object_session

from config import PROFILE_CACHE_TTL_SECONDS
from database import get_db
from models.Profile import Profile
from services.exceptions import AuthenticationError
from services.firebase_app import initialize_firebase_admin
from utils.logger import get_logger

logger = get_logger(__name__)

# user_id -> (profile, expiry)
_profile_cache: Dict[str, Tuple[Profile, datetime]] = {}
PROFILE_CACHE_TTL = timedelta(seconds=PROFILE_CACHE_TTL_SECONDS)


@dataclass
class SessionContext:
    user_id: str
    claims: Dict[str, Any] = field(default_factory=dict)
    profile: Optional[Profile] = None

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")


def _get_cached_profile(user_id: str) -> Optional[Profile]:
    if user_id in _profile_cache:
        profile, expiry = _profile_cache[user_id]
        if datetime.now(timezone.utc) < expiry:
            return profile
        del _profile_cache[user_id]
    return None


def cache_profile(profile: Profile) -> None:
    # the cached row outlives the request session, so keep it detached and loaded
    db = object_session(profile)
    if db is not None:
        db.expunge(profile)
    _profile_cache[profile.id] = (profile, datetime.now(timezone.utc) + PROFILE_CACHE_TTL)


def evict_profile(user_id: str) -> None:
    _profile_cache.pop(user_id, None)


def verify_token(token: str) -> Dict[str, Any]:
    """Verify a Firebase ID token and return its claims."""
    if not initialize_firebase_admin():
        raise AuthenticationError("Authentication is not configured")
    try:
        return firebase_auth.verify_id_token(token)
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
            firebase_auth.RevokedIdTokenError, firebase_auth.CertificateFetchError) as e:
        logger.info("Rejected ID token: %s", e)
        raise AuthenticationError("Invalid or expired session") from e


def ensure_profile(db: Session, user_id: str, claims: Optional[Dict[str, Any]] = None) -> Profile:
    """Load the profile for `user_id`, creating it on first sign-in."""
    profile = _get_cached_profile(user_id)
    if profile is not None:
        return profile

    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile is None:
        claims = claims or {}
        profile = Profile(
            id=user_id,
            full_name=claims.get("name") or claims.get("full_name"),
            avatar_url=claims.get("picture"),
        )
        db.add(profile)
        try:
            db.commit()
        except IntegrityError:
            # another request created it first
            db.rollback()
            profile = db.query(Profile).filter(Profile.id == user_id).one()
        else:
            db.refresh(profile)
            logger.info("Created profile for %s", user_id)
    cache_profile(profile)
    return profile


def resolve_session(db: Session, token: Optional[str]) -> SessionContext:
    if not token:
        raise AuthenticationError("Not authenticated")
    claims = verify_token(token)
    user_id = claims.get("uid") or claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired session")
    profile = ensure_profile(db, user_id, claims)
    return SessionContext(user_id=user_id, claims=claims, profile=profile)


def sign_out(session: SessionContext) -> None:
    """End the session: revoke refresh tokens and drop cached state."""
    evict_profile(session.user_id)
    session.profile = None
    if initialize_firebase_admin():
        try:
            firebase_auth.revoke_refresh_tokens(session.user_id)
        except (ValueError, firebase_auth.UserNotFoundError) as e:
            logger.warning("Could not revoke tokens for %s: %s", session.user_id, e)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_session(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> SessionContext:
    """FastAPI dependency: the session of the calling user."""
    return resolve_session(db, _bearer(authorization))


def get_ws_session(
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> SessionContext:
    """FastAPI dependency for WebSockets, where the token travels as a query parameter."""
    try:
        return resolve_session(db, token)
    except AuthenticationError as e:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
