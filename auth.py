import logging
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
from errors import AuthError

logger = logging.getLogger(__name__)

ROLES = ("user", "doctor")

security = HTTPBearer(auto_error=False)


class Identity(NamedTuple):
    user_id: str
    role: str


def author_type_for(role: str) -> str:
    """Map a role ("user"/"doctor") to the entity-kind tag stored on forum entries."""
    return role[:1].upper() + role[1:].lower()


def create_access_token(user_id: str, role: str, expires_minutes: Optional[int] = None) -> str:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    minutes = config.JWT_EXPIRES_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "id": str(user_id),
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify(credential: str) -> Identity:
    """Decode a bearer token into an Identity. Raises AuthError (403) when it is not acceptable."""
    try:
        payload = jwt.decode(credential, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise AuthError("Invalid or expired token", status_code=403)

    user_id = payload.get("id")
    role = str(payload.get("role", "")).lower()
    if not user_id or role not in ROLES:
        logger.warning("Rejected token: missing id or unknown role")
        raise AuthError("Invalid or expired token", status_code=403)
    return Identity(user_id=str(user_id), role=role)


def get_current_identity(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthError("No token provided")
    return verify(credentials.credentials)


def require_doctor(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != "doctor":
        raise AuthError("Doctor access required", status_code=403)
    return identity


def require_user(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != "user":
        raise AuthError("Only patients can book appointments", status_code=403)
    return identity
