"""JWT bearer tokens and the actor dependencies built on them."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from loanflow.config import settings
from loanflow.services.context import APPLICANT_ROLE, STAFF_ROLES, Actor

security = HTTPBearer()

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


# ── Tokens ───────────────────────────────────────────────────


def create_access_token(
    claims: dict,
    expires_delta: Optional[timedelta] = None,
    jti: Optional[str] = None,
) -> str:
    """Sign ``claims`` (sub, name, role, tenant_id) as an access token."""
    issued_at = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes)),
        "type": TOKEN_TYPE,
        "jti": jti or uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def token_for(actor: Actor, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        {"sub": actor.id, "name": actor.name, "role": actor.role, "tenant_id": actor.tenant_id},
        expires_delta,
    )


def decode_token(token: str) -> dict:
    """Verified payload of ``token``; raises JWTError when invalid or expired."""
    return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])


# ── Dependencies ─────────────────────────────────────────────


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _unauthorized()

    subject = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if not subject or not tenant_id or payload.get("type") != TOKEN_TYPE:
        raise _unauthorized()

    return Actor(
        id=str(subject),
        name=payload.get("name") or "Solicitante",
        role=payload.get("role") or APPLICANT_ROLE,
        tenant_id=str(tenant_id),
    )


def require_roles(*roles: str):
    """Dependency factory: the acting user must hold one of ``roles``."""
    allowed = frozenset(roles)

    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor
    return role_checker


require_applicant = require_roles(APPLICANT_ROLE)
require_staff = require_roles(*STAFF_ROLES)
