from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Header, HTTPException, Request
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"


class CurrentUser(BaseModel):
    id: str
    role: str


def create_access_token(secret: str, user_id: str, role: str, expires_in: timedelta = timedelta(days=1)) -> str:
    now = datetime.now(timezone.utc)
    payload = {"id": user_id, "role": role, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(secret: str, token: str) -> CurrentUser:
    try:
        decoded = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Not authorized, token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Not authorized, invalid token")

    if not decoded.get("id") or not decoded.get("role"):
        logger.warning("token_payload_incomplete")
        raise HTTPException(status_code=401, detail="Not authorized, invalid token payload")
    return CurrentUser(id=str(decoded["id"]), role=str(decoded["role"]))


def require_roles(*allowed_roles: str):
    """Dependency factory: accept a Bearer token whose role is in ``allowed_roles``.

    An empty allow-list admits any authenticated user.
    """

    def dependency(request: Request, authorization: Optional[str] = Header(None)) -> CurrentUser:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Not authorized, no token provided")

        token = authorization.split(" ", 1)[1].strip()
        user = decode_token(request.app.state.settings.jwt_secret, token)
        if allowed_roles and user.role not in allowed_roles:
            logger.warning("authorization_denied", role=user.role, allowed=list(allowed_roles), path=request.url.path)
            raise HTTPException(
                status_code=403,
                detail="Forbidden: You do not have permission to perform this action",
            )
        return user

    return dependency
