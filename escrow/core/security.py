"""JWT helpers turning a bearer token into a verified caller."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from escrow.core.config import SecuritySettings
from escrow.domain.common import Caller

security = HTTPBearer(auto_error=False)

DEFAULT_TOKEN_TTL = timedelta(hours=24)


def create_access_token(
    user_id: str,
    settings: SecuritySettings,
    role: str = "user",
    expires_delta: Optional[timedelta] = None,
) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: SecuritySettings) -> Caller:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    return Caller(user_id=user_id, is_admin=payload.get("role") in settings.admin_roles)


async def get_current_caller(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    settings = request.app.state.container.settings.security
    return decode_access_token(credentials.credentials, settings)


async def get_current_admin(caller: Caller = Depends(get_current_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return caller
