"""
Shared FastAPI dependencies.

- get_current_tenant_id: Verifies the staff Bearer JWT and returns its tenant
- get_notifier: The NotificationService owned by the app lifecycle
"""

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from booking.services.notification_service import NotificationService
from shared.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify a staff JWT and return its payload.

    Tokens are issued by the external auth service with the shared
    JWT_SECRET and must carry a ``tenant_id`` claim.
    """
    try:
        payload = jwt.decode(token, get_settings().JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("tenant_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no tenant",
        )
    return payload


async def get_current_tenant_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> UUID:
    """Dependency returning the authenticated tenant's id."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    try:
        return UUID(str(payload["tenant_id"]))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid tenant in token",
        )


def get_notifier(request: Request) -> NotificationService | None:
    return getattr(request.app.state, "notification_service", None)


CurrentTenant = Annotated[UUID, Depends(get_current_tenant_id)]
Notifier = Annotated[NotificationService | None, Depends(get_notifier)]
