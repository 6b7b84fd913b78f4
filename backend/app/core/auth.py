"""Authentication dependency for FastAPI.

Identity is owned by the upstream auth gateway. This service only needs to
know which owner a request acts for, because group names are unique per
owner. When AUTH_REQUIRED=false, returns a dev user without checking headers.
"""

import hmac
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

USER_ID_HEADER = "X-User-Id"


@dataclass(frozen=True)
class UserInfo:
    """Authenticated user information."""

    id: str


_DEV_USER = UserInfo(id="00000000-0000-0000-0000-000000000001")


async def get_current_user(request: Request) -> UserInfo:
    """FastAPI dependency returning the user a request acts for.

    When AUTH_REQUIRED=true, the Bearer token must match API_TOKEN and the
    owner is read from the X-User-Id header set by the gateway.
    """
    settings = get_settings()

    if not settings.auth_required:
        return _DEV_USER

    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    token = auth_header[7:]
    if not settings.api_token or not hmac.compare_digest(token, settings.api_token):
        logger.warning("Invalid API token", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )

    return UserInfo(id=user_id)
