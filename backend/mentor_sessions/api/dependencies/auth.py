# backend/mentor_sessions/api/dependencies/auth.py
"""
Caller identity.

Authentication happens upstream; the gateway forwards the authenticated
user's id in the X-User-Id header. Roles are never taken from the request:
they are derived from the session participants by the services.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from ...core.ulid_helper import is_valid_ulid

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """Return the calling user's id or reject the request with 401."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": f"Missing {USER_ID_HEADER} header", "code": "UNAUTHENTICATED"},
        )
    user_id = x_user_id.strip()
    if not is_valid_ulid(user_id):
        logger.warning("Rejected malformed %s header", USER_ID_HEADER)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": f"Invalid {USER_ID_HEADER} header", "code": "UNAUTHENTICATED"},
        )
    return user_id
