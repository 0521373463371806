from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from chapter_access.core.access import Principal
from chapter_access.core.errors import AccessError, AccessErrorKind
from chapter_access.core.security import bearer_scheme, decode_access_token
from chapter_access.db.session import get_db
from chapter_access.models.user import User

logger = logging.getLogger(__name__)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Authenticate-and-attach: bearer token -> User -> Principal on request.state.
    Every failure here is a 401.
    """
    if credentials is None or not credentials.credentials:
        raise AccessError(AccessErrorKind.UNAUTHENTICATED, "Unauthorized: No token provided").to_http_exception()

    user_id = decode_access_token(credentials.credentials).unwrap()

    user = await db.get(User, user_id)
    if not user:
        logger.info("Token subject %s does not match a user", user_id)
        raise AccessError(AccessErrorKind.UNAUTHENTICATED, "Unauthorized: User not found").to_http_exception()

    if not getattr(user, "is_active", True):
        raise AccessError(AccessErrorKind.UNAUTHENTICATED, "Unauthorized: User inactive").to_http_exception()

    principal = Principal.from_user(user)
    request.state.principal = principal
    return principal
