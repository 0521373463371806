from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chapter_access.api.deps.auth import get_current_principal
from chapter_access.core.access import Principal, RoleInfo
from chapter_access.core.config import settings
from chapter_access.core.errors import AccessError, AccessErrorKind
from chapter_access.crud.access import SqlAlchemyAccessRepository
from chapter_access.db.session import get_db
from chapter_access.services.identity import MEMBERSHIP_EXPIRED_MESSAGE, IdentityResolver
from chapter_access.services.membership_expiry import MembershipExpiryChecker
from chapter_access.services.role_inference import InferredAccess, RoleInferenceEngine

logger = logging.getLogger(__name__)


def get_access_repository(db: AsyncSession = Depends(get_db)) -> SqlAlchemyAccessRepository:
    return SqlAlchemyAccessRepository(db)


def get_expiry_checker(
    repo: SqlAlchemyAccessRepository = Depends(get_access_repository),
) -> MembershipExpiryChecker | None:
    if not settings.MEMBERSHIP_EXPIRY_ENFORCED:
        return None
    return MembershipExpiryChecker(repo)


def get_role_inference_engine(
    repo: SqlAlchemyAccessRepository = Depends(get_access_repository),
    expiry_checker: MembershipExpiryChecker | None = Depends(get_expiry_checker),
) -> RoleInferenceEngine:
    return RoleInferenceEngine(
        repo,
        IdentityResolver(repo, expiry_checker),
        admin_roles=settings.admin_role_tags,
        zone_includes_chapters=settings.ZONE_ACCESS_INCLUDES_CHAPTERS,
    )


async def get_active_principal(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    engine: RoleInferenceEngine = Depends(get_role_inference_engine),
    expiry_checker: MembershipExpiryChecker | None = Depends(get_expiry_checker),
) -> Principal:
    """
    Principal whose membership (if any) is current. For routes that check raw
    assignments without running role inference.
    """
    if engine.is_admin(principal) or expiry_checker is None:
        return principal

    try:
        status_ = await expiry_checker.check_expiry(principal.id)
    except Exception:
        logger.exception("Membership expiry lookup failed for principal %s", principal.id)
        raise AccessError(
            AccessErrorKind.INTERNAL_ERROR,
            "Server error during authentication",
            {"principal_id": principal.id, "step": "membership_expiry"},
        ).to_http_exception()

    request.state.membership_expiry = status_.expiry_info
    if not status_.active:
        logger.info("Rejecting user %s: membership expired", principal.id)
        raise AccessError(AccessErrorKind.MEMBERSHIP_EXPIRED, MEMBERSHIP_EXPIRED_MESSAGE).to_http_exception()
    return principal


async def get_inferred_access(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    engine: RoleInferenceEngine = Depends(get_role_inference_engine),
) -> InferredAccess:
    """
    Infer-and-attach: recompute RoleInfo for this request and store it (and
    the membership expiry seen while resolving) on request.state. 403 for
    missing profile / assignments / lapsed membership, 500 for anything else.
    """
    result = await engine.infer_access(principal)
    if not result.ok:
        error = result.error
        if error.kind is AccessErrorKind.INTERNAL_ERROR:
            logger.error("Role inference error for user %s: %s", principal.id, dict(error.context))
        raise error.to_http_exception()

    access = result.value
    request.state.role_info = access.role_info
    if access.expiry is not None:
        request.state.membership_expiry = access.expiry.expiry_info
    return access


async def get_role_info(access: InferredAccess = Depends(get_inferred_access)) -> RoleInfo:
    return access.role_info
