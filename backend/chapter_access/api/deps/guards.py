from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Sequence, Tuple

from fastapi import Depends, HTTPException, Request

from chapter_access.api.deps.roles import get_active_principal, get_role_inference_engine, get_role_info
from chapter_access.auth.permissions import PERM
from chapter_access.core.access import Principal, RoleInfo
from chapter_access.core.errors import AccessError, AccessErrorKind
from chapter_access.core.roles import parse_role_categories
from chapter_access.services.guards import (
    CHAPTER_GUARD,
    CHAPTER_ROLE_GUARD,
    DEFAULT_SOURCES,
    PERMISSION_GUARD,
    ZONE_GUARD,
    ExtractionSource,
    RequestData,
    ResourceIdExtractor,
    authorize_any_chapter_role,
    authorize_chapter_role,
    authorize_permissions,
    guard_chapter,
    guard_zone,
)
from chapter_access.services.role_inference import RoleInferenceEngine

logger = logging.getLogger(__name__)

GUARD_ERROR_MESSAGE = "Server error while authorizing request"


@contextmanager
def _guard_errors(guard: str, **context: Any) -> Iterator[Dict[str, Any]]:
    """
    HTTPExceptions (the guard's own decisions) pass through. Anything else
    raised inside the block becomes a 500 `internal_error`, logged with the
    guard name and whatever correlation fields the block filled in.
    """
    context["guard"] = guard
    try:
        yield context
    except HTTPException:
        raise
    except Exception:
        logger.exception("Guard %s failed unexpectedly: %s", guard, context)
        raise AccessError(AccessErrorKind.INTERNAL_ERROR, GUARD_ERROR_MESSAGE, dict(context)).to_http_exception()


def _principal_id(request: Request) -> Any:
    principal = getattr(request.state, "principal", None)
    return principal.id if principal is not None else None


async def read_request_data(request: Request) -> RequestData:
    """Path params, query params and (JSON object) body of the current request."""
    body: Dict[str, Any] = {}
    if "application/json" in request.headers.get("content-type", ""):
        raw = await request.body()
        if raw:
            try:
                payload = json.loads(raw)
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                body = payload

    return RequestData(
        path_params=dict(request.path_params),
        query_params=dict(request.query_params),
        body=body,
    )


def require_chapter_access(
    param: str = "chapterId",
    *,
    optional: bool = False,
    sources: Tuple[ExtractionSource, ...] = DEFAULT_SOURCES,
) -> Callable:
    """
    Allow admins, or principals whose RoleInfo lists the requested chapter.

    Args:
      param: field name looked up in path, then query, then JSON body
      optional: True => a request without the field passes through
    """
    extractor = ResourceIdExtractor(field=param, label="chapter", optional=optional, sources=sources)

    async def _checker(
        request: Request,
        role_info: RoleInfo = Depends(get_role_info),
    ) -> RoleInfo:
        with _guard_errors(CHAPTER_GUARD, principal_id=_principal_id(request)):
            data = await read_request_data(request)
            guard_chapter(role_info, data, extractor).unwrap()
        return role_info

    return _checker


def require_zone_access(
    param: str = "zoneId",
    *,
    optional: bool = False,
    sources: Tuple[ExtractionSource, ...] = DEFAULT_SOURCES,
) -> Callable:
    """
    Allow admins, or zone-level principals assigned to the requested zone.
    Chapter-level principals are always refused.
    """
    extractor = ResourceIdExtractor(field=param, label="zone", optional=optional, sources=sources)

    async def _checker(
        request: Request,
        role_info: RoleInfo = Depends(get_role_info),
    ) -> RoleInfo:
        with _guard_errors(ZONE_GUARD, principal_id=_principal_id(request)):
            data = await read_request_data(request)
            guard_zone(role_info, data, extractor).unwrap()
        return role_info

    return _checker


def require_chapter_role(
    *role_categories: str,
    param: str = "chapterId",
    sources: Tuple[ExtractionSource, ...] = DEFAULT_SOURCES,
) -> Callable:
    """
    Allow admins, or principals holding one of `role_categories` (OB / RD / DC)
    for the requested chapter. Declaring no categories denies every non-admin.
    """
    accepted = parse_role_categories(*role_categories)
    extractor = ResourceIdExtractor(field=param, label="chapter", sources=sources)

    async def _checker(
        request: Request,
        principal: Principal = Depends(get_active_principal),
        engine: RoleInferenceEngine = Depends(get_role_inference_engine),
    ) -> Principal:
        if engine.is_admin(principal):
            logger.debug("Admin user %s granted chapter access", principal.id)
            return principal

        with _guard_errors(CHAPTER_ROLE_GUARD, principal_id=principal.id) as ctx:
            data = await read_request_data(request)
            chapter_id = extractor.extract(data).unwrap()
            ctx["resource_id"] = chapter_id

            if not accepted:
                authorize_chapter_role(chapter_id, accepted, {}).unwrap()

            breakdown = (await engine.accessible_chapters(principal.id)).unwrap()
            authorize_chapter_role(chapter_id, accepted, breakdown).unwrap()

        logger.debug(
            "User %s granted chapter %s via role(s): %s",
            principal.id,
            chapter_id,
            ", ".join(c.value for c in accepted),
        )
        return principal

    return _checker


def require_any_chapter_role(*role_categories: str) -> Callable:
    """
    Drop-in guard: the principal must hold at least one chapter under any of
    `role_categories`, whichever chapter that is.
    """
    accepted = parse_role_categories(*role_categories)

    async def _checker(
        principal: Principal = Depends(get_active_principal),
        engine: RoleInferenceEngine = Depends(get_role_inference_engine),
    ) -> Principal:
        if engine.is_admin(principal):
            return principal

        with _guard_errors(CHAPTER_ROLE_GUARD, principal_id=principal.id):
            breakdown = {}
            if accepted:
                breakdown = (await engine.accessible_chapters(principal.id)).unwrap()
            authorize_any_chapter_role(accepted, breakdown).unwrap()
        return principal

    return _checker


def require_permissions(
    required: str | Sequence[str],
    *,
    any_of: bool = False,
) -> Callable:
    """
    Enforce the permission set mapped from the caller's access level.

    Args:
      required: permission string OR list of permissions
      any_of: True => any required perm passes; False => all required perms required
    """
    required_list = [required] if isinstance(required, str) else list(required)

    async def _checker(
        request: Request,
        role_info: RoleInfo = Depends(get_role_info),
    ) -> RoleInfo:
        with _guard_errors(PERMISSION_GUARD, principal_id=_principal_id(request)):
            authorize_permissions(role_info, required_list, any_of=any_of).unwrap()
        return role_info

    return _checker


require_dashboard_access = require_permissions(PERM.DASHBOARD_READ)
