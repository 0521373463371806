from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from chapter_access.crud.access import AccessRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # some drivers hand back naive datetimes for timestamptz columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ExpiryInfo:
    ho_expiry_date: Optional[datetime]
    venue_expiry_date: Optional[datetime]
    expires_at: Optional[datetime]
    days_remaining: Optional[int]


@dataclass(frozen=True)
class ExpiryStatus:
    active: bool
    expiry_info: Optional[ExpiryInfo] = None


class MembershipExpiryChecker:
    """
    A membership is current while at least one recorded package end date
    (head-office or venue) lies in the future. Principals without a member
    profile are not subject to membership rules.
    """

    def __init__(self, repo: AccessRepository, *, now: Callable[[], datetime] = _utcnow) -> None:
        self.repo = repo
        self._now = now

    async def check_expiry(self, principal_id: int) -> ExpiryStatus:
        dates = await self.repo.get_membership_dates(principal_id)
        if dates is None:
            return ExpiryStatus(active=True)

        now = _as_utc(self._now())
        ho = _as_utc(dates.ho_expiry_date)
        venue = _as_utc(dates.venue_expiry_date)
        recorded = [d for d in (ho, venue) if d is not None]
        expires_at = max(recorded) if recorded else None

        info = ExpiryInfo(
            ho_expiry_date=ho,
            venue_expiry_date=venue,
            expires_at=expires_at,
            days_remaining=(expires_at - now).days if expires_at is not None else None,
        )

        if not dates.is_active:
            logger.info("Member %s for user %s is flagged inactive", dates.member_id, principal_id)
            return ExpiryStatus(active=False, expiry_info=info)

        # nothing recorded -> nothing has lapsed
        active = expires_at is None or expires_at > now
        if not active:
            logger.info("Membership for user %s lapsed at %s", principal_id, expires_at.isoformat())
        return ExpiryStatus(active=active, expiry_info=info)
