# src/app/services/quota_service.py
"""
Usage accounting service.
Classifies creations by feature and enforces the free-tier lifetime limits.
"""
from __future__ import annotations

import logging
from typing import Optional

from src.app.constants import FREE_LIMITS
from src.app.domain.errors import LimitReachedError
from src.app.domain.models import FeatureKind, QuotaCheck, UserProfile
from src.app.infra.db.base import UserRepository

logger = logging.getLogger(__name__)


def classify(source_url: Optional[str], source_image_url: Optional[str]) -> FeatureKind:
    """
    Decide which quota bucket a recipe creation counts against.

    A source URL always wins: the recipe was imported from a link, even if
    it also carries a photo reference.
    """
    if source_url:
        return FeatureKind.LINK_IMPORT
    if source_image_url:
        return FeatureKind.PHOTO_SCAN
    return FeatureKind.MANUAL


class QuotaService:
    """
    Service for managing feature quotas.

    Responsibilities:
    - Check whether a user may create another recipe of a given kind
    - Count successful creations (free users only)
    - Provide usage statistics for the upgrade prompt
    """

    def __init__(
        self,
        repository: UserRepository,
        limits: Optional[dict[str, int]] = None,
    ):
        self._repo = repository
        self.limits = dict(limits or FREE_LIMITS)

    def limit_for(self, feature: FeatureKind) -> int:
        return self.limits[feature.value]

    def check_quota(self, user_id: str, feature: FeatureKind) -> QuotaCheck:
        """
        Check if user can create one more recipe of `feature`.

        Paid users are always allowed and get no limit.
        """
        profile = self._repo.get_profile(user_id)

        if profile.is_paid:
            return QuotaCheck(allowed=True, feature=feature, current=0, limit=None)

        current = profile.usage.count_for(feature)
        limit = self.limit_for(feature)
        return QuotaCheck(allowed=current < limit, feature=feature, current=current, limit=limit)

    def ensure_quota(self, user_id: str, feature: FeatureKind) -> QuotaCheck:
        """
        Same as check_quota, but raises when the limit is reached.

        Raises:
            LimitReachedError: If current usage is at or above the limit
        """
        result = self.check_quota(user_id, feature)

        if not result.allowed:
            logger.info(
                "Quota reached: user=%s, feature=%s, current=%d, limit=%d",
                user_id,
                feature.value,
                result.current,
                result.limit,
            )
            raise LimitReachedError(feature=feature, current=result.current, limit=result.limit)

        return result

    def increment(self, user_id: str, feature: FeatureKind) -> None:
        """
        Count one successful creation. Must only run after the recipe row
        exists, so a failed insert never costs the user quota.
        """
        profile = self._repo.get_profile(user_id)
        if profile.is_paid:
            return

        new_count = self._repo.increment_usage(user_id, feature)
        logger.debug("Usage incremented: user=%s, feature=%s, count=%d", user_id, feature.value, new_count)

    def get_profile(self, user_id: str) -> UserProfile:
        return self._repo.get_profile(user_id)

    def get_usage(self, user_id: str) -> dict[str, object]:
        """Counters, limits and remaining allowance per feature."""
        profile = self._repo.get_profile(user_id)

        features = {}
        for feature in FeatureKind:
            current = profile.usage.count_for(feature)
            limit = None if profile.is_paid else self.limit_for(feature)
            features[feature.value] = {
                "current": current,
                "limit": limit,
                "remaining": None if limit is None else max(0, limit - current),
            }

        return {
            "subscription": profile.subscription,
            "subscriptionStatus": profile.subscription_status,
            "isPaid": profile.is_paid,
            "features": features,
        }
