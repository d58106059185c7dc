from __future__ import annotations

import pytest

from src.app.constants import PHOTO_SCAN_MARKER
from src.app.domain.errors import LimitReachedError
from src.app.domain.models import FeatureKind, UserProfile
from src.app.services.quota_service import QuotaService, classify
from tests.unit.fakes import InMemoryUserRepository


class TestClassify:
    def test_source_url_wins(self) -> None:
        assert classify("https://example.com", "https://img") == FeatureKind.LINK_IMPORT

    def test_image_only_is_photo_scan(self) -> None:
        assert classify(None, PHOTO_SCAN_MARKER) == FeatureKind.PHOTO_SCAN

    def test_nothing_is_manual(self) -> None:
        assert classify(None, None) == FeatureKind.MANUAL
        assert classify("", "") == FeatureKind.MANUAL


class TestQuotaServiceCheckQuota:
    def test_fresh_user_is_allowed(self) -> None:
        service = QuotaService(InMemoryUserRepository())

        result = service.check_quota("user-1", FeatureKind.LINK_IMPORT)

        assert result.allowed is True
        assert result.current == 0
        assert result.limit == 100

    def test_paid_user_has_no_limit(self) -> None:
        repo = InMemoryUserRepository()
        repo.profiles["user-1"] = UserProfile(user_id="user-1", subscription="lifetime")
        repo.profiles["user-1"].usage.link_imports = 10_000
        service = QuotaService(repo)

        result = service.check_quota("user-1", FeatureKind.LINK_IMPORT)

        assert result.allowed is True
        assert result.limit is None


class TestQuotaServiceEnsureQuota:
    def test_at_limit_raises_with_exact_payload(self) -> None:
        repo = InMemoryUserRepository()
        repo.get_profile("user-1").usage.link_imports = 100
        service = QuotaService(repo)

        with pytest.raises(LimitReachedError) as exc_info:
            service.ensure_quota("user-1", FeatureKind.LINK_IMPORT)

        payload = exc_info.value.to_payload()
        assert payload["type"] == "LIMIT_REACHED"
        assert payload["feature"] == "link-import"
        assert payload["current"] == 100
        assert payload["limit"] == 100

    def test_one_below_limit_passes(self) -> None:
        repo = InMemoryUserRepository()
        repo.get_profile("user-1").usage.photo_scans = 99
        service = QuotaService(repo)

        result = service.ensure_quota("user-1", FeatureKind.PHOTO_SCAN)

        assert result.allowed is True

    def test_custom_limits(self) -> None:
        repo = InMemoryUserRepository()
        repo.get_profile("user-1").usage.manual_recipes = 4
        service = QuotaService(repo, limits={"manual": 4, "link-import": 4, "photo-scan": 4})

        with pytest.raises(LimitReachedError):
            service.ensure_quota("user-1", FeatureKind.MANUAL)


class TestQuotaServiceIncrement:
    def test_increments_free_user(self) -> None:
        repo = InMemoryUserRepository()
        service = QuotaService(repo)

        service.increment("user-1", FeatureKind.MANUAL)
        service.increment("user-1", FeatureKind.MANUAL)

        assert repo.get_profile("user-1").usage.manual_recipes == 2

    def test_paid_user_is_never_counted(self) -> None:
        repo = InMemoryUserRepository()
        repo.profiles["user-1"] = UserProfile(user_id="user-1", subscription_status="trialing")
        service = QuotaService(repo)

        service.increment("user-1", FeatureKind.PHOTO_SCAN)

        assert repo.get_profile("user-1").usage.photo_scans == 0


class TestQuotaServiceGetUsage:
    def test_reports_remaining_per_feature(self) -> None:
        repo = InMemoryUserRepository()
        repo.get_profile("user-1").usage.link_imports = 30
        service = QuotaService(repo)

        usage = service.get_usage("user-1")

        assert usage["isPaid"] is False
        assert usage["features"]["link-import"] == {"current": 30, "limit": 100, "remaining": 70}
        assert usage["features"]["manual"]["remaining"] == 100

    def test_remaining_never_negative(self) -> None:
        repo = InMemoryUserRepository()
        repo.get_profile("user-1").usage.manual_recipes = 150
        service = QuotaService(repo)

        assert service.get_usage("user-1")["features"]["manual"]["remaining"] == 0

    def test_paid_user_has_no_limits(self) -> None:
        repo = InMemoryUserRepository()
        repo.profiles["user-1"] = UserProfile(user_id="user-1", subscription="pro_yearly")
        service = QuotaService(repo)

        usage = service.get_usage("user-1")

        assert usage["isPaid"] is True
        assert usage["features"]["photo-scan"]["limit"] is None
        assert usage["features"]["photo-scan"]["remaining"] is None
