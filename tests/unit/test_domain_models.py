from __future__ import annotations

from src.app.domain.models import (
    BulkScanResult,
    Difficulty,
    FeatureKind,
    ResolvedImage,
    UsageStats,
    UserProfile,
)


class TestDifficulty:
    def test_values_are_german(self) -> None:
        assert [d.value for d in Difficulty] == ["Einfach", "Mittel", "Schwer"]


class TestUserProfile:
    def test_free_user_is_not_paid(self) -> None:
        assert UserProfile(user_id="u").is_paid is False

    def test_pro_and_lifetime_are_paid(self) -> None:
        for plan in ("pro_monthly", "pro_yearly", "lifetime"):
            assert UserProfile(user_id="u", subscription=plan).is_paid is True

    def test_trialing_counts_as_paid(self) -> None:
        profile = UserProfile(user_id="u", subscription="free", subscription_status="trialing")
        assert profile.is_paid is True

    def test_canceled_free_user_is_not_paid(self) -> None:
        profile = UserProfile(user_id="u", subscription="free", subscription_status="canceled")
        assert profile.is_paid is False


class TestUsageStats:
    def test_count_for_each_feature(self) -> None:
        usage = UsageStats(manual_recipes=1, link_imports=2, photo_scans=3)

        assert usage.count_for(FeatureKind.MANUAL) == 1
        assert usage.count_for(FeatureKind.LINK_IMPORT) == 2
        assert usage.count_for(FeatureKind.PHOTO_SCAN) == 3


class TestResults:
    def test_bulk_result_total(self) -> None:
        result = BulkScanResult(succeeded=["a", "b"], failed_count=3)
        assert result.total == 5

    def test_resolved_image_is_stored(self) -> None:
        assert ResolvedImage().is_stored is False
        assert ResolvedImage(storage_id="k", display_url="u").is_stored is True
