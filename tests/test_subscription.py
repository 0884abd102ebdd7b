import pytest

from photo_manager.models.subscription import UNLIMITED, MiB, PackageLimits, SubscriptionPackage


@pytest.mark.parametrize(
    "package, max_size, daily, total",
    [
        (SubscriptionPackage.FREE, 5 * MiB, 10, 50),
        (SubscriptionPackage.PRO, 20 * MiB, 50, 500),
        (SubscriptionPackage.GOLD, 100 * MiB, UNLIMITED, UNLIMITED),
    ],
)
def test_package_limits_table(package, max_size, daily, total):
    assert package.max_upload_size == max_size
    assert package.daily_upload_limit == daily
    assert package.max_total_photos == total


def test_upload_size_limit_is_inclusive():
    limits = SubscriptionPackage.FREE.limits
    assert limits.allows_upload_size(5 * MiB)
    assert not limits.allows_upload_size(5 * MiB + 1)


def test_photo_count_limit_allows_up_to_the_maximum():
    limits = SubscriptionPackage.FREE.limits
    assert limits.allows_photo_count(49)
    assert not limits.allows_photo_count(50)


def test_unlimited_sentinel_is_never_compared_numerically():
    limits = PackageLimits(UNLIMITED, UNLIMITED, UNLIMITED)
    assert limits.allows_upload_size(10 ** 12)
    assert limits.allows_photo_count(10 ** 9)

    gold = SubscriptionPackage.GOLD.limits
    assert gold.allows_photo_count(1_000_000)
    assert not gold.allows_upload_size(100 * MiB + 1)
