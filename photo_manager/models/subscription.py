"""
Subscription packages and their quota limits.
"""
from dataclasses import dataclass
from enum import Enum

MiB = 1024 * 1024

# Sentinel meaning "no limit". Never compare it numerically.
UNLIMITED = -1


@dataclass(frozen=True)
class PackageLimits:
    """Quota profile of a subscription package."""

    max_upload_size: int
    daily_upload_limit: int
    max_total_photos: int

    def allows_upload_size(self, size: int) -> bool:
        """True if a file of ``size`` bytes may be uploaded."""
        if self.max_upload_size == UNLIMITED:
            return True
        return size <= self.max_upload_size

    def allows_photo_count(self, existing: int) -> bool:
        """True if a user already owning ``existing`` photos may add one more."""
        if self.max_total_photos == UNLIMITED:
            return True
        return existing < self.max_total_photos


class SubscriptionPackage(str, Enum):
    """Subscription tier of a user."""
    FREE = "FREE"
    PRO = "PRO"
    GOLD = "GOLD"

    @property
    def limits(self) -> PackageLimits:
        return _PACKAGE_LIMITS[self]

    @property
    def max_upload_size(self) -> int:
        return self.limits.max_upload_size

    @property
    def daily_upload_limit(self) -> int:
        return self.limits.daily_upload_limit

    @property
    def max_total_photos(self) -> int:
        return self.limits.max_total_photos


_PACKAGE_LIMITS = {
    SubscriptionPackage.FREE: PackageLimits(5 * MiB, 10, 50),
    SubscriptionPackage.PRO: PackageLimits(20 * MiB, 50, 500),
    SubscriptionPackage.GOLD: PackageLimits(100 * MiB, UNLIMITED, UNLIMITED),
}
