"""
User administration: package changes, per-user details, system statistics.
"""
import logging
from collections import Counter
from typing import List, Optional

from photo_manager.exceptions import MutationStatus
from photo_manager.models.subscription import SubscriptionPackage
from photo_manager.models.user import User, UserType
from photo_manager.repositories.base import PhotoStore, UserStore
from photo_manager.schemas.user import SystemStatistics, UserDetails, UserResponse
from photo_manager.services.audit_log import AuditLog

logger = logging.getLogger("photo_manager.user")


class UserService:
    """Administrator operations over users and their photos."""

    def __init__(self, users: UserStore, photos: PhotoStore, audit_log: AuditLog):
        self.users = users
        self.photos = photos
        self.audit_log = audit_log

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.users.find_by_id(user_id)

    async def list_users(self) -> List[User]:
        return await self.users.find_all()

    async def change_subscription(
        self, admin: User, user_id: str, package: SubscriptionPackage
    ) -> MutationStatus:
        """Move ``user_id`` to ``package``. Only administrators may do this."""
        if not admin.is_admin:
            logger.warning(
                "Package change refused",
                extra={"event": "auth", "user_id": admin.id, "target_user_id": user_id},
            )
            return MutationStatus.FORBIDDEN

        user = await self.users.find_by_id(user_id)
        if user is None:
            return MutationStatus.NOT_FOUND

        user.subscription_package = package
        await self.users.save(user)
        self.audit_log.append(admin.id, f"Changed package for user {user_id} to {package.value}")
        return MutationStatus.APPLIED

    async def user_details(self, user_id: str) -> Optional[UserDetails]:
        """
        Photo count, action count and storage used by one user.

        The action count is the number of audit lines mentioning the user's
        id, including actions others took on them.
        """
        user = await self.users.find_by_id(user_id)
        if user is None:
            return None
        photos = await self.photos.find_by_author(user_id)
        return UserDetails(
            user=UserResponse.model_validate(user),
            photo_count=len(photos),
            action_count=len(self.audit_log.entries_for_actor(user_id)),
            storage_used=sum(p.file_size for p in photos),
        )

    async def statistics(self) -> SystemStatistics:
        users = await self.users.find_all()
        photos = await self.photos.find_all()
        by_type = Counter(u.user_type.value for u in users)
        by_package = Counter(u.subscription_package.value for u in users)
        return SystemStatistics(
            total_users=len(users),
            total_photos=len(photos),
            users_by_type={t.value: by_type.get(t.value, 0) for t in UserType},
            users_by_package={p.value: by_package.get(p.value, 0) for p in SubscriptionPackage},
            total_storage_used=sum(p.file_size for p in photos),
        )
