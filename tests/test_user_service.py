import pytest

from photo_manager.exceptions import MutationStatus
from photo_manager.models.subscription import SubscriptionPackage
from photo_manager.services.user import UserService
from tests.conftest import make_file


@pytest.fixture
async def user_service(user_store, photo_store, audit_log, alice, bob, admin):
    for user in (alice, bob, admin):
        await user_store.save(user)
    return UserService(user_store, photo_store, audit_log)


async def test_admin_changes_package(user_service, user_store, audit_log, alice, admin):
    result = await user_service.change_subscription(admin, alice.id, SubscriptionPackage.PRO)

    assert result is MutationStatus.APPLIED
    assert (await user_store.find_by_id(alice.id)).subscription_package is SubscriptionPackage.PRO
    last = audit_log.all_entries()[-1]
    assert (last.actor, last.action) == (admin.id, f"Changed package for user {alice.id} to PRO")


async def test_non_admin_cannot_change_package(user_service, user_store, alice, bob):
    result = await user_service.change_subscription(bob, alice.id, SubscriptionPackage.GOLD)

    assert result is MutationStatus.FORBIDDEN
    assert (await user_store.find_by_id(alice.id)).subscription_package is SubscriptionPackage.FREE


async def test_change_package_of_unknown_user(user_service, admin):
    assert await user_service.change_subscription(admin, "nobody", SubscriptionPackage.PRO) is MutationStatus.NOT_FOUND


async def test_upgrade_lifts_upload_size_limit(user_service, photo_service, alice, admin):
    await user_service.change_subscription(admin, alice.id, SubscriptionPackage.PRO)

    photo = await photo_service.upload(alice, make_file(10 * 1024 * 1024))

    assert photo.file_size == 10 * 1024 * 1024


async def test_user_details(user_service, photo_service, alice, admin):
    await photo_service.upload(alice, make_file(100))
    await photo_service.upload(alice, make_file(50))
    await user_service.change_subscription(admin, alice.id, SubscriptionPackage.PRO)

    details = await user_service.user_details(alice.id)

    assert details.user.id == alice.id
    assert details.photo_count == 2
    assert details.storage_used == 150
    # two uploads plus the admin's package change mentioning alice
    assert details.action_count == 3


async def test_user_details_of_unknown_user(user_service):
    assert await user_service.user_details("nobody") is None


async def test_statistics(user_service, photo_service, alice, bob):
    await photo_service.upload(alice, make_file(100))
    await photo_service.upload(bob, make_file(300))

    stats = await user_service.statistics()

    assert stats.total_users == 3
    assert stats.total_photos == 2
    assert stats.total_storage_used == 400
    assert stats.users_by_type == {"ANONYMOUS": 0, "REGISTERED": 2, "ADMINISTRATOR": 1}
    assert stats.users_by_package == {"FREE": 2, "PRO": 0, "GOLD": 1}
