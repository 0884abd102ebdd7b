"""
Administrator router: users, packages, statistics, audit log.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from photo_manager.dependencies.auth import get_admin_user
from photo_manager.dependencies.services import ServiceContainer, get_container, get_user_service
from photo_manager.exceptions import MutationStatus
from photo_manager.models.user import User
from photo_manager.schemas.audit import AuditEntryResponse
from photo_manager.schemas.user import SubscriptionChange, SystemStatistics, UserDetails, UserResponse
from photo_manager.services.user import UserService

router = APIRouter(prefix="/admin", tags=["Administration"])


@router.get(
    "/users",
    response_model=List[UserResponse],
    summary="List users",
)
async def list_users(
    admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> List[UserResponse]:
    users = await user_service.list_users()
    return [UserResponse.model_validate(u) for u in users]


@router.get(
    "/users/{user_id}",
    response_model=UserDetails,
    summary="User details",
)
async def user_details(
    user_id: str,
    admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> UserDetails:
    """Photo count, action count and storage used by one user."""
    details = await user_service.user_details(user_id)
    if details is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        )
    return details


@router.put(
    "/users/{user_id}/subscription",
    response_model=UserResponse,
    summary="Change a user's subscription package",
)
async def change_subscription(
    user_id: str,
    change: SubscriptionChange,
    admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    result = await user_service.change_subscription(admin, user_id, change.subscription_package)
    if result == MutationStatus.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        )
    if result == MutationStatus.FORBIDDEN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    user = await user_service.get_user(user_id)
    return UserResponse.model_validate(user)


@router.get(
    "/statistics",
    response_model=SystemStatistics,
    summary="System statistics",
)
async def statistics(
    admin: User = Depends(get_admin_user),
    user_service: UserService = Depends(get_user_service),
) -> SystemStatistics:
    return await user_service.statistics()


@router.get(
    "/audit",
    response_model=List[AuditEntryResponse],
    summary="Audit log entries",
)
async def audit_entries(
    actor: Optional[str] = Query(None, description="Filter by actor"),
    exact: bool = Query(False, description="Exact actor match instead of a substring match on the line"),
    admin: User = Depends(get_admin_user),
    container: ServiceContainer = Depends(get_container),
) -> List[AuditEntryResponse]:
    """
    Audit entries, oldest first.

    With ``actor`` and ``exact=false`` every line mentioning the actor is
    returned, including actions others took on them.
    """
    audit_log = container.audit_log
    if actor is None:
        entries = audit_log.all_entries()
    elif exact:
        entries = audit_log.entries_by_actor(actor)
    else:
        entries = audit_log.entries_for_actor(actor)
    return [AuditEntryResponse.model_validate(e) for e in entries]
