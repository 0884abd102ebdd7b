"""
Authentication router: registration, login, guest sessions, logout.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from photo_manager.dependencies.auth import get_current_user
from photo_manager.dependencies.services import ServiceContainer, get_container
from photo_manager.exceptions import RegistrationError
from photo_manager.models.user import User
from photo_manager.schemas.user import Token, UserCreate, UserLogin, UserResponse
from photo_manager.services.auth import create_anonymous_user, get_auth_service
from photo_manager.utils.logger import log_info, log_warning
from photo_manager.utils.security import create_access_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    user_data: UserCreate,
    container: ServiceContainer = Depends(get_container),
) -> UserResponse:
    """
    Register a new user account.

    - **username**: Username (3-100 characters, must be unique)
    - **email**: Valid email address
    - **password**: Password (8-100 characters, required for LOCAL accounts)
    - **subscription_package**: FREE, PRO or GOLD
    - **auth_provider**: LOCAL, GOOGLE or GITHUB
    """
    auth_service = get_auth_service(user_data.auth_provider, container.users, container.audit_log)
    try:
        user = await auth_service.register(
            user_data.username,
            user_data.email,
            user_data.password,
            user_data.subscription_package,
        )
    except RegistrationError as e:
        log_warning(
            "User registration failed - validation error",
            event="auth",
            error_message=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=Token,
    summary="Login to get access token",
)
async def login(
    login_data: UserLogin,
    container: ServiceContainer = Depends(get_container),
) -> Token:
    """
    Login with username and password to get a JWT access token.

    Include it in the Authorization header as `Bearer <token>`.
    """
    auth_service = get_auth_service(login_data.auth_provider, container.users, container.audit_log)
    user = await auth_service.authenticate(login_data.username, login_data.password)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    container.audit_log.append(user.id, "User logged in")
    return Token(access_token=create_access_token(user.id, settings=container.settings))


@router.post(
    "/anonymous",
    response_model=Token,
    summary="Continue as guest",
)
async def anonymous(
    container: ServiceContainer = Depends(get_container),
) -> Token:
    """
    Start a guest session. Guests can browse and search but not upload.
    """
    user = await create_anonymous_user(container.users, container.audit_log)
    log_info("Guest session started", event="auth", user_id=user.id)
    return Token(access_token=create_access_token(user.id, settings=container.settings))


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout",
)
async def logout(
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> None:
    """
    End the session: its undo history is discarded. The token itself stays
    valid until it expires.
    """
    container.end_session(current_user.id)
    container.audit_log.append(current_user.id, "User logged out")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user profile",
)
async def get_me(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """
    Get the current authenticated user's profile.
    """
    return UserResponse.model_validate(current_user)
