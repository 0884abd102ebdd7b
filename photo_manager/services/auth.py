"""
Authentication providers.

LOCAL checks passwords hashed with passlib. GOOGLE and GITHUB are OAuth
placeholders: they register users but never authenticate one.
"""
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from photo_manager.config import Settings
from photo_manager.exceptions import RegistrationError
from photo_manager.models.subscription import SubscriptionPackage
from photo_manager.models.user import AuthProvider, User, UserType
from photo_manager.repositories.base import UserStore
from photo_manager.services.audit_log import AuditLog
from photo_manager.utils.logger import log_error, log_info, log_warning
from photo_manager.utils.security import hash_password, verify_password
from photo_manager.utils.timeutils import utcnow


def _new_user_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16].upper()}"


class AuthenticationService(ABC):
    """Registers and authenticates users against one identity provider."""

    provider: AuthProvider
    id_prefix: str

    def __init__(self, users: UserStore, audit_log: AuditLog):
        self.users = users
        self.audit_log = audit_log

    @abstractmethod
    async def authenticate(self, credential: str, password: str) -> Optional[User]:
        """The matching user, or None."""

    async def register(
        self,
        username: str,
        email: Optional[str],
        password: Optional[str],
        package: SubscriptionPackage = SubscriptionPackage.FREE,
    ) -> User:
        """
        Create and save a REGISTERED user.

        Raises:
            RegistrationError: username already taken
        """
        if await self.users.find_by_username(username) is not None:
            log_error("Registration failed", event="auth", reason="username_exists")
            raise RegistrationError("Username already taken")

        user = User(
            id=_new_user_id(self.id_prefix),
            username=username,
            email=email,
            hashed_password=self._hash(password),
            user_type=UserType.REGISTERED,
            subscription_package=package,
            auth_provider=self.provider,
            is_active=True,
            registered_at=utcnow(),
        )
        user = await self.users.save(user)
        self.audit_log.append(user.id, f"User registered with {self.provider.value}")
        log_info("Registration", event="auth", user_id=user.id, provider=self.provider.value)
        return user

    def _hash(self, password: Optional[str]) -> Optional[str]:
        return None


class LocalAuthService(AuthenticationService):
    provider = AuthProvider.LOCAL
    id_prefix = "USER"

    def _hash(self, password: Optional[str]) -> Optional[str]:
        if not password:
            raise RegistrationError("Password is required for local accounts")
        return hash_password(password)

    async def authenticate(self, credential: str, password: str) -> Optional[User]:
        user = await self.users.find_by_username(credential)
        if user is None:
            log_warning("Login failed", event="auth", reason="user_not_found")
            return None
        if not user.is_active:
            log_warning("Login failed", event="auth", user_id=user.id, reason="inactive")
            return None
        if not user.hashed_password or not verify_password(password, user.hashed_password):
            log_warning("Login failed", event="auth", user_id=user.id, reason="invalid_password")
            return None
        log_info("Login", event="auth", user_id=user.id)
        return user


class GoogleAuthService(AuthenticationService):
    provider = AuthProvider.GOOGLE
    id_prefix = "GOOGLE"

    async def authenticate(self, credential: str, password: str) -> Optional[User]:
        log_warning("Google sign-in is not available", event="auth", provider=self.provider.value)
        return None


class GithubAuthService(AuthenticationService):
    provider = AuthProvider.GITHUB
    id_prefix = "GITHUB"

    async def authenticate(self, credential: str, password: str) -> Optional[User]:
        log_warning("GitHub sign-in is not available", event="auth", provider=self.provider.value)
        return None


_PROVIDERS = {
    AuthProvider.LOCAL: LocalAuthService,
    AuthProvider.GOOGLE: GoogleAuthService,
    AuthProvider.GITHUB: GithubAuthService,
}


def get_auth_service(provider: AuthProvider, users: UserStore, audit_log: AuditLog) -> AuthenticationService:
    """Authentication service for ``provider``."""
    return _PROVIDERS.get(provider, LocalAuthService)(users, audit_log)


async def create_anonymous_user(users: UserStore, audit_log: AuditLog) -> User:
    """Create and save a guest user (FREE tier, no credentials)."""
    user_id = _new_user_id("ANON")
    user = User(
        id=user_id,
        username=f"anonymous_{user_id[5:].lower()}",
        email=None,
        hashed_password=None,
        user_type=UserType.ANONYMOUS,
        subscription_package=SubscriptionPackage.FREE,
        auth_provider=AuthProvider.LOCAL,
        is_active=True,
        registered_at=utcnow(),
    )
    user = await users.save(user)
    audit_log.append(user.id, "Anonymous user entered")
    return user


async def ensure_default_admin(users: UserStore, settings: Settings) -> Optional[User]:
    """Seed the default administrator if configured and not yet present."""
    if not settings.seed_admin:
        return None
    existing = await users.find_by_id(settings.admin_user_id)
    if existing is not None:
        return existing

    admin = User(
        id=settings.admin_user_id,
        username=settings.admin_username,
        email=settings.admin_email,
        hashed_password=hash_password(settings.admin_password),
        user_type=UserType.ADMINISTRATOR,
        subscription_package=SubscriptionPackage.GOLD,
        auth_provider=AuthProvider.LOCAL,
        is_active=True,
        registered_at=utcnow(),
    )
    admin = await users.save(admin)
    log_info("Default administrator created", event="auth", user_id=admin.id)
    return admin
