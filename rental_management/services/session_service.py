from __future__ import annotations

import logging
from typing import Any

from rental_management.schemas.users import AccountStatus, User, UserRole
from rental_management.services.identity_service import IdentityStore
from rental_management.services.results import AuthenticationResult, ErrorKind, OperationResult

AUTH_LOGGER = logging.getLogger("rental_management.auth")


class AuthenticationSession:
    """Login state for one interactive caller on top of an ``IdentityStore``."""

    def __init__(self, identity: IdentityStore):
        self._identity = identity
        self._current_user_id: str | None = None

    @property
    def identity(self) -> IdentityStore:
        return self._identity

    def login(self, username: str | None, password: str | None) -> AuthenticationResult:
        result = self._identity.verify_credentials(username, password)
        if result.success and result.user is not None:
            self._current_user_id = result.user.user_id
        return result

    def logout(self) -> None:
        if self._current_user_id is None:
            return
        AUTH_LOGGER.info("Logout user_id=%s", self._current_user_id)
        self._current_user_id = None

    def current_user(self) -> User | None:
        if self._current_user_id is None:
            return None
        return self._identity.find_by_id(self._current_user_id)

    def is_authenticated(self) -> bool:
        return self.current_user() is not None

    def has_role(self, role: UserRole) -> bool:
        user = self.current_user()
        return user is not None and user.role == role

    def list_all_users(self) -> OperationResult:
        check = authorize(self, UserRole.ADMIN)
        if not check:
            return check
        return OperationResult.ok(data=self._identity.all_users())

    def unlock_account(self, username: str) -> OperationResult:
        check = authorize(self, UserRole.ADMIN)
        if not check:
            return check
        return self._identity.unlock_account(username)

    def account_status_summary(self) -> OperationResult:
        check = authorize(self, UserRole.ADMIN)
        if not check:
            return check
        users = self._identity.all_users()
        summary: dict[str, Any] = {
            "totalUsers": len(users),
            "byStatus": {status.value: sum(1 for u in users if u.status == status) for status in AccountStatus},
            "byRole": {role.value: sum(1 for u in users if u.role == role) for role in UserRole},
            "lockedAccounts": [
                {"userID": u.user_id, "username": u.username, "fullName": u.full_name, "failedAttempts": u.failed_login_count}
                for u in users
                if u.status == AccountStatus.LOCKED
            ],
            "neverLoggedIn": [
                {"userID": u.user_id, "username": u.username, "fullName": u.full_name, "createdTime": u.created_time}
                for u in users
                if u.last_login_time is None
            ],
        }
        return OperationResult.ok(data=summary)


def authorize(session: AuthenticationSession, required_role: UserRole | None = None) -> OperationResult:
    """Single access check for restricted operations; ``data`` carries the current user."""
    user = session.current_user()
    if user is None:
        return OperationResult.fail(ErrorKind.UNAUTHENTICATED, "Please log in first.")
    if required_role is not None and user.role != required_role:
        if required_role == UserRole.ADMIN:
            message = "Access denied: Admin privileges required."
        else:
            message = f"Access denied: only {required_role.value.lower()}s can perform this action."
        return OperationResult.fail(ErrorKind.WRONG_ROLE, message)
    return OperationResult.ok(data=user)
