from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from rental_management.db.repository import PersistenceError, Repository
from rental_management.schemas.users import AccountStatus, User, UserRole
from rental_management.services.identifiers import ADMIN_PREFIX, CUSTOMER_PREFIX, next_identifier
from rental_management.services.passwords import PasswordHasher, Pbkdf2PasswordHasher
from rental_management.services.results import AuthenticationResult, ErrorKind, OperationResult
from rental_management.services.validation import is_blank, is_valid_password, sanitize_input, validate_registration

AUTH_LOGGER = logging.getLogger("rental_management.auth")

DEFAULT_MAX_FAILED_LOGINS = 3

DEFAULT_ACCOUNTS = [
    ("A001", "admin", "admin123", "System Administrator", "admin@rental.com", UserRole.ADMIN),
    ("C001", "john.doe", "customer123", "John Doe", "john@email.com", UserRole.CUSTOMER),
    ("C002", "jane.doe", "customer123", "Jane Smith", "jane@email.com", UserRole.CUSTOMER),
]

_PREFIX_BY_ROLE = {
    UserRole.ADMIN: ADMIN_PREFIX,
    UserRole.CUSTOMER: CUSTOMER_PREFIX,
}


class IdentityStore:
    """Owns the user collection: lookup, credential checks, lockout bookkeeping.

    Every mutation runs under one lock together with the full save of the
    collection. A failed save is logged and reported; the in-memory state
    stays authoritative.
    """

    def __init__(
        self,
        repository: Repository[User],
        hasher: PasswordHasher | None = None,
        *,
        max_failed_logins: int = DEFAULT_MAX_FAILED_LOGINS,
        seed_defaults: bool = True,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._repository = repository
        self._hasher = hasher or Pbkdf2PasswordHasher()
        self.max_failed_logins = max_failed_logins
        self._now = now
        self._lock = threading.RLock()
        self._users: dict[str, User] = {}

        loaded = self._load()
        if loaded and not self._users and seed_defaults:
            self._seed_defaults()

    def _load(self) -> bool:
        try:
            users = self._repository.load_all()
        except PersistenceError:
            AUTH_LOGGER.exception("User load failed; starting with an empty collection")
            return False
        with self._lock:
            self._users = {}
            for user in users:
                if user.user_id in self._users:
                    AUTH_LOGGER.warning("Duplicate user record user_id=%s; keeping the last one", user.user_id)
                if user.failed_login_count >= self.max_failed_logins and user.status != AccountStatus.LOCKED:
                    AUTH_LOGGER.warning(
                        "Inconsistent lockout state user_id=%s failed_attempts=%s stored_status=%s",
                        user.user_id,
                        user.failed_login_count,
                        user.status.value,
                    )
                    if user.status == AccountStatus.ACTIVE:
                        user = user.model_copy(update={"status": AccountStatus.LOCKED})
                    else:
                        user = user.model_copy(update={"failed_login_count": 0})
                self._users[user.user_id] = user
        AUTH_LOGGER.info("Loaded users count=%s", len(self._users))
        return True

    def reload(self) -> bool:
        return self._load()

    def _seed_defaults(self) -> None:
        with self._lock:
            created = self._now()
            for user_id, username, password, full_name, email, role in DEFAULT_ACCOUNTS:
                self._users[user_id] = User(
                    user_id=user_id,
                    username=username,
                    credential_hash=self._hasher.hash(password),
                    full_name=full_name,
                    email=email,
                    role=role,
                    created_time=created,
                )
            AUTH_LOGGER.info("Created default accounts count=%s", len(DEFAULT_ACCOUNTS))
            self._save()

    def _save(self) -> str | None:
        try:
            self._repository.save_all(list(self._users.values()))
        except PersistenceError as exc:
            AUTH_LOGGER.exception("User save failed")
            return str(exc)
        return None

    def _commit(self, result: OperationResult) -> OperationResult:
        error = self._save()
        return result.unsaved(error) if error else result

    def _replace(self, user: User, **changes) -> User:
        updated = user.model_copy(update=changes)
        self._users[updated.user_id] = updated
        return updated

    def find_by_username(self, username: str | None) -> User | None:
        key = (username or "").strip().lower()
        if not key:
            return None
        with self._lock:
            for user in self._users.values():
                if user.username.lower() == key:
                    return user
        return None

    def find_by_id(self, user_id: str | None) -> User | None:
        with self._lock:
            return self._users.get((user_id or "").strip())

    def all_users(self) -> tuple[User, ...]:
        with self._lock:
            return tuple(self._users.values())

    def verify_credentials(self, username: str | None, password: str | None) -> AuthenticationResult:
        if is_blank(username):
            return AuthenticationResult(False, "Username cannot be empty", error=ErrorKind.INVALID_INPUT)
        if is_blank(password):
            return AuthenticationResult(False, "Password cannot be empty", error=ErrorKind.INVALID_INPUT)

        with self._lock:
            user = self.find_by_username(username)
            if user is None:
                AUTH_LOGGER.warning("Login failed username=%s reason=unknown_user", username)
                return AuthenticationResult(False, "Username not found", error=ErrorKind.NOT_FOUND)

            if not user.can_login:
                if user.status == AccountStatus.LOCKED:
                    reason = "Account is locked due to multiple failed login attempts"
                else:
                    reason = "Account is inactive"
                AUTH_LOGGER.warning("Login rejected username=%s reason=%s", user.username, user.status.value.lower())
                return AuthenticationResult(False, reason, error=ErrorKind.ACCOUNT_BLOCKED)

            if not self._hasher.verify(user.credential_hash, password):
                failed = user.failed_login_count + 1
                status = AccountStatus.LOCKED if failed >= self.max_failed_logins else user.status
                user = self._replace(user, failed_login_count=failed, status=status)
                error = self._save()
                message = "Invalid password"
                if user.status == AccountStatus.LOCKED:
                    message += ". Account has been locked due to multiple failed attempts."
                    AUTH_LOGGER.warning("Account locked username=%s failed_attempts=%s", user.username, failed)
                else:
                    AUTH_LOGGER.warning("Login failed username=%s reason=invalid_password attempts=%s", user.username, failed)
                if error:
                    message += f" (warning: changes could not be saved: {error})"
                return AuthenticationResult(False, message, error=ErrorKind.INVALID_CREDENTIAL, saved=not error)

            user = self._replace(user, failed_login_count=0, last_login_time=self._now())
            error = self._save()
            AUTH_LOGGER.info("Login success username=%s user_id=%s", user.username, user.user_id)
            if error:
                return AuthenticationResult(
                    True,
                    f"Login successful (warning: changes could not be saved: {error})",
                    user,
                    error=ErrorKind.PERSISTENCE_FAILURE,
                    saved=False,
                )
            return AuthenticationResult(True, "Login successful", user)

    def create_account(
        self,
        username: str,
        password: str,
        full_name: str,
        email: str,
        role: UserRole = UserRole.CUSTOMER,
    ) -> OperationResult:
        username = (username or "").strip()
        full_name = sanitize_input(full_name)
        email = (email or "").strip()
        with self._lock:
            if self.find_by_username(username) is not None:
                return OperationResult.fail(ErrorKind.CONFLICT, f"Username '{username}' already exists.")
            problem = validate_registration(username, password, full_name, email)
            if problem:
                return OperationResult.fail(ErrorKind.INVALID_INPUT, problem)

            prefix = _PREFIX_BY_ROLE[role]
            user_id = next_identifier(self._users.keys(), prefix)
            user = User(
                user_id=user_id,
                username=username,
                credential_hash=self._hasher.hash(password),
                full_name=full_name,
                email=email,
                role=role,
                created_time=self._now(),
            )
            self._users[user_id] = user
            AUTH_LOGGER.info("Account created username=%s user_id=%s role=%s", username, user_id, role.value)
            return self._commit(OperationResult.ok(f"Account created. User ID: {user_id}", user))

    def register_customer(self, username: str, password: str, full_name: str, email: str) -> OperationResult:
        return self.create_account(username, password, full_name, email, UserRole.CUSTOMER)

    def unlock_account(self, username: str) -> OperationResult:
        with self._lock:
            user = self.find_by_username(username)
            if user is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "User not found.")
            if user.status != AccountStatus.LOCKED:
                return OperationResult.fail(ErrorKind.INVALID_INPUT, "Account is not locked.")
            user = self._replace(user, status=AccountStatus.ACTIVE, failed_login_count=0)
            AUTH_LOGGER.info("Account unlocked username=%s", user.username)
            return self._commit(OperationResult.ok("Account unlocked.", user))

    def change_password(self, username: str, old_password: str, new_password: str) -> OperationResult:
        if not is_valid_password(new_password):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Password must be between 6-50 characters.")
        with self._lock:
            user = self.find_by_username(username)
            if user is None or not self._hasher.verify(user.credential_hash, old_password or ""):
                AUTH_LOGGER.warning("Password change rejected username=%s", username)
                return OperationResult.fail(ErrorKind.INVALID_CREDENTIAL, "Current password is incorrect.")
            user = self._replace(user, credential_hash=self._hasher.hash(new_password), failed_login_count=0)
            AUTH_LOGGER.info("Password changed username=%s", user.username)
            return self._commit(OperationResult.ok("Password changed.", user))

    def reset_password(self, username: str, new_password: str) -> OperationResult:
        if not is_valid_password(new_password):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Password must be between 6-50 characters.")
        with self._lock:
            user = self.find_by_username(username)
            if user is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "User not found.")
            user = self._replace(user, credential_hash=self._hasher.hash(new_password), failed_login_count=0)
            AUTH_LOGGER.info("Password reset username=%s", user.username)
            return self._commit(OperationResult.ok("Password reset.", user))

    def set_account_status(self, username: str, status: AccountStatus) -> OperationResult:
        with self._lock:
            user = self.find_by_username(username)
            if user is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "User not found.")
            failed = user.failed_login_count if status == AccountStatus.LOCKED else 0
            user = self._replace(user, status=status, failed_login_count=failed)
            AUTH_LOGGER.info("Account status changed username=%s status=%s", user.username, status.value)
            return self._commit(OperationResult.ok(f"Account is now {status.value}.", user))
