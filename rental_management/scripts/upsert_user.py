#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging

from rental_management.app import build_repositories
from rental_management.schemas.users import UserRole
from rental_management.scripts.storage_options import add_storage_arguments, settings_from_args
from rental_management.services.identity_service import IdentityStore
from rental_management.services.passwords import Pbkdf2PasswordHasher


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create a user, reset a password or unlock an account directly in rental storage.",
    )
    parser.add_argument("--username", required=True, help="Login name (case-insensitive match for existing users)")
    parser.add_argument("--password", default=None, help="Password for a new account, or the new password with --reset-password.")
    parser.add_argument("--full-name", default="", help="Full name for a new account")
    parser.add_argument("--email", default="", help="Email for a new account")
    parser.add_argument("--role", choices=[role.value for role in UserRole], default=UserRole.CUSTOMER.value)
    parser.add_argument("--reset-password", action="store_true", help="Replace the password of an existing account.")
    parser.add_argument("--unlock", action="store_true", help="Unlock a locked account.")
    add_storage_arguments(parser)
    return parser


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    if args.reset_password and args.unlock:
        parser.error("Use either --reset-password or --unlock, not both.")
    if args.reset_password and not args.password:
        parser.error("--reset-password needs --password.")

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    settings = settings_from_args(args)
    repositories = build_repositories(settings)
    identity = IdentityStore(
        repositories.users,
        Pbkdf2PasswordHasher(settings.password_iterations),
        max_failed_logins=settings.max_failed_logins,
        seed_defaults=settings.seed_defaults,
    )

    if args.unlock:
        result = identity.unlock_account(args.username)
    elif args.reset_password:
        result = identity.reset_password(args.username, args.password)
    else:
        if not args.password:
            parser.error("--password is required to create an account.")
        result = identity.create_account(
            args.username,
            args.password,
            args.full_name,
            args.email,
            UserRole(args.role),
        )

    if not result:
        print(f"FAILED error={result.error.value if result.error else 'unknown'} message={result.message}")
        return 1

    user = result.data
    print(
        f"OK user_id={user.user_id} username={user.username} role={user.role.value} "
        f"status={user.status.value} saved={result.saved}"
    )
    return 0 if result.saved else 1


if __name__ == "__main__":
    raise SystemExit(main())
