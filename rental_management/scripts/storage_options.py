"""Storage command-line options shared by the maintenance scripts."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path

from rental_management.config import RentalSettings


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--data-dir", default=None, help="JSON data directory; defaults to RENTAL_DATA_DIR.")
    parser.add_argument("--backend", choices=["json", "sql"], default=None, help="Defaults to RENTAL_STORAGE_BACKEND.")
    parser.add_argument("--db-url", default=None, help="SQLAlchemy DB URL; defaults to RENTAL_DB_URL.")


def settings_from_args(args: argparse.Namespace, settings: RentalSettings | None = None) -> RentalSettings:
    settings = settings or RentalSettings.from_env()
    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = Path(args.data_dir)
    if args.backend:
        overrides["storage_backend"] = args.backend
    if args.db_url:
        overrides["database_url"] = args.db_url.strip()
    return dataclasses.replace(settings, **overrides) if overrides else settings
