#!/usr/bin/env python
"""Script to create a superadmin account.

Usage:
    python scripts/seed_superadmin.py owner@example.com
    SUPERADMIN_EMAIL=owner@example.com SUPERADMIN_PASSWORD=... python scripts/seed_superadmin.py

The password is read from SUPERADMIN_PASSWORD or prompted for. An email
that already has an account is left unchanged.

Requirements:
    - DATABASE_URL, ADMIN_JWT_SECRET and ADMIN_JWT_REFRESH_SECRET (or .env)
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import get_settings
from src.services.admin_auth_service import AdminAuthService
from src.stores.sql import SqlOrderStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main(email: str | None) -> None:
    """Create the superadmin if it does not exist yet."""
    settings = get_settings()
    email = email or settings.superadmin_email
    if not email:
        raise SystemExit("Pass an email or set SUPERADMIN_EMAIL")
    password = settings.superadmin_password or getpass.getpass(f"Password for {email}: ")

    seed_settings = settings.model_copy(update={"superadmin_email": email, "superadmin_password": password})
    store = SqlOrderStore(settings.database_url, isolation_level=settings.database_isolation_level)
    try:
        await store.create_schema()
        admin = await AdminAuthService(store, seed_settings).ensure_superadmin()
        logger.info("Superadmin %s (%s) is ready", admin.email, admin.role.value)
    finally:
        await store.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email", nargs="?", help="Superadmin email (defaults to SUPERADMIN_EMAIL)")
    args = parser.parse_args()
    asyncio.run(main(args.email))
