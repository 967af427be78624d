#!/usr/bin/env python3
"""
Database Initialization Script for Academia Records

This script:
1. Tests database connectivity
2. Creates any missing tables
3. Seeds the bootstrap admin if no admin exists

Usage:
    academia-init-db                         # Create tables and seed admin
    academia-init-db --check                 # Only check connectivity
    academia-init-db --status                # Show table status
    academia-init-db --admin-password s3cret # Override BOOTSTRAP_ADMIN_PASSWORD
"""

import argparse
import asyncio
import sys

from sqlalchemy import inspect, text

from academia.core.config import settings
from academia.core.database import close_db, get_engine, get_session_local, init_db
from academia.services.user_service import UserService


async def test_connection() -> bool:
    """Test database connectivity"""
    print("\n[InitDB] Testing database connection...")
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        print("[InitDB] Database connection successful!")
        return True
    except Exception as e:
        print(f"[InitDB] ERROR: Database connection failed: {e}")
        return False


async def show_table_status() -> None:
    print("\n[InitDB] Database Table Status:")
    print("-" * 50)

    def _describe(sync_conn):
        inspector = inspect(sync_conn)
        return [(t, len(inspector.get_columns(t))) for t in sorted(inspector.get_table_names())]

    async with get_engine().connect() as conn:
        tables = await conn.run_sync(_describe)

    print(f"Total tables: {len(tables)}")
    for table, columns in tables:
        print(f"  - {table} ({columns} columns)")


async def seed_admin(password: str) -> None:
    print("\n[InitDB] Seeding bootstrap admin...")
    async with get_session_local()() as session:
        admin = await UserService(session).ensure_bootstrap_admin(
            settings.BOOTSTRAP_ADMIN_USER_ID, settings.BOOTSTRAP_ADMIN_EMAIL, password,
        )
    if admin:
        print(f"[InitDB] Admin user created (login: {settings.BOOTSTRAP_ADMIN_USER_ID})")
    elif not password:
        print("[InitDB] No admin password configured, skipping")
    else:
        print("[InitDB] An admin user already exists")


async def run(args: argparse.Namespace) -> int:
    print("=" * 50)
    print(f"  {settings.APP_NAME} - Database Initialization")
    print("=" * 50)

    try:
        if not await test_connection():
            print("\n[InitDB] FAILED: Cannot connect to database")
            return 1
        if args.check:
            return 0
        if args.status:
            await show_table_status()
            return 0

        await init_db()
        print("[InitDB] Database tables created/verified!")
        await seed_admin(args.admin_password or settings.BOOTSTRAP_ADMIN_PASSWORD)
        await show_table_status()
    finally:
        await close_db()

    print("\n" + "=" * 50)
    print("  Database Initialization Complete!")
    print("=" * 50)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=f"{settings.APP_NAME} Database Initialization")
    parser.add_argument("--check", action="store_true", help="Only check connectivity")
    parser.add_argument("--status", action="store_true", help="Show table status")
    parser.add_argument("--admin-password", default="", help="Password for the bootstrap admin")
    sys.exit(asyncio.run(run(parser.parse_args())))


if __name__ == "__main__":
    main()
