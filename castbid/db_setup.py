#!/usr/bin/env python3
"""
PostgreSQL database setup and migration script for castbid.
"""

import os
import sys
import asyncio
import logging
from pathlib import Path
from typing import List

import asyncpg
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class DatabaseManager:
    """Manages database creation, migrations and connection checks"""

    def __init__(self, database_url: str, migrations_dir: Path = MIGRATIONS_DIR):
        self.database_url = database_url
        self.migrations_dir = migrations_dir

    @property
    def db_name(self) -> str:
        return self.database_url.rsplit('/', 1)[-1].split('?', 1)[0]

    async def create_database(self):
        """Create the database if it doesn't exist"""
        base_url = self.database_url.rsplit('/', 1)[0]
        conn = await asyncpg.connect(f"{base_url}/postgres")
        try:
            exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", self.db_name)
            if not exists:
                await conn.execute(f'CREATE DATABASE "{self.db_name}"')
                logger.info(f"Created database: {self.db_name}")
            else:
                logger.info(f"Database already exists: {self.db_name}")
        finally:
            await conn.close()

    def migration_files(self) -> List[Path]:
        if not self.migrations_dir.exists():
            logger.warning(f"Migrations directory not found: {self.migrations_dir}")
            return []
        return sorted(self.migrations_dir.glob("*.sql"))

    async def run_migration(self, migration_file: Path):
        logger.info(f"Running migration: {migration_file.name}")
        sql = migration_file.read_text()

        conn = await asyncpg.connect(self.database_url)
        try:
            await conn.execute(sql)
            logger.info(f"Applied migration: {migration_file.name}")
        except Exception as e:
            logger.error(f"Failed to apply migration {migration_file.name}: {e}")
            raise
        finally:
            await conn.close()

    async def run_all_migrations(self):
        # migrations are idempotent DDL, so every file runs on each setup
        for migration_file in self.migration_files():
            await self.run_migration(migration_file)

    async def test_connection(self) -> bool:
        conn = await asyncpg.connect(self.database_url)
        try:
            version = await conn.fetchval("SELECT version()")
            db_name = await conn.fetchval("SELECT current_database()")
            logger.info(f"Connected to database: {db_name}")
            logger.info(f"PostgreSQL version: {version}")
            return True
        except Exception as e:
            logger.error(f"Connection test failed: {e}")
            return False
        finally:
            await conn.close()

    async def setup_database(self) -> bool:
        logger.info("Starting database setup...")
        await self.create_database()
        await self.run_all_migrations()
        return await self.test_connection()


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "postgresql://postgres@localhost:5432/castbid")


async def main() -> bool:
    manager = DatabaseManager(get_database_url())
    try:
        success = await manager.setup_database()
    except Exception as e:
        logger.error(f"❌ Setup failed: {e}")
        return False

    if success:
        logger.info("✅ Database setup completed successfully!")
    else:
        logger.error("❌ Database setup failed!")
    return success


def run():
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    sys.exit(0 if asyncio.run(main()) else 1)


if __name__ == "__main__":
    run()
