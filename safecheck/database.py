# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Check-in record store for SafeCheck.

Persists CheckInRecords in SQLite and answers the history queries the
command line needs. Uses aiosqlite for async database operations.

Usage:
    from safecheck.database import Database

    db = Database("data/safecheck.db")
    await db.initialize()
    await db.insert_check_in(record)
    await db.close()
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import aiosqlite

from safecheck.models.checkin import CheckInRecord

logger = logging.getLogger(__name__)


class Database:
    """Async SQLite store for check-in records.

    Attributes:
        db_path: Path to SQLite database file (":memory:" for tests)
    """

    def __init__(self, db_path: str):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        logger.info(f"Database initialized (path: {db_path})")

    async def initialize(self) -> None:
        """Open the connection and create tables if they don't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)
            logger.info(f"Created database directory: {db_dir}")

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._create_tables()
        logger.info("Database initialized and tables created")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def _create_tables(self) -> None:
        async with self._connection.cursor() as cursor:
            await cursor.execute("""
                CREATE TABLE IF NOT EXISTS check_ins (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    checked_in_at DATETIME NOT NULL,
                    battery_level INTEGER,
                    is_charging BOOLEAN
                )
            """)

            await cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_check_ins_user_time
                ON check_ins(user_id, checked_in_at)
            """)

            await self._connection.commit()

    @staticmethod
    def _row_to_dict(row) -> Dict[str, Any]:
        data = dict(row)
        if data.get("is_charging") is not None:
            data["is_charging"] = bool(data["is_charging"])
        return data

    async def insert_check_in(self, record: CheckInRecord) -> int:
        """Store a check-in.

        Battery columns stay NULL when the record carries no telemetry.

        Args:
            record: CheckInRecord to persist

        Returns:
            ID of the inserted row
        """
        payload = record.to_insert_dict()

        async with self._connection.cursor() as cursor:
            await cursor.execute("""
                INSERT INTO check_ins
                (user_id, checked_in_at, battery_level, is_charging)
                VALUES (?, ?, ?, ?)
            """, (
                payload["user_id"],
                payload["timestamp"],
                payload.get("battery_level"),
                payload.get("is_charging"),
            ))
            await self._connection.commit()
            logger.debug(f"Stored check-in {cursor.lastrowid} for {record.user_id}")
            return cursor.lastrowid

    async def get_check_ins(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Get a user's check-ins, newest first."""
        async with self._connection.cursor() as cursor:
            await cursor.execute("""
                SELECT * FROM check_ins
                WHERE user_id = ?
                ORDER BY checked_in_at DESC
                LIMIT ?
            """, (user_id, limit))
            rows = await cursor.fetchall()
            return [self._row_to_dict(row) for row in rows]

    async def get_latest_check_in(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the most recent check-in.

        Returns:
            Most recent check-in as dict, or None if the user never checked in
        """
        rows = await self.get_check_ins(user_id, limit=1)
        return rows[0] if rows else None

    async def cleanup_old_check_ins(self, days: int = 365) -> int:
        """Delete check-ins older than the retention period.

        Returns:
            Number of deleted rows
        """
        cutoff = (datetime.now() - timedelta(days=days)).isoformat()

        async with self._connection.cursor() as cursor:
            await cursor.execute("""
                DELETE FROM check_ins WHERE checked_in_at < ?
            """, (cutoff,))
            deleted = cursor.rowcount
            await self._connection.commit()

        logger.info(f"Check-in cleanup: {deleted} removed")
        return deleted
