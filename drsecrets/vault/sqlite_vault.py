# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets SQLite Vault - Audit trail of secret lifecycle operations.

Every deploy and undeploy pass is recorded as an operation, and every
secret added to or removed from a cluster as a placement linked to it.
Records are append-only; an operation row is only updated once, when it
completes or fails.
"""

import json
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterable, List, TypedDict

import aiosqlite
import structlog

from drsecrets.exceptions import VaultError
from drsecrets.models import SecretPlacement

logger = structlog.get_logger()


class OperationRecord(TypedDict):
    """Record of a deploy or undeploy pass."""

    id: str  # ULID
    timestamp: str  # ISO 8601
    kind: str  # deploy, undeploy
    policy: str
    stats: dict
    completed_at: str | None
    error: str | None


class PlacementRecord(TypedDict):
    """Record of one secret added to or removed from one cluster."""

    id: int  # Auto-increment
    operation_id: str
    cluster_name: str
    secret_name: str
    secret_format: str
    action: str  # add, remove
    recorded_at: str  # ISO 8601


async def init_vault_db(db_path: Path) -> None:
    """
    Initialize the vault database schema.

    Creates tables if they don't exist. This is idempotent.

    Args:
        db_path: Path to the SQLite database file
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS operations (
                    id TEXT PRIMARY KEY,
                    timestamp TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    policy TEXT NOT NULL,
                    stats TEXT NOT NULL,
                    completed_at TEXT,
                    error TEXT
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS placements (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    operation_id TEXT NOT NULL,
                    cluster_name TEXT NOT NULL,
                    secret_name TEXT NOT NULL,
                    secret_format TEXT NOT NULL,
                    action TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    FOREIGN KEY (operation_id) REFERENCES operations(id)
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_placements_operation_id
                ON placements(operation_id)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_operations_policy
                ON operations(policy)
            """)

            await db.commit()

        logger.info("vault_db_initialized", db_path=str(db_path))

    except Exception as e:
        raise VaultError(
            f"Failed to initialize vault database: {e}",
            details={"db_path": str(db_path)},
        ) from e


async def record_operation(
    db: aiosqlite.Connection,
    operation_id: str,
    kind: str,
    policy: str,
    stats: dict,
) -> None:
    """
    Record the start of a lifecycle operation.

    Args:
        db: SQLite database connection
        operation_id: Unique operation ID (ULID)
        kind: "deploy" or "undeploy"
        policy: Name of the policy the operation is for
        stats: Initial statistics
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        INSERT INTO operations (id, timestamp, kind, policy, stats)
        VALUES (?, ?, ?, ?, ?)
        """,
        (operation_id, now, kind, policy, json.dumps(stats)),
    )
    await db.commit()

    logger.info("operation_recorded", operation_id=operation_id, kind=kind, policy=policy)


async def complete_operation(
    db: aiosqlite.Connection,
    operation_id: str,
    stats: dict,
    error: str | None = None,
) -> None:
    """
    Mark an operation as completed.

    Args:
        db: SQLite database connection
        operation_id: Operation ID
        stats: Final statistics
        error: Error message if operation failed
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        UPDATE operations
        SET stats = ?, completed_at = ?, error = ?
        WHERE id = ?
        """,
        (json.dumps(stats), now, error, operation_id),
    )
    await db.commit()


async def record_placements(
    db: aiosqlite.Connection,
    operation_id: str,
    placements: Iterable[SecretPlacement],
) -> int:
    """
    Record the secrets an operation added or removed.

    Returns:
        Number of placements recorded
    """
    now = datetime.now(UTC).isoformat()
    rows = [
        (
            operation_id,
            p.cluster_name,
            p.secret_name,
            p.secret_format.value,
            p.action.value,
            now,
        )
        for p in placements
    ]

    if not rows:
        return 0

    await db.executemany(
        """
        INSERT INTO placements
        (operation_id, cluster_name, secret_name, secret_format, action, recorded_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        rows,
    )
    await db.commit()

    logger.debug("placements_recorded", operation_id=operation_id, count=len(rows))

    return len(rows)


def _operation_from_row(row) -> OperationRecord:
    return OperationRecord(
        id=row[0],
        timestamp=row[1],
        kind=row[2],
        policy=row[3],
        stats=json.loads(row[4]),
        completed_at=row[5],
        error=row[6],
    )


async def get_operation(
    db: aiosqlite.Connection,
    operation_id: str,
) -> OperationRecord | None:
    """
    Get an operation record.

    Args:
        db: SQLite database connection
        operation_id: Operation ID

    Returns:
        Operation record or None if not found
    """
    async with db.execute(
        """
        SELECT id, timestamp, kind, policy, stats, completed_at, error
        FROM operations WHERE id = ?
        """,
        (operation_id,),
    ) as cursor:
        row = await cursor.fetchone()
        return _operation_from_row(row) if row else None


async def list_operations(
    db: aiosqlite.Connection,
    limit: int = 50,
    offset: int = 0,
    policy: str | None = None,
) -> List[OperationRecord]:
    """
    List operations with pagination, newest first.

    Args:
        db: SQLite database connection
        limit: Maximum number of records to return
        offset: Number of records to skip
        policy: Optional filter by policy name

    Returns:
        List of operation records
    """
    query = """
        SELECT id, timestamp, kind, policy, stats, completed_at, error
        FROM operations
    """
    params: List = []

    if policy:
        query += " WHERE policy = ?"
        params.append(policy)

    query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    records: List[OperationRecord] = []

    async with db.execute(query, params) as cursor:
        async for row in cursor:
            records.append(_operation_from_row(row))

    return records


async def get_placements_by_operation(
    db: aiosqlite.Connection,
    operation_id: str,
) -> List[PlacementRecord]:
    """
    Get all placements recorded for an operation, in the order performed.
    """
    records: List[PlacementRecord] = []

    async with db.execute(
        """
        SELECT id, operation_id, cluster_name, secret_name, secret_format,
               action, recorded_at
        FROM placements
        WHERE operation_id = ?
        ORDER BY id
        """,
        (operation_id,),
    ) as cursor:
        async for row in cursor:
            records.append(
                PlacementRecord(
                    id=row[0],
                    operation_id=row[1],
                    cluster_name=row[2],
                    secret_name=row[3],
                    secret_format=row[4],
                    action=row[5],
                    recorded_at=row[6],
                )
            )

    return records


async def get_vault_stats(db: aiosqlite.Connection) -> dict:
    """
    Get vault statistics.

    Returns:
        Dict with vault statistics
    """
    stats = {}

    async with db.execute("SELECT COUNT(*) FROM operations") as cursor:
        row = await cursor.fetchone()
        stats["total_operations"] = row[0] if row else 0

    async with db.execute(
        "SELECT kind, COUNT(*) FROM operations GROUP BY kind"
    ) as cursor:
        stats["operations_by_kind"] = {row[0]: row[1] async for row in cursor}

    async with db.execute(
        "SELECT COUNT(*) FROM operations WHERE error IS NOT NULL"
    ) as cursor:
        row = await cursor.fetchone()
        stats["failed_operations"] = row[0] if row else 0

    async with db.execute(
        "SELECT action, COUNT(*) FROM placements GROUP BY action"
    ) as cursor:
        stats["placements_by_action"] = {row[0]: row[1] async for row in cursor}

    return stats
