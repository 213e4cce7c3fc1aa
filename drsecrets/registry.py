# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Registry - SQLite-backed policy catalog and cluster secret state.

This module persists the policies and clusters known to the hub and the
secrets delivered to each cluster. SqliteObjectStore exposes it through
the ClusterObjectStore interface the engines use.

Secret rows are keyed by (cluster, secret, format), which makes adding an
existing secret an update and removing an absent one a no-op.
"""

import json
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Sequence, TypedDict

import aiosqlite

from drsecrets.exceptions import RegistryError
from drsecrets.models import DRCluster, DRPolicy, SecretFormat


class ClusterSecretRecord(TypedDict):
    """A secret delivered to a cluster."""

    cluster_name: str
    secret_name: str
    secret_format: str
    source_namespace: str
    target_namespace: str
    backup_namespace: str
    object_count: int
    placed_at: str  # ISO 8601


async def init_registry_db(db_path: Path) -> None:
    """
    Initialize the registry database schema.

    Creates the tables if they don't exist. This is idempotent
    and safe to call multiple times.

    Args:
        db_path: Path to the SQLite database file
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS policies (
                    name TEXT PRIMARY KEY,
                    clusters TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS clusters (
                    name TEXT PRIMARY KEY,
                    s3_profile_name TEXT NOT NULL DEFAULT '',
                    updated_at TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS cluster_secrets (
                    cluster_name TEXT NOT NULL,
                    secret_name TEXT NOT NULL,
                    secret_format TEXT NOT NULL,
                    source_namespace TEXT NOT NULL,
                    target_namespace TEXT NOT NULL,
                    backup_namespace TEXT NOT NULL DEFAULT '',
                    objects TEXT NOT NULL,
                    placed_at TEXT NOT NULL,
                    PRIMARY KEY (cluster_name, secret_name, secret_format)
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_cluster_secrets_secret_name
                ON cluster_secrets(secret_name)
            """)

            await db.commit()
    except Exception as e:
        raise RegistryError(
            f"Failed to initialize registry database: {e}",
            details={"db_path": str(db_path)},
        ) from e


# ============================================================================
# Policies and clusters
# ============================================================================

async def upsert_policy(db: aiosqlite.Connection, policy: DRPolicy) -> None:
    """
    Create or replace a policy.

    Args:
        db: SQLite database connection
        policy: Policy to store
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        INSERT INTO policies (name, clusters, created_at, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(name) DO UPDATE SET
            clusters = excluded.clusters,
            updated_at = excluded.updated_at
        """,
        (policy.name, json.dumps(list(policy.clusters)), now, now),
    )
    await db.commit()


async def delete_policy(db: aiosqlite.Connection, policy_name: str) -> bool:
    """
    Remove a policy from the catalog.

    Returns:
        True if the policy was deleted, False if it didn't exist
    """
    cursor = await db.execute("DELETE FROM policies WHERE name = ?", (policy_name,))
    await db.commit()
    return cursor.rowcount > 0


async def get_policy(db: aiosqlite.Connection, policy_name: str) -> DRPolicy | None:
    async with db.execute(
        "SELECT name, clusters FROM policies WHERE name = ?", (policy_name,)
    ) as cursor:
        row = await cursor.fetchone()
        return DRPolicy(name=row[0], clusters=tuple(json.loads(row[1]))) if row else None


async def list_policies(db: aiosqlite.Connection) -> List[DRPolicy]:
    """
    List every policy in the catalog, ordered by name.
    """
    async with db.execute("SELECT name, clusters FROM policies ORDER BY name") as cursor:
        rows = await cursor.fetchall()
        return [DRPolicy(name=row[0], clusters=tuple(json.loads(row[1]))) for row in rows]


async def upsert_cluster(db: aiosqlite.Connection, cluster: DRCluster) -> None:
    """
    Create or replace a cluster and its S3 profile assignment.
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        INSERT INTO clusters (name, s3_profile_name, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(name) DO UPDATE SET
            s3_profile_name = excluded.s3_profile_name,
            updated_at = excluded.updated_at
        """,
        (cluster.name, cluster.s3_profile_name, now),
    )
    await db.commit()


async def list_clusters(db: aiosqlite.Connection) -> List[DRCluster]:
    async with db.execute(
        "SELECT name, s3_profile_name FROM clusters ORDER BY name"
    ) as cursor:
        rows = await cursor.fetchall()
        return [DRCluster(name=row[0], s3_profile_name=row[1]) for row in rows]


# ============================================================================
# Cluster secrets
# ============================================================================

async def put_secret(
    db: aiosqlite.Connection,
    secret_name: str,
    cluster_name: str,
    secret_format: SecretFormat,
    source_namespace: str,
    target_namespace: str,
    objects: Sequence[Dict[str, Any]],
    backup_namespace: str = "",
) -> None:
    """
    Record a secret as present on a cluster (insert or update).

    Args:
        db: SQLite database connection
        secret_name: Secret being delivered
        cluster_name: Cluster receiving it
        secret_format: Encoding of the delivered copy
        source_namespace: Hub namespace the secret is copied from
        target_namespace: Namespace on the cluster
        objects: Access-control manifests delivered with the secret
        backup_namespace: Backup tool namespace (backup format only)
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        INSERT INTO cluster_secrets
        (cluster_name, secret_name, secret_format, source_namespace,
         target_namespace, backup_namespace, objects, placed_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(cluster_name, secret_name, secret_format) DO UPDATE SET
            source_namespace = excluded.source_namespace,
            target_namespace = excluded.target_namespace,
            backup_namespace = excluded.backup_namespace,
            objects = excluded.objects,
            placed_at = excluded.placed_at
        """,
        (
            cluster_name,
            secret_name,
            secret_format.value,
            source_namespace,
            target_namespace,
            backup_namespace,
            json.dumps(list(objects)),
            now,
        ),
    )
    await db.commit()


async def remove_secret(
    db: aiosqlite.Connection,
    secret_name: str,
    cluster_name: str,
    secret_format: SecretFormat,
) -> bool:
    """
    Remove a secret from a cluster.

    Returns:
        True if the secret was present, False otherwise
    """
    cursor = await db.execute(
        """
        DELETE FROM cluster_secrets
        WHERE cluster_name = ? AND secret_name = ? AND secret_format = ?
        """,
        (cluster_name, secret_name, secret_format.value),
    )
    await db.commit()
    return cursor.rowcount > 0


async def list_cluster_secrets(
    db: aiosqlite.Connection,
    cluster_name: str | None = None,
    secret_format: SecretFormat | None = None,
) -> List[ClusterSecretRecord]:
    """
    List delivered secrets, optionally filtered by cluster and format.
    """
    query = """
        SELECT cluster_name, secret_name, secret_format, source_namespace,
               target_namespace, backup_namespace, objects, placed_at
        FROM cluster_secrets
        WHERE 1 = 1
    """
    params: List[Any] = []

    if cluster_name is not None:
        query += " AND cluster_name = ?"
        params.append(cluster_name)

    if secret_format is not None:
        query += " AND secret_format = ?"
        params.append(secret_format.value)

    query += " ORDER BY cluster_name, secret_name, secret_format"

    records: List[ClusterSecretRecord] = []

    async with db.execute(query, params) as cursor:
        async for row in cursor:
            records.append(
                ClusterSecretRecord(
                    cluster_name=row[0],
                    secret_name=row[1],
                    secret_format=row[2],
                    source_namespace=row[3],
                    target_namespace=row[4],
                    backup_namespace=row[5],
                    object_count=len(json.loads(row[6])),
                    placed_at=row[7],
                )
            )

    return records


async def get_registry_stats(db: aiosqlite.Connection) -> dict:
    """
    Get statistics about the registry.

    Returns:
        Dict with registry statistics
    """
    stats = {}

    async with db.execute("SELECT COUNT(*) FROM policies") as cursor:
        row = await cursor.fetchone()
        stats["policies"] = row[0] if row else 0

    async with db.execute("SELECT COUNT(*) FROM clusters") as cursor:
        row = await cursor.fetchone()
        stats["clusters"] = row[0] if row else 0

    async with db.execute("SELECT COUNT(*) FROM cluster_secrets") as cursor:
        row = await cursor.fetchone()
        stats["placed_secrets"] = row[0] if row else 0

    async with db.execute(
        "SELECT COUNT(DISTINCT secret_name) FROM cluster_secrets"
    ) as cursor:
        row = await cursor.fetchone()
        stats["distinct_secrets"] = row[0] if row else 0

    return stats


class SqliteObjectStore:
    """
    ClusterObjectStore backed by the registry database.

    Opens a short-lived connection per call, so one instance can be shared
    by concurrent tasks.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path

    async def list_policies(self) -> List[DRPolicy]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                return await list_policies(db)
        except Exception as e:
            raise RegistryError(
                f"Failed to list policies: {e}",
                details={"db_path": str(self.db_path)},
            ) from e

    async def add_secret_to_cluster(
        self,
        secret_name: str,
        cluster_name: str,
        source_namespace: str,
        target_namespace: str,
        objects: Sequence[Dict[str, Any]],
        secret_format: SecretFormat,
        backup_namespace: str,
    ) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await put_secret(
                    db,
                    secret_name,
                    cluster_name,
                    secret_format,
                    source_namespace,
                    target_namespace,
                    objects,
                    backup_namespace,
                )
        except Exception as e:
            raise RegistryError(
                f"Failed to record secret on cluster: {e}",
                details={"secret_name": secret_name, "cluster_name": cluster_name},
            ) from e

    async def remove_secret_from_cluster(
        self,
        secret_name: str,
        cluster_name: str,
        source_namespace: str,
        secret_format: SecretFormat,
    ) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await remove_secret(db, secret_name, cluster_name, secret_format)
        except Exception as e:
            raise RegistryError(
                f"Failed to remove secret from cluster: {e}",
                details={"secret_name": secret_name, "cluster_name": cluster_name},
            ) from e
