# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Core - Orchestrates secret lifecycle passes for registered policies.

This module ties the registry, the engines, the serialization guard and
the audit vault together: it loads the policy and clusters from the
registry, runs the engine and updates the registry under one acquisition
of the process' single guard, and records the outcome.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, TypedDict

import aiosqlite
import structlog
from ulid import ULID

from drsecrets.config import DRSecretsConfig
from drsecrets.distribution import DeployResult, deploy_with_guard_held
from drsecrets.errors import explain_unknown_policy
from drsecrets.exceptions import RegistryError
from drsecrets.guard import LifecycleGuard, SerializationGuard
from drsecrets.models import DRCluster, DRPolicy, SecretFormat
from drsecrets.profiles import ProfileDirectory
from drsecrets.reclamation import UndeployResult, undeploy_with_guard_held
from drsecrets.registry import (
    SqliteObjectStore,
    delete_policy,
    get_policy,
    init_registry_db,
    list_cluster_secrets,
    list_clusters,
    list_policies,
)
from drsecrets.resolver import must_have_secrets
from drsecrets.vault import (
    complete_operation,
    init_vault_db,
    record_operation,
    record_placements,
)

logger = structlog.get_logger()


@dataclass
class DRSecretsMetrics:
    """Counters for secret lifecycle operations."""

    total_deploys: int
    total_undeploys: int
    total_pushed: int
    total_removed: int
    placed_secrets: int
    last_run_at: datetime | None
    last_error: str | None


class SecretsState(TypedDict):
    """Runtime state for secret lifecycle operations."""

    registry_db_path: Path
    vault_db_path: Path
    state_path: Path
    store: SqliteObjectStore
    guard: LifecycleGuard
    last_run_at: datetime | None
    total_deploys: int
    total_undeploys: int
    total_pushed: int
    total_removed: int
    last_error: str | None


async def initialize_state(
    config: DRSecretsConfig,
    guard: LifecycleGuard | None = None,
) -> SecretsState:
    """
    Initialize runtime state.

    Creates the state directory and databases. A fresh SerializationGuard
    is created unless one is passed in; the guard must be shared by
    everything that deploys or undeploys in this process.

    Args:
        config: drsecrets configuration
        guard: Optional guard to use instead of a new SerializationGuard

    Returns:
        Initialized SecretsState dictionary
    """
    config.state_path.mkdir(parents=True, exist_ok=True)
    registry_path = config.state_path / "registry.db"
    vault_db_path = config.state_path / "vault.db"

    await init_registry_db(registry_path)
    await init_vault_db(vault_db_path)

    logger.info(
        "secrets_state_initialized",
        state_path=str(config.state_path),
        distribution_enabled=config.secret_distribution_enabled,
        backup_format_enabled=config.backup_format_enabled,
    )

    return SecretsState(
        registry_db_path=registry_path,
        vault_db_path=vault_db_path,
        state_path=config.state_path,
        store=SqliteObjectStore(registry_path),
        guard=guard if guard is not None else SerializationGuard(),
        last_run_at=None,
        total_deploys=0,
        total_undeploys=0,
        total_pushed=0,
        total_removed=0,
        last_error=None,
    )


async def _load_policy_and_clusters(
    state: SecretsState,
    policy_name: str,
) -> tuple[DRPolicy, List[DRCluster]]:
    async with aiosqlite.connect(state["registry_db_path"]) as db:
        policy = await get_policy(db, policy_name)
        clusters = await list_clusters(db)

    if policy is None:
        raise RegistryError(
            explain_unknown_policy(policy_name),
            details={"policy": policy_name},
        )

    return policy, clusters


async def propagate_policy(
    config: DRSecretsConfig,
    state: SecretsState,
    policy_name: str,
) -> DeployResult:
    """
    Deploy the S3 secrets of a registered policy to its clusters.

    The policy is loaded under the guard, so a deploy queued behind an
    undeploy of the same policy finds it gone and pushes nothing.

    Args:
        config: drsecrets configuration
        state: Runtime state
        policy_name: Name of a policy in the registry

    Returns:
        DeployResult with the operation ID set

    Raises:
        RegistryError: If the policy is not registered
    """
    operation_id = str(ULID())

    async with state["guard"]:
        policy, clusters = await _load_policy_and_clusters(state, policy_name)

        async with aiosqlite.connect(state["vault_db_path"]) as vault_db:
            await record_operation(
                vault_db, operation_id, "deploy", policy.name,
                {"clusters": list(policy.clusters)},
            )

            try:
                result = await deploy_with_guard_held(
                    policy, clusters, config, state["store"]
                )
            except Exception as e:
                state["last_error"] = str(e)
                await complete_operation(
                    vault_db, operation_id, {"clusters": list(policy.clusters)}, error=str(e)
                )
                logger.error("policy_deploy_failed", operation_id=operation_id,
                             policy=policy.name, error=str(e))
                raise

            await record_placements(vault_db, operation_id, result.placements)
            await complete_operation(
                vault_db,
                operation_id,
                {
                    "skipped": result.skipped,
                    "secret_names": result.secret_names,
                    "pushed": len(result.placements),
                    "warnings": result.warnings,
                },
            )

    state["last_run_at"] = datetime.now(UTC)
    state["total_deploys"] += 1
    state["total_pushed"] += len(result.placements)

    result.operation_id = operation_id
    return result


async def undeploy_policy(
    config: DRSecretsConfig,
    state: SecretsState,
    policy_name: str,
    remove_from_catalog: bool = True,
) -> UndeployResult:
    """
    Remove the secrets only a registered policy needed, then drop the policy.

    Loading the policy, reclaiming its secrets and removing it from the
    registry happen under one acquisition of the guard. The next pass
    therefore never counts an already reclaimed policy as a referrer.
    The policy stays in the registry if reclamation fails, so the attempt
    can be retried.

    Args:
        config: drsecrets configuration
        state: Runtime state
        policy_name: Name of a policy in the registry
        remove_from_catalog: Delete the policy from the registry on success

    Returns:
        UndeployResult with the operation ID set

    Raises:
        RegistryError: If the policy is not registered
    """
    operation_id = str(ULID())

    async with state["guard"]:
        policy, clusters = await _load_policy_and_clusters(state, policy_name)

        async with aiosqlite.connect(state["vault_db_path"]) as vault_db:
            await record_operation(
                vault_db, operation_id, "undeploy", policy.name,
                {"clusters": list(policy.clusters)},
            )

            try:
                result = await undeploy_with_guard_held(
                    policy, clusters, config, state["store"]
                )
            except Exception as e:
                state["last_error"] = str(e)
                await complete_operation(
                    vault_db, operation_id, {"clusters": list(policy.clusters)}, error=str(e)
                )
                logger.error("policy_undeploy_failed", operation_id=operation_id,
                             policy=policy.name, error=str(e))
                raise

            await record_placements(vault_db, operation_id, result.placements)
            await complete_operation(
                vault_db,
                operation_id,
                {
                    "skipped": result.skipped,
                    "candidates": result.candidates,
                    "removed": len(result.placements),
                    "retained": [list(pair) for pair in result.retained],
                    "warnings": result.warnings,
                },
            )

        if remove_from_catalog:
            async with aiosqlite.connect(state["registry_db_path"]) as db:
                await delete_policy(db, policy.name)
            logger.info("policy_removed_from_catalog", policy=policy.name)

    state["last_run_at"] = datetime.now(UTC)
    state["total_undeploys"] += 1
    state["total_removed"] += len(result.placements)

    result.operation_id = operation_id
    return result


async def cluster_requirements(
    config: DRSecretsConfig,
    state: SecretsState,
    cluster_name: str,
) -> Dict[str, Any]:
    """
    Compare the secrets a cluster must have with what the registry holds.

    Taken under the guard so the comparison never sees a half-applied pass.

    Returns:
        Dict with required, present, missing and unexpected secret names
    """
    async with state["guard"]:
        async with aiosqlite.connect(state["registry_db_path"]) as db:
            policies = await list_policies(db)
            clusters = await list_clusters(db)
            records = await list_cluster_secrets(db, cluster_name, SecretFormat.NATIVE)

    required = must_have_secrets(
        policies, clusters, cluster_name, ProfileDirectory.from_config(config)
    )
    present = {record["secret_name"] for record in records}

    return {
        "cluster_name": cluster_name,
        "required": sorted(required),
        "present": sorted(present),
        "missing": sorted(required - present),
        "unexpected": sorted(present - required),
    }


async def get_metrics(config: DRSecretsConfig, state: SecretsState) -> DRSecretsMetrics:
    """Get current lifecycle metrics."""
    async with aiosqlite.connect(state["registry_db_path"]) as db:
        records = await list_cluster_secrets(db)

    return DRSecretsMetrics(
        total_deploys=state["total_deploys"],
        total_undeploys=state["total_undeploys"],
        total_pushed=state["total_pushed"],
        total_removed=state["total_removed"],
        placed_secrets=len(records),
        last_run_at=state["last_run_at"],
        last_error=state["last_error"],
    )


async def shutdown_state(state: SecretsState) -> None:
    """
    Wait for any in-flight lifecycle pass, then release resources.
    """
    # Acquiring the guard once ensures no pass is left half-applied
    async with state["guard"]:
        pass

    logger.info(
        "secrets_state_shutdown_complete",
        deploys=state["total_deploys"],
        undeploys=state["total_undeploys"],
    )
