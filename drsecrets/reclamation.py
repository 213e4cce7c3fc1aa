# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Reclamation Engine - Remove secrets only a deleted policy needed.

A secret the deleted policy referenced is removed from a cluster only if
no other policy spanning that cluster still reaches it, through any
profile. The survive-set is computed from a fresh policy listing taken
under the serialization guard, with the deleted policy ignored even if it
is still listed.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Iterable, List, Tuple

import structlog

from drsecrets.config import DRSecretsConfig
from drsecrets.errors import explain_catalog_read_failure, explain_delete_failure
from drsecrets.exceptions import CatalogReadError, SecretPropagationError
from drsecrets.guard import LifecycleGuard
from drsecrets.models import (
    DRCluster,
    DRPolicy,
    PlacementAction,
    ReclamationPlan,
    SecretFormat,
    SecretPlacement,
)
from drsecrets.profiles import ProfileDirectory
from drsecrets.resolver import plan_reclamation
from drsecrets.store import ClusterObjectStore

logger = structlog.get_logger()


@dataclass
class UndeployResult:
    """Result of removing a deleted policy's secrets."""

    policy: str
    skipped: bool = False
    candidates: List[str] = field(default_factory=list)
    placements: List[SecretPlacement] = field(default_factory=list)
    retained: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    operation_id: str | None = None


async def undeploy_policy_secrets(
    policy: DRPolicy,
    clusters: Iterable[DRCluster],
    config: DRSecretsConfig,
    store: ClusterObjectStore,
    guard: LifecycleGuard,
) -> UndeployResult:
    """
    Remove the secrets a deleted policy was the only referrer of.

    Args:
        policy: Policy being deleted
        clusters: Every known cluster
        config: Configuration (flags, profile directory, namespaces)
        store: Cluster object store; also the source of the policy listing
        guard: Serialization guard shared with deploy

    Returns:
        UndeployResult listing what was removed and what was kept

    Raises:
        CatalogReadError: If policies cannot be listed; nothing is removed
        SecretPropagationError: If a removal fails; remaining removals
            are skipped and left for the next attempt
    """
    if not config.secret_distribution_enabled:
        return _skipped(policy)

    async with guard:
        return await undeploy_with_guard_held(policy, clusters, config, store)


def _skipped(policy: DRPolicy) -> UndeployResult:
    logger.info("secret_distribution_disabled", policy=policy.name, operation="undeploy")
    return UndeployResult(policy=policy.name, skipped=True)


async def undeploy_with_guard_held(
    policy: DRPolicy,
    clusters: Iterable[DRCluster],
    config: DRSecretsConfig,
    store: ClusterObjectStore,
) -> UndeployResult:
    """
    Same as undeploy_policy_secrets, for callers that already hold the guard.

    The caller must keep holding the guard until the deleted policy is
    gone from the catalog, otherwise a concurrent undeploy still counts
    it as a referrer.
    """
    if not config.secret_distribution_enabled:
        return _skipped(policy)

    start_time = datetime.now(UTC)
    clusters = list(clusters)

    try:
        policies = await store.list_policies()
    except Exception as e:
        logger.error("policy_list_failed", policy=policy.name, error=str(e))
        raise CatalogReadError(
            f"{explain_catalog_read_failure()}: {e}",
            details={"policy": policy.name},
        ) from e

    logger.info(
        "secret_undeploy_started",
        policy=policy.name,
        clusters=list(policy.clusters),
        catalog_size=len(policies),
    )

    plan = plan_reclamation(
        policy, policies, clusters, ProfileDirectory.from_config(config)
    )
    placements = await _remove_unreferenced(plan, config, store)

    warnings = [str(error) for error in plan.candidates.errors]
    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "secret_undeploy_completed",
        policy=policy.name,
        removed=len(placements),
        retained=len(plan.retained()),
        duration=duration,
    )

    return UndeployResult(
        policy=policy.name,
        candidates=sorted(plan.candidates.secret_names),
        placements=placements,
        retained=plan.retained(),
        warnings=warnings,
        duration_seconds=duration,
    )


async def _remove_unreferenced(
    plan: ReclamationPlan,
    config: DRSecretsConfig,
    store: ClusterObjectStore,
) -> List[SecretPlacement]:
    """Apply a reclamation plan. Must be called with the guard held."""
    for error in plan.candidates.errors:
        # Cleanup is best effort; unresolved clusters just contribute nothing
        logger.error("secret_name_resolution_failed", error=str(error), **error.details)

    for cluster_name, secret_name in plan.retained():
        logger.info("secret_retained", cluster_name=cluster_name, secret_name=secret_name)

    formats = [SecretFormat.NATIVE]
    if config.backup_format_enabled:
        formats.append(SecretFormat.BACKUP_TOOL)

    placements: List[SecretPlacement] = []

    for cluster_name, secret_name in plan.deletions():
        for secret_format in formats:
            try:
                await store.remove_secret_from_cluster(
                    secret_name,
                    cluster_name,
                    config.operator_namespace,
                    secret_format,
                )
            except Exception as e:
                logger.error(
                    "secret_remove_failed",
                    secret_name=secret_name,
                    cluster_name=cluster_name,
                    secret_format=secret_format.value,
                    error=str(e),
                )
                raise SecretPropagationError(
                    f"{explain_delete_failure(secret_name, cluster_name, secret_format.value)}: {e}",
                    details={
                        "secret_name": secret_name,
                        "cluster_name": cluster_name,
                        "secret_format": secret_format.value,
                        "action": PlacementAction.REMOVE.value,
                        "completed": len(placements),
                    },
                ) from e

            placements.append(
                SecretPlacement(
                    cluster_name=cluster_name,
                    secret_name=secret_name,
                    secret_format=secret_format,
                    action=PlacementAction.REMOVE,
                )
            )
            logger.info(
                "secret_removed",
                secret_name=secret_name,
                cluster_name=cluster_name,
                secret_format=secret_format.value,
            )

    return placements
