# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Distribution Engine - Push a policy's S3 secrets to its clusters.

Every cluster a policy spans receives the secret of every profile used by
any cluster in that policy, in the native format and, when the backup
integration is configured, in the backup tool's format as well.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, List, Sequence

import structlog

from drsecrets.access_control import dr_cluster_policy_objects
from drsecrets.config import DRSecretsConfig
from drsecrets.errors import explain_push_failure
from drsecrets.exceptions import SecretPropagationError
from drsecrets.guard import LifecycleGuard
from drsecrets.models import (
    DRCluster,
    DRPolicy,
    PlacementAction,
    SecretFormat,
    SecretPlacement,
)
from drsecrets.profiles import ProfileDirectory
from drsecrets.resolver import deployable_secret_names, secret_names_for_policy
from drsecrets.store import ClusterObjectStore

logger = structlog.get_logger()


@dataclass
class DeployResult:
    """Result of deploying one policy's secrets."""

    policy: str
    skipped: bool = False
    secret_names: List[str] = field(default_factory=list)
    placements: List[SecretPlacement] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    operation_id: str | None = None


async def deploy_policy_secrets(
    policy: DRPolicy,
    clusters: Iterable[DRCluster],
    config: DRSecretsConfig,
    store: ClusterObjectStore,
    guard: LifecycleGuard,
) -> DeployResult:
    """
    Deploy the S3 secrets a policy needs to every cluster it spans.

    Does nothing unless deployment automation and S3 secret distribution
    are both enabled. Clusters whose profile does not resolve are reported
    as warnings as long as at least one secret resolved.

    Args:
        policy: Policy being created or updated
        clusters: Every known cluster
        config: Configuration (flags, profile directory, namespaces)
        store: Cluster object store to push secrets to
        guard: Serialization guard shared with undeploy

    Returns:
        DeployResult listing what was pushed

    Raises:
        ProfileResolutionError: If no secret at all could be resolved
        SecretPropagationError: If a push fails; remaining pushes are skipped
    """
    if not config.secret_distribution_enabled:
        return _skipped(policy)

    async with guard:
        return await deploy_with_guard_held(policy, clusters, config, store)


def _skipped(policy: DRPolicy) -> DeployResult:
    logger.info("secret_distribution_disabled", policy=policy.name, operation="deploy")
    return DeployResult(policy=policy.name, skipped=True)


async def deploy_with_guard_held(
    policy: DRPolicy,
    clusters: Iterable[DRCluster],
    config: DRSecretsConfig,
    store: ClusterObjectStore,
) -> DeployResult:
    """
    Same as deploy_policy_secrets, for callers that already hold the guard.

    Used by drsecrets.core, which also reads the registry under the same
    acquisition.
    """
    if not config.secret_distribution_enabled:
        return _skipped(policy)

    start_time = datetime.now(UTC)
    clusters = list(clusters)

    logger.info(
        "secret_deploy_started",
        policy=policy.name,
        clusters=list(policy.clusters),
    )

    directory = ProfileDirectory.from_config(config)
    resolved = secret_names_for_policy(policy, clusters, directory)
    secret_names = deployable_secret_names(resolved)

    warnings = [str(error) for error in resolved.errors]
    if resolved.errors:
        # Deploy what is available; one bad cluster must not block the rest
        logger.warning(
            "partial_secret_list",
            policy=policy.name,
            resolved=sorted(secret_names),
            errors=warnings,
        )

    objects = dr_cluster_policy_objects(config)
    placements: List[SecretPlacement] = []

    for cluster_name in policy.clusters:
        for secret_name in sorted(secret_names):
            await _push_secret(
                store, config, objects, placements,
                secret_name, cluster_name, SecretFormat.NATIVE, "",
            )

            if config.backup_format_enabled:
                await _push_secret(
                    store, config, objects, placements,
                    secret_name, cluster_name, SecretFormat.BACKUP_TOOL,
                    config.backup_namespace,
                )

    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "secret_deploy_completed",
        policy=policy.name,
        pushed=len(placements),
        warnings=len(warnings),
        duration=duration,
    )

    return DeployResult(
        policy=policy.name,
        secret_names=sorted(secret_names),
        placements=placements,
        warnings=warnings,
        duration_seconds=duration,
    )


async def _push_secret(
    store: ClusterObjectStore,
    config: DRSecretsConfig,
    objects: Sequence[Dict[str, Any]],
    placements: List[SecretPlacement],
    secret_name: str,
    cluster_name: str,
    secret_format: SecretFormat,
    backup_namespace: str,
) -> None:
    """Push one secret in one format, recording it in placements."""
    try:
        await store.add_secret_to_cluster(
            secret_name,
            cluster_name,
            config.operator_namespace,
            config.dr_cluster_operator_namespace,
            objects,
            secret_format,
            backup_namespace,
        )
    except Exception as e:
        logger.error(
            "secret_push_failed",
            secret_name=secret_name,
            cluster_name=cluster_name,
            secret_format=secret_format.value,
            error=str(e),
        )
        raise SecretPropagationError(
            f"{explain_push_failure(secret_name, cluster_name, secret_format.value)}: {e}",
            details={
                "secret_name": secret_name,
                "cluster_name": cluster_name,
                "secret_format": secret_format.value,
                "action": PlacementAction.ADD.value,
                "completed": len(placements),
            },
        ) from e

    placements.append(
        SecretPlacement(
            cluster_name=cluster_name,
            secret_name=secret_name,
            secret_format=secret_format,
            action=PlacementAction.ADD,
        )
    )
    logger.debug(
        "secret_pushed",
        secret_name=secret_name,
        cluster_name=cluster_name,
        secret_format=secret_format.value,
    )
