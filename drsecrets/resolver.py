# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Requirement Resolver - Which secrets must exist on which cluster.

Everything here is a pure function of the policy list, the cluster list
and the profile directory. Nothing is cached: callers pass a fresh policy
list on every pass.

A cluster must hold the secrets of every profile used by any cluster it
shares a policy with, because peers read each other's replicated metadata.
"""

from typing import Dict, FrozenSet, Iterable, List, Mapping

from drsecrets.errors import explain_missing_profile
from drsecrets.exceptions import ProfileResolutionError
from drsecrets.models import DRCluster, DRPolicy, ReclamationPlan, ResolvedSecrets
from drsecrets.profiles import ProfileDirectory


def index_clusters(clusters: Iterable[DRCluster]) -> Dict[str, DRCluster]:
    """Index clusters by name. Later entries win on duplicate names."""
    if isinstance(clusters, Mapping):
        return dict(clusters)
    return {cluster.name: cluster for cluster in clusters}


def policy_s3_profiles(
    policy: DRPolicy,
    clusters: Iterable[DRCluster],
) -> FrozenSet[str]:
    """
    Get the S3 profiles of every cluster the policy spans.

    Clusters without a profile, and cluster names that are not in the
    cluster list, contribute nothing.
    """
    by_name = index_clusters(clusters)
    return frozenset(
        by_name[name].s3_profile_name
        for name in policy.clusters
        if name in by_name and by_name[name].s3_profile_name
    )


def must_have_profiles(
    policies: Iterable[DRPolicy],
    clusters: Iterable[DRCluster],
    cluster_name: str,
    ignore_policy: DRPolicy | None = None,
) -> FrozenSet[str]:
    """
    List the S3 profiles whose secrets must exist on a cluster.

    Args:
        policies: Every policy in the catalog
        clusters: Every known cluster
        cluster_name: Cluster to compute requirements for
        ignore_policy: Policy to leave out, matched by name. Used when that
            policy is being deleted but is still present in the listing.

    Returns:
        Union of the profiles of all peers of cluster_name, over all
        policies (except ignore_policy) that span it
    """
    by_name = index_clusters(clusters)
    profiles: FrozenSet[str] = frozenset()

    for policy in policies:
        if ignore_policy is not None and policy.name == ignore_policy.name:
            continue

        if policy.contains_cluster(cluster_name):
            profiles = profiles | policy_s3_profiles(policy, by_name)

    return profiles


def must_have_secrets(
    policies: Iterable[DRPolicy],
    clusters: Iterable[DRCluster],
    cluster_name: str,
    directory: ProfileDirectory,
    ignore_policy: DRPolicy | None = None,
) -> FrozenSet[str]:
    """
    List the secrets that must exist on a cluster.

    Profiles are mapped through the directory, so a secret shared by a
    profile of a surviving policy is kept even if the ignored policy
    referenced it through another profile.
    """
    profiles = must_have_profiles(policies, clusters, cluster_name, ignore_policy)
    return directory.secrets_for_profiles(profiles)


def secret_names_for_policy(
    policy: DRPolicy,
    clusters: Iterable[DRCluster],
    directory: ProfileDirectory,
) -> ResolvedSecrets:
    """
    Resolve the secrets used by the clusters a policy spans.

    Resolution continues past clusters whose profile cannot be resolved;
    each failure is recorded and the partial set is returned with them.
    """
    by_name = index_clusters(clusters)
    secret_names: set[str] = set()
    errors: List[ProfileResolutionError] = []

    for cluster_name in policy.clusters:
        cluster = by_name.get(cluster_name)
        s3_profile_name = cluster.s3_profile_name if cluster else ""

        secret_name = directory.resolve_secret(s3_profile_name)
        if secret_name is None:
            errors.append(
                ProfileResolutionError(
                    explain_missing_profile(s3_profile_name, cluster_name),
                    details={
                        "policy": policy.name,
                        "cluster_name": cluster_name,
                        "s3_profile_name": s3_profile_name,
                    },
                )
            )
            continue

        secret_names.add(secret_name)

    return ResolvedSecrets(secret_names=frozenset(secret_names), errors=tuple(errors))


def deployable_secret_names(resolved: ResolvedSecrets) -> FrozenSet[str]:
    """
    Decide whether a resolution result can be deployed.

    It is fine to deploy what resolved so far. Only a result with nothing
    resolved and at least one error is fatal.

    Raises:
        ProfileResolutionError: The first error, if nothing resolved
    """
    if resolved.is_empty and resolved.first_error is not None:
        raise resolved.first_error
    return resolved.secret_names


def plan_reclamation(
    policy: DRPolicy,
    policies: Iterable[DRPolicy],
    clusters: Iterable[DRCluster],
    directory: ProfileDirectory,
) -> ReclamationPlan:
    """
    Work out which of a policy's secrets can go when the policy is deleted.

    Args:
        policy: Policy being deleted (ignored when computing survivors)
        policies: Fresh listing of every policy in the catalog
        clusters: Every known cluster
        directory: Profile directory

    Returns:
        ReclamationPlan with a survive-set per spanned cluster and the
        candidate secrets the policy referenced
    """
    policies = list(policies)
    by_name = index_clusters(clusters)

    survivors = {
        cluster_name: must_have_secrets(
            policies, by_name, cluster_name, directory, ignore_policy=policy
        )
        for cluster_name in policy.clusters
    }

    return ReclamationPlan(
        survivors=survivors,
        candidates=secret_names_for_policy(policy, by_name, directory),
    )
