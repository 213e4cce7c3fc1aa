# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Models - Policies, clusters and the values computed from them.

Policies and clusters are read from the catalog at the start of a pass and
never modified during it, so they are frozen. Requirement sets are plain
frozensets and are recomputed on every pass.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from drsecrets.exceptions import ProfileResolutionError


class SecretFormat(str, Enum):
    """Physical encoding of an S3 secret on a managed cluster."""

    NATIVE = "native"  # Consumed by the DR cluster operator
    BACKUP_TOOL = "backup_tool"  # Consumed by the backup/restore integration


class PlacementAction(str, Enum):
    """Mutation applied to a cluster's secret state."""

    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class DRPolicy:
    """A DR policy and the managed clusters it spans."""

    name: str
    clusters: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.clusters, str):
            raise TypeError(
                "DRPolicy.clusters must be a sequence of cluster names, not a string"
            )
        # Collapse duplicates, keeping first-seen order
        object.__setattr__(self, "clusters", tuple(dict.fromkeys(self.clusters)))

    def contains_cluster(self, cluster_name: str) -> bool:
        return cluster_name in self.clusters


@dataclass(frozen=True)
class DRCluster:
    """A managed cluster and the S3 profile it stores its DR metadata in."""

    name: str
    s3_profile_name: str = ""


@dataclass(frozen=True)
class ResolvedSecrets:
    """
    Secret names resolved for a policy, plus the resolution errors hit.

    A partial result (some names and some errors) is usable for
    deployment; an empty result with errors is not. See
    drsecrets.resolver.deployable_secret_names.
    """

    secret_names: FrozenSet[str] = frozenset()
    errors: Tuple[ProfileResolutionError, ...] = ()

    @property
    def first_error(self) -> ProfileResolutionError | None:
        return self.errors[0] if self.errors else None

    @property
    def is_empty(self) -> bool:
        return not self.secret_names

    @property
    def is_partial(self) -> bool:
        return bool(self.secret_names) and bool(self.errors)


@dataclass(frozen=True)
class SecretPlacement:
    """One secret added to, or removed from, one cluster in one format."""

    cluster_name: str
    secret_name: str
    secret_format: SecretFormat
    action: PlacementAction


@dataclass(frozen=True)
class ReclamationPlan:
    """
    What undeploying a policy may and may not delete.

    survivors maps each cluster spanned by the policy to the secrets that
    other policies still require there (the survive-set). candidates is
    the set of secrets the policy itself referenced.
    """

    survivors: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    candidates: ResolvedSecrets = field(default_factory=ResolvedSecrets)

    def deletions(self) -> List[Tuple[str, str]]:
        """(cluster, secret) pairs that are safe to delete, in stable order."""
        return [
            (cluster_name, secret_name)
            for cluster_name, survive in self.survivors.items()
            for secret_name in sorted(self.candidates.secret_names - survive)
        ]

    def retained(self) -> List[Tuple[str, str]]:
        """(cluster, secret) pairs the policy referenced that must stay."""
        return [
            (cluster_name, secret_name)
            for cluster_name, survive in self.survivors.items()
            for secret_name in sorted(self.candidates.secret_names & survive)
        ]
