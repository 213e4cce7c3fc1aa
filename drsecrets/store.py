# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Object Store - The cluster-side collaborator the engines mutate.

The engines only need to list policies and to add or remove one secret on
one cluster in one format. Both mutations are idempotent: adding a secret
that exists updates it, removing one that is absent is a no-op.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence, Set, Tuple, runtime_checkable

from drsecrets.models import DRPolicy, SecretFormat


@runtime_checkable
class ClusterObjectStore(Protocol):
    """Interface the distribution and reclamation engines depend on."""

    async def list_policies(self) -> List[DRPolicy]:
        ...

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
        ...

    async def remove_secret_from_cluster(
        self,
        secret_name: str,
        cluster_name: str,
        source_namespace: str,
        secret_format: SecretFormat,
    ) -> None:
        ...


@dataclass
class StoredSecret:
    """A secret as delivered to one cluster."""

    secret_name: str
    cluster_name: str
    secret_format: SecretFormat
    source_namespace: str
    target_namespace: str
    backup_namespace: str = ""
    objects: List[Dict[str, Any]] = field(default_factory=list)


class InMemoryObjectStore:
    """
    Dict-backed ClusterObjectStore.

    Keeps the policy catalog and per-cluster secrets in memory. Used by
    the test suite and the example app.
    """

    def __init__(self, policies: Sequence[DRPolicy] = ()):
        self._policies: Dict[str, DRPolicy] = {p.name: p for p in policies}
        self._secrets: Dict[Tuple[str, str, SecretFormat], StoredSecret] = {}

    # Catalog -------------------------------------------------------------

    def put_policy(self, policy: DRPolicy) -> None:
        self._policies[policy.name] = policy

    def drop_policy(self, policy_name: str) -> None:
        self._policies.pop(policy_name, None)

    async def list_policies(self) -> List[DRPolicy]:
        return list(self._policies.values())

    # Secrets -------------------------------------------------------------

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
        self._secrets[(cluster_name, secret_name, secret_format)] = StoredSecret(
            secret_name=secret_name,
            cluster_name=cluster_name,
            secret_format=secret_format,
            source_namespace=source_namespace,
            target_namespace=target_namespace,
            backup_namespace=backup_namespace,
            objects=copy.deepcopy(list(objects)),
        )

    async def remove_secret_from_cluster(
        self,
        secret_name: str,
        cluster_name: str,
        source_namespace: str,
        secret_format: SecretFormat,
    ) -> None:
        self._secrets.pop((cluster_name, secret_name, secret_format), None)

    # Inspection ----------------------------------------------------------

    def secrets_on(
        self,
        cluster_name: str,
        secret_format: SecretFormat = SecretFormat.NATIVE,
    ) -> Set[str]:
        """Names of the secrets present on a cluster in one format."""
        return {
            secret_name
            for (cluster, secret_name, fmt) in self._secrets
            if cluster == cluster_name and fmt == secret_format
        }

    def get_secret(
        self,
        cluster_name: str,
        secret_name: str,
        secret_format: SecretFormat = SecretFormat.NATIVE,
    ) -> StoredSecret | None:
        return self._secrets.get((cluster_name, secret_name, secret_format))

    def placements(self) -> Set[Tuple[str, str, SecretFormat]]:
        return set(self._secrets)
