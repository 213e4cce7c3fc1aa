# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Access-control objects shipped alongside every secret deployment.

The work agent on a managed cluster needs permission to manage the DR
resources the secrets are used with. The bundle depends only on the
configured DR-cluster operator namespace, so it is built once per pass.
"""

from typing import Any, Dict, List

from drsecrets.config import DRSecretsConfig

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"
RBAC_API_GROUP = "rbac.authorization.k8s.io"
DR_API_GROUP = "ramendr.openshift.io"

WORK_AGENT_SERVICE_ACCOUNT = "klusterlet-work-sa"
WORK_AGENT_NAMESPACE = "open-cluster-management-agent"
WORK_AGENT_ROLE_PREFIX = "open-cluster-management:klusterlet-work-sa:agent"

EDIT_VERBS = ["create", "get", "list", "update", "delete"]

Manifest = Dict[str, Any]


def _cluster_role(suffix: str, api_group: str, resource: str) -> Manifest:
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRole",
        "metadata": {"name": f"{WORK_AGENT_ROLE_PREFIX}:{suffix}"},
        "rules": [
            {
                "apiGroups": [api_group],
                "resources": [resource],
                "verbs": list(EDIT_VERBS),
            }
        ],
    }


def _binding(kind: str, suffix: str, namespace: str | None = None) -> Manifest:
    metadata: Dict[str, str] = {"name": f"{WORK_AGENT_ROLE_PREFIX}:{suffix}"}
    if namespace is not None:
        metadata["namespace"] = namespace

    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": kind,
        "metadata": metadata,
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": WORK_AGENT_SERVICE_ACCOUNT,
                "namespace": WORK_AGENT_NAMESPACE,
            }
        ],
        "roleRef": {
            "apiGroup": RBAC_API_GROUP,
            "kind": "ClusterRole",
            "name": f"{WORK_AGENT_ROLE_PREFIX}:{suffix}",
        },
    }


def dr_cluster_policy_objects(config: DRSecretsConfig) -> List[Manifest]:
    """
    Build the RBAC manifests that accompany secrets onto a managed cluster.

    Args:
        config: Configuration; only dr_cluster_operator_namespace is used

    Returns:
        ClusterRoles and bindings, in apply order
    """
    namespace = config.dr_cluster_operator_namespace

    return [
        _cluster_role("olm-edit", "operators.coreos.com", "operatorgroups"),
        _binding("RoleBinding", "olm-edit", namespace),
        _cluster_role("volrepgroup-edit", DR_API_GROUP, "volumereplicationgroups"),
        _binding("ClusterRoleBinding", "volrepgroup-edit"),
        _cluster_role("mmode-edit", DR_API_GROUP, "maintenancemodes"),
        _binding("ClusterRoleBinding", "mmode-edit"),
        _cluster_role("drclusterconfig-edit", DR_API_GROUP, "drclusterconfigs"),
        _binding("ClusterRoleBinding", "drclusterconfig-edit"),
    ]
