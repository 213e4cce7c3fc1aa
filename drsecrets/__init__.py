# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets - S3 secret distribution for multi-cluster DR policies.

Keeps every managed cluster that takes part in a DR policy supplied with
the object-storage secrets of all its peers, and removes a secret from a
cluster only once no remaining policy reaches it. Package name: drsecrets.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from drsecrets.builder import create_config
from drsecrets.config import DRSecretsConfig, S3StoreProfile

# Data model
from drsecrets.models import DRCluster, DRPolicy, SecretFormat

# Engines and the guard they share
from drsecrets.distribution import deploy_policy_secrets
from drsecrets.guard import LifecycleGuard, NullGuard, SerializationGuard
from drsecrets.reclamation import undeploy_policy_secrets

# Core functions
from drsecrets.core import (
    initialize_state,
    propagate_policy,
    undeploy_policy,
    cluster_requirements,
    get_metrics,
    shutdown_state,
)

# Environment-based configuration and presets (additional helpers)
from drsecrets.env import (
    create_config_from_env,
    distribution_only,
    with_backup_protection,
    paused,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "create_config",
    "create_config_from_env",
    "DRSecretsConfig",
    "S3StoreProfile",
    # Data model
    "DRCluster",
    "DRPolicy",
    "SecretFormat",
    # Engines
    "deploy_policy_secrets",
    "undeploy_policy_secrets",
    "LifecycleGuard",
    "SerializationGuard",
    "NullGuard",
    # Core orchestration functions
    "initialize_state",
    "propagate_policy",
    "undeploy_policy",
    "cluster_requirements",
    "get_metrics",
    "shutdown_state",
]
