# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and presets.

These helpers are small, convenient wrappers around create_config() and
DRSecretsConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Apply ready-made presets
"""

from __future__ import annotations

import os
from typing import Dict

from drsecrets.builder import create_config
from drsecrets.config import DRSecretsConfig
from drsecrets.errors import explain_invalid_bool_env, explain_invalid_profiles_env
from drsecrets.exceptions import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_profiles(value: str | None) -> Dict[str, str]:
    """Parse "profile=secret,profile=secret" into a dict, keeping order."""
    if not value:
        return {}

    profiles: Dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, secret = item.partition("=")
        if not sep or not name.strip() or not secret.strip():
            raise ConfigurationError(explain_invalid_profiles_env(value))
        profiles[name.strip()] = secret.strip()
    return profiles


def create_config_from_env() -> DRSecretsConfig:
    """
    Create a DRSecretsConfig from environment variables.

    Environment variables:
        - DRSECRETS_DEPLOYMENT_AUTOMATION: bool (default: false)
        - DRSECRETS_S3_SECRET_DISTRIBUTION: bool (default: false)
        - DRSECRETS_BACKUP_INTEGRATION: bool (default: false)
        - DRSECRETS_BACKUP_NAMESPACE: Backup tool namespace (used only when
          the backup integration is enabled)
        - DRSECRETS_S3_PROFILES: "profile=secret,..." profile directory
        - DRSECRETS_OPERATOR_NAMESPACE: Hub namespace of the source secrets
        - DRSECRETS_DR_CLUSTER_NAMESPACE: Target namespace on managed clusters
        - DRSECRETS_STATE_PATH: Registry and vault directory
    """

    automation = _parse_bool(
        "DRSECRETS_DEPLOYMENT_AUTOMATION", os.getenv("DRSECRETS_DEPLOYMENT_AUTOMATION"), False
    )
    distribution = _parse_bool(
        "DRSECRETS_S3_SECRET_DISTRIBUTION", os.getenv("DRSECRETS_S3_SECRET_DISTRIBUTION"), False
    )
    backup = _parse_bool(
        "DRSECRETS_BACKUP_INTEGRATION", os.getenv("DRSECRETS_BACKUP_INTEGRATION"), False
    )

    return create_config(
        s3_profiles=_parse_profiles(os.getenv("DRSECRETS_S3_PROFILES")),
        deployment_automation_enabled=automation,
        s3_secret_distribution_enabled=distribution,
        backup_namespace=os.getenv("DRSECRETS_BACKUP_NAMESPACE") if backup else None,
        operator_namespace=os.getenv("DRSECRETS_OPERATOR_NAMESPACE"),
        dr_cluster_operator_namespace=os.getenv("DRSECRETS_DR_CLUSTER_NAMESPACE"),
        state_path=os.getenv("DRSECRETS_STATE_PATH"),
    )


# ============================================================================
# Presets
# ============================================================================

def distribution_only(config: DRSecretsConfig) -> DRSecretsConfig:
    """
    Distribute native secrets only.

    - Deployment automation and S3 secret distribution on
    - Backup tool format off
    """

    return config.with_updates(
        deployment_automation_enabled=True,
        s3_secret_distribution_enabled=True,
        backup_integration_enabled=False,
    )


def with_backup_protection(config: DRSecretsConfig, namespace: str = "velero") -> DRSecretsConfig:
    """
    Distribute secrets in both formats.

    - Deployment automation and S3 secret distribution on
    - Backup tool format on, delivered to the given namespace
    """

    return config.with_updates(
        deployment_automation_enabled=True,
        s3_secret_distribution_enabled=True,
        backup_integration_enabled=True,
        backup_namespace=namespace,
    )


def paused(config: DRSecretsConfig) -> DRSecretsConfig:
    """
    Stop touching cluster secrets without losing the rest of the config.

    Deploy and undeploy become no-ops; existing secrets are left in place.
    """

    return config.with_updates(s3_secret_distribution_enabled=False)
