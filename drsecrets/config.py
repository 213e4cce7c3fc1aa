# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation, so one
reconciliation pass always sees a single, consistent profile directory
and set of feature flags.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import re


_DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


def _validate_namespace_name(name: str) -> bool:
    """
    Validate a Kubernetes namespace name (RFC 1123 label).

    Rules:
    - 1-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    """
    if not name or len(name) > 63:
        return False
    return bool(_DNS1123_LABEL.match(name))


@dataclass(frozen=True)
class S3StoreProfile:
    """An object-storage profile and the secret that authenticates it."""

    s3_profile_name: str
    s3_secret_ref: str


@dataclass(frozen=True)
class DRSecretsConfig:
    """
    Immutable configuration for S3 secret distribution.

    Frozen after creation so concurrent lifecycle operations can share
    it without copying.
    """

    # Master switch for operator deployment on managed clusters
    deployment_automation_enabled: bool = False

    # Distribute S3 secrets to managed clusters
    s3_secret_distribution_enabled: bool = False

    # Also distribute secrets in the backup tool's format
    backup_integration_enabled: bool = False

    # Namespace the backup tool reads its secrets from
    backup_namespace: str = ""

    # Profile directory: profile name -> secret reference
    s3_store_profiles: List[S3StoreProfile] = field(default_factory=list)

    # Namespace on the hub holding the source secrets
    operator_namespace: str = "dr-system"

    # Namespace on managed clusters the secrets are delivered to
    dr_cluster_operator_namespace: str = "dr-cluster-system"

    # Directory holding the registry and audit vault databases
    state_path: Path = field(default_factory=lambda: Path("./drsecrets_state"))

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        seen: set[str] = set()
        for profile in self.s3_store_profiles:
            if not profile.s3_profile_name:
                errors.append("s3_profile_name must not be empty")
            elif profile.s3_profile_name in seen:
                errors.append(f"Duplicate s3_profile_name: {profile.s3_profile_name}")
            seen.add(profile.s3_profile_name)

            if not profile.s3_secret_ref:
                errors.append(
                    f"s3_secret_ref must not be empty for profile {profile.s3_profile_name!r}"
                )

        for label, value in (
            ("operator_namespace", self.operator_namespace),
            ("dr_cluster_operator_namespace", self.dr_cluster_operator_namespace),
        ):
            if not _validate_namespace_name(value):
                errors.append(f"Invalid {label}: {value!r}")

        # An empty backup namespace is allowed, it just disables the backup format
        if self.backup_namespace and not _validate_namespace_name(self.backup_namespace):
            errors.append(f"Invalid backup_namespace: {self.backup_namespace!r}")

        if errors:
            from drsecrets.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def secret_distribution_enabled(self) -> bool:
        """True when both automation and S3 secret distribution are on."""
        return self.deployment_automation_enabled and self.s3_secret_distribution_enabled

    @property
    def backup_format_enabled(self) -> bool:
        """True when secrets must also be kept in the backup tool's format."""
        return self.backup_integration_enabled and self.backup_namespace != ""

    def with_updates(self, **kwargs) -> "DRSecretsConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import fields

        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(kwargs)
        return DRSecretsConfig(**current)
