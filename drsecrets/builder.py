# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Builder - Functional builder pattern for configuration.

This module provides pure functions for building DRSecretsConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping

from drsecrets.config import DRSecretsConfig, S3StoreProfile


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "deployment_automation_enabled": False,
        "s3_secret_distribution_enabled": False,
        "backup_integration_enabled": False,
        "backup_namespace": "",
        "s3_store_profiles": [],
        "operator_namespace": "dr-system",
        "dr_cluster_operator_namespace": "dr-cluster-system",
        "state_path": Path("./drsecrets_state"),
    }


def with_s3_profile(config: ConfigDict, s3_profile_name: str, s3_secret_ref: str) -> ConfigDict:
    """
    Add an S3 store profile to the profile directory.

    Args:
        config: Current configuration dictionary
        s3_profile_name: Profile name clusters refer to
        s3_secret_ref: Name of the secret holding the profile's credentials

    Returns:
        New configuration dictionary with the profile appended
    """
    profiles = list(config["s3_store_profiles"]) + [
        S3StoreProfile(s3_profile_name=s3_profile_name, s3_secret_ref=s3_secret_ref)
    ]
    return {**config, "s3_store_profiles": profiles}


def with_s3_profiles(config: ConfigDict, profiles: Mapping[str, str]) -> ConfigDict:
    """
    Add several S3 store profiles from a {profile_name: secret_ref} mapping.
    """
    for s3_profile_name, s3_secret_ref in profiles.items():
        config = with_s3_profile(config, s3_profile_name, s3_secret_ref)
    return config


def enable_deployment_automation(config: ConfigDict) -> ConfigDict:
    """
    Enable automated operator deployment on managed clusters.

    Secret distribution is a part of deployment automation; it does
    nothing unless this is enabled too.
    """
    return {**config, "deployment_automation_enabled": True}


def enable_secret_distribution(config: ConfigDict) -> ConfigDict:
    """
    Enable distribution of S3 secrets to managed clusters.

    Args:
        config: Current configuration dictionary

    Returns:
        New configuration dictionary with distribution enabled
    """
    return {**config, "s3_secret_distribution_enabled": True}


def enable_backup_integration(config: ConfigDict, namespace: str) -> ConfigDict:
    """
    Also distribute secrets in the backup tool's format.

    Args:
        config: Current configuration dictionary
        namespace: Namespace the backup tool reads secrets from

    Returns:
        New configuration dictionary with backup integration enabled
    """
    if not namespace:
        raise ValueError("backup integration requires a namespace")
    return {**config, "backup_integration_enabled": True, "backup_namespace": namespace}


def disable_backup_integration(config: ConfigDict) -> ConfigDict:
    return {**config, "backup_integration_enabled": False}


def with_operator_namespace(config: ConfigDict, namespace: str) -> ConfigDict:
    """
    Set the hub namespace the source secrets live in.
    """
    return {**config, "operator_namespace": namespace}


def with_dr_cluster_namespace(config: ConfigDict, namespace: str) -> ConfigDict:
    """
    Set the namespace secrets are delivered to on managed clusters.
    """
    return {**config, "dr_cluster_operator_namespace": namespace}


def with_state_path(config: ConfigDict, state_path: Path | str) -> ConfigDict:
    """
    Set the directory holding the registry and audit vault.

    Args:
        config: Current configuration dictionary
        state_path: Path to the state directory

    Returns:
        New configuration dictionary with state path set
    """
    path = Path(state_path) if isinstance(state_path, str) else state_path
    return {**config, "state_path": path}


def build_config(config_dict: ConfigDict) -> DRSecretsConfig:
    """
    Validate and build an immutable DRSecretsConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable DRSecretsConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    return DRSecretsConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    This allows a more readable pipeline style:

        config = pipe(
            enable_deployment_automation,
            enable_secret_distribution,
            lambda c: with_s3_profile(c, "s3-east", "s3-secret-east"),
        )(create_empty_config())

    Args:
        *funcs: Builder functions to compose

    Returns:
        A single function that applies all functions in sequence
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> DRSecretsConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().
    """
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    *,
    s3_profiles: Mapping[str, str] | Iterable[S3StoreProfile] | None = None,
    deployment_automation_enabled: bool = True,
    s3_secret_distribution_enabled: bool = True,
    backup_namespace: str | None = None,
    operator_namespace: str | None = None,
    dr_cluster_operator_namespace: str | None = None,
    state_path: str | Path | None = None,
    **kwargs: Any,
) -> DRSecretsConfig:
    """
    Create drsecrets configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        s3_profiles: Profile directory, either {profile_name: secret_ref}
                     or a list of S3StoreProfile
        deployment_automation_enabled: Automation flag (default: True)
        s3_secret_distribution_enabled: Distribution flag (default: True)
        backup_namespace: Enables the backup tool format in this namespace
        operator_namespace: Hub namespace of the source secrets
        dr_cluster_operator_namespace: Target namespace on managed clusters
        state_path: Directory for the registry and vault (default: "./drsecrets_state")
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable DRSecretsConfig instance

    Example:
        config = create_config(
            s3_profiles={"s3-east": "s3-secret-a", "s3-west": "s3-secret-a"},
            backup_namespace="velero",
        )
    """
    config_dict = create_empty_config()

    if deployment_automation_enabled:
        config_dict = enable_deployment_automation(config_dict)

    if s3_secret_distribution_enabled:
        config_dict = enable_secret_distribution(config_dict)

    if isinstance(s3_profiles, Mapping):
        config_dict = with_s3_profiles(config_dict, s3_profiles)
    elif s3_profiles:
        config_dict = {**config_dict, "s3_store_profiles": list(s3_profiles)}

    if backup_namespace:
        config_dict = enable_backup_integration(config_dict, backup_namespace)

    if operator_namespace:
        config_dict = with_operator_namespace(config_dict, operator_namespace)

    if dr_cluster_operator_namespace:
        config_dict = with_dr_cluster_namespace(config_dict, dr_cluster_operator_namespace)

    if state_path:
        config_dict = with_state_path(config_dict, state_path)

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
