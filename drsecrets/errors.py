# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for drsecrets.

These helpers centralize wording for configuration and propagation errors
so that all modules present consistent, actionable messages.
"""


def explain_missing_profile(s3_profile_name: str, cluster_name: str) -> str:
    """
    Explain that a cluster's S3 profile is not in the profile directory.
    """

    if not s3_profile_name:
        return (
            f"DRCluster {cluster_name!r} has no S3 profile, or is not a known cluster. "
            "Set its s3_profile_name and add a matching entry to s3_store_profiles."
        )
    return (
        f"missing profile name ({s3_profile_name}) in config for DRCluster ({cluster_name}). "
        "Add an S3StoreProfile with this name to s3_store_profiles."
    )


def explain_push_failure(secret_name: str, cluster_name: str, secret_format: str) -> str:
    """
    Explain that a secret could not be added to a cluster.
    """

    return (
        f"cannot add secret {secret_name!r} to drcluster {cluster_name!r} "
        f"in format {secret_format!r}"
    )


def explain_delete_failure(secret_name: str, cluster_name: str, secret_format: str) -> str:
    """
    Explain that a secret could not be removed from a cluster.
    """

    return (
        f"unable to delete secret {secret_name!r} in format {secret_format!r} "
        f"on drcluster {cluster_name!r}"
    )


def explain_catalog_read_failure() -> str:
    """
    Explain that undeploy refused to continue without a fresh policy list.
    """

    return (
        "drpolicies list failed. Secrets are not removed without a fresh view of "
        "every policy, the operation will be retried on the next reconcile."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    """
    Explain that a boolean environment variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: 'true', 'false', '1', '0', 'yes', 'no'."
    )


def explain_invalid_profiles_env(value: str | None) -> str:
    """
    Explain that DRSECRETS_S3_PROFILES is malformed.
    """

    return (
        f"Invalid DRSECRETS_S3_PROFILES value: {value!r}. "
        "Expected a comma-separated list of profile=secret pairs, "
        "e.g. 's3-east=s3-secret-a,s3-west=s3-secret-b'."
    )


def explain_unknown_policy(policy_name: str) -> str:
    """
    Explain that a policy is not registered.
    """

    return (
        f"DRPolicy {policy_name!r} is not registered. "
        "Register it with upsert_policy() before deploying its secrets."
    )
