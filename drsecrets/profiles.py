# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
drsecrets Profile Directory - S3 profile name to secret name lookup.

Several profiles may point at the same secret. Anything that decides
whether a secret is still needed must go through secrets_for_profiles()
so that relationship is collapsed before set arithmetic on secret names.
"""

from typing import Iterable, FrozenSet, List

from drsecrets.config import DRSecretsConfig, S3StoreProfile


class ProfileDirectory:
    """Read-only view over the configured S3 store profiles."""

    def __init__(self, profiles: Iterable[S3StoreProfile]):
        self._profiles: List[S3StoreProfile] = list(profiles)

    @classmethod
    def from_config(cls, config: DRSecretsConfig) -> "ProfileDirectory":
        return cls(config.s3_store_profiles)

    def __len__(self) -> int:
        return len(self._profiles)

    def resolve_secret(self, s3_profile_name: str) -> str | None:
        """
        Look up the secret that authenticates a profile.

        Args:
            s3_profile_name: Profile to look up

        Returns:
            The secret name, or None if the profile is not configured
        """
        if not s3_profile_name:
            return None

        for profile in self._profiles:
            if profile.s3_profile_name == s3_profile_name:
                return profile.s3_secret_ref

        return None

    def secrets_for_profiles(self, s3_profile_names: Iterable[str]) -> FrozenSet[str]:
        """Map a set of profile names to the (deduplicated) secrets they use."""
        wanted = set(s3_profile_names)
        return frozenset(
            profile.s3_secret_ref
            for profile in self._profiles
            if profile.s3_profile_name in wanted
        )
