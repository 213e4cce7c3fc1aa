# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for drsecrets tests.

Provides configurations, the three-cluster scenario catalog, an in-memory
object store and a store that fails on demand.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import pytest_asyncio

from drsecrets.builder import create_config
from drsecrets.core import initialize_state, shutdown_state
from drsecrets.models import DRCluster, DRPolicy, SecretFormat
from drsecrets.store import InMemoryObjectStore

# Set test environment variables
os.environ["DRSECRETS_ADMIN_API_KEY"] = "test-api-key-12345"

SCENARIO_PROFILES = {"p1": "s1", "p2": "s1", "p3": "s2"}


class FailingObjectStore(InMemoryObjectStore):
    """
    In-memory store that raises on selected calls.

    fail_add / fail_remove hold (cluster, secret, format) triples; any
    matching call raises RuntimeError. fail_list makes list_policies raise.
    """

    def __init__(self, policies=()):
        super().__init__(policies)
        self.fail_add: set = set()
        self.fail_remove: set = set()
        self.fail_list = False
        self.calls: list = []

    async def list_policies(self):
        self.calls.append(("list",))
        if self.fail_list:
            raise RuntimeError("api server unavailable")
        return await super().list_policies()

    async def add_secret_to_cluster(
        self, secret_name, cluster_name, source_namespace, target_namespace,
        objects, secret_format, backup_namespace,
    ):
        self.calls.append(("add", cluster_name, secret_name, secret_format))
        if (cluster_name, secret_name, secret_format) in self.fail_add:
            raise RuntimeError("create failed")
        await super().add_secret_to_cluster(
            secret_name, cluster_name, source_namespace, target_namespace,
            objects, secret_format, backup_namespace,
        )

    async def remove_secret_from_cluster(
        self, secret_name, cluster_name, source_namespace, secret_format,
    ):
        self.calls.append(("remove", cluster_name, secret_name, secret_format))
        if (cluster_name, secret_name, secret_format) in self.fail_remove:
            raise RuntimeError("delete failed")
        await super().remove_secret_from_cluster(
            secret_name, cluster_name, source_namespace, secret_format,
        )

    def mutations(self) -> list:
        return [call for call in self.calls if call[0] in ("add", "remove")]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path):
    """Distribution enabled, native format only."""
    return create_config(
        s3_profiles=SCENARIO_PROFILES,
        state_path=temp_dir / "state",
    )


@pytest.fixture
def backup_config(test_config):
    """Distribution enabled in both formats."""
    return test_config.with_updates(
        backup_integration_enabled=True,
        backup_namespace="velero",
    )


@pytest.fixture
def scenario_clusters():
    return [
        DRCluster(name="A", s3_profile_name="p1"),
        DRCluster(name="B", s3_profile_name="p2"),
        DRCluster(name="C", s3_profile_name="p3"),
    ]


@pytest.fixture
def policy1():
    return DRPolicy(name="policy1", clusters=("A", "B"))


@pytest.fixture
def policy2():
    return DRPolicy(name="policy2", clusters=("B", "C"))


@pytest_asyncio.fixture
async def drsecrets_state(test_config):
    """Runtime state with fresh registry and vault databases."""
    state = await initialize_state(test_config)
    yield state
    await shutdown_state(state)


@pytest.fixture
def memory_store():
    return InMemoryObjectStore()


@pytest.fixture
def failing_store():
    return FailingObjectStore()


def cluster_state(store: InMemoryObjectStore, clusters, secret_format=SecretFormat.NATIVE) -> dict:
    """Snapshot {cluster: set(secret names)} for the given cluster names."""
    return {name: store.secrets_on(name, secret_format) for name in clusters}
