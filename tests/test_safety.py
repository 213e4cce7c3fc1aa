# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Critical Safety Tests for drsecrets.

These tests verify the core guarantees of the deploy and undeploy engines:
1. No over-provisioning - a cluster only holds secrets a live policy reaches
2. No premature deletion - a secret shared with a surviving policy stays
3. Idempotence - deploying twice changes nothing
4. Partial success - one bad cluster does not block the others
5. Feature gate - disabled distribution never mutates anything
6. Errors are surfaced with context, never swallowed
"""

import pytest

from conftest import FailingObjectStore, cluster_state
from drsecrets.distribution import deploy_policy_secrets
from drsecrets.exceptions import (
    CatalogReadError,
    ProfileResolutionError,
    SecretPropagationError,
)
from drsecrets.guard import NullGuard
from drsecrets.models import DRCluster, DRPolicy, PlacementAction, SecretFormat
from drsecrets.profiles import ProfileDirectory
from drsecrets.reclamation import undeploy_policy_secrets
from drsecrets.resolver import must_have_secrets


async def _deploy_all(store, policies, clusters, config):
    for policy in policies:
        store.put_policy(policy)
        await deploy_policy_secrets(policy, clusters, config, store, NullGuard())


async def _delete(store, policy, clusters, config):
    result = await undeploy_policy_secrets(policy, clusters, config, store, NullGuard())
    store.drop_policy(policy.name)
    return result


# ============================================================================
# Scenario: two overlapping policies, shared secret
# ============================================================================

@pytest.mark.asyncio
async def test_scenario_deploy_then_delete_first_policy(
    memory_store, test_config, scenario_clusters, policy1, policy2
):
    """
    Profiles {p1->s1, p2->s1, p3->s2}; clusters {A:p1, B:p2, C:p3};
    policy1 spans {A, B}, policy2 spans {B, C}.

    Every cluster receives the secrets of all its peers, so C also holds s1
    (reached through B's profile via policy2). Deleting policy1 removes s1
    from A only: B and C still reach s1 through policy2.
    """
    await _deploy_all(memory_store, [policy1, policy2], scenario_clusters, test_config)

    assert cluster_state(memory_store, "ABC") == {
        "A": {"s1"},
        "B": {"s1", "s2"},
        "C": {"s1", "s2"},
    }

    result = await _delete(memory_store, policy1, scenario_clusters, test_config)

    assert cluster_state(memory_store, "ABC") == {
        "A": set(),
        "B": {"s1", "s2"},
        "C": {"s1", "s2"},
    }
    assert result.candidates == ["s1"]
    assert result.retained == [("B", "s1")]
    assert [(p.cluster_name, p.secret_name) for p in result.placements] == [("A", "s1")]


@pytest.mark.asyncio
async def test_deleting_every_policy_leaves_no_secrets(
    memory_store, test_config, scenario_clusters, policy1, policy2
):
    await _deploy_all(memory_store, [policy1, policy2], scenario_clusters, test_config)

    await _delete(memory_store, policy1, scenario_clusters, test_config)
    await _delete(memory_store, policy2, scenario_clusters, test_config)

    assert memory_store.placements() == set()


# ============================================================================
# No over-provisioning
# ============================================================================

@pytest.mark.asyncio
async def test_no_secret_without_a_live_policy_reaching_it(
    memory_store, test_config, scenario_clusters, policy1, policy2
):
    """
    CRITICAL: after any sequence of passes, every secret on every cluster
    is required by some live policy spanning that cluster.
    """
    policy3 = DRPolicy(name="policy3", clusters=("A", "C"))
    directory = ProfileDirectory.from_config(test_config)

    await _deploy_all(
        memory_store, [policy1, policy2, policy3], scenario_clusters, test_config
    )
    await _delete(memory_store, policy2, scenario_clusters, test_config)
    await _delete(memory_store, policy3, scenario_clusters, test_config)

    live = await memory_store.list_policies()
    for cluster in scenario_clusters:
        required = must_have_secrets(live, scenario_clusters, cluster.name, directory)
        assert memory_store.secrets_on(cluster.name) <= required, cluster.name
        # And nothing required is missing
        assert required <= memory_store.secrets_on(cluster.name), cluster.name


# ============================================================================
# No premature deletion
# ============================================================================

@pytest.mark.asyncio
async def test_shared_secret_survives_while_other_policy_active(
    memory_store, test_config, scenario_clusters
):
    """
    CRITICAL: two policies reaching the same secret on the same cluster
    through different profiles; deleting one must keep the secret.
    """
    clusters = scenario_clusters + [DRCluster(name="D", s3_profile_name="p2")]
    first = DRPolicy(name="first", clusters=("A", "C"))  # s1 via p1
    second = DRPolicy(name="second", clusters=("D", "C"))  # s1 via p2

    await _deploy_all(memory_store, [first, second], clusters, test_config)
    assert "s1" in memory_store.secrets_on("C")

    await _delete(memory_store, first, clusters, test_config)

    assert "s1" in memory_store.secrets_on("C")
    assert memory_store.secrets_on("A") == set()


@pytest.mark.asyncio
async def test_deleted_policy_still_listed_is_ignored(
    memory_store, test_config, scenario_clusters, policy1
):
    """
    The catalog usually still contains the policy being deleted. It must not
    count as a referrer of its own secrets.
    """
    await _deploy_all(memory_store, [policy1], scenario_clusters, test_config)
    assert [p.name for p in await memory_store.list_policies()] == ["policy1"]

    result = await undeploy_policy_secrets(
        policy1, scenario_clusters, test_config, memory_store, NullGuard()
    )

    assert cluster_state(memory_store, "AB") == {"A": set(), "B": set()}
    assert result.retained == []


# ============================================================================
# Idempotence
# ============================================================================

@pytest.mark.asyncio
async def test_deploy_twice_is_idempotent(
    memory_store, test_config, scenario_clusters, policy1, policy2
):
    await _deploy_all(memory_store, [policy1, policy2], scenario_clusters, test_config)
    once = memory_store.placements()

    await _deploy_all(memory_store, [policy1, policy2], scenario_clusters, test_config)

    assert memory_store.placements() == once


@pytest.mark.asyncio
async def test_undeploy_of_already_cleaned_policy_succeeds(
    memory_store, test_config, scenario_clusters, policy1
):
    await _deploy_all(memory_store, [policy1], scenario_clusters, test_config)

    await undeploy_policy_secrets(
        policy1, scenario_clusters, test_config, memory_store, NullGuard()
    )
    again = await undeploy_policy_secrets(
        policy1, scenario_clusters, test_config, memory_store, NullGuard()
    )

    assert memory_store.placements() == set()
    assert len(again.placements) == 2  # removals are idempotent, still issued


# ============================================================================
# Partial success
# ============================================================================

@pytest.mark.asyncio
async def test_partial_profile_resolution_deploys_what_resolved(memory_store, test_config):
    clusters = [
        DRCluster(name="A", s3_profile_name="p1"),
        DRCluster(name="B", s3_profile_name="not-configured"),
    ]
    policy = DRPolicy(name="partial", clusters=("A", "B"))

    result = await deploy_policy_secrets(
        policy, clusters, test_config, memory_store, NullGuard()
    )

    assert result.secret_names == ["s1"]
    assert len(result.warnings) == 1
    assert "not-configured" in result.warnings[0]
    assert memory_store.secrets_on("A") == {"s1"}
    # B is still spanned and still needs its peer's secret
    assert memory_store.secrets_on("B") == {"s1"}


@pytest.mark.asyncio
async def test_nothing_resolved_is_fatal_and_pushes_nothing(failing_store, test_config):
    clusters = [DRCluster(name="A", s3_profile_name="x"), DRCluster(name="B")]
    policy = DRPolicy(name="broken", clusters=("A", "B"))

    with pytest.raises(ProfileResolutionError) as exc_info:
        await deploy_policy_secrets(policy, clusters, test_config, failing_store, NullGuard())

    assert exc_info.value.details["cluster_name"] == "A"
    assert failing_store.mutations() == []


@pytest.mark.asyncio
async def test_undeploy_tolerates_resolution_errors(memory_store, test_config):
    clusters = [
        DRCluster(name="A", s3_profile_name="p1"),
        DRCluster(name="B", s3_profile_name="gone"),
    ]
    policy = DRPolicy(name="partial", clusters=("A", "B"))
    await _deploy_all(memory_store, [policy], clusters, test_config)

    result = await undeploy_policy_secrets(
        policy, clusters, test_config, memory_store, NullGuard()
    )

    assert len(result.warnings) == 1
    assert memory_store.placements() == set()


# ============================================================================
# Feature gate
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "updates",
    [
        {"s3_secret_distribution_enabled": False},
        {"deployment_automation_enabled": False},
    ],
)
async def test_disabled_distribution_never_mutates(
    failing_store, test_config, scenario_clusters, policy1, updates
):
    config = test_config.with_updates(**updates)
    failing_store.fail_list = True  # would raise if undeploy touched the catalog
    guard = NullGuard()

    deployed = await deploy_policy_secrets(
        policy1, scenario_clusters, config, failing_store, guard
    )
    undeployed = await undeploy_policy_secrets(
        policy1, scenario_clusters, config, failing_store, guard
    )

    assert deployed.skipped and undeployed.skipped
    assert failing_store.calls == []
    assert guard.acquisitions == 0


# ============================================================================
# Backup tool format kept in lockstep
# ============================================================================

@pytest.mark.asyncio
async def test_backup_format_deployed_and_removed_with_native(
    memory_store, backup_config, scenario_clusters, policy1, policy2
):
    await _deploy_all(memory_store, [policy1, policy2], scenario_clusters, backup_config)

    native = cluster_state(memory_store, "ABC", SecretFormat.NATIVE)
    backup = cluster_state(memory_store, "ABC", SecretFormat.BACKUP_TOOL)
    assert native == backup

    stored = memory_store.get_secret("A", "s1", SecretFormat.BACKUP_TOOL)
    assert stored.backup_namespace == "velero"
    assert memory_store.get_secret("A", "s1", SecretFormat.NATIVE).backup_namespace == ""

    await _delete(memory_store, policy1, scenario_clusters, backup_config)

    assert cluster_state(memory_store, "ABC", SecretFormat.NATIVE) == cluster_state(
        memory_store, "ABC", SecretFormat.BACKUP_TOOL
    )
    assert memory_store.secrets_on("A", SecretFormat.BACKUP_TOOL) == set()


@pytest.mark.asyncio
async def test_backup_format_needs_namespace(memory_store, test_config, scenario_clusters, policy1):
    config = test_config.with_updates(backup_integration_enabled=True, backup_namespace="")

    await deploy_policy_secrets(policy1, scenario_clusters, config, memory_store, NullGuard())

    assert memory_store.secrets_on("A", SecretFormat.BACKUP_TOOL) == set()
    assert memory_store.secrets_on("A", SecretFormat.NATIVE) == {"s1"}


@pytest.mark.asyncio
async def test_pushed_secret_carries_namespaces_and_rbac_bundle(
    memory_store, test_config, scenario_clusters, policy1
):
    await deploy_policy_secrets(
        policy1, scenario_clusters, test_config, memory_store, NullGuard()
    )

    stored = memory_store.get_secret("B", "s1")
    assert stored.source_namespace == test_config.operator_namespace
    assert stored.target_namespace == test_config.dr_cluster_operator_namespace
    kinds = [obj["kind"] for obj in stored.objects]
    assert kinds.count("ClusterRole") == 4
    assert "RoleBinding" in kinds


# ============================================================================
# Error propagation
# ============================================================================

@pytest.mark.asyncio
async def test_push_failure_aborts_and_reports_context(
    failing_store, backup_config, scenario_clusters, policy1
):
    failing_store.fail_add.add(("A", "s1", SecretFormat.BACKUP_TOOL))

    with pytest.raises(SecretPropagationError) as exc_info:
        await deploy_policy_secrets(
            policy1, scenario_clusters, backup_config, failing_store, NullGuard()
        )

    details = exc_info.value.details
    assert details["cluster_name"] == "A"
    assert details["secret_name"] == "s1"
    assert details["secret_format"] == SecretFormat.BACKUP_TOOL.value
    assert details["action"] == PlacementAction.ADD.value
    assert details["completed"] == 1
    # Nothing after the failure was attempted
    assert failing_store.mutations()[-1] == ("add", "A", "s1", SecretFormat.BACKUP_TOOL)
    assert failing_store.secrets_on("B") == set()
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_delete_failure_aborts_remaining_deletions(
    failing_store, test_config, scenario_clusters, policy2
):
    await _deploy_all(failing_store, [policy2], scenario_clusters, test_config)
    failing_store.fail_remove.add(("B", "s2", SecretFormat.NATIVE))

    with pytest.raises(SecretPropagationError) as exc_info:
        await undeploy_policy_secrets(
            policy2, scenario_clusters, test_config, failing_store, NullGuard()
        )

    assert exc_info.value.details["action"] == PlacementAction.REMOVE.value
    assert failing_store.secrets_on("B") == {"s2"}
    # C was never reached
    assert failing_store.secrets_on("C") == {"s1", "s2"}


@pytest.mark.asyncio
async def test_catalog_read_failure_aborts_before_any_mutation(
    failing_store, test_config, scenario_clusters, policy1
):
    await _deploy_all(failing_store, [policy1], scenario_clusters, test_config)
    before = failing_store.placements()
    mutations_before = len(failing_store.mutations())
    failing_store.fail_list = True

    with pytest.raises(CatalogReadError):
        await undeploy_policy_secrets(
            policy1, scenario_clusters, test_config, failing_store, NullGuard()
        )

    assert failing_store.placements() == before
    assert len(failing_store.mutations()) == mutations_before
