"""Tests for move legality checks."""

import pytest

from podplacer.models import ErrorKind, InfrastructureFlags, SchedulingHints
from podplacer.placement.accountant import apply_move
from podplacer.placement.validator import (
    check_anti_affinity,
    check_capacity,
    check_move,
    check_resources,
    check_storage,
)
from podplacer.state import PlacementState

from conftest import make_level, make_node, make_pod


ALL_FLAGS = InfrastructureFlags(
    enable_resource_validation=True,
    enable_storage_validation=True,
    enable_anti_affinity=True,
)


# ── Existence and no-op ───────────────────────────────────────


class TestExistence:
    """Unknown pods and nodes are contract violations."""

    def test_unknown_pod(self, basic_state):
        """Test a move naming a missing pod is rejected."""
        result = check_move(basic_state, "pod-99", "node-1")
        assert not result.accepted
        assert result.reason == ErrorKind.UNKNOWN_ENTITY
        assert "pod-99" in result.detail

    def test_unknown_node(self, basic_state):
        """Test a move naming a missing node is rejected."""
        result = check_move(basic_state, "pod-1", "node-99")
        assert not result.accepted
        assert result.reason == ErrorKind.UNKNOWN_ENTITY
        assert "node-99" in result.detail

    def test_unknown_entity_not_user_correctable(self):
        """Test only player mistakes count as user-correctable."""
        assert not ErrorKind.UNKNOWN_ENTITY.user_correctable
        assert ErrorKind.CAPACITY_EXCEEDED.user_correctable


class TestNoOp:
    """Moving a pod onto the node it already occupies."""

    def test_accepted_without_change(self, basic_state):
        """Test a repeat move is accepted and flagged unchanged."""
        apply_move(basic_state, "pod-1", "node-1")
        result = check_move(basic_state, "pod-1", "node-1")
        assert result.accepted
        assert not result.changed

    def test_no_op_on_full_node_is_accepted(self):
        """Test the no-op check runs before capacity."""
        level = make_level(
            nodes=[make_node("node-1", capacity=1)],
            pods=[make_pod("pod-1", "web-0")],
        )
        state = PlacementState.from_level(level)
        apply_move(state, "pod-1", "node-1")
        assert check_move(state, "pod-1", "node-1").accepted


# ── Capacity ──────────────────────────────────────────────────


class TestCapacity:
    """The capacity check applies to every level."""

    def test_full_node_rejected(self):
        """Test a node at capacity rejects another pod."""
        level = make_level(
            nodes=[make_node("node-1", capacity=1), make_node("node-2")],
            pods=[make_pod("pod-1", "web-0"), make_pod("pod-2", "web-1")],
        )
        state = PlacementState.from_level(level)
        apply_move(state, "pod-1", "node-1")

        result = check_move(state, "pod-2", "node-1")
        assert not result.accepted
        assert result.reason == ErrorKind.CAPACITY_EXCEEDED
        assert "(1/1)" in result.detail

    def test_zero_capacity_rejects_everything(self):
        """Test a zero-capacity node admits nothing."""
        node = make_node("node-1", capacity=0)
        assert check_capacity(node).reason == ErrorKind.CAPACITY_EXCEEDED

    def test_capacity_checked_without_flags(self):
        """Test capacity is enforced even with every flag off."""
        level = make_level(
            nodes=[make_node("node-1", capacity=0)],
            pods=[make_pod("pod-1", "web-0", vcpu=100)],
        )
        state = PlacementState.from_level(level)
        assert check_move(state, "pod-1", "node-1").reason == ErrorKind.CAPACITY_EXCEEDED


# ── Resources ─────────────────────────────────────────────────


class TestResources:
    """vCPU and memory requests must fit what is left on the node."""

    def test_insufficient_vcpu(self, constrained_state):
        """Test a vCPU shortfall is rejected and reported."""
        result = check_move(constrained_state, "pod-3", "node-3", ALL_FLAGS)
        assert not result.accepted
        assert result.reason == ErrorKind.INSUFFICIENT_VCPU
        assert result.shortfall == pytest.approx(1.0)

    def test_insufficient_memory(self, constrained_state):
        """Test memory is checked against what earlier pods left."""
        apply_move(constrained_state, "pod-1", "node-3")
        result = check_move(constrained_state, "pod-4", "node-3", ALL_FLAGS)
        assert not result.accepted
        assert result.reason == ErrorKind.INSUFFICIENT_MEMORY

    def test_vcpu_checked_before_memory(self):
        """Test vCPU is reported when both resources fall short."""
        node = make_node("node-1", vcpu=1, memory=1)
        pod = make_pod("pod-1", "big-0", vcpu=2, memory=2)
        assert check_resources(pod, node).reason == ErrorKind.INSUFFICIENT_VCPU

    def test_exact_fit_accepted(self):
        """Test requests equal to availability fit."""
        node = make_node("node-1", vcpu=2, memory=4)
        pod = make_pod("pod-1", "fit-0", vcpu=2, memory=4)
        assert check_resources(pod, node).accepted

    def test_disabled_ignores_requests(self, constrained_state):
        """Test resource requests are ignored when the flag is off."""
        flags = InfrastructureFlags(enable_resource_validation=False)
        assert check_move(constrained_state, "pod-3", "node-3", flags).accepted

    def test_capacity_checked_before_resources(self):
        """Test a full node reports capacity rather than resources."""
        level = make_level(
            nodes=[make_node("node-1", capacity=0, vcpu=1)],
            pods=[make_pod("pod-1", "big-0", vcpu=5)],
        )
        state = PlacementState.from_level(level)
        result = check_move(state, "pod-1", "node-1", ALL_FLAGS)
        assert result.reason == ErrorKind.CAPACITY_EXCEEDED


# ── Storage ───────────────────────────────────────────────────


class TestStorage:
    """Pods requiring storage need a node serving that type."""

    def test_unsupported_type_rejected(self, constrained_state):
        """Test the detail names the required and available types."""
        result = check_move(constrained_state, "pod-5", "node-1", ALL_FLAGS)
        assert not result.accepted
        assert result.reason == ErrorKind.UNSUPPORTED_STORAGE_TYPE
        assert "nfs" in result.detail
        assert "Available: block" in result.detail

    def test_supported_type_accepted(self, constrained_state):
        """Test a node serving the required type accepts the pod."""
        assert check_move(constrained_state, "pod-5", "node-4", ALL_FLAGS).accepted

    def test_pod_without_storage_passes(self):
        """Test a pod with no storage need fits a node with no storage."""
        node = make_node("node-1", storage=())
        pod = make_pod("pod-1", "web-0")
        assert check_storage(pod, node).accepted

    def test_disabled_ignores_storage(self, constrained_state):
        """Test storage requirements are ignored when the flag is off."""
        flags = InfrastructureFlags(enable_storage_validation=False)
        assert check_move(constrained_state, "pod-5", "node-1", flags).accepted


# ── Anti-affinity ─────────────────────────────────────────────


class TestAntiAffinity:
    """Pods sharing a key may not share a physical host."""

    def test_same_host_rejected(self, constrained_state):
        """Test a sibling VM on the same host blocks the move."""
        apply_move(constrained_state, "pod-1", "node-1")
        result = check_move(constrained_state, "pod-2", "node-2", ALL_FLAGS)
        assert not result.accepted
        assert result.reason == ErrorKind.ANTI_AFFINITY_VIOLATION
        assert "ingress-0" in result.detail
        assert "host-1" in result.detail

    def test_same_node_rejected(self, constrained_state):
        """Test the target node itself is searched."""
        apply_move(constrained_state, "pod-1", "node-1")
        result = check_move(constrained_state, "pod-2", "node-1", ALL_FLAGS)
        assert result.reason == ErrorKind.ANTI_AFFINITY_VIOLATION

    def test_different_host_accepted(self, constrained_state):
        """Test a node on another host accepts the keyed pod."""
        apply_move(constrained_state, "pod-1", "node-1")
        assert check_move(constrained_state, "pod-2", "node-3", ALL_FLAGS).accepted

    def test_bare_metal_never_conflicts(self):
        """Test nodes without a physical host skip the check."""
        level = make_level(
            nodes=[make_node("node-1", capacity=2)],
            pods=[
                make_pod("pod-1", "ingress-0", anti_affinity="ingress"),
                make_pod("pod-2", "ingress-1", anti_affinity="ingress"),
            ],
        )
        state = PlacementState.from_level(level)
        apply_move(state, "pod-1", "node-1")
        assert check_move(state, "pod-2", "node-1", ALL_FLAGS).accepted

    def test_pod_without_key_passes(self, constrained_state):
        """Test a pod with no key is never blocked by keyed neighbours."""
        apply_move(constrained_state, "pod-1", "node-1")
        node = constrained_state.nodes["node-2"]
        pod = constrained_state.pods["pod-4"]
        assert check_anti_affinity(pod, node, constrained_state).accepted

    def test_empty_key_is_no_key(self):
        """Test pods with a blank anti-affinity key may share a host."""
        level = make_level(
            nodes=[make_node("node-1", host="host-1"), make_node("node-2", host="host-1")],
            pods=[make_pod("pod-1", "web-0"), make_pod("pod-2", "web-1")],
        )
        state = PlacementState.from_level(level)
        for pod in state.pods.values():
            pod.scheduling = SchedulingHints(anti_affinity_key="")
        apply_move(state, "pod-1", "node-1")

        assert check_move(state, "pod-2", "node-2", ALL_FLAGS).accepted
        assert check_move(state, "pod-2", "node-1", ALL_FLAGS).accepted

    def test_moving_pod_does_not_conflict_with_itself(self, constrained_state):
        """Test a pod can move to a sibling VM of its own node."""
        apply_move(constrained_state, "pod-1", "node-1")
        assert check_move(constrained_state, "pod-1", "node-2", ALL_FLAGS).accepted

    def test_disabled_ignores_hosts(self, constrained_state):
        """Test shared hosts are allowed when the flag is off."""
        apply_move(constrained_state, "pod-1", "node-1")
        flags = InfrastructureFlags(enable_anti_affinity=False)
        assert check_move(constrained_state, "pod-2", "node-2", flags).accepted


class TestPurity:
    """Checks never mutate state."""

    def test_rejection_leaves_state_untouched(self, constrained_state):
        """Test rejected checks leave the store byte-for-byte equal."""
        apply_move(constrained_state, "pod-1", "node-1")
        before = constrained_state.to_dict()
        check_move(constrained_state, "pod-2", "node-2", ALL_FLAGS)
        check_move(constrained_state, "pod-3", "node-3", ALL_FLAGS)
        assert constrained_state.to_dict() == before
