"""Pytest configuration and fixtures."""

from typing import List, Optional

import pytest

from podplacer.models import (
    InfrastructureFlags,
    Level,
    Node,
    NodeInfrastructure,
    NodeResources,
    ObjectiveSpec,
    PhysicalHost,
    Pod,
    PodResources,
    SchedulingHints,
    StorageRequirement,
    StorageType,
)
from podplacer.session import GameSession
from podplacer.state import PlacementState


def make_node(
    node_id: str,
    capacity: int = 3,
    vcpu: float = 4,
    memory: float = 8,
    host: Optional[str] = None,
    storage: tuple = (StorageType.BLOCK,),
    name: Optional[str] = None,
) -> Node:
    """Build a node with sensible defaults."""
    return Node(
        id=node_id,
        name=name or node_id,
        capacity=capacity,
        resources=NodeResources(vcpu=vcpu, memory=memory),
        infrastructure=NodeInfrastructure(
            physical_host_id=host,
            storage_types=frozenset(storage),
        ),
    )


def make_pod(
    pod_id: str,
    name: str,
    vcpu: float = 0.5,
    memory: float = 1,
    color: Optional[str] = None,
    storage: Optional[StorageType] = None,
    anti_affinity: Optional[str] = None,
) -> Pod:
    """Build a pending pod with sensible defaults."""
    return Pod(
        id=pod_id,
        name=name,
        color=color,
        resources=PodResources(vcpu_request=vcpu, memory_request=memory),
        storage=StorageRequirement(required=True, type=storage) if storage else None,
        scheduling=SchedulingHints(anti_affinity_key=anti_affinity) if anti_affinity else None,
    )


def make_level(
    nodes: List[Node],
    pods: List[Pod],
    objectives: Optional[List[ObjectiveSpec]] = None,
    name: str = "test-level",
    **kwargs,
) -> Level:
    """Build a level; objectives default to scheduling every pod."""
    if objectives is None:
        objectives = [
            ObjectiveSpec(
                description="Schedule every pod",
                kind="full-coverage",
            )
        ]
    return Level(name=name, nodes=nodes, pods=pods, objectives=objectives, **kwargs)


@pytest.fixture
def basic_level():
    """Three capacity-3 workers, two frontend pods and one backend pod."""
    return make_level(
        name="Pod Scheduling 101",
        nodes=[make_node("node-1"), make_node("node-2"), make_node("node-3")],
        pods=[
            make_pod("pod-1", "frontend-a", color="#3b82f6"),
            make_pod("pod-2", "frontend-b", color="#3b82f6"),
            make_pod("pod-3", "backend-a", vcpu=1, memory=2, color="#10b981"),
        ],
        objectives=[
            ObjectiveSpec(
                description="Deploy 2 frontend pods to node-1",
                kind="count-on-node",
                params={"pods": {"prefixes": ["frontend"]}, "nodes": ["node-1"], "min": 2},
            ),
            ObjectiveSpec(
                description="Deploy 1 backend pod to node-2",
                kind="count-on-node",
                params={"pods": {"prefixes": ["backend"]}, "nodes": ["node-2"], "min": 1},
            ),
        ],
        solution={"pod-1": "node-1", "pod-2": "node-1", "pod-3": "node-2"},
    )


@pytest.fixture
def constrained_level():
    """Level with every constraint family enabled.

    node-1 and node-2 share host-1, node-3 sits alone on host-2 and node-4
    is bare metal with NFS storage.
    """
    return make_level(
        name="Constrained",
        nodes=[
            make_node("node-1", capacity=2, vcpu=4, memory=8, host="host-1"),
            make_node("node-2", capacity=2, vcpu=4, memory=8, host="host-1"),
            make_node("node-3", capacity=2, vcpu=4, memory=8, host="host-2"),
            make_node("node-4", capacity=1, vcpu=2, memory=4, storage=(StorageType.BLOCK, StorageType.NFS)),
        ],
        pods=[
            make_pod("pod-1", "ingress-0", vcpu=1, memory=2, anti_affinity="ingress"),
            make_pod("pod-2", "ingress-1", vcpu=1, memory=2, anti_affinity="ingress"),
            make_pod("pod-3", "batch-0", vcpu=5, memory=2),
            make_pod("pod-4", "cache-0", vcpu=1, memory=7),
            make_pod("pod-5", "share-0", vcpu=0.5, memory=1, storage=StorageType.NFS),
        ],
        flags=InfrastructureFlags(
            enable_resource_validation=True,
            enable_storage_validation=True,
            enable_anti_affinity=True,
        ),
        physical_hosts=[
            PhysicalHost(id="host-1", name="Physical Host 1", vms=["node-1", "node-2"]),
            PhysicalHost(id="host-2", name="Physical Host 2", vms=["node-3"]),
        ],
        solution={"pod-1": "node-1", "pod-2": "node-3", "pod-5": "node-4"},
    )


@pytest.fixture
def basic_state(basic_level):
    """Fresh placement state of the basic level."""
    return PlacementState.from_level(basic_level)


@pytest.fixture
def constrained_state(constrained_level):
    """Fresh placement state of the constrained level."""
    return PlacementState.from_level(constrained_level)


@pytest.fixture
def playing_session(basic_level, constrained_level):
    """Session playing the basic level, with the constrained level next."""
    session = GameSession([basic_level, constrained_level])
    session.start()
    session.begin()
    return session
