"""Placement state store for the currently loaded level.

The store is a structural copy of a :class:`~podplacer.models.Level`; moves
mutate the copy and never the level template.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from podplacer.models import (
    ControlPlaneComponent,
    Level,
    Node,
    PhysicalHost,
    Pod,
    PodStatus,
)


@dataclass
class PlacementState:
    """Live nodes and pods of a level, keyed by id in declaration order."""

    nodes: Dict[str, Node] = field(default_factory=dict)
    pods: Dict[str, Pod] = field(default_factory=dict)
    physical_hosts: List[PhysicalHost] = field(default_factory=list)
    control_plane: List[ControlPlaneComponent] = field(default_factory=list)

    @classmethod
    def from_level(cls, level: Level) -> "PlacementState":
        """Build a fresh store from a level template.

        Occupant lists are reconciled with each pod's ``node_id`` and usage
        counters are recomputed from occupants, so the store satisfies the
        accounting invariants even if the template only declares one side
        of the pod/node relation. Pending and running statuses follow the
        reconciled placement.
        """
        # Imported here: the accountant module imports this one.
        from podplacer.placement.accountant import recompute_usage

        state = cls(
            nodes={n.id: n.clone() for n in level.nodes},
            pods={p.id: p.clone() for p in level.pods},
            physical_hosts=[h.clone() for h in level.physical_hosts],
            control_plane=[c.clone() for c in level.control_plane],
        )

        claimed = set()
        for node in state.nodes.values():
            node.pods = [
                pid for pid in node.pods if pid in state.pods and pid not in claimed
            ]
            for pid in node.pods:
                claimed.add(pid)
                state.pods[pid].node_id = node.id

        for pod in state.pods.values():
            if pod.node_id is None:
                continue
            node = state.nodes.get(pod.node_id)
            if node is None:
                pod.node_id = None
                continue
            if pod.id not in node.pods:
                node.pods.append(pod.id)

        for pod in state.pods.values():
            if pod.node_id is None and pod.status == PodStatus.RUNNING:
                pod.status = PodStatus.PENDING
            elif pod.node_id is not None and pod.status == PodStatus.PENDING:
                pod.status = PodStatus.RUNNING

        for node in state.nodes.values():
            recompute_usage(node, state.pods)

        return state

    def node(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def pod(self, pod_id: Optional[str]) -> Optional[Pod]:
        if pod_id is None:
            return None
        return self.pods.get(pod_id)

    def pods_on(self, node_id: str) -> List[Pod]:
        """Pods hosted by a node, in occupant order."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [self.pods[pid] for pid in node.pods]

    def nodes_on_host(self, physical_host_id: str) -> Iterator[Node]:
        """Nodes virtualised on the given physical host."""
        for node in self.nodes.values():
            if node.infrastructure.physical_host_id == physical_host_id:
                yield node

    def pod_by_name(self, name: str) -> Optional[Pod]:
        for pod in self.pods.values():
            if pod.name == name:
                return pod
        return None

    def unscheduled(self) -> List[Pod]:
        return [p for p in self.pods.values() if p.node_id is None]

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data copy of the store for rendering."""
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "pods": [p.to_dict() for p in self.pods.values()],
            "physicalHosts": [h.to_dict() for h in self.physical_hosts],
            "controlPlane": [c.to_dict() for c in self.control_plane],
        }
