"""Resource accounting for accepted moves.

Usage counters are always recomputed by summing the occupants' requests in
occupant order instead of being adjusted incrementally, so ``vcpu_used`` and
``memory_used`` match the occupants exactly after every operation.
"""

from typing import Dict, List, Optional

from podplacer.models import Node, Pod, PodStatus
from podplacer.state import PlacementState


def recompute_usage(node: Node, pods: Dict[str, Pod]) -> None:
    """Reset a node's used vCPU/memory to the sum of its occupants' requests."""
    occupants = [pods[pid] for pid in node.pods]
    node.resources.vcpu_used = sum(p.resources.vcpu_request for p in occupants)
    node.resources.memory_used = sum(p.resources.memory_request for p in occupants)


def apply_move(state: PlacementState, pod_id: str, node_id: str) -> Optional[str]:
    """Move a pod onto a node and update both nodes' accounting.

    The caller is responsible for validation; this function assumes the
    move is legal (or trusted, as for a revealed solution).

    Args:
        state: Placement state to mutate.
        pod_id: Pod to move.
        node_id: Target node.

    Returns:
        The id of the node the pod left, or None if it was unscheduled.

    Raises:
        KeyError: If the pod or node does not exist.
    """
    pod = state.pods[pod_id]
    target = state.nodes[node_id]
    previous_id = pod.node_id

    if previous_id == node_id:
        return previous_id

    if previous_id is not None:
        previous = state.nodes[previous_id]
        previous.pods = [pid for pid in previous.pods if pid != pod_id]
        recompute_usage(previous, state.pods)

    target.pods.append(pod_id)
    recompute_usage(target, state.pods)

    pod.node_id = node_id
    pod.status = PodStatus.RUNNING
    return previous_id


def unschedule(state: PlacementState, pod_id: str) -> Optional[str]:
    """Remove a pod from its node and mark it pending.

    Returns:
        The id of the node the pod left, or None if it was not scheduled.
    """
    pod = state.pods[pod_id]
    previous_id = pod.node_id
    if previous_id is not None:
        previous = state.nodes[previous_id]
        previous.pods = [pid for pid in previous.pods if pid != pod_id]
        recompute_usage(previous, state.pods)
    pod.node_id = None
    pod.status = PodStatus.PENDING
    return previous_id


def clear_placements(state: PlacementState) -> None:
    """Empty every node and return every pod to pending."""
    for node in state.nodes.values():
        node.pods = []
        node.resources.vcpu_used = 0
        node.resources.memory_used = 0
    for pod in state.pods.values():
        pod.node_id = None
        pod.status = PodStatus.PENDING


def apply_mapping(state: PlacementState, mapping: Dict[str, str]) -> List[str]:
    """Replace all placements with a trusted pod -> node mapping.

    Pods absent from the mapping stay pending. Entries naming an unknown pod
    or node are skipped, as are entries that would overfill a node.

    Returns:
        The pod ids that were skipped.
    """
    clear_placements(state)
    skipped = []
    for pod_id, node_id in mapping.items():
        node = state.nodes.get(node_id)
        if pod_id not in state.pods or node is None or node.is_full:
            skipped.append(pod_id)
            continue
        apply_move(state, pod_id, node_id)
    return skipped


def check_invariants(state: PlacementState) -> List[str]:
    """List violations of the pod/node accounting invariants.

    Returns:
        Human-readable violation messages; empty when the state is consistent.
    """
    errors = []
    seen: Dict[str, str] = {}

    for node in state.nodes.values():
        if len(node.pods) > node.capacity:
            errors.append(
                f"Node '{node.id}' holds {len(node.pods)} pods, capacity {node.capacity}"
            )
        for pid in node.pods:
            pod = state.pods.get(pid)
            if pod is None:
                errors.append(f"Node '{node.id}' lists unknown pod '{pid}'")
                continue
            if pid in seen:
                errors.append(f"Pod '{pid}' listed on both '{seen[pid]}' and '{node.id}'")
            seen[pid] = node.id
            if pod.node_id != node.id:
                errors.append(
                    f"Pod '{pid}' listed on '{node.id}' but points at '{pod.node_id}'"
                )

        occupants = [state.pods[pid] for pid in node.pods if pid in state.pods]
        vcpu = sum(p.resources.vcpu_request for p in occupants)
        memory = sum(p.resources.memory_request for p in occupants)
        if node.resources.vcpu_used != vcpu:
            errors.append(
                f"Node '{node.id}' vCPU used {node.resources.vcpu_used} != {vcpu}"
            )
        if node.resources.memory_used != memory:
            errors.append(
                f"Node '{node.id}' memory used {node.resources.memory_used} != {memory}"
            )

    for pod in state.pods.values():
        if pod.node_id is not None and seen.get(pod.id) != pod.node_id:
            errors.append(
                f"Pod '{pod.id}' points at '{pod.node_id}' which does not list it"
            )

    return errors
