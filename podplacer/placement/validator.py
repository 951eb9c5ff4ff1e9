"""Move legality checks.

A proposed move is checked in a fixed order and stops at the first failure:

- existence:     pod and node must both exist
- no-op:         pod already on the target node is accepted without change
- capacity:      the target node must have a free pod slot
- resources:     vCPU and memory must fit (``enableResourceValidation``)
- storage:       the node must serve the pod's storage type (``enableStorageValidation``)
- anti-affinity: no pod sharing the key on the target's physical host (``enableAntiAffinity``)

None of these functions mutate state.
"""

from typing import Optional

from podplacer.models import ErrorKind, InfrastructureFlags, MoveResult, Node, Pod
from podplacer.state import PlacementState


def check_move(
    state: PlacementState,
    pod_id: str,
    node_id: str,
    flags: Optional[InfrastructureFlags] = None,
) -> MoveResult:
    """Decide whether ``pod_id`` may move onto ``node_id``.

    Args:
        state: Current placement state.
        pod_id: Identifier of the pod to move.
        node_id: Identifier of the target node.
        flags: Constraint families active for the level. Only capacity is
            checked when omitted.

    Returns:
        An accepted MoveResult (``changed=False`` for a no-op move) or a
        rejection carrying the ErrorKind and a human-readable detail.
    """
    if flags is None:
        flags = InfrastructureFlags()

    pod = state.pod(pod_id)
    node = state.node(node_id)
    if pod is None or node is None:
        missing = f"pod '{pod_id}'" if pod is None else f"node '{node_id}'"
        return MoveResult.reject(ErrorKind.UNKNOWN_ENTITY, f"Unknown {missing}")

    if pod.node_id == node.id:
        return MoveResult.ok(changed=False)

    for result in (
        check_capacity(node),
        check_resources(pod, node, flags.enable_resource_validation),
        check_storage(pod, node, flags.enable_storage_validation),
        check_anti_affinity(pod, node, state, flags.enable_anti_affinity),
    ):
        if not result.accepted:
            return result

    return MoveResult.ok()


def check_capacity(node: Node) -> MoveResult:
    """Reject when every pod slot of the node is taken."""
    if len(node.pods) >= node.capacity:
        return MoveResult.reject(
            ErrorKind.CAPACITY_EXCEEDED,
            f"Node {node.name} is at capacity ({len(node.pods)}/{node.capacity})",
        )
    return MoveResult.ok()


def check_resources(pod: Pod, node: Node, enabled: bool = True) -> MoveResult:
    """Reject when the pod's vCPU or memory request exceeds what is left."""
    if not enabled:
        return MoveResult.ok()

    available_vcpu = node.resources.vcpu_available
    if pod.resources.vcpu_request > available_vcpu:
        return MoveResult.reject(
            ErrorKind.INSUFFICIENT_VCPU,
            f"Insufficient vCPU on {node.name}: needs {pod.resources.vcpu_request}, "
            f"available {available_vcpu:.1f}",
            shortfall=pod.resources.vcpu_request - available_vcpu,
        )

    available_memory = node.resources.memory_available
    if pod.resources.memory_request > available_memory:
        return MoveResult.reject(
            ErrorKind.INSUFFICIENT_MEMORY,
            f"Insufficient memory on {node.name}: needs {pod.resources.memory_request}GB, "
            f"available {available_memory:.1f}GB",
            shortfall=pod.resources.memory_request - available_memory,
        )

    return MoveResult.ok()


def check_storage(pod: Pod, node: Node, enabled: bool = True) -> MoveResult:
    """Reject when the node cannot serve the storage type the pod requires."""
    required = pod.required_storage_type
    if not enabled or required is None:
        return MoveResult.ok()

    offered = node.infrastructure.storage_types
    if required not in offered:
        available = ", ".join(sorted(t.value for t in offered)) or "none"
        return MoveResult.reject(
            ErrorKind.UNSUPPORTED_STORAGE_TYPE,
            f"Node {node.name} does not support {required.value} storage. "
            f"Available: {available}",
        )
    return MoveResult.ok()


def check_anti_affinity(
    pod: Pod,
    node: Node,
    state: PlacementState,
    enabled: bool = True,
) -> MoveResult:
    """Reject co-locating pods that share an anti-affinity key on one physical host.

    Bare-metal nodes (no physical host id) never conflict. Otherwise the
    target node and every other node on the same host are searched for a
    pod, other than the one being moved, carrying the same key.
    """
    key = pod.anti_affinity_key
    if not enabled or not key:
        return MoveResult.ok()

    host_id = node.infrastructure.physical_host_id
    if host_id is None:
        return MoveResult.ok()

    for colocated in state.nodes_on_host(host_id):
        for other in state.pods_on(colocated.id):
            if other.id != pod.id and other.anti_affinity_key == key:
                return MoveResult.reject(
                    ErrorKind.ANTI_AFFINITY_VIOLATION,
                    f"Anti-affinity violation: {other.name} already on "
                    f"physical host {host_id}",
                )

    return MoveResult.ok()
