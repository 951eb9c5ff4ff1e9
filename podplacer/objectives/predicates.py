"""Objective predicate kinds.

Every level objective names one of a closed set of predicate kinds plus
its parameters. A predicate reads only the current nodes and pods, so
evaluating the same state twice always gives the same answer.

Pods are picked with a selector dictionary::

    {"names": ["etcd-0", "etcd-1"]}     # exact pod names
    {"prefixes": ["prod-", "staging-"]} # name prefixes
    {"prefixes": ["auth-"], "invert": true}

An absent selector selects every pod.
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from podplacer.models import Pod
from podplacer.state import PlacementState


class ObjectiveKind(str, Enum):
    """Predicate kinds an objective can use."""

    COUNT_ON_NODE = "count-on-node"
    NODE_OCCUPANCY = "node-occupancy"
    UNIQUE_TAG = "unique-tag"
    EXACT_PLACEMENT = "exact-placement"
    PAIRWISE_SEPARATION = "pairwise-separation"
    RESTRICT_TO_NODES = "restrict-to-nodes"
    EXCLUDE_FROM_NODES = "exclude-from-nodes"
    DISTINCT_NODES = "distinct-nodes"
    THRESHOLD_QUORUM = "threshold-quorum"
    FULL_COVERAGE = "full-coverage"
    SCHEDULED_COUNT = "scheduled-count"
    WITHIN_CAPACITY = "within-capacity"
    LOAD_BALANCE = "load-balance"

    def describe(self) -> str:
        """Human-readable description of the predicate."""
        descriptions = {
            self.COUNT_ON_NODE: "Each listed node hosts between min and max selected pods.",
            self.NODE_OCCUPANCY: "Every node hosts exactly the given number of pods.",
            self.UNIQUE_TAG: "No node hosts two pods sharing a colour or workload type.",
            self.EXACT_PLACEMENT: "Named pods sit on the named nodes.",
            self.PAIRWISE_SEPARATION: "Both pods of every pair are scheduled on different nodes.",
            self.RESTRICT_TO_NODES: "Selected pods run only on the allowed nodes.",
            self.EXCLUDE_FROM_NODES: "Selected pods never run on the forbidden nodes.",
            self.DISTINCT_NODES: "Each group of pods occupies that many distinct nodes.",
            self.THRESHOLD_QUORUM: "At least M pods of each group run on a designated node subset.",
            self.FULL_COVERAGE: "All selected pods are scheduled and no node exceeds capacity.",
            self.SCHEDULED_COUNT: "At least N selected pods are scheduled.",
            self.WITHIN_CAPACITY: "No node holds more pods than its capacity.",
            self.LOAD_BALANCE: "Every healthy node is within tolerance of the mean pod count.",
        }
        return descriptions[self]


Predicate = Callable[[PlacementState, Dict[str, Any]], bool]

PREDICATES: Dict[ObjectiveKind, Predicate] = {}


def predicate(kind: ObjectiveKind) -> Callable[[Predicate], Predicate]:
    """Register a function as the implementation of an objective kind."""

    def register(func: Predicate) -> Predicate:
        PREDICATES[kind] = func
        return func

    return register


def evaluate_predicate(kind: str, state: PlacementState, params: Dict[str, Any]) -> bool:
    """Evaluate a single predicate.

    Raises:
        ValueError: If ``kind`` is not a known ObjectiveKind.
    """
    try:
        objective_kind = ObjectiveKind(kind)
    except ValueError as exc:
        raise ValueError(f"Unknown objective kind: {kind}") from exc
    return PREDICATES[objective_kind](state, params)


# ── Pod selection ─────────────────────────────────────────────


def select_pods(state: PlacementState, selector: Optional[Dict[str, Any]]) -> List[Pod]:
    """Pods matching a selector, in declaration order."""
    if not selector:
        return list(state.pods.values())

    names = set(selector.get("names") or [])
    prefixes = tuple(selector.get("prefixes") or [])
    invert = bool(selector.get("invert", False))

    def matches(pod: Pod) -> bool:
        hit = pod.name in names or (bool(prefixes) and pod.name.startswith(prefixes))
        return hit != invert

    return [p for p in state.pods.values() if matches(p)]


def _group_pods(state: PlacementState, names: Sequence[str]) -> List[Optional[Pod]]:
    return [state.pod_by_name(name) for name in names]


def _scheduled_nodes(pods: Iterable[Optional[Pod]]) -> List[str]:
    return [p.node_id for p in pods if p is not None and p.node_id is not None]


def _pod_tag(pod: Pod, tag: str) -> Optional[str]:
    if tag == "type":
        return pod.workload_type
    return pod.color


# ── Predicates ────────────────────────────────────────────────


@predicate(ObjectiveKind.COUNT_ON_NODE)
def count_on_node(state: PlacementState, params: Dict[str, Any]) -> bool:
    selected = select_pods(state, params.get("pods"))
    minimum = params.get("min", 1)
    maximum = params.get("max")
    for node_id in params["nodes"]:
        count = sum(1 for p in selected if p.node_id == node_id)
        if count < minimum:
            return False
        if maximum is not None and count > maximum:
            return False
    return True


@predicate(ObjectiveKind.NODE_OCCUPANCY)
def node_occupancy(state: PlacementState, params: Dict[str, Any]) -> bool:
    node_ids = params.get("nodes") or list(state.nodes)
    return all(len(state.nodes[n].pods) == params["count"] for n in node_ids)


@predicate(ObjectiveKind.UNIQUE_TAG)
def unique_tag(state: PlacementState, params: Dict[str, Any]) -> bool:
    tag = params.get("tag", "color")
    for node in state.nodes.values():
        tags = [_pod_tag(p, tag) for p in state.pods_on(node.id)]
        if len(set(tags)) != len(tags):
            return False
    return True


@predicate(ObjectiveKind.EXACT_PLACEMENT)
def exact_placement(state: PlacementState, params: Dict[str, Any]) -> bool:
    for name, node_id in params["placements"].items():
        pod = state.pod_by_name(name)
        if pod is None or pod.node_id != node_id:
            return False
    return True


@predicate(ObjectiveKind.PAIRWISE_SEPARATION)
def pairwise_separation(state: PlacementState, params: Dict[str, Any]) -> bool:
    within = params.get("within")
    for pair in params["pairs"]:
        nodes = _scheduled_nodes(_group_pods(state, pair))
        if len(nodes) != 2 or nodes[0] == nodes[1]:
            return False
        if within is not None and not all(n in within for n in nodes):
            return False
    return True


@predicate(ObjectiveKind.RESTRICT_TO_NODES)
def restrict_to_nodes(state: PlacementState, params: Dict[str, Any]) -> bool:
    allowed = set(params["allowed"])
    allow_unscheduled = params.get("allowUnscheduled", False)
    for pod in select_pods(state, params.get("pods")):
        if pod.node_id is None:
            if not allow_unscheduled:
                return False
        elif pod.node_id not in allowed:
            return False
    return True


@predicate(ObjectiveKind.EXCLUDE_FROM_NODES)
def exclude_from_nodes(state: PlacementState, params: Dict[str, Any]) -> bool:
    forbidden = set(params["forbidden"])
    require_scheduled = params.get("requireScheduled", False)
    for pod in select_pods(state, params.get("pods")):
        if pod.node_id is None:
            if require_scheduled:
                return False
        elif pod.node_id in forbidden:
            return False
    return True


@predicate(ObjectiveKind.DISTINCT_NODES)
def distinct_nodes(state: PlacementState, params: Dict[str, Any]) -> bool:
    within = params.get("within")
    for group in params["groups"]:
        cardinality = params.get("cardinality", len(group))
        nodes = _scheduled_nodes(_group_pods(state, group))
        if len(nodes) != cardinality or len(set(nodes)) != cardinality:
            return False
        if within is not None and not all(n in within for n in nodes):
            return False
    return True


@predicate(ObjectiveKind.THRESHOLD_QUORUM)
def threshold_quorum(state: PlacementState, params: Dict[str, Any]) -> bool:
    subset = set(params["nodes"])
    for group in params["groups"]:
        nodes = _scheduled_nodes(_group_pods(state, group))
        if sum(1 for n in nodes if n in subset) < params["min"]:
            return False
    return True


@predicate(ObjectiveKind.FULL_COVERAGE)
def full_coverage(state: PlacementState, params: Dict[str, Any]) -> bool:
    if not all(p.node_id is not None for p in select_pods(state, params.get("pods"))):
        return False
    if params.get("withinCapacity", True):
        return within_capacity(state, {})
    return True


@predicate(ObjectiveKind.SCHEDULED_COUNT)
def scheduled_count(state: PlacementState, params: Dict[str, Any]) -> bool:
    selected = select_pods(state, params.get("pods"))
    return sum(1 for p in selected if p.node_id is not None) >= params.get("min", 1)


@predicate(ObjectiveKind.WITHIN_CAPACITY)
def within_capacity(state: PlacementState, params: Dict[str, Any]) -> bool:
    excluded = set(params.get("exclude") or [])
    return all(
        len(n.pods) <= n.capacity for n in state.nodes.values() if n.id not in excluded
    )


@predicate(ObjectiveKind.LOAD_BALANCE)
def load_balance(state: PlacementState, params: Dict[str, Any]) -> bool:
    """Occupant counts of healthy nodes stay within tolerance of their mean.

    The mean is real-valued: pods scheduled on non-excluded nodes divided by
    the number of non-excluded nodes. No rounding is applied.
    """
    excluded = set(params.get("exclude") or [])
    tolerance = params.get("tolerance", 1)
    active = [n for n in state.nodes.values() if n.id not in excluded]
    if not active:
        return False
    placed = sum(
        1 for p in state.pods.values() if p.node_id is not None and p.node_id not in excluded
    )
    mean = placed / len(active)
    return all(abs(len(n.pods) - mean) <= tolerance for n in active)
