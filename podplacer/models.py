"""Domain types for the placement puzzle.

Nodes, pods, physical hosts and control plane components make up a level's
topology. Levels are immutable templates; the live copy a player mutates is
held by :class:`podplacer.state.PlacementState`, which is built from these
types through their explicit ``clone()`` methods.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class PodStatus(str, Enum):
    """Pod lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    TERMINATING = "terminating"
    FAILED = "failed"


class StorageType(str, Enum):
    """Volume types a node can serve and a pod can require."""

    BLOCK = "block"
    NFS = "nfs"
    OBJECT = "object"


class ComponentKind(str, Enum):
    """Control plane component kinds."""

    ETCD = "etcd"
    APISERVER = "apiserver"
    SCHEDULER = "scheduler"
    CONTROLLER_MANAGER = "controller-manager"


class GamePhase(str, Enum):
    """Phases of a play session."""

    MENU = "menu"
    BRIEFING = "briefing"
    PLAYING = "playing"
    LEVEL_COMPLETE = "levelComplete"
    GAME_COMPLETE = "gameComplete"


class ErrorKind(str, Enum):
    """Reasons a move or session action can be rejected.

    Rejections are returned as values, never raised.
    """

    CAPACITY_EXCEEDED = "CapacityExceeded"
    INSUFFICIENT_VCPU = "InsufficientVCPU"
    INSUFFICIENT_MEMORY = "InsufficientMemory"
    UNSUPPORTED_STORAGE_TYPE = "UnsupportedStorageType"
    ANTI_AFFINITY_VIOLATION = "AntiAffinityViolation"
    UNKNOWN_ENTITY = "UnknownEntity"
    REVEAL_QUOTA_EXHAUSTED = "RevealQuotaExhausted"
    INVALID_LEVEL_INDEX = "InvalidLevelIndex"
    INVALID_PHASE = "InvalidPhase"

    @property
    def user_correctable(self) -> bool:
        """True for rejections the player can fix by choosing another move."""
        return self in (
            ErrorKind.CAPACITY_EXCEEDED,
            ErrorKind.INSUFFICIENT_VCPU,
            ErrorKind.INSUFFICIENT_MEMORY,
            ErrorKind.UNSUPPORTED_STORAGE_TYPE,
            ErrorKind.ANTI_AFFINITY_VIOLATION,
        )


# ── Nodes ─────────────────────────────────────────────────────


@dataclass
class NodeResources:
    """vCPU and memory (GB) budget of a node plus current usage."""

    vcpu: float
    memory: float
    vcpu_used: float = 0.0
    memory_used: float = 0.0

    @property
    def vcpu_available(self) -> float:
        return self.vcpu - self.vcpu_used

    @property
    def memory_available(self) -> float:
        return self.memory - self.memory_used

    def clone(self) -> "NodeResources":
        return NodeResources(
            vcpu=self.vcpu,
            memory=self.memory,
            vcpu_used=self.vcpu_used,
            memory_used=self.memory_used,
        )


@dataclass
class NodeInfrastructure:
    """Where a node runs and what storage it offers."""

    node_type: str = "worker"
    hypervisor: Optional[str] = None
    physical_host_id: Optional[str] = None
    storage_types: FrozenSet[StorageType] = frozenset()
    zone: Optional[str] = None

    @property
    def is_virtualized(self) -> bool:
        """A node without a physical host id is treated as bare metal."""
        return self.physical_host_id is not None

    def clone(self) -> "NodeInfrastructure":
        return NodeInfrastructure(
            node_type=self.node_type,
            hypervisor=self.hypervisor,
            physical_host_id=self.physical_host_id,
            storage_types=frozenset(self.storage_types),
            zone=self.zone,
        )


@dataclass
class Node:
    """A capacity- and resource-bounded host that pods are placed onto."""

    id: str
    name: str
    capacity: int
    resources: NodeResources
    infrastructure: NodeInfrastructure = field(default_factory=NodeInfrastructure)
    pods: List[str] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return len(self.pods) >= self.capacity

    def clone(self) -> "Node":
        return Node(
            id=self.id,
            name=self.name,
            capacity=self.capacity,
            resources=self.resources.clone(),
            infrastructure=self.infrastructure.clone(),
            pods=list(self.pods),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a dictionary."""
        infra = self.infrastructure
        return {
            "id": self.id,
            "name": self.name,
            "capacity": self.capacity,
            "pods": list(self.pods),
            "resources": {
                "vCPU": self.resources.vcpu,
                "vCPUUsed": self.resources.vcpu_used,
                "memory": self.resources.memory,
                "memoryUsed": self.resources.memory_used,
            },
            "infrastructure": {
                "nodeType": infra.node_type,
                "hypervisor": infra.hypervisor,
                "physicalHostId": infra.physical_host_id,
                "storageTypes": sorted(t.value for t in infra.storage_types),
                "zone": infra.zone,
            },
        }


# ── Pods ──────────────────────────────────────────────────────


@dataclass
class PodResources:
    """Resources a pod requests from its node."""

    vcpu_request: float = 0.0
    memory_request: float = 0.0

    def clone(self) -> "PodResources":
        return PodResources(
            vcpu_request=self.vcpu_request,
            memory_request=self.memory_request,
        )


@dataclass
class StorageRequirement:
    """Persistent storage a pod needs from its node."""

    required: bool = False
    type: Optional[StorageType] = None
    size: float = 0.0

    def clone(self) -> "StorageRequirement":
        return StorageRequirement(required=self.required, type=self.type, size=self.size)


@dataclass
class SchedulingHints:
    """Optional scheduling constraints declared by a pod."""

    requires_baremetal: bool = False
    anti_affinity_key: Optional[str] = None
    node_selector: Dict[str, str] = field(default_factory=dict)

    def clone(self) -> "SchedulingHints":
        return SchedulingHints(
            requires_baremetal=self.requires_baremetal,
            anti_affinity_key=self.anti_affinity_key,
            node_selector=dict(self.node_selector),
        )


@dataclass
class Pod:
    """A schedulable workload unit."""

    id: str
    name: str
    resources: PodResources = field(default_factory=PodResources)
    status: PodStatus = PodStatus.PENDING
    node_id: Optional[str] = None
    color: Optional[str] = None
    storage: Optional[StorageRequirement] = None
    scheduling: Optional[SchedulingHints] = None

    @property
    def is_scheduled(self) -> bool:
        return self.node_id is not None

    @property
    def anti_affinity_key(self) -> Optional[str]:
        if self.scheduling is None:
            return None
        return self.scheduling.anti_affinity_key

    @property
    def required_storage_type(self) -> Optional[StorageType]:
        """Storage type the pod insists on, or None when it has no requirement."""
        if self.storage is None or not self.storage.required:
            return None
        return self.storage.type

    @property
    def workload_type(self) -> str:
        """Pod name without its trailing replica suffix (``api-2`` -> ``api``)."""
        base, sep, suffix = self.name.rpartition("-")
        if sep and base:
            return base
        return self.name

    def clone(self) -> "Pod":
        return Pod(
            id=self.id,
            name=self.name,
            resources=self.resources.clone(),
            status=self.status,
            node_id=self.node_id,
            color=self.color,
            storage=self.storage.clone() if self.storage else None,
            scheduling=self.scheduling.clone() if self.scheduling else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a dictionary."""
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "status": self.status.value,
            "nodeId": self.node_id,
            "resources": {
                "vCPURequest": self.resources.vcpu_request,
                "memoryRequest": self.resources.memory_request,
            },
        }
        if self.storage is not None:
            data["storage"] = {
                "required": self.storage.required,
                "type": self.storage.type.value if self.storage.type else None,
                "size": self.storage.size,
            }
        if self.scheduling is not None:
            data["scheduling"] = {
                "requiresBaremetal": self.scheduling.requires_baremetal,
                "antiAffinityKey": self.scheduling.anti_affinity_key,
                "nodeSelector": dict(self.scheduling.node_selector),
            }
        return data


# ── Infrastructure ────────────────────────────────────────────


@dataclass
class PhysicalHost:
    """A machine running one or more virtualised nodes.

    Its CPU/memory budget is informational; only the co-location relation
    is used, by the anti-affinity check.
    """

    id: str
    name: str
    vms: List[str] = field(default_factory=list)
    pcpu: float = 0.0
    memory: float = 0.0
    zone: Optional[str] = None

    def clone(self) -> "PhysicalHost":
        return PhysicalHost(
            id=self.id,
            name=self.name,
            vms=list(self.vms),
            pcpu=self.pcpu,
            memory=self.memory,
            zone=self.zone,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "vms": list(self.vms),
            "resources": {"pCPU": self.pcpu, "memory": self.memory},
            "zone": self.zone,
        }


@dataclass
class ControlPlaneComponent:
    """Read-only control plane component shown alongside the cluster."""

    id: str
    name: str
    component_type: ComponentKind
    healthy: bool = True
    version: Optional[str] = None
    endpoint: Optional[str] = None

    def clone(self) -> "ControlPlaneComponent":
        return ControlPlaneComponent(
            id=self.id,
            name=self.name,
            component_type=self.component_type,
            healthy=self.healthy,
            version=self.version,
            endpoint=self.endpoint,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "componentType": self.component_type.value,
            "healthy": self.healthy,
            "metadata": {"version": self.version, "endpoint": self.endpoint},
        }


# ── Levels ────────────────────────────────────────────────────


@dataclass(frozen=True)
class InfrastructureFlags:
    """Constraint families switched on for a level."""

    enable_resource_validation: bool = False
    enable_storage_validation: bool = False
    enable_anti_affinity: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "enableResourceValidation": self.enable_resource_validation,
            "enableStorageValidation": self.enable_storage_validation,
            "enableAntiAffinity": self.enable_anti_affinity,
        }


@dataclass
class ObjectiveSpec:
    """A level objective: a predicate kind plus its parameters."""

    description: str
    kind: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ObjectiveStatus:
    """Completion of one objective against the current placement."""

    description: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "completed": self.completed}


@dataclass
class Level:
    """Immutable level template."""

    name: str
    nodes: List[Node]
    pods: List[Pod]
    objectives: List[ObjectiveSpec] = field(default_factory=list)
    flags: InfrastructureFlags = field(default_factory=InfrastructureFlags)
    physical_hosts: List[PhysicalHost] = field(default_factory=list)
    control_plane: List[ControlPlaneComponent] = field(default_factory=list)
    solution: Dict[str, str] = field(default_factory=dict)
    description: str = ""
    hint: str = ""
    analysis: str = ""

    def summary(self) -> Dict[str, Any]:
        """Short description used by level listings."""
        return {
            "name": self.name,
            "description": self.description,
            "nodes": len(self.nodes),
            "pods": len(self.pods),
            "objectives": [o.description for o in self.objectives],
            "infrastructure": self.flags.to_dict(),
        }


# ── Results ───────────────────────────────────────────────────


@dataclass
class MoveResult:
    """Outcome of a proposed pod move."""

    accepted: bool
    reason: Optional[ErrorKind] = None
    detail: Optional[str] = None
    shortfall: Optional[float] = None
    changed: bool = False

    @classmethod
    def ok(cls, changed: bool = True) -> "MoveResult":
        return cls(accepted=True, changed=changed)

    @classmethod
    def reject(
        cls,
        reason: ErrorKind,
        detail: str,
        shortfall: Optional[float] = None,
    ) -> "MoveResult":
        return cls(accepted=False, reason=reason, detail=detail, shortfall=shortfall)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"accepted": self.accepted, "changed": self.changed}
        if self.reason is not None:
            data["reason"] = self.reason.value
        if self.detail is not None:
            data["detail"] = self.detail
        if self.shortfall is not None:
            data["shortfall"] = self.shortfall
        return data


@dataclass
class ActionResult:
    """Outcome of a session action such as reveal or level navigation."""

    ok: bool
    reason: Optional[ErrorKind] = None
    detail: Optional[str] = None
    remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok}
        if self.reason is not None:
            data["reason"] = self.reason.value
        if self.detail is not None:
            data["detail"] = self.detail
        if self.remaining is not None:
            data["remaining"] = self.remaining
        return data
