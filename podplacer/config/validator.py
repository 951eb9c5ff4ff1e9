"""Schema validation for level catalogs."""

from typing import Any, Dict, List

import jsonschema

from podplacer.objectives.predicates import ObjectiveKind

STORAGE_TYPES = ["block", "nfs", "object"]

# JSON Schema for a single ``kind: Level`` document
LEVEL_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["apiVersion", "kind", "metadata", "spec"],
    "properties": {
        "apiVersion": {
            "type": "string",
            "pattern": "^podplacer\\.io/v\\d+.*$"
        },
        "kind": {
            "type": "string",
            "enum": ["Level"]
        },
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "description": {"type": "string"},
                "hint": {"type": "string"},
                "analysis": {"type": "string"}
            }
        },
        "spec": {
            "type": "object",
            "required": ["nodes", "pods", "objectives"],
            "properties": {
                "infrastructure": {"$ref": "#/$defs/infrastructure"},
                "nodes": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/node"},
                    "minItems": 1
                },
                "pods": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/pod"}
                },
                "objectives": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/objective"},
                    "minItems": 1
                },
                "solution": {
                    "type": "object",
                    "additionalProperties": {"type": "string"}
                }
            }
        }
    },
    "$defs": {
        "infrastructure": {
            "type": "object",
            "properties": {
                "enableResourceValidation": {"type": "boolean"},
                "enableStorageValidation": {"type": "boolean"},
                "enableAntiAffinity": {"type": "boolean"},
                "physicalHosts": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/physicalHost"}
                },
                "controlPlane": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/controlPlaneComponent"}
                }
            }
        },
        "node": {
            "type": "object",
            "required": ["id", "capacity", "resources"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "capacity": {"type": "integer", "minimum": 0},
                "pods": {"type": "array", "items": {"type": "string"}},
                "resources": {
                    "type": "object",
                    "required": ["vCPU", "memory"],
                    "properties": {
                        "vCPU": {"type": "number", "minimum": 0},
                        "memory": {"type": "number", "minimum": 0}
                    }
                },
                "infrastructure": {
                    "type": "object",
                    "properties": {
                        "nodeType": {
                            "type": "string",
                            "enum": ["worker", "control-plane", "storage", "compute"]
                        },
                        "hypervisor": {
                            "enum": ["kvm", "vmware", "baremetal", None]
                        },
                        "physicalHostId": {"type": ["string", "null"]},
                        "storageTypes": {
                            "type": "array",
                            "items": {"type": "string", "enum": STORAGE_TYPES},
                            "uniqueItems": True
                        },
                        "zone": {"type": ["string", "null"]}
                    }
                }
            }
        },
        "pod": {
            "type": "object",
            "required": ["id", "name", "resources"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string", "minLength": 1},
                "color": {"type": "string"},
                "nodeId": {"type": ["string", "null"]},
                "status": {
                    "type": "string",
                    "enum": ["pending", "running", "terminating", "failed"]
                },
                "resources": {
                    "type": "object",
                    "properties": {
                        "vCPURequest": {"type": "number", "minimum": 0},
                        "memoryRequest": {"type": "number", "minimum": 0}
                    }
                },
                "storage": {
                    "type": "object",
                    "properties": {
                        "required": {"type": "boolean"},
                        "type": {"enum": STORAGE_TYPES + [None]},
                        "size": {"type": "number", "minimum": 0}
                    }
                },
                "scheduling": {
                    "type": "object",
                    "properties": {
                        "requiresBaremetal": {"type": "boolean"},
                        "antiAffinityKey": {"type": ["string", "null"]},
                        "nodeSelector": {
                            "type": "object",
                            "additionalProperties": {"type": "string"}
                        }
                    }
                }
            }
        },
        "objective": {
            "type": "object",
            "required": ["description", "kind"],
            "properties": {
                "description": {"type": "string", "minLength": 1},
                "kind": {
                    "type": "string",
                    "enum": [k.value for k in ObjectiveKind]
                },
                "params": {"type": "object"}
            }
        },
        "physicalHost": {
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "vms": {"type": "array", "items": {"type": "string"}},
                "resources": {
                    "type": "object",
                    "properties": {
                        "pCPU": {"type": "number", "minimum": 0},
                        "memory": {"type": "number", "minimum": 0}
                    }
                },
                "zone": {"type": "string"}
            }
        },
        "controlPlaneComponent": {
            "type": "object",
            "required": ["id", "componentType"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "componentType": {
                    "type": "string",
                    "enum": ["etcd", "apiserver", "scheduler", "controller-manager"]
                },
                "healthy": {"type": "boolean"}
            }
        }
    }
}

# Objective parameters holding node ids
NODE_LIST_PARAMS = ("nodes", "allowed", "forbidden", "within", "exclude")

# Objective parameters required per kind
REQUIRED_PARAMS = {
    ObjectiveKind.COUNT_ON_NODE: ("nodes",),
    ObjectiveKind.NODE_OCCUPANCY: ("count",),
    ObjectiveKind.EXACT_PLACEMENT: ("placements",),
    ObjectiveKind.PAIRWISE_SEPARATION: ("pairs",),
    ObjectiveKind.RESTRICT_TO_NODES: ("allowed",),
    ObjectiveKind.EXCLUDE_FROM_NODES: ("forbidden",),
    ObjectiveKind.DISTINCT_NODES: ("groups",),
    ObjectiveKind.THRESHOLD_QUORUM: ("groups", "nodes", "min"),
    ObjectiveKind.LOAD_BALANCE: ("exclude",),
}


class ValidationError(Exception):
    """Exception raised when catalog validation fails."""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


def validate_catalog(catalog: Dict[str, Any]) -> bool:
    """Validate every level of a loaded catalog.

    Args:
        catalog: Catalog dictionary as returned by ``load_catalog``.

    Returns:
        True if validation passes.

    Raises:
        ValidationError: If any level fails; ``errors`` lists every problem,
            prefixed with the level's position and source file.
    """
    from podplacer.config.loader import apply_defaults

    levels = catalog.get("levels", [])
    if not levels:
        raise ValidationError("Catalog must contain at least one Level")

    defaults = catalog.get("defaults") or {}
    errors: List[str] = []
    for index, entry in enumerate(levels):
        origin = f"level {index + 1} ({entry.get('file', '<memory>')})"
        try:
            validate_level(apply_defaults(entry["spec"], defaults))
        except ValidationError as e:
            errors.extend(f"{origin}: {msg}" for msg in (e.errors or [str(e)]))

    if errors:
        raise ValidationError("Catalog validation failed", errors)
    return True


def validate_level(level: Dict[str, Any]) -> bool:
    """Validate a single level document against the schema.

    Args:
        level: The ``kind: Level`` document.

    Returns:
        True if validation passes.

    Raises:
        ValidationError: If validation fails.
    """
    try:
        jsonschema.validate(instance=level, schema=LEVEL_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Schema validation failed: {e.message}", [e.message])

    # Additional semantic validation
    errors = _semantic_validation(level)
    if errors:
        raise ValidationError("Semantic validation failed", errors)

    return True


def _semantic_validation(level: Dict[str, Any]) -> List[str]:
    """Perform semantic validation beyond schema validation.

    Args:
        level: The level document.

    Returns:
        List of validation error messages.
    """
    errors = []

    spec = level.get("spec", {})
    nodes = spec.get("nodes", [])
    pods = spec.get("pods", [])
    infra = spec.get("infrastructure") or {}

    node_ids = [n["id"] for n in nodes]
    pod_ids = [p["id"] for p in pods]
    pod_names = {p["name"] for p in pods}
    errors.extend(_duplicates("node id", node_ids))
    errors.extend(_duplicates("pod id", pod_ids))
    errors.extend(_duplicates("pod name", [p["name"] for p in pods]))

    node_set = set(node_ids)
    pod_set = set(pod_ids)

    # Initial placement: both sides of the pod/node relation must agree
    occupants: Dict[str, List[str]] = {n["id"]: [] for n in nodes}
    listed_on: Dict[str, str] = {}
    for node in nodes:
        for pid in node.get("pods") or []:
            if pid not in pod_set:
                errors.append(f"Node '{node['id']}' lists unknown pod '{pid}'")
                continue
            if pid in listed_on:
                errors.append(
                    f"Pod '{pid}' listed on both '{listed_on[pid]}' and '{node['id']}'"
                )
                continue
            listed_on[pid] = node["id"]
            occupants[node["id"]].append(pid)

    for pod in pods:
        node_id = pod.get("nodeId")
        if node_id is None:
            continue
        if node_id not in node_set:
            errors.append(f"Pod '{pod['id']}' placed on unknown node '{node_id}'")
        elif pod["id"] in listed_on and listed_on[pod["id"]] != node_id:
            errors.append(
                f"Pod '{pod['id']}' has nodeId '{node_id}' but is listed on "
                f"'{listed_on[pod['id']]}'"
            )
        elif pod["id"] not in listed_on:
            occupants[node_id].append(pod["id"])

    for node in nodes:
        if len(occupants[node["id"]]) > node["capacity"]:
            errors.append(
                f"Node '{node['id']}' starts with {len(occupants[node['id']])} pods, "
                f"capacity {node['capacity']}"
            )

    # Physical hosts
    hosts = infra.get("physicalHosts") or []
    host_ids = {h["id"] for h in hosts}
    host_of = {
        n["id"]: (n.get("infrastructure") or {}).get("physicalHostId") for n in nodes
    }
    if hosts:
        for node_id, host_id in host_of.items():
            if host_id is not None and host_id not in host_ids:
                errors.append(f"Node '{node_id}' references unknown physical host '{host_id}'")
    for host in hosts:
        for vm in host.get("vms") or []:
            if vm not in node_set:
                errors.append(f"Physical host '{host['id']}' lists unknown node '{vm}'")
            elif host_of[vm] != host["id"]:
                errors.append(
                    f"Physical host '{host['id']}' lists node '{vm}' whose "
                    f"physicalHostId is '{host_of[vm]}'"
                )

    # Canonical solution
    solution = spec.get("solution") or {}
    per_node: Dict[str, int] = {}
    for pid, node_id in solution.items():
        if pid not in pod_set:
            errors.append(f"Solution references unknown pod '{pid}'")
        if node_id not in node_set:
            errors.append(f"Solution references unknown node '{node_id}'")
            continue
        per_node[node_id] = per_node.get(node_id, 0) + 1
    capacities = {n["id"]: n["capacity"] for n in nodes}
    for node_id, count in per_node.items():
        if count > capacities[node_id]:
            errors.append(
                f"Solution places {count} pods on '{node_id}', capacity {capacities[node_id]}"
            )

    for objective in spec.get("objectives", []):
        errors.extend(_objective_errors(objective, node_set, pod_names))

    return errors


def _objective_errors(objective: Dict[str, Any], node_set: set, pod_names: set) -> List[str]:
    """Check an objective's parameters reference existing nodes and pods."""
    errors = []
    label = f"Objective '{objective['description']}'"
    kind = ObjectiveKind(objective["kind"])
    params = objective.get("params") or {}

    for name in REQUIRED_PARAMS.get(kind, ()):
        if name not in params:
            errors.append(f"{label} ({kind.value}) is missing parameter '{name}'")

    for key in NODE_LIST_PARAMS:
        for node_id in params.get(key) or []:
            if node_id not in node_set:
                errors.append(f"{label} references unknown node '{node_id}'")

    referenced = list((params.get("pods") or {}).get("names") or [])
    for group in (params.get("pairs") or []) + (params.get("groups") or []):
        referenced.extend(group)
    for name, node_id in (params.get("placements") or {}).items():
        referenced.append(name)
        if node_id not in node_set:
            errors.append(f"{label} references unknown node '{node_id}'")

    for name in referenced:
        if name not in pod_names:
            errors.append(f"{label} references unknown pod '{name}'")

    if kind == ObjectiveKind.PAIRWISE_SEPARATION:
        for pair in params.get("pairs") or []:
            if len(pair) != 2:
                errors.append(f"{label} has a pair with {len(pair)} pods")

    return errors


def _duplicates(label: str, values: List[str]) -> List[str]:
    seen = set()
    errors = []
    for value in values:
        if value in seen:
            errors.append(f"Duplicate {label}: '{value}'")
        seen.add(value)
    return errors
