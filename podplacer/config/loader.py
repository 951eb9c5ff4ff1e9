"""Level catalog loader.

A catalog is either a single YAML file or a directory of YAML files. Files
in a directory are read in name order and documents in file order, so
level ordinals follow the file layout. Documents are classified by their
``kind`` field:

- ``Level``:         one level definition
- ``LevelDefaults``: node/pod fields merged into every level's entries
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from podplacer.models import (
    ComponentKind,
    ControlPlaneComponent,
    InfrastructureFlags,
    Level,
    Node,
    NodeInfrastructure,
    NodeResources,
    ObjectiveSpec,
    PhysicalHost,
    Pod,
    PodResources,
    PodStatus,
    SchedulingHints,
    StorageRequirement,
    StorageType,
)


LEVEL_KIND = "Level"
DEFAULTS_KIND = "LevelDefaults"

# Catalog shipped with the package
BUILTIN_CATALOG = Path(__file__).resolve().parent.parent / "levels"
CATALOG_ENV_VAR = "PODPLACER_CATALOG"


def default_catalog_path() -> str:
    """Catalog path from ``PODPLACER_CATALOG``, falling back to the built-in levels."""
    return os.environ.get(CATALOG_ENV_VAR) or str(BUILTIN_CATALOG)


def load_catalog(catalog_path: str) -> Dict[str, Any]:
    """Load raw level documents from a directory or single YAML file.

    Args:
        catalog_path: Path to a catalog directory or single YAML file.

    Returns:
        Catalog dictionary with keys:
            - path: Absolute path to the catalog directory
            - levels: List of {file, spec} for Level documents
            - defaults: Merged LevelDefaults spec (empty if none)

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If no Level document is found.
    """
    path = Path(catalog_path)

    if not path.exists():
        raise FileNotFoundError(f"Catalog path not found: {catalog_path}")

    if path.is_file():
        levels, defaults = _load_yaml_file(path)
        catalog_dir = str(path.parent.resolve())
    elif path.is_dir():
        levels, defaults = _load_yaml_directory(path)
        catalog_dir = str(path.resolve())
    else:
        raise ValueError(f"Invalid catalog path: {catalog_path}")

    if not levels:
        raise ValueError(
            f"No Level found in {catalog_path}. "
            "A catalog must contain at least one Level YAML document."
        )

    return {
        "path": catalog_dir,
        "levels": levels,
        "defaults": merge_configs(*defaults),
    }


def _load_yaml_file(filepath: Path) -> Tuple[List[Dict], List[Dict]]:
    """Load and classify YAML documents from a single file."""
    levels: List[Dict] = []
    defaults: List[Dict] = []

    text = filepath.read_text()
    for doc in yaml.safe_load_all(text):
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ValueError(f"Expected a mapping in {filepath}, got {type(doc).__name__}")
        if doc.get("kind") == DEFAULTS_KIND:
            defaults.append(doc.get("spec") or {})
        else:
            levels.append({"file": str(filepath.resolve()), "spec": doc})

    return levels, defaults


def _load_yaml_directory(dirpath: Path) -> Tuple[List[Dict], List[Dict]]:
    """Load and classify all YAML files in a directory."""
    all_levels: List[Dict] = []
    all_defaults: List[Dict] = []

    yaml_files = sorted(list(dirpath.glob("*.yaml")) + list(dirpath.glob("*.yml")))
    if not yaml_files:
        raise ValueError(f"No YAML files found in {dirpath}")

    for filepath in yaml_files:
        levels, defaults = _load_yaml_file(filepath)
        all_levels.extend(levels)
        all_defaults.extend(defaults)

    return all_levels, all_defaults


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs override earlier ones for conflicting keys.
    """
    result: Dict[str, Any] = {}
    for config in configs:
        result = _deep_merge(result, config)
    return result


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def apply_defaults(level_doc: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Merge LevelDefaults node/pod fields under each node and pod of a level."""
    if not defaults:
        return level_doc

    spec = level_doc.get("spec") or {}
    node_defaults = defaults.get("node") or {}
    pod_defaults = defaults.get("pod") or {}
    merged_spec = dict(spec)
    merged_spec["nodes"] = [merge_configs(node_defaults, n) for n in spec.get("nodes", [])]
    merged_spec["pods"] = [merge_configs(pod_defaults, p) for p in spec.get("pods", [])]
    return {**level_doc, "spec": merged_spec}


def load_levels(catalog_path: Optional[str] = None, validate: bool = True) -> List[Level]:
    """Load, validate and build the levels of a catalog.

    Args:
        catalog_path: Catalog file or directory. Defaults to
            ``PODPLACER_CATALOG`` or the built-in catalog.
        validate: Run schema and semantic validation before building.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the catalog holds no level.
        ValidationError: If validation is enabled and fails.
    """
    from podplacer.config.validator import validate_catalog

    catalog = load_catalog(catalog_path or default_catalog_path())
    if validate:
        validate_catalog(catalog)
    return build_levels(catalog)


# ── Document -> model conversion ──────────────────────────────


def build_levels(catalog: Dict[str, Any]) -> List[Level]:
    """Convert a loaded catalog into Level objects, in catalog order."""
    defaults = catalog.get("defaults") or {}
    return [parse_level(apply_defaults(entry["spec"], defaults)) for entry in catalog["levels"]]


def parse_level(doc: Dict[str, Any]) -> Level:
    """Build a Level from a validated ``kind: Level`` document."""
    metadata = doc.get("metadata") or {}
    spec = doc.get("spec") or {}
    infra = spec.get("infrastructure") or {}

    return Level(
        name=metadata["name"],
        description=metadata.get("description", ""),
        hint=metadata.get("hint", ""),
        analysis=metadata.get("analysis", ""),
        nodes=[_parse_node(n) for n in spec.get("nodes", [])],
        pods=[_parse_pod(p) for p in spec.get("pods", [])],
        objectives=[
            ObjectiveSpec(
                description=o["description"],
                kind=o["kind"],
                params=dict(o.get("params") or {}),
            )
            for o in spec.get("objectives", [])
        ],
        flags=InfrastructureFlags(
            enable_resource_validation=infra.get("enableResourceValidation", False),
            enable_storage_validation=infra.get("enableStorageValidation", False),
            enable_anti_affinity=infra.get("enableAntiAffinity", False),
        ),
        physical_hosts=[_parse_host(h) for h in infra.get("physicalHosts", [])],
        control_plane=[_parse_component(c) for c in infra.get("controlPlane", [])],
        solution=dict(spec.get("solution") or {}),
    )


def _parse_node(data: Dict[str, Any]) -> Node:
    resources = data.get("resources") or {}
    infra = data.get("infrastructure") or {}
    return Node(
        id=data["id"],
        name=data.get("name", data["id"]),
        capacity=data["capacity"],
        pods=list(data.get("pods") or []),
        resources=NodeResources(
            vcpu=resources.get("vCPU", 0),
            memory=resources.get("memory", 0),
        ),
        infrastructure=NodeInfrastructure(
            node_type=infra.get("nodeType", "worker"),
            hypervisor=infra.get("hypervisor"),
            physical_host_id=infra.get("physicalHostId"),
            storage_types=frozenset(StorageType(t) for t in infra.get("storageTypes", [])),
            zone=infra.get("zone"),
        ),
    )


def _parse_pod(data: Dict[str, Any]) -> Pod:
    resources = data.get("resources") or {}
    node_id = data.get("nodeId")
    default_status = PodStatus.RUNNING if node_id else PodStatus.PENDING
    return Pod(
        id=data["id"],
        name=data.get("name", data["id"]),
        color=data.get("color"),
        node_id=node_id,
        status=PodStatus(data["status"]) if data.get("status") else default_status,
        resources=PodResources(
            vcpu_request=resources.get("vCPURequest", 0),
            memory_request=resources.get("memoryRequest", 0),
        ),
        storage=_parse_storage(data.get("storage")),
        scheduling=_parse_scheduling(data.get("scheduling")),
    )


def _parse_storage(data: Optional[Dict[str, Any]]) -> Optional[StorageRequirement]:
    if not data:
        return None
    storage_type = data.get("type")
    return StorageRequirement(
        required=data.get("required", False),
        type=StorageType(storage_type) if storage_type else None,
        size=data.get("size", 0),
    )


def _parse_scheduling(data: Optional[Dict[str, Any]]) -> Optional[SchedulingHints]:
    if not data:
        return None
    return SchedulingHints(
        requires_baremetal=data.get("requiresBaremetal", False),
        anti_affinity_key=data.get("antiAffinityKey"),
        node_selector=dict(data.get("nodeSelector") or {}),
    )


def _parse_host(data: Dict[str, Any]) -> PhysicalHost:
    resources = data.get("resources") or {}
    return PhysicalHost(
        id=data["id"],
        name=data.get("name", data["id"]),
        vms=list(data.get("vms") or []),
        pcpu=resources.get("pCPU", 0),
        memory=resources.get("memory", 0),
        zone=data.get("zone"),
    )


def _parse_component(data: Dict[str, Any]) -> ControlPlaneComponent:
    metadata = data.get("metadata") or {}
    return ControlPlaneComponent(
        id=data["id"],
        name=data.get("name", data["id"]),
        component_type=ComponentKind(data["componentType"]),
        healthy=data.get("healthy", True),
        version=metadata.get("version"),
        endpoint=metadata.get("endpoint"),
    )
