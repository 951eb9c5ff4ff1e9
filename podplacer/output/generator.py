"""Session report and board rendering."""

from datetime import datetime, timezone
from typing import Any, Dict, List

from podplacer.models import Level, Node
from podplacer.session import GameSession
from podplacer.state import PlacementState


class ReportGenerator:
    """Generates structured JSON reports and text boards for a session."""

    SCHEMA_VERSION = "1.0.0"

    def __init__(self, session: GameSession):
        """Initialize the report generator.

        Args:
            session: The session to report on. It is only read.
        """
        self.session = session

    def generate(self) -> Dict[str, Any]:
        """Generate the complete report structure.

        Returns:
            Report dictionary: the session snapshot plus a summary section.
        """
        snapshot = self.session.current_state()
        return {
            "schemaVersion": self.SCHEMA_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **snapshot,
            "summary": self._generate_summary(snapshot),
        }

    def generate_minimal(self) -> Dict[str, Any]:
        """Generate a minimal report with just the verdict fields.

        Returns:
            Minimal report dictionary.
        """
        snapshot = self.session.current_state()
        summary = self._generate_summary(snapshot)
        return {
            "level": snapshot["level"]["name"],
            "phase": snapshot["phase"],
            "score": snapshot["score"],
            "objectivesMet": summary["objectivesMet"],
            "objectivesTotal": summary["objectivesTotal"],
            "complete": summary["complete"],
        }

    def render_board(self) -> str:
        """Render the current placement as plain text.

        One block per node with its occupants and resource usage, followed
        by unscheduled pods and the objective checklist.
        """
        state = self.session.state
        level = self.session.level
        if state is None or level is None:
            return f"[{self.session.phase.value}] no level loaded"

        lines = [
            f"Level {self.session.current_level + 1}: {level.name} "
            f"[{self.session.phase.value}] score={self.session.score}",
        ]
        for node in state.nodes.values():
            lines.append(_node_header(node))
            for pod in state.pods_on(node.id):
                lines.append(f"    - {pod.name} ({pod.id})")

        pending = state.unscheduled()
        if pending:
            lines.append("  unscheduled: " + ", ".join(f"{p.name} ({p.id})" for p in pending))

        lines.append("Objectives:")
        for status in self.session.objectives:
            mark = "x" if status.completed else " "
            lines.append(f"  [{mark}] {status.description}")
        return "\n".join(lines)

    def _generate_summary(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Generate the summary section from a snapshot."""
        objectives = snapshot["objectives"]
        met = sum(1 for o in objectives if o["completed"])
        pods = snapshot["pods"]
        return {
            "objectivesMet": met,
            "objectivesTotal": len(objectives),
            "complete": bool(objectives) and met == len(objectives),
            "podsScheduled": sum(1 for p in pods if p["nodeId"] is not None),
            "podsTotal": len(pods),
            "revealsRemaining": snapshot["revealsRemaining"],
        }


def render_level(level: Level, index: int) -> str:
    """Render a level briefing: description, constraints, topology and objectives."""
    flags = level.flags
    active = [
        name
        for name, enabled in (
            ("resources", flags.enable_resource_validation),
            ("storage", flags.enable_storage_validation),
            ("anti-affinity", flags.enable_anti_affinity),
        )
        if enabled
    ]

    lines = [f"Level {index + 1}: {level.name}"]
    if level.description:
        lines.append(f"  {level.description}")
    lines.append(f"  Constraints: capacity{''.join(', ' + a for a in active)}")
    # Reconciled starting placement.
    state = PlacementState.from_level(level)
    lines.append("Nodes:")
    for node in state.nodes.values():
        lines.append(_node_header(node))
    lines.append("Pods:")
    for pod in state.pods.values():
        needs = [f"{pod.resources.vcpu_request:g} vCPU", f"{pod.resources.memory_request:g} GB"]
        if pod.required_storage_type is not None:
            needs.append(f"{pod.required_storage_type.value} storage")
        if pod.anti_affinity_key:
            needs.append(f"anti-affinity={pod.anti_affinity_key}")
        location = f" on {pod.node_id}" if pod.node_id else ""
        lines.append(f"  {pod.id} {pod.name} ({', '.join(needs)}){location}")
    lines.append("Objectives:")
    for objective in level.objectives:
        lines.append(f"  - {objective.description}")
    if level.hint:
        lines.append(f"Hint: {level.hint}")
    return "\n".join(lines)


def render_level_list(levels: List[Level]) -> str:
    """One line per level: ordinal, name and topology size."""
    return "\n".join(
        f"{i + 1:>3}. {level.name} ({len(level.nodes)} nodes, {len(level.pods)} pods)"
        for i, level in enumerate(levels)
    )


def _node_header(node: Node) -> str:
    res = node.resources
    infra = node.infrastructure
    extras = []
    if infra.physical_host_id:
        extras.append(f"host={infra.physical_host_id}")
    if infra.storage_types:
        extras.append("storage=" + "/".join(sorted(t.value for t in infra.storage_types)))
    suffix = f" {' '.join(extras)}" if extras else ""
    return (
        f"  {node.id} {node.name} [{len(node.pods)}/{node.capacity}] "
        f"vCPU {res.vcpu_used:g}/{res.vcpu:g} mem {res.memory_used:g}/{res.memory:g}{suffix}"
    )
