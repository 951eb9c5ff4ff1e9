"""Play session: phase controller and the engine's external operations.

A session owns the placement state of the loaded level and is its only
writer. Each operation runs validate -> apply -> evaluate to completion
before returning, so callers never observe a half-applied move.

Phases::

    menu --start--> briefing --begin--> playing --all objectives met--> levelComplete
    levelComplete --advance--> briefing (next level) | gameComplete
    any --restart--> menu
    any --jump_to_level(i)--> briefing
"""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Set

from podplacer.models import (
    ActionResult,
    ErrorKind,
    GamePhase,
    Level,
    MoveResult,
    ObjectiveStatus,
)
from podplacer.objectives.evaluator import (
    all_complete,
    evaluate_objectives,
    pristine_objectives,
)
from podplacer.placement.accountant import apply_mapping, apply_move
from podplacer.placement.validator import check_move
from podplacer.state import PlacementState

logger = logging.getLogger(__name__)

REVEAL_QUOTA = 2
MAX_LOG_ENTRIES = 20
POINTS_PER_LEVEL = 100


class GameSession:
    """Sequences levels and applies player moves against the loaded level."""

    def __init__(self, levels: List[Level]):
        """Initialise a session in the menu phase.

        Args:
            levels: Ordered level catalog. Treated as read-only.
        """
        self.levels = levels
        self.phase = GamePhase.MENU
        self.current_level = 0
        self.state: Optional[PlacementState] = None
        self.objectives: List[ObjectiveStatus] = []
        self.score = 0
        self.reveals_remaining = REVEAL_QUOTA
        self.solution_revealed = False
        self.completed_levels: Set[int] = set()
        self.logs: Deque[str] = deque(maxlen=MAX_LOG_ENTRIES)

    @property
    def level(self) -> Optional[Level]:
        """The loaded level template, if any."""
        if self.state is None:
            return None
        return self.levels[self.current_level]

    # ------------------------------------------------------------------
    # Level loading
    # ------------------------------------------------------------------

    def load_level(self, level_index: int) -> None:
        """Replace the placement state with a fresh copy of a level.

        Objectives are reset and the revealed-solution flag cleared. The
        phase is left untouched.

        Raises:
            IndexError: If ``level_index`` is outside the catalog.
        """
        if not 0 <= level_index < len(self.levels):
            raise IndexError(f"Level index {level_index} out of range")

        level = self.levels[level_index]
        self.current_level = level_index
        self.state = PlacementState.from_level(level)
        self.objectives = pristine_objectives(level)
        self.solution_revealed = False
        self.logs.clear()
        self._log("INFO", f"Loading level: {level.name}")
        logger.info("loaded level %d (%s)", level_index + 1, level.name)

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def attempt_move(self, pod_id: str, node_id: str) -> MoveResult:
        """Validate and, if legal, apply a pod move, then re-score objectives.

        A no-op move is accepted without touching the placement, the
        objectives or the phase.

        Returns:
            The MoveResult; rejected moves leave state unchanged.
        """
        level = self.level
        if level is None or self.state is None:
            logger.warning("move %s -> %s with no level loaded", pod_id, node_id)
            return MoveResult.reject(ErrorKind.UNKNOWN_ENTITY, "No level loaded")

        result = check_move(self.state, pod_id, node_id, level.flags)
        if not result.accepted:
            if result.reason.user_correctable:
                logger.info("rejected move %s -> %s: %s", pod_id, node_id, result.detail)
            else:
                logger.warning("ignoring move %s -> %s: %s", pod_id, node_id, result.detail)
            self._log("ERROR", result.detail)
            return result

        if not result.changed:
            # Placement is unchanged, so objectives are too.
            return result

        apply_move(self.state, pod_id, node_id)
        pod = self.state.pods[pod_id]
        node = self.state.nodes[node_id]
        self._log("INFO", f"Pod {pod.name} scheduled on {node.name}")
        logger.info("moved %s -> %s", pod_id, node_id)

        self.check_objectives()
        return result

    def check_objectives(self) -> List[ObjectiveStatus]:
        """Re-score objectives and complete the level when all are met."""
        level = self.level
        if level is None or self.state is None:
            return []

        self.objectives = evaluate_objectives(level, self.state)
        if all_complete(self.objectives) and self.phase == GamePhase.PLAYING:
            ordinal = self.current_level + 1
            self.score += POINTS_PER_LEVEL * ordinal
            self.completed_levels.add(self.current_level)
            self.phase = GamePhase.LEVEL_COMPLETE
            self._log("SUCCESS", f"Level {ordinal} completed!")
            logger.info("level %d complete, score %d", ordinal, self.score)
        return self.objectives

    # ------------------------------------------------------------------
    # Reveal
    # ------------------------------------------------------------------

    def reveal_solution(self) -> ActionResult:
        """Replace the placement with the level's canonical solution.

        Consumes one reveal from the per-run quota. The solution is trusted
        and bypasses validation. Objectives are re-scored for display but
        the level is not completed by a reveal.
        """
        if self.phase != GamePhase.PLAYING or self.state is None:
            return self._reject_action(
                ErrorKind.INVALID_PHASE,
                "Solutions can only be revealed while playing",
                remaining=self.reveals_remaining,
            )

        if self.reveals_remaining <= 0:
            return self._reject_action(
                ErrorKind.REVEAL_QUOTA_EXHAUSTED,
                "No solution reveals remaining!",
                remaining=0,
            )

        skipped = apply_mapping(self.state, self.level.solution)
        if skipped:
            logger.warning("solution entries skipped: %s", ", ".join(skipped))

        self.reveals_remaining -= 1
        self.solution_revealed = True
        self.objectives = evaluate_objectives(self.level, self.state)
        self._log(
            "INFO",
            f"Solution revealed! Study the layout. "
            f"({self.reveals_remaining} reveals remaining)",
        )
        return ActionResult(ok=True, remaining=self.reveals_remaining)

    # ------------------------------------------------------------------
    # Phase transitions
    # ------------------------------------------------------------------

    def start(self) -> ActionResult:
        """menu -> briefing, loading the first level."""
        if self.phase != GamePhase.MENU:
            return self._reject_action(ErrorKind.INVALID_PHASE, "Game already started")
        if not self.levels:
            return self._reject_action(ErrorKind.INVALID_LEVEL_INDEX, "Level catalog is empty")
        self.load_level(0)
        self.phase = GamePhase.BRIEFING
        return ActionResult(ok=True)

    def begin(self) -> ActionResult:
        """briefing -> playing."""
        if self.phase != GamePhase.BRIEFING:
            return self._reject_action(ErrorKind.INVALID_PHASE, "No level briefing to begin")
        self.phase = GamePhase.PLAYING
        return ActionResult(ok=True)

    def advance(self) -> ActionResult:
        """levelComplete -> briefing for the next level, or gameComplete."""
        if self.phase != GamePhase.LEVEL_COMPLETE:
            return self._reject_action(ErrorKind.INVALID_PHASE, "Level not complete yet")

        next_index = self.current_level + 1
        if next_index < len(self.levels):
            self.load_level(next_index)
            self.phase = GamePhase.BRIEFING
        else:
            self.phase = GamePhase.GAME_COMPLETE
            self._log("SUCCESS", f"All levels complete! Final score: {self.score}")
        return ActionResult(ok=True)

    def restart(self) -> ActionResult:
        """Return to the menu, discarding placement state, score and reveals."""
        self.phase = GamePhase.MENU
        self.current_level = 0
        self.state = None
        self.objectives = []
        self.score = 0
        self.reveals_remaining = REVEAL_QUOTA
        self.solution_revealed = False
        self.logs.clear()
        return ActionResult(ok=True)

    def jump_to_level(self, level_index: int) -> ActionResult:
        """Load any level and enter its briefing, regardless of progress."""
        if not 0 <= level_index < len(self.levels):
            return self._reject_action(
                ErrorKind.INVALID_LEVEL_INDEX,
                f"Invalid level index {level_index}",
            )
        self.load_level(level_index)
        self.phase = GamePhase.BRIEFING
        self._log("INFO", f"Jumped to Level {level_index + 1}")
        return ActionResult(ok=True)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def current_state(self) -> Dict[str, Any]:
        """Read-only snapshot of the session for rendering."""
        level = self.level
        placement = self.state.to_dict() if self.state is not None else {
            "nodes": [],
            "pods": [],
            "physicalHosts": [],
            "controlPlane": [],
        }
        return {
            "phase": self.phase.value,
            "level": {
                "index": self.current_level,
                "name": level.name if level else None,
                "infrastructure": level.flags.to_dict() if level else None,
            },
            **placement,
            "objectives": [o.to_dict() for o in self.objectives],
            "score": self.score,
            "revealsRemaining": self.reveals_remaining,
            "solutionRevealed": self.solution_revealed,
            "completedLevels": sorted(self.completed_levels),
            "logs": list(self.logs),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reject_action(
        self,
        reason: ErrorKind,
        detail: str,
        remaining: Optional[int] = None,
    ) -> ActionResult:
        logger.info("%s: %s", reason.value, detail)
        self._log("ERROR", detail)
        return ActionResult(ok=False, reason=reason, detail=detail, remaining=remaining)

    def _log(self, level: str, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        self.logs.append(f"{stamp} [{level}] {message}")
