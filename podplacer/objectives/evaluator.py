"""Objective evaluation for a loaded level.

Objectives are recomputed from scratch on every call; no completion state
is carried between moves.
"""

from typing import List

from podplacer.models import Level, ObjectiveStatus
from podplacer.objectives.predicates import evaluate_predicate
from podplacer.state import PlacementState


def evaluate_objectives(level: Level, state: PlacementState) -> List[ObjectiveStatus]:
    """Score every objective of a level against the current placement.

    Args:
        level: Level whose objectives are evaluated.
        state: Current placement state.

    Returns:
        One ObjectiveStatus per objective, in declaration order.
    """
    return [
        ObjectiveStatus(
            description=objective.description,
            completed=evaluate_predicate(objective.kind, state, objective.params),
        )
        for objective in level.objectives
    ]


def pristine_objectives(level: Level) -> List[ObjectiveStatus]:
    """Objectives of a freshly loaded level, all incomplete."""
    return [ObjectiveStatus(description=o.description) for o in level.objectives]


def all_complete(statuses: List[ObjectiveStatus]) -> bool:
    """True when there is at least one objective and every one is met."""
    return bool(statuses) and all(s.completed for s in statuses)
