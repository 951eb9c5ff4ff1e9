"""Level objectives: predicate kinds and their evaluation."""

from podplacer.objectives.predicates import ObjectiveKind, evaluate_predicate, select_pods
from podplacer.objectives.evaluator import all_complete, evaluate_objectives

__all__ = [
    "ObjectiveKind",
    "evaluate_predicate",
    "select_pods",
    "all_complete",
    "evaluate_objectives",
]
