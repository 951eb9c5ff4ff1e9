"""Pod placement for PodPlacer.

Checks whether a proposed pod move is legal and keeps node resource
accounting consistent when a move is applied.
"""

from podplacer.placement.validator import check_move
from podplacer.placement.accountant import apply_move, check_invariants

__all__ = ["check_move", "apply_move", "check_invariants"]
