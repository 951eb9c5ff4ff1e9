"""PodPlacer - Kubernetes-style pod placement puzzle engine."""

from podplacer.session import GameSession

__all__ = ["GameSession"]
