"""Level catalog loading and validation for PodPlacer."""

from podplacer.config.loader import load_catalog, load_levels
from podplacer.config.validator import validate_catalog

__all__ = ["load_catalog", "load_levels", "validate_catalog"]
