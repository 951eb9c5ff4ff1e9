"""Output generation for play sessions."""

from podplacer.output.generator import ReportGenerator, render_level, render_level_list

__all__ = ["ReportGenerator", "render_level", "render_level_list"]
