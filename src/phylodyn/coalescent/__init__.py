"""Coalescent effective population size estimation."""

from .skyline import coalescent_times, estimate_skyline, skyline_unavailable_reason

__all__ = [
    "coalescent_times",
    "estimate_skyline",
    "skyline_unavailable_reason",
]
