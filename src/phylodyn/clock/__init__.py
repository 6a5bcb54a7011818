"""Molecular clock calibration."""

from .regression import regress_clock, root_to_tip_distances

__all__ = [
    "regress_clock",
    "root_to_tip_distances",
]
