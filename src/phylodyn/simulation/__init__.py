"""Synthetic input generation."""

from .synthetic import DivergencePattern, generate_demo_data

__all__ = [
    "DivergencePattern",
    "generate_demo_data",
]
