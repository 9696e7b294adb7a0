"""
Multilinear interpolation over the corners of a grid cell.

This module provides the forward maps from cell-local coordinates to world
positions and attribute values, the analytic Jacobian of the geometric map,
and the pluggable rules used to combine attribute values.
"""

from .rules import InterpolationRule, LinearRule, TorchLerpRule, default_rule_for
from .forward_map import evaluate, jacobian, numerical_jacobian

__all__ = [
    "InterpolationRule",
    "LinearRule",
    "TorchLerpRule",
    "default_rule_for",
    "evaluate",
    "jacobian",
    "numerical_jacobian",
]
