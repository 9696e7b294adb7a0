"""Core numerical functionality for the curvigrid package."""

from .interpolation import InterpolationRule, LinearRule, TorchLerpRule, evaluate, jacobian

__all__ = ["InterpolationRule", "LinearRule", "TorchLerpRule", "evaluate", "jacobian"]
