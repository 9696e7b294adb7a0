"""Interpolation rules for combining two attribute values."""

from abc import ABC, abstractmethod
from typing import Any

import torch


class InterpolationRule(ABC):
    """
    Strategy that combines two values by a scalar weight.

    ``interpolate(a, b, 0)`` must return ``a`` and ``interpolate(a, b, 1)``
    must return ``b``. Values may be stacked along a leading axis; a rule
    combines the stacks element by element.
    """

    @abstractmethod
    def interpolate(self, a: Any, b: Any, weight: Any) -> Any:
        pass

    def __call__(self, a, b, weight):
        return self.interpolate(a, b, weight)

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class LinearRule(InterpolationRule):
    """
    Affine combination ``(1 - w) * a + w * b``.

    Works for anything supporting scalar multiplication and addition:
    Python floats, numpy scalars, vectors and tensors, and torch tensors.
    Exact at both end points.
    """

    def interpolate(self, a, b, weight):
        return (1.0 - weight) * a + weight * b


class TorchLerpRule(InterpolationRule):
    """Interpolate torch tensors with ``torch.lerp``; preserves autograd."""

    def interpolate(self, a: torch.Tensor, b: torch.Tensor, weight) -> torch.Tensor:
        if torch.is_tensor(weight):
            weight = weight.to(dtype=a.dtype, device=a.device)
        else:
            weight = float(weight)
        return torch.lerp(a, b, weight)


def default_rule_for(values) -> InterpolationRule:
    """Pick the rule matching the array type of stored values."""
    if torch.is_tensor(values) and values.is_floating_point():
        return TorchLerpRule()
    return LinearRule()
