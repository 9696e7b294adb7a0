"""
Configuration for point location.

Defaults can be overridden per locator or through environment variables:

- ``CURVIGRID_TOLERANCE``: convergence tolerance on the world-space residual
- ``CURVIGRID_MAX_ITERATIONS``: Newton-Raphson iteration cap
- ``CURVIGRID_SINGULAR_THRESHOLD``: Jacobian condition number treated as singular
- ``CURVIGRID_DEBUG``: set to 1/true/yes/on to enable debug logging
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_TOLERANCE = 1.0e-4
DEFAULT_MAX_ITERATIONS = 64
DEFAULT_SINGULAR_THRESHOLD = 1.0e12

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def env_flag(name: str, default: str = '0') -> bool:
    """Read a boolean flag from the environment."""
    return os.environ.get(name, default).lower() in _TRUE_VALUES


# Check if debugging is enabled via environment variables
DEBUG_ENABLED = env_flag('CURVIGRID_DEBUG')


@dataclass
class LocatorConfig:
    """Numerical settings used by a Locator."""

    tolerance: float = DEFAULT_TOLERANCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    singular_threshold: float = DEFAULT_SINGULAR_THRESHOLD

    def __post_init__(self):
        if not self.tolerance > 0.0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not self.singular_threshold > 1.0:
            raise ValueError(
                f"singular_threshold must be greater than 1, got {self.singular_threshold}"
            )

    @property
    def tolerance_squared(self) -> float:
        return self.tolerance * self.tolerance

    @classmethod
    def from_env(cls) -> 'LocatorConfig':
        """Build a config from CURVIGRID_* environment variables, falling back to defaults."""
        return cls(
            tolerance=float(os.environ.get('CURVIGRID_TOLERANCE', DEFAULT_TOLERANCE)),
            max_iterations=int(os.environ.get('CURVIGRID_MAX_ITERATIONS', DEFAULT_MAX_ITERATIONS)),
            singular_threshold=float(
                os.environ.get('CURVIGRID_SINGULAR_THRESHOLD', DEFAULT_SINGULAR_THRESHOLD)
            ),
        )


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure logging to the console and optionally to a file.

    Args:
        level: Logging level for the package logger; forced to DEBUG when
            CURVIGRID_DEBUG is set
        log_file: Optional path of a log file (overwritten)

    Returns:
        The ``curvigrid`` package logger
    """
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, mode='w'))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )

    logger = logging.getLogger('curvigrid')
    logger.setLevel(logging.DEBUG if DEBUG_ENABLED else level)
    return logger
