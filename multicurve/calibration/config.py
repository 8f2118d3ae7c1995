"""Solver configuration for curve calibration."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from multicurve.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolverConfig:
    """Configuration for the Newton solve and the orchestration around it.

    Attributes:
        absolute_tolerance: Convergence when ``max|residual|`` falls below this
        step_tolerance: Convergence when ``max|step|`` falls below this
        max_iterations: Newton steps allowed per unit
        finite_difference_bump: Relative bump for finite-difference Jacobians
        condition_warning: Condition number above which a converged Jacobian
            raises a :class:`NumericalWarning`
        max_workers: Threads used to solve independent blocks (1 = sequential,
            None = the thread pool default)
        verbose: Log unit progress at INFO instead of DEBUG
    """

    absolute_tolerance: float = 1e-10
    step_tolerance: float = 1e-10
    max_iterations: int = 100
    finite_difference_bump: float = 1e-6
    condition_warning: float = 1e12
    max_workers: Optional[int] = 1
    verbose: bool = False

    def __post_init__(self):
        for name in (
            "absolute_tolerance",
            "step_tolerance",
            "finite_difference_bump",
            "condition_warning",
        ):
            if not getattr(self, name) > 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be at least 1, got {self.max_iterations}"
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be at least 1, got {self.max_workers}"
            )

    @property
    def log_level(self) -> int:
        return logging.INFO if self.verbose else logging.DEBUG

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolverConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown solver config keys: %s", unknown)
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "SolverConfig":
        """Load a config from a JSON file."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Solver config file not found: {file_path}")
        with open(file_path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Solver config in {file_path} must be a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
