"""Error types raised by the network engine and the simulation driver."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SpringNetError(Exception):
    """Base class for all springnet failures."""


class ConfigError(SpringNetError):
    """Invalid or incomplete configuration, detected before any simulation work."""


class DivergenceError(SpringNetError):
    """A position or the stress became NaN during a run."""

    def __init__(
        self,
        message: str,
        *,
        step: Optional[int] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.step = step
        self.parameters = dict(parameters or {})
        details = ", ".join(f"{k} = {v:.4g}" if isinstance(v, float) else f"{k} = {v}"
                            for k, v in self.parameters.items())
        if step is not None:
            message = f"{message} (step {step})"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class ConvergenceError(SpringNetError):
    """An iterative routine exceeded its iteration cap."""

    def __init__(self, routine: str, iterations: int) -> None:
        self.routine = routine
        self.iterations = iterations
        super().__init__(f"Too many iterations in {routine} ({iterations})")
