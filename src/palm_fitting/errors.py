"""Error taxonomy for palm_fitting.

Configuration and precondition errors are raised while a model is being
composed, before any geometry or optimisation work starts. Numerical
problems hit inside the optimiser surface as OptimizationError.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class PalmError(Exception):
    """Base class for every error raised by palm_fitting."""


class ConfigurationError(PalmError, ValueError):
    """Unrecognised mode string, unknown parameter name, or missing auxiliary info."""


class InvalidDomainError(PalmError, ValueError):
    """Domain limits are inverted, degenerate, or points fall outside them."""


class InvalidRadiusError(PalmError, ValueError):
    """Truncation/buffer radius leaves no valid interior region."""


class DomainError(PalmError, ValueError):
    """A formula was evaluated outside its valid input range."""


class InvalidParameterError(DomainError):
    """A dispersion scale (sigma, tau) is not strictly positive."""


class EmptyPairSetError(PalmError, ValueError):
    """Edge correction left no point pairs; the Palm likelihood is undefined."""


class OptimizationError(PalmError, RuntimeError):
    """The minimiser failed to converge or hit a non-finite objective.

    ``params`` holds the last parameter vector that was evaluated.
    """

    def __init__(
        self,
        message: str,
        *,
        params: Optional[Mapping[str, float]] = None,
        result: Any = None,
    ):
        super().__init__(message)
        self.params = None if params is None else dict(params)
        self.result = result
