"""Backend implementations + registry."""

from __future__ import annotations

from typing import Dict

from ..errors import ConfigurationError
from .common import Backend
from .scipy_differential_evolution import ScipyDifferentialEvolutionBackend
from .scipy_minimize import ScipyMinimizeBackend

_BACKENDS: Dict[str, Backend] = {
    "scipy.differential_evolution": ScipyDifferentialEvolutionBackend(),
    "scipy.minimize": ScipyMinimizeBackend(),
}


def get_backend(name: str) -> Backend:
    """Return a backend implementation by name."""
    try:
        return _BACKENDS[name]
    except KeyError as e:
        raise ConfigurationError(
            f"Unknown backend {name!r}. Available: {tuple(_BACKENDS.keys())}"
        ) from e


AVAILABLE_BACKENDS = tuple(_BACKENDS.keys())
