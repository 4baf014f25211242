from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol, Tuple

import numpy as np


@dataclass(frozen=True)
class BackendResult:
    """Normalized result returned by any backend."""

    theta: np.ndarray  # free parameters (optimiser coordinates), shape (P,)
    success: bool = True
    message: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)


class Backend(Protocol):
    """Backend protocol: minimise one objective."""

    name: str

    def fit_one(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        p0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        options: dict[str, Any],
    ) -> BackendResult: ...
