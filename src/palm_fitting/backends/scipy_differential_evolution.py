from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

import numpy as np
from scipy.optimize import differential_evolution

from ..errors import ConfigurationError
from .common import BackendResult


class ScipyDifferentialEvolutionBackend:
    name = "scipy.differential_evolution"

    def fit_one(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        p0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        options: dict[str, Any],
    ) -> BackendResult:
        """Minimise using scipy.optimize.differential_evolution (global optimisation).

        Notes:
        - Requires finite bounds for *all* free parameters.
        - The starting values seed the initial population (``x0``).

        Backend options (subset of scipy.optimize.differential_evolution):
        - maxiter (int, default: 50)
        - popsize (int, default: 15)
        - tol (float, default: 0.01)
        - strategy (str, default: "best1bin")
        - mutation, recombination, seed, polish, disp, init, atol
        """
        p0 = np.asarray(p0, dtype=float).reshape((-1,))
        if p0.size == 0:
            return BackendResult(
                theta=np.asarray([], dtype=float),
                success=True,
                message="no free parameters",
                stats={"backend": self.name},
            )

        lo, hi = bounds
        lo = np.asarray(lo, dtype=float).reshape((-1,))
        hi = np.asarray(hi, dtype=float).reshape((-1,))
        if lo.shape != hi.shape or lo.shape != p0.shape:
            raise ConfigurationError("Bounds shape mismatch for free parameters.")

        de_bounds = []
        for j in range(p0.size):
            lo_j = float(lo[j])
            hi_j = float(hi[j])
            if not (np.isfinite(lo_j) and np.isfinite(hi_j)):
                raise ConfigurationError(
                    "scipy.differential_evolution requires finite bounds for all free parameters."
                )
            if hi_j <= lo_j:
                raise ConfigurationError("Invalid bounds: require hi > lo for all parameters.")
            de_bounds.append((lo_j, hi_j))

        de_kwargs: Dict[str, Any] = {}
        de_kwargs["maxiter"] = int(options.get("maxiter", 50))
        de_kwargs["popsize"] = int(options.get("popsize", 15))
        de_kwargs["tol"] = float(options.get("tol", 0.01))
        de_kwargs["strategy"] = str(options.get("strategy", "best1bin"))

        for k in (
            "mutation",
            "recombination",
            "seed",
            "polish",
            "disp",
            "init",
            "atol",
        ):
            if k in options:
                de_kwargs[k] = options[k]

        res = differential_evolution(
            lambda v: float(objective(np.asarray(v, dtype=float))),
            de_bounds,
            x0=p0,
            **de_kwargs,
        )

        stats: Dict[str, Any] = {
            "backend": self.name,
            "fun": float(res.fun),
            "nfev": int(getattr(res, "nfev", 0) or 0),
            "nit": int(getattr(res, "nit", 0) or 0),
        }

        return BackendResult(
            theta=np.asarray(res.x, dtype=float),
            success=bool(res.success),
            message=str(res.message),
            stats=stats,
        )
