from __future__ import annotations

import math
from typing import Any, Callable, Tuple

import numpy as np
from scipy.optimize import minimize

from .common import BackendResult


class ScipyMinimizeBackend:
    name = "scipy.minimize"

    def fit_one(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        p0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        options: dict[str, Any],
    ) -> BackendResult:
        """Minimise using scipy.optimize.minimize.

        Backend options:
        - method: optimizer name (default: L-BFGS-B); must honour bounds
        - maxiter: iteration cap (default: 1000)
        - options: dict forwarded to scipy.optimize.minimize
        """
        lo, hi = bounds
        scipy_bounds = []
        for i in range(int(p0.shape[0])):
            lo_i = float(lo[i])
            hi_i = float(hi[i])
            lo_b = None if (not math.isfinite(lo_i)) else lo_i
            hi_b = None if (not math.isfinite(hi_i)) else hi_i
            scipy_bounds.append((lo_b, hi_b))

        method = str(options.get("method", "L-BFGS-B"))
        scipy_opts = dict(options.get("options", None) or {})
        scipy_opts.setdefault("maxiter", int(options.get("maxiter", 1000)))

        res = minimize(
            lambda v: float(objective(np.asarray(v, dtype=float))),
            np.asarray(p0, dtype=float),
            method=method,
            bounds=scipy_bounds,
            options=scipy_opts,
        )

        return BackendResult(
            theta=np.asarray(res.x, dtype=float),
            success=bool(res.success),
            message=str(res.message),
            stats={
                "backend": self.name,
                "method": method,
                "fun": float(res.fun),
                "nit": int(getattr(res, "nit", 0) or 0),
                "nfev": int(getattr(res, "nfev", 0) or 0),
            },
        )
