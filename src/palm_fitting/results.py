from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import PalmError
from .geometry import Domain
from .params import ParamView, ParamsView

if TYPE_CHECKING:
    from .model import PalmModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    """Parametric bootstrap estimates, one row per successful resample."""

    names: Tuple[str, ...]
    samples: np.ndarray
    n_failed: int = 0

    @property
    def n_samples(self) -> int:
        return int(self.samples.shape[0])

    def __len__(self) -> int:
        return self.n_samples

    def column(self, name: str) -> np.ndarray:
        return self.samples[:, self.names.index(name)]

    def extend(self, other: "BootstrapResult") -> "BootstrapResult":
        if other.names != self.names:
            raise ValueError("Cannot merge bootstrap samples over different parameters.")
        return BootstrapResult(
            names=self.names,
            samples=np.vstack([self.samples, other.samples]),
            n_failed=self.n_failed + other.n_failed,
        )


@dataclass(frozen=True)
class FittedModel:
    model: "PalmModel"
    points: np.ndarray
    domain: Domain
    R: float
    params: ParamsView
    start: Optional[ParamsView] = None
    objective_value: float = float("nan")
    null_loglik: float = float("nan")
    success: bool = True
    message: str = ""
    backend: str = ""
    backend_spec: Union[str, Sequence[str]] = "auto"
    backend_options: Dict[str, Any] = field(default_factory=dict)
    # Backend-specific extras (nit/nfev, pipeline records, pair counts)
    stats: Dict[str, Any] = field(default_factory=dict)
    bootstrap: Optional[BootstrapResult] = None

    def __getitem__(self, key):
        """res["sigma"] -> ParamView; res["D", "sigma"] -> tuple of ParamViews."""
        if isinstance(key, str):
            return self.params[key]
        if isinstance(key, (tuple, list)) and all(isinstance(k, str) for k in key):
            return tuple(self.params[k] for k in key)
        raise KeyError(key)

    @property
    def loglik(self) -> float:
        return -self.objective_value

    @property
    def loglik_ratio(self) -> float:
        """Log Palm likelihood relative to a Poisson pattern of the same intensity."""
        return self.loglik - self.null_loglik

    def coef(self, *, derived: bool = False) -> Dict[str, float]:
        """Estimates as name -> value (model parameters only unless ``derived``)."""
        if derived:
            return self.params.as_dict()
        return {k: v.value for k, v in self.params.items() if not v.derived}

    def palm_intensity(self, r: Any) -> np.ndarray:
        """Fitted Palm intensity at distance(s) ``r``."""
        family = self.model.family(self.domain.dim)
        return family.palm_intensity(r, self.coef())

    # ---- bootstrap ----------------------------------------------------------
    def boot(
        self,
        N: int,
        report_progress: bool = False,
        rng: Optional[np.random.Generator] = None,
    ) -> "FittedModel":
        """Parametric bootstrap: simulate from the estimates and refit N times.

        Resamples whose simulation or refit raises a PalmError are skipped and
        counted in ``bootstrap.n_failed``. New samples are appended to any
        existing ones; a new FittedModel is returned.
        """
        from tqdm.auto import tqdm

        from .config import Periodic
        from .siblings import simulate_sibling_info

        N = int(N)
        if N < 0:
            raise ValueError(f"N must be >= 0; got {N}.")
        if rng is None:
            rng = np.random.default_rng()

        estimates = self.coef()
        free = [p.name for p in self.model.params if not p.fixed]
        edge = "wrap" if isinstance(self.model.edge, Periodic) else "trim"
        siblings = self.model.siblings
        refit_model = self.model.guess(**{n: estimates[n] for n in free})
        names = tuple(self.params.keys())

        rows = []
        n_failed = 0
        for _ in tqdm(range(N), disable=not report_progress, desc="bootstrap"):
            try:
                sim = refit_model.simulate(dict(estimates), self.domain, edge=edge, rng=rng)
                m = refit_model
                if siblings is not None:
                    info = sim.sibling_info
                    if info is None:
                        info = simulate_sibling_info(
                            sim.parent_ids,
                            siblings.alpha,
                            siblings.beta,
                            siblings.known_fraction(),
                            rng,
                        )
                    m = refit_model.with_siblings(info)
                fit = m.fit(
                    sim.points,
                    self.domain,
                    self.R,
                    backend=self.backend_spec,
                    backend_options=self.backend_options,
                )
            except PalmError as e:
                n_failed += 1
                logger.warning("Skipping bootstrap resample: %s", e)
                continue
            rows.append([fit.params[n].value for n in names])

        samples = np.asarray(rows, dtype=float).reshape((-1, len(names)))
        new = BootstrapResult(names=names, samples=samples, n_failed=n_failed)
        if self.bootstrap is not None:
            new = self.bootstrap.extend(new)
        logger.debug("Bootstrap: %d samples, %d failed.", new.n_samples, new.n_failed)

        items: Dict[str, ParamView] = {}
        for n, pv in self.params.items():
            stderr = None
            if not pv.fixed or pv.derived:
                col = new.column(n)
                if col.size >= 2:
                    stderr = float(np.std(col, ddof=1))
            items[n] = replace(pv, stderr=stderr)
        return replace(self, params=ParamsView(items), bootstrap=new)

    def confint(self, level: float = 0.95) -> Dict[str, Tuple[float, float]]:
        """Bootstrap percentile intervals at ``level``."""
        if self.bootstrap is None or self.bootstrap.n_samples == 0:
            raise ValueError("No bootstrap samples; call boot() first.")
        if not 0.0 < level < 1.0:
            raise ValueError(f"level must lie in (0, 1); got {level}.")
        a = 0.5 * (1.0 - level)
        out = {}
        for n in self.bootstrap.names:
            lo, hi = np.quantile(self.bootstrap.column(n), [a, 1.0 - a])
            out[n] = (float(lo), float(hi))
        return out

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable summary string for the fit."""
        lines = [f"FittedModel(tags={self.model.tags!r}, backend={self.backend!r}, R={self.R:g})"]
        for name, pv in self.params.items():
            v = pv.value
            e = pv.stderr
            tag = " (derived)" if pv.derived else (" (fixed)" if pv.fixed else "")
            if e is None:
                lines.append(f"  {name:>12s}: {float(v):.{digits}g}{tag}")
            else:
                lines.append(f"  {name:>12s}: {float(v):.{digits}g} ± {float(e):.{digits}g}{tag}")
        lines.append(f"  {'log L':>12s}: {self.loglik:.{digits}g}")
        lines.append(f"  {'log LR':>12s}: {self.loglik_ratio:.{digits}g}")
        if self.bootstrap is not None:
            lines.append(
                f"  {'bootstrap':>12s}: {self.bootstrap.n_samples} samples"
                f" ({self.bootstrap.n_failed} failed)"
            )
        return "\n".join(lines)
