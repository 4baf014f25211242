from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from warnings import warn

import numpy as np

from .backends import get_backend
from .backends.common import BackendResult
from .config import (
    Buffer,
    EdgeCorrection,
    FamilyConfig,
    NeymanScottConfig,
    Periodic,
    build_family,
    component_tags,
    default_bounds,
    parse_edge_correction,
    parse_family,
)
from .edge import BufferCorrection, PalmObjective, PeriodicCorrection
from .errors import ConfigurationError, DomainError, OptimizationError, PalmError
from .families import ProcessFamily
from .geometry import Domain, as_points
from .params import ParameterSpec, ParamView, ParamsView
from .results import FittedModel
from .siblings import SiblingInfo
from .simulate import SimulatedPattern, simulate_family

logger = logging.getLogger(__name__)

Observer = Callable[[Dict[str, float], float], None]

# Zero lower bounds are lifted to this fraction of the heuristic start.
_LOWER_FRACTION = 1e-6


class FitState(enum.Enum):
    UNFIT = "unfit"
    FITTING = "fitting"
    FITTED = "fitted"
    FAILED = "failed"


def _family_names(config: FamilyConfig) -> Tuple[str, ...]:
    # Names do not depend on dimension; dim=1 satisfies every family.
    return build_family(config, 1).names


@dataclass
class PalmModel:
    """A composed Palm-likelihood model: family configuration + edge correction."""

    config: FamilyConfig
    edge: EdgeCorrection
    param_names: Tuple[str, ...]
    params: Tuple[ParameterSpec, ...]
    state: FitState = FitState.UNFIT

    # ---- constructor ----
    @staticmethod
    def from_config(
        family_config: Union[FamilyConfig, str] = "ns",
        edge_correction: Union[EdgeCorrection, str] = "pbc",
    ) -> "PalmModel":
        """Compose a model; configuration errors surface here, before any fitting."""
        config = parse_family(family_config)
        edge = parse_edge_correction(edge_correction)
        names = _family_names(config)
        component_tags(config, edge)
        return PalmModel(
            config=config,
            edge=edge,
            param_names=names,
            params=tuple(ParameterSpec(name=n) for n in names),
        )

    @property
    def tags(self) -> Tuple[str, ...]:
        return component_tags(self.config, self.edge)

    @property
    def siblings(self) -> Optional[SiblingInfo]:
        if isinstance(self.config, NeymanScottConfig):
            return self.config.siblings
        return None

    # ---- builders (pure; return new model) ----
    def _specs(self, updates: Mapping[str, Any], what: str) -> Dict[str, ParameterSpec]:
        m = {p.name: p for p in self.params}
        unknown = [k for k in updates if k not in m]
        if unknown:
            raise ConfigurationError(
                f"Unknown parameter(s) in {what}: {', '.join(sorted(unknown))}. "
                f"Model parameters are {self.param_names}."
            )
        return m

    def fix(self, **fixed: float) -> "PalmModel":
        """Return a new PalmModel with parameters fixed to values."""
        m = self._specs(fixed, "fix")
        for k, v in fixed.items():
            m[k] = replace(m[k], fixed=True, fixed_value=float(v))
        return replace(self, params=tuple(m[n] for n in self.param_names), state=FitState.UNFIT)

    def bound(self, **bounds: Tuple[Optional[float], Optional[float]]) -> "PalmModel":
        """Return a new PalmModel with parameter bounds applied."""
        m = self._specs(bounds, "bounds")
        for k, b in bounds.items():
            lo, hi = b
            if lo is not None and hi is not None and float(hi) < float(lo):
                raise ConfigurationError(f"Bounds for {k!r} are inverted: {b}.")
            m[k] = replace(m[k], bounds=(lo, hi))
        return replace(self, params=tuple(m[n] for n in self.param_names), state=FitState.UNFIT)

    def guess(self, **guesses: float) -> "PalmModel":
        """Return a new PalmModel with starting values."""
        m = self._specs(guesses, "start")
        for k, g in guesses.items():
            m[k] = replace(m[k], guess=float(g))
        return replace(self, params=tuple(m[n] for n in self.param_names), state=FitState.UNFIT)

    def with_siblings(self, siblings: Optional[SiblingInfo]) -> "PalmModel":
        """Return a new PalmModel using ``siblings`` as the observed sibling labels."""
        if not isinstance(self.config, NeymanScottConfig):
            raise ConfigurationError("Sibling information only applies to Neyman-Scott processes.")
        return replace(self, config=replace(self.config, siblings=siblings), state=FitState.UNFIT)

    # ---- composition ----
    def family(self, dim: int) -> ProcessFamily:
        return build_family(self.config, dim)

    def objective(self, points: Any, domain: Any, R: float) -> PalmObjective:
        """Compose edge correction, family and sibling model into one objective."""
        domain = Domain.from_lims(domain)
        family = self.family(domain.dim)
        pts = as_points(points, domain.dim)
        if isinstance(self.edge, Periodic):
            strategy = PeriodicCorrection()
        elif isinstance(self.edge, Buffer):
            strategy = BufferCorrection(radius=self.edge.radius)
        else:
            raise ConfigurationError(f"Unknown edge correction {self.edge!r}.")
        contrasts = strategy.contrasts(pts, domain, R, self.siblings)
        return PalmObjective(family, contrasts, R, domain.volume, siblings=self.siblings)

    # ---- simulation ----
    def simulate(
        self,
        params: Mapping[str, float],
        domain: Any,
        *,
        edge: str = "wrap",
        rng: Optional[np.random.Generator] = None,
    ) -> SimulatedPattern:
        domain = Domain.from_lims(domain)
        return simulate_family(self.family(domain.dim), params, domain, edge=edge, rng=rng)

    # ---- fitting ----
    def fit(
        self,
        points: Any,
        domain: Any,
        R: float,
        *,
        backend: Union[str, Sequence[str]] = "auto",
        backend_options: Optional[Dict[str, Any]] = None,
        trace: Union[bool, Observer] = False,
    ) -> FittedModel:
        """Maximise the Palm likelihood and return a FittedModel.

        Backend notes:
        - "scipy.minimize" uses L-BFGS-B by default (backend_options["method"])
        - "scipy.differential_evolution" is a global optimiser (requires finite bounds)
        - backend="auto" runs L-BFGS-B and, if that fails or meets an undefined
          likelihood, bounded Nelder-Mead from its result (or the start)
        - backend=("a", "b", ...) runs a backend pipeline, passing results forward as starts

        Raises OptimizationError (carrying the last evaluated parameters) if
        the optimiser does not converge or meets a non-finite objective.
        """
        domain = Domain.from_lims(domain)
        pts = as_points(points, domain.dim)
        if isinstance(self.edge, Periodic):
            pts = domain.wrap(pts)
        backend_options = dict(backend_options or {})
        mode, steps = _backend_plan(backend)
        observer = _observer(trace)

        objective = self.objective(pts, domain, R)
        family = objective.family
        c = objective.contrasts

        free_names, fixed_map = _free_and_fixed(self.params)
        heuristic = family.default_start(c.n_points, domain.volume, c.pair_rate, float(R))
        bounds_map = _bounds_map(self.params, self.config, float(R), heuristic)
        start = _compute_start(self, heuristic, bounds_map, free_names)
        logger.debug("Fitting %s from start %s", self.tags, start)

        p0 = np.asarray([start[n] for n in free_names], dtype=float)
        scale = np.where(np.abs(p0) > 0.0, np.abs(p0), 1.0)
        lo = np.asarray([bounds_map[n][0] for n in free_names], dtype=float) / scale
        hi = np.asarray([bounds_map[n][1] for n in free_names], dtype=float) / scale

        last: Dict[str, float] = {}

        def _params(u: np.ndarray) -> Dict[str, float]:
            p = dict(fixed_map)
            theta = np.asarray(u, dtype=float) * scale
            for j, n in enumerate(free_names):
                p[n] = float(theta[j])
            return p

        def scaled_objective(u: np.ndarray) -> float:
            p = _params(u)
            last.clear()
            last.update(p)
            try:
                val = float(objective(p))
            except DomainError as e:
                raise OptimizationError(
                    f"Palm likelihood undefined at {p}: {e}", params=p
                ) from e
            if not math.isfinite(val):
                raise OptimizationError(f"Non-finite Palm likelihood at {p}.", params=p)
            if observer is not None:
                observer(dict(p), val)
            return val

        self.state = FitState.FITTING
        try:
            if free_names:
                r, used = _run_backend_plan(
                    objective=scaled_objective,
                    p0=np.ones_like(p0),
                    bounds=(lo, hi),
                    options=backend_options,
                    mode=mode,
                    steps=steps,
                )
            else:
                r, used = BackendResult(theta=p0, message="no free parameters"), "none"
            if not r.success:
                raise OptimizationError(
                    f"Optimiser did not converge ({used}): {r.message}", params=last, result=r
                )
            estimate = _params(r.theta)
            value = float(objective(estimate))
            if not math.isfinite(value):
                raise OptimizationError(f"Non-finite Palm likelihood at {estimate}.", params=estimate)
        except PalmError:
            self.state = FitState.FAILED
            raise
        self.state = FitState.FITTED
        logger.debug("Fitted %s: %s (objective %.6g)", self.tags, estimate, value)

        items: Dict[str, ParamView] = {}
        seed_items: Dict[str, ParamView] = {}
        for spec in self.params:
            n = spec.name
            items[n] = ParamView(
                name=n, value=estimate[n], fixed=spec.fixed, bounds=bounds_map[n]
            )
            seed_items[n] = ParamView(
                name=n,
                value=float(start.get(n, fixed_map.get(n, np.nan))),
                fixed=spec.fixed,
                bounds=bounds_map[n],
            )
        for d in family.derived():
            items[d.name] = ParamView(name=d.name, value=float(d.func(estimate)), fixed=True, derived=True)

        stats = dict(r.stats or {})
        stats.setdefault("backend", used)
        stats["n_pairs"] = int(c.distances.size)
        stats["n_origin"] = int(c.n_origin)
        return FittedModel(
            model=replace(self, state=FitState.FITTED),
            points=pts,
            domain=domain,
            R=float(R),
            params=ParamsView(items),
            start=ParamsView(seed_items),
            objective_value=value,
            null_loglik=objective.null_loglik,
            success=True,
            message=str(r.message),
            backend=used,
            backend_spec=backend,
            backend_options=backend_options,
            stats=stats,
        )


def _observer(trace: Union[bool, Observer]) -> Optional[Observer]:
    if callable(trace):
        return trace
    if trace:
        return _print_iterate
    return None


def _print_iterate(params: Dict[str, float], value: float) -> None:
    body = ", ".join(f"{k}: {v:.6g}" for k, v in params.items())
    print(f"{body}; -log(L): {value:.6g}")


def _backend_plan(backend: Union[str, Sequence[str]]) -> Tuple[str, List[str]]:
    if isinstance(backend, str):
        if backend == "auto":
            return "auto", []
        get_backend(backend)
        return "single", [backend]
    if isinstance(backend, (tuple, list)):
        steps = [str(b) for b in backend]
        if not steps:
            raise ConfigurationError("backend pipeline cannot be empty.")
        for b in steps:
            get_backend(b)
        return "pipeline", steps
    raise ConfigurationError("backend must be a string or a sequence of strings.")


def _free_and_fixed(
    params: Tuple[ParameterSpec, ...]
) -> Tuple[List[str], Dict[str, float]]:
    """Split parameters into free names and fixed name->value mapping."""
    free: List[str] = []
    fixed: Dict[str, float] = {}
    for p in params:
        if p.fixed:
            if p.fixed_value is None:
                raise ConfigurationError(f"Parameter {p.name} is fixed but has no fixed_value.")
            fixed[p.name] = float(p.fixed_value)
        else:
            free.append(p.name)
    return free, fixed


def _bounds_map(
    params: Tuple[ParameterSpec, ...],
    config: FamilyConfig,
    R: float,
    heuristic: Optional[Mapping[str, float]] = None,
) -> Dict[str, Tuple[float, float]]:
    """Defaults from default_bounds(), overridden per side by user bounds.

    A default lower bound of zero is lifted to 1e-6 of the heuristic start,
    where the Palm likelihood of a pattern with pairs is still finite.
    """
    defaults = dict(default_bounds(config, R))
    for n, (dlo, dhi) in defaults.items():
        h = (heuristic or {}).get(n)
        if dlo == 0.0 and h is not None and h > 0.0:
            defaults[n] = (_LOWER_FRACTION * float(h), dhi)
    out: Dict[str, Tuple[float, float]] = {}
    for p in params:
        dlo, dhi = defaults.get(p.name, (None, None))
        lo, hi = p.bounds if p.bounds is not None else (None, None)
        lo = dlo if lo is None else lo
        hi = dhi if hi is None else hi
        out[p.name] = (
            -np.inf if lo is None else float(lo),
            np.inf if hi is None else float(hi),
        )
    return out


def _compute_start(
    model: PalmModel,
    heuristic: Mapping[str, float],
    bounds: Mapping[str, Tuple[float, float]],
    free_names: List[str],
) -> Dict[str, float]:
    """Starting values for the free parameters.

    Precedence per free parameter:

      1) explicit start via model.guess(...) / fit_process(start=...)
      2) the family heuristic (D from point count / volume, cluster terms
         from the observed pair rate within R)

    Starts outside the bounds are clipped into them with a warning.
    """
    pmap = {p.name: p for p in model.params}
    start: Dict[str, float] = {}
    for n in free_names:
        g = pmap[n].guess
        start[n] = float(heuristic[n] if g is None else g)

    clipped: List[str] = []
    for n in free_names:
        lo, hi = bounds[n]
        v0 = start[n]
        v = min(max(v0, lo), hi)
        if v != v0:
            start[n] = v
            if pmap[n].guess is not None:
                clipped.append(n)
    if clipped:
        warn("Clipped start values into bounds for: " + ", ".join(clipped), UserWarning)
    return start


def _run_backend_plan(
    *,
    objective: Callable[[np.ndarray], float],
    p0: np.ndarray,
    bounds: Tuple[np.ndarray, np.ndarray],
    options: Dict[str, Any],
    mode: str,
    steps: Sequence[str],
) -> Tuple[BackendResult, str]:
    """Run a single backend, a backend pipeline, or auto fallback."""

    def _record(backend_name: str, r: BackendResult) -> Dict[str, Any]:
        return {
            "backend": backend_name,
            "success": bool(r.success),
            "message": str(r.message),
            "stats": dict(r.stats or {}),
        }

    if mode == "single":
        name = str(steps[0])
        r = get_backend(name).fit_one(objective=objective, p0=p0, bounds=bounds, options=options)
        return r, name

    if mode == "pipeline":
        pipeline: list[Dict[str, Any]] = []
        best: Optional[BackendResult] = None
        best_name = str(steps[0])
        last: Optional[BackendResult] = None
        last_name = best_name
        current_p0 = np.asarray(p0, dtype=float)

        for name in steps:
            last_name = str(name)
            r = get_backend(last_name).fit_one(
                objective=objective, p0=current_p0, bounds=bounds, options=options
            )
            last = r
            pipeline.append(_record(last_name, r))
            if bool(r.success):
                best, best_name = r, last_name
            theta = np.asarray(r.theta, dtype=float)
            if theta.shape == current_p0.shape and np.all(np.isfinite(theta)):
                current_p0 = theta

        use = best if best is not None else last
        use_name = best_name if best is not None else last_name
        stats = dict(use.stats or {})
        stats["pipeline_mode"] = "pipeline"
        stats["pipeline"] = pipeline
        return replace(use, stats=stats), use_name

    if mode != "auto":
        raise ConfigurationError(f"Unknown backend mode: {mode!r}")

    # ---- auto fallback ------------------------------------------------------
    pipeline = []
    minimizer = get_backend("scipy.minimize")
    try:
        r_lb = minimizer.fit_one(objective=objective, p0=p0, bounds=bounds, options=options)
    except OptimizationError as e:
        logger.info("L-BFGS-B left the region where the likelihood is defined: %s", e)
        r_lb = BackendResult(theta=np.asarray(p0, dtype=float), success=False, message=str(e))
    pipeline.append(_record("scipy.minimize", r_lb))
    use, use_name = r_lb, "scipy.minimize"

    if not r_lb.success:
        # L-BFGS-B often stops on line-search trouble near a flat optimum;
        # a derivative-free polish from there usually settles it.
        theta = np.asarray(r_lb.theta, dtype=float)
        start = theta if np.all(np.isfinite(theta)) else p0
        r_nm = minimizer.fit_one(
            objective=objective,
            p0=start,
            bounds=bounds,
            options=dict(options, method="Nelder-Mead"),
        )
        pipeline.append(_record("scipy.minimize", r_nm))
        use = r_nm
    stats = dict(use.stats or {})
    stats["pipeline_mode"] = "auto"
    stats["pipeline"] = pipeline
    return replace(use, stats=stats), use_name
