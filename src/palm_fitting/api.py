"""Function-style entry points.

``fit_process`` / ``simulate_process`` / ``bootstrap`` take tagged
configurations; ``fit_ns``, ``fit_void``, ``fit_twoplane`` and friends accept
the mode strings ("gaussian", "binom5", "pbc", ...) directly.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import EdgeCorrection, FamilyConfig, VoidConfig, ns_config
from .model import Observer, PalmModel
from .results import FittedModel
from .simulate import SimulatedPattern, simulate_process
from .siblings import siblings_twoplane

BoundsArg = Optional[Mapping[str, Tuple[Optional[float], Optional[float]]]]


def fit_process(
    points: Any,
    domain: Any,
    R: float,
    family_config: Union[FamilyConfig, str] = "ns",
    edge_correction: Union[EdgeCorrection, str] = "pbc",
    start: Optional[Mapping[str, float]] = None,
    bounds: BoundsArg = None,
    trace: Union[bool, Observer] = False,
    **fit_kw: Any,
) -> FittedModel:
    """Fit a process to ``points`` observed on ``domain`` by maximum Palm likelihood.

    ``start`` and ``bounds`` are keyed by parameter name; omitted parameters use
    the family heuristics / default bounds. ``fit_kw`` is forwarded to
    ``PalmModel.fit`` (``backend``, ``backend_options``).
    """
    model = PalmModel.from_config(family_config, edge_correction)
    if bounds:
        model = model.bound(**dict(bounds))
    if start:
        model = model.guess(**dict(start))
    return model.fit(points, domain, R, trace=trace, **fit_kw)


def bootstrap(
    fitted_model: FittedModel,
    N: int,
    report_progress: bool = False,
    rng: Optional[np.random.Generator] = None,
) -> FittedModel:
    """Parametric bootstrap of a fitted model; see ``FittedModel.boot``."""
    return fitted_model.boot(N, report_progress=report_progress, rng=rng)


def fit_ns(
    points: Any,
    lims: Any,
    R: float,
    disp: str = "gaussian",
    child_dist: Any = "pois",
    child_info: Optional[Mapping[str, float]] = None,
    sibling_list: Any = None,
    edge_correction: Union[EdgeCorrection, str] = "pbc",
    start: Optional[Mapping[str, float]] = None,
    bounds: BoundsArg = None,
    trace: Union[bool, Observer] = False,
    **fit_kw: Any,
) -> FittedModel:
    """Fit a Neyman-Scott point process.

    disp: "gaussian" (Thomas) or "uniform" (Matern).
    child_dist: "pois", "binom<n>" or "twoplane" (needs ``child_info``).
    sibling_list: optional mapping with "sibling_mat", "alpha", "beta".
    """
    config = ns_config(disp, child_dist, child_info, sibling_list)
    return fit_process(
        points, lims, R, config, edge_correction,
        start=start, bounds=bounds, trace=trace, **fit_kw,
    )


def sim_ns(
    pars: Mapping[str, float],
    lims: Any,
    disp: str = "gaussian",
    child_dist: Any = "pois",
    child_info: Optional[Mapping[str, float]] = None,
    *,
    edge: str = "wrap",
    rng: Optional[np.random.Generator] = None,
) -> SimulatedPattern:
    return simulate_process(
        pars, lims, ns_config(disp, child_dist, child_info), edge=edge, rng=rng
    )


def fit_void(
    points: Any,
    lims: Any,
    R: float,
    edge_correction: Union[EdgeCorrection, str] = "pbc",
    start: Optional[Mapping[str, float]] = None,
    bounds: BoundsArg = None,
    trace: Union[bool, Observer] = False,
    **fit_kw: Any,
) -> FittedModel:
    """Fit a total-deletion void process (parameters Dc, Dp, tau)."""
    return fit_process(
        points, lims, R, VoidConfig(), edge_correction,
        start=start, bounds=bounds, trace=trace, **fit_kw,
    )


def sim_void(
    pars: Mapping[str, float],
    lims: Any,
    *,
    edge: str = "wrap",
    rng: Optional[np.random.Generator] = None,
) -> SimulatedPattern:
    return simulate_process(pars, lims, VoidConfig(), edge=edge, rng=rng)


def fit_twoplane(
    points: Any,
    planes: Optional[Sequence[int]] = None,
    *,
    d: float,
    w: float,
    b: float,
    l: float,
    tau: float,
    R: float,
    edge_correction: Union[EdgeCorrection, str] = "pbc",
    start: Optional[Mapping[str, float]] = None,
    bounds: BoundsArg = None,
    trace: Union[bool, Observer] = False,
    **fit_kw: Any,
) -> FittedModel:
    """Estimate animal density from a two-plane aerial survey.

    points: positions along a transect of length ``d``.
    planes: which observer (1 or 2) made each detection; when given, two
        detections from the same plane are known not to be the same animal.
    w, b: half-widths of the observed strip and of the region animals can
        occupy; l: lag between the planes; tau: mean dive-cycle duration.

    Returns a fit with parameters D (animals per unit transect length),
    kappa (mean surface time), sigma (movement between passes) and the
    derived D_2D = D / (2 b).
    """
    sibling_list = None if planes is None else siblings_twoplane(planes)
    return fit_ns(
        points,
        [0.0, float(d)],
        R,
        child_dist="twoplane",
        child_info={"w": w, "b": b, "l": l, "tau": tau},
        sibling_list=sibling_list,
        edge_correction=edge_correction,
        start=start,
        bounds=bounds,
        trace=trace,
        **fit_kw,
    )


def boot_palm(
    fit: FittedModel,
    N: int,
    prog: bool = True,
    rng: Optional[np.random.Generator] = None,
) -> FittedModel:
    return bootstrap(fit, N, report_progress=prog, rng=rng)
