"""Closed-form Palm intensities for the supported process families.

A family is a pure function of inter-point distance and parameters; it never
needs the points or the domain, so the fitting engine and the simulator
share it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
from scipy.integrate import quad

from .children import ChildModel, TwoPlaneChildren
from .dispersion import Dispersion
from .errors import ConfigurationError, DomainError, InvalidParameterError
from .geometry import ball_intersection_volume, ball_volume, sphere_surface
from .params import DerivedSpec

Bounds = Dict[str, Tuple[Optional[float], Optional[float]]]


def check_names(names: Tuple[str, ...], params: Mapping[str, Any], *, what: str = "params") -> None:
    """Reject missing and unknown parameter names."""
    missing = [n for n in names if n not in params]
    unknown = [n for n in params if n not in names]
    if missing or unknown:
        parts = []
        if missing:
            parts.append("missing " + ", ".join(missing))
        if unknown:
            parts.append("unknown " + ", ".join(sorted(unknown)))
        raise ConfigurationError(
            f"{what} do not match the model parameters {names}: " + "; ".join(parts) + "."
        )


def _density(name: str, value: Any) -> float:
    v = float(value)
    if not math.isfinite(v) or v < 0.0:
        raise DomainError(f"{name} must be finite and >= 0; got {v}.")
    return v


@dataclass(frozen=True)
class NeymanScott:
    """Parents ~ Poisson(D); children counted by ``children``, placed by ``dispersion``.

    Palm intensity:

        lambda_0(r) = D E[N] + E[N(N-1)] / E[N] * h(r)

    where h is the sibling-difference density of the dispersion kernel. The
    first term comes from points of other clusters, the second from siblings.
    """

    children: ChildModel
    dispersion: Dispersion
    dim: int

    tag = "ns"

    def __post_init__(self):
        if isinstance(self.children, TwoPlaneChildren):
            if self.dispersion.tag != "thomas":
                raise ConfigurationError(
                    "child_dist='twoplane' models animal movement as Gaussian; use disp='gaussian'."
                )
            if self.dim != 1:
                raise ConfigurationError(
                    f"child_dist='twoplane' needs a one-dimensional transect domain; got dim={self.dim}."
                )

    @property
    def names(self) -> Tuple[str, ...]:
        return ("D",) + tuple(self.children.names) + tuple(self.dispersion.names)

    @property
    def tags(self) -> Tuple[str, ...]:
        return (self.tag, self.children.tag, self.dispersion.tag)

    def check(self, params: Mapping[str, float]) -> None:
        _density("D", params["D"])
        self.dispersion.check(params)
        self.children.check(params)

    def intensity(self, params: Mapping[str, float]) -> float:
        """Expected number of points per unit volume."""
        self.check(params)
        return float(params["D"]) * self.children.expected_children(params)

    def palm_components(self, distance: Any, params: Mapping[str, float]) -> Tuple[np.ndarray, np.ndarray]:
        """(sibling, nonsibling) parts of the Palm intensity at ``distance``."""
        self.check(params)
        r = np.asarray(distance, dtype=float)
        sib = self.children.sibling_ratio(params) * self.dispersion.density_at(r, params, self.dim)
        non = np.full(r.shape, self.intensity(params), dtype=float)
        return np.asarray(sib, dtype=float), non

    def log_palm_components(
        self, distance: Any, params: Mapping[str, float]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Logs of the (sibling, nonsibling) parts, finite where the kernel is positive."""
        self.check(params)
        r = np.asarray(distance, dtype=float)
        with np.errstate(divide="ignore"):
            log_ratio = np.log(self.children.sibling_ratio(params))
            log_non = np.log(self.intensity(params))
        log_sib = log_ratio + self.dispersion.log_density_at(r, params, self.dim)
        return np.asarray(log_sib, dtype=float), np.full(r.shape, log_non, dtype=float)

    def palm_intensity(self, distance: Any, params: Mapping[str, float]) -> np.ndarray:
        sib, non = self.palm_components(distance, params)
        return sib + non

    def log_palm_intensity(self, distance: Any, params: Mapping[str, float]) -> np.ndarray:
        log_sib, log_non = self.log_palm_components(distance, params)
        return np.logaddexp(log_sib, log_non)

    def palm_integral(self, R: float, params: Mapping[str, float]) -> float:
        """Expected number of further points within R of a typical point."""
        self.check(params)
        return self.intensity(params) * ball_volume(R, self.dim) + self.children.sibling_ratio(
            params
        ) * self.dispersion.within(R, params, self.dim)

    def default_bounds(self, R: float) -> Bounds:
        out: Bounds = {"D": (0.0, None)}
        out.update(self.children.default_bounds())
        out.update(self.dispersion.default_bounds(R))
        return out

    def default_start(self, n_points: int, volume: float, pair_rate: float, R: float) -> Dict[str, float]:
        """Heuristic starting values.

        ``pair_rate`` is the observed mean number of neighbours within R of a
        point; the excess over a Poisson pattern estimates the sibling term.
        """
        lam = n_points / volume
        start: Dict[str, float] = dict(self.dispersion.default_start(R))
        excess = max(pair_rate - lam * ball_volume(R, self.dim), 0.0)
        ratio = excess / max(self.dispersion.within(R, start, self.dim), 1e-12)
        start.update(self.children.start_from_ratio(ratio))
        mean_children = self.children.expected_children(start)
        start["D"] = lam / mean_children if mean_children > 0.0 else lam
        return {n: float(start[n]) for n in self.names}

    def derived(self) -> Tuple[DerivedSpec, ...]:
        if isinstance(self.children, TwoPlaneChildren):
            b = self.children.info.b
            return (
                DerivedSpec(
                    name="D_2D",
                    func=lambda p, b=b: p["D"] / (2.0 * b),
                    doc="Animal density per unit area of the surveyed strip.",
                ),
            )
        return ()


@dataclass(frozen=True)
class VoidProcess:
    """Total-deletion void process.

    Baseline points ~ Poisson(Dc); every point within ``tau`` of an
    unobserved parent (~ Poisson(Dp)) is deleted. Two points r apart both
    survive iff no parent falls in the union of their tau-balls, so

        lambda_0(r) = Dc exp(-Dp (V(tau) - V_cap(r)))

    with V_cap the volume of the intersection of the two balls.
    """

    dim: int

    tag = "void"
    names = ("Dc", "Dp", "tau")

    @property
    def tags(self) -> Tuple[str, ...]:
        return (self.tag, "totaldeletion")

    def check(self, params: Mapping[str, float]) -> None:
        _density("Dc", params["Dc"])
        _density("Dp", params["Dp"])
        tau = float(params["tau"])
        if not math.isfinite(tau) or tau <= 0.0:
            raise InvalidParameterError(f"tau must be finite and > 0; got {tau}.")

    def intensity(self, params: Mapping[str, float]) -> float:
        self.check(params)
        return float(params["Dc"]) * math.exp(
            -float(params["Dp"]) * ball_volume(float(params["tau"]), self.dim)
        )

    def palm_components(self, distance: Any, params: Mapping[str, float]) -> Tuple[np.ndarray, np.ndarray]:
        palm = self.palm_intensity(distance, params)
        return np.zeros_like(palm), palm

    def log_palm_components(
        self, distance: Any, params: Mapping[str, float]
    ) -> Tuple[np.ndarray, np.ndarray]:
        log_palm = self.log_palm_intensity(distance, params)
        return np.full_like(log_palm, -np.inf), log_palm

    def palm_intensity(self, distance: Any, params: Mapping[str, float]) -> np.ndarray:
        self.check(params)
        r = np.asarray(distance, dtype=float)
        Dc, Dp, tau = float(params["Dc"]), float(params["Dp"]), float(params["tau"])
        cap = np.asarray(ball_intersection_volume(r, tau, self.dim), dtype=float)
        return Dc * np.exp(-Dp * (ball_volume(tau, self.dim) - cap))

    def log_palm_intensity(self, distance: Any, params: Mapping[str, float]) -> np.ndarray:
        self.check(params)
        r = np.asarray(distance, dtype=float)
        Dc, Dp, tau = float(params["Dc"]), float(params["Dp"]), float(params["tau"])
        cap = np.asarray(ball_intersection_volume(r, tau, self.dim), dtype=float)
        with np.errstate(divide="ignore"):
            return np.log(Dc) - Dp * (ball_volume(tau, self.dim) - cap)

    def palm_integral(self, R: float, params: Mapping[str, float]) -> float:
        self.check(params)
        tau = float(params["tau"])
        edge = min(R, 2.0 * tau)

        def integrand(r: float) -> float:
            return float(self.palm_intensity(r, params)) * sphere_surface(r, self.dim)

        val, _ = quad(integrand, 0.0, edge)
        if R > edge:
            # Beyond 2 tau the two balls are disjoint: lambda_0 is the intensity.
            val += self.intensity(params) * (ball_volume(R, self.dim) - ball_volume(edge, self.dim))
        return float(val)

    def default_bounds(self, R: float) -> Bounds:
        return {"Dc": (0.0, None), "Dp": (0.0, None), "tau": (1e-6 * R, R)}

    def default_start(self, n_points: int, volume: float, pair_rate: float, R: float) -> Dict[str, float]:
        lam = n_points / volume
        tau = 0.1 * R
        v = ball_volume(tau, self.dim)
        Dp = 0.5 / v
        return {"Dc": lam * math.exp(Dp * v), "Dp": Dp, "tau": tau}

    def derived(self) -> Tuple[DerivedSpec, ...]:
        return ()


ProcessFamily = NeymanScott | VoidProcess
