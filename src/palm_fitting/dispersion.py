"""Dispersion of children around their parent.

``density_at`` is the density of the displacement between two siblings,
evaluated at a displacement vector of norm ``distance``. That is the shape
that enters the Palm intensity of a Neyman-Scott process.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
from scipy.integrate import quad
from scipy.stats import chi2, norm

from .errors import InvalidParameterError
from .geometry import ball_intersection_volume, ball_volume, sphere_surface

Bounds = Dict[str, Tuple[Optional[float], Optional[float]]]


def _positive(name: str, value: Any) -> float:
    v = float(value)
    if not math.isfinite(v) or v <= 0.0:
        raise InvalidParameterError(f"{name} must be finite and > 0; got {v}.")
    return v


@dataclass(frozen=True)
class GaussianDispersion:
    """Isotropic N(0, sigma^2 I) offsets (Thomas process)."""

    tag = "thomas"
    names = ("sigma",)

    def check(self, params: Mapping[str, float]) -> None:
        _positive("sigma", params["sigma"])

    def density_at(self, distance: Any, params: Mapping[str, float], dim: int) -> np.ndarray:
        # Sibling difference is N(0, 2 sigma^2 I); an isotropic density is a
        # product of univariate normals, so evaluate along one axis.
        s = math.sqrt(2.0) * _positive("sigma", params["sigma"])
        r = np.asarray(distance, dtype=float)
        return norm.pdf(r, scale=s) * norm.pdf(0.0, scale=s) ** (dim - 1)

    def log_density_at(self, distance: Any, params: Mapping[str, float], dim: int) -> np.ndarray:
        s = math.sqrt(2.0) * _positive("sigma", params["sigma"])
        r = np.asarray(distance, dtype=float)
        return norm.logpdf(r, scale=s) + (dim - 1) * norm.logpdf(0.0, scale=s)

    def within(self, R: float, params: Mapping[str, float], dim: int) -> float:
        """P(|X| <= R) for the sibling difference X."""
        sigma = _positive("sigma", params["sigma"])
        return float(chi2.cdf(R * R / (2.0 * sigma * sigma), dim))

    def reach(self, params: Mapping[str, float]) -> float:
        return 4.0 * float(params["sigma"])

    def sample(self, n: int, dim: int, params: Mapping[str, float], rng: np.random.Generator) -> np.ndarray:
        sigma = _positive("sigma", params["sigma"])
        return rng.normal(0.0, sigma, size=(int(n), dim))

    def default_bounds(self, R: float) -> Bounds:
        return {"sigma": (1e-6 * R, R)}

    def default_start(self, R: float) -> Dict[str, float]:
        return {"sigma": 0.1 * R}


@dataclass(frozen=True)
class UniformDispersion:
    """Children uniform in the ball of radius tau (Matern process)."""

    tag = "matern"
    names = ("tau",)

    def check(self, params: Mapping[str, float]) -> None:
        _positive("tau", params["tau"])

    def density_at(self, distance: Any, params: Mapping[str, float], dim: int) -> np.ndarray:
        tau = _positive("tau", params["tau"])
        r = np.asarray(distance, dtype=float)
        return np.asarray(ball_intersection_volume(r, tau, dim)) / ball_volume(tau, dim) ** 2

    def log_density_at(self, distance: Any, params: Mapping[str, float], dim: int) -> np.ndarray:
        # -inf beyond 2 tau, where two siblings cannot be.
        with np.errstate(divide="ignore"):
            return np.log(self.density_at(distance, params, dim))

    def within(self, R: float, params: Mapping[str, float], dim: int) -> float:
        tau = _positive("tau", params["tau"])
        if R >= 2.0 * tau:
            return 1.0
        val, _ = quad(
            lambda r: float(self.density_at(r, params, dim)) * sphere_surface(r, dim), 0.0, R
        )
        return float(min(val, 1.0))

    def reach(self, params: Mapping[str, float]) -> float:
        return float(params["tau"])

    def sample(self, n: int, dim: int, params: Mapping[str, float], rng: np.random.Generator) -> np.ndarray:
        tau = _positive("tau", params["tau"])
        n = int(n)
        direction = rng.normal(size=(n, dim))
        direction /= np.linalg.norm(direction, axis=1, keepdims=True)
        radius = tau * rng.random(n) ** (1.0 / dim)
        return direction * radius[:, None]

    def default_bounds(self, R: float) -> Bounds:
        return {"tau": (1e-6 * R, R)}

    def default_start(self, R: float) -> Dict[str, float]:
        return {"tau": 0.1 * R}


Dispersion = GaussianDispersion | UniformDispersion
