from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np
from scipy.spatial.distance import pdist
from scipy.special import betainc, gammaln

from .errors import InvalidDomainError, InvalidRadiusError

__all__ = [
    "Domain",
    "as_points",
    "pairwise_distances",
    "periodic_distances",
    "buffer_interior",
    "buffer_survival_mask",
    "ball_volume",
    "sphere_surface",
    "ball_intersection_volume",
]


@dataclass(frozen=True)
class Domain:
    """Axis-aligned hyper-rectangle given by per-dimension (lower, upper)."""

    lower: Tuple[float, ...]
    upper: Tuple[float, ...]

    def __post_init__(self):
        lo = np.asarray(self.lower, dtype=float)
        hi = np.asarray(self.upper, dtype=float)
        if lo.ndim != 1 or lo.shape != hi.shape or lo.size == 0:
            raise InvalidDomainError("Domain needs matching, non-empty lower/upper bounds.")
        if not (np.all(np.isfinite(lo)) and np.all(np.isfinite(hi))):
            raise InvalidDomainError("Domain bounds must be finite.")
        if np.any(hi <= lo):
            raise InvalidDomainError(
                f"Domain bounds are inverted or degenerate: lower={tuple(lo)}, upper={tuple(hi)}."
            )

    @staticmethod
    def from_lims(lims: Any) -> "Domain":
        """Build a Domain from a (D, 2) array of rows (lower, upper).

        A flat pair such as ``(0, 1)`` is read as a one-dimensional domain.
        """
        if isinstance(lims, Domain):
            return lims
        arr = np.asarray(lims, dtype=float)
        if arr.ndim == 1 and arr.shape[0] == 2:
            arr = arr[None, :]
        if arr.ndim != 2 or arr.shape[1] != 2:
            raise InvalidDomainError(
                f"lims must have shape (D, 2) or (2,); got {arr.shape}."
            )
        return Domain(lower=tuple(arr[:, 0].tolist()), upper=tuple(arr[:, 1].tolist()))

    @property
    def dim(self) -> int:
        return len(self.lower)

    @property
    def extent(self) -> np.ndarray:
        return np.asarray(self.upper, dtype=float) - np.asarray(self.lower, dtype=float)

    @property
    def volume(self) -> float:
        return float(np.prod(self.extent))

    def contains(self, points: np.ndarray) -> np.ndarray:
        """Per-point flag: True where the point lies within the closed domain."""
        pts = as_points(points, self.dim)
        lo = np.asarray(self.lower, dtype=float)
        hi = np.asarray(self.upper, dtype=float)
        return np.all((pts >= lo) & (pts <= hi), axis=1)

    def wrap(self, points: np.ndarray) -> np.ndarray:
        """Map points onto the domain under toroidal wrap-around."""
        pts = as_points(points, self.dim)
        lo = np.asarray(self.lower, dtype=float)
        return lo + np.mod(pts - lo, self.extent)

    def expand(self, margin: float) -> "Domain":
        """Return the domain grown by ``margin`` on every side."""
        m = float(margin)
        return Domain(
            lower=tuple(float(v) - m for v in self.lower),
            upper=tuple(float(v) + m for v in self.upper),
        )

    def uniform(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw ``n`` points uniformly over the domain."""
        lo = np.asarray(self.lower, dtype=float)
        return lo + rng.random((int(n), self.dim)) * self.extent


def as_points(points: Any, dim: int) -> np.ndarray:
    """Coerce a point set to shape (n, dim)."""
    pts = np.asarray(points, dtype=float)
    if pts.ndim == 1:
        if dim != 1:
            raise InvalidDomainError(
                f"Got a flat vector of points for a {dim}-dimensional domain."
            )
        pts = pts[:, None]
    if pts.ndim != 2 or pts.shape[1] != dim:
        raise InvalidDomainError(
            f"Points must have shape (n, {dim}); got {pts.shape}."
        )
    return pts


def pairwise_distances(points: np.ndarray) -> np.ndarray:
    """Euclidean distances for every unordered pair, in condensed (i < j) order."""
    pts = np.asarray(points, dtype=float)
    if pts.shape[0] < 2:
        return np.empty((0,), dtype=float)
    return pdist(pts)


def periodic_distances(points: Any, domain: Domain) -> np.ndarray:
    """Minimum distances under toroidal wrap-around, in condensed (i < j) order.

    Each dimension is wrapped independently, so no distance exceeds half the
    domain diagonal.
    """
    domain = Domain.from_lims(domain)
    pts = domain.wrap(points)
    n = pts.shape[0]
    if n < 2:
        return np.empty((0,), dtype=float)
    ii, jj = np.triu_indices(n, k=1)
    diff = np.abs(pts[ii] - pts[jj])
    extent = domain.extent
    diff = np.minimum(diff, extent - diff)
    return np.sqrt(np.sum(diff * diff, axis=1))


def _check_buffer_radius(domain: Domain, R: float) -> float:
    R = float(R)
    if not np.isfinite(R) or R <= 0.0:
        raise InvalidRadiusError(f"Buffer radius must be positive; got R={R}.")
    half = 0.5 * float(np.min(domain.extent))
    if R > half:
        raise InvalidRadiusError(
            f"Buffer radius R={R} exceeds half the smallest domain extent ({half}); "
            "no point can lie R from every boundary."
        )
    return R


def buffer_interior(points: Any, domain: Domain, R: float) -> np.ndarray:
    """Per-point flag: True where the point is at least R from every boundary."""
    domain = Domain.from_lims(domain)
    R = _check_buffer_radius(domain, R)
    pts = as_points(points, domain.dim)
    lo = np.asarray(domain.lower, dtype=float)
    hi = np.asarray(domain.upper, dtype=float)
    return np.all((pts - lo >= R) & (hi - pts >= R), axis=1)


def buffer_survival_mask(points: Any, domain: Domain, R: float) -> np.ndarray:
    """Symmetric (n, n) mask of pairs observable from an interior point.

    Entry (i, j) is True when i != j and at least one of the two points is
    at least R from every boundary. Growing R only removes entries.
    """
    inside = buffer_interior(points, domain, R)
    mask = inside[:, None] | inside[None, :]
    np.fill_diagonal(mask, False)
    return mask


def _log_unit_ball(d: int) -> float:
    return 0.5 * d * math.log(math.pi) - float(gammaln(0.5 * d + 1.0))


def ball_volume(r: Any, d: int) -> Any:
    """Volume of a d-ball of radius r."""
    return math.exp(_log_unit_ball(d)) * np.power(r, d)


def sphere_surface(r: Any, d: int) -> Any:
    """Surface measure of the (d-1)-sphere of radius r (2 points when d = 1)."""
    return d * math.exp(_log_unit_ball(d)) * np.power(r, d - 1)


def ball_intersection_volume(r: Any, radius: float, d: int) -> Any:
    """Volume of the intersection of two d-balls of equal radius with centres r apart."""
    r = np.asarray(r, dtype=float)
    radius = float(radius)
    x = np.clip(1.0 - (r / (2.0 * radius)) ** 2, 0.0, 1.0)
    out = ball_volume(radius, d) * betainc(0.5 * (d + 1), 0.5, x)
    out = np.where(r < 2.0 * radius, out, 0.0)
    if out.shape == ():
        return float(out)
    return out


