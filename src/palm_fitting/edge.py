"""Edge corrections: which point pairs enter the Palm likelihood, and how often.

The log Palm likelihood (Tanaka, Ogata and Stoyan, 2008) is

    l(theta) = sum over ordered pairs (i, j), |x_i - x_j| <= R, of log lambda_0(d_ij)
               - n_origin * integral of lambda_0 over the R-ball

where i ranges over the points whose R-neighbourhood is fully observed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from warnings import warn

import numpy as np

from .errors import ConfigurationError, EmptyPairSetError, InvalidDomainError, InvalidRadiusError
from .families import ProcessFamily
from .geometry import (
    Domain,
    as_points,
    ball_volume,
    buffer_interior,
    buffer_survival_mask,
    pairwise_distances,
    periodic_distances,
)
from .siblings import SiblingInfo, sibling_log_terms


@dataclass(frozen=True)
class Contrasts:
    """Retained pairs: distances, ordered-pair multiplicity, sibling labels."""

    distances: np.ndarray
    weights: np.ndarray
    n_origin: int
    n_points: int
    labels: Optional[np.ndarray] = None

    @property
    def pair_rate(self) -> float:
        """Mean number of neighbours within R per origin point."""
        return float(np.sum(self.weights)) / self.n_origin


def _check_R(R: float) -> float:
    R = float(R)
    if not math.isfinite(R) or R <= 0.0:
        raise InvalidRadiusError(f"Truncation distance must be positive; got R={R}.")
    return R


def _labels_for(siblings: Optional[SiblingInfo], n: int, keep: np.ndarray) -> Optional[np.ndarray]:
    if siblings is None:
        return None
    if siblings.n_points != n:
        raise ConfigurationError(
            f"Sibling matrix covers {siblings.n_points} points but the pattern has {n}."
        )
    return siblings.pair_labels()[keep]


class PeriodicCorrection:
    """Periodic boundary conditions: the domain is treated as a torus."""

    tag = "pbc"

    def contrasts(
        self, points: Any, domain: Domain, R: float, siblings: Optional[SiblingInfo] = None
    ) -> Contrasts:
        R = _check_R(R)
        pts = as_points(points, domain.dim)
        n = pts.shape[0]
        half = 0.5 * float(np.min(domain.extent))
        if R > half:
            warn(
                f"R={R} exceeds half the smallest domain extent ({half}); "
                "wrapped distances are truncated at that extent.",
                UserWarning,
            )
        d = periodic_distances(pts, domain)
        keep = d <= R
        if not np.any(keep):
            raise EmptyPairSetError(f"No pair of points lies within R={R} under periodic distances.")
        return Contrasts(
            distances=d[keep],
            weights=np.full(int(np.sum(keep)), 2.0),
            n_origin=n,
            n_points=n,
            labels=_labels_for(siblings, n, keep),
        )


class BufferCorrection:
    """Buffer-zone correction: only points R from every boundary act as origins."""

    tag = "buffer"

    def __init__(self, radius: Optional[float] = None):
        self.radius = radius

    def contrasts(
        self, points: Any, domain: Domain, R: float, siblings: Optional[SiblingInfo] = None
    ) -> Contrasts:
        R = _check_R(R)
        radius = R if self.radius is None else float(self.radius)
        if radius < R:
            raise InvalidRadiusError(
                f"Buffer radius {radius} is smaller than the truncation distance R={R}."
            )
        pts = as_points(points, domain.dim)
        n = pts.shape[0]
        if not np.all(domain.contains(pts)):
            raise InvalidDomainError("Buffer correction needs every point inside the domain limits.")
        mask = buffer_survival_mask(pts, domain, radius)
        inside = buffer_interior(pts, domain, radius)
        ii, jj = np.triu_indices(n, k=1)
        d = pairwise_distances(pts)
        keep = mask[ii, jj] & (d <= R)
        n_origin = int(np.sum(inside))
        if n_origin == 0 or not np.any(keep):
            raise EmptyPairSetError(
                f"No point pair within R={R} survives the buffer of width {radius}."
            )
        weights = inside[ii[keep]].astype(float) + inside[jj[keep]].astype(float)
        return Contrasts(
            distances=d[keep],
            weights=weights,
            n_origin=n_origin,
            n_points=n,
            labels=_labels_for(siblings, n, keep),
        )


class PalmObjective:
    """Negative log Palm likelihood of ``family`` on fixed contrasts."""

    def __init__(
        self,
        family: ProcessFamily,
        contrasts: Contrasts,
        R: float,
        volume: float,
        siblings: Optional[SiblingInfo] = None,
    ):
        self.family = family
        self.contrasts = contrasts
        self.R = float(R)
        self.volume = float(volume)
        self.siblings = siblings

    def loglik(self, params: Mapping[str, float]) -> float:
        c = self.contrasts
        if self.siblings is None:
            logs = self.family.log_palm_intensity(c.distances, params)
        else:
            log_sib, log_non = self.family.log_palm_components(c.distances, params)
            logs = sibling_log_terms(
                log_sib, log_non, c.labels, self.siblings.alpha, self.siblings.beta
            )
        total = float(np.sum(c.weights * logs))
        return total - c.n_origin * self.family.palm_integral(self.R, params)

    def __call__(self, params: Mapping[str, float]) -> float:
        return -self.loglik(params)

    @property
    def null_loglik(self) -> float:
        """Log Palm likelihood of a homogeneous Poisson pattern with intensity n/|W|."""
        c = self.contrasts
        lam = c.n_points / self.volume
        return float(np.sum(c.weights)) * math.log(lam) - c.n_origin * lam * ball_volume(
            self.R, self.family.dim
        )
