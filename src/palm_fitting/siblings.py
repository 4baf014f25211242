"""Partially known sibling relationships between detected points."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from .errors import ConfigurationError

SIBLING = 1
NONSIBLING = 0
UNKNOWN = -1


@dataclass(frozen=True)
class SiblingInfo:
    """Known sibling (True), known nonsibling (False), unknown (NaN) per pair.

    alpha : probability a sibling pair is identified as a sibling
    beta  : probability a nonsibling pair is identified as a nonsibling
    """

    matrix: np.ndarray
    alpha: float = 1.0
    beta: float = 1.0

    def __post_init__(self):
        m = np.array(self.matrix, dtype=float)
        if m.ndim != 2 or m.shape[0] != m.shape[1]:
            raise ConfigurationError(f"Sibling matrix must be square; got shape {m.shape}.")
        np.fill_diagonal(m, np.nan)
        filled = np.nan_to_num(m, nan=-1.0)
        if not np.array_equal(filled, filled.T):
            raise ConfigurationError("Sibling matrix must be symmetric.")
        known = m[~np.isnan(m)]
        if np.any((known != 0.0) & (known != 1.0)):
            raise ConfigurationError("Sibling matrix entries must be True, False, or NaN.")
        for name in ("alpha", "beta"):
            v = float(getattr(self, name))
            if not 0.0 <= v <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1]; got {v}.")
        object.__setattr__(self, "matrix", m)

    @staticmethod
    def from_mapping(info: Any) -> Optional["SiblingInfo"]:
        """Accept a SiblingInfo, a mapping with sibling_mat/alpha/beta, or None."""
        if info is None or isinstance(info, SiblingInfo):
            return info
        try:
            mat = info["sibling_mat"]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(
                "sibling_list must provide 'sibling_mat' (plus optional 'alpha' and 'beta')."
            ) from e
        return SiblingInfo(
            matrix=mat, alpha=float(info.get("alpha", 1.0)), beta=float(info.get("beta", 1.0))
        )

    @property
    def n_points(self) -> int:
        return int(self.matrix.shape[0])

    def pair_labels(self) -> np.ndarray:
        """Labels for every unordered pair in condensed (i < j) order."""
        ii, jj = np.triu_indices(self.n_points, k=1)
        vals = self.matrix[ii, jj]
        labels = np.full(vals.shape, UNKNOWN, dtype=int)
        labels[vals == 1.0] = SIBLING
        labels[vals == 0.0] = NONSIBLING
        return labels

    def known_fraction(self) -> float:
        labels = self.pair_labels()
        if labels.size == 0:
            return 0.0
        return float(np.mean(labels != UNKNOWN))


def sibling_log_terms(
    log_sibling: np.ndarray,
    log_nonsibling: np.ndarray,
    labels: np.ndarray,
    alpha: float,
    beta: float,
) -> np.ndarray:
    """Per-pair log Palm-intensity contributions given observed labels.

    Takes the logs of the sibling and nonsibling parts and mixes them with
    logaddexp, so a vanishing sibling kernel never underflows the sum.
    """
    log_sibling = np.asarray(log_sibling, dtype=float)
    log_nonsibling = np.asarray(log_nonsibling, dtype=float)
    with np.errstate(divide="ignore"):
        la, l1a = np.log(alpha), np.log1p(-alpha)
        lb, l1b = np.log(beta), np.log1p(-beta)
    out = np.logaddexp(log_sibling, log_nonsibling)
    is_sib = labels == SIBLING
    is_non = labels == NONSIBLING
    out = np.where(is_sib, np.logaddexp(la + log_sibling, l1b + log_nonsibling), out)
    out = np.where(is_non, np.logaddexp(l1a + log_sibling, lb + log_nonsibling), out)
    return out


def siblings_twoplane(planes: Sequence[int]) -> SiblingInfo:
    """Two detections by the same plane cannot be of the same animal."""
    planes = np.asarray(planes)
    same = planes[:, None] == planes[None, :]
    mat = np.where(same, 0.0, np.nan)
    return SiblingInfo(matrix=mat, alpha=1.0, beta=1.0)


def simulate_sibling_info(
    parent_ids: np.ndarray,
    alpha: float,
    beta: float,
    known_fraction: float,
    rng: np.random.Generator,
) -> SiblingInfo:
    """Draw observed labels from true parentage.

    Each pair is labelled with probability ``known_fraction``; labelled pairs
    are classified correctly with probability alpha (siblings) or beta
    (nonsiblings).
    """
    parent_ids = np.asarray(parent_ids)
    n = parent_ids.shape[0]
    truth = parent_ids[:, None] == parent_ids[None, :]
    u_known = rng.random((n, n))
    u_class = rng.random((n, n))
    u_known = np.triu(u_known, 1) + np.triu(u_known, 1).T
    u_class = np.triu(u_class, 1) + np.triu(u_class, 1).T
    said_sibling = np.where(truth, u_class < alpha, u_class >= beta)
    mat = np.where(u_known < known_fraction, said_sibling.astype(float), np.nan)
    return SiblingInfo(matrix=mat, alpha=alpha, beta=beta)
