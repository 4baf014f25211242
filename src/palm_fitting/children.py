"""Distributions for the number of children generated by each parent."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
from scipy.integrate import quad
from scipy.stats import norm

from .errors import ConfigurationError, DomainError

Bounds = Dict[str, Tuple[Optional[float], Optional[float]]]


@dataclass(frozen=True)
class PoissonChildren:
    """Poisson(lambda) children per parent."""

    tag = "poischild"
    names = ("lambda",)

    def check(self, params: Mapping[str, float]) -> None:
        lam = float(params["lambda"])
        if not math.isfinite(lam) or lam < 0.0:
            raise DomainError(f"lambda must be finite and >= 0; got {lam}.")

    def expected_children(self, params: Mapping[str, float]) -> float:
        self.check(params)
        return float(params["lambda"])

    def second_moment_term(self, params: Mapping[str, float]) -> float:
        """E[N(N-1)] = lambda^2."""
        return self.expected_children(params) ** 2

    def sibling_ratio(self, params: Mapping[str, float]) -> float:
        return self.expected_children(params)

    def default_bounds(self) -> Bounds:
        return {"lambda": (0.0, None)}

    def start_from_ratio(self, ratio: float) -> Dict[str, float]:
        return {"lambda": max(float(ratio), 0.5)}

    def sample(self, params: Mapping[str, float], n_parents: int, rng: np.random.Generator) -> np.ndarray:
        return rng.poisson(float(params["lambda"]), size=int(n_parents))


@dataclass(frozen=True)
class BinomialChildren:
    """Binomial(trials, p) children per parent."""

    trials: int

    tag = "binomchild"
    names = ("p",)

    def __post_init__(self):
        if int(self.trials) != self.trials or self.trials < 1:
            raise ConfigurationError(
                f"Binomial child distribution needs a positive integer number of trials; got {self.trials!r}."
            )

    def check(self, params: Mapping[str, float]) -> None:
        p = float(params["p"])
        if not (0.0 <= p <= 1.0):
            raise DomainError(f"p must lie in [0, 1]; got {p}.")

    def expected_children(self, params: Mapping[str, float]) -> float:
        self.check(params)
        return self.trials * float(params["p"])

    def second_moment_term(self, params: Mapping[str, float]) -> float:
        """E[N(N-1)] = n(n-1)p^2."""
        self.check(params)
        p = float(params["p"])
        return self.trials * (self.trials - 1) * p * p

    def sibling_ratio(self, params: Mapping[str, float]) -> float:
        self.check(params)
        return (self.trials - 1) * float(params["p"])

    def default_bounds(self) -> Bounds:
        return {"p": (0.0, 1.0)}

    def start_from_ratio(self, ratio: float) -> Dict[str, float]:
        if self.trials < 2:
            return {"p": 0.5}
        return {"p": float(np.clip(ratio / (self.trials - 1), 0.05, 0.95))}

    def sample(self, params: Mapping[str, float], n_parents: int, rng: np.random.Generator) -> np.ndarray:
        return rng.binomial(self.trials, float(params["p"]), size=int(n_parents))


@dataclass(frozen=True)
class TwoPlaneInfo:
    """Survey geometry for two-plane aerial surveys.

    w   : half-width of the detection zone
    b   : half-width of the survey area
    l   : lag between the two planes passing the same point
    tau : mean dive-cycle duration (same time unit as ``l``)
    """

    w: float
    b: float
    l: float
    tau: float

    @staticmethod
    def from_mapping(info: Optional[Mapping[str, float]]) -> "TwoPlaneInfo":
        if info is None:
            raise ConfigurationError(
                "child_info is required for child_dist='twoplane'; supply w, b, l and tau."
            )
        if isinstance(info, TwoPlaneInfo):
            return info
        missing = [k for k in ("w", "b", "l", "tau") if k not in info]
        if missing:
            raise ConfigurationError(
                "child_info for 'twoplane' is missing: " + ", ".join(missing)
            )
        unknown = sorted(set(info) - {"w", "b", "l", "tau"})
        if unknown:
            raise ConfigurationError(
                "Unknown child_info entries for 'twoplane': " + ", ".join(unknown)
            )
        return TwoPlaneInfo(
            w=float(info["w"]), b=float(info["b"]), l=float(info["l"]), tau=float(info["tau"])
        )

    def check(self) -> None:
        if not (self.w > 0.0 and self.b >= self.w):
            raise DomainError(f"Two-plane survey needs 0 < w <= b; got w={self.w}, b={self.b}.")
        if not (self.l > 0.0 and self.tau > 0.0):
            raise DomainError(
                f"Two-plane lag and dive-cycle duration must be positive; got l={self.l}, tau={self.tau}."
            )


@dataclass(frozen=True)
class TwoPlaneChildren:
    """Detections of one animal by two planes (0, 1 or 2 children).

    The animal alternates between surface and dive phases as a two-state
    Markov process with mean surface time ``kappa`` and mean cycle ``tau``.
    At each pass its across-track position is displaced N(0, sigma^2) from
    where it started, uniform on [-b, b]; it is detected iff surfaced and
    within the detection half-width ``w``.
    """

    info: TwoPlaneInfo

    tag = "twoplanechild"
    names = ("kappa",)

    def __post_init__(self):
        self.info.check()

    def check(self, params: Mapping[str, float]) -> None:
        kappa = float(params["kappa"])
        if not (0.0 < kappa < self.info.tau):
            raise DomainError(
                f"kappa must lie strictly between 0 and the dive-cycle duration {self.info.tau}; got {kappa}."
            )
        sigma = float(params["sigma"])
        if not (math.isfinite(sigma) and sigma > 0.0):
            raise DomainError(f"sigma must be positive for two-plane detection; got {sigma}.")

    def p_up(self, params: Mapping[str, float]) -> float:
        return float(params["kappa"]) / self.info.tau

    def p_up_up(self, params: Mapping[str, float]) -> float:
        """P(surfaced at the second pass | surfaced at the first)."""
        kappa = float(params["kappa"])
        pu = kappa / self.info.tau
        rate = 1.0 / kappa + 1.0 / (self.info.tau - kappa)
        return pu + (1.0 - pu) * math.exp(-self.info.l * rate)

    def p_down_up(self, params: Mapping[str, float]) -> float:
        """P(surfaced at the second pass | diving at the first)."""
        kappa = float(params["kappa"])
        pu = kappa / self.info.tau
        rate = 1.0 / kappa + 1.0 / (self.info.tau - kappa)
        return pu * (1.0 - math.exp(-self.info.l * rate))

    def _in_strip(self, y0: float, sigma: float) -> float:
        w = self.info.w
        return float(norm.cdf((w - y0) / sigma) - norm.cdf((-w - y0) / sigma))

    def strip_probabilities(self, params: Mapping[str, float]) -> Tuple[float, float]:
        """(q1, q2): P(in strip at one pass), P(in strip at both passes)."""
        sigma = float(params["sigma"])
        b = self.info.b
        q1, _ = quad(lambda y: self._in_strip(y, sigma), -b, b)
        q2, _ = quad(lambda y: self._in_strip(y, sigma) ** 2, -b, b)
        return q1 / (2.0 * b), q2 / (2.0 * b)

    def expected_children(self, params: Mapping[str, float]) -> float:
        self.check(params)
        q1, _ = self.strip_probabilities(params)
        return 2.0 * self.p_up(params) * q1

    def second_moment_term(self, params: Mapping[str, float]) -> float:
        """E[N(N-1)] = 2 P(detected by both planes)."""
        self.check(params)
        _, q2 = self.strip_probabilities(params)
        return 2.0 * self.p_up(params) * self.p_up_up(params) * q2

    def sibling_ratio(self, params: Mapping[str, float]) -> float:
        self.check(params)
        q1, q2 = self.strip_probabilities(params)
        return self.p_up_up(params) * q2 / q1

    def default_bounds(self) -> Bounds:
        # Open interval: both ends make the surfacing model degenerate.
        eps = 1e-6 * self.info.tau
        return {"kappa": (eps, self.info.tau - eps)}

    def start_from_ratio(self, ratio: float) -> Dict[str, float]:
        return {"kappa": 0.5 * self.info.tau}


ChildModel = PoissonChildren | BinomialChildren | TwoPlaneChildren
