"""Generate synthetic point patterns from a fully specified process family.

Edge conventions for points generated near the domain limits:

- ``"wrap"``: parents live in the domain and children outside it are
  wrapped back toroidally (matches periodic edge correction);
- ``"trim"``: parents live in the domain grown by the dispersion reach
  (4 sigma, or tau) and children falling outside the domain are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np
from scipy.spatial.distance import cdist

from .children import TwoPlaneChildren
from .config import FamilyConfig, build_family, parse_family
from .errors import ConfigurationError
from .families import NeymanScott, ProcessFamily, VoidProcess, check_names
from .geometry import Domain
from .siblings import SiblingInfo, siblings_twoplane

logger = logging.getLogger(__name__)

EDGE_CONVENTIONS = ("wrap", "trim")


@dataclass(frozen=True)
class SimulatedPattern:
    """Simulated points plus whatever ground truth the family provides."""

    points: np.ndarray
    parent_ids: Optional[np.ndarray] = None
    planes: Optional[np.ndarray] = None
    sibling_info: Optional[SiblingInfo] = None
    n_parents: int = 0
    n_baseline: Optional[int] = None

    @property
    def n_points(self) -> int:
        return int(self.points.shape[0])

    def sibling_matrix(self) -> np.ndarray:
        """True sibling relationships (diagonal False)."""
        if self.parent_ids is None:
            raise ValueError("This pattern has no parent structure.")
        mat = self.parent_ids[:, None] == self.parent_ids[None, :]
        np.fill_diagonal(mat, False)
        return mat


def _check_edge(edge: str) -> str:
    if edge not in EDGE_CONVENTIONS:
        raise ConfigurationError(
            f"Simulation edge convention {edge!r} not recognised; use 'wrap' or 'trim'."
        )
    return edge


def _simulate_ns(
    family: NeymanScott, params: Mapping[str, float], domain: Domain, edge: str, rng: np.random.Generator
) -> SimulatedPattern:
    region = domain if edge == "wrap" else domain.expand(family.dispersion.reach(params))
    n_parents = int(rng.poisson(float(params["D"]) * region.volume))
    parents = region.uniform(n_parents, rng)
    counts = family.children.sample(params, n_parents, rng)
    parent_ids = np.repeat(np.arange(n_parents), counts)
    offsets = family.dispersion.sample(parent_ids.size, domain.dim, params, rng)
    points = parents[parent_ids] + offsets
    if edge == "wrap":
        points = domain.wrap(points)
    else:
        keep = domain.contains(points)
        points, parent_ids = points[keep], parent_ids[keep]
    return SimulatedPattern(points=points, parent_ids=parent_ids, n_parents=n_parents)


def _simulate_twoplane(
    family: NeymanScott, params: Mapping[str, float], domain: Domain, edge: str, rng: np.random.Generator
) -> SimulatedPattern:
    children: TwoPlaneChildren = family.children  # type: ignore[assignment]
    info = children.info
    sigma = float(params["sigma"])
    region = domain if edge == "wrap" else domain.expand(family.dispersion.reach(params))
    n_animals = int(rng.poisson(float(params["D"]) * region.volume))
    along = region.uniform(n_animals, rng)[:, 0]
    across = rng.uniform(-info.b, info.b, size=n_animals)

    up1 = rng.random(n_animals) < children.p_up(params)
    p_second = np.where(up1, children.p_up_up(params), children.p_down_up(params))
    up2 = rng.random(n_animals) < p_second

    xs, ids, planes = [], [], []
    for plane, up in ((1, up1), (2, up2)):
        x = along + rng.normal(0.0, sigma, size=n_animals)
        y = across + rng.normal(0.0, sigma, size=n_animals)
        seen = up & (np.abs(y) < info.w)
        xs.append(x[seen])
        ids.append(np.flatnonzero(seen))
        planes.append(np.full(int(np.sum(seen)), plane))
    points = np.concatenate(xs)[:, None]
    parent_ids = np.concatenate(ids)
    plane_ids = np.concatenate(planes)
    if edge == "wrap":
        points = domain.wrap(points)
    else:
        keep = domain.contains(points)
        points, parent_ids, plane_ids = points[keep], parent_ids[keep], plane_ids[keep]
    return SimulatedPattern(
        points=points,
        parent_ids=parent_ids,
        planes=plane_ids,
        sibling_info=siblings_twoplane(plane_ids),
        n_parents=n_animals,
    )


def _simulate_void(
    family: VoidProcess, params: Mapping[str, float], domain: Domain, edge: str, rng: np.random.Generator
) -> SimulatedPattern:
    tau = float(params["tau"])
    n_baseline = int(rng.poisson(float(params["Dc"]) * domain.volume))
    baseline = domain.uniform(n_baseline, rng)
    region = domain if edge == "wrap" else domain.expand(tau)
    n_parents = int(rng.poisson(float(params["Dp"]) * region.volume))
    parents = region.uniform(n_parents, rng)
    if n_parents == 0 or n_baseline == 0:
        survivors = baseline
    elif edge == "wrap":
        diff = np.abs(baseline[:, None, :] - parents[None, :, :])
        diff = np.minimum(diff, domain.extent - diff)
        dist = np.sqrt(np.sum(diff * diff, axis=2))
        survivors = baseline[np.all(dist > tau, axis=1)]
    else:
        survivors = baseline[np.all(cdist(baseline, parents) > tau, axis=1)]
    return SimulatedPattern(points=survivors, n_parents=n_parents, n_baseline=n_baseline)


def simulate_family(
    family: ProcessFamily,
    params: Mapping[str, float],
    domain: Any,
    *,
    edge: str = "wrap",
    rng: Optional[np.random.Generator] = None,
) -> SimulatedPattern:
    """Simulate one pattern from an already composed family."""
    domain = Domain.from_lims(domain)
    _check_edge(edge)
    check_names(family.names, params)
    params = {k: float(v) for k, v in params.items()}
    family.check(params)
    if rng is None:
        rng = np.random.default_rng()

    if isinstance(family, NeymanScott):
        if isinstance(family.children, TwoPlaneChildren):
            out = _simulate_twoplane(family, params, domain, edge, rng)
        else:
            out = _simulate_ns(family, params, domain, edge, rng)
    elif isinstance(family, VoidProcess):
        out = _simulate_void(family, params, domain, edge, rng)
    else:
        raise ConfigurationError(f"Cannot simulate from {family!r}.")
    logger.debug(
        "Simulated %d points from %d parents (%s).", out.n_points, out.n_parents, family.tag
    )
    return out


def simulate_process(
    params: Mapping[str, float],
    domain: Any,
    family_config: FamilyConfig | str = "ns",
    *,
    edge: str = "wrap",
    rng: Optional[np.random.Generator] = None,
) -> SimulatedPattern:
    """Simulate a point pattern for ``family_config`` with parameters ``params``."""
    config = parse_family(family_config)
    domain = Domain.from_lims(domain)
    family = build_family(config, domain.dim)
    return simulate_family(family, params, domain, edge=edge, rng=rng)
