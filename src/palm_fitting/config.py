"""Configuration: parse user mode strings into tagged variants and compose them.

Mode strings ("pois", "binom5", "twoplane", "gaussian", "pbc", ...) are
parsed here and never travel further. The tagged variants are then
composed into one concrete process family.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .children import BinomialChildren, PoissonChildren, TwoPlaneChildren, TwoPlaneInfo
from .dispersion import GaussianDispersion, UniformDispersion
from .errors import ConfigurationError
from .families import NeymanScott, ProcessFamily, VoidProcess
from .siblings import SiblingInfo

logger = logging.getLogger(__name__)

Bounds = Dict[str, Tuple[Optional[float], Optional[float]]]

DISPERSIONS = ("gaussian", "uniform")


# ---- child distributions ----------------------------------------------------


@dataclass(frozen=True)
class Poisson:
    pass


@dataclass(frozen=True)
class Binomial:
    trials: int


@dataclass(frozen=True)
class TwoPlane:
    info: TwoPlaneInfo


ChildDist = Union[Poisson, Binomial, TwoPlane]


# ---- families ---------------------------------------------------------------


@dataclass(frozen=True)
class NeymanScottConfig:
    child: ChildDist = field(default_factory=Poisson)
    disp: str = "gaussian"
    siblings: Optional[SiblingInfo] = None

    def __post_init__(self):
        if self.disp not in DISPERSIONS:
            raise ConfigurationError(
                f"Dispersion type {self.disp!r} not recognised; use either 'gaussian' or 'uniform'."
            )
        if isinstance(self.child, TwoPlane) and self.disp != "gaussian":
            raise ConfigurationError(
                "child_dist='twoplane' models animal movement as Gaussian; use disp='gaussian'."
            )


@dataclass(frozen=True)
class VoidConfig:
    pass


FamilyConfig = Union[NeymanScottConfig, VoidConfig]


# ---- edge corrections -------------------------------------------------------


@dataclass(frozen=True)
class Periodic:
    tag = "pbc"


@dataclass(frozen=True)
class Buffer:
    """Buffer-zone correction; ``radius`` defaults to the truncation distance R."""

    radius: Optional[float] = None

    tag = "buffer"


EdgeCorrection = Union[Periodic, Buffer]


# ---- parsing ------------------------------------------------------------------


_BINOM = re.compile(r"^binom(\d+)$")


def parse_child_dist(child_dist: Any, child_info: Optional[Mapping[str, float]] = None) -> ChildDist:
    """Parse 'pois', 'binom<n>' or 'twoplane' into a structured variant."""
    if isinstance(child_dist, (Poisson, Binomial, TwoPlane)):
        return child_dist
    if not isinstance(child_dist, str):
        raise ConfigurationError(f"child_dist must be a string; got {child_dist!r}.")
    if child_dist == "pois":
        return Poisson()
    m = _BINOM.match(child_dist)
    if m is not None:
        trials = int(m.group(1))
        if trials < 1:
            raise ConfigurationError(f"{child_dist!r} needs at least one trial.")
        return Binomial(trials=trials)
    if child_dist == "twoplane":
        return TwoPlane(info=TwoPlaneInfo.from_mapping(child_info))
    raise ConfigurationError(
        f"child_dist {child_dist!r} not recognised; use 'pois', 'binom<n>' (e.g. 'binom5') or 'twoplane'."
    )


def parse_edge_correction(edge_correction: Any) -> EdgeCorrection:
    if isinstance(edge_correction, (Periodic, Buffer)):
        return edge_correction
    if edge_correction == "pbc":
        return Periodic()
    if edge_correction == "buffer":
        return Buffer()
    raise ConfigurationError(
        f"Edge correction method {edge_correction!r} not recognised; use either 'pbc' or 'buffer'."
    )


def ns_config(
    disp: str = "gaussian",
    child_dist: Any = "pois",
    child_info: Optional[Mapping[str, float]] = None,
    sibling_list: Any = None,
) -> NeymanScottConfig:
    """Build a Neyman-Scott configuration from the user-facing mode strings."""
    return NeymanScottConfig(
        child=parse_child_dist(child_dist, child_info),
        disp=disp,
        siblings=SiblingInfo.from_mapping(sibling_list),
    )


def parse_family(family: Any) -> FamilyConfig:
    if isinstance(family, (NeymanScottConfig, VoidConfig)):
        return family
    if family == "ns":
        return NeymanScottConfig()
    if family == "void":
        return VoidConfig()
    raise ConfigurationError(f"Process family {family!r} not recognised; use 'ns' or 'void'.")


# ---- composition ------------------------------------------------------------


def _child_model(child: ChildDist):
    if isinstance(child, Poisson):
        return PoissonChildren()
    if isinstance(child, Binomial):
        return BinomialChildren(trials=child.trials)
    if isinstance(child, TwoPlane):
        return TwoPlaneChildren(info=child.info)
    raise ConfigurationError(f"Unknown child distribution {child!r}.")


def _dispersion(disp: str):
    if disp == "gaussian":
        return GaussianDispersion()
    if disp == "uniform":
        return UniformDispersion()
    raise ConfigurationError(f"Unknown dispersion {disp!r}.")


def build_family(config: FamilyConfig, dim: int) -> ProcessFamily:
    """Compose the concrete process family named by ``config``."""
    if isinstance(config, NeymanScottConfig):
        return NeymanScott(
            children=_child_model(config.child), dispersion=_dispersion(config.disp), dim=int(dim)
        )
    if isinstance(config, VoidConfig):
        return VoidProcess(dim=int(dim))
    raise ConfigurationError(f"Unknown process family configuration {config!r}.")


def component_tags(config: FamilyConfig, edge: Optional[EdgeCorrection] = None) -> Tuple[str, ...]:
    """Ordered tags of the components a configuration composes.

    ``edge=None`` means simulation only (no fitting components).
    """
    tags = []
    if edge is not None:
        tags.append("fit")
        tags.append(edge.tag)
    if isinstance(config, NeymanScottConfig):
        tags.append("ns")
        if config.siblings is not None:
            tags.append("sibling")
        tags.append(_child_model(config.child).tag)
        tags.append(_dispersion(config.disp).tag)
    elif isinstance(config, VoidConfig):
        tags.extend(("void", "totaldeletion"))
    else:
        raise ConfigurationError(f"Unknown process family configuration {config!r}.")
    logger.debug("Composed components: %s", tags)
    return tuple(tags)


def default_bounds(config: FamilyConfig, R: float) -> Bounds:
    """Default (lower, upper) bounds for every parameter of ``config``."""
    out: Bounds = dict(build_family(config, 1).default_bounds(R))
    if isinstance(config, NeymanScottConfig) and isinstance(config.child, TwoPlane):
        # Movement beyond a third of the survey half-width breaks the strip model.
        lo, hi = out["sigma"]
        out["sigma"] = (lo, min(hi, config.child.info.b / 3.0))
    return out
