"""palm_fitting public API."""
from .api import (
    bootstrap,
    boot_palm,
    fit_ns,
    fit_process,
    fit_twoplane,
    fit_void,
    sim_ns,
    sim_void,
)
from .config import (
    Binomial,
    Buffer,
    NeymanScottConfig,
    Periodic,
    Poisson,
    TwoPlane,
    VoidConfig,
    ns_config,
)
from .errors import (
    ConfigurationError,
    DomainError,
    EmptyPairSetError,
    InvalidDomainError,
    InvalidParameterError,
    InvalidRadiusError,
    OptimizationError,
    PalmError,
)
from .geometry import Domain
from .model import FitState, PalmModel
from .results import BootstrapResult, FittedModel
from .siblings import SiblingInfo, siblings_twoplane
from .simulate import SimulatedPattern, simulate_process

__all__ = [
    "fit_process",
    "simulate_process",
    "bootstrap",
    "fit_ns",
    "sim_ns",
    "fit_void",
    "sim_void",
    "fit_twoplane",
    "boot_palm",
    "PalmModel",
    "FitState",
    "FittedModel",
    "BootstrapResult",
    "SimulatedPattern",
    "Domain",
    "SiblingInfo",
    "siblings_twoplane",
    "NeymanScottConfig",
    "VoidConfig",
    "Poisson",
    "Binomial",
    "TwoPlane",
    "Periodic",
    "Buffer",
    "ns_config",
    "PalmError",
    "ConfigurationError",
    "InvalidDomainError",
    "InvalidRadiusError",
    "DomainError",
    "InvalidParameterError",
    "EmptyPairSetError",
    "OptimizationError",
]
