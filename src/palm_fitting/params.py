from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import uncertainties

__all__ = [
    "ParameterSpec",
    "DerivedSpec",
    "ParamView",
    "ParamsView",
]


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    fixed: bool = False
    fixed_value: Optional[float] = None
    bounds: Optional[Tuple[Optional[float], Optional[float]]] = None
    # Strong guess: overrides the family's starting heuristic
    guess: Optional[float] = None


@dataclass(frozen=True)
class DerivedSpec:
    """Post-fit derived parameter.

    Computed from the estimates (and from each bootstrap resample) only.
    """

    name: str
    func: Any  # Callable[[Mapping[str, float]], float]
    doc: str = ""


@dataclass(frozen=True)
class ParamView:
    """A single parameter view."""

    name: str
    value: float
    stderr: Optional[float] = None
    fixed: bool = False
    bounds: Optional[Tuple[Optional[float], Optional[float]]] = None
    derived: bool = False

    @property
    def u(self):
        """Return an uncertainties ufloat if a bootstrap stderr is available."""
        if self.stderr is None:
            raise ValueError(
                f"No stderr available for parameter {self.name!r}; run a bootstrap first."
            )
        return uncertainties.ufloat(self.value, self.stderr, tag=self.name)

    def __getitem__(self, key: str) -> Any:
        if key == "value":
            return self.value
        if key in ("error", "stderr"):
            return self.stderr
        if key == "fixed":
            return self.fixed
        if key == "bounds":
            return self.bounds
        if key == "derived":
            return self.derived
        raise KeyError(key)


class ParamsView(Mapping[str, ParamView]):
    """Mapping name -> ParamView, also indexable by position."""

    def __init__(self, items: Mapping[str, ParamView]):
        self._items = dict(items)
        self._names = tuple(self._items.keys())

    def __getitem__(self, key):  # type: ignore[override]
        if isinstance(key, str):
            return self._items[key]
        if isinstance(key, int):
            return self._items[self._names[key]]
        raise KeyError(key)

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def items(self):
        return self._items.items()

    def as_dict(self) -> Dict[str, float]:
        """Return name->value (extracting .value)."""
        return {k: v.value for k, v in self._items.items()}
