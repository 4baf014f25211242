import numpy as np
import pytest

from palm_fitting import ConfigurationError, FitState, OptimizationError, PalmModel, sim_ns
from palm_fitting.backends import AVAILABLE_BACKENDS, get_backend
from palm_fitting.backends.scipy_minimize import ScipyMinimizeBackend


def _quadratic(theta: np.ndarray) -> float:
    return float(np.sum((theta - np.array([1.0, 2.0])) ** 2))


def test_registry_lists_scipy_backends() -> None:
    assert set(AVAILABLE_BACKENDS) == {"scipy.minimize", "scipy.differential_evolution"}
    with pytest.raises(ConfigurationError):
        get_backend("ultranest")


def test_minimize_backend_honours_bounds() -> None:
    r = get_backend("scipy.minimize").fit_one(
        objective=_quadratic,
        p0=np.zeros(2),
        bounds=(np.array([-5.0, -5.0]), np.array([5.0, 1.5])),
        options={},
    )
    assert r.success
    assert np.allclose(r.theta, [1.0, 1.5], atol=1e-5)
    assert r.stats["method"] == "L-BFGS-B"


def test_differential_evolution_needs_finite_bounds() -> None:
    de = get_backend("scipy.differential_evolution")
    with pytest.raises(ConfigurationError):
        de.fit_one(
            objective=_quadratic,
            p0=np.zeros(2),
            bounds=(np.array([0.0, 0.0]), np.array([np.inf, 3.0])),
            options={},
        )
    r = de.fit_one(
        objective=_quadratic,
        p0=np.zeros(2),
        bounds=(np.array([-3.0, -3.0]), np.array([3.0, 3.0])),
        options={"seed": 0},
    )
    assert np.allclose(r.theta, [1.0, 2.0], atol=1e-3)


def test_differential_evolution_on_default_bounds_fails_fast() -> None:
    rng = np.random.default_rng(0)
    pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, [0.0, 5.0], rng=rng)
    model = PalmModel.from_config("ns", "pbc")

    # D and lambda have no upper bound by default.
    with pytest.raises(ConfigurationError):
        model.fit(pattern.points, [0.0, 5.0], 0.5, backend="scipy.differential_evolution")
    assert model.state is FitState.FAILED


def test_auto_records_pipeline() -> None:
    rng = np.random.default_rng(1)
    pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, [0.0, 5.0], rng=rng)
    fit = PalmModel.from_config("ns", "pbc").fit(pattern.points, [0.0, 5.0], 0.5)

    assert fit.stats["pipeline_mode"] == "auto"
    assert fit.stats["pipeline"][0]["backend"] == "scipy.minimize"
    assert 1 <= len(fit.stats["pipeline"]) <= 2
    assert fit.backend == "scipy.minimize"


def test_auto_falls_back_when_lbfgs_meets_undefined_likelihood(monkeypatch) -> None:
    original = ScipyMinimizeBackend.fit_one

    def lbfgs_breaks(self, *, objective, p0, bounds, options):
        if options.get("method", "L-BFGS-B") == "L-BFGS-B":
            raise OptimizationError("Non-finite Palm likelihood.", params={})
        return original(self, objective=objective, p0=p0, bounds=bounds, options=options)

    monkeypatch.setattr(ScipyMinimizeBackend, "fit_one", lbfgs_breaks)
    rng = np.random.default_rng(1)
    pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, [0.0, 5.0], rng=rng)
    fit = PalmModel.from_config("ns", "pbc").fit(pattern.points, [0.0, 5.0], 0.5)

    pipeline = fit.stats["pipeline"]
    assert len(pipeline) == 2
    assert not pipeline[0]["success"]
    assert pipeline[1]["stats"]["method"] == "Nelder-Mead"
    assert fit.success
    assert all(np.isfinite(v) and v > 0.0 for v in fit.coef().values())
