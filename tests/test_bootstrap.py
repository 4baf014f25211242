import numpy as np
import pytest

from palm_fitting import OptimizationError, PalmModel, bootstrap, boot_palm, fit_ns, fit_void, sim_ns, sim_void
from palm_fitting.siblings import simulate_sibling_info


@pytest.fixture(scope="module")
def thomas_fit():
    rng = np.random.default_rng(0)
    pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, [0.0, 5.0], rng=rng)
    return fit_ns(pattern.points, [0.0, 5.0], 0.5)


def test_bootstrap_length_matches_N(thomas_fit) -> None:
    fit = bootstrap(thomas_fit, 4, rng=np.random.default_rng(1))

    boot = fit.bootstrap
    assert boot is not None
    assert boot.n_samples + boot.n_failed == 4
    assert boot.n_samples <= 4
    assert boot.samples.shape[1] == len(fit.params)
    # The original fit is untouched.
    assert thomas_fit.bootstrap is None
    assert fit.coef() == thomas_fit.coef()


def test_bootstrap_sets_stderr_and_intervals(thomas_fit) -> None:
    fit = thomas_fit.boot(5, rng=np.random.default_rng(2))
    assert fit.bootstrap.n_failed == 0
    assert fit.bootstrap.n_samples == 5

    sigma = fit["sigma"]
    assert sigma.stderr is not None and sigma.stderr >= 0.0
    assert sigma.u.nominal_value == sigma.value

    lo, hi = fit.confint(0.9)["sigma"]
    assert lo <= hi
    assert "±" in fit.summary()


def test_bootstrap_refits_all_succeed(thomas_fit) -> None:
    fit = thomas_fit.boot(20, rng=np.random.default_rng(0))

    assert fit.bootstrap.n_failed == 0
    assert fit.bootstrap.n_samples == 20
    assert np.all(np.isfinite(fit.bootstrap.samples))


def test_bootstrap_appends_to_existing_samples(thomas_fit) -> None:
    rng = np.random.default_rng(3)
    once = thomas_fit.boot(2, rng=rng)
    twice = boot_palm(once, 2, prog=False, rng=rng)

    b = twice.bootstrap
    assert b.n_samples + b.n_failed == 4
    assert np.array_equal(b.samples[: once.bootstrap.n_samples], once.bootstrap.samples)


def test_bootstrap_counts_failed_refits(thomas_fit, monkeypatch) -> None:
    def failing_fit(self, *args, **kwargs):
        raise OptimizationError("no convergence", params={})

    monkeypatch.setattr(PalmModel, "fit", failing_fit)
    fit = thomas_fit.boot(3, rng=np.random.default_rng(4))

    assert fit.bootstrap.n_samples == 0
    assert fit.bootstrap.n_failed == 3
    assert fit["sigma"].stderr is None
    with pytest.raises(ValueError):
        fit.confint()


def test_paramview_without_bootstrap_has_no_ufloat(thomas_fit) -> None:
    with pytest.raises(ValueError):
        thomas_fit["D"].u


def test_bootstrap_resimulates_sibling_labels() -> None:
    rng = np.random.default_rng(5)
    pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, [0.0, 5.0], rng=rng)
    info = simulate_sibling_info(pattern.parent_ids, 0.9, 0.95, 0.3, rng)
    fit = fit_ns(pattern.points, [0.0, 5.0], 0.5, sibling_list=info)

    booted = fit.boot(2, rng=rng)

    assert booted.bootstrap.n_samples + booted.bootstrap.n_failed == 2


def test_void_bootstrap_with_buffer() -> None:
    rng = np.random.default_rng(6)
    lims = [[0.0, 1.0], [0.0, 1.0]]
    pattern = sim_void({"Dc": 1500.0, "Dp": 20.0, "tau": 0.08}, lims, edge="trim", rng=rng)
    fit = fit_void(pattern.points, lims, 0.2, edge_correction="buffer")

    booted = fit.boot(2, rng=rng)

    assert booted.bootstrap.names == ("Dc", "Dp", "tau")
    assert booted.bootstrap.n_samples + booted.bootstrap.n_failed == 2


def test_negative_N_is_rejected(thomas_fit) -> None:
    with pytest.raises(ValueError):
        thomas_fit.boot(-1)
