import numpy as np
import pytest

from palm_fitting import (
    ConfigurationError,
    DomainError,
    Domain,
    VoidConfig,
    ns_config,
    sim_ns,
    sim_void,
    simulate_process,
)


def test_void_deletion_never_adds_points() -> None:
    rng = np.random.default_rng(0)
    lims = [[0.0, 1.0], [0.0, 1.0]]
    for edge in ("wrap", "trim"):
        pattern = sim_void({"Dc": 50.0, "Dp": 5.0, "tau": 0.05}, lims, edge=edge, rng=rng)
        assert pattern.n_points <= pattern.n_baseline
        assert np.all(Domain.from_lims(lims).contains(pattern.points))


def test_void_survivors_are_clear_of_parents() -> None:
    # With Dp large nearly everything is deleted.
    rng = np.random.default_rng(1)
    pattern = sim_void({"Dc": 200.0, "Dp": 2000.0, "tau": 0.1}, [[0.0, 1.0], [0.0, 1.0]], rng=rng)
    assert pattern.n_points < 0.05 * pattern.n_baseline


@pytest.mark.parametrize("edge", ["wrap", "trim"])
def test_ns_points_stay_in_domain(edge: str) -> None:
    rng = np.random.default_rng(2)
    lims = [[0.0, 1.0], [0.0, 2.0]]
    pattern = sim_ns({"D": 20.0, "lambda": 4.0, "sigma": 0.05}, lims, edge=edge, rng=rng)

    assert pattern.points.shape[1] == 2
    assert np.all(Domain.from_lims(lims).contains(pattern.points))
    assert pattern.parent_ids.shape == (pattern.n_points,)
    sib = pattern.sibling_matrix()
    assert np.array_equal(sib, sib.T)
    assert not np.any(np.diag(sib))


def test_binomial_clusters_never_exceed_trials() -> None:
    rng = np.random.default_rng(3)
    pattern = sim_ns(
        {"D": 50.0, "p": 0.7, "tau": 0.02}, [0.0, 1.0], disp="uniform", child_dist="binom3", rng=rng
    )
    _, counts = np.unique(pattern.parent_ids, return_counts=True)
    assert counts.max() <= 3


def test_matern_children_lie_within_tau_of_parent_cluster() -> None:
    rng = np.random.default_rng(4)
    tau = 0.01
    pattern = sim_ns(
        {"D": 5.0, "lambda": 6.0, "tau": tau}, [0.0, 10.0], disp="uniform", edge="trim", rng=rng
    )
    for pid in np.unique(pattern.parent_ids):
        x = pattern.points[pattern.parent_ids == pid, 0]
        assert x.max() - x.min() <= 2.0 * tau + 1e-12


def test_twoplane_simulation_records_planes() -> None:
    rng = np.random.default_rng(5)
    config = ns_config(child_dist="twoplane", child_info={"w": 0.175, "b": 0.5, "l": 20.0, "tau": 110.0})
    pattern = simulate_process({"D": 30.0, "kappa": 40.0, "sigma": 0.05}, [0.0, 50.0], config, rng=rng)

    assert set(np.unique(pattern.planes)) <= {1, 2}
    _, counts = np.unique(pattern.parent_ids, return_counts=True)
    assert counts.max() <= 2
    # Same-plane pairs are known nonsiblings.
    labels = pattern.sibling_info.pair_labels()
    assert labels.size == pattern.n_points * (pattern.n_points - 1) // 2
    assert np.all(labels <= 0)


def test_unknown_edge_convention() -> None:
    with pytest.raises(ConfigurationError):
        sim_ns({"D": 1.0, "lambda": 1.0, "sigma": 0.1}, [0.0, 1.0], edge="mirror")


def test_simulation_checks_parameters() -> None:
    with pytest.raises(ConfigurationError):
        simulate_process({"Dc": 1.0, "Dp": 1.0}, [0.0, 1.0], VoidConfig())
    with pytest.raises(DomainError):
        simulate_process({"Dc": 1.0, "Dp": -1.0, "tau": 0.1}, [0.0, 1.0], VoidConfig())


def test_simulation_is_reproducible_with_seeded_rng() -> None:
    params = {"D": 10.0, "lambda": 5.0, "sigma": 0.025}
    a = sim_ns(params, [0.0, 1.0], rng=np.random.default_rng(42))
    b = sim_ns(params, [0.0, 1.0], rng=np.random.default_rng(42))
    assert np.array_equal(a.points, b.points)
