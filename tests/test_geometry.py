import math

import numpy as np
import pytest

from palm_fitting import Domain, InvalidDomainError, InvalidRadiusError
from palm_fitting.geometry import (
    ball_intersection_volume,
    ball_volume,
    buffer_interior,
    buffer_survival_mask,
    pairwise_distances,
    periodic_distances,
)


def test_domain_from_lims_accepts_row_and_matrix() -> None:
    d1 = Domain.from_lims([0.0, 2.0])
    assert d1.dim == 1
    assert d1.volume == pytest.approx(2.0)

    d2 = Domain.from_lims(np.array([[0.0, 1.0], [0.0, 3.0]]))
    assert d2.dim == 2
    assert d2.volume == pytest.approx(3.0)
    assert np.allclose(d2.extent, [1.0, 3.0])


@pytest.mark.parametrize("lims", [[1.0, 0.0], [[0.0, 1.0], [2.0, 2.0]], [0.0, np.inf]])
def test_domain_rejects_degenerate_limits(lims) -> None:
    with pytest.raises(InvalidDomainError):
        Domain.from_lims(lims)


def test_periodic_distances_bounded_by_half_diagonal() -> None:
    rng = np.random.default_rng(0)
    domain = Domain.from_lims([[0.0, 1.0], [0.0, 2.0]])
    pts = domain.uniform(60, rng)
    d = periodic_distances(pts, domain)

    assert d.shape == (60 * 59 // 2,)
    half_diag = 0.5 * math.sqrt(1.0**2 + 2.0**2)
    assert np.all(d <= half_diag + 1e-12)
    assert np.all(d <= pairwise_distances(pts) + 1e-12)


def test_periodic_distances_symmetric_under_reordering() -> None:
    rng = np.random.default_rng(1)
    domain = Domain.from_lims([0.0, 1.0])
    pts = domain.uniform(10, rng)
    d = periodic_distances(pts, domain)
    d_rev = periodic_distances(pts[::-1], domain)
    assert np.allclose(np.sort(d), np.sort(d_rev))


def test_periodic_distance_wraps_across_boundary() -> None:
    domain = Domain.from_lims([0.0, 1.0])
    d = periodic_distances(np.array([0.05, 0.95]), domain)
    assert d[0] == pytest.approx(0.1)


def test_buffer_mask_symmetric_and_shrinks_with_R() -> None:
    rng = np.random.default_rng(2)
    domain = Domain.from_lims([[0.0, 1.0], [0.0, 1.0]])
    pts = domain.uniform(80, rng)

    small = buffer_survival_mask(pts, domain, 0.05)
    large = buffer_survival_mask(pts, domain, 0.2)

    assert np.array_equal(small, small.T)
    assert not np.any(np.diag(small))
    # Growing R only removes pairs.
    assert np.all(small | ~large)
    assert large.sum() <= small.sum()


def test_buffer_interior_flags_points_near_edges() -> None:
    domain = Domain.from_lims([0.0, 1.0])
    inside = buffer_interior(np.array([0.05, 0.5, 0.97]), domain, 0.1)
    assert inside.tolist() == [False, True, False]


def test_buffer_radius_larger_than_domain_is_rejected() -> None:
    domain = Domain.from_lims([0.0, 1.0])
    with pytest.raises(InvalidRadiusError):
        buffer_survival_mask(np.array([0.2, 0.5]), domain, 2.0)


def test_as_points_rejects_wrong_dimension() -> None:
    domain = Domain.from_lims([[0.0, 1.0], [0.0, 1.0]])
    with pytest.raises(InvalidDomainError):
        periodic_distances(np.array([0.1, 0.2, 0.3]), domain)


@pytest.mark.parametrize("d", [1, 2, 3])
def test_ball_intersection_limits(d: int) -> None:
    tau = 0.3
    assert ball_intersection_volume(0.0, tau, d) == pytest.approx(ball_volume(tau, d))
    assert ball_intersection_volume(2.0 * tau, tau, d) == pytest.approx(0.0)
    assert ball_intersection_volume(1.0, tau, d) == 0.0


def test_ball_intersection_matches_1d_overlap() -> None:
    # Two intervals of half-width tau with centres r apart overlap by 2 tau - r.
    tau = 0.4
    r = np.array([0.1, 0.3, 0.7])
    assert np.allclose(ball_intersection_volume(r, tau, 1), 2.0 * tau - r)
