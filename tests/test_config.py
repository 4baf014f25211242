import numpy as np
import pytest

from palm_fitting import (
    Binomial,
    Buffer,
    ConfigurationError,
    NeymanScottConfig,
    PalmModel,
    Periodic,
    Poisson,
    SiblingInfo,
    TwoPlane,
    VoidConfig,
    fit_ns,
    ns_config,
)
from palm_fitting.config import build_family, component_tags, default_bounds, parse_child_dist


def test_parse_child_dist_variants() -> None:
    assert parse_child_dist("pois") == Poisson()
    assert parse_child_dist("binom12") == Binomial(trials=12)
    tp = parse_child_dist("twoplane", {"w": 0.1, "b": 0.5, "l": 20.0, "tau": 110.0})
    assert isinstance(tp, TwoPlane)
    assert tp.info.tau == 110.0


@pytest.mark.parametrize("bad", ["binom", "binomx", "negbinom", "binom0", 3])
def test_parse_child_dist_rejects_unknown(bad) -> None:
    with pytest.raises(ConfigurationError):
        parse_child_dist(bad)


def test_unknown_dispersion_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        ns_config(disp="cauchy")


def test_twoplane_without_child_info_fails_before_geometry() -> None:
    # The points are not even a valid pattern: the error must come first.
    with pytest.raises(ConfigurationError):
        fit_ns(np.array([[np.nan]]), [0.0, 1.0], 0.5, child_dist="twoplane")


def test_twoplane_needs_gaussian_dispersion() -> None:
    info = {"w": 0.1, "b": 0.5, "l": 20.0, "tau": 110.0}
    with pytest.raises(ConfigurationError):
        ns_config(disp="uniform", child_dist="twoplane", child_info=info)


def test_twoplane_needs_one_dimensional_domain() -> None:
    config = ns_config(child_dist="twoplane", child_info={"w": 0.1, "b": 0.5, "l": 20.0, "tau": 110.0})
    with pytest.raises(ConfigurationError):
        build_family(config, 2)


def test_bad_edge_correction_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        PalmModel.from_config("ns", "mirror")


def test_component_tags_in_composition_order() -> None:
    siblings = SiblingInfo(matrix=np.full((3, 3), np.nan))
    config = NeymanScottConfig(child=Binomial(trials=4), disp="uniform", siblings=siblings)
    assert component_tags(config, Buffer()) == (
        "fit",
        "buffer",
        "ns",
        "sibling",
        "binomchild",
        "matern",
    )
    assert component_tags(VoidConfig()) == ("void", "totaldeletion")
    assert component_tags(NeymanScottConfig(), Periodic()) == ("fit", "pbc", "ns", "poischild", "thomas")


def test_model_builders_reject_unknown_names() -> None:
    model = PalmModel.from_config("ns", "pbc")
    assert model.param_names == ("D", "lambda", "sigma")
    with pytest.raises(ConfigurationError):
        model.guess(tau=0.1)
    with pytest.raises(ConfigurationError):
        model.bound(sigma=(0.5, 0.1))

    fixed = model.fix(sigma=0.02)
    assert fixed.params[2].fixed
    # Builders are pure.
    assert not model.params[2].fixed


def test_default_bounds_cap_twoplane_sigma() -> None:
    config = ns_config(child_dist="twoplane", child_info={"w": 0.1, "b": 0.3, "l": 20.0, "tau": 110.0})
    b = default_bounds(config, R=1.0)
    assert b["sigma"][1] == pytest.approx(0.1)
    lo, hi = b["kappa"]
    assert 0.0 < lo < hi < 110.0


@pytest.mark.parametrize(
    "config",
    [ns_config(), ns_config(disp="uniform", child_dist="binom4"), VoidConfig()],
    ids=["thomas", "matern-binom", "void"],
)
def test_default_bounds_come_from_the_family(config) -> None:
    assert default_bounds(config, R=0.4) == build_family(config, 2).default_bounds(0.4)


def test_sibling_info_validation() -> None:
    with pytest.raises(ConfigurationError):
        SiblingInfo(matrix=np.zeros((2, 3)))
    m = np.array([[np.nan, 1.0], [0.0, np.nan]])
    with pytest.raises(ConfigurationError):
        SiblingInfo(matrix=m)
    with pytest.raises(ConfigurationError):
        SiblingInfo(matrix=np.full((2, 2), np.nan), alpha=1.5)
    with pytest.raises(ConfigurationError):
        ns_config(sibling_list={"alpha": 0.9})
