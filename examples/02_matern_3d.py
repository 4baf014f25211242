import numpy as np
from palm_fitting import fit_ns, sim_ns

rng = np.random.default_rng(1)
true = {"D": 150.0, "p": 0.6, "tau": 0.05}
lims = [[0.0, 1.0], [0.0, 1.0], [0.0, 1.0]]

# Binomial(10, p) children spread uniformly in a ball of radius tau.
pattern = sim_ns(true, lims, disp="uniform", child_dist="binom10", edge="trim", rng=rng)

fit = fit_ns(
    pattern.points,
    lims,
    R=0.2,
    disp="uniform",
    child_dist="binom10",
    edge_correction="buffer",
)
print(fit.summary())
print("origins inside the buffer:", fit.stats["n_origin"], "of", pattern.n_points)
