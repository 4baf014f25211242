import numpy as np
from palm_fitting import fit_ns, sim_ns
from palm_fitting.siblings import simulate_sibling_info

rng = np.random.default_rng(6)
lims = [0.0, 10.0]
pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, lims, rng=rng)

# Label 40% of pairs; 90% of true sibling pairs and 95% of nonsibling pairs
# are labelled correctly.
info = simulate_sibling_info(pattern.parent_ids, 0.9, 0.95, 0.4, rng)
print(f"known pairs: {info.known_fraction():.2f}")

fit_plain = fit_ns(pattern.points, lims, R=0.5)
fit_sib = fit_ns(
    pattern.points,
    lims,
    R=0.5,
    sibling_list={"sibling_mat": info.matrix, "alpha": info.alpha, "beta": info.beta},
)
print(fit_plain.summary())
print(fit_sib.summary())
