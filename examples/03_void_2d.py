import numpy as np
from palm_fitting import fit_void, sim_void

rng = np.random.default_rng(2)
true = {"Dc": 2000.0, "Dp": 20.0, "tau": 0.1}
lims = [[0.0, 1.0], [0.0, 1.0]]

pattern = sim_void(true, lims, rng=rng)
print(f"{pattern.n_points} of {pattern.n_baseline} baseline points survived deletion")

fit = fit_void(pattern.points, lims, R=0.25)
print(fit.summary())
print("log-likelihood ratio against Poisson:", round(fit.loglik_ratio, 3))
