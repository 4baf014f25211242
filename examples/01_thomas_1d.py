import numpy as np
from palm_fitting import fit_ns, sim_ns

rng = np.random.default_rng(0)
true = {"D": 10.0, "lambda": 5.0, "sigma": 0.025}
lims = [0.0, 10.0]

pattern = sim_ns(true, lims, rng=rng)
print(f"{pattern.n_points} points from {pattern.n_parents} clusters")

# Periodic edge correction; every pair closer than R enters the Palm likelihood.
fit = fit_ns(pattern.points, lims, R=0.5)
print(fit.summary(digits=4))
print("Palm intensity at r = 0, 0.05, 0.25:", fit.palm_intensity([0.0, 0.05, 0.25]))
