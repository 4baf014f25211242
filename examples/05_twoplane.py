import numpy as np
from palm_fitting import fit_twoplane, ns_config, simulate_process

rng = np.random.default_rng(4)
# Survey geometry: detection half-width w, survey half-width b (km),
# lag between planes l and mean dive cycle tau (s).
survey = {"w": 0.175, "b": 0.5, "l": 20.0, "tau": 110.0}
d = 100.0

config = ns_config(child_dist="twoplane", child_info=survey)
pattern = simulate_process({"D": 20.0, "kappa": 50.0, "sigma": 0.05}, [0.0, d], config, rng=rng)
print(f"{pattern.n_points} detections ({np.sum(pattern.planes == 1)} by plane 1)")

fit = fit_twoplane(pattern.points, pattern.planes, d=d, R=0.5, **survey)
print(fit.summary())
print("animals per unit area:", fit["D_2D"].value)
