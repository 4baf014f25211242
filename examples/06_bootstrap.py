import numpy as np
from palm_fitting import bootstrap, fit_ns, sim_ns

rng = np.random.default_rng(5)
lims = [0.0, 5.0]
pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, lims, rng=rng)

fit = fit_ns(pattern.points, lims, R=0.5)

# Parametric bootstrap: simulate from the estimates and refit.
fit = bootstrap(fit, 10, rng=rng)
print(fit.summary())
print("failed resamples:", fit.bootstrap.n_failed)

if fit.bootstrap.n_samples >= 2:
    for name, (lo, hi) in fit.confint(0.95).items():
        print(f"{name:>8s}: [{lo:.4g}, {hi:.4g}]")
    # Error propagation with uncertainties.
    mean_intensity = fit["D"].u * fit["lambda"].u
    print("D * lambda =", mean_intensity)
