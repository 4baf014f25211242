import numpy as np
from palm_fitting import PalmModel, sim_ns

rng = np.random.default_rng(3)
lims = [0.0, 10.0]
pattern = sim_ns({"D": 10.0, "lambda": 5.0, "sigma": 0.025}, lims, rng=rng)

# Global optimisation needs finite bounds on every free parameter.
model = PalmModel.from_config("ns", "pbc").bound(D=(1.0, 50.0), **{"lambda": (0.5, 20.0)})

fit_lbfgs = model.fit(pattern.points, lims, 0.5, backend="scipy.minimize")
fit_de = model.fit(
    pattern.points,
    lims,
    0.5,
    backend=("scipy.differential_evolution", "scipy.minimize"),
    backend_options={"popsize": 8, "seed": 0},
)

for fit in (fit_lbfgs, fit_de):
    print(fit.backend, {k: round(v, 4) for k, v in fit.coef().items()})
print("pipeline:", [step["backend"] for step in fit_de.stats["pipeline"]])
