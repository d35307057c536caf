import numpy as np
from batchfit_models import fit_chunk, models, pack_angular_user_info

model = models.angular_lorentzian()

angles = np.linspace(0.4, 3.0, 12)
g = 0.85
x = np.linspace(-3.0, 3.0, 90)

rng = np.random.default_rng(1)
true = np.array(
    [
        [1.0, 0.4, 1.0, 0.05],
        [1.5, -0.2, 0.7, 0.0],
    ]
)
sigma = 0.01
y = np.stack([model.eval(x, t, angles=angles, geometric_correction=g) for t in true])
y = y + rng.normal(0.0, sigma, size=y.shape)

user_info = pack_angular_user_info(angles, g, x=x)
fit = fit_chunk(model, y, true * 1.1, user_info=user_info, sigma=sigma)

for i, r in enumerate(fit.results):
    errs = r.stderr if r.stderr is not None else np.full(len(r.theta), np.nan)
    print(f"fit {i}: success={r.success}")
    for name, v, e in zip(fit.param_names, r.theta, errs):
        print(f"  {name:9s} {v: .4f} ± {e:.4f}")
