import numpy as np
from batchfit_models import FLOAT32, evaluate_chunk, launch, pack_x_user_info

# Emulate the engine: flat float32 outputs, one raw kernel call per (fit, point).
N_FITS, N = 3, 10
x = np.linspace(0.0, 2.0, N)
params = np.array(
    [
        [2.0, 1.0, 0.5, 0.1],
        [1.0, 0.5, 0.2, 0.0],
        [0.5, 2.0, 0.8, -0.1],
    ]
)
user_info = pack_x_user_info(x, FLOAT32)

values = np.empty(N_FITS * N, dtype=np.float32)
derivatives = np.empty(N_FITS * 4 * N, dtype=np.float32)
launch(
    "damped_cosine",
    params,
    N_FITS,
    N,
    values,
    derivatives,
    user_info=user_info,
    precision=FLOAT32,
    order="shuffled",
    rng=np.random.default_rng(0),
)

res = evaluate_chunk("damped_cosine", params, N, user_info=user_info, precision="float32")
print("raw launch == chunk evaluation:", np.array_equal(values.reshape(N_FITS, N), res.values))
print("value at x=0 for fit 0:", values[0])
