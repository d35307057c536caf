import numpy as np
from batchfit_models import evaluate_chunk, output_addresses, pack_x_user_info

# Four fits, each with its own X sequence (per-fit layout).
rng = np.random.default_rng(0)
N_FITS, N = 4, 25
x = np.sort(rng.uniform(0.0, 4.0, size=(N_FITS, N)), axis=1)
params = np.column_stack(
    [
        rng.uniform(0.5, 2.0, N_FITS),  # amplitude
        rng.uniform(0.5, 1.5, N_FITS),  # shift
        rng.uniform(0.1, 0.6, N_FITS),  # width
        np.zeros(N_FITS),  # offset
    ]
)

user_info = pack_x_user_info(x)
res = evaluate_chunk("damped_cosine", params, N, user_info=user_info)
print("values", res.values.shape, "derivatives", res.derivatives.shape)
print("fit 0, point 0 Jacobian row:", res.jacobian(0)[0])

fast = evaluate_chunk("damped_cosine", params, N, user_info=user_info, method="vectorized")
print("pointwise vs vectorized max diff:", float(np.max(np.abs(res.values - fast.values))))

value_addr, derivative_addr = output_addresses(N_FITS, N)
print("disjoint writes:", np.unique(derivative_addr).size == derivative_addr.size)
