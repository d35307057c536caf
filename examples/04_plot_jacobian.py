import numpy as np
import matplotlib.pyplot as plt
from batchfit_models import evaluate_chunk, pack_angular_user_info
from batchfit_models.plotting import plot_chunk

angles = np.linspace(0.4, 3.0, 12)
x = np.linspace(-3.0, 3.0, 200)
user_info = pack_angular_user_info(angles, 0.9, x=x)

res = evaluate_chunk("angular_lorentzian", [[1.0, 0.4, 1.0, 0.05]], x.size, user_info=user_info)
fig, axs = plot_chunk(res, 0, x=x)
plt.show()
