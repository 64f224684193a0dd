"""
Gaussian process surrogate models with hyperparameters selected by marginal likelihood maximization.

There are two main components:
1. `gpsurrogate.model` - The surrogate, which stores the observations and the current posterior.
1. `gpsurrogate.gp.hyperopt` - Multi-start L-BFGS maximization of the marginal likelihood over box-constrained hyperparameters.

`gpsurrogate.gp` also contains the kernels, mean functions and the Gaussian process posterior the surrogate is built on.

The following illustrates how the surrogate is fit to data.

```python
surrogate = GPSurrogate(X, y, kernel_creator=KERNEL_CREATOR, hyperparameters=INITIAL_HYPERPARAMETERS)
prior = BoundedHyperparameters(empirical_initial_points(num_restarts=5))
for t in range(T):
    surrogate.add_point(x_t, f(x_t))
    surrogate.update_hyperparameters(prior)
```
"""
from gpsurrogate import config

config.enable_x64()

from gpsurrogate.errors import (  # noqa: E402
    ArgumentError,
    ConvergenceError,
    GPSurrogateError,
    NoCandidatesError,
    ShapeError,
)
from gpsurrogate.gp.hyperopt import (  # noqa: E402
    BoundedHyperparameters,
    empirical_initial_points,
    optimize_hyperparameters,
)
from gpsurrogate.gp.parameters import Hyperparameters, bounded  # noqa: E402
from gpsurrogate.model import GPSurrogate  # noqa: E402

__all__ = [
    "ArgumentError",
    "BoundedHyperparameters",
    "ConvergenceError",
    "GPSurrogate",
    "GPSurrogateError",
    "Hyperparameters",
    "NoCandidatesError",
    "ShapeError",
    "bounded",
    "config",
    "empirical_initial_points",
    "optimize_hyperparameters",
]
