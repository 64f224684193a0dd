from gpsurrogate.gp.kernels import stationary
from gpsurrogate.gp.kernels.base import Kernel, Parameterized, Parameters
from gpsurrogate.gp.kernels.stationary import (
    Gaussian,
    Laplace,
    Matern32,
    Matern52,
    Stationary,
)
from gpsurrogate.typing import KernelHyperparameters


def default_kernel_creator(hyperparameters: KernelHyperparameters) -> Kernel:
    """Matérn 5/2 kernel with unit variance and lengthscale. Ignores `hyperparameters`."""
    return Matern52()


__all__ = [
    "Kernel",
    "Parameterized",
    "Parameters",
    "Stationary",
    "Gaussian",
    "Laplace",
    "Matern32",
    "Matern52",
    "default_kernel_creator",
    "stationary",
]
