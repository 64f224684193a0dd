from abc import ABC, abstractmethod
import jax.numpy as jnp
from jax import vmap
from jaxtyping import Array, Float

from gpsurrogate.typing import ScalarFloat


class Mean(ABC):
    @abstractmethod
    def __call__(self, x: Float[Array, "d"]) -> ScalarFloat:
        pass

    def vector(self, X: Float[Array, "n d"]) -> Float[Array, "n"]:
        return vmap(self)(X)  # type: ignore


class ZeroMean(Mean):
    def __call__(self, x: Float[Array, "d"]) -> ScalarFloat:
        return jnp.zeros((), dtype=x.dtype)


class ConstantMean(Mean):
    value: ScalarFloat

    def __init__(self, value: ScalarFloat):
        self.value = value

    def __call__(self, x: Float[Array, "d"]) -> ScalarFloat:
        return jnp.asarray(self.value, dtype=x.dtype)
