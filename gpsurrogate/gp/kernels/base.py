from abc import ABC, abstractmethod
from typing import ClassVar, Generic, TypeVar, TypedDict
from jax import vmap
from jaxtyping import Array, Float

from gpsurrogate.typing import ScalarFloat


class Kernel(ABC):
    @abstractmethod
    def __call__(self, x: Float[Array, "d"], y: Float[Array, "d"]) -> ScalarFloat:
        pass

    def cross_covariance(
        self, X: Float[Array, "n d"], Y: Float[Array, "m d"]
    ) -> Float[Array, "n m"]:
        f_vmap1 = vmap(self, in_axes=(None, 0))
        f_vmap2 = vmap(f_vmap1, in_axes=(0, None))
        return f_vmap2(X, Y)  # type: ignore

    def covariance(self, X: Float[Array, "n d"]) -> Float[Array, "n n"]:
        return self.cross_covariance(X, X)


class Parameters(TypedDict):
    pass


P = TypeVar("P", bound=Parameters)


class Parameterized(Kernel, Generic[P]):
    """
    Kernel whose hyperparameters are passed as keyword arguments.
    Missing hyperparameters fall back to `default_params`.
    """

    default_params: ClassVar[dict] = {}

    def __init__(self, **params):
        self.params: P = {**self.default_params, **params}  # type: ignore
