from __future__ import annotations
from typing import Tuple
from chex import dataclass
from jaxtyping import Array, Float
from jax import jit
import jax.numpy as jnp
import jax.random as jr
from gpsurrogate.typing import KeyArray, ScalarFloat
from gpsurrogate.utils import solve_linear_system

DEFAULT_JITTER = 1e-8
"""Variance added to the diagonal when no observation noise is given."""


@dataclass
class FiniteDistribution:
    r"""
    **Multivariate Gaussian** $\mathcal{N}(\boldsymbol{\mu}; \boldsymbol{\Sigma})$ with dimension $n$.

    Joint distribution of a Gaussian process at $n$ points (its finite projection).
    """

    mean: Float[Array, "n"]
    """Mean vector."""
    covariance: Float[Array, "n n"]
    """Covariance matrix."""

    @property
    def n(self) -> int:
        """Dimension."""
        return self.mean.shape[0]

    @property
    @jit
    def variance(self) -> Float[Array, "n"]:
        """Vectors of variances of all one-dimensional marginals."""
        return jnp.diagonal(self.covariance)

    @property
    @jit
    def stddev(self) -> Float[Array, "n"]:
        """Vectors of standard deviations of all one-dimensional marginals."""
        return jnp.sqrt(self.variance)

    def mean_and_variance(self) -> Tuple[Float[Array, "n"], Float[Array, "n"]]:
        return self.mean, self.variance

    def sample(self, key: KeyArray, sample_shape: tuple = ()) -> Float[Array, "... n"]:
        """Sample jointly from the Gaussian. Returns an array of shape `sample_shape + (n,)`."""
        return jr.multivariate_normal(
            key=key,
            mean=self.mean,
            cov=self.covariance,
            shape=sample_shape,
            method="svd",
        )

    @jit
    def log_prob(self, y: Float[Array, "n"]) -> ScalarFloat:
        """Log probability of observation `y`."""
        delta = y - self.mean
        alpha, L = solve_linear_system(self.covariance, delta)
        return -(
            0.5 * delta.T @ alpha
            + jnp.sum(jnp.log(jnp.diag(L)))
            + 0.5 * self.n * jnp.log(2 * jnp.pi)
        )
