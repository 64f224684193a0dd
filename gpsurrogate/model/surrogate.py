from typing import Tuple
import jax.numpy as jnp
from jaxtyping import Array, Float
from gpsurrogate.errors import ArgumentError
from gpsurrogate.gp.gaussian_distribution import FiniteDistribution
from gpsurrogate.gp.hyperopt import (
    BoundedHyperparameters,
    KernelCreator,
    negative_log_likelihood,
    optimize_hyperparameters,
)
from gpsurrogate.gp.kernels import default_kernel_creator
from gpsurrogate.gp.means import Mean
from gpsurrogate.gp.parameters import Hyperparameters
from gpsurrogate.gp.process import GaussianProcess, PosteriorProcess
from gpsurrogate.typing import KeyArray, ScalarFloat


def as_points(X) -> Float[Array, "n d"]:
    """A batch of points: either a sequence of scalars (one-dimensional domain) or an `(n, d)` array."""
    X = jnp.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X[:, None]
    if X.ndim != 2:
        raise ArgumentError(f"expected a batch of points, got an array of shape {X.shape}")
    return X


def as_point(x) -> Float[Array, "1 d"]:
    """A single point: either a scalar (one-dimensional domain) or a vector."""
    x = jnp.atleast_1d(jnp.asarray(x, dtype=float))
    if x.ndim != 1:
        raise ArgumentError(f"expected a single point, got an array of shape {x.shape}")
    return x[None, :]


def as_observations(y) -> Float[Array, "n"]:
    y = jnp.asarray(y, dtype=float)
    if y.ndim != 1:
        raise ArgumentError(f"expected a vector of observations, got an array of shape {y.shape}")
    return y


class GPSurrogate:
    r"""
    **Gaussian process** surrogate of an unknown function $f : \mathbb{R}^d \to \mathbb{R}$.

    Observations are assumed to be perturbed by Gaussian noise with variance `hyperparameters.noise_var`.
    The posterior is recomputed by every method that changes the observations or hyperparameters;
    `X`, `y`, `hyperparameters` and `posterior` are always replaced together.

    ```python
    surrogate = GPSurrogate(
        [1.0, 3.0, 4.0],
        [0.9, 3.1, 4.5],
        kernel_creator=lambda theta: kernels.Matern52(lengthscale=theta["lengthscale"]),
        hyperparameters=Hyperparameters(kernel={"lengthscale": 1.0}, noise_var=0.1),
    )
    surrogate.add_points([5.0, 6.0], [5.9, 5.9])
    surrogate.update_hyperparameters(prior)
    mean, variance = surrogate.mean_and_variance([2.0, 4.3])
    ```
    """

    X: Float[Array, "t d"]
    """Observed points."""
    y: Float[Array, "t"]
    """Observations."""
    kernel_creator: KernelCreator
    """Maps kernel hyperparameters to a kernel."""

    def __init__(
        self,
        X,
        y,
        kernel_creator: KernelCreator = default_kernel_creator,
        hyperparameters: Hyperparameters | None = None,
        mean: Mean | None = None,
    ):
        r"""
        :param X: Observed points. Must be non-empty.
        :param y: Observations at `X`.
        :param kernel_creator: Maps `hyperparameters.kernel` to a kernel. Defaults to a Matérn 5/2 kernel.
        :param hyperparameters: Initial hyperparameters. Defaults to a noise variance of $0.1$.
        :param mean: Prior mean function. Defaults to zero.
        """
        X = as_points(X)
        y = as_observations(y)
        if X.shape[0] != y.shape[0]:
            raise ArgumentError(
                f"got {X.shape[0]} points but {y.shape[0]} observations"
            )
        if X.shape[0] == 0:
            raise ArgumentError("at least one observation is required")
        if hyperparameters is None:
            hyperparameters = Hyperparameters(noise_var=0.1)

        self.kernel_creator = kernel_creator
        self._mean = mean
        self.X = X
        self.y = y
        self._hyperparameters = hyperparameters
        self._posterior = self._compute_posterior(X, y, hyperparameters)

    @property
    def d(self) -> int:
        """Dimension of the domain."""
        return self.X.shape[1]

    @property
    def t(self) -> int:
        """Number of observations."""
        return self.X.shape[0]

    @property
    def hyperparameters(self) -> Hyperparameters:
        return self._hyperparameters

    @property
    def posterior(self) -> PosteriorProcess:
        return self._posterior

    def _compute_posterior(
        self,
        X: Float[Array, "t d"],
        y: Float[Array, "t"],
        hyperparameters: Hyperparameters,
    ) -> PosteriorProcess:
        prior = GaussianProcess(
            kernel=self.kernel_creator(hyperparameters.kernel), mean=self._mean
        )
        return prior.posterior(X, y, noise_var=hyperparameters.noise_var)

    def add_point(self, x, y: ScalarFloat):
        """Adds a single observation `y` at point `x`."""
        self.add_points(as_point(x), jnp.atleast_1d(jnp.asarray(y, dtype=float)))

    def add_points(self, X, y):
        """
        Adds observations `y` at points `X`.
        The posterior is conditioned on the new observations only.
        """
        X = as_points(X)
        y = as_observations(y)
        if X.shape[0] != y.shape[0]:
            raise ArgumentError(
                f"got {X.shape[0]} points but {y.shape[0]} observations"
            )
        if X.shape[0] == 0:
            return
        if X.shape[1] != self.d:
            raise ArgumentError(f"expected points of dimension {self.d}, got {X.shape[1]}")
        posterior = self._posterior.condition(X, y)
        self.X, self.y, self._posterior = posterior.X, posterior.y, posterior

    def update_hyperparameters(self, prior: BoundedHyperparameters):
        """
        Selects hyperparameters by maximizing the marginal likelihood, starting from the initial points of `prior`.
        The posterior is recomputed from all observations.
        """
        hyperparameters = optimize_hyperparameters(
            self.X, self.y, self.kernel_creator, prior, mean=self._mean
        )
        posterior = self._compute_posterior(self.X, self.y, hyperparameters)
        self._hyperparameters, self._posterior = hyperparameters, posterior

    def log_marginal_likelihood(self) -> ScalarFloat:
        """Log marginal likelihood of the observations under the current hyperparameters."""
        return -negative_log_likelihood(
            self._hyperparameters, self.kernel_creator, self.X, self.y, mean=self._mean
        )

    def query(self, X) -> FiniteDistribution:
        """Posterior distribution of (noisy) observations at points `X`."""
        X = as_points(X)
        if X.shape[1] != self.d:
            raise ArgumentError(f"expected points of dimension {self.d}, got {X.shape[1]}")
        return self._posterior(X, noise_var=self._hyperparameters.noise_var)

    def mean(self, X) -> Float[Array, "n"]:
        return self.query(X).mean

    def mean_at_point(self, x) -> ScalarFloat:
        return self.query(as_point(x)).mean[0]

    def variance(self, X) -> Float[Array, "n"]:
        return self.query(X).variance

    def variance_at_point(self, x) -> ScalarFloat:
        return self.query(as_point(x)).variance[0]

    def mean_and_variance(self, X) -> Tuple[Float[Array, "n"], Float[Array, "n"]]:
        return self.query(X).mean_and_variance()

    def mean_and_variance_at_point(self, x) -> Tuple[ScalarFloat, ScalarFloat]:
        mean, variance = self.query(as_point(x)).mean_and_variance()
        return mean[0], variance[0]

    def sample(self, key: KeyArray, X) -> Float[Array, "n"]:
        """Samples jointly from the posterior at points `X`."""
        return self.query(X).sample(key)

    def sample_at_point(self, key: KeyArray, x) -> ScalarFloat:
        return self.query(as_point(x)).sample(key)[0]
