from __future__ import annotations
import jax.numpy as jnp
import jax.scipy.linalg as jsl
from jaxtyping import Array, Float
from gpsurrogate.gp.gaussian_distribution import DEFAULT_JITTER, FiniteDistribution
from gpsurrogate.gp.kernels import Kernel
from gpsurrogate.gp.means import Mean, ZeroMean
from gpsurrogate.typing import ScalarFloat
from gpsurrogate.utils import extend_cholesky, noise_covariance_matrix


class GaussianProcess:
    r"""
    **Gaussian process** prior $f \sim \mathcal{GP}(m, k)$ on $\mathbb{R}^d$.
    """

    kernel: Kernel
    mean: Mean

    def __init__(self, kernel: Kernel, mean: Mean | None = None):
        self.kernel = kernel
        self.mean = mean if mean is not None else ZeroMean()

    def __call__(
        self, X: Float[Array, "n d"], noise_var: ScalarFloat | None = None
    ) -> FiniteDistribution:
        """
        Finite projection at `X`. If `noise_var` is given, the distribution is that of noisy observations.
        """
        n = X.shape[0]
        covariance = self.kernel.covariance(X) + noise_covariance_matrix(
            n, noise_var, default=DEFAULT_JITTER
        )
        return FiniteDistribution(mean=self.mean.vector(X), covariance=covariance)

    def posterior(
        self,
        X: Float[Array, "n d"],
        y: Float[Array, "n"],
        noise_var: ScalarFloat | None = None,
    ) -> PosteriorProcess:
        """Conditions the process on observations `y` at `X` perturbed by Gaussian noise with variance `noise_var`."""
        L = jnp.linalg.cholesky(self(X, noise_var).covariance)
        return PosteriorProcess(prior=self, X=X, y=y, noise_var=noise_var, L=L)


class PosteriorProcess:
    r"""
    Gaussian process conditioned on $n$ noisy observations.

    Stores the lower Cholesky factor $\mathbf{L}$ of $\mathbf{K}_{XX} + \sigma^2 \mathbf{I}$
    and the weights $\boldsymbol{\alpha} = (\mathbf{K}_{XX} + \sigma^2 \mathbf{I})^{-1} (\mathbf{y} - \mathbf{m}_X)$.
    """

    prior: GaussianProcess
    X: Float[Array, "n d"]
    """Observed points."""
    y: Float[Array, "n"]
    """Observations."""
    noise_var: ScalarFloat | None
    """Observation noise variance."""

    def __init__(
        self,
        prior: GaussianProcess,
        X: Float[Array, "n d"],
        y: Float[Array, "n"],
        noise_var: ScalarFloat | None,
        L: Float[Array, "n n"],
    ):
        self.prior = prior
        self.X = X
        self.y = y
        self.noise_var = noise_var
        self._L = L
        self._alpha = jsl.cho_solve((L, True), y - prior.mean.vector(X))

    @property
    def n(self) -> int:
        return self.X.shape[0]

    def __call__(
        self, Q: Float[Array, "m d"], noise_var: ScalarFloat | None = None
    ) -> FiniteDistribution:
        """Finite projection of the posterior at `Q`, optionally with observation noise `noise_var`."""
        K_xq = self.prior.kernel.cross_covariance(self.X, Q)
        V = jsl.solve_triangular(self._L, K_xq, lower=True)
        mean = self.prior.mean.vector(Q) + K_xq.T @ self._alpha
        covariance = (
            self.prior.kernel.covariance(Q)
            - V.T @ V
            + noise_covariance_matrix(Q.shape[0], noise_var, default=DEFAULT_JITTER)
        )
        return FiniteDistribution(mean=mean, covariance=covariance)

    def condition(
        self, X: Float[Array, "m d"], y: Float[Array, "m"]
    ) -> PosteriorProcess:
        """
        Conditions on $m$ additional observations by extending the Cholesky factor,
        without refactorizing the covariance of the $n$ points observed so far.
        """
        m = X.shape[0]
        K_xz = self.prior.kernel.cross_covariance(self.X, X)
        K_zz = self.prior.kernel.covariance(X) + noise_covariance_matrix(
            m, self.noise_var, default=DEFAULT_JITTER
        )
        L = extend_cholesky(self._L, K_xz, K_zz)
        return PosteriorProcess(
            prior=self.prior,
            X=jnp.concatenate((self.X, X), axis=0),
            y=jnp.concatenate((self.y, y), axis=0),
            noise_var=self.noise_var,
            L=L,
        )
