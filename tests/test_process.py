import jax.numpy as jnp
import jax.random as jr
from pytest import approx
from gpsurrogate.gp import kernels
from gpsurrogate.gp.gaussian_distribution import FiniteDistribution
from gpsurrogate.gp.means import ConstantMean
from gpsurrogate.gp.process import GaussianProcess

X = jnp.array([[-1.0], [-0.5], [0.0], [0.5], [1.0]])
y = jnp.sin(X).T[0]
Q = jnp.array([[-0.75], [0.1], [0.8], [2.0]])

gp = GaussianProcess(kernel=kernels.Matern52(lengthscale=0.7))


def test_cross_covariance():
    K = kernels.Gaussian().cross_covariance(X, Q)
    assert K.shape == (5, 4)
    assert float(K[0, 0]) == approx(jnp.exp(-0.5 * 0.25**2))


def test_laplace_covariance():
    K = kernels.Laplace(variance=2.0).cross_covariance(X, Q)
    assert float(K[0, 0]) == approx(2.0 * float(jnp.exp(-0.25)))
    assert float(K[2, 2]) == approx(2.0 * float(jnp.exp(-0.8)))


def test_matern32_covariance():
    K = kernels.Matern32(lengthscale=0.5).cross_covariance(X, Q)
    tau = jnp.sqrt(3.0) * 0.25 / 0.5
    assert float(K[0, 0]) == approx(float((1 + tau) * jnp.exp(-tau)))
    assert jnp.allclose(kernels.Matern32(lengthscale=0.5).covariance(X).diagonal(), 1.0)


def test_matern52_covariance():
    K = kernels.Matern52().cross_covariance(X, X)
    tau = jnp.sqrt(5.0) * 0.5
    assert float(K[0, 1]) == approx(float((1 + tau + tau**2 / 3) * jnp.exp(-tau)))
    assert jnp.allclose(jnp.diag(K), 1.0)


def test_prior_projection():
    distr = gp(X, noise_var=0.1)
    assert jnp.allclose(distr.mean, jnp.zeros(5))
    assert jnp.allclose(distr.variance, 1.1 * jnp.ones(5))


def test_log_prob():
    distr = FiniteDistribution(mean=jnp.zeros(3), covariance=2.0 * jnp.eye(3))
    obs = jnp.array([0.5, -1.0, 2.0])
    expected = -0.5 * jnp.sum(obs**2) / 2.0 - 1.5 * jnp.log(2 * jnp.pi * 2.0)
    assert float(distr.log_prob(obs)) == approx(float(expected))


def test_sample():
    distr = gp(X)
    assert distr.sample(jr.PRNGKey(0)).shape == (5,)
    assert distr.sample(jr.PRNGKey(0), (10,)).shape == (10, 5)


def test_posterior_interpolates():
    posterior = gp.posterior(X, y, noise_var=1e-8)
    distr = posterior(X)
    assert jnp.allclose(distr.mean, y, atol=1e-4)
    assert jnp.all(jnp.abs(distr.variance) < 1e-4)


def test_posterior_with_constant_mean_reverts_far_away():
    posterior = GaussianProcess(
        kernel=kernels.Matern52(lengthscale=0.7), mean=ConstantMean(3.0)
    ).posterior(X, y, noise_var=0.1)
    distr = posterior(jnp.array([[100.0]]))
    assert float(distr.mean[0]) == approx(3.0)
    assert float(distr.variance[0]) == approx(1.0)


def test_incremental_conditioning():
    batch = gp.posterior(X, y, noise_var=0.1)
    sequential = gp.posterior(X[:2], y[:2], noise_var=0.1).condition(X[2:], y[2:])
    assert jnp.all(sequential.X == X)
    assert jnp.all(sequential.y == y)
    mean1, var1 = batch(Q).mean_and_variance()
    mean2, var2 = sequential(Q).mean_and_variance()
    assert jnp.allclose(mean1, mean2, atol=1e-8)
    assert jnp.allclose(var1, var2, atol=1e-8)
    assert jnp.allclose(batch(Q).covariance, sequential(Q).covariance, atol=1e-8)
