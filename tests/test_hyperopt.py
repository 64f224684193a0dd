import jax.numpy as jnp
import pytest
from pytest import approx
import gpsurrogate.gp.hyperopt as hyperopt
from gpsurrogate.errors import ConvergenceError, NoCandidatesError
from gpsurrogate.gp import kernels
from gpsurrogate.gp.hyperopt import (
    BoundedHyperparameters,
    Objective,
    build_objective,
    empirical_initial_points,
    minimize,
    negative_log_likelihood,
    optimize_hyperparameters,
)
from gpsurrogate.gp.parameters import Hyperparameters, bounded, flatten, value
from gpsurrogate.gp.process import GaussianProcess

X = jnp.array([[-1], [-0.5], [0], [0.5], [1]], dtype=float)
y = jnp.sin(X).T[0]


def kernel_creator(theta):
    assert "noise_var" not in theta
    return kernels.Gaussian(**theta)


def candidate(lengthscale: float) -> Hyperparameters:
    return Hyperparameters(
        kernel={
            "variance": bounded(1.0, 0.01, 10.0),
            "lengthscale": bounded(lengthscale, 0.01, 10.0),
        },
        noise_var=bounded(0.01, 1e-6, 1.0),
    )


loss = build_objective(X, y, kernel_creator)


def test_negative_log_likelihood():
    theta = Hyperparameters(kernel={"lengthscale": 0.5}, noise_var=0.1)
    expected = -GaussianProcess(kernels.Gaussian(lengthscale=0.5))(X, 0.1).log_prob(y)
    assert float(negative_log_likelihood(theta, kernel_creator, X, y)) == approx(
        float(expected)
    )
    assert float(loss(theta)) == approx(float(expected))


def test_objective_value_and_grad():
    v, unflatten = flatten(candidate(1.0))
    objective = Objective(loss, unflatten)
    val, g = objective.value_and_grad(v)
    assert float(val) == approx(float(objective.value(v)))
    assert jnp.allclose(g, objective.gradient(v))
    assert g.shape == v.shape


def test_minimize():
    theta_initial = candidate(1.0)
    initial = float(loss(value(theta_initial)))
    theta, minimum = minimize(loss, theta_initial)
    assert minimum < initial
    assert minimum == approx(float(loss(theta)), rel=1e-6)
    assert 0.01 < theta.kernel["lengthscale"] < 10.0
    assert 0.01 < theta.kernel["variance"] < 10.0
    assert 1e-6 < theta.noise_var < 1.0


def test_minimize_without_noise_var():
    theta_initial = Hyperparameters(kernel={"lengthscale": bounded(1.0, 0.1, 2.0)})
    theta, minimum = minimize(loss, theta_initial)
    assert theta.noise_var is None
    assert 0.1 < theta.kernel["lengthscale"] < 2.0
    assert minimum <= float(loss(value(theta_initial)))


def test_minimize_non_finite():
    def nan_kernel_creator(theta):
        return kernels.Gaussian(lengthscale=theta["lengthscale"], variance=jnp.nan)

    with pytest.raises(ConvergenceError):
        minimize(build_objective(X, y, nan_kernel_creator), candidate(1.0))


def test_restarts_share_compiled_step():
    traces = []

    def counting_kernel_creator(theta):
        traces.append(None)
        return kernels.Gaussian(**theta)

    counting_loss = build_objective(X, y, counting_kernel_creator)
    minimize(counting_loss, candidate(1.0))
    compiled = len(traces)
    assert compiled > 0
    theta, _ = minimize(
        counting_loss,
        Hyperparameters(
            kernel={
                "variance": bounded(2.0, 0.1, 5.0),
                "lengthscale": bounded(0.3, 0.05, 3.0),
            },
            noise_var=bounded(0.1, 1e-4, 0.5),
        ),
    )
    assert len(traces) == compiled
    assert 0.05 < theta.kernel["lengthscale"] < 3.0


def test_multi_start_dominance():
    candidates = [candidate(0.05), candidate(1.0), candidate(8.0)]
    best = optimize_hyperparameters(
        X, y, kernel_creator, BoundedHyperparameters(candidates)
    )
    best_loss = float(loss(best))
    for c in candidates:
        single = optimize_hyperparameters(X, y, kernel_creator, BoundedHyperparameters(c))
        assert best_loss <= float(loss(single)) + 1e-9


def test_ties_keep_earliest(monkeypatch):
    minima = [3.0, 1.0, 1.0, 2.0]

    def fake_minimize(loss, theta_initial, **kwargs):
        return theta_initial, minima[theta_initial.kernel["id"]]

    monkeypatch.setattr(hyperopt, "minimize", fake_minimize)
    candidates = [Hyperparameters(kernel={"id": i}) for i in range(4)]
    best = optimize_hyperparameters(X, y, kernel_creator, BoundedHyperparameters(candidates))
    assert best.kernel["id"] == 1


def test_failed_initial_points_are_skipped(monkeypatch, caplog):
    def fake_minimize(loss, theta_initial, **kwargs):
        if theta_initial.kernel["id"] == 0:
            raise ConvergenceError("non-finite loss")
        return theta_initial, float(theta_initial.kernel["id"])

    monkeypatch.setattr(hyperopt, "minimize", fake_minimize)
    candidates = [Hyperparameters(kernel={"id": i}) for i in range(3)]
    best = optimize_hyperparameters(X, y, kernel_creator, BoundedHyperparameters(candidates))
    assert best.kernel["id"] == 1
    assert "skipping initial point 0" in caplog.text


def test_non_finite_initial_point_is_skipped():
    def flagged_kernel_creator(theta):
        variance = jnp.where(theta["flag"] > 0.5, jnp.nan, 1.0)
        return kernels.Gaussian(lengthscale=theta["lengthscale"], variance=variance)

    bad = Hyperparameters(
        kernel={"lengthscale": bounded(1.0, 0.01, 10.0), "flag": bounded(0.9, 0.5, 1.0)},
        noise_var=bounded(0.01, 1e-6, 1.0),
    )
    good = Hyperparameters(
        kernel={"lengthscale": bounded(1.0, 0.01, 10.0), "flag": bounded(0.1, 0.0, 0.5)},
        noise_var=bounded(0.01, 1e-6, 1.0),
    )
    best = optimize_hyperparameters(
        X, y, flagged_kernel_creator, BoundedHyperparameters([bad, good])
    )
    assert best.kernel["flag"] < 0.5

    with pytest.raises(ConvergenceError):
        optimize_hyperparameters(
            X, y, flagged_kernel_creator, BoundedHyperparameters([bad])
        )


def test_no_candidates():
    with pytest.raises(NoCandidatesError):
        optimize_hyperparameters(X, y, kernel_creator, BoundedHyperparameters([]))
    with pytest.raises(NoCandidatesError):
        optimize_hyperparameters(
            X, y, kernel_creator, BoundedHyperparameters(lambda X, y: [])
        )


def test_data_dependent_initial_points():
    seen = []

    def initial_points(X_, y_):
        seen.append((X_.shape, y_.shape))
        return [candidate(1.0)]

    prior = BoundedHyperparameters(initial_points, maxiter=5)
    optimize_hyperparameters(X, y, kernel_creator, prior)
    assert seen == [((5, 1), (5,))]


def test_empirical_initial_points():
    points = empirical_initial_points(num_restarts=4)(X, y)
    assert len(points) == 4
    lengthscales = [float(p.kernel["lengthscale"].value) for p in points]
    assert lengthscales == sorted(lengthscales)
    assert lengthscales[0] == approx(0.5)
    assert lengthscales[-1] == approx(2.0)

    best = optimize_hyperparameters(
        X, y, kernel_creator, BoundedHyperparameters(empirical_initial_points())
    )
    var = float(jnp.var(y))
    assert 1e-8 * var < best.noise_var < var
