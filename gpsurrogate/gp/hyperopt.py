"""
Hyperparameter selection by maximizing the marginal likelihood of the observations.

Local optimization runs L-BFGS with a backtracking line search over the unconstrained
parameterization of `gpsurrogate.gp.parameters`. As the marginal likelihood is generally
multimodal, `optimize_hyperparameters` restarts from several initial points and keeps the best.
"""

import logging
from functools import lru_cache, partial
from typing import Callable, List, Sequence, Tuple
import jax.numpy as jnp
from jax import grad, jit, value_and_grad
from jaxtyping import Array, Float
import optax
from tqdm import tqdm

from gpsurrogate.errors import ConvergenceError, NoCandidatesError
from gpsurrogate.gp.kernels import Kernel
from gpsurrogate.gp.means import Mean
from gpsurrogate.gp.parameters import (
    Hyperparameters,
    Unflattener,
    bounded,
    flatten,
    unflatten,
)
from gpsurrogate.gp.process import GaussianProcess
from gpsurrogate.typing import KernelHyperparameters, ScalarFloat

logger = logging.getLogger(__name__)

KernelCreator = Callable[[KernelHyperparameters], Kernel]
Loss = Callable[[Hyperparameters], ScalarFloat]
InitialPoints = Callable[
    [Float[Array, "n d"], Float[Array, "n"]], Sequence[Hyperparameters]
]

DEFAULT_MAXITER = 1_000


@lru_cache(maxsize=None)
def default_optimizer() -> optax.GradientTransformationExtraArgs:
    """
    L-BFGS with a backtracking line search and a scaled initial step.
    Always the same instance, so that compiled optimization steps are reused.
    """
    return optax.lbfgs(
        scale_init_precond=True,
        linesearch=optax.scale_by_backtracking_linesearch(max_backtracking_steps=20),
    )


def negative_log_likelihood(
    theta: Hyperparameters,
    kernel_creator: KernelCreator,
    X: Float[Array, "n d"],
    y: Float[Array, "n"],
    mean: Mean | None = None,
) -> ScalarFloat:
    """
    Computes the negative log marginal likelihood of `y` under the prior with hyperparameters `theta`.
    The kernel is created from `theta.kernel`; `theta.noise_var` is the observation noise.
    """
    prior = GaussianProcess(kernel=kernel_creator(theta.kernel), mean=mean)
    return -prior(X, noise_var=theta.noise_var).log_prob(y)


def build_objective(
    X: Float[Array, "n d"],
    y: Float[Array, "n"],
    kernel_creator: KernelCreator,
    mean: Mean | None = None,
) -> Loss:
    return partial(
        negative_log_likelihood, kernel_creator=kernel_creator, X=X, y=y, mean=mean
    )


class Objective:
    """
    `loss` as a function of the flattened hyperparameters.

    Provides the value, the gradient, and both at once (a single forward and backward pass).
    """

    def __init__(self, loss: Loss, unflatten: Unflattener):
        def packed(v: Float[Array, "p"]) -> ScalarFloat:
            return loss(unflatten(v))

        self.value = jit(packed)
        self.gradient = jit(grad(packed))
        self.value_and_grad = jit(value_and_grad(packed))


@partial(jit, static_argnames=("loss", "optimizer"))
def _step(v, opt_state, template: Hyperparameters, loss: Loss, optimizer):
    """
    One L-BFGS iteration from `v`. Returns the next iterate and the loss and gradient at `v`.

    Bounds enter through the traced `template`, so initial points sharing a tree structure
    (for the same `loss` and `optimizer`) share a single compilation.
    """
    objective = Objective(loss, partial(unflatten, template))
    value, g = objective.value_and_grad(v)
    updates, opt_state = optimizer.update(
        g, opt_state, v, value=value, grad=g, value_fn=objective.value
    )
    return optax.apply_updates(v, updates), opt_state, value, g


def minimize(
    loss: Loss,
    theta_initial: Hyperparameters,
    optimizer: optax.GradientTransformationExtraArgs | None = None,
    maxiter: int = DEFAULT_MAXITER,
    gtol: float = 1e-6,
    ftol: float = 1e-10,
) -> Tuple[Hyperparameters, float]:
    """
    Locally minimizes `loss` starting from `theta_initial` whose `Bounded` leaves stay within their bounds.

    Returns the best hyperparameters found and the corresponding loss.
    Raises `ConvergenceError` if the loss or its gradient is not finite at an iterate.
    """
    if optimizer is None:
        optimizer = default_optimizer()
    v, _ = flatten(theta_initial)

    opt_state = optimizer.init(v)
    best_v, best_value = v, jnp.inf
    converged = False
    for i in range(maxiter):
        v_next, opt_state, value, g = _step(v, opt_state, theta_initial, loss, optimizer)
        value = float(value)
        if not (jnp.isfinite(value) and jnp.all(jnp.isfinite(g))):
            raise ConvergenceError(f"non-finite loss or gradient at iteration {i}")
        if value < best_value:
            decrease = best_value - value
            best_v, best_value = v, value
            if decrease <= ftol * max(1.0, abs(value)):
                converged = True
        elif i > 0:
            # the line search failed to decrease the loss
            converged = True
        if jnp.linalg.norm(g) < gtol:
            converged = True
        if converged:
            break
        v = v_next
    else:
        value = float(Objective(loss, partial(unflatten, theta_initial)).value(v))
        if jnp.isfinite(value) and value < best_value:
            best_v, best_value = v, value
        logger.info("L-BFGS stopped after %d iterations without converging", maxiter)

    return unflatten(theta_initial, best_v), best_value


class BoundedHyperparameters:
    """
    Prior over hyperparameters whose `Bounded` leaves lie within boxes.

    Stores a function `compute_initial_points` mapping observed points `X` and observations `y`
    to a sequence of `Hyperparameters` whose kernel hyperparameters (and noise variance) may be `Bounded`.
    Each element is used as an initial point of the optimizer, hence initial points can be computed
    from the observations so far.
    A single `Hyperparameters` instance or a fixed sequence is also accepted.

    ```python
    prior = BoundedHyperparameters(
        Hyperparameters(
            kernel={"lengthscale": bounded(1.0, 0.004, 4.0)},
            noise_var=bounded(0.1, 0.0001, 0.2),
        )
    )
    ```
    """

    def __init__(
        self,
        initial_points: InitialPoints | Hyperparameters | Sequence[Hyperparameters],
        optimizer: optax.GradientTransformationExtraArgs | None = None,
        maxiter: int = DEFAULT_MAXITER,
        gtol: float = 1e-6,
        ftol: float = 1e-10,
        progress: bool = False,
    ):
        """
        :param initial_points: Function of `(X, y)` returning initial points, a single initial point, or a sequence of initial points.
        :param optimizer: Optax transformation driving each local optimization. Defaults to L-BFGS with backtracking line search.
        :param maxiter: Maximum number of iterations per initial point.
        :param gtol: Tolerance on the gradient norm.
        :param ftol: Tolerance on the relative decrease of the loss.
        :param progress: Whether to show a progress bar over initial points.
        """
        if isinstance(initial_points, Hyperparameters):
            initial_points = [initial_points]
        if callable(initial_points):
            self._initial_points = initial_points
        else:
            points = list(initial_points)
            self._initial_points = lambda X, y: points
        self.optimizer = optimizer if optimizer is not None else default_optimizer()
        self.maxiter = maxiter
        self.gtol = gtol
        self.ftol = ftol
        self.progress = progress

    def compute_initial_points(
        self, X: Float[Array, "n d"], y: Float[Array, "n"]
    ) -> List[Hyperparameters]:
        return list(self._initial_points(X, y))


def optimize_hyperparameters(
    X: Float[Array, "n d"],
    y: Float[Array, "n"],
    kernel_creator: KernelCreator,
    prior: BoundedHyperparameters,
    mean: Mean | None = None,
) -> Hyperparameters:
    """
    Minimizes the negative log marginal likelihood from every initial point of `prior`
    and returns the best minimizer. Ties are resolved in favor of the earlier initial point.

    Initial points at which the local optimization fails are skipped.
    Raises `NoCandidatesError` if `prior` yields no initial points and
    `ConvergenceError` if the optimization fails for all of them.
    """
    loss = build_objective(X, y, kernel_creator, mean)
    initial_points = prior.compute_initial_points(X, y)
    if len(initial_points) == 0:
        raise NoCandidatesError("prior yielded no initial points")

    current_minimum = jnp.inf
    current_minimizer = None
    failure = None
    for i, theta_initial in enumerate(
        tqdm(initial_points, disable=not prior.progress)
    ):
        try:
            proposed_minimizer, proposed_minimum = minimize(
                loss,
                theta_initial,
                optimizer=prior.optimizer,
                maxiter=prior.maxiter,
                gtol=prior.gtol,
                ftol=prior.ftol,
            )
        except ConvergenceError as e:
            logger.warning("skipping initial point %d: %s", i, e)
            failure = e
            continue
        logger.debug("initial point %d: loss %.6g", i, proposed_minimum)
        if proposed_minimum < current_minimum:
            current_minimum = proposed_minimum
            current_minimizer = proposed_minimizer

    if current_minimizer is None:
        raise ConvergenceError(
            f"optimization failed for all {len(initial_points)} initial points"
        ) from failure
    return current_minimizer


def empirical_initial_points(num_restarts: int = 3, noise: bool = True) -> InitialPoints:
    """
    Data-driven initial points for stationary kernels with `variance` and `lengthscale`.

    The signal variance starts at the empirical variance of the observations.
    Lengthscales are spread log-uniformly between the smallest gap between distinct points
    and the diameter of the observed points; they are bounded by a tenth of the former and
    ten times the latter. If `noise`, the noise variance starts at a hundredth of the empirical variance.
    """

    def initial_points(
        X: Float[Array, "n d"], y: Float[Array, "n"]
    ) -> List[Hyperparameters]:
        var = jnp.maximum(jnp.var(y), 1e-6)
        distances = jnp.linalg.norm(X[:, None] - X[None, :], axis=2)
        diameter = jnp.maximum(jnp.max(distances), 1e-3)
        positive = jnp.where(distances > 0, distances, jnp.inf)
        min_gap = jnp.minimum(jnp.min(positive), diameter)
        lower, upper = 0.1 * min_gap, 10.0 * diameter
        points = []
        for lengthscale in jnp.geomspace(min_gap, diameter, num_restarts):
            points.append(
                Hyperparameters(
                    kernel={
                        "variance": bounded(var, 1e-3 * var, 1e3 * var),
                        "lengthscale": bounded(lengthscale, lower, upper),
                    },
                    noise_var=bounded(1e-2 * var, 1e-8 * var, var) if noise else None,
                )
            )
        return points

    return initial_points
