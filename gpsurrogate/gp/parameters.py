r"""
Hyperparameters of a Gaussian process surrogate and their box-constrained parameterization.

Hyperparameters are pytrees. Leaves wrapped in `Bounded` are constrained to an open interval
$(l, u)$ and are mapped onto $\mathbb{R}$ by the scaled logit
$\theta \mapsto \log \frac{\theta - l}{u - \theta}$.
All other leaves are unconstrained.
`flatten` concatenates the unconstrained representation of all leaves into a single vector
which can be handed to an unconstrained optimizer.
"""

from __future__ import annotations
import math
from dataclasses import field
from functools import partial
from itertools import accumulate
from typing import Any, Callable, List, Tuple
from chex import dataclass
import jax
import jax.numpy as jnp
from jax.scipy.special import logit
from jaxtyping import Array, Float
from gpsurrogate.errors import ArgumentError, ShapeError
from gpsurrogate.typing import KernelHyperparameters, PyTree


@dataclass
class Hyperparameters:
    """
    Hyperparameters of a surrogate: those of its kernel and the observation noise variance.
    `noise_var` is never passed to the kernel.
    """

    kernel: KernelHyperparameters = field(default_factory=dict)
    """Named (possibly nested) kernel hyperparameters, passed to the kernel creator."""
    noise_var: Any = None
    """Observation noise variance. If `None`, observations are noise-free."""


@dataclass(frozen=True, eq=False, mappable_dataclass=False)
class Bounded:
    """
    A hyperparameter value constrained to the open box `(lower, upper)`.
    A pytree, so that bounds can be passed to jitted functions as arguments.
    """

    value: Array
    lower: Array
    upper: Array

    def unconstrained(self) -> Array:
        return logit((self.value - self.lower) / (self.upper - self.lower))

    def constrain(self, u: Array) -> Array:
        # sigmoid saturates for large |u|, keep the result strictly inside the box
        eps = jnp.finfo(u.dtype).eps
        s = jnp.clip(jax.nn.sigmoid(u), eps, 1.0 - eps)
        x = self.lower + (self.upper - self.lower) * s
        # relative margins vanish for bounds far from zero, e.g. (1000, 1001)
        return jnp.clip(
            x,
            jnp.nextafter(self.lower, self.upper),
            jnp.nextafter(self.upper, self.lower),
        )


def bounded(value, lower, upper) -> Bounded:
    """
    Marks `value` as constrained to the open interval `(lower, upper)`.
    Bounds are either scalars or arrays of the same shape as `value`.
    """
    value = jnp.asarray(value, dtype=float)
    lower = jnp.asarray(lower, dtype=float)
    upper = jnp.asarray(upper, dtype=float)
    for name, bound in (("lower", lower), ("upper", upper)):
        if bound.shape not in ((), value.shape):
            raise ShapeError(
                f"{name} bound of shape {bound.shape} does not match value of shape {value.shape}"
            )
    if not jnp.all(lower < upper):
        raise ArgumentError(f"empty interval ({lower}, {upper})")
    if not jnp.all((lower < value) & (value < upper)):
        raise ArgumentError(f"{value} is not within ({lower}, {upper})")
    return Bounded(value=value, lower=lower, upper=upper)


def is_bounded(x) -> bool:
    return isinstance(x, Bounded)


def value(h: PyTree) -> PyTree:
    """Replaces all `Bounded` leaves of `h` by their values."""
    return jax.tree_util.tree_map(
        lambda x: x.value if is_bounded(x) else x, h, is_leaf=is_bounded
    )


Unflattener = Callable[[Float[Array, "p"]], PyTree]


def _shape(leaf) -> Tuple[int, ...]:
    return jnp.shape(leaf.value) if is_bounded(leaf) else jnp.shape(leaf)


def unflatten(template: PyTree, v: Float[Array, "p"]) -> PyTree:
    """
    Inverse of `flatten(template)`: maps the unconstrained vector `v` to a pytree of the
    same structure as `template` where `Bounded` leaves are replaced by values strictly within their bounds.
    Only the shapes and bounds of `template` are used, so `template` may be traced.
    """
    leaves, treedef = jax.tree_util.tree_flatten(template, is_leaf=is_bounded)
    shapes = [_shape(leaf) for leaf in leaves]
    offsets = [0, *accumulate(math.prod(shape) for shape in shapes)]
    p = offsets[-1]
    if v.shape != (p,):
        raise ShapeError(f"expected a vector of shape {(p,)}, got {v.shape}")
    new_leaves = []
    for leaf, shape, start, stop in zip(leaves, shapes, offsets[:-1], offsets[1:]):
        u = v[start:stop].reshape(shape)
        new_leaves.append(leaf.constrain(u) if is_bounded(leaf) else u)
    return jax.tree_util.tree_unflatten(treedef, new_leaves)


def flatten(h: PyTree) -> Tuple[Float[Array, "p"], Unflattener]:
    """
    Flattens the (partially bounded) pytree `h` into an unconstrained vector.

    Returns the vector and its inverse map (see `unflatten`).
    Leaves are ordered as in `jax.tree_util.tree_flatten` (dictionaries by sorted keys).
    """
    leaves = jax.tree_util.tree_leaves(h, is_leaf=is_bounded)
    chunks: List[Array] = [
        jnp.ravel(leaf.unconstrained())
        if is_bounded(leaf)
        else jnp.ravel(jnp.asarray(leaf, dtype=float))
        for leaf in leaves
    ]
    flat = jnp.concatenate(chunks) if chunks else jnp.zeros((0,))
    return flat, partial(unflatten, h)
