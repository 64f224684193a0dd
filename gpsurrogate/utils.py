from typing import Tuple
from jax import jit
import jax.numpy as jnp
import jax.scipy.linalg as jsl
from jaxtyping import Array, Float
from gpsurrogate.typing import ScalarFloat


@jit
def solve_linear_system(
    A: Float[Array, "n n"], B: Float[Array, "n k"]
) -> Tuple[Float[Array, "n k"], Float[Array, "n n"]]:
    r"""
    Solves the linear system $\mathbf{A} \mathbf{X} = \mathbf{B}$ for $\mathbf{X}$.
    Assumes that $\mathbf{A}$ is positive definite.

    Returns the solution $\mathbf{X}$ and the lower Cholesky factor $\mathbf{L}$.
    """
    L = jnp.linalg.cholesky(A)
    X = jsl.cho_solve((L, True), B)
    return X, L


@jit
def extend_cholesky(
    L: Float[Array, "n n"],
    K_xz: Float[Array, "n m"],
    K_zz: Float[Array, "m m"],
) -> Float[Array, "p p"]:
    r"""
    Given the lower Cholesky factor $\mathbf{L}$ of $\mathbf{A}$, returns the lower Cholesky factor of
    $\begin{bmatrix} \mathbf{A} & \mathbf{K}_{xz} \\ \mathbf{K}_{xz}^\top & \mathbf{K}_{zz} \end{bmatrix}$.
    """
    B = jsl.solve_triangular(L, K_xz, lower=True)
    C = jnp.linalg.cholesky(K_zz - B.T @ B)
    n, m = K_xz.shape
    return jnp.block([[L, jnp.zeros((n, m), dtype=L.dtype)], [B.T, C]])


def noise_covariance_matrix(
    k: int, noise_var: ScalarFloat | None, default: float = 0
) -> Float[Array, "k k"]:
    """Return a diagonal matrix of noise variances."""
    if noise_var is None:
        noise_var = default
    return jnp.identity(k) * noise_var
