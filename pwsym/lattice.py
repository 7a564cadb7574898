"""Lattice geometry primitives.

Lattice vectors are stored as the rows of a (3, 3) array ``a``. Integer
symmetry matrices act on fractional coordinates as column vectors, so the
column matrix of lattice vectors is ``R = a.T`` and the metric tensor is
``R^T R = a a^T``.
"""

import jax.numpy as jnp
import numpy as np

from pwsym.constants import TWO_PI, MIN_SYMM_TOL


def reciprocal_lattice(a: jnp.ndarray) -> jnp.ndarray:
    """Compute reciprocal lattice vectors b from real-space lattice vectors a.

    Given lattice vectors as rows of a (3x3 matrix), computes
    b such that a_i . b_j = 2*pi*delta_ij.

    Args:
        a: (3, 3) array of real-space lattice vectors (rows).

    Returns:
        (3, 3) array of reciprocal lattice vectors (rows).
    """
    return TWO_PI * jnp.linalg.inv(a).T


def cell_volume(a: jnp.ndarray) -> jnp.ndarray:
    """Compute unit cell volume from lattice vectors (rows)."""
    return jnp.abs(jnp.linalg.det(a))


def metric_tensor(a: np.ndarray) -> np.ndarray:
    """Compute the metric tensor g_ij = a_i . a_j.

    Args:
        a: (3, 3) array of lattice vectors (rows).

    Returns:
        (3, 3) metric tensor.
    """
    a = np.asarray(a, dtype=float)
    return a @ a.T


def fractional_to_cartesian(frac_coords: jnp.ndarray, a: jnp.ndarray) -> jnp.ndarray:
    """Convert (..., 3) fractional coordinates to Cartesian."""
    return frac_coords @ a


def cartesian_to_fractional(cart_coords: jnp.ndarray, a: jnp.ndarray) -> jnp.ndarray:
    """Convert (..., 3) Cartesian coordinates to fractional."""
    return cart_coords @ jnp.linalg.inv(a)


def matrix_norm(m: np.ndarray) -> float:
    """Frobenius norm of a 3x3 matrix."""
    return float(np.sqrt(np.sum(np.asarray(m, dtype=float) ** 2)))


def format_matrix(m: np.ndarray, fmt: str = " {:2d} ") -> str:
    """Format a 3x3 matrix one row per line."""
    return "\n".join("".join(fmt.format(x) for x in row) for row in np.asarray(m).tolist())


def circ_distance_squared(x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    """Squared minimum-image distance between fractional coordinates.

    Each component of the difference is wrapped into [-1/2, 1/2] before
    squaring, so points that differ by a lattice vector have zero distance.

    Args:
        x1: (..., 3) fractional coordinates.
        x2: (..., 3) fractional coordinates (broadcast against x1).

    Returns:
        (...,) squared distances in fractional units.
    """
    d = np.asarray(x1, dtype=float) - np.asarray(x2, dtype=float)
    d = d - np.round(d)
    return np.sum(d**2, axis=-1)


def reduce_lattice(a: np.ndarray, tol: float = MIN_SYMM_TOL
                   ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Reduce lattice vectors towards minimal norm.

    Repeatedly adds or subtracts up to one copy of each of the other two
    lattice vectors to a given vector, keeping the change whenever the
    Frobenius norm of the lattice drops by more than ``tol``. Stops after a
    full sweep without changes.

    Args:
        a: (3, 3) lattice vectors (rows).
        tol: Minimum norm decrease for a step to be accepted.

    Returns:
        a_reduced: (3, 3) reduced lattice vectors (rows).
        transmission: (3, 3) integer matrix T with R_reduced = R @ T.
        inv_transmission: (3, 3) integer inverse of T.
    """
    r_reduced = np.array(a, dtype=float).T
    transmission = np.eye(3, dtype=int)
    inv_transmission = np.eye(3, dtype=int)

    while True:
        changed = False
        for k1 in range(3):
            k2 = (k1 + 1) % 3
            k3 = (k1 + 2) % 3
            for i in (-1, 0, 1):
                for j in (-1, 0, 1):
                    # Column k1 gains i copies of column k2 and j of column k3
                    d = np.eye(3, dtype=int)
                    d_inv = np.eye(3, dtype=int)
                    d[k2, k1] = i
                    d[k3, k1] = j
                    d_inv[k2, k1] = -i
                    d_inv[k3, k1] = -j

                    r_proposed = r_reduced @ d
                    if matrix_norm(r_proposed) < matrix_norm(r_reduced) - tol:
                        changed = True
                        r_reduced = r_proposed
                        transmission = transmission @ d
                        inv_transmission = d_inv @ inv_transmission
        if not changed:
            break

    return r_reduced.T, transmission, inv_transmission
