"""K-point generation and folding utilities."""

from typing import Callable

import jax.numpy as jnp
import numpy as np


def monkhorst_pack(nk: tuple[int, int, int], b: jnp.ndarray,
                   shift: tuple[float, float, float] = (0.0, 0.0, 0.0)
                   ) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Generate a Monkhorst-Pack k-point grid.

    k_{n1,n2,n3} = ((2*n_i - N_i - 1) / (2*N_i) + shift_i) * b_i

    Reference: H. J. Monkhorst, J. D. Pack, Phys. Rev. B 13, 5188 (1976).

    Args:
        nk: (nk1, nk2, nk3) k-point grid dimensions.
        b: (3, 3) reciprocal lattice vectors (rows).
        shift: (s1, s2, s3) optional shift in fractional reciprocal coordinates.

    Returns:
        kpoints: (nk_total, 3) k-points in Cartesian reciprocal coordinates.
        weights: (nk_total,) integration weights (sum to 1).
    """
    nk1, nk2, nk3 = nk
    total = nk1 * nk2 * nk3

    f1 = (2.0 * np.arange(nk1) - nk1 + 1) / (2.0 * nk1) + shift[0]
    f2 = (2.0 * np.arange(nk2) - nk2 + 1) / (2.0 * nk2) + shift[1]
    f3 = (2.0 * np.arange(nk3) - nk3 + 1) / (2.0 * nk3) + shift[2]

    g1, g2, g3 = np.meshgrid(f1, f2, f3, indexing='ij')
    frac_kpts = np.stack([g1.ravel(), g2.ravel(), g3.ravel()], axis=-1)

    # Convert to Cartesian: k = frac @ b
    kpoints = jnp.array(frac_kpts) @ b
    weights = jnp.ones(total) / total

    return kpoints, weights


def kpoints_to_fractional(kpoints: jnp.ndarray, b: jnp.ndarray) -> np.ndarray:
    """Convert Cartesian k-points to reciprocal-lattice (fractional) coordinates.

    Args:
        kpoints: (nk, 3) k-points in Cartesian coords.
        b: (3, 3) reciprocal lattice vectors (rows).

    Returns:
        (nk, 3) numpy array of fractional k-points.
    """
    return np.asarray(jnp.asarray(kpoints) @ jnp.linalg.inv(b), dtype=float)


def reduce_kpoints(kpoints: jnp.ndarray, weights: jnp.ndarray, b: jnp.ndarray,
                   equivalent: Callable[[np.ndarray, np.ndarray], bool]
                   ) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Fold a k-point set using an equivalence predicate.

    Each k-point is compared against the k-points kept so far; if it is
    equivalent to one of them, its weight is added to that point,
    otherwise it is kept. The total weight is preserved.

    Args:
        kpoints: (nk, 3) k-points in Cartesian coords.
        weights: (nk,) weights.
        b: (3, 3) reciprocal lattice vectors.
        equivalent: Predicate on two fractional k-points, e.g.
            Symmetries.kpoints_equivalent.

    Returns:
        Reduced kpoints (Cartesian) and weights.
    """
    frac = kpoints_to_fractional(kpoints, b)
    weights_np = np.array(weights, dtype=float)

    kept = []
    new_weights = []
    for i in range(len(frac)):
        for j, ik in enumerate(kept):
            if equivalent(frac[ik], frac[i]):
                new_weights[j] += weights_np[i]
                break
        else:
            kept.append(i)
            new_weights.append(weights_np[i])

    kept = np.array(kept, dtype=int)
    return jnp.array(np.array(kpoints)[kept]), jnp.array(new_weights)


def time_reversal_equivalent(k1: np.ndarray, k2: np.ndarray, tol: float = 1e-8) -> bool:
    """True if k2 equals k1 or -k1 modulo a reciprocal lattice vector."""
    for sign in (1.0, -1.0):
        diff = sign * k1 - k2
        diff = diff - np.round(diff)
        if np.linalg.norm(diff) < tol:
            return True
    return False


def reduce_kpoints_time_reversal(kpoints: jnp.ndarray, weights: jnp.ndarray,
                                  b: jnp.ndarray, tol: float = 1e-8
                                  ) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Reduce k-point set using time-reversal symmetry: k ~ -k."""
    return reduce_kpoints(
        kpoints, weights, b,
        lambda k1, k2: time_reversal_equivalent(k1, k2, tol),
    )
