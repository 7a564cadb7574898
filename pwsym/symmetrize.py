"""Symmetrization of scalar fields and atomic forces.

These kernels run every time a field has to be made symmetric (e.g. once
per SCF iteration), so they are jitted and operate on device arrays. The
orbit averages are independent of each other and each grid point is
written by exactly one orbit, so the scatter needs no synchronization.
"""

import jax
import jax.numpy as jnp


@jax.jit
def symmetrize_field(field: jnp.ndarray, symm_index: jnp.ndarray) -> jnp.ndarray:
    """Replace each grid value by the average over its symmetry orbit.

    Args:
        field: (n1, n2, n3) real-space scalar field.
        symm_index: (nclasses, nsym) flat grid indices, one row per orbit.

    Returns:
        (n1, n2, n3) symmetrized field.
    """
    flat = field.ravel()
    orbit_mean = jnp.mean(flat[symm_index], axis=1)
    flat = flat.at[symm_index].set(
        jnp.broadcast_to(orbit_mean[:, None], symm_index.shape)
    )
    return flat.reshape(field.shape)


@jax.jit
def symmetrize_lattice_forces(forces: jnp.ndarray, atom_map: jnp.ndarray,
                              matrices: jnp.ndarray) -> jnp.ndarray:
    """Symmetrize forces of one species, given in covariant lattice components.

    f'_a = (1/nsym) sum_s m_s^T f_{map(a, s)}

    Args:
        forces: (natom, 3) forces, f_i = F . a_i.
        atom_map: (natom, nsym) image atom indices.
        matrices: (nsym, 3, 3) symmetry matrices.

    Returns:
        (natom, 3) symmetrized forces.
    """
    images = forces[atom_map]  # (natom, nsym, 3)
    return jnp.einsum('sji,asj->ai', matrices, images) / matrices.shape[0]


def cartesian_to_lattice_forces(forces: jnp.ndarray, a: jnp.ndarray) -> jnp.ndarray:
    """Cartesian (natom, 3) forces to covariant lattice components."""
    return forces @ a.T


def lattice_to_cartesian_forces(forces: jnp.ndarray, a: jnp.ndarray) -> jnp.ndarray:
    """Covariant lattice components back to Cartesian forces."""
    return forces @ jnp.linalg.inv(a).T
