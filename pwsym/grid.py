"""FFT grid selection and symmetry operations on the real-space mesh.

A symmetry m maps the grid point with integer indices r (fractional
position r / S) to Diag(S) m Diag(S)^{-1} r. The grid is commensurate with
the symmetry when this mesh matrix is integral.
"""

import itertools

import jax.numpy as jnp
import numpy as np

from pwsym.errors import SymmetryError, SymmetryErrorKind
from pwsym.lattice import reciprocal_lattice, format_matrix


def next_fft_size(n: int) -> int:
    """Find next integer >= n that factors only into 2, 3, 5 (efficient FFT size)."""
    if n <= 1:
        return 1
    while True:
        m = n
        for p in [2, 3, 5]:
            while m % p == 0:
                m //= p
        if m == 1:
            return n
        n += 1


def fft_grid_for_cutoff(a: jnp.ndarray, ecut: float) -> tuple[int, int, int]:
    """FFT grid dimensions able to hold all G-vectors with |G|^2/2 <= ecut.

    Args:
        a: (3, 3) lattice vectors (rows) in Bohr.
        ecut: Plane-wave kinetic energy cutoff in Hartree.

    Returns:
        (n1, n2, n3) FFT grid dimensions.
    """
    b = reciprocal_lattice(a)
    g_max = np.sqrt(2.0 * ecut)
    b_lengths = np.linalg.norm(np.array(b), axis=1)
    n_grid = np.array(2 * np.ceil(g_max / b_lengths) + 1, dtype=int)
    return tuple(next_fft_size(int(n)) for n in n_grid)


def _mesh_matrix(m: np.ndarray, fft_grid: tuple[int, int, int]) -> np.ndarray | None:
    """Diag(S) m Diag(S)^{-1}, or None if any entry is not integral."""
    s = np.asarray(fft_grid, dtype=int)
    scaled = s[:, None] * m
    if np.any(scaled % s[None, :] != 0):
        return None
    return scaled // s[None, :]


def mesh_matrices(sym: np.ndarray, fft_grid: tuple[int, int, int]) -> np.ndarray:
    """Convert lattice-coordinate symmetries into grid-index symmetries.

    Args:
        sym: (nsym, 3, 3) integer symmetry matrices.
        fft_grid: (n1, n2, n3) grid dimensions.

    Returns:
        (nsym, 3, 3) integer mesh matrices.

    Raises:
        SymmetryError: GRID_NOT_COMMENSURATE for the first matrix that does
            not map grid points onto grid points.
    """
    result = []
    for isym, m in enumerate(sym):
        m_mesh = _mesh_matrix(m, fft_grid)
        if m_mesh is None:
            raise SymmetryError(
                SymmetryErrorKind.GRID_NOT_COMMENSURATE,
                f"FFT box {tuple(fft_grid)} not commensurate with symmetry matrix "
                f"{isym}:\n{format_matrix(m)}",
            )
        result.append(m_mesh)
    return np.array(result, dtype=int).reshape(-1, 3, 3)


def is_commensurate(sym: np.ndarray, fft_grid: tuple[int, int, int]) -> bool:
    """True if every symmetry maps grid points onto grid points."""
    return all(_mesh_matrix(m, fft_grid) is not None for m in sym)


def commensurate_fft_grid(sym: np.ndarray, fft_grid: tuple[int, int, int],
                          max_factor: int = 2) -> tuple[int, int, int]:
    """Smallest FFT-friendly grid, at least ``fft_grid``, commensurate with sym.

    Candidate sizes in each direction are the 2,3,5-smooth integers between
    the requested size and ``max_factor`` times the largest requested size.
    Grids are tried in order of increasing point count.

    Raises:
        SymmetryError: GRID_NOT_COMMENSURATE if no candidate works.
    """
    fft_grid = tuple(int(n) for n in fft_grid)
    if is_commensurate(sym, fft_grid):
        return fft_grid
    limit = max_factor * max(fft_grid)
    sizes = [
        [n for n in range(s, limit + 1) if next_fft_size(n) == n]
        for s in fft_grid
    ]
    for grid in sorted(itertools.product(*sizes), key=lambda g: (np.prod(g), g)):
        if is_commensurate(sym, grid):
            return tuple(int(n) for n in grid)
    raise SymmetryError(
        SymmetryErrorKind.GRID_NOT_COMMENSURATE,
        f"No FFT box between {fft_grid} and {limit} per dimension is "
        "commensurate with the symmetries",
    )


def _flat_images(m: np.ndarray, idx: np.ndarray, fft_grid: tuple[int, int, int]) -> np.ndarray:
    """Flat indices of the images m @ idx, wrapped into the box.

    Args:
        m: (3, 3) mesh matrix.
        idx: (3, npoints) int32 grid indices.
        fft_grid: (n1, n2, n3) grid dimensions.

    Returns:
        (npoints,) int32 flat (C-order) indices.
    """
    m = np.asarray(m, dtype=np.int32)
    flat = np.zeros(idx.shape[1], dtype=np.int32)
    for c, n in enumerate(fft_grid):
        flat *= n
        flat += (m[c] @ idx) % n
    return flat


def symmetry_index(mesh_mats: np.ndarray, fft_grid: tuple[int, int, int]) -> np.ndarray:
    """Group the grid points into symmetry orbits.

    Row i of the result lists the flat (C-order) indices of the images of
    one representative point under every mesh matrix. Each point belongs to
    exactly one row; rows are ordered by the smallest flat index of their
    orbit, which is also the representative. Degenerate orbits (points
    fixed by some operations) contain repeated indices.

    Working memory is a few arrays of one entry per grid point, independent
    of the number of symmetries.

    Args:
        mesh_mats: (nsym, 3, 3) mesh matrices forming a group.
        fft_grid: (n1, n2, n3) grid dimensions.

    Returns:
        (nclasses, nsym) int32 array.
    """
    fft_grid = tuple(int(n) for n in fft_grid)
    idx = np.indices(fft_grid, dtype=np.int32).reshape(3, -1)

    # Smallest image of each point; for a group this is the orbit minimum
    orbit_min = np.arange(idx.shape[1], dtype=np.int32)
    for m in mesh_mats:
        np.minimum(orbit_min, _flat_images(m, idx, fft_grid), out=orbit_min)
    reps = np.flatnonzero(orbit_min == np.arange(idx.shape[1], dtype=np.int32))

    idx_reps = idx[:, reps]
    table = np.empty((len(reps), len(mesh_mats)), dtype=np.int32)
    for isym, m in enumerate(mesh_mats):
        table[:, isym] = _flat_images(m, idx_reps, fft_grid)
    return table
