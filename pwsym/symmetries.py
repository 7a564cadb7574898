"""Symmetry setup pipeline and the runtime symmetry object.

setup_symmetries() runs once per geometry:
1. Find the symmetry matrices (automatic search, manual list, or none)
2. Check the FFT box and build the mesh matrices
3. Check the k-point mesh (warn if it has lower symmetry)
4. Map atoms onto their symmetry images
5. Group grid points into symmetry orbits

The resulting Symmetries object is read-only and is used to symmetrize
densities and forces during the calculation.
"""

from typing import NamedTuple

import jax.numpy as jnp
import numpy as np

from pwsym.config import SymmetryConfig
from pwsym.crystal import Crystal, Species
from pwsym.errors import SymmetryError, SymmetryErrorKind, SymmetryCenterError
from pwsym.grid import mesh_matrices, symmetry_index
from pwsym.kpoints import kpoints_to_fractional
from pwsym.lattice import circ_distance_squared, format_matrix
from pwsym.search import (
    lattice_symmetries, basis_reduce, sort_symmetries, check_closure,
    find_symmetry_center, check_symmetries, check_kmesh, build_atom_map,
)
from pwsym.symmetrize import (
    symmetrize_field, symmetrize_lattice_forces,
    cartesian_to_lattice_forces, lattice_to_cartesian_forces,
)


class SymmetryContext(NamedTuple):
    """Everything the symmetry pipeline reads from the calculation."""
    a: np.ndarray                      # (3, 3) lattice vectors (rows)
    species: list[Species]
    fft_grid: tuple[int, int, int]
    kpoints: np.ndarray | None = None  # (nk, 3) reciprocal-lattice coords
    kweights: np.ndarray | None = None  # (nk,)

    @classmethod
    def from_crystal(cls, crystal: Crystal, fft_grid: tuple[int, int, int],
                     kpoints: jnp.ndarray | None = None,
                     kweights: jnp.ndarray | None = None) -> "SymmetryContext":
        """Build a context from a crystal and Cartesian k-points."""
        kfrac = None
        if kpoints is not None:
            kfrac = kpoints_to_fractional(kpoints, crystal.b)
            if kweights is None:
                kweights = np.ones(len(kfrac)) / len(kfrac)
            kweights = np.asarray(kweights, dtype=float)
        return cls(
            a=np.asarray(crystal.a, dtype=float),
            species=crystal.species_info(),
            fft_grid=tuple(int(n) for n in fft_grid),
            kpoints=kfrac,
            kweights=kweights,
        )


class Symmetries(NamedTuple):
    """Point-group symmetries of a calculation and their derived tables."""
    mode: str
    a: np.ndarray
    matrices: np.ndarray          # (nsym, 3, 3) lattice-coordinate matrices
    mesh_matrices: np.ndarray     # (nsym, 3, 3) grid-index matrices
    kmesh_matrices: np.ndarray    # subgroup leaving the k-mesh invariant
    atom_map: list[np.ndarray]    # per species, (natom_sp, nsym)
    species_indices: list[np.ndarray]  # per species, global atom indices
    symm_index: jnp.ndarray | None  # (nclasses, nsym), None if identity only
    kpt_tol: float

    @property
    def n_sym(self) -> int:
        return len(self.matrices)

    def kpoints_equivalent(self, k1: np.ndarray, k2: np.ndarray) -> bool:
        """True if some symmetry maps k1 onto k2 (reciprocal-lattice coords)."""
        if self.mode == "none":
            return False
        mapped = np.asarray(k1, dtype=float) @ self.matrices   # rows of m^T k1
        return bool(np.any(circ_distance_squared(mapped, k2) < self.kpt_tol))

    def symmetrize(self, field: jnp.ndarray) -> jnp.ndarray:
        """Average a real-space scalar field over symmetry orbits."""
        if self.symm_index is None:
            return field
        return symmetrize_field(field, self.symm_index)

    def symmetrize_forces(self, forces: jnp.ndarray, cartesian: bool = True) -> jnp.ndarray:
        """Symmetrize (natom, 3) forces.

        Args:
            forces: Forces in crystal atom order.
            cartesian: If True, forces are Cartesian; otherwise they are
                covariant lattice components (F . a_i).

        Returns:
            (natom, 3) symmetrized forces in the same representation.
        """
        if self.n_sym <= 1:
            return forces
        forces = jnp.asarray(forces)
        a = jnp.asarray(self.a, dtype=forces.dtype)
        f_lat = cartesian_to_lattice_forces(forces, a) if cartesian else forces
        mats = jnp.asarray(self.matrices, dtype=forces.dtype)

        result = f_lat
        for idx, amap in zip(self.species_indices, self.atom_map):
            if len(idx) == 0:
                continue
            f_sp = symmetrize_lattice_forces(f_lat[idx], jnp.asarray(amap), mats)
            result = result.at[idx].set(f_sp)

        return lattice_to_cartesian_forces(result, a) if cartesian else result


def _print_matrices(sym: np.ndarray):
    for m in sym:
        print(format_matrix(m))
        print()


def _print_positions(species: list[Species]):
    for sp in species:
        for pos in sp.positions:
            print(f"  ion {sp.name:>3s} {pos[0]:19.15f} {pos[1]:19.15f} {pos[2]:19.15f}")


def _calc_symmetries(context: SymmetryContext, config: SymmetryConfig) -> np.ndarray:
    """Automatic search: lattice symmetries, reduced by the atomic basis."""
    verbose = config.verbose
    tol = config.symm_tol
    if verbose:
        print("  Searching for point group symmetries:")

    sym_lattice = lattice_symmetries(context.a, tol, verbose=verbose)
    if verbose:
        print(f"  {len(sym_lattice)} symmetries of the Bravais lattice")

    sym = sort_symmetries(basis_reduce(sym_lattice, context.species, None, tol))
    if verbose:
        print(f"  reduced to {len(sym)} symmetries with basis")
        if config.print_matrices:
            _print_matrices(sym)

    if config.move_atoms:
        center, sym_center = find_symmetry_center(sym_lattice, context.species, sym, tol)
        if center is not None:
            translation = -center
            moved = [sp.translated(translation) for sp in context.species]
            if verbose:
                t = translation
                print(f"\n  Translating atoms by [ {t[0]:g} {t[1]:g} {t[2]:g} ] "
                      f"(in lattice coordinates) will")
                print(f"  increase symmetry count from {len(sym)} to {len(sym_center)}. "
                      "Translated atom positions follow:")
                _print_positions(moved)
            raise SymmetryCenterError(translation, len(sym), len(sym_center), moved)

    return sym


def setup_symmetries(context: SymmetryContext,
                     config: SymmetryConfig | None = None) -> Symmetries:
    """Find symmetries and build all tables needed to apply them.

    Args:
        context: Lattice, atoms, FFT grid and k-points of the calculation.
        config: Symmetry settings (defaults to automatic search).

    Returns:
        Symmetries with the identity as matrix 0.

    Raises:
        SymmetryError: On any inconsistent setup (see SymmetryErrorKind).
    """
    if config is None:
        config = SymmetryConfig()
    verbose = config.verbose
    tol = config.symm_tol

    if verbose:
        print("=" * 60)
        print("  Setting up symmetries")
        print("=" * 60)

    if config.mode == "automatic":
        sym = _calc_symmetries(context, config)
    elif config.mode == "manual":
        sym = config.manual_matrices()
        if len(sym) == 0:
            raise SymmetryError(
                SymmetryErrorKind.NO_MANUAL_MATRICES,
                "Manual symmetries specified without specifying any symmetry matrices.",
            )
        sym = sort_symmetries(sym)
        if verbose:
            print("  Checking manually specified symmetry matrices.")
        check_symmetries(sym, context.species, tol)
    else:
        sym = np.eye(3, dtype=int)[None]

    check_closure(sym)

    sym_mesh = mesh_matrices(sym, context.fft_grid)

    if context.kpoints is not None:
        kweights = context.kweights
        if kweights is None:
            kweights = np.ones(len(context.kpoints)) / len(context.kpoints)
        sym_kmesh = check_kmesh(sym, context.kpoints, kweights, config.kpt_tol)
        if len(sym_kmesh) < len(sym) and verbose:
            print(f"\n  WARNING: k-mesh symmetries are a subgroup of size {len(sym_kmesh)}")
            if config.print_matrices:
                _print_matrices(sym_kmesh)
            print("  The effectively sampled k-mesh is a superset of the specified one,")
            print("  and the answers need not match those with symmetries turned off.")
    else:
        sym_kmesh = sym.copy()

    atom_map = build_atom_map(sym, context.species, tol)
    if verbose and config.print_matrices and len(sym) > 1:
        print("\n  Mapping of atoms according to symmetries:")
        for sp, amap in zip(context.species, atom_map):
            for at1, row in enumerate(amap):
                print(f"  {sp.name} {at1:3d}: " + "".join(f" {at2:3d}" for at2 in row))

    symm_index = None
    if len(sym) > 1:
        symm_index = jnp.asarray(symmetry_index(sym_mesh, context.fft_grid))

    if verbose:
        print(f"  Found {len(sym)} point-group symmetries")

    return Symmetries(
        mode=config.mode,
        a=np.asarray(context.a, dtype=float),
        matrices=sym,
        mesh_matrices=sym_mesh,
        kmesh_matrices=sym_kmesh,
        atom_map=atom_map,
        species_indices=[sp.indices for sp in context.species],
        symm_index=symm_index,
        kpt_tol=config.kpt_tol,
    )
