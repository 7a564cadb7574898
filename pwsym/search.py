"""Point-group symmetry detection.

The search proceeds in two stages:
1. Lattice symmetries: integer matrices m (acting on fractional
   coordinates) that leave the metric tensor invariant, m^T G m = G.
2. Basis reduction: the subset of those that map every atom onto an atom
   of the same species, about a chosen origin.

Symmetry sets are (nsym, 3, 3) integer numpy arrays.
"""

import itertools

import numpy as np

from pwsym.constants import MIN_SYMM_TOL, MIN_KPT_DISTANCE
from pwsym.crystal import Species
from pwsym.errors import SymmetryError, SymmetryErrorKind
from pwsym.lattice import (
    metric_tensor, matrix_norm, circ_distance_squared, reduce_lattice,
    format_matrix,
)

# All 3^9 integer matrices with entries in {-1, 0, 1}, m[0, 0] varying slowest
_CANDIDATES = np.array(
    list(itertools.product((-1, 0, 1), repeat=9)), dtype=int
).reshape(-1, 3, 3)


def lattice_symmetries(a: np.ndarray, tol: float = MIN_SYMM_TOL,
                       verbose: bool = False) -> np.ndarray:
    """Find all symmetries of the Bravais lattice.

    The lattice is first reduced towards minimal norm, then every integer
    matrix with entries in {-1, 0, 1} is tested against the reduced metric.
    Accepted matrices are transformed back to the original basis.

    Args:
        a: (3, 3) lattice vectors (rows).
        tol: Tolerance on ||G - m^T G m||.
        verbose: Print the transmission matrix when the lattice was reduced.

    Returns:
        (nsym, 3, 3) integer symmetry matrices in the original basis.
    """
    a = np.asarray(a, dtype=float)
    a_reduced, transmission, inv_transmission = reduce_lattice(a, tol)

    metric = metric_tensor(a_reduced)
    transformed = np.einsum('nji,jk,nkl->nil', _CANDIDATES, metric, _CANDIDATES)
    residual = np.sqrt(np.sum((metric[None] - transformed) ** 2, axis=(1, 2)))
    sym = _CANDIDATES[residual < tol]

    if matrix_norm(a_reduced - a) > tol * matrix_norm(a_reduced):
        if verbose:
            print("  Non-trivial transmission matrix:")
            print(format_matrix(transmission))
            print("  with reduced lattice vectors (rows):")
            print(format_matrix(a_reduced, " {:12.6f} "))
        sym = np.einsum('ij,njk,kl->nil', transmission, sym, inv_transmission)

    return sym


def _has_image(mapped: np.ndarray, positions: np.ndarray, tol: float) -> np.ndarray:
    """For each mapped position, whether some atom lies within tolerance."""
    dist2 = circ_distance_squared(mapped[:, None, :], positions[None, :, :])
    return np.any(dist2 < tol, axis=1)


def basis_reduce(sym_lattice: np.ndarray, species: list[Species],
                 offset: np.ndarray | None = None,
                 tol: float = MIN_SYMM_TOL) -> np.ndarray:
    """Restrict lattice symmetries to those respected by the atoms.

    A matrix m is kept if, for every species, each atom image
    offset + m (x - offset) coincides (modulo the lattice) with an atom of
    the same species.

    Args:
        sym_lattice: (nsym, 3, 3) candidate matrices.
        species: Atoms grouped by species.
        offset: (3,) fractional origin of the point group. Default: origin.
        tol: Tolerance on the squared circular distance.

    Returns:
        (nkept, 3, 3) matrices, in the input order.
    """
    offset = np.zeros(3) if offset is None else np.asarray(offset, dtype=float)
    kept = []
    for m in sym_lattice:
        symmetric = True
        for sp in species:
            if sp.natom == 0:
                continue
            mapped = offset + (sp.positions - offset) @ m.T
            if not np.all(_has_image(mapped, sp.positions, tol)):
                symmetric = False
                break
        if symmetric:
            kept.append(m)
    return np.array(kept, dtype=int).reshape(-1, 3, 3)


def sort_symmetries(sym: np.ndarray) -> np.ndarray:
    """Return a copy with the identity swapped into position 0."""
    sym = np.array(sym, dtype=int).reshape(-1, 3, 3)
    identity = np.eye(3, dtype=int)
    for i in range(1, len(sym)):
        if np.array_equal(sym[i], identity):
            sym[[0, i]] = sym[[i, 0]]
    return sym


def check_closure(sym: np.ndarray) -> None:
    """Verify that the product of any two matrices is also in the set.

    Raises:
        SymmetryError: GROUP_NOT_CLOSED, naming the offending pair.
    """
    members = {tuple(m.ravel()) for m in sym}
    for i, m1 in enumerate(sym):
        for j, m2 in enumerate(sym):
            if tuple((m1 @ m2).ravel()) not in members:
                raise SymmetryError(
                    SymmetryErrorKind.GROUP_NOT_CLOSED,
                    f"Product of symmetry matrices {i} and {j} is not a symmetry:\n"
                    f"{format_matrix(m1)}\n  times\n{format_matrix(m2)}",
                )


def center_candidates(species: list[Species]) -> list[np.ndarray]:
    """Atom positions and midpoints of same-species atom pairs."""
    candidates = []
    for sp in species:
        for n1 in range(sp.natom):
            candidates.append(sp.positions[n1])
            for n2 in range(n1):
                candidates.append(0.5 * (sp.positions[n1] + sp.positions[n2]))
    return candidates


def find_symmetry_center(sym_lattice: np.ndarray, species: list[Species],
                         current: np.ndarray, tol: float = MIN_SYMM_TOL
                         ) -> tuple[np.ndarray | None, np.ndarray]:
    """Search candidate origins for one admitting more symmetries.

    Args:
        sym_lattice: (nsym, 3, 3) lattice symmetries.
        species: Atoms grouped by species.
        current: Symmetries found with the current origin.
        tol: Symmetry tolerance.

    Returns:
        center: Best fractional origin, or None if no candidate beats the
            current origin.
        sym: Symmetries about that origin (``current`` if center is None).
    """
    center = None
    best = current
    for candidate in center_candidates(species):
        sym_candidate = basis_reduce(sym_lattice, species, candidate, tol)
        if len(sym_candidate) > len(best):
            center = np.array(candidate, dtype=float)
            best = sym_candidate
    return center, best


def check_symmetries(sym: np.ndarray, species: list[Species],
                     tol: float = MIN_SYMM_TOL) -> None:
    """Check manually specified matrices against the atomic positions.

    Raises:
        SymmetryError: MANUAL_MISMATCH for the first atom without an image.
    """
    for isym, m in enumerate(sym):
        for sp in species:
            if sp.natom == 0:
                continue
            found = _has_image(sp.positions @ m.T, sp.positions, tol)
            if not np.all(found):
                atom = int(np.argmin(found))
                raise SymmetryError(
                    SymmetryErrorKind.MANUAL_MISMATCH,
                    f"Symmetries do not agree with atomic positions: matrix {isym}\n"
                    f"{format_matrix(m)}\nmaps {sp.name} atom {atom} onto no atom.",
                )


def check_kmesh(sym: np.ndarray, kpoints: np.ndarray, kweights: np.ndarray,
                tol: float = MIN_KPT_DISTANCE) -> np.ndarray:
    """Find the subgroup of symmetries that maps the k-mesh onto itself.

    A k-point k maps to m^T k. The image must match a mesh point within
    ``tol`` (squared circular distance) and carry the same weight.

    Args:
        sym: (nsym, 3, 3) symmetries.
        kpoints: (nk, 3) k-points in reciprocal-lattice coordinates.
        kweights: (nk,) weights.
        tol: Matching tolerance.

    Returns:
        (nsub, 3, 3) subgroup, in the input order.
    """
    kpoints = np.asarray(kpoints, dtype=float).reshape(-1, 3)
    kweights = np.asarray(kweights, dtype=float)
    same_weight = np.abs(kweights[:, None] - kweights[None, :]) < tol

    kept = []
    for m in sym:
        mapped = kpoints @ m      # rows of (m^T k)
        dist2 = circ_distance_squared(mapped[:, None, :], kpoints[None, :, :])
        if np.all(np.any((dist2 < tol) & same_weight, axis=1)):
            kept.append(m)
    return np.array(kept, dtype=int).reshape(-1, 3, 3)


def build_atom_map(sym: np.ndarray, species: list[Species],
                   tol: float = MIN_SYMM_TOL) -> list[np.ndarray]:
    """Map each atom to its image under each symmetry.

    Args:
        sym: (nsym, 3, 3) symmetries about the origin.
        species: Atoms grouped by species.
        tol: Tolerance on the squared circular distance.

    Returns:
        One (natom_sp, nsym) integer array per species; entry [a, s] is the
        index (within the species) of the image of atom a under sym[s].

    Raises:
        SymmetryError: MISSING_ATOM_IMAGE if an image is not found,
            MOVE_SCALE_MISMATCH if related atoms have different move scales.
    """
    atom_map = []
    for sp in species:
        amap = np.zeros((sp.natom, len(sym)), dtype=int)
        for isym, m in enumerate(sym):
            mapped = sp.positions @ m.T
            dist2 = circ_distance_squared(mapped[:, None, :], sp.positions[None, :, :])
            for at1 in range(sp.natom):
                matches = np.flatnonzero(dist2[at1] < tol)
                if len(matches) == 0:
                    raise SymmetryError(
                        SymmetryErrorKind.MISSING_ATOM_IMAGE,
                        f"Species {sp.name} atom# {at1} has no image under "
                        f"symmetry matrix {isym}:\n{format_matrix(m)}",
                    )
                # Every atom within tolerance of the image must share the move scale
                for at2 in matches:
                    if sp.move_scale[at1] != sp.move_scale[at2]:
                        raise SymmetryError(
                            SymmetryErrorKind.MOVE_SCALE_MISMATCH,
                            f"Species {sp.name} atom# {at1} and {at2} are related by "
                            f"symmetry but have different move scale factors "
                            f"{sp.move_scale[at1]:f} != {sp.move_scale[at2]:f}.",
                        )
                amap[at1, isym] = int(matches[0])
        atom_map.append(amap)
    return atom_map
