"""Crystal structure definition."""

from dataclasses import dataclass
from typing import Optional

import jax.numpy as jnp
import numpy as np

from pwsym.constants import ANGSTROM_TO_BOHR
from pwsym.lattice import (
    reciprocal_lattice, cell_volume, fractional_to_cartesian, cartesian_to_fractional,
)


@dataclass
class Species:
    """Atoms of one element, as seen by the symmetry search.

    Attributes:
        name: Element symbol.
        indices: (n,) indices of these atoms in the parent crystal.
        positions: (n, 3) fractional (lattice) coordinates.
        move_scale: (n,) per-atom move scale factors.
    """
    name: str
    indices: np.ndarray
    positions: np.ndarray
    move_scale: np.ndarray

    @property
    def natom(self) -> int:
        return len(self.indices)

    def translated(self, shift: np.ndarray) -> "Species":
        """Copy with every position moved by a fractional shift."""
        return Species(
            name=self.name,
            indices=self.indices.copy(),
            positions=self.positions + np.asarray(shift, dtype=float),
            move_scale=self.move_scale.copy(),
        )


@dataclass
class Crystal:
    """Represents a periodic crystal structure.

    All internal quantities are stored in atomic units (Bohr).

    Attributes:
        a: (3, 3) real-space lattice vectors as rows, in Bohr.
        species: List of element symbols, one per atom.
        positions: (natom, 3) Cartesian atomic positions in Bohr.
        move_scale: (natom,) scale factors applied to ionic moves. Atoms
            related by symmetry must share the same value. Defaults to 1.
    """
    a: jnp.ndarray
    species: list[str]
    positions: jnp.ndarray
    move_scale: Optional[jnp.ndarray] = None

    @classmethod
    def from_angstrom(
        cls,
        lattice_vectors: np.ndarray,
        species: list[str],
        positions: np.ndarray,
        move_scale: Optional[np.ndarray] = None,
        coords_are_fractional: bool = False,
    ) -> "Crystal":
        """Create a Crystal from quantities given in Angstroms.

        Args:
            lattice_vectors: (3, 3) lattice vectors in Angstroms (rows).
            species: List of element symbols.
            positions: (natom, 3) positions in Angstroms (or fractional if flag set).
            move_scale: Optional (natom,) move scale factors.
            coords_are_fractional: If True, positions are fractional coordinates.

        Returns:
            Crystal instance in atomic units.
        """
        a = jnp.array(lattice_vectors, dtype=jnp.float64) * ANGSTROM_TO_BOHR

        if coords_are_fractional:
            frac = jnp.array(positions, dtype=jnp.float64)
            cart = fractional_to_cartesian(frac, a)
        else:
            cart = jnp.array(positions, dtype=jnp.float64) * ANGSTROM_TO_BOHR

        if move_scale is not None:
            move_scale = jnp.array(move_scale, dtype=jnp.float64)
        return cls(a=a, species=list(species), positions=cart, move_scale=move_scale)

    @classmethod
    def from_fractional(
        cls,
        a: np.ndarray,
        species: list[str],
        frac_positions: np.ndarray,
        move_scale: Optional[np.ndarray] = None,
    ) -> "Crystal":
        """Create a Crystal from lattice vectors in Bohr and fractional positions."""
        a = jnp.array(a, dtype=jnp.float64)
        frac = jnp.array(frac_positions, dtype=jnp.float64).reshape(-1, 3)
        if move_scale is not None:
            move_scale = jnp.array(move_scale, dtype=jnp.float64)
        return cls(a=a, species=list(species),
                   positions=fractional_to_cartesian(frac, a), move_scale=move_scale)

    @property
    def natom(self) -> int:
        return len(self.species)

    @property
    def b(self) -> jnp.ndarray:
        """Reciprocal lattice vectors (rows), in 1/Bohr."""
        return reciprocal_lattice(self.a)

    @property
    def volume(self) -> jnp.ndarray:
        """Unit cell volume in Bohr^3."""
        return cell_volume(self.a)

    @property
    def fractional_positions(self) -> jnp.ndarray:
        """Atomic positions in fractional coordinates."""
        return cartesian_to_fractional(self.positions, self.a)

    @property
    def move_scales(self) -> np.ndarray:
        if self.move_scale is None:
            return np.ones(self.natom)
        return np.asarray(self.move_scale, dtype=float)

    def species_info(self) -> list[Species]:
        """Group atoms by element, in order of first appearance."""
        frac = np.asarray(self.fractional_positions, dtype=float).reshape(-1, 3)
        scales = self.move_scales
        names = list(dict.fromkeys(self.species))
        groups = []
        for name in names:
            idx = np.array([i for i, s in enumerate(self.species) if s == name], dtype=int)
            groups.append(Species(name=name, indices=idx,
                                  positions=frac[idx], move_scale=scales[idx]))
        return groups

    def translated(self, shift: np.ndarray) -> "Crystal":
        """Return a copy with every atom moved by a fractional shift."""
        shift_cart = fractional_to_cartesian(jnp.asarray(shift, dtype=jnp.float64), self.a)
        return Crystal(a=self.a, species=list(self.species),
                       positions=self.positions + shift_cart[None, :],
                       move_scale=self.move_scale)
