"""High-level symmetry analysis interface."""

from dataclasses import dataclass, field

import numpy as np

from pwsym.config import SymmetryConfig
from pwsym.crystal import Crystal
from pwsym.grid import fft_grid_for_cutoff, commensurate_fft_grid
from pwsym.kpoints import monkhorst_pack
from pwsym.search import lattice_symmetries, basis_reduce
from pwsym.symmetries import SymmetryContext, Symmetries, setup_symmetries


@dataclass
class SymmetryCalculator:
    """Set up symmetries for a plane-wave calculation on a crystal.

    Example usage:
        crystal = Crystal.from_angstrom(lattice, species, positions,
                                        coords_are_fractional=True)
        calc = SymmetryCalculator(ecut=10.0, kgrid=(4, 4, 4))
        symmetries = calc.run(crystal)
        rho = symmetries.symmetrize(rho)
    """
    ecut: float = 10.0                               # Cutoff used to size the FFT box (Hartree)
    fft_grid: tuple[int, int, int] | None = None     # Explicit FFT box (overrides ecut)
    kgrid: tuple[int, int, int] | None = None        # Monkhorst-Pack grid (None for no k-mesh check)
    kshift: tuple[float, float, float] = (0.0, 0.0, 0.0)
    round_grid: bool = True                          # Enlarge FFT box until commensurate
    symmetry: SymmetryConfig = field(default_factory=SymmetryConfig)

    def choose_fft_grid(self, crystal: Crystal) -> tuple[int, int, int]:
        """FFT box for the crystal, enlarged to fit its symmetries if requested."""
        grid = self.fft_grid
        if grid is None:
            grid = fft_grid_for_cutoff(crystal.a, self.ecut)
        grid = tuple(int(n) for n in grid)
        if not self.round_grid:
            return grid

        config = self.symmetry
        if config.mode == "none":
            return grid
        if config.mode == "manual":
            sym = config.manual_matrices()
        else:
            sym = basis_reduce(lattice_symmetries(crystal.a, config.symm_tol),
                               crystal.species_info(), None, config.symm_tol)
        return commensurate_fft_grid(sym, grid)

    def run(self, crystal: Crystal) -> Symmetries:
        """Find the symmetries of a crystal.

        Args:
            crystal: Crystal structure.

        Returns:
            Symmetries ready to symmetrize fields and forces.
        """
        fft_grid = self.choose_fft_grid(crystal)

        kpoints = None
        kweights = None
        if self.kgrid is not None:
            kpoints, kweights = monkhorst_pack(self.kgrid, crystal.b, self.kshift)

        context = SymmetryContext.from_crystal(crystal, fft_grid, kpoints, kweights)
        return setup_symmetries(context, self.symmetry)

    @staticmethod
    def print_summary(symmetries: Symmetries):
        """Print a summary of the symmetry setup."""
        print("\n" + "=" * 50)
        print("  Symmetry Summary")
        print("=" * 50)
        print(f"  Mode: {symmetries.mode}")
        print(f"  Point-group symmetries: {symmetries.n_sym}")
        print(f"  K-mesh symmetries: {len(symmetries.kmesh_matrices)}")
        if symmetries.symm_index is not None:
            print(f"  Grid orbits: {symmetries.symm_index.shape[0]}")
        # Smallest atom index in each orbit labels the orbit
        n_orbits = [len(np.unique(amap.min(axis=1))) for amap in symmetries.atom_map]
        print(f"  Inequivalent atoms per species: {n_orbits}")
        print("=" * 50)
