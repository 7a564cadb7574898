"""
Crystal point-group symmetries for plane-wave DFT in JAX.

This package detects and applies the symmetries of a periodic crystal:
- Bravais lattice symmetries from a reduced basis
- Reduction to the symmetries respected by the atomic basis
- Search for a symmetry center with more symmetries
- K-point mesh and FFT grid compatibility checks
- Atom maps and grid-point orbits
- Symmetrization of densities and forces
"""

from pwsym.crystal import Crystal, Species
from pwsym.config import SymmetryConfig
from pwsym.errors import SymmetryError, SymmetryErrorKind, SymmetryCenterError
from pwsym.symmetries import SymmetryContext, Symmetries, setup_symmetries
from pwsym.calculator import SymmetryCalculator

__version__ = "0.1.0"
__all__ = [
    "Crystal", "Species", "SymmetryConfig", "SymmetryError", "SymmetryErrorKind",
    "SymmetryCenterError", "SymmetryContext", "Symmetries", "setup_symmetries",
    "SymmetryCalculator",
]
