"""Example: Hydrogen molecule in a box, symmetry center search.

H2 sits in a cubic box with one atom at the box center and the bond
along x. The center search finds that moving the bond midpoint to the
origin raises the number of symmetries, and reports the new positions.
"""

import jax
import jax.numpy as jnp

jax.config.update("jax_enable_x64", True)

from pwsym import Crystal, SymmetryCalculator, SymmetryConfig, SymmetryCenterError
from pwsym.constants import ANGSTROM_TO_BOHR

# Large cubic box
box_size = 12.0  # Bohr

# H2 molecule: bond length ~ 0.74 Angstrom = 1.40 Bohr
d = 1.40  # Bohr
center = box_size / 2.0

crystal = Crystal(
    a=jnp.eye(3) * box_size,
    species=["H", "H"],
    positions=jnp.array([
        [center, center, center],
        [center + d, center, center],
    ], dtype=jnp.float64),
)

print(f"H2 molecule in {box_size:.1f} Bohr box")
print(f"Bond length: {d:.2f} Bohr ({d / ANGSTROM_TO_BOHR:.2f} Å)")
print()

calc = SymmetryCalculator(
    ecut=10.0,
    symmetry=SymmetryConfig(move_atoms=True),
)

try:
    symmetries = calc.run(crystal)
except SymmetryCenterError as err:
    print(f"\n{err}")
    crystal = crystal.translated(err.translation)
    symmetries = calc.run(crystal)

calc.print_summary(symmetries)
