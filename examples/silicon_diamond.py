"""Example: Symmetries of silicon in the diamond structure.

Finds the point group of bulk silicon, checks a Monkhorst-Pack mesh
against it, and symmetrizes a density and a set of forces.
"""

import jax
import jax.numpy as jnp

# Enable 64-bit precision
jax.config.update("jax_enable_x64", True)

from pwsym import Crystal, SymmetryCalculator, SymmetryConfig
from pwsym.kpoints import monkhorst_pack, reduce_kpoints

# Lattice constant: 5.43 Angstrom
lattice = jnp.array([
    [0.0, 2.715, 2.715],
    [2.715, 0.0, 2.715],
    [2.715, 2.715, 0.0],
], dtype=jnp.float64)

crystal = Crystal.from_angstrom(
    lattice, ["Si", "Si"],
    [[0.00, 0.00, 0.00], [0.25, 0.25, 0.25]],
    coords_are_fractional=True,
)

print(f"Cell volume: {float(crystal.volume):.4f} Bohr^3")
print()

calc = SymmetryCalculator(
    ecut=5.0,
    kgrid=(4, 4, 4),
    kshift=(0.125, 0.125, 0.125),   # Gamma-centered
    symmetry=SymmetryConfig(print_matrices=False),
)
symmetries = calc.run(crystal)
calc.print_summary(symmetries)

# Fold the k-mesh with the point group
kpts, wts = monkhorst_pack(calc.kgrid, crystal.b, calc.kshift)
kpts_red, wts_red = reduce_kpoints(kpts, wts, crystal.b, symmetries.kpoints_equivalent)
print(f"\n  Irreducible k-points: {len(kpts_red)} of {len(kpts)}")

# Symmetrize a random density and random forces
fft_grid = calc.choose_fft_grid(crystal)
rho = jax.random.uniform(jax.random.PRNGKey(0), fft_grid)
rho_sym = symmetries.symmetrize(rho)
print(f"  Density change on symmetrization: {float(jnp.max(jnp.abs(rho_sym - rho))):.4e}")

forces = jax.random.normal(jax.random.PRNGKey(1), (crystal.natom, 3))
print(f"  Symmetrized forces (Ha/Bohr):\n{symmetries.symmetrize_forces(forces)}")
