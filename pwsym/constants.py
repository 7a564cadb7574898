"""Physical constants in atomic units and symmetry tolerances."""

import jax.numpy as jnp

# In atomic units: hbar = m_e = e = 4*pi*eps_0 = 1
BOHR_TO_ANGSTROM = 0.529177210903
ANGSTROM_TO_BOHR = 1.0 / BOHR_TO_ANGSTROM

# 2*pi for reciprocal lattice vectors
TWO_PI = 2.0 * jnp.pi

# Default symmetry tolerances (overridable through SymmetryConfig)
MIN_SYMM_TOL = 1e-4       # metric invariance, squared atom distance, lattice reduction
MIN_KPT_DISTANCE = 1e-8   # squared k-point distance and weight difference
