"""Symmetry settings."""

from dataclasses import dataclass

import numpy as np

from pwsym.constants import MIN_SYMM_TOL, MIN_KPT_DISTANCE

SYMMETRY_MODES = ("automatic", "manual", "none")


@dataclass
class SymmetryConfig:
    """Settings for the symmetry pipeline.

    Example usage:
        config = SymmetryConfig(mode="manual", matrices=[np.eye(3, dtype=int)])
        symmetries = setup_symmetries(context, config)
    """
    mode: str = "automatic"       # "automatic", "manual" or "none"
    matrices: list | None = None  # Symmetry matrices for manual mode
    move_atoms: bool = False      # Search for a better symmetry center
    print_matrices: bool = False  # Print matrices and atom maps
    symm_tol: float = MIN_SYMM_TOL
    kpt_tol: float = MIN_KPT_DISTANCE
    verbose: bool = True          # Print info

    def __post_init__(self):
        if self.mode not in SYMMETRY_MODES:
            raise ValueError(f"Unknown symmetry mode '{self.mode}'. "
                             f"Expected one of {SYMMETRY_MODES}")
        if self.matrices is not None and len(self.matrices) > 0:
            mats = np.asarray(self.matrices)
            if mats.ndim != 3 or mats.shape[1:] != (3, 3):
                raise ValueError(f"Symmetry matrices must have shape (nsym, 3, 3), "
                                 f"got {mats.shape}")
            if not np.array_equal(mats, np.round(mats)):
                raise ValueError("Symmetry matrices must be integer valued")

    def manual_matrices(self) -> np.ndarray:
        """Manual matrices as an (nsym, 3, 3) integer array (possibly empty)."""
        if self.matrices is None:
            return np.zeros((0, 3, 3), dtype=int)
        return np.asarray(np.round(self.matrices), dtype=int).reshape(-1, 3, 3)
