"""Error kinds raised by the symmetry pipeline.

All of these describe an invalid physical or numerical setup rather than a
transient fault: nothing inside the package catches them. The caller
decides whether to abort the run.
"""

from enum import Enum


class SymmetryErrorKind(Enum):
    NO_MANUAL_MATRICES = "no manual symmetry matrices"
    MANUAL_MISMATCH = "symmetries disagree with atomic positions"
    GROUP_NOT_CLOSED = "symmetry matrices do not form a group"
    GRID_NOT_COMMENSURATE = "FFT box not commensurate with symmetries"
    MISSING_ATOM_IMAGE = "atom has no image under symmetry"
    MOVE_SCALE_MISMATCH = "symmetry-related atoms have different move scales"
    BETTER_SYMMETRY_CENTER = "better symmetry center found"


class SymmetryError(ValueError):
    """Fatal symmetry configuration error.

    Attributes:
        kind: SymmetryErrorKind identifying the failed check.
    """

    def __init__(self, kind: SymmetryErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class SymmetryCenterError(SymmetryError):
    """Translating the atoms would increase the symmetry count.

    Raised instead of moving atoms silently. The suggested positions are
    attached so that the caller can report them and ask for new input.

    Attributes:
        translation: (3,) suggested shift of every atom, fractional coords.
        old_count: Number of symmetries with the current origin.
        new_count: Number of symmetries after the translation.
        species: Translated species (list of pwsym.crystal.Species).
    """

    def __init__(self, translation, old_count: int, new_count: int, species):
        self.translation = translation
        self.old_count = old_count
        self.new_count = new_count
        self.species = species
        t1, t2, t3 = (float(t) for t in translation)
        super().__init__(
            SymmetryErrorKind.BETTER_SYMMETRY_CENTER,
            f"Translating atoms by [ {t1:g} {t2:g} {t3:g} ] (in lattice coordinates) "
            f"will increase symmetry count from {old_count} to {new_count}. "
            "Use the translated positions, or disable move_atoms.",
        )
