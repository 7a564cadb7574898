"""End-to-end tests for the symmetry setup pipeline."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

jax.config.update("jax_enable_x64", True)

from pwsym.config import SymmetryConfig
from pwsym.crystal import Crystal
from pwsym.errors import SymmetryError, SymmetryErrorKind, SymmetryCenterError
from pwsym.kpoints import monkhorst_pack
from pwsym.lattice import metric_tensor, circ_distance_squared
from pwsym.symmetries import SymmetryContext, setup_symmetries


def _cubic(frac_positions, species=None, a0=6.0, move_scale=None):
    frac = np.array(frac_positions, dtype=float).reshape(-1, 3)
    if species is None:
        species = ["Po"] * len(frac)
    return Crystal.from_fractional(np.eye(3) * a0, species, frac, move_scale)


def _context(crystal, fft_grid=(12, 12, 12), kgrid=None):
    kpoints = kweights = None
    if kgrid is not None:
        kpoints, kweights = monkhorst_pack(kgrid, crystal.b)
    return SymmetryContext.from_crystal(crystal, fft_grid, kpoints, kweights)


def _quiet(**kwargs):
    return SymmetryConfig(verbose=False, **kwargs)


def test_simple_cubic_one_atom():
    """Simple cubic with one atom at the origin has 48 symmetries."""
    crystal = _cubic([0, 0, 0])
    symm = setup_symmetries(_context(crystal), _quiet())
    assert symm.n_sym == 48
    np.testing.assert_array_equal(symm.matrices[0], np.eye(3, dtype=int))
    g = metric_tensor(crystal.a)
    for m in symm.matrices:
        assert np.linalg.norm(g - m.T @ g @ m) < 1e-4


def test_displaced_atom_subgroup():
    """An atom at (0.1, 0, 0) leaves the 8 operations fixing the x axis."""
    symm = setup_symmetries(_context(_cubic([0.1, 0, 0])), _quiet())
    assert symm.n_sym == 8
    np.testing.assert_array_equal(symm.matrices[0], np.eye(3, dtype=int))


def test_atom_map_resolves_images():
    """Each recorded image lies on the mapped position."""
    crystal = _cubic([[0.1, 0, 0], [-0.1, 0, 0], [0.5, 0.5, 0.5]], ["H", "H", "O"])
    ctx = _context(crystal)
    symm = setup_symmetries(ctx, _quiet())
    assert symm.n_sym == 16
    for sp, amap in zip(ctx.species, symm.atom_map):
        assert amap.shape == (sp.natom, symm.n_sym)
        for isym, m in enumerate(symm.matrices):
            mapped = sp.positions @ m.T
            d = circ_distance_squared(mapped, sp.positions[amap[:, isym]])
            assert np.all(d < 1e-4)


def test_pipeline_deterministic():
    """Running the pipeline twice gives identical results."""
    crystal = _cubic([[0, 0, 0], [0.5, 0.5, 0]], ["Ga", "As"])
    s1 = setup_symmetries(_context(crystal), _quiet())
    s2 = setup_symmetries(_context(crystal), _quiet())
    np.testing.assert_array_equal(s1.matrices, s2.matrices)
    np.testing.assert_array_equal(s1.mesh_matrices, s2.mesh_matrices)
    np.testing.assert_array_equal(np.asarray(s1.symm_index), np.asarray(s2.symm_index))


def test_body_centered_no_better_center():
    """Atoms at (0,0,0) and (1/2,1/2,1/2) already have full symmetry."""
    crystal = _cubic([[0, 0, 0], [0.5, 0.5, 0.5]])
    symm = setup_symmetries(_context(crystal), _quiet(move_atoms=True))
    assert symm.n_sym == 48


def test_better_center_reported(capsys):
    """A dimer away from the origin reports the translation and stops."""
    crystal = _cubic([[0, 0, 0], [0.2, 0, 0]], ["H", "H"])
    with pytest.raises(SymmetryCenterError) as excinfo:
        setup_symmetries(_context(crystal), SymmetryConfig(move_atoms=True))
    err = excinfo.value
    assert err.kind == SymmetryErrorKind.BETTER_SYMMETRY_CENTER
    assert (err.old_count, err.new_count) == (8, 16)
    np.testing.assert_allclose(err.translation, [-0.1, 0, 0], atol=1e-12)
    np.testing.assert_allclose(err.species[0].positions[:, 0], [-0.1, 0.1], atol=1e-12)
    out = capsys.readouterr().out
    assert "increase symmetry count from 8 to 16" in out


def test_translated_crystal_has_more_symmetry():
    """Applying the suggested translation gives the larger group."""
    crystal = _cubic([[0, 0, 0], [0.2, 0, 0]], ["H", "H"])
    with pytest.raises(SymmetryCenterError) as excinfo:
        setup_symmetries(_context(crystal), _quiet(move_atoms=True))
    moved = crystal.translated(excinfo.value.translation)
    symm = setup_symmetries(_context(moved), _quiet(move_atoms=True))
    assert symm.n_sym == 16


def test_manual_mode():
    """Manually specified matrices are checked and identity moved first."""
    c2z = np.diag([-1, -1, 1])
    mats = [c2z, np.eye(3, dtype=int)]
    symm = setup_symmetries(_context(_cubic([0, 0, 0.3])), _quiet(mode="manual", matrices=mats))
    assert symm.n_sym == 2
    np.testing.assert_array_equal(symm.matrices[0], np.eye(3, dtype=int))
    np.testing.assert_array_equal(symm.matrices[1], c2z)


def test_manual_mode_without_matrices():
    """Manual mode without matrices is a configuration error."""
    with pytest.raises(SymmetryError) as excinfo:
        setup_symmetries(_context(_cubic([0, 0, 0])), _quiet(mode="manual", matrices=[]))
    assert excinfo.value.kind == SymmetryErrorKind.NO_MANUAL_MATRICES


def test_manual_mode_inconsistent_with_atoms():
    """Manual matrices that move atoms off the structure are rejected."""
    c2x = np.diag([1, -1, -1])
    with pytest.raises(SymmetryError) as excinfo:
        setup_symmetries(_context(_cubic([0, 0, 0.3])),
                         _quiet(mode="manual", matrices=[np.eye(3, dtype=int), c2x]))
    assert excinfo.value.kind == SymmetryErrorKind.MANUAL_MISMATCH


def test_manual_mode_not_a_group():
    """Manual matrices must be closed under multiplication."""
    c4 = np.array([[0, -1, 0], [1, 0, 0], [0, 0, 1]])
    with pytest.raises(SymmetryError) as excinfo:
        setup_symmetries(_context(_cubic([0, 0, 0])),
                         _quiet(mode="manual", matrices=[np.eye(3, dtype=int), c4]))
    assert excinfo.value.kind == SymmetryErrorKind.GROUP_NOT_CLOSED


def test_no_symmetry_mode():
    """Mode "none" yields only the identity and disables symmetrization."""
    symm = setup_symmetries(_context(_cubic([0, 0, 0])), _quiet(mode="none"))
    assert symm.n_sym == 1
    assert symm.symm_index is None
    field = jnp.arange(12.0**3).reshape(12, 12, 12)
    assert symm.symmetrize(field) is field
    assert not symm.kpoints_equivalent(np.zeros(3), np.zeros(3))


def test_grid_not_commensurate():
    """A cubic crystal on an unequal FFT box is rejected."""
    with pytest.raises(SymmetryError) as excinfo:
        setup_symmetries(_context(_cubic([0, 0, 0]), fft_grid=(12, 12, 10)), _quiet())
    assert excinfo.value.kind == SymmetryErrorKind.GRID_NOT_COMMENSURATE


def test_kmesh_symmetric_no_warning(capsys):
    """A symmetric Monkhorst-Pack mesh keeps the whole group."""
    symm = setup_symmetries(_context(_cubic([0, 0, 0]), kgrid=(2, 2, 2)), SymmetryConfig())
    assert len(symm.kmesh_matrices) == 48
    assert "WARNING" not in capsys.readouterr().out


def test_kmesh_subgroup_warns_but_keeps_group(capsys):
    """A lower-symmetry k-mesh warns, and the full group is still used."""
    crystal = _cubic([0, 0, 0])
    ctx = SymmetryContext.from_crystal(
        crystal, (12, 12, 12),
        kpoints=jnp.array([[0.0, 0.0, 0.0], [0.25, 0.0, 0.0]]) @ crystal.b,
        kweights=jnp.array([0.5, 0.5]),
    )
    symm = setup_symmetries(ctx, SymmetryConfig())
    assert symm.n_sym == 48
    assert len(symm.kmesh_matrices) == 8
    assert "k-mesh symmetries are a subgroup of size 8" in capsys.readouterr().out


def test_kpoints_equivalent():
    """k-points related by a cubic rotation are equivalent."""
    symm = setup_symmetries(_context(_cubic([0, 0, 0])), _quiet())
    assert symm.kpoints_equivalent(np.array([0.25, 0, 0]), np.array([0, 0, -0.25]))
    assert symm.kpoints_equivalent(np.array([0.25, 0, 0]), np.array([0.75, 0, 0]))
    assert not symm.kpoints_equivalent(np.array([0.25, 0, 0]), np.array([0.25, 0.25, 0]))


def test_symmetrize_density_idempotent():
    """Symmetrizing a density twice equals symmetrizing it once."""
    symm = setup_symmetries(_context(_cubic([0.1, 0, 0]), fft_grid=(10, 10, 10)), _quiet())
    rho = jax.random.uniform(jax.random.PRNGKey(1), (10, 10, 10))
    once = symm.symmetrize(rho)
    np.testing.assert_allclose(symm.symmetrize(once), once, atol=1e-14)
    np.testing.assert_allclose(jnp.sum(once), jnp.sum(rho), rtol=1e-12)


def test_symmetrize_forces_single_atom():
    """An atom on the x axis can only feel a force along x."""
    symm = setup_symmetries(_context(_cubic([0.1, 0, 0])), _quiet())
    forces = jnp.array([[0.5, 0.2, -0.1]])
    np.testing.assert_allclose(symm.symmetrize_forces(forces), [[0.5, 0.0, 0.0]], atol=1e-14)


def test_symmetrize_forces_dimer():
    """A uniform force on a centered dimer averages to zero; opposite forces survive."""
    crystal = _cubic([[0.1, 0, 0], [-0.1, 0, 0]], ["H", "H"])
    symm = setup_symmetries(_context(crystal), _quiet())

    uniform = jnp.array([[1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    np.testing.assert_allclose(symm.symmetrize_forces(uniform), 0.0, atol=1e-14)

    stretch = jnp.array([[0.7, 0.1, 0.0], [-0.7, 0.0, 0.3]])
    np.testing.assert_allclose(symm.symmetrize_forces(stretch),
                               [[0.7, 0.0, 0.0], [-0.7, 0.0, 0.0]], atol=1e-14)


def test_symmetrize_forces_lattice_components():
    """Covariant lattice forces are symmetrized without conversion."""
    crystal = _cubic([0.1, 0, 0], a0=4.0)
    symm = setup_symmetries(_context(crystal), _quiet())
    forces_lat = jnp.array([[2.0, 4.0, -4.0]])
    np.testing.assert_allclose(symm.symmetrize_forces(forces_lat, cartesian=False),
                               [[2.0, 0.0, 0.0]], atol=1e-14)


def test_move_scale_mismatch():
    """Symmetry-related atoms with different move scales are rejected."""
    crystal = _cubic([[0.1, 0, 0], [-0.1, 0, 0]], ["H", "H"], move_scale=[1.0, 0.5])
    with pytest.raises(SymmetryError) as excinfo:
        setup_symmetries(_context(crystal), _quiet())
    assert excinfo.value.kind == SymmetryErrorKind.MOVE_SCALE_MISMATCH


def test_verbose_output(capsys):
    """Verbose setup reports lattice and basis symmetry counts."""
    setup_symmetries(_context(_cubic([0.1, 0, 0])), SymmetryConfig(print_matrices=True))
    out = capsys.readouterr().out
    assert "48 symmetries of the Bravais lattice" in out
    assert "reduced to 8 symmetries with basis" in out
    assert "Mapping of atoms according to symmetries" in out
