"""Tests for crystal structure handling."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

jax.config.update("jax_enable_x64", True)

from pwsym.crystal import Crystal
from pwsym.constants import ANGSTROM_TO_BOHR


def _rocksalt():
    return Crystal.from_fractional(
        np.eye(3) * 8.0,
        ["Na", "Cl", "Na", "Cl"],
        [[0, 0, 0], [0.5, 0, 0], [0.5, 0.5, 0], [0, 0.5, 0]],
    )


def test_from_angstrom_fractional():
    """Fractional input is converted to Cartesian Bohr."""
    crystal = Crystal.from_angstrom(np.eye(3) * 2.0, ["Si"], [[0.5, 0.5, 0.5]],
                                    coords_are_fractional=True)
    np.testing.assert_allclose(crystal.positions[0], ANGSTROM_TO_BOHR, atol=1e-12)
    np.testing.assert_allclose(crystal.fractional_positions[0], 0.5, atol=1e-12)
    np.testing.assert_allclose(crystal.volume, (2.0 * ANGSTROM_TO_BOHR) ** 3, rtol=1e-12)


def test_species_info_groups_by_first_appearance():
    """Atoms are grouped per element, keeping their global indices."""
    groups = _rocksalt().species_info()
    assert [sp.name for sp in groups] == ["Na", "Cl"]
    np.testing.assert_array_equal(groups[0].indices, [0, 2])
    np.testing.assert_array_equal(groups[1].indices, [1, 3])
    np.testing.assert_allclose(groups[1].positions, [[0.5, 0, 0], [0, 0.5, 0]], atol=1e-12)
    np.testing.assert_allclose(groups[0].move_scale, [1.0, 1.0])


def test_move_scales_default():
    """Missing move scales default to one."""
    crystal = _rocksalt()
    np.testing.assert_allclose(crystal.move_scales, np.ones(4))


def test_translated():
    """Translation moves every atom by the same fractional shift."""
    moved = _rocksalt().translated(np.array([0.25, 0.0, -0.25]))
    np.testing.assert_allclose(moved.fractional_positions[1], [0.75, 0.0, -0.25], atol=1e-12)
    assert moved.species == _rocksalt().species
