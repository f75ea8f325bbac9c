"""Tests for Robin coefficient strategies and the Stokes boundary strategies."""

import numpy as np
import pytest

from amr import compute_physical_codim1_boxes
from stokes import (
    ConfigurationError,
    ExtendedLocationIndexRobinBcCoefs,
    LocationIndexRobinBcCoefs,
    StaggeredPressureBcCoef,
    StaggeredVelocityBcCoef,
    StokesBcCoefStrategy,
    StokesSpecifications,
    TractionBcType,
)


def boundary_box(hierarchy, location_index, patch_id=0):
    for bdry_box in compute_physical_codim1_boxes(hierarchy)[0][patch_id]:
        if bdry_box.location_index == location_index:
            return bdry_box
    raise LookupError(location_index)


class TestCapabilities:
    """Capability queries replace run-time type inspection."""

    def test_plain_strategy_has_no_capabilities(self):
        bc = LocationIndexRobinBcCoefs("bc", 2)
        assert bc.extended_interface() is None
        assert bc.stokes_interface() is None

    def test_extended_strategy(self):
        bc = ExtendedLocationIndexRobinBcCoefs("bc", 2)
        assert bc.extended_interface() is bc
        assert bc.stokes_interface() is None

    def test_stokes_strategy(self):
        bc = StaggeredVelocityBcCoef(0, [LocationIndexRobinBcCoefs("u", 2)] * 2, StokesSpecifications())
        assert bc.extended_interface() is bc
        assert bc.stokes_interface() is bc


class TestLocationIndexRobinBcCoefs:
    """Per-location constant or callable coefficients."""

    def test_default_is_homogeneous_dirichlet(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        alpha, beta, gamma = LocationIndexRobinBcCoefs("bc", 2).set_bc_coefs(patch, boundary_box(single_patch_2d, 0), 0.0)
        assert alpha.shape == (1, 6)
        np.testing.assert_array_equal(alpha, 1.0)
        np.testing.assert_array_equal(beta, 0.0)
        np.testing.assert_array_equal(gamma, 0.0)

    def test_callable_gamma_at_face_centers(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        bc = LocationIndexRobinBcCoefs("bc", 2)
        bc.set_dirichlet(3, lambda coords, t: coords[0] + t)
        _, _, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, 3), 1.0)
        np.testing.assert_allclose(gamma[:, 0], (np.arange(6) + 0.5) / 6 + 1.0)

    def test_neumann(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        bc = LocationIndexRobinBcCoefs("bc", 2)
        bc.set_neumann(1, 2.5)
        alpha, beta, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, 1), 0.0)
        np.testing.assert_array_equal(alpha, 0.0)
        np.testing.assert_array_equal(beta, 1.0)
        np.testing.assert_array_equal(gamma, 2.5)

    def test_invalid_location(self):
        with pytest.raises(ConfigurationError):
            LocationIndexRobinBcCoefs("bc", 2).set_dirichlet(4, 0.0)

    def test_extended_homogeneous_zeroes_gamma(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        bc = ExtendedLocationIndexRobinBcCoefs("bc", 2)
        bc.set_dirichlet(0, 3.0)
        bc.set_homogeneous_bc(True)
        _, _, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, 0), 0.0)
        np.testing.assert_array_equal(gamma, 0.0)


class TestStokesBcCoefStrategy:
    """Binding and configuration of Stokes-capable strategies."""

    @pytest.fixture
    def strategy(self):
        return StaggeredPressureBcCoef([LocationIndexRobinBcCoefs("u", 2)] * 2)

    def test_bind_unbind(self, strategy):
        assert strategy.target_velocity_patch_data_index == -1
        strategy.bind(3, 4)
        assert strategy.target_velocity_patch_data_index == 3
        assert strategy.target_pressure_patch_data_index == 4
        strategy.unbind()
        assert strategy.target_velocity_patch_data_index == -1
        assert strategy.target_pressure_patch_data_index == -1

    def test_traction_type_default_and_setter(self, strategy):
        assert strategy.get_traction_bc_type() is TractionBcType.TRACTION
        strategy.set_traction_bc_type(TractionBcType.PSEUDO_TRACTION)
        assert strategy.get_traction_bc_type() is TractionBcType.PSEUDO_TRACTION

    def test_unknown_traction_type(self, strategy):
        with pytest.raises(ConfigurationError):
            strategy.set_traction_bc_type("TRACTION")

    def test_null_specifications(self, strategy):
        with pytest.raises(ConfigurationError):
            strategy.set_stokes_specifications(None)

    def test_missing_specifications(self, strategy):
        assert isinstance(strategy, StokesBcCoefStrategy)
        with pytest.raises(ConfigurationError):
            strategy.problem_coefs


class TestStaggeredBcCoefs:
    """Velocity and pressure conditions derived from the user's velocity conditions."""

    def test_dirichlet_velocity_passes_through(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        u_bc = [LocationIndexRobinBcCoefs(f"u{d}", 2) for d in range(2)]
        u_bc[1].set_dirichlet(3, 2.0)
        bc = StaggeredVelocityBcCoef(1, u_bc, StokesSpecifications())
        alpha, beta, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, 3), 0.0)
        np.testing.assert_array_equal(alpha, 1.0)
        np.testing.assert_array_equal(gamma, 2.0)

        bc.set_homogeneous_bc(True)
        _, _, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, 3), 0.0)
        np.testing.assert_array_equal(gamma, 0.0)

    def test_pressure_neumann_at_walls(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        u_bc = [LocationIndexRobinBcCoefs(f"u{d}", 2) for d in range(2)]
        bc = StaggeredPressureBcCoef(u_bc, StokesSpecifications())
        for location in range(4):
            alpha, beta, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, location), 0.0)
            np.testing.assert_array_equal(alpha, 0.0)
            np.testing.assert_array_equal(beta, 1.0)
            np.testing.assert_array_equal(gamma, 0.0)

    def test_traction_outflow(self, single_patch_2d, make_fields):
        """Upper x boundary with a traction condition on both components."""
        fields = make_fields(single_patch_2d)
        u_idx = fields.add("u", "side")
        # u_y = y on the faces normal to y: du_y/dy = 1
        fields.fill_sides("u", [lambda x, y: 0.0 * x, lambda x, y: y])
        patch = single_patch_2d.get_patch_level(0).get_patch(0)

        u_bc = [LocationIndexRobinBcCoefs(f"u{d}", 2) for d in range(2)]
        u_bc[0].set_neumann(1, 0.5)
        u_bc[1].set_neumann(1, 0.3)
        coefs = StokesSpecifications(mu=2.0)
        bdry_box = boundary_box(single_patch_2d, 1)

        normal = StaggeredVelocityBcCoef(0, u_bc, coefs)
        normal.bind(u_idx, -1)
        alpha, beta, gamma = normal.set_bc_coefs(patch, bdry_box, 0.0)
        np.testing.assert_array_equal(alpha, 0.0)
        np.testing.assert_array_equal(beta, 1.0)
        # du_x/dn = -du_y/dy on the upper side
        np.testing.assert_allclose(gamma, -1.0)

        tangential = StaggeredVelocityBcCoef(1, u_bc, coefs)
        _, _, gamma = tangential.set_bc_coefs(patch, bdry_box, 0.0)
        np.testing.assert_allclose(gamma, 0.3 / 2.0)

        pressure = StaggeredPressureBcCoef(u_bc, coefs)
        pressure.bind(u_idx, -1)
        alpha, beta, gamma = pressure.set_bc_coefs(patch, bdry_box, 0.0)
        np.testing.assert_array_equal(alpha, 1.0)
        # p = -g_n + 2 mu du_x/dx = -0.5 + 2 * 2 * (-1)
        np.testing.assert_allclose(gamma, -4.5)

        pressure.set_traction_bc_type(TractionBcType.PSEUDO_TRACTION)
        _, _, gamma = pressure.set_bc_coefs(patch, bdry_box, 0.0)
        np.testing.assert_allclose(gamma, -0.5)

    def test_user_homogeneous_flag_restored(self, single_patch_2d):
        patch = single_patch_2d.get_patch_level(0).get_patch(0)
        u_bc = [ExtendedLocationIndexRobinBcCoefs(f"u{d}", 2) for d in range(2)]
        u_bc[0].set_dirichlet(0, 3.0)
        bc = StaggeredVelocityBcCoef(0, u_bc, StokesSpecifications())
        bc.set_homogeneous_bc(True)

        _, _, gamma = bc.set_bc_coefs(patch, boundary_box(single_patch_2d, 0), 0.0)

        np.testing.assert_array_equal(gamma, 0.0)
        assert not u_bc[0].homogeneous_bc
        _, _, gamma = u_bc[0].set_bc_coefs(patch, boundary_box(single_patch_2d, 0), 0.0)
        np.testing.assert_array_equal(gamma, 3.0)
