"""Tests for the projection preconditioner for the staggered Stokes system."""

import numpy as np
import pytest

from amr import level_box_data
from fv.linear_solvers import CCPoissonSolver, LinearSolver, SCPoissonSolver
from fv.operators import HierarchyMathOps
from stokes import (
    ConfigurationError,
    LocationIndexRobinBcCoefs,
    PoissonSpecifications,
    StaggeredPressureBcCoef,
    StaggeredStokesProjectionPreconditioner,
    StaggeredVelocityBcCoef,
    StokesNullspaceCorrection,
    StokesSpecifications,
)


class IdentitySolver(LinearSolver):
    """x := b, on any level range."""

    def __init__(self, name):
        super().__init__(name, homogeneous_bc=True)
        self.calls = []

    def solve_system(self, x, b):
        self.calls.append((self._homogeneous_bc, self._initial_guess_nonzero))
        ops = x.data_ops()
        for i in range(x.num_components):
            ops.copy_data(x.component_index(i), b.component_index(i))
        return True


class NonConvergingSolver(IdentitySolver):
    """Copies b into x and reports failure."""

    def solve_system(self, x, b):
        super().solve_system(x, b)
        return False


class StokesProblem:
    """Fields, boundary strategies and a configured preconditioner on one hierarchy."""

    def __init__(self, hierarchy, make_fields, rho=0.0, mu=1.0, dt=0.0, reference_solvers=True):
        self.hierarchy = hierarchy
        self.fields = make_fields(hierarchy)
        for name, centering in (("U", "side"), ("P", "cell"), ("F_U", "side"), ("F_P", "cell"), ("div", "cell")):
            self.fields.add(name, centering)
        self.idx = self.fields.idx
        self.x = self.fields.vector("x", "U", "P")
        self.b = self.fields.vector("b", "F_U", "F_P")
        self.mu = mu
        self.dt = dt

        problem_coefs = StokesSpecifications(rho=rho, mu=mu)
        self.u_bc_coefs = [LocationIndexRobinBcCoefs(f"u{d}", 2) for d in range(2)]
        self.velocity_bc_coefs = [StaggeredVelocityBcCoef(d, self.u_bc_coefs, problem_coefs) for d in range(2)]
        self.p_bc_coef = StaggeredPressureBcCoef(self.u_bc_coefs, problem_coefs)

        spec = PoissonSpecifications(d_constant=-mu)
        if dt > 0.0:
            spec.set_c_constant(rho / dt)

        self.precond = StaggeredStokesProjectionPreconditioner("projection_pc")
        if dt > 0.0:
            self.precond.set_time_interval(0.0, dt)
        self.precond.set_velocity_poisson_specifications(spec)
        self.precond.set_physical_bc_coefs(self.velocity_bc_coefs, self.p_bc_coef)
        if reference_solvers:
            self.velocity_solver = SCPoissonSolver("u_solver", spec, self.velocity_bc_coefs)
            self.pressure_solver = CCPoissonSolver(
                "p_solver", self.precond.get_pressure_poisson_specifications(), self.p_bc_coef
            )
        else:
            self.velocity_solver = IdentitySolver("u_solver")
            self.pressure_solver = IdentitySolver("p_solver")
        self.precond.set_velocity_sub_domain_solver(self.velocity_solver)
        self.precond.set_pressure_sub_domain_solver(self.pressure_solver)

        self.fields.fill_sides(
            "F_U",
            [
                lambda x, y: np.sin(np.pi * x) * np.cos(np.pi * y) + y,
                lambda x, y: -np.cos(np.pi * x) * np.sin(np.pi * y) + x * x,
            ],
        )

    def divergence(self):
        HierarchyMathOps("div", self.hierarchy).div(self.idx["div"], 1.0, self.idx["U"])
        return level_box_data(self.hierarchy, 0, self.idx["div"])

    def data(self, idx):
        return level_box_data(self.hierarchy, 0, idx)


@pytest.fixture
def steady(hierarchy_2d, make_fields):
    return StokesProblem(hierarchy_2d, make_fields, mu=0.5)


@pytest.fixture
def unsteady(hierarchy_2d, make_fields):
    return StokesProblem(hierarchy_2d, make_fields, rho=2.0, mu=0.5, dt=0.1)


class TestConfigurationContracts:
    """Single application with a zero initial guess only."""

    def test_max_iterations(self, steady):
        steady.precond.set_max_iterations(1)
        with pytest.raises(ConfigurationError, match="set_max_iterations"):
            steady.precond.set_max_iterations(2)
        assert steady.precond.get_max_iterations() == 1

    def test_initial_guess_nonzero(self, steady):
        steady.precond.set_initial_guess_nonzero(False)
        with pytest.raises(ConfigurationError):
            steady.precond.set_initial_guess_nonzero(True)
        assert not steady.precond.get_initial_guess_nonzero()

    def test_missing_sub_solvers(self, hierarchy_2d, make_fields):
        problem = StokesProblem(hierarchy_2d, make_fields)
        precond = StaggeredStokesProjectionPreconditioner("bare")
        precond.set_velocity_poisson_specifications(PoissonSpecifications(d_constant=-1.0))
        with pytest.raises(ConfigurationError):
            precond.solve_system(problem.x, problem.b)

    def test_steady_pressure_problem_coefficients(self, steady):
        p_spec = steady.precond.get_pressure_poisson_specifications()
        assert p_spec.c_is_zero()
        assert p_spec.get_d_constant() == -1.0

    def test_unsteady_pressure_problem_coefficients(self, unsteady):
        p_spec = unsteady.precond.get_pressure_poisson_specifications()
        assert p_spec.c_is_zero()
        # rho = C * dt = 2
        assert p_spec.get_d_constant() == pytest.approx(-0.5)

    def test_unsteady_requires_time_interval(self):
        precond = StaggeredStokesProjectionPreconditioner("pc")
        spec = PoissonSpecifications(d_constant=-1.0)
        spec.set_c_constant(10.0)
        with pytest.raises(ConfigurationError):
            precond.set_velocity_poisson_specifications(spec)

    def test_wrong_number_of_velocity_strategies(self, steady):
        steady.precond.set_physical_bc_coefs(steady.velocity_bc_coefs[:1], steady.p_bc_coef)
        with pytest.raises(ConfigurationError):
            steady.precond.initialize_solver_state(steady.x, steady.b)


class TestSolverState:
    """Initialization, deallocation and scratch data lifetime."""

    def test_scratch_fields_registered(self, steady):
        steady.precond.initialize_solver_state(steady.x, steady.b)
        db = steady.hierarchy.variable_db
        assert db.get_variable("projection_pc::Phi") is not None
        assert db.get_variable("projection_pc::F") is not None
        assert db.ghost_width(steady.precond.Phi_scratch_idx) == 1
        assert db.ghost_width(steady.precond.F_Phi_idx) == 1

    def test_initialize_twice(self, steady):
        precond = steady.precond
        precond.initialize_solver_state(steady.x, steady.b)
        phi_idx = precond.Phi_scratch_idx
        precond.initialize_solver_state(steady.x, steady.b)
        assert precond.is_initialized
        assert precond.Phi_scratch_idx == phi_idx
        assert steady.hierarchy.get_patch_level(0).check_allocated(phi_idx)

    def test_deallocate_twice(self, steady):
        precond = steady.precond
        precond.deallocate_solver_state()
        precond.initialize_solver_state(steady.x, steady.b)
        precond.deallocate_solver_state()
        precond.deallocate_solver_state()
        assert not precond.is_initialized
        assert not steady.hierarchy.get_patch_level(0).check_allocated(precond.Phi_scratch_idx)
        assert not steady.hierarchy.get_patch_level(0).check_allocated(precond.F_Phi_idx)

    def test_solve_uninitialized_leaves_state_unchanged(self, steady):
        assert steady.precond.solve_system(steady.x, steady.b) is True
        assert not steady.precond.is_initialized
        assert not steady.hierarchy.get_patch_level(0).check_allocated(steady.precond.Phi_scratch_idx)

    def test_failed_solve_releases_state(self, two_level_2d, make_fields):
        # The reference Poisson solvers reject multi-level hierarchies
        problem = StokesProblem(two_level_2d, make_fields)
        precond = problem.precond
        with pytest.raises(ValueError):
            precond.solve_system(problem.x, problem.b)
        assert not precond.is_initialized
        for ln in range(2):
            level = two_level_2d.get_patch_level(ln)
            assert not level.check_allocated(precond.Phi_scratch_idx)
            assert not level.check_allocated(precond.F_Phi_idx)
        assert precond.metrics.applications == 0

    def test_solve_initialized_keeps_state(self, steady):
        steady.precond.initialize_solver_state(steady.x, steady.b)
        steady.precond.solve_system(steady.x, steady.b)
        assert steady.precond.is_initialized
        assert steady.hierarchy.get_patch_level(0).check_allocated(steady.precond.Phi_scratch_idx)

    def test_metrics_recorded(self, steady):
        steady.precond.solve_system(steady.x, steady.b)
        steady.precond.solve_system(steady.x, steady.b)
        metrics = steady.precond.metrics
        assert metrics.applications == 2
        assert metrics.steady_state
        assert len(metrics.to_dataframe()) == 2


class TestApplication:
    """One application of the preconditioner."""

    def test_steady_velocity_is_divergence_free(self, steady):
        steady.precond.initialize_solver_state(steady.x, steady.b)
        steady.precond.solve_system(steady.x, steady.b)

        np.testing.assert_allclose(steady.divergence(), 0.0, atol=1e-9)
        # P = -D_U F_Phi = mu F_Phi
        np.testing.assert_allclose(
            steady.data(steady.idx["P"]), steady.mu * steady.data(steady.precond.F_Phi_idx), atol=1e-12
        )

    def test_steady_boundary_normal_velocity_is_zero(self, steady):
        steady.precond.solve_system(steady.x, steady.b)
        ux = level_box_data(steady.hierarchy, 0, steady.idx["U"], axis=0)
        uy = level_box_data(steady.hierarchy, 0, steady.idx["U"], axis=1)
        np.testing.assert_allclose(ux[[0, -1], :], 0.0, atol=1e-12)
        np.testing.assert_allclose(uy[:, [0, -1]], 0.0, atol=1e-12)
        assert np.abs(ux).max() > 0.0

    def test_unsteady_projection(self, unsteady):
        unsteady.fields.fill_cells("F_P", lambda x, y: np.cos(np.pi * x) * np.cos(np.pi * y))
        unsteady.precond.initialize_solver_state(unsteady.x, unsteady.b)
        unsteady.precond.solve_system(unsteady.x, unsteady.b)

        # -D U = F_P
        np.testing.assert_allclose(unsteady.divergence(), -unsteady.data(unsteady.idx["F_P"]), atol=1e-9)
        phi = unsteady.data(unsteady.precond.Phi_scratch_idx)
        f_phi = unsteady.data(unsteady.precond.F_Phi_idx)
        np.testing.assert_allclose(
            unsteady.data(unsteady.idx["P"]), phi / unsteady.dt + unsteady.mu * f_phi, atol=1e-10
        )
        assert not unsteady.precond.metrics.steady_state

    def test_nullspace_correction_removes_mean_pressure(self, steady):
        steady.fields.fill_cells("F_P", lambda x, y: np.cos(np.pi * x) + 0.0 * y)
        steady.precond.set_nullspace_correction(StokesNullspaceCorrection(has_pressure_nullspace=True))
        steady.precond.solve_system(steady.x, steady.b)
        assert abs(steady.data(steady.idx["P"]).mean()) < 1e-12

    def test_sub_solvers_homogeneous_with_zero_guess(self, hierarchy_2d, make_fields):
        problem = StokesProblem(hierarchy_2d, make_fields, reference_solvers=False)
        problem.velocity_solver.set_homogeneous_bc(False)
        problem.velocity_solver.set_initial_guess_nonzero(True)
        problem.precond.solve_system(problem.x, problem.b)
        assert problem.velocity_solver.calls == [(True, False)]
        assert problem.pressure_solver.calls == [(True, False)]

    def test_returns_true_when_sub_solvers_fail(self, hierarchy_2d, make_fields):
        problem = StokesProblem(hierarchy_2d, make_fields, reference_solvers=False)
        problem.precond.set_velocity_sub_domain_solver(NonConvergingSolver("u_solver"))
        problem.precond.set_pressure_sub_domain_solver(NonConvergingSolver("p_solver"))
        assert problem.precond.solve_system(problem.x, problem.b) is True

    def test_multilevel_range(self, two_level_2d, make_fields):
        problem = StokesProblem(two_level_2d, make_fields, reference_solvers=False)
        precond = problem.precond
        precond.initialize_solver_state(problem.x, problem.b)
        for ln in range(2):
            assert two_level_2d.get_patch_level(ln).check_allocated(precond.Phi_scratch_idx)
            assert two_level_2d.get_patch_level(ln).check_allocated(precond.F_Phi_idx)
        assert precond.solve_system(problem.x, problem.b) is True
        precond.deallocate_solver_state()
        for ln in range(2):
            assert not two_level_2d.get_patch_level(ln).check_allocated(precond.Phi_scratch_idx)
