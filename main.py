"""
Stokes projection preconditioner - demonstration entry point.

Applies the projection preconditioner once to a forced Stokes problem in a
closed box (no-slip walls) and reports the divergence of the result.

Usage:
    python main.py
    python main.py problem.n_cells=[64,64] problem.patch_size=[16,16]
    python main.py problem.rho=1.0 problem.dt=0.01 mlflow.enabled=true
"""

import logging
import os
import sys
from pathlib import Path

import hydra
import mlflow
import numpy as np
from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()
sys.path.insert(0, str(Path(__file__).parent / "src"))

from amr import CellVariable, HierarchyVector, PatchHierarchy, SideVariable  # noqa: E402
from cli import header, ok, fail, report  # noqa: E402
from fv.linear_solvers import CCPoissonSolver, SCPoissonSolver  # noqa: E402
from fv.operators import HierarchyMathOps  # noqa: E402
from stokes import (  # noqa: E402
    LocationIndexRobinBcCoefs,
    StaggeredPressureBcCoef,
    StaggeredStokesPhysicalBoundaryHelper,
    StaggeredStokesProjectionPreconditioner,
    StaggeredVelocityBcCoef,
    StokesNullspaceCorrection,
    StokesProblemParameters,
    StokesSpecifications,
)

log = logging.getLogger(__name__)


def get_experiment_name(cfg: DictConfig) -> str:
    """Build full experiment name with optional prefix."""
    name = cfg.experiment_name
    prefix = cfg.mlflow.get("project_prefix", "")
    if prefix and not name.startswith("/"):
        return f"{prefix}/{name}"
    return name


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = cfg.mlflow.get("tracking_uri", "./mlruns")
    os.environ["MLFLOW_TRACKING_URI"] = str(tracking_uri)
    mlflow.set_tracking_uri(tracking_uri)
    experiment_name = get_experiment_name(cfg)
    mlflow.set_experiment(experiment_name)
    return experiment_name


def fill_side_data(hierarchy: PatchHierarchy, idx: int, functions):
    """Evaluate ``functions[axis](x, y, ...)`` at the face centers of every local patch."""
    for level in hierarchy.levels:
        for patch in level:
            data = patch.get_patch_data(idx)
            for axis, func in enumerate(functions):
                coords = patch.geometry.face_centers(patch.box.face_box(axis), axis)
                data.interior(axis)[...] = func(*coords)


def build_problem(params: StokesProblemParameters):
    """Hierarchy, solution / right-hand side vectors and their data indices."""
    hierarchy = PatchHierarchy.uniform(
        params.n_cells, params.x_lower, params.x_upper, params.patch_size, params.n_workers
    )
    var_db = hierarchy.variable_db
    context = var_db.get_context("main::CONTEXT")
    variables = {
        "U": SideVariable("U"),
        "P": CellVariable("P"),
        "F_U": SideVariable("F_U"),
        "F_P": CellVariable("F_P"),
        "div_U": CellVariable("div_U"),
    }
    idx = {name: var_db.register_variable_and_context(var, context, 1) for name, var in variables.items()}

    ln = hierarchy.finest_level_number
    x = HierarchyVector("x", hierarchy, 0, ln).add_component(variables["U"], idx["U"])
    x.add_component(variables["P"], idx["P"])
    b = HierarchyVector("b", hierarchy, 0, ln).add_component(variables["F_U"], idx["F_U"])
    b.add_component(variables["F_P"], idx["F_P"])
    div = HierarchyVector("div_U", hierarchy, 0, ln).add_component(variables["div_U"], idx["div_U"])
    for vec in (x, b, div):
        vec.allocate()
        vec.set_to_scalar(0.0)

    # Rotational body force; F_P = 0
    amp = params.forcing_amplitude
    fill_side_data(
        hierarchy,
        idx["F_U"],
        [
            lambda x_, y_: amp * np.sin(np.pi * x_) * np.cos(np.pi * y_),
            lambda x_, y_: -amp * np.cos(np.pi * x_) * np.sin(np.pi * y_) + amp * x_,
        ],
    )
    return hierarchy, x, b, idx


def run(params: StokesProblemParameters) -> dict:
    """Apply the projection preconditioner once and return summary quantities."""
    hierarchy, x, b, idx = build_problem(params)
    dim = hierarchy.dim
    problem_coefs = StokesSpecifications(rho=params.rho, mu=params.mu)

    # No-slip walls
    u_bc_coefs = [LocationIndexRobinBcCoefs(f"u_bc_coef_{d}", dim) for d in range(dim)]
    velocity_bc_coefs = [StaggeredVelocityBcCoef(d, u_bc_coefs, problem_coefs) for d in range(dim)]
    p_bc_coef = StaggeredPressureBcCoef(u_bc_coefs, problem_coefs)

    precond = StaggeredStokesProjectionPreconditioner("stokes_precond")
    if not params.steady:
        precond.set_time_interval(0.0, params.dt)
    precond.set_velocity_poisson_specifications(params.velocity_specifications())
    precond.set_physical_bc_coefs(velocity_bc_coefs, p_bc_coef)
    precond.set_velocity_sub_domain_solver(
        SCPoissonSolver(
            "velocity_solver",
            precond.get_velocity_poisson_specifications(),
            velocity_bc_coefs,
            method=params.solver_method,
        )
    )
    precond.set_pressure_sub_domain_solver(
        CCPoissonSolver(
            "pressure_solver",
            precond.get_pressure_poisson_specifications(),
            p_bc_coef,
            method=params.solver_method,
        )
    )
    precond.set_nullspace_correction(StokesNullspaceCorrection(has_pressure_nullspace=True))

    precond.solve_system(x, b)

    bc_helper = StaggeredStokesPhysicalBoundaryHelper(hierarchy)
    bc_helper.enforce_normal_velocity_bc(idx["U"], idx["P"], velocity_bc_coefs, 0.0, homogeneous_bc=False)

    HierarchyMathOps("main::HierarchyMathOps", hierarchy).div(idx["div_U"], 1.0, idx["U"])
    ops = x.data_ops()
    return {
        "max_div_u": ops.max_norm(idx["div_U"]),
        "max_u": ops.max_norm(idx["U"]),
        "max_p": ops.max_norm(idx["P"]),
        "mean_p": ops.weighted_mean(idx["P"]),
        "wall_time_seconds": precond.metrics.wall_time_seconds,
    }


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Main entry point."""
    problem = OmegaConf.to_container(cfg.problem)
    params = StokesProblemParameters(
        **{k: tuple(v) if isinstance(v, list) else v for k, v in problem.items()}
    )
    header(f"Stokes projection preconditioner: n_cells={params.n_cells}, steady={params.steady}")

    if cfg.mlflow.get("enabled", False):
        log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
        with mlflow.start_run(run_name=f"projection_N{params.n_cells[0]}"):
            mlflow.log_params(params.to_dataframe().iloc[0].to_dict())
            results = run(params)
            mlflow.log_metrics(results)
    else:
        results = run(params)

    report("Results", results)
    if results["max_div_u"] < 1e-8 * max(results["max_u"], 1.0):
        ok("velocity is discretely divergence free")
    else:
        fail(f"max |div U| = {results['max_div_u']:.3e}")


if __name__ == "__main__":
    main()
