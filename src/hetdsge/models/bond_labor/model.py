"""Heterogeneous-agent economy with incomplete markets in bonds and labor.

Households save in a single risk-free bond subject to a borrowing limit,
supply labor elastically and face iid skill risk. Aggregate TFP follows
an AR(1). The cross-sectional distribution lives on a cash-on-hand by
skill grid and enters the state-space representation as one block per
grid point.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

import numpy as np
from pydantic import Field

from hetdsge.core.grids import Grid, build_uniform_grid, discretize_ar1, tensor_product
from hetdsge.core.indices import DISTRIBUTIONAL_KEYS, build_indices
from hetdsge.core.priors import BetaAlt
from hetdsge.core.transforms import Transform
from hetdsge.models.base import AbstractModel
from hetdsge.models.bond_labor.steady_state import SolverOptions, solve_steady_state

logger = logging.getLogger(__name__)

SUBSPECS = ("ss0",)


class BondLabor(AbstractModel):
    """The BondLabor model.

    Example:
        >>> m = BondLabor(testing=True, solve=True)
        >>> m.get_steady_state("cstar").shape
        (40,)

    Attributes:
        data_vintage: Data vintage tag (``yymmdd``) used in output names
        saveroot: Root of the output directory structure
    """

    spec: str = Field(default="BondLabor", description="Model specification identifier")
    data_vintage: str | None = Field(default=None, description="Data vintage, yymmdd")
    saveroot: str | None = Field(default=None, description="Root of saved output")

    distributional_variables: ClassVar[tuple[str, ...]] = DISTRIBUTIONAL_KEYS

    def __init__(self, subspec: str = "ss0", **data: Any) -> None:
        if subspec not in SUBSPECS:
            msg = f"Unknown BondLabor subspec '{subspec}', expected one of {SUBSPECS}"
            raise ValueError(msg)
        super().__init__(subspec=subspec, **data)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def init_settings(self) -> None:
        """Default production and test settings."""
        s = self.settings

        saveroot = Path(self.saveroot) if self.saveroot is not None else Path("save")
        s.define_setting(
            "data_vintage",
            self.data_vintage,
            in_filename=self.data_vintage is not None,
            code="vint",
            description="Data vintage",
        )
        s.define_setting("saveroot", str(saveroot), description="Root of data directory structure")
        s.define_setting(
            "dataroot", str(saveroot / "input_data"), description="Input data directory path"
        )

        s.define_setting(
            "n_anticipated_shocks", 0, description="Number of anticipated policy shocks"
        )

        # States and jumps
        s.define_setting(
            "normalize_distr_variables",
            True,
            description="Drop one point of each distribution in the Klein solution step",
        )
        s.define_setting(
            "state_indices",
            range(0, 2),
            description="Positions of the state variables in endogenous_states",
        )
        s.define_setting(
            "jump_indices",
            range(2, 4),
            description="Positions of the jump variables in endogenous_states",
        )
        s.define_derived_setting(
            "n_states",
            lambda v: v["n"] + 1 - int(v["normalize_distr_variables"]),
            depends_on=("n", "normalize_distr_variables"),
            description="Number of backward-looking states across the grid",
        )
        s.define_derived_setting(
            "n_jumps",
            lambda v: v["n"] + 1 - int(v["normalize_distr_variables"]),
            depends_on=("n", "normalize_distr_variables"),
            description="Number of forward-looking jumps across the grid",
        )
        s.define_derived_setting(
            "n_model_states",
            lambda v: v["n_states"] + v["n_jumps"],
            depends_on=("n_states", "n_jumps"),
            description="Size of the state-space vector (states and jumps)",
        )

        # Mollifier
        s.define_setting("In", 0.443993816237631, description="Normalizing constant for the mollifier")
        s.define_setting("elo", 0.0, description="Lower bound on stochastic consumption commitments")
        s.define_setting("ehi", 1.0, description="Upper bound on stochastic consumption commitments")

        # Cash on hand grid
        s.define_setting("nx", 50, description="Cash on hand grid points")
        s.define_setting("xlo", -1.5, description="Lower bound on cash on hand")
        s.define_setting("xhi", 4.0, description="Upper bound on cash on hand")
        s.define_derived_setting(
            "xscale",
            lambda v: v["xhi"] - v["xlo"],
            depends_on=("xlo", "xhi"),
            description="Width of the cash on hand grid",
        )

        # Skill grid
        s.define_setting("ns", 2, description="Skill grid points")
        s.define_setting("lambda", 3.0, description="Tauchen half-width in standard deviations")
        s.define_derived_setting(
            "n",
            lambda v: v["nx"] * v["ns"],
            depends_on=("nx", "ns"),
            description="Total grid size across both dimensions",
        )

        # Steady-state solver
        s.define_setting("ss_beta_lo", 0.05, description="Lower bracket of beta * R")
        s.define_setting("ss_beta_hi", 0.99, description="Upper bracket of beta * R")
        s.define_setting("ss_tol", 1e-8, description="Tolerance on the market-clearing beta")
        s.define_setting("ss_maxit", 100, description="Iterations of the market-clearing search")
        s.define_setting("ss_policy_tol", 1e-8, description="Consumption policy tolerance")
        s.define_setting("ss_policy_maxit", 5000, description="Consumption policy iterations")
        s.define_setting("ss_dist_tol", 1e-12, description="Stationary distribution tolerance")
        s.define_setting("ss_dist_maxit", 10000, description="Stationary distribution iterations")

        # Testing mode: coarser grid, looser tolerances
        s.define_setting("nx", 20, description="Cash on hand grid points", test=True)
        s.define_setting("ss_tol", 1e-7, description="Tolerance on the market-clearing beta", test=True)
        s.define_setting("ss_policy_tol", 1e-7, description="Consumption policy tolerance", test=True)
        s.define_setting("ss_dist_tol", 1e-11, description="Stationary distribution tolerance", test=True)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def init_parameters(self) -> None:
        """Parameters and NaN steady-state placeholders sized to the grid."""
        p = self.parameters
        p.define_parameter(
            "R", 1.04, fixed=True,
            description="R: Steady-state gross real interest rate.", tex_label="R",
        )
        p.define_parameter(
            "gamma", 1.0, fixed=True, description="gamma: CRRA parameter.", tex_label="\\gamma"
        )
        p.define_parameter(
            "nu", 1.0, fixed=True,
            description="nu: Inverse Frisch elasticity of labor supply.", tex_label="\\nu",
        )
        p.define_parameter(
            "abar", -0.5, fixed=True, description="abar: Borrowing floor.", tex_label="\\bar{a}"
        )
        p.define_parameter(
            "rho_z",
            0.95,
            (1e-5, 0.999),
            (1e-5, 0.999),
            Transform.SQUARE_ROOT,
            BetaAlt(mu=0.5, sigma=0.2),
            fixed=False,
            description="rho_z: AR(1) coefficient in the technology process.",
            tex_label="\\rho_z",
        )
        p.define_parameter(
            "mu_s", 0.0, fixed=True,
            description="mu_s: Mean of log skill.", tex_label="\\mu_s",
        )
        p.define_parameter(
            "sigma_s", 0.5, fixed=True,
            description="sigma_s: Standard deviation of log skill.", tex_label="\\sigma_s",
        )

        n = self.get_setting("nx") * self.get_setting("ns")
        p.define_steady_state_grid(
            "lstar", n,
            description="Steady-state expected discounted marginal utility of consumption",
            tex_label="l_*",
        )
        p.define_steady_state_grid("cstar", n, description="Steady-state consumption", tex_label="c_*")
        p.define_steady_state_grid(
            "etastar", n, description="Steady-state labor supply", tex_label="\\eta_*"
        )
        p.define_steady_state_grid(
            "mustar", n,
            description="Steady-state cross-sectional density of cash on hand and skill",
            tex_label="\\mu_*",
        )
        p.define_steady_state_grid(
            "chistar", n,
            description="Steady-state consumption at the borrowing constraint",
            tex_label="\\chi_*",
        )
        p.define_steady_state_scalar(
            "betastar", description="Steady-state discount factor", tex_label="\\beta_*"
        )

    # ------------------------------------------------------------------
    # Grids and indices
    # ------------------------------------------------------------------

    def build_grids(self) -> dict[str, Any]:
        """Cash-on-hand grid, skill grid and their flattened product.

        The skill grid follows the current ``mu_s`` and ``sigma_s``.
        """
        nx = self.get_setting("nx")
        ns = self.get_setting("ns")
        xscale = self.get_setting("xscale")

        xgrid = build_uniform_grid(self.get_setting("xlo"), self.get_setting("xhi"), nx, xscale)

        log_skill, sprob, sscale = discretize_ar1(
            self.get_parameter("mu_s"),
            self.get_parameter("sigma_s"),
            ns,
            self.get_setting("lambda"),
        )
        swts = (sscale / ns) * np.ones(ns)
        sgrid = Grid(points=np.exp(log_skill), weights=swts, scale=sscale)
        total = tensor_product(xgrid, sgrid)
        logger.debug(f"Built {nx} x {ns} grid, skill levels {np.round(sgrid.points, 4)}")

        return {
            "xgrid": xgrid,
            "sgrid": sgrid,
            # density of skill over the skill grid
            "ggrid": sprob / swts,
            "sgrid_total": total.points_b,
            "xgrid_total": total.points_a,
            "weights_total": total.weights,
            "total": total,
        }

    def init_model_indices(self) -> None:
        """Index map for the current grid sizes and observables."""
        self.indices = build_indices(
            self.get_setting("nx"),
            self.get_setting("ns"),
            exogenous_shocks=("z_sh",),
            observables=tuple(self.observable_mappings),
            n_anticipated_shocks=self.get_setting("n_anticipated_shocks"),
        )

    # ------------------------------------------------------------------
    # Steady state
    # ------------------------------------------------------------------

    def solver_options(self) -> SolverOptions:
        """Steady-state solver options from the settings in effect."""
        return SolverOptions(
            beta_lo=self.get_setting("ss_beta_lo"),
            beta_hi=self.get_setting("ss_beta_hi"),
            tol=self.get_setting("ss_tol"),
            maxit=self.get_setting("ss_maxit"),
            policy_tol=self.get_setting("ss_policy_tol"),
            policy_maxit=self.get_setting("ss_policy_maxit"),
            dist_tol=self.get_setting("ss_dist_tol"),
            dist_maxit=self.get_setting("ss_dist_maxit"),
        )

    def steadystate(self, grids: Mapping[str, Any]) -> dict[str, float | np.ndarray]:
        """Solve the steady state at the current parameter values on ``grids``.

        Returns:
            Flat grid vectors (cash on hand fastest) for ``lstar``,
            ``cstar``, ``etastar``, ``mustar`` and ``chistar`` and the
            scalar ``betastar``
        """
        sgrid: Grid = grids["sgrid"]
        sprob = grids["ggrid"] * sgrid.weights
        solution = solve_steady_state(
            R=self.get_parameter("R"),
            gamma=self.get_parameter("gamma"),
            nu=self.get_parameter("nu"),
            abar=self.get_parameter("abar"),
            xgrid=grids["xgrid"].points,
            sgrid=sgrid.points,
            sprob=sprob,
            weights_total=grids["weights_total"],
            options=self.solver_options(),
        )
        return {
            "lstar": solution.flat("marginal_value"),
            "cstar": solution.flat("consumption"),
            "etastar": solution.flat("labor"),
            "mustar": solution.flat("density"),
            "chistar": solution.flat("constrained"),
            "betastar": solution.beta,
        }
