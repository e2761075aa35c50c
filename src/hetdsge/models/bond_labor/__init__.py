"""BondLabor: incomplete markets with a bond and elastic labor supply."""

from hetdsge.models.bond_labor.model import BondLabor
from hetdsge.models.bond_labor.steady_state import (
    SolverOptions,
    SteadyStateSolution,
    solve_steady_state,
)

__all__ = ["BondLabor", "SolverOptions", "SteadyStateSolution", "solve_steady_state"]
