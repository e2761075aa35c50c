"""Steady state of the bond-labor economy.

Households hold cash on hand ``x`` (the gross return on last period's
bonds) and draw an iid skill ``s`` each period. They choose consumption
``c`` and labor ``eta`` to maximize

    c**(1 - gamma) / (1 - gamma) - eta**(1 + nu) / (1 + nu)

subject to ``a' = x + s * eta - c >= abar`` and ``x' = R * a'``. Labor
satisfies the intratemporal condition ``eta = (s * c**-gamma)**(1 / nu)``.

The solve has three layers:

1. Consumption policy for a given discount factor, by the endogenous
   grid method iterated to a fixed point.
2. Stationary distribution over the joint grid, by distributing next
   period's cash on hand onto the grid with a linear lottery.
3. The discount factor that clears the bond market (zero net supply).

All grid-valued outputs are flat vectors with cash on hand varying
fastest, matching :func:`hetdsge.core.grids.tensor_product`.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from pydantic import BaseModel, Field
from scipy.optimize import brentq

from hetdsge.core.exceptions import InvalidRangeError, SteadyStateConvergenceError

logger = logging.getLogger(__name__)


class SolverOptions(BaseModel):
    """Tolerances and brackets of the steady-state solve."""

    beta_lo: float = Field(default=0.05, gt=0, description="Lower bracket of beta * R")
    beta_hi: float = Field(default=0.99, gt=0, lt=1, description="Upper bracket of beta * R")
    tol: float = Field(default=1e-8, gt=0, description="Market clearing tolerance on beta")
    maxit: int = Field(default=100, gt=0, description="Market clearing iterations")
    policy_tol: float = Field(default=1e-8, gt=0, description="Policy fixed-point tolerance")
    policy_maxit: int = Field(default=5000, gt=0, description="Policy iterations")
    dist_tol: float = Field(default=1e-12, gt=0, description="Distribution tolerance")
    dist_maxit: int = Field(default=10000, gt=0, description="Distribution iterations")

    model_config = {"frozen": True}


class SteadyStateSolution(BaseModel):
    """Steady-state objects over the joint grid.

    Attributes:
        beta: Market-clearing discount factor
        consumption: Consumption policy, shape ``(nx, ns)``
        labor: Labor supply, shape ``(nx, ns)``
        savings: Bond choice ``a'``, shape ``(nx, ns)``
        constrained: Consumption when saving at the borrowing limit
        marginal_value: Expected discounted marginal utility of next
            period's consumption, shape ``(nx, ns)``
        mass: Stationary probability mass, shape ``(nx, ns)``
        density: Mass divided by the quadrature weights
        excess_savings: Aggregate bond demand at ``beta``
    """

    beta: float
    consumption: np.ndarray
    labor: np.ndarray
    savings: np.ndarray
    constrained: np.ndarray
    marginal_value: np.ndarray
    mass: np.ndarray
    density: np.ndarray
    excess_savings: float

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def flat(self, name: str) -> np.ndarray:
        """Grid object flattened with cash on hand varying fastest."""
        return np.asarray(getattr(self, name)).reshape(-1, order="F")


def labor_supply(
    consumption: np.ndarray, skill: np.ndarray, gamma: float, nu: float
) -> np.ndarray:
    """Labor from the intratemporal condition ``eta**nu = s * c**-gamma``."""
    return (skill * consumption ** (-gamma)) ** (1.0 / nu)


def constrained_consumption(
    xgrid: np.ndarray, sgrid: np.ndarray, abar: float, gamma: float, nu: float
) -> np.ndarray:
    """Consumption of a household that saves exactly ``abar``.

    Solves ``x + s * eta(c) - c = abar`` at every grid node. The left-hand
    side falls from ``+inf`` to ``-inf`` as ``c`` rises, so each node has
    one root.

    Returns:
        Array of shape ``(len(xgrid), len(sgrid))``
    """
    chi = np.empty((xgrid.size, sgrid.size))
    for j, s in enumerate(sgrid):
        for i, x in enumerate(xgrid):

            def budget(c: float, x: float = x, s: float = s) -> float:
                return x + s * labor_supply(c, s, gamma, nu) - c - abar

            lo, hi = 1e-10, 1.0
            while budget(hi) > 0.0:
                hi *= 2.0
                if hi > 1e12:
                    msg = f"Could not bracket constrained consumption at x={x}, s={s}"
                    raise SteadyStateConvergenceError(msg)
            chi[i, j] = brentq(budget, lo, hi, xtol=1e-14, rtol=1e-14)
    return chi


def _interp_extrap(x: np.ndarray, xp: np.ndarray, fp: np.ndarray) -> np.ndarray:
    """Linear interpolation with linear extrapolation above the last node."""
    out = np.interp(x, xp, fp)
    if xp.size >= 2:
        above = x > xp[-1]
        slope = (fp[-1] - fp[-2]) / (xp[-1] - xp[-2])
        out[above] = fp[-1] + slope * (x[above] - xp[-1])
    return out


def _expected_marginal_utility(
    x_next: np.ndarray,
    xgrid: np.ndarray,
    consumption: np.ndarray,
    sprob: np.ndarray,
    gamma: float,
) -> np.ndarray:
    """``E_s'[c(x', s')**-gamma]`` for every entry of ``x_next``."""
    mu = np.zeros(x_next.shape)
    for j, p in enumerate(sprob):
        c_next = np.interp(x_next, xgrid, consumption[:, j])
        mu += p * c_next ** (-gamma)
    return mu


def egm_step(
    consumption: np.ndarray,
    beta: float,
    R: float,
    gamma: float,
    nu: float,
    abar: float,
    xgrid: np.ndarray,
    sgrid: np.ndarray,
    sprob: np.ndarray,
    agrid: np.ndarray,
    chi: np.ndarray,
) -> np.ndarray:
    """One endogenous-grid update of the consumption policy."""
    emu = _expected_marginal_utility(R * agrid, xgrid, consumption, sprob, gamma)
    c_endo = (beta * R * emu) ** (-1.0 / gamma)

    new = np.empty_like(consumption)
    for j, s in enumerate(sgrid):
        x_endo = c_endo + agrid - s * labor_supply(c_endo, s, gamma, nu)
        unconstrained = xgrid >= x_endo[0]
        new[:, j] = chi[:, j]
        new[unconstrained, j] = _interp_extrap(xgrid[unconstrained], x_endo, c_endo)
    return np.maximum(new, 1e-12)


def solve_policy(
    beta: float,
    R: float,
    gamma: float,
    nu: float,
    abar: float,
    xgrid: np.ndarray,
    sgrid: np.ndarray,
    sprob: np.ndarray,
    chi: np.ndarray,
    options: SolverOptions,
    initial: np.ndarray | None = None,
) -> np.ndarray:
    """Iterate the endogenous grid method to a fixed point.

    Raises:
        SteadyStateConvergenceError: If the policy does not converge
    """
    agrid = np.linspace(abar, xgrid[-1] / R, xgrid.size)
    consumption = chi.copy() if initial is None else initial.copy()
    for it in range(1, options.policy_maxit + 1):
        new = egm_step(
            consumption, beta, R, gamma, nu, abar, xgrid, sgrid, sprob, agrid, chi
        )
        diff = np.max(np.abs(new - consumption))
        consumption = new
        if diff < options.policy_tol:
            logger.debug(f"Policy converged in {it} iterations at beta={beta:.8f}")
            return consumption
    msg = (
        f"Consumption policy did not converge in {options.policy_maxit} "
        f"iterations at beta={beta:.8f} (last change {diff:.3e})"
    )
    raise SteadyStateConvergenceError(msg)


def transition_matrix(
    savings: np.ndarray, R: float, xgrid: np.ndarray, sprob: np.ndarray
) -> np.ndarray:
    """Transition probabilities between nodes of the flattened joint grid.

    Next period's cash on hand ``R * a'`` is split between the two
    neighbouring x nodes so that its mean is preserved; values beyond the
    grid go to the end node. Skills are redrawn from ``sprob``.

    Returns:
        Row-stochastic matrix of shape ``(nx * ns, nx * ns)``
    """
    nx, ns = savings.shape
    n = nx * ns
    x_next = R * savings.reshape(-1, order="F")

    lower = np.clip(np.searchsorted(xgrid, x_next, side="right") - 1, 0, nx - 2)
    w_hi = (x_next - xgrid[lower]) / (xgrid[lower + 1] - xgrid[lower])
    w_hi = np.clip(w_hi, 0.0, 1.0)

    rows = np.arange(n)
    trans = np.zeros((n, n))
    for j, p in enumerate(sprob):
        np.add.at(trans, (rows, lower + j * nx), p * (1.0 - w_hi))
        np.add.at(trans, (rows, lower + 1 + j * nx), p * w_hi)
    return trans


def stationary_mass(trans: np.ndarray, options: SolverOptions) -> np.ndarray:
    """Stationary distribution of a row-stochastic matrix by power iteration.

    Raises:
        SteadyStateConvergenceError: If the iteration does not converge
    """
    n = trans.shape[0]
    mass = np.full(n, 1.0 / n)
    for _ in range(options.dist_maxit):
        new = mass @ trans
        new /= new.sum()
        if np.max(np.abs(new - mass)) < options.dist_tol:
            return new
        mass = new
    msg = f"Stationary distribution did not converge in {options.dist_maxit} iterations"
    raise SteadyStateConvergenceError(msg)


def solve_steady_state(
    R: float,
    gamma: float,
    nu: float,
    abar: float,
    xgrid: np.ndarray,
    sgrid: np.ndarray,
    sprob: np.ndarray,
    weights_total: np.ndarray,
    options: SolverOptions | None = None,
) -> SteadyStateSolution:
    """Solve for the market-clearing steady state.

    Args:
        R: Gross real interest rate
        gamma: Relative risk aversion
        nu: Inverse Frisch elasticity of labor supply
        abar: Borrowing limit
        xgrid: Cash-on-hand grid points
        sgrid: Skill levels
        sprob: Probability of each skill level
        weights_total: Quadrature weights of the flattened joint grid
        options: Solver tolerances and brackets

    Returns:
        SteadyStateSolution at the market-clearing discount factor

    Raises:
        InvalidRangeError: If the grid is too small
        SteadyStateConvergenceError: If any layer of the solve fails
    """
    options = options or SolverOptions()
    xgrid = np.asarray(xgrid, dtype=float)
    sgrid = np.asarray(sgrid, dtype=float)
    sprob = np.asarray(sprob, dtype=float)
    if xgrid.size < 2:
        msg = f"Steady state needs at least 2 cash-on-hand points, got {xgrid.size}"
        raise InvalidRangeError(msg)
    if options.beta_lo >= options.beta_hi:
        msg = f"Empty discount factor bracket ({options.beta_lo}, {options.beta_hi})"
        raise InvalidRangeError(msg)

    chi = constrained_consumption(xgrid, sgrid, abar, gamma, nu)
    skill = sgrid[np.newaxis, :]
    xcol = xgrid[:, np.newaxis]
    state: dict[str, Any] = {"policy": None}

    def evaluate(beta: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        consumption = solve_policy(
            beta, R, gamma, nu, abar, xgrid, sgrid, sprob, chi, options,
            initial=state["policy"],
        )
        state["policy"] = consumption
        labor = labor_supply(consumption, skill, gamma, nu)
        savings = np.maximum(xcol + skill * labor - consumption, abar)
        mass = stationary_mass(transition_matrix(savings, R, xgrid, sprob), options)
        return consumption, savings, mass

    def excess(beta: float) -> float:
        _, savings, mass = evaluate(beta)
        value = float(mass @ savings.reshape(-1, order="F"))
        logger.debug(f"beta={beta:.8f} excess savings={value:.6e}")
        return value

    beta_lo, beta_hi = options.beta_lo / R, options.beta_hi / R
    excess_lo, excess_hi = excess(beta_lo), excess(beta_hi)
    if np.sign(excess_lo) == np.sign(excess_hi):
        msg = (
            f"Bond market does not clear in beta bracket ({beta_lo:.6f}, {beta_hi:.6f}): "
            f"excess savings {excess_lo:.4e} and {excess_hi:.4e}"
        )
        raise SteadyStateConvergenceError(msg)

    try:
        beta = brentq(excess, beta_lo, beta_hi, xtol=options.tol, maxiter=options.maxit)
    except RuntimeError as exc:
        msg = f"Bond market clearing did not converge: {exc}"
        raise SteadyStateConvergenceError(msg) from exc

    consumption, savings, mass = evaluate(beta)
    labor = labor_supply(consumption, skill, gamma, nu)
    mass = mass.reshape(consumption.shape, order="F")
    weights = np.asarray(weights_total, dtype=float).reshape(consumption.shape, order="F")
    marginal_value = beta * R * _expected_marginal_utility(
        R * savings, xgrid, consumption, sprob, gamma
    )
    excess_savings = float(np.sum(mass * savings))
    logger.info(f"Steady state: beta={beta:.6f}, excess savings={excess_savings:.3e}")

    return SteadyStateSolution(
        beta=beta,
        consumption=consumption,
        labor=labor,
        savings=savings,
        constrained=chi,
        marginal_value=marginal_value,
        mass=mass,
        density=mass / weights,
        excess_savings=excess_savings,
    )
