"""Tests for the BondLabor steady state."""

import numpy as np
import pytest

from hetdsge.core import InvalidRangeError, Setting, SteadyStateConvergenceError
from hetdsge.models import BondLabor
from hetdsge.models.bond_labor.steady_state import (
    SolverOptions,
    constrained_consumption,
    labor_supply,
    solve_steady_state,
    stationary_mass,
    transition_matrix,
)


@pytest.fixture(scope="module")
def solved():
    """BondLabor in testing mode with its steady state solved."""
    return BondLabor(testing=True, solve=True)


def savings_of(m):
    """Bond choice at every grid node implied by the stored policies."""
    x = m.grids["xgrid_total"]
    s = m.grids["sgrid_total"]
    a = x + s * m.get_steady_state("etastar") - m.get_steady_state("cstar")
    return np.maximum(a, m.get_parameter("abar"))


class TestSolvedModel:
    """Tests for the stored steady state."""

    def test_all_entries_computed(self, solved):
        """Test every steady-state entry is finite and sized to the grid."""
        for ss in solved.parameters.steady_state:
            assert ss.is_computed(), ss.key
        for key in ("lstar", "cstar", "etastar", "mustar", "chistar"):
            value = solved.get_steady_state(key)
            assert value.shape == (40,)
            assert np.all(np.isfinite(value))

    def test_discount_factor(self, solved):
        """Test incomplete markets push beta * R below one."""
        beta = solved.get_steady_state("betastar")
        R = solved.get_parameter("R")
        assert 0.05 / R < beta < 0.99 / R

    def test_density_integrates_to_one(self, solved):
        """Test the density times the quadrature weights sums to one."""
        mu = solved.get_steady_state("mustar")
        assert np.all(mu >= 0)
        assert np.sum(mu * solved.grids["weights_total"]) == pytest.approx(1.0)

    def test_skill_marginal(self, solved):
        """Test the skill marginal of the density matches the skill probabilities."""
        mass = solved.get_steady_state("mustar") * solved.grids["weights_total"]
        by_skill = mass.reshape((20, 2), order="F").sum(axis=0)
        sprob = solved.grids["ggrid"] * solved.grids["sgrid"].weights
        assert np.allclose(by_skill, sprob, atol=1e-8)

    def test_bond_market_clears(self, solved):
        """Test aggregate bond demand is zero."""
        mass = solved.get_steady_state("mustar") * solved.grids["weights_total"]
        assert np.sum(mass * savings_of(solved)) == pytest.approx(0.0, abs=1e-3)

    def test_borrowing_limit(self, solved):
        """Test someone is at the limit and someone saves."""
        a = savings_of(solved)
        abar = solved.get_parameter("abar")
        assert np.any(np.isclose(a, abar))
        assert np.any(a > 0)

    def test_intratemporal_condition(self, solved):
        """Test labor supply satisfies eta**nu = s * c**-gamma."""
        c = solved.get_steady_state("cstar")
        eta = solved.get_steady_state("etastar")
        s = solved.grids["sgrid_total"]
        assert np.allclose(eta, s / c)

    def test_constrained_consumption(self, solved):
        """Test chistar exhausts the budget at the borrowing limit."""
        chi = solved.get_steady_state("chistar")
        x = solved.grids["xgrid_total"]
        s = solved.grids["sgrid_total"]
        assert np.allclose(x + s * (s / chi) - chi, solved.get_parameter("abar"))
        assert np.all(solved.get_steady_state("cstar") <= chi + 1e-6)

    def test_consumption_increasing(self, solved):
        """Test consumption rises with cash on hand for each skill."""
        c = solved.get_steady_state("cstar").reshape((20, 2), order="F")
        assert np.all(np.diff(c, axis=0) > 0)

    def test_marginal_value_positive(self, solved):
        """Test lstar is a discounted marginal utility."""
        assert np.all(solved.get_steady_state("lstar") > 0)

    def test_idempotent(self):
        """Test solving twice with unchanged parameters gives the same values."""
        m = BondLabor(testing=True, solve=True)
        first = {k: np.copy(m.get_steady_state(k)) for k in m.parameters.steady_state.keys()}
        m.solve_steady_state()
        for key, value in first.items():
            assert np.array_equal(m.get_steady_state(key), value), key


class TestParameterChanges:
    """Tests for re-solving after a parameter change."""

    def test_skill_dispersion_change(self):
        """Test a re-solve uses a skill grid built from the new sigma_s."""
        m = BondLabor(testing=True, solve=True)
        beta = m.get_steady_state("betastar")
        m.set_parameter("sigma_s", 0.2)
        m.solve_steady_state()

        fresh = BondLabor(testing=True)
        fresh.set_parameter("sigma_s", 0.2)
        fresh.solve_steady_state()

        assert np.allclose(m.grids["sgrid"].points, np.exp([-0.6, 0.6]))
        assert np.array_equal(m.grids["sgrid_total"], fresh.grids["sgrid_total"])
        assert m.get_steady_state("betastar") != pytest.approx(beta)
        for key in m.parameters.steady_state.keys():
            assert np.allclose(m.get_steady_state(key), fresh.get_steady_state(key)), key

    def test_failed_solve_keeps_grids(self):
        """Test a failed re-solve leaves the grids of the last solve."""
        m = BondLabor(testing=True, solve=True)
        points = m.grids["sgrid"].points.copy()
        m.set_parameter("sigma_s", 0.2)
        m.add_setting(Setting(key="ss_policy_maxit", value=1), test=True)
        with pytest.raises(SteadyStateConvergenceError):
            m.solve_steady_state()
        assert np.array_equal(m.grids["sgrid"].points, points)


class TestSolverFailures:
    """Tests for steady-state failures."""

    def test_no_sign_change(self):
        """Test a bracket without market clearing raises."""
        with pytest.raises(SteadyStateConvergenceError):
            BondLabor(
                testing=True,
                solve=True,
                custom_settings=[
                    Setting(key="ss_beta_lo", value=0.05),
                    Setting(key="ss_beta_hi", value=0.1),
                ],
            )

    def test_policy_iterations_exhausted(self):
        """Test a policy that cannot converge raises."""
        with pytest.raises(SteadyStateConvergenceError):
            BondLabor(
                testing=True,
                solve=True,
                custom_settings=[Setting(key="ss_policy_maxit", value=1)],
            )

    def test_failure_keeps_previous_values(self):
        """Test a failed solve leaves the stored steady state in place."""
        m = BondLabor(testing=True, solve=True)
        before = np.copy(m.get_steady_state("cstar"))
        beta = m.get_steady_state("betastar")
        m.add_setting(Setting(key="ss_policy_maxit", value=1), test=True)
        with pytest.raises(SteadyStateConvergenceError):
            m.solve_steady_state()
        assert np.array_equal(m.get_steady_state("cstar"), before)
        assert m.get_steady_state("betastar") == beta


class TestSolverPieces:
    """Tests for the building blocks of the solver."""

    def test_labor_supply(self):
        """Test the intratemporal condition."""
        assert labor_supply(2.0, 4.0, 1.0, 1.0) == pytest.approx(2.0)
        assert labor_supply(1.0, 4.0, 2.0, 2.0) == pytest.approx(2.0)

    def test_constrained_consumption_closed_form(self):
        """Test log utility and linear disutility against the quadratic root."""
        x = np.array([-1.0, 0.0, 2.0])
        s = np.array([0.5, 2.0])
        chi = constrained_consumption(x, s, -0.5, 1.0, 1.0)
        gap = (x - -0.5)[:, np.newaxis]
        expected = 0.5 * (gap + np.sqrt(gap**2 + 4.0 * s[np.newaxis, :] ** 2))
        assert np.allclose(chi, expected)

    def test_transition_rows(self):
        """Test transition rows are distributions split between neighbouring nodes."""
        xgrid = np.linspace(-1.0, 3.0, 5)
        savings = np.array([[-0.5, 0.3], [0.1, 1.2], [2.0, 0.0], [0.8, 5.0], [1.0, -2.0]])
        sprob = np.array([0.3, 0.7])
        trans = transition_matrix(savings, 1.0, xgrid, sprob)
        assert trans.shape == (10, 10)
        assert np.allclose(trans.sum(axis=1), 1.0)

        to_low_skill = trans[:, :5].sum(axis=1)
        assert np.allclose(to_low_skill, 0.3)
        # node (0, 0) saves -0.5, between grid points -1 and 0
        assert trans[0, 0] == pytest.approx(0.5 * 0.3)
        assert trans[0, 1] == pytest.approx(0.5 * 0.3)
        # beyond the grid goes to the end points
        assert trans[8, 4] == pytest.approx(0.3)
        assert trans[9, 0] == pytest.approx(0.3)

    def test_stationary_mass(self):
        """Test the stationary distribution of a two-state chain."""
        trans = np.array([[0.9, 0.1], [0.2, 0.8]])
        mass = stationary_mass(trans, SolverOptions())
        assert np.allclose(mass, [2.0 / 3.0, 1.0 / 3.0])

    def test_stationary_mass_not_converged(self):
        """Test a slowly mixing chain runs out of iterations."""
        trans = np.array([[1.0 - 1e-6, 1e-6], [0.5, 0.5]])
        with pytest.raises(SteadyStateConvergenceError):
            stationary_mass(trans, SolverOptions(dist_maxit=10))

    def test_options_validation(self):
        """Test solver options reject nonsense."""
        with pytest.raises(ValueError):
            SolverOptions(policy_tol=0.0)
        with pytest.raises(ValueError):
            SolverOptions(beta_hi=1.0)

    def test_grid_too_small(self):
        """Test a one-point cash-on-hand grid is rejected."""
        with pytest.raises(InvalidRangeError):
            solve_steady_state(
                1.04, 1.0, 1.0, -0.5, np.array([0.0]), np.array([1.0]), np.array([1.0]), np.ones(1)
            )
