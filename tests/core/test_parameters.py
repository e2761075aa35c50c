"""Tests for parameters, steady-state entries and the parameter registry."""

import numpy as np
import pandas as pd
import pytest

from hetdsge.core import (
    BetaAlt,
    DuplicateNameError,
    Parameter,
    ParameterRegistry,
    ParameterVector,
    SteadyStateParameter,
    SteadyStateParameterGrid,
    Transform,
    UnknownParameterError,
)


@pytest.fixture
def registry():
    """Registry with two parameters and two steady-state entries."""
    reg = ParameterRegistry()
    reg.define_parameter("R", 1.04, fixed=True, description="Gross real rate")
    reg.define_parameter(
        "rho_z",
        0.95,
        (1e-5, 0.999),
        (1e-5, 0.999),
        Transform.SQUARE_ROOT,
        BetaAlt(mu=0.5, sigma=0.2),
        fixed=False,
    )
    reg.define_steady_state_grid("cstar", 4)
    reg.define_steady_state_scalar("betastar")
    return reg


class TestParameter:
    """Tests for Parameter class."""

    def test_parameter_creation(self):
        """Test basic parameter creation."""
        p = Parameter(key="R", value=1.04, description="Gross real rate", tex_label="R")
        assert p.key == "R"
        assert p.value == 1.04
        assert p.fixed
        assert p.transform is Transform.UNTRANSFORMED
        assert p.prior is None

    def test_transform_alias(self):
        """Test transforms accept string aliases."""
        p = Parameter(key="a", value=0.5, valuebounds=(0.0, 1.0), transform="sqrt")
        assert p.transform is Transform.SQUARE_ROOT

    def test_unknown_transform(self):
        """Test unknown transforms are rejected."""
        with pytest.raises(ValueError):
            Parameter(key="a", value=0.5, transform="logit")

    def test_value_outside_bounds(self):
        """Test construction outside the bounds fails."""
        with pytest.raises(ValueError):
            Parameter(key="a", value=2.0, valuebounds=(0.0, 1.0))

    def test_reversed_bounds(self):
        """Test reversed bounds are rejected."""
        with pytest.raises(ValueError):
            Parameter(key="a", value=0.5, valuebounds=(1.0, 0.0))

    def test_assignment_validated(self):
        """Test a rejected assignment leaves the previous value in place."""
        p = Parameter(key="a", value=0.5, valuebounds=(0.0, 1.0))
        with pytest.raises(ValueError):
            p.value = 1.5
        assert p.value == 0.5
        p.value = 1.0
        assert p.value == 1.0

    def test_square_root_end_points(self):
        """Test square-root parameters reject the ends of their interval."""
        p = Parameter(
            key="rho_z",
            value=0.95,
            valuebounds=(1e-5, 0.999),
            transform=Transform.SQUARE_ROOT,
        )
        with pytest.raises(ValueError):
            p.value = 0.999
        assert p.value == 0.95
        with pytest.raises(ValueError):
            Parameter(key="b", value=0.0, valuebounds=(0.0, 1.0), transform="sqrt")

    def test_bounds_assignment_keeps_value_inside(self):
        """Test new bounds that exclude the current value are rejected."""
        p = Parameter(key="a", value=0.5, valuebounds=(0.0, 1.0))
        with pytest.raises(ValueError):
            p.valuebounds = (0.6, 1.0)
        assert p.valuebounds == (0.0, 1.0)

    def test_square_root_round_trip(self):
        """Test the square-root transform inverts."""
        p = Parameter(
            key="rho_z",
            value=0.95,
            valuebounds=(1e-5, 0.999),
            transform=Transform.SQUARE_ROOT,
        )
        x = p.to_real_line()
        assert p.to_model_space(x) == pytest.approx(0.95)

    def test_log_prior(self):
        """Test fixed parameters contribute nothing to the prior."""
        prior = BetaAlt(mu=0.5, sigma=0.2)
        free = Parameter(key="a", value=0.3, prior=prior, fixed=False)
        fixed = Parameter(key="b", value=0.3, prior=prior, fixed=True)
        assert free.log_prior() == pytest.approx(prior.logpdf(0.3))
        assert fixed.log_prior() == 0.0

    def test_to_dict(self):
        """Test conversion to dictionary."""
        p = Parameter(key="R", value=1.04)
        d = p.to_dict()
        assert d["key"] == "R"
        assert d["value"] == 1.04
        assert d["transform"] == "untransformed"


class TestSteadyState:
    """Tests for steady-state entries."""

    def test_scalar_starts_nan(self):
        """Test scalar steady states start as not computed."""
        ss = SteadyStateParameter(key="betastar")
        assert np.isnan(ss.value)
        assert not ss.is_computed()

    def test_grid_shape(self):
        """Test grid values are flattened to 1-D."""
        ss = SteadyStateParameterGrid(key="cstar", value=np.ones((3, 2)))
        assert ss.size() == 6
        assert ss.is_computed()


class TestParameterVector:
    """Tests for the ordered parameter vector."""

    def test_lookup_by_name_and_position(self):
        """Test name and position lookups agree."""
        vec = ParameterVector()
        vec.append(Parameter(key="a", value=1.0))
        vec.append(Parameter(key="b", value=2.0))
        assert vec.index("b") == 1
        assert vec.name_at(1) == "b"
        assert vec[1] is vec["b"]
        assert vec.keys() == ["a", "b"]
        assert len(vec) == 2
        assert "a" in vec

    def test_duplicate(self):
        """Test re-appending a key fails."""
        vec = ParameterVector()
        vec.append(Parameter(key="a", value=1.0))
        with pytest.raises(DuplicateNameError):
            vec.append(Parameter(key="a", value=2.0))

    def test_unknown(self):
        """Test lookups of missing keys fail."""
        vec = ParameterVector()
        with pytest.raises(UnknownParameterError):
            vec.get("missing")
        with pytest.raises(UnknownParameterError):
            vec.index("missing")


class TestParameterRegistry:
    """Tests for ParameterRegistry."""

    def test_registration_order(self, registry):
        """Test keys keep registration order, parameters first."""
        assert registry.keys() == ["R", "rho_z", "cstar", "betastar"]

    def test_get_set_round_trip(self, registry):
        """Test set then get returns the new value."""
        registry.set("R", 1.02)
        assert registry.get_value("R") == 1.02

    def test_set_outside_bounds(self, registry):
        """Test setting a value outside the bounds leaves the old value."""
        with pytest.raises(ValueError):
            registry.set("rho_z", 1.5)
        assert registry.get_value("rho_z") == 0.95

    def test_set_unknown(self, registry):
        """Test setting an unknown or steady-state key fails."""
        with pytest.raises(UnknownParameterError):
            registry.set("missing", 1.0)
        with pytest.raises(UnknownParameterError):
            registry.set("betastar", 1.0)

    def test_get_unknown(self, registry):
        """Test unknown lookups raise UnknownParameterError, also a KeyError."""
        with pytest.raises(UnknownParameterError):
            registry.get("missing")
        with pytest.raises(KeyError):
            registry["missing"]

    def test_duplicate_parameter(self, registry):
        """Test defining R twice fails."""
        with pytest.raises(DuplicateNameError):
            registry.define_parameter("R", 1.0)

    def test_duplicate_across_namespaces(self, registry):
        """Test a steady state cannot reuse a parameter key."""
        with pytest.raises(DuplicateNameError):
            registry.define_steady_state_scalar("R")

    def test_steady_state_placeholders(self, registry):
        """Test steady-state entries start as NaN of the requested size."""
        cstar = registry.get_value("cstar")
        assert cstar.shape == (4,)
        assert np.isnan(cstar).all()
        assert np.isnan(registry.get_value("betastar"))

    def test_grid_size_must_be_positive(self, registry):
        """Test an empty steady-state grid is rejected."""
        with pytest.raises(ValueError):
            registry.define_steady_state_grid("lstar", 0)

    def test_update_steady_state(self, registry):
        """Test all entries are written together."""
        registry.update_steady_state({"cstar": [1.0, 2.0, 3.0, 4.0], "betastar": 0.95})
        assert np.array_equal(registry.get_value("cstar"), [1.0, 2.0, 3.0, 4.0])
        assert registry.get_value("betastar") == 0.95

    def test_update_steady_state_atomic(self, registry):
        """Test a bad entry leaves every value untouched."""
        registry.update_steady_state({"cstar": np.ones(4), "betastar": 0.9})
        with pytest.raises(ValueError):
            registry.update_steady_state({"betastar": 0.5, "cstar": np.ones(3)})
        assert registry.get_value("betastar") == 0.9
        assert np.array_equal(registry.get_value("cstar"), np.ones(4))

    def test_update_unknown_steady_state(self, registry):
        """Test updating a missing key fails before writing."""
        with pytest.raises(UnknownParameterError):
            registry.update_steady_state({"betastar": 0.5, "lstar": np.ones(4)})
        assert np.isnan(registry.get_value("betastar"))

    def test_free_and_fixed(self, registry):
        """Test free/fixed partition."""
        assert registry.free() == ["rho_z"]
        assert registry.fixed() == ["R"]
        assert np.allclose(registry.parameter_values(), [1.04, 0.95])

    def test_summary_frame(self, registry):
        """Test the parameter table."""
        df = registry.summary_frame()
        assert isinstance(df, pd.DataFrame)
        assert list(df.index) == ["R", "rho_z"]
        assert df.loc["rho_z", "fixed"] == False  # noqa: E712

    def test_summary(self, registry):
        """Test the summary dictionary."""
        s = registry.summary()
        assert s["total_parameters"] == 2
        assert s["free_parameters"] == 1
        assert s["steady_states"]["cstar"]["size"] == 4
        assert not s["steady_states"]["betastar"]["computed"]
