"""Tests for index maps and their normalization."""

import pytest

from hetdsge.core import IndexCategory, IndexMap, InvalidRangeError, build_indices, normalize
from hetdsge.core.indices import DISTRIBUTIONAL_KEYS, total_span, validate_contiguous


class TestBuildIndices:
    """Tests for build_indices."""

    def test_default_layout(self):
        """Test the nx=50, ns=2 layout."""
        idx = build_indices(50, 2)
        assert idx.endogenous_states == {
            "mu_prime": range(0, 100),
            "z_prime": range(100, 101),
            "l_prime": range(101, 201),
            "R_prime": range(201, 202),
        }
        assert idx.equilibrium_conditions == {
            "eq_euler": range(0, 100),
            "eq_kolmogorov_fwd": range(100, 200),
            "eq_market_clearing": range(200, 201),
            "eq_TFP": range(201, 202),
        }

    def test_equations_match_states(self):
        """Test there is one equation per state-space position."""
        idx = build_indices(50, 2)
        assert total_span(idx.equilibrium_conditions) == total_span(idx.endogenous_states)
        assert sorted(len(r) for r in idx.equilibrium_conditions.values()) == sorted(
            len(r) for r in idx.endogenous_states.values()
        )

    @pytest.mark.parametrize("nx,ns", [(1, 1), (1, 3), (7, 1), (50, 2), (13, 5)])
    def test_states_tile_full_span(self, nx, ns):
        """Test state blocks cover range(0, 2 * nx * ns + 2) without gaps."""
        idx = build_indices(nx, ns)
        validate_contiguous(idx.endogenous_states)
        validate_contiguous(idx.equilibrium_conditions)
        covered = [i for r in idx.endogenous_states.values() for i in r]
        assert covered == list(range(2 * nx * ns + 2))

    def test_unnormalized_matches_normalized_initially(self):
        """Test both state maps agree before normalization."""
        idx = build_indices(4, 3)
        assert idx.endogenous_states == idx.endogenous_states_unnormalized
        assert idx.endogenous_states is not idx.endogenous_states_unnormalized

    def test_shocks_and_observables(self):
        """Test scalar categories are numbered in order."""
        idx = build_indices(2, 2, exogenous_shocks=("z_sh", "b_sh"), observables=("obs_gdp",))
        assert idx.exogenous_shocks == {"z_sh": 0, "b_sh": 1}
        assert idx.observables == {"obs_gdp": 0}
        assert idx.expected_shocks == {}

    def test_anticipated_shocks(self):
        """Test anticipated shocks get one column per horizon."""
        idx = build_indices(2, 2, n_anticipated_shocks=3)
        assert idx.expected_shocks == {"ant_sh1": 0, "ant_sh2": 1, "ant_sh3": 2}

    @pytest.mark.parametrize("nx,ns,n_ant", [(0, 2, 0), (2, 0, 0), (2, 2, -1)])
    def test_invalid_sizes(self, nx, ns, n_ant):
        """Test non-positive sizes are rejected."""
        with pytest.raises(InvalidRangeError):
            build_indices(nx, ns, n_anticipated_shocks=n_ant)


class TestIndexMap:
    """Tests for IndexMap lookups."""

    def test_get_index_range(self):
        """Test lookups by category enum or name."""
        idx = build_indices(50, 2)
        assert idx.get_index_range(IndexCategory.ENDOGENOUS_STATES, "l_prime") == range(101, 201)
        assert idx.get_index_range("exogenous_shocks", "z_sh") == 0

    def test_unknown_name(self):
        """Test missing names raise KeyError."""
        idx = build_indices(2, 2)
        with pytest.raises(KeyError):
            idx.get_index_range("exogenous_shocks", "missing")

    def test_unknown_category(self):
        """Test unknown categories are rejected."""
        idx = IndexMap()
        with pytest.raises(ValueError):
            idx.category("parameters")


class TestNormalize:
    """Tests for normalize."""

    def test_drops_one_point_per_distribution(self):
        """Test the nx=50, ns=2 normalized layout."""
        idx = build_indices(50, 2)
        out = normalize(idx.endogenous_states_unnormalized, DISTRIBUTIONAL_KEYS)
        assert out == {
            "mu_prime": range(0, 99),
            "z_prime": range(99, 100),
            "l_prime": range(100, 199),
            "R_prime": range(199, 200),
        }
        validate_contiguous(out)
        assert total_span(out) == 200

    def test_disabled(self):
        """Test remove_one_dof=False returns an equal copy."""
        idx = build_indices(3, 2)
        out = normalize(idx.endogenous_states_unnormalized, DISTRIBUTIONAL_KEYS, remove_one_dof=False)
        assert out == idx.endogenous_states_unnormalized
        assert out is not idx.endogenous_states_unnormalized

    def test_input_untouched(self):
        """Test the input map is not modified."""
        idx = build_indices(3, 2)
        before = dict(idx.endogenous_states_unnormalized)
        normalize(idx.endogenous_states_unnormalized, DISTRIBUTIONAL_KEYS)
        assert idx.endogenous_states_unnormalized == before

    def test_preserves_order(self):
        """Test block order is kept."""
        idx = build_indices(3, 2)
        out = normalize(idx.endogenous_states_unnormalized, DISTRIBUTIONAL_KEYS)
        assert list(out) == list(idx.endogenous_states_unnormalized)

    def test_single_point_distribution(self):
        """Test a one-point distribution cannot lose a degree of freedom."""
        idx = build_indices(1, 1)
        with pytest.raises(InvalidRangeError):
            normalize(idx.endogenous_states_unnormalized, DISTRIBUTIONAL_KEYS)

    def test_missing_block(self):
        """Test naming a block that does not exist fails."""
        with pytest.raises(InvalidRangeError):
            normalize({"a": range(0, 3)}, ["b"])


class TestValidateContiguous:
    """Tests for validate_contiguous."""

    def test_gap(self):
        """Test gaps are rejected."""
        with pytest.raises(InvalidRangeError):
            validate_contiguous({"a": range(0, 3), "b": range(4, 5)})

    def test_overlap(self):
        """Test overlaps are rejected."""
        with pytest.raises(InvalidRangeError):
            validate_contiguous({"a": range(0, 3), "b": range(2, 5)})

    def test_empty_block(self):
        """Test empty blocks are rejected."""
        with pytest.raises(InvalidRangeError):
            validate_contiguous({"a": range(0, 0)})

    def test_offset_start(self):
        """Test a custom starting position."""
        validate_contiguous({"a": range(5, 7), "b": range(7, 8)}, start=5)
