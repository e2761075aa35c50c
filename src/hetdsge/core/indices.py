"""Index maps for the state-space representation of a model.

The linear solution method needs every endogenous variable, shock,
equilibrium condition and observable placed at fixed rows/columns of the
model matrices. Grid-valued variables occupy a contiguous block of
``nx * ns`` positions laid out like the flattened joint grid (cash on
hand fastest); scalar variables occupy a single position.

All positions are 0-based and blocks are half-open Python ``range``
objects, so ``matrix[idx.endogenous_states["mu_prime"]]`` selects a
block directly.

Layout of the endogenous states for an ``nx`` by ``ns`` grid::

    mu_prime   range(0, n)            distribution state
    z_prime    range(n, n + 1)        aggregate state
    l_prime    range(n + 1, 2n + 1)   grid-valued jump
    R_prime    range(2n + 1, 2n + 2)  aggregate jump

with ``n = nx * ns``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from pydantic import BaseModel, Field

from hetdsge.core.exceptions import InvalidRangeError

DISTRIBUTIONAL_KEYS = ("mu_prime", "l_prime")


class IndexCategory(str, Enum):
    """Categories of an index map."""

    ENDOGENOUS_STATES = "endogenous_states"
    ENDOGENOUS_STATES_UNNORMALIZED = "endogenous_states_unnormalized"
    EXOGENOUS_SHOCKS = "exogenous_shocks"
    EXPECTED_SHOCKS = "expected_shocks"
    EQUILIBRIUM_CONDITIONS = "equilibrium_conditions"
    OBSERVABLES = "observables"


class IndexMap(BaseModel):
    """Name to position maps for every category of a model.

    Attributes:
        endogenous_states_unnormalized: State and jump blocks before the
            normalization of distributional variables
        endogenous_states: State and jump blocks used by the solver
            (equal to the unnormalized map until normalization is applied)
        exogenous_shocks: Shock name to column
        expected_shocks: Anticipated shock name to column
        equilibrium_conditions: Equation blocks (rows)
        observables: Observable name to row of the measurement equation
    """

    endogenous_states_unnormalized: dict[str, range] = Field(default_factory=dict)
    endogenous_states: dict[str, range] = Field(default_factory=dict)
    exogenous_shocks: dict[str, int] = Field(default_factory=dict)
    expected_shocks: dict[str, int] = Field(default_factory=dict)
    equilibrium_conditions: dict[str, range] = Field(default_factory=dict)
    observables: dict[str, int] = Field(default_factory=dict)

    model_config = {"arbitrary_types_allowed": True}

    def category(self, category: IndexCategory | str) -> dict:
        """Return the map of one category."""
        return getattr(self, IndexCategory(category).value)

    def get_index_range(self, category: IndexCategory | str, name: str) -> int | range:
        """Position of ``name`` in ``category``.

        Raises:
            KeyError: If ``name`` is not in the category
        """
        mapping = self.category(category)
        if name not in mapping:
            msg = f"'{name}' not found in {IndexCategory(category).value}"
            raise KeyError(msg)
        return mapping[name]

    def __repr__(self) -> str:
        return (
            f"IndexMap: {len(self.endogenous_states)} endogenous blocks "
            f"spanning {total_span(self.endogenous_states)}, "
            f"{len(self.exogenous_shocks)} shocks, "
            f"{len(self.observables)} observables"
        )


def total_span(ranges: Mapping[str, range]) -> int:
    """Number of positions covered by a group of ranges."""
    return sum(len(r) for r in ranges.values())


def validate_contiguous(ranges: Mapping[str, range], start: int = 0) -> None:
    """Check that ranges tile ``[start, start + span)`` in order.

    Raises:
        InvalidRangeError: On a gap, an overlap or an empty block
    """
    expected = start
    for name, r in ranges.items():
        if r.step != 1 or len(r) == 0:
            msg = f"Block '{name}' must be a non-empty unit-step range, got {r}"
            raise InvalidRangeError(msg)
        if r.start != expected:
            kind = "gap" if r.start > expected else "overlap"
            msg = f"Block '{name}' starts at {r.start}, expected {expected} ({kind})"
            raise InvalidRangeError(msg)
        expected = r.stop


def _layout(sizes: Iterable[tuple[str, int]]) -> dict[str, range]:
    out: dict[str, range] = {}
    position = 0
    for name, size in sizes:
        out[name] = range(position, position + size)
        position += size
    return out


def build_indices(
    nx: int,
    ns: int,
    exogenous_shocks: Iterable[str] = ("z_sh",),
    observables: Iterable[str] = (),
    n_anticipated_shocks: int = 0,
) -> IndexMap:
    """Build the index map of the bond-labor economy.

    Args:
        nx: Number of cash-on-hand grid points
        ns: Number of skill grid points
        exogenous_shocks: Shock names in column order
        observables: Observable names in row order
        n_anticipated_shocks: Number of anticipated shock horizons

    Returns:
        IndexMap whose normalized states equal the unnormalized ones

    Raises:
        InvalidRangeError: If a grid size is below 1
    """
    if nx < 1 or ns < 1:
        msg = f"Grid sizes must be positive, got nx={nx}, ns={ns}"
        raise InvalidRangeError(msg)
    if n_anticipated_shocks < 0:
        msg = f"Number of anticipated shocks must be non-negative, got {n_anticipated_shocks}"
        raise InvalidRangeError(msg)

    n = nx * ns
    endo = _layout([("mu_prime", n), ("z_prime", 1), ("l_prime", n), ("R_prime", 1)])
    eqconds = _layout(
        [
            ("eq_euler", n),
            ("eq_kolmogorov_fwd", n),
            ("eq_market_clearing", 1),
            ("eq_TFP", 1),
        ]
    )

    return IndexMap(
        endogenous_states_unnormalized=endo,
        endogenous_states=dict(endo),
        exogenous_shocks={k: i for i, k in enumerate(exogenous_shocks)},
        expected_shocks={f"ant_sh{h}": h - 1 for h in range(1, n_anticipated_shocks + 1)},
        equilibrium_conditions=eqconds,
        observables={k: i for i, k in enumerate(observables)},
    )


def normalize(
    ranges: Mapping[str, range],
    distributional: Iterable[str],
    remove_one_dof: bool = True,
) -> dict[str, range]:
    """Drop one degree of freedom from every distributional block.

    A density over the grid integrates to one, so one of its points is
    redundant. Blocks are walked in order with a running count of removed
    positions: each block shifts left by that count, and a distributional
    block also loses its last position. The first block keeps its start.

    Args:
        ranges: Blocks in layout order
        distributional: Names of the blocks that lose a position
        remove_one_dof: Apply the normalization; otherwise return a copy

    Returns:
        New ordered mapping of blocks

    Raises:
        InvalidRangeError: If a distributional block has a single position
            or names a block that does not exist

    Example:
        >>> normalize(
        ...     {"mu": range(0, 100), "z": range(100, 101)}, ["mu"]
        ... )
        {'mu': range(0, 99), 'z': range(99, 100)}
    """
    distributional = set(distributional)
    missing = distributional - set(ranges)
    if missing:
        msg = f"Distributional blocks not in index map: {sorted(missing)}"
        raise InvalidRangeError(msg)
    if not remove_one_dof:
        return dict(ranges)

    out: dict[str, range] = {}
    removed = 0
    for name, r in ranges.items():
        start = r.start - removed
        stop = r.stop - removed
        if name in distributional:
            if len(r) < 2:
                msg = f"Block '{name}' is too short to normalize: {r}"
                raise InvalidRangeError(msg)
            stop -= 1
            removed += 1
        out[name] = range(start, stop)
    return out
