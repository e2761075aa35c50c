"""Quadrature grids and discretized stochastic processes.

Grids hold the points, quadrature weights and scale of one dimension of
the household state space. Two grids are combined with
:func:`tensor_product` into flat vectors over the joint grid. The first
grid always varies fastest, so the flat index of point ``(a, b)`` is
``a + b * len(grid_a)``. Every distributional vector in the package
(densities, policies, marginal utilities) is laid out this way.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator
from scipy import stats

from hetdsge.core.exceptions import InvalidRangeError

QuadratureKernel = Callable[[float, float, int], tuple[np.ndarray, np.ndarray]]


def _check_bounds(low: float, high: float, n: int) -> None:
    if low >= high:
        msg = f"Grid lower bound {low} must be below upper bound {high}"
        raise InvalidRangeError(msg)
    if n < 1:
        msg = f"Grid needs at least one point, got n={n}"
        raise InvalidRangeError(msg)


def uniform_quadrature(scale: float = 1.0) -> QuadratureKernel:
    """Equally spaced points with equal weights ``scale / n``."""

    def kernel(low: float, high: float, n: int) -> tuple[np.ndarray, np.ndarray]:
        _check_bounds(low, high, n)
        points = np.linspace(low, high, n)
        weights = np.full(n, scale / n)
        return points, weights

    return kernel


def trapezoid_quadrature(scale: float = 1.0) -> QuadratureKernel:
    """Equally spaced points with trapezoid-rule weights summing to ``scale``."""

    def kernel(low: float, high: float, n: int) -> tuple[np.ndarray, np.ndarray]:
        _check_bounds(low, high, n)
        points = np.linspace(low, high, n)
        if n == 1:
            return points, np.array([scale])
        weights = np.full(n, 1.0)
        weights[0] = weights[-1] = 0.5
        weights *= scale / (n - 1)
        return points, weights

    return kernel


def gauss_legendre_quadrature(scale: float = 1.0) -> QuadratureKernel:
    """Gauss-Legendre nodes on ``[low, high]``, weights rescaled to sum to ``scale``."""

    def kernel(low: float, high: float, n: int) -> tuple[np.ndarray, np.ndarray]:
        _check_bounds(low, high, n)
        nodes, weights = np.polynomial.legendre.leggauss(n)
        points = 0.5 * (high - low) * nodes + 0.5 * (high + low)
        # leggauss weights sum to 2 on [-1, 1]
        return points, weights * (scale / 2.0)

    return kernel


class Grid(BaseModel):
    """A one-dimensional quadrature grid.

    Attributes:
        points: Grid points
        weights: Quadrature weight of each point
        scale: Measure of the grid (the weights sum to it for the
            built-in kernels)

    Example:
        >>> xgrid = build_uniform_grid(-1.5, 4.0, 50, 5.5)
        >>> len(xgrid)
        50
    """

    points: np.ndarray = Field(..., description="Grid points")
    weights: np.ndarray = Field(..., description="Quadrature weights")
    scale: float = Field(default=1.0, description="Grid scale")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("points", "weights", mode="before")
    @classmethod
    def ensure_numpy_array(cls, v: Any) -> np.ndarray:  # noqa: N805
        """Convert input to a read-only 1-D float array."""
        arr = np.array(v, dtype=float).reshape(-1)
        arr.setflags(write=False)
        return arr

    @model_validator(mode="after")
    def validate_lengths(self) -> Grid:
        """Points and weights must line up."""
        if self.points.shape != self.weights.shape:
            msg = (
                f"Grid has {self.points.size} points "
                f"but {self.weights.size} weights"
            )
            raise ValueError(msg)
        return self

    @classmethod
    def from_quadrature(
        cls,
        kernel: QuadratureKernel,
        low: float,
        high: float,
        n: int,
        scale: float = 1.0,
    ) -> Grid:
        """Build a grid from a quadrature kernel.

        Args:
            kernel: Function ``(low, high, n) -> (points, weights)``
            low: Lower bound
            high: Upper bound
            n: Number of points
            scale: Grid scale

        Returns:
            New Grid
        """
        points, weights = kernel(low, high, n)
        return cls(points=points, weights=weights, scale=scale)

    def __len__(self) -> int:
        """Return number of grid points."""
        return int(self.points.size)

    def __getitem__(self, index: int) -> float:
        """Get grid point by position."""
        return float(self.points[index])

    def __repr__(self) -> str:
        """String representation."""
        if len(self) == 0:
            return "Grid (empty)"
        return (
            f"Grid ({len(self)} points on [{self.points[0]:.4g}, "
            f"{self.points[-1]:.4g}], scale {self.scale:.4g})"
        )


class TensorGrid(BaseModel):
    """Flattened tensor product of two grids.

    Attributes:
        points_a: First-grid coordinate of every joint point
        points_b: Second-grid coordinate of every joint point
        weights: Product weight of every joint point
        shape: ``(len(grid_a), len(grid_b))``
    """

    points_a: np.ndarray
    points_b: np.ndarray
    weights: np.ndarray
    shape: tuple[int, int]

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def __len__(self) -> int:
        return int(self.weights.size)

    def flat_index(self, a: int, b: int) -> int:
        """Position of joint point ``(a, b)`` in the flattened vectors."""
        n_a, n_b = self.shape
        if not (0 <= a < n_a and 0 <= b < n_b):
            msg = f"Point ({a}, {b}) outside tensor grid of shape {self.shape}"
            raise IndexError(msg)
        return a + b * n_a

    def reshape(self, values: np.ndarray) -> np.ndarray:
        """View a flat vector over the joint grid as an ``(n_a, n_b)`` array."""
        return np.asarray(values).reshape(self.shape, order="F")


def build_uniform_grid(low: float, high: float, n: int, scale: float) -> Grid:
    """Build a uniform grid of ``n`` points spanning ``[low, high]``.

    Args:
        low: Lower bound (included)
        high: Upper bound (included)
        n: Number of points
        scale: Grid scale, each weight is ``scale / n``

    Returns:
        Uniform Grid

    Raises:
        InvalidRangeError: If ``low >= high`` or ``n < 1``
    """
    return Grid.from_quadrature(uniform_quadrature(scale), low, high, n, scale=scale)


def discretize_ar1(
    mean: float, std_dev: float, n_points: int, width_param: float
) -> tuple[np.ndarray, np.ndarray, float]:
    """Tauchen (1986) discretization of ``x ~ N(mean, std_dev**2)``.

    Points are equally spaced on ``mean +/- width_param * std_dev``. Each
    point gets the normal mass between its neighbouring midpoints, the
    tails going to the end points.

    Args:
        mean: Mean of the (log) process
        std_dev: Standard deviation of the (log) process
        n_points: Number of points
        width_param: Half-width of the grid in standard deviations

    Returns:
        Tuple ``(points, probabilities, scale)`` with points in log space
        and ``scale`` the width of the grid

    Raises:
        InvalidRangeError: If ``n_points < 2`` or the spread is not positive
    """
    if n_points < 2:
        msg = f"Tauchen discretization needs at least 2 points, got {n_points}"
        raise InvalidRangeError(msg)
    if std_dev <= 0 or width_param <= 0:
        msg = (
            f"Tauchen discretization needs positive std_dev and width, "
            f"got std_dev={std_dev}, width_param={width_param}"
        )
        raise InvalidRangeError(msg)

    lo = mean - width_param * std_dev
    hi = mean + width_param * std_dev
    points = np.linspace(lo, hi, n_points)
    midpoints = 0.5 * (points[1:] + points[:-1])

    cdf = stats.norm.cdf(midpoints, loc=mean, scale=std_dev)
    cdf = np.concatenate(([0.0], cdf, [1.0]))
    probabilities = np.diff(cdf)
    return points, probabilities, hi - lo


def tauchen_ar1_transition(
    n_points: int, sigma: float = 1.0, rho: float = 0.9, bound: float = 3.0
) -> tuple[np.ndarray, np.ndarray]:
    """Tauchen Markov chain for ``y' = rho * y + sigma * eps``.

    The grid spans ``bound`` unconditional standard deviations either side
    of zero; probability of leaving the grid goes to the closest end point.

    Returns:
        Tuple ``(points, transition)`` where ``transition[i, j]`` is the
        probability of moving from point ``i`` to point ``j``
    """
    if n_points < 2:
        msg = f"Tauchen discretization needs at least 2 points, got {n_points}"
        raise InvalidRangeError(msg)
    if not -1.0 < rho < 1.0:
        msg = f"AR(1) coefficient must lie in (-1, 1), got {rho}"
        raise InvalidRangeError(msg)

    y_max = bound * sigma / np.sqrt(1.0 - rho**2)
    points = np.linspace(-y_max, y_max, n_points)
    cuts = 0.5 * (points[1:] + points[:-1])
    cuts = np.concatenate(([-np.inf], cuts, [np.inf]))

    dist = (cuts[np.newaxis, :] - rho * points[:, np.newaxis]) / sigma
    cdf = stats.norm.cdf(dist)
    sf = stats.norm.sf(dist)
    # take whichever tail is more accurate in floating point
    transition = np.maximum(cdf[:, 1:] - cdf[:, :-1], sf[:, :-1] - sf[:, 1:])
    transition /= transition.sum(axis=1, keepdims=True)
    return points, transition


def tensor_product(grid_a: Grid, grid_b: Grid) -> TensorGrid:
    """Combine two grids into flat joint vectors, first grid varying fastest.

    Args:
        grid_a: Inner grid (e.g. cash on hand)
        grid_b: Outer grid (e.g. skill)

    Returns:
        TensorGrid of length ``len(grid_a) * len(grid_b)``
    """
    n_a, n_b = len(grid_a), len(grid_b)
    points_a = np.kron(np.ones(n_b), grid_a.points)
    points_b = np.kron(grid_b.points, np.ones(n_a))
    weights = np.kron(grid_b.weights, grid_a.weights)
    for arr in (points_a, points_b, weights):
        arr.setflags(write=False)
    return TensorGrid(
        points_a=points_a, points_b=points_b, weights=weights, shape=(n_a, n_b)
    )
