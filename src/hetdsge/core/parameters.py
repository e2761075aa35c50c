"""Parameter and steady-state containers for DSGE models.

Parameters are the time-invariant primitives of a model (preferences,
borrowing limits, shock processes). Steady-state parameters are derived
from them by the model's steady-state solve, either as scalars or as one
value per point of the model's joint grid.

Both live in one :class:`ParameterRegistry`, which keeps the two ordered
lists and a single key namespace, so a name identifies exactly one
quantity of the model.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Generic, TypeVar

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from hetdsge.core.exceptions import DuplicateNameError, UnknownParameterError
from hetdsge.core.priors import Prior
from hetdsge.core.transforms import Transform, to_model_space, to_real_line


class Parameter(BaseModel):
    """A time-invariant model parameter.

    Attributes:
        key: Parameter identifier
        value: Current value in model space
        valuebounds: Bounds on the value (``None`` for unbounded)
        transform_parameterization: ``(a, b)`` pair used by the transform
        transform: Bijection to the real line used in estimation
        prior: Prior distribution (``None`` for fixed parameters)
        fixed: Whether the parameter is held fixed in estimation
        description: Human-readable description
        tex_label: LaTeX label for tables

    Example:
        >>> rho_z = Parameter(
        ...     key="rho_z",
        ...     value=0.95,
        ...     valuebounds=(1e-5, 0.999),
        ...     transform=Transform.SQUARE_ROOT,
        ...     prior=BetaAlt(mu=0.5, sigma=0.2),
        ... )
        >>> round(rho_z.to_model_space(rho_z.to_real_line()), 6)
        0.95
    """

    key: str = Field(..., min_length=1, description="Parameter identifier")
    valuebounds: tuple[float, float] | None = Field(
        default=None, description="Bounds on the value"
    )
    transform_parameterization: tuple[float, float] | None = Field(
        default=None, description="Transform parameterization (a, b)"
    )
    transform: Transform = Field(
        default=Transform.UNTRANSFORMED, description="Transform to the real line"
    )
    value: float = Field(..., description="Parameter value")
    prior: Prior | None = Field(default=None, description="Prior distribution")
    fixed: bool = Field(default=True, description="Fixed in estimation")
    description: str = Field(default="", description="Human-readable description")
    tex_label: str = Field(default="", description="LaTeX label")

    model_config = {"arbitrary_types_allowed": True, "validate_assignment": True}

    @field_validator("transform", mode="before")
    @classmethod
    def normalize_transform(cls, v: Any) -> Transform:  # noqa: N805
        """Accept transform aliases."""
        return Transform.from_alias(v)

    @field_validator("valuebounds")
    @classmethod
    def validate_bounds(  # noqa: N805
        cls, v: tuple[float, float] | None, info: ValidationInfo
    ) -> tuple[float, float] | None:
        """Reject reversed bounds and bounds that exclude the current value."""
        if v is None:
            return v
        lo, hi = v
        key = info.data.get("key", "?")
        if lo > hi:
            msg = f"Parameter '{key}': bounds ({lo}, {hi}) are reversed"
            raise ValueError(msg)
        value = info.data.get("value")
        if value is not None and not lo <= value <= hi:
            msg = f"Parameter '{key}': value {value} outside bounds ({lo}, {hi})"
            raise ValueError(msg)
        return v

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: float, info: ValidationInfo) -> float:  # noqa: N805
        """Keep the value inside its bounds and the transform's domain.

        Runs before the value is stored, so a rejected assignment leaves
        the previous value in place.
        """
        key = info.data.get("key", "?")
        bounds = info.data.get("valuebounds")
        if bounds is not None:
            lo, hi = bounds
            if not lo <= v <= hi:
                msg = f"Parameter '{key}': value {v} outside bounds ({lo}, {hi})"
                raise ValueError(msg)
        if info.data.get("transform") is Transform.SQUARE_ROOT:
            a, b = info.data.get("transform_parameterization") or bounds or (None, None)
            # the square-root transform is undefined at its end points
            if a is not None and not a < v < b:
                msg = f"Parameter '{key}': value {v} outside open interval ({a}, {b})"
                raise ValueError(msg)
        return v

    def _parameterization(self) -> tuple[float, float]:
        if self.transform_parameterization is not None:
            return self.transform_parameterization
        if self.valuebounds is not None:
            return self.valuebounds
        return (0.0, 0.0)

    def to_real_line(self) -> float:
        """Current value mapped to the unconstrained estimation space."""
        return to_real_line(self.value, self.transform, self._parameterization())

    def to_model_space(self, x: float) -> float:
        """Map an unconstrained value back to model space."""
        return to_model_space(x, self.transform, self._parameterization())

    def log_prior(self) -> float:
        """Prior log density at the current value (0 for fixed parameters)."""
        if self.fixed or self.prior is None:
            return 0.0
        return self.prior.logpdf(self.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert parameter to dictionary."""
        return {
            "key": self.key,
            "value": self.value,
            "valuebounds": self.valuebounds,
            "transform": self.transform.value,
            "prior": repr(self.prior) if self.prior is not None else None,
            "fixed": self.fixed,
            "description": self.description,
            "tex_label": self.tex_label,
        }

    def __repr__(self) -> str:
        """String representation."""
        status = "fixed" if self.fixed else "free"
        return f"Parameter {self.key} = {self.value:.6g} ({status})"


class SteadyStateParameter(BaseModel):
    """A scalar steady-state value derived from the parameters."""

    key: str = Field(..., min_length=1, description="Steady-state identifier")
    value: float = Field(default=float("nan"), description="Steady-state value")
    description: str = Field(default="", description="Human-readable description")
    tex_label: str = Field(default="", description="LaTeX label")

    model_config = {"validate_assignment": True}

    def is_computed(self) -> bool:
        return not np.isnan(self.value)

    def __repr__(self) -> str:
        return f"SteadyStateParameter {self.key} = {self.value:.6g}"


class SteadyStateParameterGrid(BaseModel):
    """A steady-state value for every point of the model's joint grid."""

    key: str = Field(..., min_length=1, description="Steady-state identifier")
    value: np.ndarray = Field(..., description="Values over the joint grid")
    description: str = Field(default="", description="Human-readable description")
    tex_label: str = Field(default="", description="LaTeX label")

    model_config = {"arbitrary_types_allowed": True, "validate_assignment": True}

    @field_validator("value", mode="before")
    @classmethod
    def ensure_numpy_array(cls, v: Any) -> np.ndarray:  # noqa: N805
        """Convert input to a 1-D float array."""
        return np.array(v, dtype=float).reshape(-1)

    def size(self) -> int:
        return int(self.value.size)

    def is_computed(self) -> bool:
        return bool(self.value.size) and not np.isnan(self.value).any()

    def __repr__(self) -> str:
        return f"SteadyStateParameterGrid {self.key}: {self.value.size} points"


SteadyState = SteadyStateParameter | SteadyStateParameterGrid

T = TypeVar("T", Parameter, SteadyStateParameter, SteadyStateParameterGrid)


class ParameterVector(Generic[T]):
    """Insertion-ordered collection with O(1) lookup by name and by position."""

    def __init__(self) -> None:
        self._items: list[T] = []
        self._index: dict[str, int] = {}

    def append(self, item: T) -> int:
        """Append an item and return its position.

        Raises:
            DuplicateNameError: If an item with the same key exists
        """
        if item.key in self._index:
            msg = f"'{item.key}' is already registered"
            raise DuplicateNameError(msg)
        self._index[item.key] = len(self._items)
        self._items.append(item)
        return self._index[item.key]

    def get(self, key: str) -> T:
        """Get item by key.

        Raises:
            UnknownParameterError: If the key is not registered
        """
        if key not in self._index:
            msg = f"'{key}' not found"
            raise UnknownParameterError(msg)
        return self._items[self._index[key]]

    def index(self, key: str) -> int:
        if key not in self._index:
            msg = f"'{key}' not found"
            raise UnknownParameterError(msg)
        return self._index[key]

    def name_at(self, position: int) -> str:
        return self._items[position].key

    def keys(self) -> list[str]:
        return [item.key for item in self._items]

    def __getitem__(self, key: str | int) -> T:
        if isinstance(key, int):
            return self._items[key]
        return self.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


class ParameterRegistry:
    """Parameters and steady-state values of one model.

    Keys are unique across both lists. Steady-state entries start as NaN
    and are only written through :meth:`update_steady_state`, which
    validates every new value before touching any of them.

    Example:
        >>> registry = ParameterRegistry()
        >>> _ = registry.define_parameter("R", 1.04, description="Gross real rate")
        >>> _ = registry.define_steady_state_grid("cstar", 100)
        >>> registry.get_value("R")
        1.04
    """

    def __init__(self) -> None:
        self.parameters: ParameterVector[Parameter] = ParameterVector()
        self.steady_state: ParameterVector[
            SteadyStateParameter | SteadyStateParameterGrid
        ] = ParameterVector()

    def _check_new_key(self, key: str) -> None:
        if key in self.parameters or key in self.steady_state:
            msg = f"'{key}' is already registered as a parameter or steady state"
            raise DuplicateNameError(msg)

    def add(self, item: Parameter | SteadyState) -> None:
        """Register a parameter or steady-state object.

        Raises:
            DuplicateNameError: If the key is already registered
        """
        self._check_new_key(item.key)
        if isinstance(item, Parameter):
            self.parameters.append(item)
        else:
            self.steady_state.append(item)

    def define_parameter(
        self,
        key: str,
        value: float,
        valuebounds: tuple[float, float] | None = None,
        transform_parameterization: tuple[float, float] | None = None,
        transform: Transform | str = Transform.UNTRANSFORMED,
        prior: Prior | None = None,
        *,
        fixed: bool = True,
        description: str = "",
        tex_label: str = "",
    ) -> Parameter:
        """Create and register a parameter."""
        param = Parameter(
            key=key,
            value=value,
            valuebounds=valuebounds,
            transform_parameterization=transform_parameterization,
            transform=transform,
            prior=prior,
            fixed=fixed,
            description=description,
            tex_label=tex_label,
        )
        self.add(param)
        return param

    def define_steady_state_scalar(
        self, key: str, *, description: str = "", tex_label: str = ""
    ) -> SteadyStateParameter:
        """Create and register a NaN-initialized scalar steady state."""
        ss = SteadyStateParameter(key=key, description=description, tex_label=tex_label)
        self.add(ss)
        return ss

    def define_steady_state_grid(
        self, key: str, size: int, *, description: str = "", tex_label: str = ""
    ) -> SteadyStateParameterGrid:
        """Create and register a NaN-initialized grid steady state of ``size`` points."""
        if size < 1:
            msg = f"Steady-state grid '{key}' needs a positive size, got {size}"
            raise ValueError(msg)
        ss = SteadyStateParameterGrid(
            key=key,
            value=np.full(size, np.nan),
            description=description,
            tex_label=tex_label,
        )
        self.add(ss)
        return ss

    def get(self, key: str) -> Parameter | SteadyState:
        """Get a parameter or steady-state object by key.

        Raises:
            UnknownParameterError: If the key is not registered
        """
        if key in self.parameters:
            return self.parameters.get(key)
        if key in self.steady_state:
            return self.steady_state.get(key)
        msg = f"Parameter or steady state '{key}' not found"
        raise UnknownParameterError(msg)

    def get_value(self, key: str) -> float | np.ndarray:
        return self.get(key).value

    def set(self, key: str, value: float) -> None:
        """Set the value of a parameter.

        Raises:
            UnknownParameterError: If ``key`` is not a parameter
            ValueError: If the value falls outside the parameter's bounds or
                its transform's domain; the previous value is kept
        """
        if key not in self.parameters:
            msg = f"Parameter '{key}' not found"
            raise UnknownParameterError(msg)
        self.parameters.get(key).value = value

    def update_steady_state(self, values: Mapping[str, float | np.ndarray]) -> None:
        """Replace steady-state values all at once.

        Every key and shape is checked before any entry is written, so a
        bad entry leaves all previous values in place.

        Raises:
            UnknownParameterError: If a key is not a steady-state entry
            ValueError: If a value has the wrong size
        """
        staged: list[tuple[SteadyStateParameter | SteadyStateParameterGrid, Any]] = []
        for key, value in values.items():
            ss = self.steady_state.get(key)
            if isinstance(ss, SteadyStateParameterGrid):
                arr = np.array(value, dtype=float).reshape(-1)
                if arr.size != ss.size():
                    msg = (
                        f"Steady state '{key}' expects {ss.size()} values, "
                        f"got {arr.size}"
                    )
                    raise ValueError(msg)
                staged.append((ss, arr))
            else:
                if np.ndim(value) != 0:
                    msg = f"Steady state '{key}' is scalar, got shape {np.shape(value)}"
                    raise ValueError(msg)
                staged.append((ss, float(value)))

        for ss, value in staged:
            ss.value = value

    def parameter_values(self) -> np.ndarray:
        return np.array([p.value for p in self.parameters], dtype=float)

    def free(self) -> list[str]:
        """Keys of parameters that are estimated."""
        return [p.key for p in self.parameters if not p.fixed]

    def fixed(self) -> list[str]:
        return [p.key for p in self.parameters if p.fixed]

    def keys(self) -> list[str]:
        """All keys, parameters first, in registration order."""
        return self.parameters.keys() + self.steady_state.keys()

    def __contains__(self, key: object) -> bool:
        return key in self.parameters or key in self.steady_state

    def __getitem__(self, key: str) -> Parameter | SteadyState:
        return self.get(key)

    def summary_frame(self) -> pd.DataFrame:
        """Tabulate the parameters, one row per parameter."""
        rows = [p.to_dict() for p in self.parameters]
        columns = [
            "key",
            "value",
            "valuebounds",
            "transform",
            "prior",
            "fixed",
            "description",
            "tex_label",
        ]
        return pd.DataFrame(rows, columns=columns).set_index("key")

    def summary(self) -> dict[str, Any]:
        """Return summary of parameters and steady states."""
        return {
            "total_parameters": len(self.parameters),
            "free_parameters": len(self.free()),
            "steady_states": {
                ss.key: {
                    "size": ss.size() if isinstance(ss, SteadyStateParameterGrid) else 1,
                    "computed": ss.is_computed(),
                    "description": ss.description,
                }
                for ss in self.steady_state
            },
        }
