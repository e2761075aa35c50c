"""Model base class for hetdsge.

:class:`AbstractModel` owns every registry of one model instance
(parameters, steady state, settings, grids, indices, observables and the
random stream) and drives construction in a fixed order:

1. settings, then custom settings
2. parameters and steady-state placeholders
3. grids
4. index map, checked against the state/jump counts in settings
5. steady state (optional)
6. normalization of distributional indices (optional)

Any failure propagates out of the constructor; no partial model exists.
Concrete models implement the ``init_*`` hooks, ``build_grids`` and
``steadystate``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

import numpy as np
from pydantic import BaseModel, Field, field_validator

from hetdsge.core.exceptions import IndexConsistencyError, UnknownParameterError
from hetdsge.core.indices import IndexCategory, IndexMap, normalize, total_span
from hetdsge.core.observables import Observable
from hetdsge.core.parameters import (
    Parameter,
    ParameterRegistry,
    SteadyStateParameter,
    SteadyStateParameterGrid,
)
from hetdsge.core.settings import Setting, SettingsManager

logger = logging.getLogger(__name__)


class AbstractModel(BaseModel, ABC):
    """Base class for DSGE models.

    Attributes:
        spec: Model specification identifier
        subspec: Model subspecification
        testing: Use test settings where they exist
        seed: Seed of the model's random stream
        custom_settings: Settings applied over the model defaults
        solve: Solve for the steady state during construction
        normalize: Normalize distributional indices during construction
        parameters: Parameter and steady-state registry
        settings: Production and test settings
        grids: Named grids and grid-derived vectors
        indices: State-space index map
        observable_mappings: Observables in measurement-equation order
        rng: Random stream, seeded with ``seed``
    """

    spec: str = Field(..., description="Model specification identifier")
    subspec: str = Field(default="ss0", description="Model subspecification")
    testing: bool = Field(default=False, description="Testing mode")
    seed: int = Field(default=0, description="Random stream seed")
    custom_settings: dict[str, Setting] = Field(
        default_factory=dict, description="Settings overriding the defaults"
    )
    solve: bool = Field(default=False, description="Solve steady state on init")
    normalize: bool = Field(default=False, description="Normalize indices on init")

    parameters: ParameterRegistry = Field(default_factory=ParameterRegistry)
    settings: SettingsManager = Field(default_factory=SettingsManager)
    grids: dict[str, Any] = Field(default_factory=dict)
    indices: IndexMap = Field(default_factory=IndexMap)
    observable_mappings: dict[str, Observable] = Field(default_factory=dict)
    rng: np.random.Generator | None = Field(default=None)

    model_config = {"arbitrary_types_allowed": True}

    # Keys of endogenous blocks that hold a density over the grid
    distributional_variables: ClassVar[tuple[str, ...]] = ()

    @field_validator("custom_settings", mode="before")
    @classmethod
    def collect_custom_settings(cls, v: Any) -> dict[str, Setting]:  # noqa: N805
        """Accept custom settings as a list or a mapping."""
        return settings_by_key(v)

    def __init__(self, **data: Any) -> None:
        """Validate fields, then build the model in dependency order."""
        super().__init__(**data)
        self.rng = np.random.default_rng(self.seed)

        self.init_settings()
        for setting in self.custom_settings.values():
            self.add_setting(setting, test=self.testing)

        self.init_observable_mappings()
        self.init_parameters()
        self.init_grids()
        self.init_model_indices()
        self.check_index_consistency()

        if self.solve:
            self.solve_steady_state()
        if self.normalize:
            self.normalize_state_indices()

        logger.info(f"Initialized {self.description()}")

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def init_settings(self) -> None:
        """Register the default settings."""
        ...

    @abstractmethod
    def init_parameters(self) -> None:
        """Register parameters and NaN steady-state placeholders."""
        ...

    @abstractmethod
    def build_grids(self) -> dict[str, Any]:
        """Build the model's grids from the current settings and parameters."""
        ...

    def init_grids(self) -> None:
        self.grids = self.build_grids()

    @abstractmethod
    def init_model_indices(self) -> None:
        """Build the index map."""
        ...

    @abstractmethod
    def steadystate(self, grids: Mapping[str, Any]) -> dict[str, float | np.ndarray]:
        """Compute every steady-state value from the current parameters.

        Args:
            grids: Grids built by :meth:`build_grids` at the current
                parameter values

        Returns:
            Mapping from steady-state key to its new value
        """
        ...

    def init_observable_mappings(self) -> None:
        """Register observables; models without data keep none."""
        return None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_parameter(
        self, item: Parameter | SteadyStateParameter | SteadyStateParameterGrid
    ) -> None:
        """Register a parameter or steady-state entry."""
        self.parameters.add(item)

    def add_setting(self, setting: Setting, test: bool = False) -> None:
        """Add or override a setting."""
        self.settings.add(setting, test=test)

    def add_observable(self, observable: Observable) -> None:
        """Register an observable and renumber the observable indices.

        Observables are numbered in registration order; the endogenous
        state maps, normalized or not, are left as they are.
        """
        self.observable_mappings[observable.key] = observable
        self.indices.observables = {
            key: i for i, key in enumerate(self.observable_mappings)
        }

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __getitem__(
        self, key: str
    ) -> Parameter | SteadyStateParameter | SteadyStateParameterGrid:
        """Get a parameter or steady-state object by key."""
        return self.parameters.get(key)

    def get_parameter(self, key: str) -> float:
        """Value of a parameter.

        Raises:
            UnknownParameterError: If ``key`` is not a parameter
        """
        if key not in self.parameters.parameters:
            msg = f"Parameter '{key}' not found"
            raise UnknownParameterError(msg)
        return self.parameters.parameters.get(key).value

    def set_parameter(self, key: str, value: float) -> None:
        """Set a parameter value.

        The steady state is not recomputed; call :meth:`solve_steady_state`
        before using steady-state values again.
        """
        self.parameters.set(key, value)

    def get_steady_state(self, key: str) -> float | np.ndarray:
        """Value of a steady-state entry (scalar or grid).

        Grid values are returned as copies; write through
        :meth:`solve_steady_state` instead.
        """
        value = self.parameters.steady_state.get(key).value
        if isinstance(value, np.ndarray):
            return value.copy()
        return value

    def get_setting(self, key: str) -> Any:
        """Effective value of a setting in the model's mode."""
        return self.settings.get_setting(key, testing=self.testing)

    def get_index_range(self, category: IndexCategory | str, name: str) -> int | range:
        """Position of ``name`` in an index category."""
        return self.indices.get_index_range(category, name)

    # ------------------------------------------------------------------
    # Steady state and indices
    # ------------------------------------------------------------------

    def solve_steady_state(self) -> None:
        """Recompute and store every steady-state value.

        Grids that depend on parameters are rebuilt first. New grids and
        values are computed into scratch mappings and swapped in only when
        the whole solve succeeds.
        """
        grids = self.build_grids()
        values = self.steadystate(grids)
        missing = set(self.parameters.steady_state.keys()) - set(values)
        if missing:
            msg = f"Steady-state solve did not produce {sorted(missing)}"
            raise ValueError(msg)
        self.parameters.update_steady_state(values)
        self.grids = grids
        logger.info(f"Steady state stored for {self.description()}")

    def _state_jump_keys(self) -> tuple[list[str], list[str]]:
        keys = list(self.indices.endogenous_states_unnormalized)
        state_idx = self.get_setting("state_indices")
        jump_idx = self.get_setting("jump_indices")
        return [keys[i] for i in state_idx], [keys[i] for i in jump_idx]

    def _normalized_states(self) -> dict[str, range]:
        return normalize(
            self.indices.endogenous_states_unnormalized,
            self.distributional_variables,
            remove_one_dof=bool(self.get_setting("normalize_distr_variables")),
        )

    def check_index_consistency(self) -> None:
        """Compare the state/jump counts in settings with the index map.

        Raises:
            IndexConsistencyError: If the counts disagree
        """
        normalized = self._normalized_states()
        state_keys, jump_keys = self._state_jump_keys()
        if set(state_keys) & set(jump_keys):
            msg = f"Keys {sorted(set(state_keys) & set(jump_keys))} are both states and jumps"
            raise IndexConsistencyError(msg)

        n_states = sum(len(normalized[k]) for k in state_keys)
        n_jumps = sum(len(normalized[k]) for k in jump_keys)
        checks = {
            "n_states": n_states,
            "n_jumps": n_jumps,
            "n_model_states": total_span(normalized),
        }
        for key, expected in checks.items():
            actual = self.get_setting(key)
            if actual != expected:
                msg = (
                    f"Setting '{key}' is {actual} but the index map "
                    f"implies {expected}"
                )
                raise IndexConsistencyError(msg)

    def normalize_state_indices(self) -> None:
        """Shift ``endogenous_states`` to the normalized layout.

        The unnormalized map is left untouched; applying this twice gives
        the same result.
        """
        self.indices.endogenous_states = self._normalized_states()

    # ------------------------------------------------------------------
    # Sizes and description
    # ------------------------------------------------------------------

    @property
    def n_states(self) -> int:
        return self.get_setting("n_states")

    @property
    def n_jumps(self) -> int:
        return self.get_setting("n_jumps")

    @property
    def n_model_states(self) -> int:
        return self.get_setting("n_model_states")

    @property
    def n_shocks_exogenous(self) -> int:
        return len(self.indices.exogenous_shocks)

    @property
    def n_shocks_expectational(self) -> int:
        return len(self.indices.expected_shocks)

    @property
    def n_observables(self) -> int:
        return len(self.indices.observables)

    def reset_rng(self, seed: int | None = None) -> None:
        """Reseed the model's random stream."""
        if seed is not None:
            self.seed = seed
        self.rng = np.random.default_rng(self.seed)

    def filestring(self) -> str:
        """Tag for output file names built from settings marked for file names."""
        tags = self.settings.filestring_addl(testing=self.testing)
        return "_".join([self.spec, self.subspec, *tags])

    def description(self) -> str:
        return f"{self.spec}, {self.subspec}"

    def summary(self) -> dict[str, Any]:
        """Return comprehensive model summary."""
        return {
            "spec": self.spec,
            "subspec": self.subspec,
            "testing": self.testing,
            "parameters": self.parameters.summary(),
            "grids": sorted(self.grids),
            "endogenous_states": {
                k: (r.start, r.stop) for k, r in self.indices.endogenous_states.items()
            },
            "n_states": self.n_states,
            "n_jumps": self.n_jumps,
            "n_observables": self.n_observables,
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"{self.__class__.__name__} '{self.description()}': "
            f"{len(self.parameters.parameters)} parameters, "
            f"{len(self.parameters.steady_state)} steady states, "
            f"{self.n_model_states} model states"
        )


def settings_by_key(settings: Mapping[str, Setting] | list[Setting] | None) -> dict[str, Setting]:
    """Normalize custom settings given as a list or mapping."""
    if settings is None:
        return {}
    if isinstance(settings, Mapping):
        return dict(settings)
    return {s.key: s for s in settings}
