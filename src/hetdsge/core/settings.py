"""Settings registry for model computation flags.

Settings affect computation without changing the economics of a model:
grid sizes, solver tolerances, paths. Each model holds a production map
and a test map; the model's ``testing`` flag decides which one wins.

A setting either carries a literal value or is derived from other
settings through a formula with an explicit ``depends_on`` list. Derived
settings are evaluated eagerly in dependency order whenever the
registry changes, so an override of ``nx`` propagates to ``n``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from graphlib import CycleError, TopologicalSorter
from typing import Any

from pydantic import BaseModel, Field, model_validator

from hetdsge.core.exceptions import CircularSettingError, UnknownSettingError

logger = logging.getLogger(__name__)

Formula = Callable[[Mapping[str, Any]], Any]


class Setting(BaseModel):
    """A named computation setting.

    Attributes:
        key: Setting identifier
        value: Literal value (``None`` for derived settings until resolved)
        formula: Function of the resolved settings for derived settings
        depends_on: Keys the formula reads
        in_filename: Whether the setting is part of output file names
        code: Short tag used in output file names
        description: Human-readable description

    Example:
        >>> Setting(key="nx", value=50, description="Cash on hand grid points")
        Setting nx = 50
        >>> Setting(
        ...     key="n",
        ...     formula=lambda s: s["nx"] * s["ns"],
        ...     depends_on=("nx", "ns"),
        ... )
        Setting n = f(nx, ns)
    """

    key: str = Field(..., min_length=1, description="Setting identifier")
    value: Any = Field(default=None, description="Setting value")
    formula: Formula | None = Field(default=None, description="Derivation formula")
    depends_on: tuple[str, ...] = Field(
        default_factory=tuple, description="Keys read by the formula"
    )
    in_filename: bool = Field(default=False, description="Use in file names")
    code: str = Field(default="", description="File name tag")
    description: str = Field(default="", description="Human-readable description")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @model_validator(mode="after")
    def validate_derivation(self) -> Setting:
        """Dependencies only make sense for derived settings."""
        if self.depends_on and self.formula is None:
            msg = f"Setting '{self.key}' lists dependencies but has no formula"
            raise ValueError(msg)
        return self

    @property
    def is_derived(self) -> bool:
        return self.formula is not None

    def __repr__(self) -> str:
        if self.is_derived:
            return f"Setting {self.key} = f({', '.join(self.depends_on)})"
        return f"Setting {self.key} = {self.value!r}"


class SettingsManager:
    """Production and test settings of one model.

    Example:
        >>> manager = SettingsManager()
        >>> _ = manager.define_setting("nx", 50)
        >>> _ = manager.define_setting("nx", 10, test=True)
        >>> manager.get_setting("nx", testing=True)
        10
    """

    def __init__(self) -> None:
        self.settings: dict[str, Setting] = {}
        self.test_settings: dict[str, Setting] = {}
        self._resolved: dict[bool, dict[str, Any]] = {}

    def add(self, setting: Setting, test: bool = False) -> None:
        """Add or replace a setting.

        Args:
            setting: Setting to add
            test: Store in the test map instead of the production map
        """
        target = self.test_settings if test else self.settings
        if setting.key in target:
            logger.debug(f"Overriding setting '{setting.key}' (test={test})")
        target[setting.key] = setting
        self._resolved.clear()

    def define_setting(
        self,
        key: str,
        value: Any,
        in_filename: bool = False,
        code: str = "",
        description: str = "",
        *,
        test: bool = False,
    ) -> Setting:
        """Create and add a literal setting."""
        setting = Setting(
            key=key,
            value=value,
            in_filename=in_filename,
            code=code,
            description=description,
        )
        self.add(setting, test=test)
        return setting

    def define_derived_setting(
        self,
        key: str,
        formula: Formula,
        depends_on: Iterable[str],
        description: str = "",
        *,
        test: bool = False,
    ) -> Setting:
        """Create and add a setting computed from other settings."""
        setting = Setting(
            key=key,
            formula=formula,
            depends_on=tuple(depends_on),
            description=description,
        )
        self.add(setting, test=test)
        return setting

    def _effective(self, testing: bool) -> dict[str, Setting]:
        merged = dict(self.settings)
        if testing:
            merged.update(self.test_settings)
        return merged

    def resolve(self, testing: bool = False) -> dict[str, Any]:
        """Evaluate every setting for one mode.

        Derived settings are evaluated in dependency order against the
        effective values of the same mode.

        Returns:
            Mapping of key to effective value

        Raises:
            CircularSettingError: If derived settings form a cycle
            UnknownSettingError: If a formula depends on a missing key
        """
        if testing in self._resolved:
            return self._resolved[testing]

        effective = self._effective(testing)
        sorter: TopologicalSorter[str] = TopologicalSorter()
        for key, setting in effective.items():
            for dep in setting.depends_on:
                if dep not in effective:
                    msg = f"Setting '{key}' depends on unknown setting '{dep}'"
                    raise UnknownSettingError(msg)
            sorter.add(key, *setting.depends_on)

        try:
            order = list(sorter.static_order())
        except CycleError as exc:
            cycle = " -> ".join(exc.args[1])
            msg = f"Circular setting dependency: {cycle}"
            raise CircularSettingError(msg) from exc

        values: dict[str, Any] = {}
        for key in order:
            setting = effective[key]
            if setting.formula is not None:
                values[key] = setting.formula(values)
            else:
                values[key] = setting.value

        # keep definition order for callers iterating the result
        resolved = {key: values[key] for key in effective}
        self._resolved[testing] = resolved
        return resolved

    def get_setting(self, key: str, testing: bool = False) -> Any:
        """Get the effective value of a setting.

        Raises:
            UnknownSettingError: If the key is absent from the selected map
        """
        resolved = self.resolve(testing)
        if key not in resolved:
            mode = "test" if testing else "production"
            msg = f"Setting '{key}' not found in {mode} settings"
            raise UnknownSettingError(msg)
        return resolved[key]

    def get(self, key: str, testing: bool = False) -> Setting:
        """Get the Setting object in effect for one mode."""
        if testing and key in self.test_settings:
            return self.test_settings[key]
        if key in self.settings:
            return self.settings[key]
        msg = f"Setting '{key}' not found"
        raise UnknownSettingError(msg)

    def __contains__(self, key: object) -> bool:
        return key in self.settings or key in self.test_settings

    def list_settings(self) -> list[str]:
        return list(self.settings.keys())

    def filestring_addl(self, testing: bool = False) -> list[str]:
        """``code=value`` tags of the settings that go into file names."""
        resolved = self.resolve(testing)
        tags = []
        for key, setting in self._effective(testing).items():
            if setting.in_filename:
                tags.append(f"{setting.code or key}={resolved[key]}")
        return sorted(tags)
