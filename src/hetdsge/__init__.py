"""hetdsge - Heterogeneous-agent DSGE models on discretized grids."""

from hetdsge.config import settings_from_yaml
from hetdsge.core import (
    Grid,
    IndexMap,
    Parameter,
    ParameterRegistry,
    Setting,
    SettingsManager,
)
from hetdsge.models import AbstractModel, BondLabor
from hetdsge.version import __version__

__all__ = [
    "__version__",
    "AbstractModel",
    "BondLabor",
    "Grid",
    "IndexMap",
    "Parameter",
    "ParameterRegistry",
    "Setting",
    "SettingsManager",
    "settings_from_yaml",
]
