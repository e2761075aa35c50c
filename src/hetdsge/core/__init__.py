"""Core data structures for the hetdsge modeling toolkit.

This module provides the building blocks shared by every model:
- Grids: Quadrature grids and discretized stochastic processes
- Parameters: Parameters and steady-state values
- Settings: Production and test computation settings
- Indices: State-space index maps
- Priors and transforms for estimated parameters
"""

from hetdsge.core.exceptions import (
    CircularSettingError,
    DuplicateNameError,
    HetDSGEError,
    IndexConsistencyError,
    InvalidRangeError,
    SteadyStateConvergenceError,
    UnknownParameterError,
    UnknownSettingError,
)
from hetdsge.core.grids import (
    Grid,
    TensorGrid,
    build_uniform_grid,
    discretize_ar1,
    gauss_legendre_quadrature,
    tauchen_ar1_transition,
    tensor_product,
    trapezoid_quadrature,
    uniform_quadrature,
)
from hetdsge.core.indices import IndexCategory, IndexMap, build_indices, normalize
from hetdsge.core.observables import Observable
from hetdsge.core.parameters import (
    Parameter,
    ParameterRegistry,
    ParameterVector,
    SteadyStateParameter,
    SteadyStateParameterGrid,
)
from hetdsge.core.priors import BetaAlt, GammaAlt, InverseGamma, Normal, Prior, Uniform
from hetdsge.core.settings import Setting, SettingsManager
from hetdsge.core.transforms import Transform

__all__ = [
    # Grids
    "Grid",
    "TensorGrid",
    "build_uniform_grid",
    "discretize_ar1",
    "tauchen_ar1_transition",
    "tensor_product",
    "uniform_quadrature",
    "trapezoid_quadrature",
    "gauss_legendre_quadrature",
    # Parameters
    "Parameter",
    "ParameterRegistry",
    "ParameterVector",
    "SteadyStateParameter",
    "SteadyStateParameterGrid",
    "Transform",
    "Prior",
    "Normal",
    "BetaAlt",
    "GammaAlt",
    "InverseGamma",
    "Uniform",
    # Settings
    "Setting",
    "SettingsManager",
    # Indices
    "IndexCategory",
    "IndexMap",
    "build_indices",
    "normalize",
    "Observable",
    # Errors
    "HetDSGEError",
    "DuplicateNameError",
    "UnknownParameterError",
    "UnknownSettingError",
    "InvalidRangeError",
    "CircularSettingError",
    "IndexConsistencyError",
    "SteadyStateConvergenceError",
]
