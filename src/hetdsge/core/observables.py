"""Observable mappings between data series and model variables.

Data loading and transformation live outside this package. An
:class:`Observable` only records which input series feed a measurement
and how to move between data units and model units; the model uses the
order of its observable mapping to number the rows of the measurement
equation.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field


def _identity(x: Any) -> Any:
    return x


class Observable(BaseModel):
    """A measured series and its transformations.

    Attributes:
        key: Observable identifier
        input_series: Data mnemonics the forward transform reads
        fwd_transform: Data levels to model units
        rev_transform: Model units back to data units
        name: Display name
        longname: Longer description
    """

    key: str = Field(..., min_length=1, description="Observable identifier")
    input_series: tuple[str, ...] = Field(
        default_factory=tuple, description="Input data mnemonics"
    )
    fwd_transform: Callable[[Any], Any] = Field(
        default=_identity, description="Data to model units"
    )
    rev_transform: Callable[[Any], Any] = Field(
        default=_identity, description="Model to data units"
    )
    name: str = Field(default="", description="Display name")
    longname: str = Field(default="", description="Long description")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def __repr__(self) -> str:
        return f"Observable {self.key} <- {', '.join(self.input_series) or '(none)'}"
