"""Model definitions."""

from hetdsge.models.base import AbstractModel
from hetdsge.models.bond_labor import BondLabor

__all__ = ["AbstractModel", "BondLabor"]
