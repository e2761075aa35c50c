"""Bijections between bounded parameter space and the real line.

Estimation routines search over an unconstrained space. Each parameter
carries a :class:`Transform` and a ``(a, b)`` parameterization that map
its bounded model-space value to the real line and back.
"""

from __future__ import annotations

from enum import Enum

import numpy as np


class Transform(str, Enum):
    """Supported parameter transformations."""

    UNTRANSFORMED = "untransformed"
    SQUARE_ROOT = "square_root"
    EXPONENTIAL = "exponential"

    @classmethod
    def from_alias(cls, value: str | Transform | None) -> Transform:
        """Normalize transform aliases into one canonical ``Transform``."""
        if isinstance(value, Transform):
            return value
        normalized = str(value or cls.UNTRANSFORMED.value).strip().lower()
        aliases: dict[str, Transform] = {
            "untransformed": cls.UNTRANSFORMED,
            "identity": cls.UNTRANSFORMED,
            "none": cls.UNTRANSFORMED,
            "square_root": cls.SQUARE_ROOT,
            "squareroot": cls.SQUARE_ROOT,
            "sqrt": cls.SQUARE_ROOT,
            "exponential": cls.EXPONENTIAL,
            "exp": cls.EXPONENTIAL,
        }
        if normalized not in aliases:
            allowed = [m.value for m in cls]
            raise ValueError(f"Unsupported transform '{value}'. Allowed: {allowed}")
        return aliases[normalized]


def to_real_line(
    value: float, transform: Transform, parameterization: tuple[float, float]
) -> float:
    """Map a model-space value to the real line.

    Args:
        value: Parameter value in model space
        transform: Transform kind
        parameterization: ``(a, b)`` pair of the transform

    Returns:
        Unconstrained value

    Raises:
        ValueError: If the value lies outside the transform's domain
    """
    a, b = parameterization
    if transform is Transform.SQUARE_ROOT:
        cx = 2.0 * (value - (a + b) / 2.0) / (b - a)
        if abs(cx) >= 1.0:
            msg = f"Value {value} outside open interval ({a}, {b})"
            raise ValueError(msg)
        return float(cx / np.sqrt(1.0 - cx**2))
    if transform is Transform.EXPONENTIAL:
        if value <= a:
            msg = f"Value {value} must exceed lower bound {a}"
            raise ValueError(msg)
        return float(b + np.log(value - a))
    return float(value)


def to_model_space(
    value: float, transform: Transform, parameterization: tuple[float, float]
) -> float:
    """Inverse of :func:`to_real_line`."""
    a, b = parameterization
    if transform is Transform.SQUARE_ROOT:
        return float((a + b) / 2.0 + (b - a) / 2.0 * value / np.sqrt(1.0 + value**2))
    if transform is Transform.EXPONENTIAL:
        return float(a + np.exp(value - b))
    return float(value)
