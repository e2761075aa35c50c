"""Prior distributions for estimated parameters.

Priors are frozen pydantic records that delegate densities and sampling
to ``scipy.stats``. Sampling always takes an explicit
``numpy.random.Generator`` so that a model's random stream is the only
source of randomness.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, model_validator
from scipy import stats


class Prior(BaseModel, ABC):
    """Base class for parameter priors."""

    model_config = {"frozen": True}

    @abstractmethod
    def distribution(self) -> Any:
        """Return the frozen ``scipy.stats`` distribution."""
        ...

    def logpdf(self, x: float) -> float:
        """Log density at ``x``."""
        return float(self.distribution().logpdf(x))

    def mean(self) -> float:
        return float(self.distribution().mean())

    def std(self) -> float:
        return float(self.distribution().std())

    def rvs(self, rng: np.random.Generator, size: int | None = None) -> Any:
        """Draw from the prior using the caller's generator."""
        return self.distribution().rvs(size=size, random_state=rng)


class Normal(Prior):
    """Normal prior with mean and standard deviation."""

    mu: float = Field(..., description="Mean")
    sigma: float = Field(..., gt=0, description="Standard deviation")

    def distribution(self) -> Any:
        return stats.norm(loc=self.mu, scale=self.sigma)

    def __repr__(self) -> str:
        return f"Normal(mu={self.mu}, sigma={self.sigma})"


class BetaAlt(Prior):
    """Beta prior parameterized by its mean and standard deviation."""

    mu: float = Field(..., gt=0, lt=1, description="Mean")
    sigma: float = Field(..., gt=0, description="Standard deviation")

    @model_validator(mode="after")
    def validate_moments(self) -> BetaAlt:
        """The variance must be attainable by a beta distribution."""
        if self.sigma**2 >= self.mu * (1 - self.mu):
            msg = (
                f"Standard deviation {self.sigma} too large for a beta "
                f"distribution with mean {self.mu}"
            )
            raise ValueError(msg)
        return self

    def shape_parameters(self) -> tuple[float, float]:
        """Return the ``(alpha, beta)`` shape parameters."""
        alpha = (1 - self.mu) * self.mu**2 / self.sigma**2 - self.mu
        beta = alpha * (1 / self.mu - 1)
        return alpha, beta

    def distribution(self) -> Any:
        alpha, beta = self.shape_parameters()
        return stats.beta(alpha, beta)

    def __repr__(self) -> str:
        return f"BetaAlt(mu={self.mu}, sigma={self.sigma})"


class GammaAlt(Prior):
    """Gamma prior parameterized by its mean and standard deviation."""

    mu: float = Field(..., gt=0, description="Mean")
    sigma: float = Field(..., gt=0, description="Standard deviation")

    def distribution(self) -> Any:
        shape = self.mu**2 / self.sigma**2
        scale = self.sigma**2 / self.mu
        return stats.gamma(shape, scale=scale)

    def __repr__(self) -> str:
        return f"GammaAlt(mu={self.mu}, sigma={self.sigma})"


class InverseGamma(Prior):
    """Inverse-gamma prior with shape and scale."""

    shape: float = Field(..., gt=0, description="Shape")
    scale: float = Field(..., gt=0, description="Scale")

    def distribution(self) -> Any:
        return stats.invgamma(self.shape, scale=self.scale)

    def __repr__(self) -> str:
        return f"InverseGamma(shape={self.shape}, scale={self.scale})"


class Uniform(Prior):
    """Uniform prior on ``[lo, hi]``."""

    lo: float = Field(..., description="Lower bound")
    hi: float = Field(..., description="Upper bound")

    @model_validator(mode="after")
    def validate_bounds(self) -> Uniform:
        if self.lo >= self.hi:
            msg = f"Uniform prior needs lo < hi, got ({self.lo}, {self.hi})"
            raise ValueError(msg)
        return self

    def distribution(self) -> Any:
        return stats.uniform(loc=self.lo, scale=self.hi - self.lo)

    def __repr__(self) -> str:
        return f"Uniform(lo={self.lo}, hi={self.hi})"
