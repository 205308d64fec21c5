"""
Time units and repair-time distributions for the simulator.

All time values are virtual seconds. Helper functions give readable
constructors for the units failure and recovery tables are written in.
"""

from abc import ABC, abstractmethod
from typing import NewType

import numpy as np

# Explicit time unit - all simulated times are in seconds
Seconds = NewType("Seconds", float)


def milliseconds(ms: float) -> Seconds:
    """Convert milliseconds to seconds."""
    return Seconds(ms / 1000.0)


def minutes(m: float) -> Seconds:
    """Convert minutes to seconds."""
    return Seconds(m * 60)


def hours(h: float) -> Seconds:
    """Convert hours to seconds."""
    return Seconds(h * 3600)


class Distribution(ABC):
    """Abstract base class for duration distributions."""

    @abstractmethod
    def sample(self, rng: np.random.Generator) -> float:
        """Draw one value.

        Args:
            rng: NumPy random number generator for reproducibility.
        """
        pass

    @property
    @abstractmethod
    def mean(self) -> float:
        """Theoretical mean of the distribution."""
        pass


class Exponential(Distribution):
    """Exponential distribution parameterized by rate.

    Args:
        rate: Events per second (1/mean). Must be positive.
    """

    def __init__(self, rate: float):
        if rate <= 0:
            raise ValueError(f"Rate must be positive, got {rate}")
        self.rate = rate

    @property
    def mean(self) -> float:
        return 1.0 / self.rate

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.exponential(1.0 / self.rate))

    def __repr__(self) -> str:
        return f"Exponential(rate={self.rate})"


class Uniform(Distribution):
    """Uniform distribution over [low, high)."""

    def __init__(self, low: float, high: float):
        if low >= high:
            raise ValueError(f"Low must be less than high, got low={low}, high={high}")
        self.low = low
        self.high = high

    @property
    def mean(self) -> float:
        return (self.low + self.high) / 2.0

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.uniform(self.low, self.high))

    def __repr__(self) -> str:
        return f"Uniform(low={self.low}, high={self.high})"


class Constant(Distribution):
    """Always returns ``value``. Useful for deterministic repair times."""

    def __init__(self, value: float):
        self.value = value

    @property
    def mean(self) -> float:
        return self.value

    def sample(self, rng: np.random.Generator) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"Constant(value={self.value})"
