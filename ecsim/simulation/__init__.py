"""
Failure and recovery simulation for erasure-coded storage clusters.

This package provides failure pattern generation, recovery coordination,
and a scenario simulator that drives a cluster on a virtual clock.
"""

from .distributions import (
    Seconds,
    milliseconds,
    minutes,
    hours,
    Distribution,
    Exponential,
    Uniform,
    Constant,
)
from .events import EventType, Event, EventQueue
from .failure import (
    FailureType,
    FailureEvent,
    FailureGenerator,
    FailureScenarios,
    RECOVERY_TIME,
    estimate_recovery_time,
)
from .metrics import RecoveryStats, AvailabilityTracker
from .recovery import (
    RecoveryType,
    RecoveryStrategy,
    RecoveryEvent,
    RecoveryResult,
    RecoveryCoordinator,
)
from .simulator import (
    ScenarioType,
    FailureScenario,
    SimulationStatus,
    Simulator,
)

__all__ = [
    # Time units
    "Seconds",
    "milliseconds",
    "minutes",
    "hours",
    # Distributions
    "Distribution",
    "Exponential",
    "Uniform",
    "Constant",
    # Events
    "EventType",
    "Event",
    "EventQueue",
    # Failures
    "FailureType",
    "FailureEvent",
    "FailureGenerator",
    "FailureScenarios",
    "RECOVERY_TIME",
    "estimate_recovery_time",
    # Metrics
    "RecoveryStats",
    "AvailabilityTracker",
    # Recovery
    "RecoveryType",
    "RecoveryStrategy",
    "RecoveryEvent",
    "RecoveryResult",
    "RecoveryCoordinator",
    # Simulator
    "ScenarioType",
    "FailureScenario",
    "SimulationStatus",
    "Simulator",
]
