"""
ecsim - erasure-coded storage cluster simulator.

Splits payloads into XOR parity chunks spread over in-memory storage
nodes, injects node failures, coordinates recovery, and estimates data
durability with Monte Carlo trials.
"""

import logging

from .errors import (
    ErasureSimError,
    SchemeNotConfiguredError,
    NodeNotFoundError,
    NodeUnavailableError,
    InsufficientNodesError,
    InsufficientChunksError,
    ChunkMismatchError,
    UnsupportedRecoveryError,
    NoAvailableNodesError,
)
from .erasure import ErasureScheme, SimpleParityScheme, create_simple_parity
from .storage import (
    Node,
    NodeState,
    StorageStats,
    Cluster,
    ClusterHealth,
    ClusterStatistics,
    NodeStatistics,
)
from .config import ClusterConfig
from .simulation import (
    FailureType,
    FailureEvent,
    FailureGenerator,
    FailureScenarios,
    RecoveryType,
    RecoveryStrategy,
    RecoveryEvent,
    RecoveryResult,
    RecoveryCoordinator,
    RecoveryStats,
    ScenarioType,
    FailureScenario,
    SimulationStatus,
    Simulator,
)
from .durability import (
    DurabilityConfig,
    TrialResult,
    DurabilityResults,
    DurabilityRunner,
    run_durability,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ErasureSimError",
    "SchemeNotConfiguredError",
    "NodeNotFoundError",
    "NodeUnavailableError",
    "InsufficientNodesError",
    "InsufficientChunksError",
    "ChunkMismatchError",
    "UnsupportedRecoveryError",
    "NoAvailableNodesError",
    # Erasure coding
    "ErasureScheme",
    "SimpleParityScheme",
    "create_simple_parity",
    # Storage
    "Node",
    "NodeState",
    "StorageStats",
    "Cluster",
    "ClusterHealth",
    "ClusterStatistics",
    "NodeStatistics",
    # Config
    "ClusterConfig",
    # Simulation
    "FailureType",
    "FailureEvent",
    "FailureGenerator",
    "FailureScenarios",
    "RecoveryType",
    "RecoveryStrategy",
    "RecoveryEvent",
    "RecoveryResult",
    "RecoveryCoordinator",
    "RecoveryStats",
    "ScenarioType",
    "FailureScenario",
    "SimulationStatus",
    "Simulator",
    # Durability
    "DurabilityConfig",
    "TrialResult",
    "DurabilityResults",
    "DurabilityRunner",
    "run_durability",
]
