"""
Monte Carlo durability estimation for erasure-coded clusters.

Each trial stores one random payload, replays a randomly generated
failure schedule against the cluster, repairs failed nodes after a
sampled repair time, and checks after every event whether the payload
can still be decoded. Aggregated over many trials this estimates how
likely a layout is to keep data readable for a given duration.
"""

import logging
import math
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from scipy import stats as scipy_stats

from .config import ClusterConfig
from .errors import ErasureSimError
from .simulation.distributions import Distribution, Seconds
from .simulation.events import Event
from .simulation.failure import FailureGenerator, FailureType, estimate_recovery_time
from .simulation.metrics import AvailabilityTracker
from .simulation.recovery import RecoveryEvent, RecoveryStrategy
from .simulation.simulator import Simulator
from .storage import Cluster

logger = logging.getLogger(__name__)

PAYLOAD_KEY = "durability_payload"

# Delay between a wiped node's restart and the rebuild of its chunks.
REBUILD_DELAY = Seconds(1.0)


@dataclass
class DurabilityConfig:
    """Configuration for a durability estimate.

    Attributes:
        num_trials: Number of independent trials.
        duration: Simulated length of each trial in seconds.
        cluster: Cluster layout under test.
        base_failure_rate: Per-tick, per-node failure probability.
        cascade_factor: Failure rate multiplier after each failure.
        repair_time_dist: Distribution of node repair time. If None, the
            expected recovery time of the failure type is used.
        auto_recover: Whether failed nodes are restarted after repair.
        hardware_wipes_data: Whether a hardware failure destroys the node's
            chunks, requiring a data rebuild after restart.
        payload_size: Size of the random payload stored in each trial. If
            None, the cluster's ``payload_size`` is used.
        stop_on_data_loss: Whether a trial ends when the payload first
            becomes unreadable.
        parallel_workers: Number of worker processes (1 = sequential).
        base_seed: Base seed; trial ``i`` uses ``base_seed + i``.
    """

    num_trials: int
    duration: Seconds
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    base_failure_rate: float = 0.001
    cascade_factor: float = 1.5
    repair_time_dist: Distribution | None = None
    auto_recover: bool = True
    hardware_wipes_data: bool = True
    payload_size: int | None = None
    stop_on_data_loss: bool = False
    parallel_workers: int = 1
    base_seed: int | None = None

    def __post_init__(self) -> None:
        if self.num_trials < 1:
            raise ValueError(f"num_trials must be at least 1, got {self.num_trials}")
        if self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        if self.payload_size is None:
            self.payload_size = self.cluster.payload_size
        if self.payload_size < 0:
            raise ValueError(f"payload_size must be non-negative, got {self.payload_size}")
        if self.parallel_workers < 1:
            raise ValueError(
                f"parallel_workers must be at least 1, got {self.parallel_workers}"
            )


@dataclass
class TrialResult:
    """Outcome of one trial.

    Attributes:
        survived: Whether the payload stayed readable for the whole trial.
        time_to_data_loss: When the payload first became unreadable.
        availability: Fraction of the trial the payload was readable.
        failures: Node failures applied.
        recoveries: Successful recovery operations.
    """

    survived: bool
    time_to_data_loss: Seconds | None
    availability: float
    failures: int
    recoveries: int


@dataclass
class DurabilityResults:
    """Aggregated results over all trials."""

    trials: list[TrialResult] = field(default_factory=list)

    @property
    def num_trials(self) -> int:
        return len(self.trials)

    def survival_probability(self) -> float:
        """Fraction of trials in which the payload never became unreadable."""
        if not self.trials:
            return 0.0
        return sum(1 for t in self.trials if t.survived) / len(self.trials)

    def data_loss_probability(self) -> float:
        if not self.trials:
            return 0.0
        return 1.0 - self.survival_probability()

    def survival_ci(self, confidence_level: float = 0.95) -> tuple[float, float]:
        """Wilson score interval for the survival probability.

        Args:
            confidence_level: Desired confidence level (e.g. 0.95).

        Returns:
            Tuple of (lower_bound, upper_bound).
        """
        if not 0 < confidence_level < 1:
            raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")
        n = len(self.trials)
        if n == 0:
            return (0.0, 1.0)

        p = self.survival_probability()
        z = scipy_stats.norm.ppf(1 - (1 - confidence_level) / 2)
        denom = 1 + z**2 / n
        center = (p + z**2 / (2 * n)) / denom
        margin = z * math.sqrt(p * (1 - p) / n + z**2 / (4 * n**2)) / denom
        return (max(0.0, center - margin), min(1.0, center + margin))

    def mean_availability(self) -> float:
        if not self.trials:
            return 0.0
        return float(np.mean([t.availability for t in self.trials]))

    def mean_time_to_data_loss(self) -> float | None:
        """Mean time to first unreadable moment, over trials that had one."""
        times = [t.time_to_data_loss for t in self.trials if t.time_to_data_loss is not None]
        if not times:
            return None
        return float(np.mean(times))

    def mean_failures(self) -> float:
        if not self.trials:
            return 0.0
        return float(np.mean([t.failures for t in self.trials]))

    def summary(self) -> str:
        low, high = self.survival_ci()
        lines = [
            f"Durability Results ({self.num_trials} trials)",
            f"  Survival probability: {self.survival_probability()*100:.1f}% "
            f"(95% CI: [{low*100:.1f}%, {high*100:.1f}%])",
            f"  Mean availability: {self.mean_availability()*100:.2f}%",
            f"  Mean failures per trial: {self.mean_failures():.1f}",
        ]
        mttdl = self.mean_time_to_data_loss()
        if mttdl is not None:
            lines.append(f"  Mean time to data loss: {mttdl:.1f}s")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"DurabilityResults(n={self.num_trials}, "
            f"survival={self.survival_probability()*100:.1f}%)"
        )


def _is_readable(cluster: Cluster, payload: bytes) -> bool:
    try:
        return cluster.retrieve_data(PAYLOAD_KEY) == payload
    except ErasureSimError:
        return False


def run_trial(config: DurabilityConfig, seed: int | None) -> TrialResult:
    """Run a single trial (module-level so it can run in worker processes)."""
    rng = np.random.default_rng(seed)
    cluster = config.cluster.build_cluster()
    simulator = Simulator(cluster, seed=seed)

    payload = rng.integers(0, 256, size=config.payload_size, dtype=np.uint8).tobytes()
    simulator.store_test_data(PAYLOAD_KEY, payload)

    generator = FailureGenerator(config.base_failure_rate, config.cascade_factor, rng=rng)
    schedule = generator.generate_failure_schedule(cluster.node_ids(), config.duration)
    simulator.schedule_failures(schedule)

    failures = 0

    def on_failure(event: Event) -> None:
        nonlocal failures
        failures += 1
        if not config.auto_recover:
            return

        node_id = event.target_id
        failure_type = event.metadata["failure_type"]
        if config.repair_time_dist is not None:
            repair_time = Seconds(config.repair_time_dist.sample(rng))
        else:
            repair_time = estimate_recovery_time(failure_type)

        simulator.schedule_recovery(
            RecoveryEvent.node_restart(node_id, repair_time, RecoveryStrategy.GRADUAL_RECOVERY)
        )
        if config.hardware_wipes_data and failure_type == FailureType.HARDWARE_FAILURE:
            cluster.get_node(node_id).clear_data()
            simulator.schedule_recovery(
                RecoveryEvent.data_rebuild(
                    node_id, [PAYLOAD_KEY], Seconds(repair_time + REBUILD_DELAY)
                )
            )

    simulator.add_failure_listener(on_failure)

    tracker = AvailabilityTracker()
    readable = True
    recoveries = 0
    stopped = False

    while True:
        next_time = simulator.next_event_time()
        if next_time is None or next_time > config.duration:
            break

        tracker.record_elapsed(next_time, readable)
        recoveries += sum(1 for result in simulator.step() if result.success)

        readable = _is_readable(cluster, payload)
        if not readable:
            tracker.mark_unreadable(simulator.current_time)
            if config.stop_on_data_loss:
                stopped = True
                break

    end_time = simulator.current_time if stopped else config.duration
    tracker.record_elapsed(end_time, readable)

    return TrialResult(
        survived=tracker.time_to_data_loss is None,
        time_to_data_loss=tracker.time_to_data_loss,
        availability=tracker.availability_fraction(),
        failures=failures,
        recoveries=recoveries,
    )


class DurabilityRunner:
    """Runs durability trials and aggregates their results.

    Supports parallel execution on multi-core systems.
    """

    def __init__(self, config: DurabilityConfig):
        self.config = config

    def _seed_for(self, index: int) -> int | None:
        if self.config.base_seed is None:
            return None
        return self.config.base_seed + index

    def run(
        self, progress_callback: Callable[[int, int], None] | None = None
    ) -> DurabilityResults:
        """Run every trial.

        Args:
            progress_callback: Optional callback(completed, total).

        Returns:
            Aggregated DurabilityResults. Sequential runs keep trial order;
            parallel runs collect trials in completion order.
        """
        logger.info(
            "Running %d durability trials (%d+%d on %d nodes, %.0fs each)",
            self.config.num_trials,
            self.config.cluster.data_chunks,
            self.config.cluster.parity_chunks,
            self.config.cluster.total_nodes,
            self.config.duration,
        )
        results = DurabilityResults()
        if self.config.parallel_workers > 1:
            self._run_parallel(results, progress_callback)
        else:
            self._run_sequential(results, progress_callback)
        logger.info("%r", results)
        return results

    def _run_sequential(
        self,
        results: DurabilityResults,
        progress_callback: Callable[[int, int], None] | None,
    ) -> None:
        for i in range(self.config.num_trials):
            results.trials.append(run_trial(self.config, self._seed_for(i)))
            if progress_callback:
                progress_callback(i + 1, self.config.num_trials)

    def _run_parallel(
        self,
        results: DurabilityResults,
        progress_callback: Callable[[int, int], None] | None,
    ) -> None:
        completed = 0
        with ProcessPoolExecutor(max_workers=self.config.parallel_workers) as executor:
            futures = [
                executor.submit(run_trial, self.config, self._seed_for(i))
                for i in range(self.config.num_trials)
            ]
            for future in as_completed(futures):
                results.trials.append(future.result())
                completed += 1
                if progress_callback:
                    progress_callback(completed, self.config.num_trials)


def run_durability(config: DurabilityConfig) -> DurabilityResults:
    """Convenience wrapper around DurabilityRunner."""
    return DurabilityRunner(config).run()
