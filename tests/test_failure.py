"""
Tests for failure schedule generation and canned failure scenarios.
"""

import numpy as np
import pytest

from ecsim import FailureEvent, FailureGenerator, FailureScenarios, FailureType
from ecsim.simulation import (
    RECOVERY_TIME,
    Constant,
    Exponential,
    Uniform,
    estimate_recovery_time,
    hours,
    minutes,
)


def _is_sorted(events):
    return all(a.timestamp <= b.timestamp for a, b in zip(events, events[1:]))


# =============================================================================
# FailureGenerator Tests
# =============================================================================


class TestFailureGenerator:
    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            FailureGenerator(base_failure_rate=1.5)
        with pytest.raises(ValueError):
            FailureGenerator(base_failure_rate=-0.1)
        with pytest.raises(ValueError):
            FailureGenerator(cascade_factor=0.5)

    def test_schedule_is_sorted_and_in_range(self):
        gen = FailureGenerator(base_failure_rate=0.05, seed=1)
        events = gen.generate_failure_schedule([0, 1, 2, 3], 10.0)

        assert events
        assert _is_sorted(events)
        assert all(0.0 <= e.timestamp < 10.0 for e in events)
        assert all(e.node_id in (0, 1, 2, 3) for e in events)

    def test_timestamps_on_tick_boundaries(self):
        gen = FailureGenerator(base_failure_rate=0.1, seed=2)
        events = gen.generate_failure_schedule([0, 1], 5.0)

        for event in events:
            ticks = event.timestamp / 0.1
            assert ticks == pytest.approx(round(ticks))

    def test_zero_rate_generates_nothing(self):
        gen = FailureGenerator(base_failure_rate=0.0, seed=3)
        assert gen.generate_failure_schedule([0, 1, 2], 60.0) == []

    def test_certain_failure_every_tick(self):
        gen = FailureGenerator(base_failure_rate=1.0, cascade_factor=1.0, seed=4)
        events = gen.generate_failure_schedule([0], 1.0)

        assert [e.timestamp for e in events] == pytest.approx([i * 0.1 for i in range(10)])

    def test_short_duration(self):
        gen = FailureGenerator(base_failure_rate=1.0, seed=5)
        assert gen.generate_failure_schedule([0], 0.05) == []

    def test_seed_reproducibility(self):
        a = FailureGenerator(0.05, seed=42).generate_failure_schedule(range(5), 20.0)
        b = FailureGenerator(0.05, seed=42).generate_failure_schedule(range(5), 20.0)
        assert a == b

    def test_shared_rng(self):
        rng = np.random.default_rng(7)
        gen = FailureGenerator(0.05, rng=rng)
        assert gen.rng is rng

    def test_failure_type_distribution(self):
        gen = FailureGenerator(seed=11)
        counts = {t: 0 for t in FailureType}
        for _ in range(5000):
            counts[gen.generate_failure_type()] += 1

        assert counts[FailureType.SOFTWARE_FAILURE] == 0
        assert counts[FailureType.HARDWARE_FAILURE] / 5000 == pytest.approx(0.6, abs=0.03)
        assert counts[FailureType.NETWORK_TIMEOUT] / 5000 == pytest.approx(0.2, abs=0.03)

    def test_cascade_raises_failure_count(self):
        nodes = list(range(10))
        calm_total = cascade_total = 0
        for seed in range(10):
            calm = FailureGenerator(0.002, cascade_factor=1.0, seed=seed)
            cascading = FailureGenerator(0.002, cascade_factor=3.0, seed=seed)
            calm_total += len(calm.generate_failure_schedule(nodes, 120.0))
            cascade_total += len(cascading.generate_failure_schedule(nodes, 120.0))

        assert cascade_total > calm_total


class TestCorrelatedFailures:
    def test_full_correlation_fails_every_group(self):
        gen = FailureGenerator(seed=1)
        groups = [[0, 1, 2], [3, 4], [5]]
        events = gen.generate_correlated_failures(groups, 1.0)

        assert sorted(e.node_id for e in events) == [0, 1, 2, 3, 4, 5]
        assert _is_sorted(events)
        assert all(0.0 <= e.timestamp < 11.0 for e in events)

    def test_group_shares_failure_type(self):
        gen = FailureGenerator(seed=2)
        events = gen.generate_correlated_failures([[0, 1, 2, 3]], 1.0)

        assert len({e.failure_type for e in events}) == 1

    def test_group_timestamps_within_jitter(self):
        gen = FailureGenerator(seed=3)
        events = gen.generate_correlated_failures([[0, 1, 2, 3, 4]], 1.0)

        times = [e.timestamp for e in events]
        assert max(times) - min(times) < 1.0

    def test_zero_correlation(self):
        gen = FailureGenerator(seed=4)
        assert gen.generate_correlated_failures([[0, 1], [2, 3]], 0.0) == []


# =============================================================================
# Scenario Tests
# =============================================================================


class TestFailureScenarios:
    def test_rack_failure(self):
        events = FailureScenarios.rack_failure([4, 5, 6])

        assert [e.node_id for e in events] == [4, 5, 6]
        assert [e.timestamp for e in events] == pytest.approx([5.0, 5.05, 5.1])
        assert all(e.failure_type == FailureType.POWER_OUTAGE for e in events)

    def test_rolling_failure(self):
        events = FailureScenarios.rolling_failure([0, 1, 2], 10.0)

        assert [e.timestamp for e in events] == [0.0, 10.0, 20.0]
        assert all(e.failure_type == FailureType.HARDWARE_FAILURE for e in events)

    def test_byzantine_failure(self):
        rng = np.random.default_rng(5)
        events = FailureScenarios.byzantine_failure(list(range(50)), rng)

        assert 0 < len(events) < 50
        assert _is_sorted(events)
        assert all(0.0 <= e.timestamp < 30.0 for e in events)
        allowed = {
            FailureType.SOFTWARE_FAILURE,
            FailureType.NETWORK_TIMEOUT,
            FailureType.HARDWARE_FAILURE,
        }
        assert {e.failure_type for e in events} <= allowed

    def test_empty_inputs(self):
        assert FailureScenarios.rack_failure([]) == []
        assert FailureScenarios.rolling_failure([], 1.0) == []


# =============================================================================
# Recovery Time Tests
# =============================================================================


class TestRecoveryTime:
    def test_table(self):
        assert estimate_recovery_time(FailureType.NETWORK_TIMEOUT) == 30.0
        assert estimate_recovery_time(FailureType.SOFTWARE_FAILURE) == minutes(2)
        assert estimate_recovery_time(FailureType.DISK_FULL) == minutes(5)
        assert estimate_recovery_time(FailureType.POWER_OUTAGE) == minutes(30)
        assert estimate_recovery_time(FailureType.HARDWARE_FAILURE) == hours(1)

    def test_every_type_covered(self):
        assert set(RECOVERY_TIME) == set(FailureType)

    def test_ordering(self):
        times = [
            estimate_recovery_time(t)
            for t in (
                FailureType.NETWORK_TIMEOUT,
                FailureType.SOFTWARE_FAILURE,
                FailureType.DISK_FULL,
                FailureType.POWER_OUTAGE,
                FailureType.HARDWARE_FAILURE,
            )
        ]
        assert times == sorted(times)

    def test_display(self):
        assert str(FailureType.HARDWARE_FAILURE) == "Hardware Failure"
        event = FailureEvent(3, 1.5, FailureType.DISK_FULL)
        assert "node=3" in repr(event)


# =============================================================================
# Repair Time Distribution Tests
# =============================================================================


class TestRepairDistributions:
    def test_uniform_samples_in_range(self):
        dist = Uniform(2.0, 4.0)
        rng = np.random.default_rng(0)
        samples = np.array([dist.sample(rng) for _ in range(2000)])

        assert dist.mean == 3.0
        assert samples.min() >= 2.0
        assert samples.max() < 4.0
        assert samples.mean() == pytest.approx(3.0, abs=0.1)

    def test_uniform_rejects_empty_range(self):
        with pytest.raises(ValueError):
            Uniform(1.0, 1.0)

    def test_exponential_mean(self):
        dist = Exponential(rate=0.5)
        rng = np.random.default_rng(1)
        samples = [dist.sample(rng) for _ in range(4000)]

        assert dist.mean == 2.0
        assert np.mean(samples) == pytest.approx(2.0, rel=0.1)

    def test_constant(self):
        dist = Constant(1.5)
        assert dist.mean == 1.5
        assert dist.sample(np.random.default_rng()) == 1.5
