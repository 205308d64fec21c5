"""
Tests for the scenario simulator and its event loop.
"""

import pytest

from ecsim import (
    Cluster,
    FailureEvent,
    FailureScenario,
    FailureScenarios,
    FailureType,
    InsufficientNodesError,
    NoAvailableNodesError,
    NodeNotFoundError,
    NodeState,
    RecoveryEvent,
    ScenarioType,
    Simulator,
    create_simple_parity,
)
from ecsim.simulation import Event, EventQueue, EventType


MESSAGE = b"Hello, World! This is a test message."


def _simulator(nodes=6, k=4, m=2, **kwargs):
    return Simulator(Cluster.with_nodes(nodes, create_simple_parity(k, m)), **kwargs)


# =============================================================================
# FailureScenario Tests
# =============================================================================


class TestFailureScenario:
    def test_constructors(self):
        assert FailureScenario.single_node_failure().scenario_type == (
            ScenarioType.SINGLE_NODE_FAILURE
        )
        assert FailureScenario.cascading_failures(3).count == 3
        assert FailureScenario.random_failures(0.25).probability == 0.25
        assert FailureScenario.network_partition(2).count == 2

    def test_validation(self):
        with pytest.raises(ValueError):
            FailureScenario.cascading_failures(-1)
        with pytest.raises(ValueError):
            FailureScenario.random_failures(1.5)

    def test_display(self):
        assert str(FailureScenario.single_node_failure()) == "Single Node Failure"
        assert str(FailureScenario.cascading_failures(3)) == "Cascading Failures (3)"
        assert str(FailureScenario.random_failures(0.25)) == "Random Failures (25.0%)"
        assert str(FailureScenario.network_partition(2)) == "Network Partition (2)"


# =============================================================================
# Scenario Tests
# =============================================================================


class TestScenarios:
    def test_store_and_retrieve(self):
        sim = _simulator()
        sim.store_test_data("test_key", MESSAGE)
        assert sim.retrieve_test_data("test_key") == MESSAGE

    def test_single_node_failure(self):
        sim = _simulator(seed=1)
        sim.store_test_data("k", MESSAGE)

        failed = sim.run_failure_scenario(FailureScenario.single_node_failure())

        assert len(failed) == 1
        assert sim.cluster.failed_node_ids() == failed
        assert sim.can_serve_data()
        assert sim.retrieve_test_data("k") == MESSAGE
        assert sim.current_time == pytest.approx(0.5)

    def test_single_failure_with_nothing_available(self):
        sim = _simulator(nodes=2, k=1, m=1)
        sim.cluster.fail_node(0)
        sim.cluster.fail_node(1)

        with pytest.raises(NoAvailableNodesError):
            sim.run_failure_scenario(FailureScenario.single_node_failure())

    def test_cascading_failures(self):
        sim = _simulator(seed=2)
        failed = sim.run_failure_scenario(FailureScenario.cascading_failures(3))

        assert len(set(failed)) == 3
        assert sim.cluster.failed_node_count() == 3
        assert not sim.can_serve_data()
        # (0.2 + 0.5) + (0.5 + 0.5) + (0.8 + 0.5)
        assert sim.current_time == pytest.approx(3.0)

    def test_cascading_stops_when_everything_failed(self):
        sim = _simulator(nodes=3, k=2, m=1, seed=3)
        failed = sim.run_failure_scenario(FailureScenario.cascading_failures(10))
        assert sorted(failed) == [0, 1, 2]

    def test_random_failures(self):
        sim = _simulator(seed=4)
        assert sim.run_failure_scenario(FailureScenario.random_failures(0.0)) == []

        failed = sim.run_failure_scenario(FailureScenario.random_failures(1.0))
        assert failed == [0, 1, 2, 3, 4, 5]

    def test_network_partition(self):
        sim = _simulator(seed=5)
        failed = sim.run_failure_scenario(FailureScenario.network_partition(2))

        assert len(set(failed)) == 2
        assert sim.cluster.failed_node_count() == 2

    def test_partition_larger_than_cluster(self):
        sim = _simulator()
        with pytest.raises(InsufficientNodesError):
            sim.run_failure_scenario(FailureScenario.network_partition(7))
        assert sim.cluster.failed_node_count() == 0

    def test_seed_reproducibility(self):
        a = _simulator(seed=42).run_failure_scenario(FailureScenario.cascading_failures(2))
        b = _simulator(seed=42).run_failure_scenario(FailureScenario.cascading_failures(2))
        assert a == b

    def test_recover_random_node(self):
        sim = _simulator(seed=6)
        assert not sim.recover_random_node()

        sim.run_failure_scenario(FailureScenario.network_partition(2))
        assert sim.recover_random_node()
        assert sim.cluster.failed_node_count() == 1

    def test_recover_all_nodes(self):
        sim = _simulator(seed=7)
        sim.run_failure_scenario(FailureScenario.cascading_failures(3))

        assert sim.recover_all_nodes() == 3
        assert sim.cluster.failed_node_count() == 0
        assert sim.recover_all_nodes() == 0

    def test_degrade_node(self):
        sim = _simulator(log_events=True)

        assert sim.degrade_node(2)
        assert sim.cluster.get_node(2).state == NodeState.DEGRADED
        assert sim.cluster.get_node(2).latency_ms == 100
        assert [(e.event_type, e.target_id) for e in sim.event_log] == [
            (EventType.NODE_DEGRADED, 2)
        ]

    def test_degrade_only_healthy_nodes(self):
        sim = _simulator(log_events=True)
        sim.cluster.fail_node(1)
        sim.degrade_node(2)

        assert not sim.degrade_node(1)
        assert not sim.degrade_node(2)
        assert sim.cluster.get_node(1).state == NodeState.FAILED
        assert len(sim.event_log) == 1

    def test_degrade_unknown_node(self):
        with pytest.raises(NodeNotFoundError):
            _simulator().degrade_node(99)


# =============================================================================
# Speed and Status Tests
# =============================================================================


class TestSpeed:
    def test_speed_scales_delays(self):
        sim = _simulator(speed=2.0)
        sim.run_failure_scenario(FailureScenario.single_node_failure())
        assert sim.current_time == pytest.approx(0.25)

    def test_speed_floor(self):
        sim = _simulator()
        sim.set_speed(0.01)
        assert sim.speed == 0.1
        sim.set_speed(-5)
        assert sim.speed == 0.1


class TestStatus:
    def test_healthy_status(self):
        sim = _simulator()
        sim.store_test_data("k", MESSAGE)
        status = sim.status()

        assert status.total_nodes == 6
        assert status.healthy_nodes == 6
        assert status.can_recover
        assert not status.is_critical
        assert status.total_chunks == 6
        assert status.health_percentage() == 100.0
        assert status.health_description() == "Excellent"

    def test_degraded_status(self):
        sim = _simulator()
        for node_id in (0, 1, 2):
            sim.cluster.fail_node(node_id)
        status = sim.status()

        assert status.failed_nodes == 3
        assert status.health_percentage() == pytest.approx(50.0)
        assert status.health_description() == "Fair"
        assert status.is_critical


# =============================================================================
# Event Queue Tests
# =============================================================================


class TestEventQueue:
    def test_time_order_and_fifo(self):
        queue = EventQueue()
        queue.push(Event(2.0, EventType.NODE_FAILURE, 0))
        queue.push(Event(1.0, EventType.NODE_FAILURE, 1))
        queue.push(Event(1.0, EventType.NODE_FAILURE, 2))

        assert [queue.pop().target_id for _ in range(3)] == [1, 2, 0]
        assert queue.pop() is None
        assert queue.is_empty()

    def test_cancel_only_affects_earlier_events(self):
        queue = EventQueue()
        queue.push(Event(1.0, EventType.NODE_FAILURE, 1))
        queue.push(Event(2.0, EventType.NODE_FAILURE, 2))
        queue.cancel_events_for(1)
        queue.push(Event(3.0, EventType.NODE_FAILURE, 1))

        assert queue.peek().target_id == 2
        assert [queue.pop().time for _ in range(2)] == [2.0, 3.0]


# =============================================================================
# Event Loop Tests
# =============================================================================


class TestEventLoop:
    def test_scheduled_failures_apply_in_order(self):
        sim = _simulator()
        sim.schedule_failures(FailureScenarios.rolling_failure([0, 1, 2], 10.0))

        sim.run_until(15.0)
        assert sim.cluster.failed_node_ids() == [0, 1]
        assert sim.current_time == 15.0

        sim.run_until(30.0)
        assert sim.cluster.failed_node_ids() == [0, 1, 2]

    def test_schedule_is_relative_to_now(self):
        sim = _simulator()
        sim.run_until(100.0)
        sim.schedule_failures([FailureEvent(4, 5.0, FailureType.DISK_FULL)])

        assert sim.next_event_time() == 105.0

    def test_explicit_offset(self):
        sim = _simulator()
        sim.schedule_failures([FailureEvent(4, 5.0, FailureType.DISK_FULL)], offset=20.0)
        assert sim.next_event_time() == 25.0

    def test_plan_recovery(self):
        sim = _simulator()
        sim.schedule_failures(FailureScenarios.rolling_failure([0, 1], 10.0))
        sim.run_until(5.0)

        planned = sim.plan_recovery()
        assert [e.time for e in planned] == pytest.approx([6.0])

        results = sim.run_until(20.0)
        assert len(results) == 1
        assert results[0].success
        assert sim.cluster.get_node(0).state == NodeState.HEALTHY
        assert sim.cluster.get_node(1).state == NodeState.FAILED

    def test_failure_before_recovery_at_same_time(self):
        sim = _simulator()
        sim.cluster.fail_node(3)
        sim.schedule_recovery(RecoveryEvent.node_restart(3, 5.0))
        sim.schedule_failures([FailureEvent(2, 5.0, FailureType.HARDWARE_FAILURE)])

        assert sim.step() == []
        assert sim.cluster.get_node(2).state == NodeState.FAILED
        assert sim.cluster.get_node(3).state == NodeState.FAILED

        [result] = sim.step()
        assert result.node_id == 3
        assert sim.cluster.get_node(3).state == NodeState.HEALTHY

    def test_failure_listener(self):
        sim = _simulator()
        seen = []

        def restart_later(event):
            seen.append(event.target_id)
            sim.schedule_recovery(RecoveryEvent.node_restart(event.target_id, 2.0))

        sim.add_failure_listener(restart_later)
        sim.schedule_failures([FailureEvent(1, 1.0, FailureType.SOFTWARE_FAILURE)])

        results = sim.run_until(4.0)
        assert seen == [1]
        assert [r.node_id for r in results] == [1]
        assert sim.cluster.get_node(1).is_available

    def test_already_failed_node_is_ignored(self):
        sim = _simulator()
        seen = []
        sim.add_failure_listener(lambda event: seen.append(event.time))
        sim.schedule_failures(
            [
                FailureEvent(0, 1.0, FailureType.HARDWARE_FAILURE),
                FailureEvent(0, 2.0, FailureType.NETWORK_TIMEOUT),
            ]
        )

        sim.run_until(5.0)
        assert seen == [1.0]

    def test_unknown_node_is_skipped(self):
        sim = _simulator()
        sim.schedule_failures([FailureEvent(99, 1.0, FailureType.DISK_FULL)])

        sim.run_until(5.0)
        assert sim.cluster.failed_node_count() == 0

    def test_cancel_pending_failures(self):
        sim = _simulator()
        sim.schedule_failures(FailureScenarios.rolling_failure([0, 1], 10.0))
        sim.cancel_pending_failures(1)

        sim.run_until(20.0)
        assert sim.cluster.failed_node_ids() == [0]

    def test_step_on_empty_queue(self):
        sim = _simulator()
        assert sim.next_event_time() is None
        assert sim.step() == []

    def test_event_log(self):
        sim = _simulator(log_events=True)
        sim.cluster.fail_node(5)
        sim.schedule_recovery(RecoveryEvent.node_restart(5, 3.0))
        sim.schedule_failures([FailureEvent(0, 1.0, FailureType.POWER_OUTAGE)])
        sim.run_until(5.0)

        assert [e.event_type for e in sim.event_log] == [
            EventType.NODE_FAILURE,
            EventType.RECOVERY_ACTION,
        ]
        assert sim.event_log[0].metadata["failure_type"] == FailureType.POWER_OUTAGE
        assert sim.event_log[1].metadata["result"].success

    def test_event_log_disabled_by_default(self):
        sim = _simulator()
        sim.run_failure_scenario(FailureScenario.single_node_failure())
        assert sim.event_log == []
