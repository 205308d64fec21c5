"""
Metrics for recovery operations and data availability.
"""

from dataclasses import dataclass, field

from .distributions import Seconds


@dataclass
class RecoveryStats:
    """Cumulative statistics about recovery operations.

    Attributes:
        successful_recoveries: Number of recoveries that succeeded.
        failed_recoveries: Number of recoveries that did not.
        total_recovery_time: Time spent on successful recoveries.
        strategy_usage: Attempts per recovery strategy name.
    """

    successful_recoveries: int = 0
    failed_recoveries: int = 0
    total_recovery_time: Seconds = field(default_factory=lambda: Seconds(0))
    strategy_usage: dict[str, int] = field(default_factory=dict)

    def record(self, success: bool, duration: Seconds, strategy: str) -> None:
        """Record one recovery attempt. Only successes add to the time total."""
        if success:
            self.successful_recoveries += 1
            self.total_recovery_time = Seconds(self.total_recovery_time + duration)
        else:
            self.failed_recoveries += 1
        self.strategy_usage[strategy] = self.strategy_usage.get(strategy, 0) + 1

    def total_attempts(self) -> int:
        return self.successful_recoveries + self.failed_recoveries

    def success_rate(self) -> float:
        """Success rate as a percentage; 100 when nothing has been attempted."""
        total = self.total_attempts()
        if total == 0:
            return 100.0
        return self.successful_recoveries / total * 100.0

    def average_recovery_time(self) -> Seconds:
        """Mean duration of successful recoveries (0 if there were none)."""
        if self.successful_recoveries == 0:
            return Seconds(0.0)
        return Seconds(self.total_recovery_time / self.successful_recoveries)

    def __repr__(self) -> str:
        return (
            f"RecoveryStats(ok={self.successful_recoveries}, "
            f"failed={self.failed_recoveries}, "
            f"success_rate={self.success_rate():.1f}%, "
            f"avg={self.average_recovery_time():.2f}s)"
        )


@dataclass
class AvailabilityTracker:
    """Tracks how long stored data stayed readable.

    Call ``record_elapsed`` before applying each event, with readability as
    it was during the interval that just ended.

    Attributes:
        time_readable: Total time (seconds) the data could be decoded.
        time_unreadable: Total time (seconds) it could not.
        time_to_data_loss: Time the data first became unreadable (or None).
    """

    time_readable: Seconds = field(default_factory=lambda: Seconds(0))
    time_unreadable: Seconds = field(default_factory=lambda: Seconds(0))
    time_to_data_loss: Seconds | None = None

    _last_update_time: Seconds = field(default_factory=lambda: Seconds(0))

    def record_elapsed(self, current_time: Seconds, readable: bool) -> None:
        """Attribute the interval since the last update.

        Args:
            current_time: Current simulation time.
            readable: Whether the data was readable during the interval.
        """
        time_delta = Seconds(current_time - self._last_update_time)
        if time_delta < 0:
            raise ValueError(f"Time went backwards: {self._last_update_time} -> {current_time}")

        if time_delta > 0:
            if readable:
                self.time_readable = Seconds(self.time_readable + time_delta)
            else:
                self.time_unreadable = Seconds(self.time_unreadable + time_delta)

        self._last_update_time = current_time

    def mark_unreadable(self, current_time: Seconds) -> None:
        """Note that the data is unreadable as of ``current_time``."""
        if self.time_to_data_loss is None:
            self.time_to_data_loss = current_time

    def total_time(self) -> Seconds:
        return Seconds(self.time_readable + self.time_unreadable)

    def availability_fraction(self) -> float:
        """Fraction of elapsed time the data was readable (1.0 if none elapsed)."""
        total = self.total_time()
        if total <= 0:
            return 1.0
        return self.time_readable / total
