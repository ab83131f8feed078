"""In-process metrics for remediation runs.

This module provides:
- Phase execution counters (executed, failed, rolled back)
- Fixer attempt and timeout counters
- Diagnostic parse counters
- Phase and validation check duration histograms

Metrics live for the lifetime of the process. The CLI can include a
snapshot of them in its JSON report.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import StrEnum
from threading import Lock
from typing import Any

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with its labels."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)


class Counter:
    """A monotonically increasing counter.

    Example:
        counter = Counter("phases_executed", "Phases executed")
        counter.inc()
        counter.inc(labels={"root_cause": "syntax"})
    """

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Args:
            value: Amount to increment (default 1)
            labels: Optional labels for this observation

        Raises:
            ValueError: If value is negative.
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get the counter value for one label set."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Sum across all label sets."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.COUNTER,
                    value=value,
                    labels=dict(label_key),
                )
                for label_key, value in self._values.items()
            ]


class Histogram:
    """A histogram metric for tracking duration distributions.

    Example:
        histogram = Histogram("phase_duration_seconds", "Phase duration")
        histogram.observe(1.2, labels={"root_cause": "import"})
    """

    # Remediation phases run for seconds to minutes
    DEFAULT_BUCKETS = (0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get histogram statistics.

        Args:
            labels: Labels to filter by. None aggregates every label set.

        Returns:
            Dictionary with count, sum, min, max, mean
        """
        with self._lock:
            if labels is None:
                values = [v for obs in self._observations.values() for v in obs]
            else:
                values = list(self._observations.get(_label_key(labels), []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get bucket counts for one label set."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts


class MetricsRegistry:
    """Registry for all remediation metrics.

    A process-wide singleton.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.phases_executed.inc(labels={"root_cause": "syntax"})
        metrics = registry.get_all_metrics()
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        # Diagnostics
        self.diagnostics_parsed = Counter(
            "error_resolver_diagnostics_parsed_total",
            "Diagnostic lines parsed",
        )
        self.diagnostics_skipped = Counter(
            "error_resolver_diagnostics_skipped_total",
            "Non-empty lines that did not match the diagnostic grammar",
        )

        # Phases
        self.phases_executed = Counter(
            "error_resolver_phases_executed_total",
            "Phases executed",
        )
        self.phases_failed = Counter(
            "error_resolver_phases_failed_total",
            "Phases that exhausted their attempts",
        )
        self.phases_rolled_back = Counter(
            "error_resolver_phases_rolled_back_total",
            "Phases whose files were restored from a snapshot",
        )
        self.fixer_attempts = Counter(
            "error_resolver_fixer_attempts_total",
            "Fixer invocations, including retries",
        )
        self.fixer_timeouts = Counter(
            "error_resolver_fixer_timeouts_total",
            "Fixer invocations abandoned at the phase deadline",
        )
        self.errors_fixed = Counter(
            "error_resolver_errors_fixed_total",
            "Diagnostics reported fixed by fixers",
        )

        # Runs
        self.runs_finished = Counter(
            "error_resolver_runs_finished_total",
            "Runs reaching a terminal state",
        )

        # Validation
        self.validation_checks = Counter(
            "error_resolver_validation_checks_total",
            "Validation checks by status",
        )

        # Durations
        self.phase_duration = Histogram(
            "error_resolver_phase_duration_seconds",
            "Phase duration across all attempts",
        )
        self.check_duration = Histogram(
            "error_resolver_check_duration_seconds",
            "Validation check duration",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the singleton metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton. The next ``get_instance`` starts from zero."""
        with cls._lock:
            cls._instance = None

    def get_uptime_seconds(self) -> float:
        return time.time() - self._start_time

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "diagnostics": {
                "parsed": self.diagnostics_parsed.total(),
                "skipped": self.diagnostics_skipped.total(),
            },
            "phases": {
                "executed": self.phases_executed.total(),
                "failed": self.phases_failed.total(),
                "rolled_back": self.phases_rolled_back.total(),
                "duration_stats": self.phase_duration.get_stats(),
            },
            "fixers": {
                "attempts": self.fixer_attempts.total(),
                "timeouts": self.fixer_timeouts.total(),
                "errors_fixed": self.errors_fixed.total(),
            },
            "runs": {m.labels.get("state", ""): m.value for m in self.runs_finished.get_all()},
            "validation": {
                "checks": {
                    m.labels.get("status", ""): m.value for m in self.validation_checks.get_all()
                },
                "duration_stats": self.check_duration.get_stats(),
            },
        }


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.check_duration, labels={"kind": "compile"}) as timer:
            await run_probe()
        elapsed = timer.elapsed
    """

    def __init__(
        self,
        histogram: Histogram | None = None,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None
        self.elapsed = 0.0

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            self.elapsed = time.perf_counter() - self._start
            if self._histogram is not None:
                self._histogram.observe(self.elapsed, labels=self._labels)
