"""Formula Engine Observability Metrics.

Counts evaluations and every zero-fallback so degraded payroll
calculations are visible without changing computed amounts.

Metric Categories:
- Evaluation metrics: formulas evaluated, batches run
- Fallback metrics: zero results by reason
- Validation metrics: checks run and rejected

Usage:
    metrics = FormulaMetrics()
    engine = PayrollFormulaEngine(metrics=metrics)
    ...
    print(metrics.to_prometheus())
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class FallbackReason:
    """Reasons a formula evaluated to zero instead of a computed value."""

    EMPTY_FORMULA = "empty_formula"
    DIVISION_BY_ZERO = "division_by_zero"
    UNKNOWN_VARIABLE = "unknown_variable"
    SYNTAX_ERROR = "syntax_error"
    ARITHMETIC_ERROR = "arithmetic_error"
    UNEXPECTED_ERROR = "unexpected_error"

    ALL = (
        EMPTY_FORMULA,
        DIVISION_BY_ZERO,
        UNKNOWN_VARIABLE,
        SYNTAX_ERROR,
        ARITHMETIC_ERROR,
        UNEXPECTED_ERROR,
    )


@dataclass
class Counter:
    """A counter metric (monotonically increasing)."""

    name: str
    value: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


class FormulaMetrics:
    """Thread-safe counters for one engine (or a shared process registry)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._evaluations = 0
        self._batches = 0
        self._validations = 0
        self._validation_failures = 0
        self._fallbacks: dict[str, int] = {reason: 0 for reason in FallbackReason.ALL}

    def record_evaluation(self) -> None:
        with self._lock:
            self._evaluations += 1

    def record_batch(self) -> None:
        with self._lock:
            self._batches += 1

    def record_fallback(self, reason: str) -> None:
        with self._lock:
            self._fallbacks[reason] = self._fallbacks.get(reason, 0) + 1

    def record_validation(self, passed: bool) -> None:
        with self._lock:
            self._validations += 1
            if not passed:
                self._validation_failures += 1

    def fallback_count(self, reason: str | None = None) -> int:
        """Fallbacks for one reason, or across all reasons."""
        with self._lock:
            if reason is None:
                return sum(self._fallbacks.values())
            return self._fallbacks.get(reason, 0)

    def reset(self) -> None:
        with self._lock:
            self._evaluations = 0
            self._batches = 0
            self._validations = 0
            self._validation_failures = 0
            self._fallbacks = {reason: 0 for reason in FallbackReason.ALL}

    def collect(self) -> list[Counter]:
        """Snapshot all counters."""
        with self._lock:
            counters = [
                Counter(
                    "formula_evaluations_total",
                    self._evaluations,
                    help_text="Formulas evaluated",
                ),
                Counter(
                    "formula_batches_total",
                    self._batches,
                    help_text="Formula batches evaluated",
                ),
                Counter(
                    "formula_validations_total",
                    self._validations,
                    help_text="Formula validations performed",
                ),
                Counter(
                    "formula_validation_failures_total",
                    self._validation_failures,
                    help_text="Formula validations rejected",
                ),
            ]
            for reason, count in sorted(self._fallbacks.items()):
                counters.append(
                    Counter(
                        "formula_fallbacks_total",
                        count,
                        labels={"reason": reason},
                        help_text="Formulas that fell back to zero",
                    )
                )
        return counters

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "collected_at": datetime.now(timezone.utc).isoformat(),
            "fallbacks": {},
        }
        for counter in self.collect():
            if counter.name == "formula_fallbacks_total":
                result["fallbacks"][counter.labels["reason"]] = counter.value
            else:
                result[counter.name] = counter.value
        return result

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def to_prometheus(self) -> str:
        """Convert to Prometheus text format."""
        lines: list[str] = []
        described: set[str] = set()

        for metric in self.collect():
            labels = ""
            if metric.labels:
                label_parts = [f'{k}="{v}"' for k, v in metric.labels.items()]
                labels = "{" + ",".join(label_parts) + "}"

            if metric.name not in described:
                if metric.help_text:
                    lines.append(f"# HELP {metric.name} {metric.help_text}")
                lines.append(f"# TYPE {metric.name} counter")
                described.add(metric.name)
            lines.append(f"{metric.name}{labels} {metric.value}")

        return "\n".join(lines)


_default_metrics = FormulaMetrics()


def get_metrics() -> FormulaMetrics:
    """Process-wide metrics registry."""
    return _default_metrics
