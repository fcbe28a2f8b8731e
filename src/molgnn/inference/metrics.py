"""Inference metrics sinks."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class InferenceMetricParams:
    """One recorded backend interaction.

    Attributes:
        model_name: Model that served the call
        task_type: ``"embed"``, ``"batch_embed"``, ``"similarity"`` or ``"load"``
        duration_ms: Wall-clock duration of the call
        success: Whether the call succeeded
        batch_size: Number of molecules covered by the call
        error_type: Exception class name for failed calls
    """

    model_name: str
    task_type: str
    duration_ms: float
    success: bool
    batch_size: int = 1
    error_type: str | None = None


class InferenceMetrics(Protocol):
    def record_inference(self, params: InferenceMetricParams) -> None: ...


class NoopInferenceMetrics:
    """Discards every event."""

    def record_inference(self, params: InferenceMetricParams) -> None:
        return None


class InMemoryInferenceMetrics:
    """Thread-safe in-process collector, mostly useful for tests and debugging."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[InferenceMetricParams] = []

    def record_inference(self, params: InferenceMetricParams) -> None:
        with self._lock:
            self._events.append(params)

    @property
    def events(self) -> list[InferenceMetricParams]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def summary(self) -> dict[str, dict[str, Any]]:
        """Per task type: call count, successes, failures and mean duration."""
        summary: dict[str, dict[str, Any]] = {}
        for event in self.events:
            entry = summary.setdefault(
                event.task_type,
                {"count": 0, "success": 0, "failure": 0, "total_ms": 0.0},
            )
            entry["count"] += 1
            entry["success" if event.success else "failure"] += 1
            entry["total_ms"] += event.duration_ms

        for entry in summary.values():
            entry["mean_ms"] = entry.pop("total_ms") / entry["count"]
        return summary
