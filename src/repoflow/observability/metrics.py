# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Prometheus metrics for the orchestrator.

:class:`MetricsRegistry` hands out collectors by name, creating each one
the first time it is asked for, so several adapters may declare the same
series without tripping prometheus_client's duplicate-registration check.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

C = TypeVar("C", Counter, Gauge, Histogram)

# gateway round-trips: tens of milliseconds up to the 30 s request timeout
GATEWAY_LATENCY_BUCKETS: tuple[float, ...] = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsRegistry:
    """Get-or-create access to collectors in one ``CollectorRegistry``.

    Args:
        registry: Target registry.  Defaults to the process-global
            ``prometheus_client.REGISTRY``; pass a private one to keep
            several orchestrators (or tests) apart.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry if registry is not None else REGISTRY
        self._collectors: dict[str, Counter | Gauge | Histogram] = {}

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    def counter(self, name: str, description: str, labels: Sequence[str] = ()) -> Counter:
        return self._get_or_create(Counter, name, description, labels)

    def gauge(self, name: str, description: str, labels: Sequence[str] = ()) -> Gauge:
        return self._get_or_create(Gauge, name, description, labels)

    def histogram(
        self,
        name: str,
        description: str,
        labels: Sequence[str] = (),
        buckets: Sequence[float] | None = None,
    ) -> Histogram:
        extra = {"buckets": tuple(buckets)} if buckets else {}
        return self._get_or_create(Histogram, name, description, labels, **extra)

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        """Current value of one sample, e.g. ``repoflow_transactions_total``."""
        return self._registry.get_sample_value(name, labels or {})

    def _get_or_create(
        self,
        kind: Callable[..., C],
        name: str,
        description: str,
        labels: Sequence[str],
        **options: Any,
    ) -> C:
        existing = self._collectors.get(name)
        if existing is None:
            existing = kind(name, description, list(labels), registry=self._registry, **options)
            self._collectors[name] = existing
        elif not isinstance(existing, kind):  # type: ignore[arg-type]
            raise ValueError(f"Metric '{name}' is already registered as a {type(existing).__name__}")
        return existing  # type: ignore[return-value]
