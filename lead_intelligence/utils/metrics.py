"""
Prometheus Metrics

Counters and a histogram for the scoring engine, rendered in the Prometheus
text exposition format (text/plain; version=0.0.4).
"""
import time
import threading
from typing import Dict, Iterator, List, Optional, Tuple
from dataclasses import dataclass, field


@dataclass
class MetricValue:
    """One exposition line: value, labels and optional name suffix (_bucket, _sum, _count)."""
    value: float
    labels: Dict[str, str] = field(default_factory=dict)
    suffix: str = ""


LabelKey = Tuple[Tuple[str, str], ...]


def _label_key(labels: Dict[str, str]) -> LabelKey:
    return tuple(sorted(labels.items()))


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self._lock = threading.Lock()

    def collect(self) -> List[MetricValue]:
        with self._lock:
            return list(self._samples())

    def _samples(self) -> Iterator[MetricValue]:
        raise NotImplementedError


class Counter(_Metric):
    """Monotonic count per label set."""

    kind = "counter"

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        super().__init__(name, description, labels)
        self._values: Dict[LabelKey, float] = {}

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        key = _label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(_label_key(labels), 0.0)

    def _samples(self) -> Iterator[MetricValue]:
        for key, value in self._values.items():
            yield MetricValue(value=value, labels=dict(key))


@dataclass
class _Series:
    buckets: Dict[float, int]
    total: float = 0.0
    count: int = 0


class Histogram(_Metric):
    """Observations in cumulative buckets, plus running sum and count."""

    kind = "histogram"
    DEFAULT_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ):
        super().__init__(name, description, labels)
        self.buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._series: Dict[LabelKey, _Series] = {}

    def observe(self, value: float, **labels: str) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._series.get(key)
            if series is None:
                series = self._series[key] = _Series(buckets={b: 0 for b in self.buckets})
            series.total += value
            series.count += 1
            for bound in self.buckets:
                if value <= bound:
                    series.buckets[bound] += 1

    def count(self, **labels: str) -> int:
        with self._lock:
            series = self._series.get(_label_key(labels))
            return series.count if series else 0

    def _samples(self) -> Iterator[MetricValue]:
        for key, series in self._series.items():
            base = dict(key)
            for bound in self.buckets:
                yield MetricValue(series.buckets[bound], {**base, "le": str(bound)}, "_bucket")
            yield MetricValue(series.count, {**base, "le": "+Inf"}, "_bucket")
            yield MetricValue(series.total, base, "_sum")
            yield MetricValue(series.count, base, "_count")


class Timer:
    """`with Timer(histogram):` observes the elapsed seconds on exit."""

    def __init__(self, histogram: Histogram, **labels: str):
        self.histogram = histogram
        self.labels = labels
        self.start_time: Optional[float] = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        if self.start_time is not None:
            self.histogram.observe(time.perf_counter() - self.start_time, **self.labels)


class MetricsRegistry:
    """Process-wide registry; `metrics` below is the shared instance."""

    _instance: Optional["MetricsRegistry"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._metrics: Dict[str, _Metric] = {}
        self._initialized = True
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        # ============================================
        # ANALYSIS
        # ============================================
        self.analyses_total = self._register(Counter(
            "li_analyses_total",
            "Intelligence requests by outcome (cache_hit, recomputed, failed)",
            ["outcome"]
        ))
        self.analysis_duration = self._register(Histogram(
            "li_analysis_duration_seconds",
            "Full pipeline duration for recomputed profiles"
        ))

        # ============================================
        # ARTIFACTS
        # ============================================
        self.insights_emitted = self._register(Counter(
            "li_insights_emitted_total",
            "Insights appended by insight type",
            ["type"]
        ))
        self.predictions_emitted = self._register(Counter(
            "li_predictions_emitted_total",
            "Predictions appended"
        ))

        # ============================================
        # SIGNALS & CONCURRENCY
        # ============================================
        self.decryption_failures = self._register(Counter(
            "li_decryption_failures_total",
            "Field decryption failures by purpose tag",
            ["purpose"]
        ))
        self.lock_contention = self._register(Counter(
            "li_subject_lock_contention_total",
            "Subject lock acquisitions that had to wait or timed out",
            ["result"]
        ))

    def _register(self, metric):
        self._metrics[metric.name] = metric
        return metric

    def export(self) -> str:
        """
        Render every metric, HELP and TYPE first.
        https://prometheus.io/docs/instrumenting/exposition_formats/
        """
        lines = []
        for name, metric in self._metrics.items():
            lines.append(f"# HELP {name} {metric.description}")
            lines.append(f"# TYPE {name} {metric.kind}")
            for sample in metric.collect():
                lines.append(f"{name}{sample.suffix}{self._format_labels(sample.labels)} {sample.value}")
            lines.append("")
        return "\n".join(lines)

    @staticmethod
    def _format_labels(labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        return "{" + ",".join(f'{k}="{v}"' for k, v in sorted(labels.items())) + "}"

    def reset(self) -> None:
        """Drop all recorded values. Tests call this between cases."""
        self._metrics.clear()
        self._setup_metrics()


metrics = MetricsRegistry()
