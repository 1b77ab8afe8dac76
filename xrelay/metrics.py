"""Relay metrics — prometheus counters on an explicit registry.

The session is handed a RelayMetrics instance instead of touching the
process-wide default registry. It registers an info collector for the
lifetime of the connection and bumps the message counters; the
``metrics`` chat command renders snapshot() back to the requester.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from prometheus_client import CollectorRegistry, Counter
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .communication.errors import MetricsError

logger = logging.getLogger("xrelay.metrics")

NAMESPACE = "xmpp"


@dataclass(frozen=True)
class MetricLine:
    """One human-readable line of a metrics snapshot."""

    kind: str
    name: str
    labels: str
    value: float

    def render(self) -> str:
        return f"{self.kind} {self.name}{{{self.labels}}}: {self.value:f}"


class SessionInfoCollector:
    """Constant ``xmpp_info`` gauge describing the live connection."""

    def __init__(self, jid: Callable[[], str], encrypted: Callable[[], bool]):
        self._jid = jid
        self._encrypted = encrypted

    def describe(self) -> Iterable[Metric]:
        return [GaugeMetricFamily(
            f"{NAMESPACE}_info",
            "constant metric with value=1. Various information about the XMPP connection.",
            labels=["encrypted", "jid"],
        )]

    def collect(self) -> Iterable[Metric]:
        family = GaugeMetricFamily(
            f"{NAMESPACE}_info",
            "constant metric with value=1. Various information about the XMPP connection.",
            labels=["encrypted", "jid"],
        )
        family.add_metric([str(self._encrypted()).lower(), self._jid()], 1)
        yield family


class RelayMetrics:
    """Counters and snapshot rendering bound to one registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.messages_sent = Counter(
            "messages_sent",
            "Number of messages sent.",
            ["recipient", "type", "format"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.messages_received = Counter(
            "messages_received",
            "Number of messages received.",
            ["recipient"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

    def register(self, collector) -> None:
        self.registry.register(collector)

    def unregister(self, collector) -> None:
        try:
            self.registry.unregister(collector)
        except KeyError:
            logger.debug("Collector was not registered")

    def snapshot(self) -> list[MetricLine]:
        """Gather every sample currently in the registry.

        Raises:
            MetricsError: a collector failed while being scraped.
        """
        try:
            families = list(self.registry.collect())
        except Exception as e:
            raise MetricsError(str(e)) from e

        lines: list[MetricLine] = []
        for family in families:
            lines.extend(_family_lines(family))
        return lines


def _format_labels(labels: dict) -> str:
    return ",".join(f'{name}="{value}"' for name, value in labels.items())


def _family_lines(family: Metric) -> Iterator[MetricLine]:
    # Summaries and histograms collapse to their mean (sum / count).
    if family.type in ("summary", "histogram"):
        sums: dict[tuple, float] = {}
        counts: dict[tuple, float] = {}
        for sample in family.samples:
            key = tuple((k, v) for k, v in sample.labels.items() if k not in ("le", "quantile"))
            if sample.name == f"{family.name}_sum":
                sums[key] = sample.value
            elif sample.name == f"{family.name}_count":
                counts[key] = sample.value
        for key, total in sums.items():
            count = counts.get(key, 0)
            value = total / count if count else math.nan
            yield MetricLine(family.type, family.name, _format_labels(dict(key)), value)
        return

    for sample in family.samples:
        if sample.name.endswith("_created"):
            continue
        yield MetricLine(family.type, sample.name, _format_labels(sample.labels), sample.value)
