"""OpenTelemetry metrics instruments for subscription writes.

Instruments are created lazily from the global MeterProvider, so callers do
not need to pass a Meter instance around.

Initialization
--------------
Call ``init_metrics(service_name)`` once during startup. When
OTEL_EXPORTER_OTLP_ENDPOINT is not set, the global no-op MeterProvider is
used and all recordings are silent no-ops.

Instruments
-----------
  subtrack.subscriptions.created               Counter  (labels: status, billing_cycle)
      Subscriptions persisted by the create path.

  subtrack.subscriptions.status_transitions    Counter  (labels: from_status, to_status)
      Realized status changes (one per history entry).

  subtrack.subscriptions.rejected_transitions  Counter  (labels: from_status, to_status)
      Status changes refused by the status machine.
"""

from __future__ import annotations

import logging
import os

from opentelemetry import metrics

logger = logging.getLogger(__name__)

_METER_NAME = "subtrack"


def init_metrics(service_name: str) -> metrics.Meter:
    """Initialize OpenTelemetry metrics for the process.

    When OTEL_EXPORTER_OTLP_ENDPOINT is set, configures a real MeterProvider
    with a periodic OTLP gRPC exporter.  Otherwise, the global no-op
    MeterProvider is used and all recordings are silent.
    """
    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op meter")
        return metrics.get_meter(_METER_NAME)

    # Import SDK/exporter only when needed to avoid hard dependency at import time
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.resources import Resource

    resource = Resource.create({"service.name": service_name})
    exporter = OTLPMetricExporter(endpoint=endpoint)
    reader = PeriodicExportingMetricReader(exporter, export_interval_millis=15_000)
    provider = MeterProvider(resource=resource, metric_readers=[reader])

    metrics.set_meter_provider(provider)
    logger.info("Metrics initialized: service=%s, endpoint=%s", service_name, endpoint)

    return metrics.get_meter(_METER_NAME)


def get_meter() -> metrics.Meter:
    """Return a Meter from the current global provider (no-op before init)."""
    return metrics.get_meter(_METER_NAME)


class SubscriptionMetrics:
    """Convenience wrapper around the subscription write counters.

    Safe to construct at import time: instruments are created on first use,
    after whatever provider ``init_metrics`` installed.
    """

    def __init__(self) -> None:
        self.__created: metrics.Counter | None = None
        self.__transitions: metrics.Counter | None = None
        self.__rejected: metrics.Counter | None = None

    @property
    def _created(self) -> metrics.Counter:
        if self.__created is None:
            self.__created = get_meter().create_counter(
                name="subtrack.subscriptions.created",
                description="Subscriptions persisted by the create path",
                unit="subscriptions",
            )
        return self.__created

    @property
    def _transitions(self) -> metrics.Counter:
        if self.__transitions is None:
            self.__transitions = get_meter().create_counter(
                name="subtrack.subscriptions.status_transitions",
                description="Realized subscription status changes",
                unit="transitions",
            )
        return self.__transitions

    @property
    def _rejected(self) -> metrics.Counter:
        if self.__rejected is None:
            self.__rejected = get_meter().create_counter(
                name="subtrack.subscriptions.rejected_transitions",
                description="Status changes refused by the status machine",
                unit="transitions",
            )
        return self.__rejected

    def subscription_created(self, status: str, billing_cycle: str) -> None:
        self._created.add(1, {"status": status, "billing_cycle": billing_cycle})

    def status_transition(self, from_status: str, to_status: str) -> None:
        self._transitions.add(1, {"from_status": from_status, "to_status": to_status})

    def transition_rejected(self, from_status: str, to_status: str) -> None:
        self._rejected.add(1, {"from_status": from_status, "to_status": to_status})
