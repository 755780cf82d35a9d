import threading
from unittest.mock import MagicMock

import pytest

from courier.telemetry import metrics


@pytest.fixture
def meter(monkeypatch):
    meter = MagicMock(name="Meter")
    monkeypatch.setattr(metrics, "_instruments", {})
    monkeypatch.setattr(metrics, "get_metric_meter", lambda name: meter)
    return meter


def test_instrument_created_once_across_threads(meter):
    barrier = threading.Barrier(8)
    seen = []

    def record():
        barrier.wait()
        seen.append(metrics.deliveries_acked())

    threads = [threading.Thread(target=record) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(2)

    assert len(seen) == 8
    assert all(instrument is seen[0] for instrument in seen)
    meter.create_counter.assert_called_once()


def test_each_instrument_has_its_own_name(meter):
    metrics.messages_published()
    metrics.handler_duration()

    assert meter.create_counter.call_args.kwargs["name"] == "courier.messages.published"
    assert meter.create_histogram.call_args.kwargs["name"] == "courier.handler.duration"
