"""
Tests for the single-flight FIFO scheduler.
"""

import random

import pytest

from tickfetch.exceptions import PermissionDeniedError, TransportError
from tickfetch.http_primitives import RequestDescriptor
from tickfetch.scheduler import Scheduler
from tickfetch.transport.mock import MockTransportProvider


def descriptor_for(path: str, callback) -> RequestDescriptor:
    return RequestDescriptor.from_url(f"http://example.com/{path}", on_complete=callback)


class TestSchedulerBasics:
    """Test enqueue and tick behavior."""

    def test_initial_state(self, mock_provider) -> None:
        """Test a new scheduler is idle and empty."""
        scheduler = Scheduler(mock_provider)
        assert scheduler.in_flight is False
        assert scheduler.pending == 0
        assert len(scheduler) == 0
        assert scheduler.current is None

    def test_tick_empty_queue_is_noop(self, mock_provider) -> None:
        """Test ticking an empty queue never touches the provider."""
        scheduler = Scheduler(mock_provider)
        for _ in range(5):
            scheduler.tick()
        assert mock_provider.opened == []
        assert scheduler.in_flight is False

    def test_enqueue_does_not_start(self, mock_provider, recorder) -> None:
        """Test enqueueing alone starts no network activity."""
        scheduler = Scheduler(mock_provider)
        scheduler.enqueue(descriptor_for("a", recorder))
        assert scheduler.pending == 1
        assert mock_provider.opened == []
        assert recorder.calls == []

    def test_instant_completion(self, mock_provider, recorder) -> None:
        """Test an instantly completing request finishes within one tick."""
        scheduler = Scheduler(mock_provider)
        scheduler.enqueue(descriptor_for("a", recorder))
        scheduler.tick()

        assert len(recorder.calls) == 1
        assert scheduler.in_flight is False
        assert scheduler.pending == 0

    def test_one_request_per_tick(self, mock_provider, recorder) -> None:
        """Test each tick starts at most one request."""
        scheduler = Scheduler(mock_provider)
        for path in "abc":
            scheduler.enqueue(descriptor_for(path, recorder))

        scheduler.tick()
        assert len(recorder.calls) == 1
        assert scheduler.pending == 2

    def test_connect_timeout_forwarded(self, mock_provider, recorder) -> None:
        """Test the scheduler passes its connect timeout to sessions."""
        scheduler = Scheduler(mock_provider, connect_timeout=2)
        scheduler.enqueue(descriptor_for("a", recorder))
        scheduler.tick()
        assert mock_provider.requests[0].connect_timeout == 2


class TestSingleFlight:
    """Test that at most one request is in flight."""

    def test_tick_while_in_flight(self, polled_provider, recorder) -> None:
        """Test ticking during a request does not dequeue another."""
        scheduler = Scheduler(polled_provider)
        scheduler.enqueue(descriptor_for("a", recorder))
        scheduler.enqueue(descriptor_for("b", recorder))

        scheduler.tick()
        assert scheduler.in_flight is True
        assert scheduler.current is not None

        for _ in range(10):
            scheduler.tick()

        assert len(polled_provider.opened) == 1
        assert scheduler.pending == 1
        assert recorder.calls == []

    def test_flag_cleared_before_callback(self, mock_provider) -> None:
        """Test callbacks observe the scheduler as idle."""
        scheduler = Scheduler(mock_provider)
        seen = []
        scheduler.enqueue(descriptor_for("a", lambda r, e: seen.append(scheduler.in_flight)))
        scheduler.tick()
        assert seen == [False]

    def test_callback_may_enqueue(self, mock_provider, recorder) -> None:
        """Test a callback can queue a follow-up request."""
        scheduler = Scheduler(mock_provider)

        def first(response, error):
            scheduler.enqueue(descriptor_for("second", recorder))

        scheduler.enqueue(descriptor_for("first", first))
        scheduler.tick()
        assert scheduler.pending == 1

        scheduler.tick()
        assert len(recorder.calls) == 1
        assert mock_provider.requests[-1].path == "/second"

    def test_random_interleaving(self, recorder) -> None:
        """Test the invariant under random fetch/tick/poll interleavings."""
        rng = random.Random(1234)
        provider = MockTransportProvider(instant=False)
        scheduler = Scheduler(provider)

        submitted = []
        for step in range(400):
            action = rng.choice(["enqueue", "tick", "poll"])
            if action == "enqueue":
                name = f"r{len(submitted)}"
                provider.add_response(200, chunks=[name])
                submitted.append(name)
                scheduler.enqueue(descriptor_for(name, recorder.tagged(name)))
            elif action == "tick":
                scheduler.tick()
            else:
                provider.poll()

            assert len(provider.active) <= 1
            assert scheduler.in_flight == (len(provider.active) == 1)

        while scheduler.pending or scheduler.in_flight:
            scheduler.tick()
            provider.poll()

        tags = [call[0] for call in recorder.calls]
        assert tags == submitted
        assert [call[1].body for call in recorder.calls] == submitted


class TestOrdering:
    """Test FIFO completion order."""

    @pytest.mark.parametrize("count", [1, 2, 7])
    def test_fifo_with_instant_provider(self, mock_provider, recorder, count) -> None:
        """Test N queued requests complete once each, in order."""
        scheduler = Scheduler(mock_provider)
        for i in range(count):
            scheduler.enqueue(descriptor_for(str(i), recorder.tagged(i)))

        for _ in range(count + 3):
            scheduler.tick()

        assert [call[0] for call in recorder.calls] == list(range(count))
        assert [c.path for c in mock_provider.requests] == [
            f"/{i}" for i in range(count)
        ]

    def test_failures_do_not_affect_queue(self, recorder) -> None:
        """Test an error completes only its own request."""
        provider = MockTransportProvider()
        provider.add_response(error="Connection refused")
        provider.add_response(200, chunks=["ok"])
        scheduler = Scheduler(provider)

        scheduler.enqueue(descriptor_for("bad", recorder.tagged("bad")))
        scheduler.enqueue(descriptor_for("good", recorder.tagged("good")))
        scheduler.tick()
        scheduler.tick()

        (tag1, response1, error1), (tag2, response2, error2) = recorder.calls
        assert (tag1, response1) == ("bad", None)
        assert isinstance(error1, TransportError)
        assert (tag2, error2) == ("good", None)
        assert response2.body == "ok"

    def test_exactly_one_of_response_or_error(self, recorder) -> None:
        """Test every callback gets exactly one of response and error."""
        provider = MockTransportProvider()
        provider.add_response(200)
        provider.add_response(error="reset")
        provider.add_response(issue_error="closed")
        provider.add_response(500)
        scheduler = Scheduler(provider)
        for i in range(4):
            scheduler.enqueue(descriptor_for(str(i), recorder))
        for _ in range(4):
            scheduler.tick()

        assert len(recorder.calls) == 4
        for response, error in recorder.calls:
            assert (response is None) != (error is None)


class TestMetrics:
    """Test scheduler counters."""

    def test_metrics(self, recorder) -> None:
        """Test started, completed and failed counts."""
        provider = MockTransportProvider(deny=True)
        scheduler = Scheduler(provider)
        scheduler.enqueue(descriptor_for("a", recorder))
        scheduler.enqueue(descriptor_for("b", recorder))
        scheduler.tick()

        metrics = scheduler.metrics
        assert metrics["pending"] == 1
        assert metrics["in_flight"] is False
        assert metrics["total_started"] == 1
        assert metrics["total_completed"] == 0
        assert metrics["total_failed"] == 1
        assert isinstance(recorder.calls[0][1], PermissionDeniedError)
