"""
Pytest configuration for tickfetch tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import pytest
from typing import Any, List, Optional, Tuple

from tickfetch.client import HTTPClient
from tickfetch.transport.mock import MockTransportProvider


class CallbackRecorder:
    """Completion callback that records every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, Any]] = []

    def __call__(self, response: Optional[Any], error: Optional[Any]) -> None:
        self.calls.append((response, error))

    def tagged(self, tag: Any):
        """Return a callback that records ``(tag, response, error)``."""
        def _callback(response, error):
            self.calls.append((tag, response, error))
        return _callback

    @property
    def responses(self) -> List[Any]:
        return [call[-2] for call in self.calls]

    @property
    def errors(self) -> List[Any]:
        return [call[-1] for call in self.calls]


@pytest.fixture
def recorder():
    """Create a callback recorder."""
    return CallbackRecorder()


@pytest.fixture
def mock_provider():
    """Create a mock provider that completes requests instantly."""
    return MockTransportProvider()


@pytest.fixture
def polled_provider():
    """Create a mock provider that delivers one event per poll."""
    return MockTransportProvider(instant=False)


@pytest.fixture
def client(mock_provider):
    """Create a client backed by the instant mock provider."""
    return HTTPClient(mock_provider)


@pytest.fixture
def sample_headers():
    """Sample response headers for testing."""
    return {
        "Content-Type": "application/json",
        "Authorization": "Bearer token123",
        "Server": "nginx/1.18.0",
    }
