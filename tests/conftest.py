import os
import sys

import pytest
from loguru import logger

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture
def log_records():
    """Collect loguru records emitted during a test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


class FakeBackend:
    """Stands in for a single-endpoint provider."""

    def __init__(self, result=None, exc=None, error=None):
        self.result = result
        self.exc = exc
        self.error = error
        self.calls = []
        self.disconnected = False

    async def disconnect(self):
        self.disconnected = True

    async def make_request(self, method, params):
        self.calls.append((method, params))
        if self.exc is not None:
            raise self.exc
        if self.error is not None:
            return {"jsonrpc": "2.0", "id": 1, "error": self.error}
        return {"jsonrpc": "2.0", "id": 1, "result": self.result}


@pytest.fixture
def fake_backend():
    return FakeBackend
