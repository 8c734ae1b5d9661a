"""
Pytest configuration and fixtures.
"""

from unittest.mock import Mock

import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O")
    config.addinivalue_line("markers", "integration: tests driving the CLI or full client")


def make_task(name, success=True, begin_time="2024-01-01T00:00:00Z", exception=None, **metadata):
    """Build a task record as returned by GET /api/task."""
    return {
        "name": name,
        "metadata": metadata,
        "begin_time": begin_time,
        "end_time": "2024-01-01T00:00:05Z",
        "duration": 5.0,
        "progress": 100,
        "success": success,
        "ret_value": None,
        "exception": exception,
    }


def make_tasks(executing=None, finished=None):
    """Build a GET /api/task body."""
    return {"executing_tasks": executing or [], "finished_tasks": finished or []}


@pytest.fixture
def sleeps():
    """Record sleep calls instead of sleeping."""
    calls = []
    return calls


@pytest.fixture
def fake_sleep(sleeps):
    """Sleep replacement appending the requested duration to ``sleeps``."""
    return sleeps.append


@pytest.fixture
def mock_session():
    """A CephSession stand-in whose request() is scripted by the test."""
    return Mock()


@pytest.fixture
def mock_response():
    """Factory for requests.Response stand-ins."""

    def _make(status_code, json_data=None, text="", headers=None):
        response = Mock()
        response.status_code = status_code
        response.headers = headers or {}
        response.text = text
        if json_data is None:
            response.content = text.encode()
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.content = b"{...}"
            response.json.return_value = json_data
        return response

    return _make


@pytest.fixture
def task():
    """Factory for task records (see make_task)."""
    return make_task


@pytest.fixture
def task_list():
    """Factory for GET /api/task bodies (see make_tasks)."""
    return make_tasks
