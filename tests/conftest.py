import os

# Keep unit runs from writing the JSON-lines event log.
os.environ.setdefault("TRACEBOOK_EVENT_LOG", "false")

import pytest  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "property: property-based deterministic tests")
