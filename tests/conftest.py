"""
Pytest configuration for the mixingdesk test suite.

Async tests use the anyio pytest plugin (``@pytest.mark.anyio``) on the
asyncio backend only.
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
