# tests/conftest.py

"""Shared pytest fixtures for all price tracker tests."""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep and asyncio.sleep so pacing delays run instantly."""
    with patch("time.sleep"), patch(
        "price_tracker.services.batch_scheduler.asyncio.sleep",
        new_callable=AsyncMock,
    ):
        yield
