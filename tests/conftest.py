"""
Pytest configuration and fixtures for async-sink-writer.

Provides cross-platform event loop configuration and test utilities.
"""

import asyncio
import sys

import pytest

from async_sink.writer import feedback_bus

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def fresh_bus():
    """Singleton feedback bus with no subscribers before and after the test."""
    bus = feedback_bus()
    bus._subs.clear()
    yield bus
    bus._subs.clear()
