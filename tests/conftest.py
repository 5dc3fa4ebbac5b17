"""Shared fixtures: a fresh bus per test, default singleton reset."""

import pytest

from busflow.events import EventBus, reset_default_bus
from busflow.settings import reload_settings


@pytest.fixture
def bus() -> EventBus:
    b = EventBus(max_history_size=20)
    yield b
    b.destroy()


@pytest.fixture(autouse=True)
def _isolate_globals() -> None:
    yield
    reset_default_bus()
    reload_settings()
