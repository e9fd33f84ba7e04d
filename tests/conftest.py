"""
Shared fixtures for VaultSync tests.

All tests run against the in-memory remote store with a manually advanced
clock so timestamps and dedup windows are deterministic.
"""

import pytest

from vaultsync.config import Settings


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    """Deterministic millisecond clock."""
    return FakeClock()


@pytest.fixture
def settings():
    """Default settings, independent of the process environment."""
    return Settings(
        name_max_length=35,
        copy_suffix=" (Copy)",
        temp_id_prefix="temp_",
        dedup_window_seconds=15.0,
        log_level="INFO",
        log_format="json",
    )
