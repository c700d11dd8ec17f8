"""
Test fixtures for the webhook trader.

Provides fake implementations of external dependencies for isolated testing:
- FakeClock: Controllable time for deterministic throttle tests
- RecordingGateway: In-memory order gateway with failure injection
- make_config: Pre-configured test settings
- buy/sell/exit_signal/unknown: Signal builders
"""

from .fake_clock import FakeClock, create_test_clock
from .fake_gateway import RecordingGateway
from .config_factory import make_config, optimistic_config, rsi_less_config
from .signals import buy, sell, exit_signal, unknown

__all__ = [
    "FakeClock",
    "create_test_clock",
    "RecordingGateway",
    "make_config",
    "optimistic_config",
    "rsi_less_config",
    "buy",
    "sell",
    "exit_signal",
    "unknown",
]
