"""
pytest configuration and shared fixtures for webhook trader tests.
"""

import pytest
from typing import Dict, Any

from at_webhook_trader.engine import DecisionEngine
from at_webhook_trader.models import TradingState

from tests.fixtures import FakeClock, RecordingGateway, create_test_clock, make_config


# Sample webhook payloads

@pytest.fixture
def buy_payload() -> Dict[str, Any]:
    return {"message": "BUY_SIGNAL", "rsi": 70.0, "vwap": 18250.5, "price": 18262.25}


@pytest.fixture
def sell_payload() -> Dict[str, Any]:
    return {"message": "SELL_SIGNAL", "rsi": 30.0}


@pytest.fixture
def exit_payload() -> Dict[str, Any]:
    return {"message": "EXIT_SIGNAL"}


# Test infrastructure fixtures

@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a controllable clock for testing."""
    return create_test_clock()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def state() -> TradingState:
    return TradingState()


@pytest.fixture
def engine(config, gateway, fake_clock) -> DecisionEngine:
    return DecisionEngine(config, gateway, clock=fake_clock)
