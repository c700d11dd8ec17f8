"""
Webhook trader: turns BUY/SELL/EXIT signal webhooks into brokerage market orders
under throttle, daily-loss and RSI guardrails.
"""

from .config import TraderConfig
from .decision import FixedSidePnL, evaluate, plan
from .engine import DecisionEngine
from .models import (
    Decision, ExecutionReport, OrderIntent, OrderSide, Outcome, Position,
    SettlementMode, Signal, SignalKind, TradingState
)

__version__ = "1.0.0"

__all__ = [
    "TraderConfig",
    "FixedSidePnL",
    "evaluate",
    "plan",
    "DecisionEngine",
    "Decision",
    "ExecutionReport",
    "OrderIntent",
    "OrderSide",
    "Outcome",
    "Position",
    "SettlementMode",
    "Signal",
    "SignalKind",
    "TradingState",
]
