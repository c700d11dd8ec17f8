"""
Data structures shared by the decision engine, the order gateway and the API.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


class Position(Enum):
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"


class SignalKind(Enum):
    BUY = "buy"
    SELL = "sell"
    EXIT = "exit"
    UNKNOWN = "unknown"


class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class Outcome(Enum):
    THROTTLED = "throttled"
    HALTED = "halted"
    UNKNOWN_SIGNAL = "unknown_signal"
    TRADED = "traded"
    NO_ACTION = "no_action"


class SettlementMode(Enum):
    OPTIMISTIC = "optimistic"  # advance state on dispatch
    CONFIRMED = "confirmed"  # advance state on gateway success only


SIGNAL_MESSAGES = {
    "BUY_SIGNAL": SignalKind.BUY,
    "SELL_SIGNAL": SignalKind.SELL,
    "EXIT_SIGNAL": SignalKind.EXIT,
}


@dataclass
class TradingState:
    """Mutable trading state owned by a single engine."""
    position: Position = Position.FLAT
    cumulative_profit: float = 0.0
    last_trade_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position.value,
            "cumulative_profit": self.cumulative_profit,
            "last_trade_at": self.last_trade_at.isoformat() if self.last_trade_at else None,
        }


@dataclass(frozen=True)
class Signal:
    """Inbound trading signal decoded from a webhook."""
    kind: SignalKind
    rsi: Optional[float] = None
    message: str = ""
    vwap: Optional[float] = None
    price: Optional[float] = None

    @classmethod
    def from_message(cls, message: Optional[str], rsi: Optional[float] = None,
                     vwap: Optional[float] = None, price: Optional[float] = None) -> "Signal":
        message = message or ""
        kind = SIGNAL_MESSAGES.get(message, SignalKind.UNKNOWN)
        return cls(kind=kind, rsi=rsi, message=message, vwap=vwap, price=price)


@dataclass(frozen=True)
class OrderIntent:
    """Order the engine wants placed with the brokerage."""
    side: OrderSide
    symbol: str
    quantity: int


@dataclass(frozen=True)
class Transition:
    """One planned step: place `intent`, then the position becomes `position`."""
    intent: OrderIntent
    position: Position
    reason: str


@dataclass
class Decision:
    """Result of planning one signal against the current state."""
    outcome: Outcome
    position: Position
    transitions: List[Transition] = field(default_factory=list)

    @property
    def intents(self) -> List[OrderIntent]:
        return [t.intent for t in self.transitions]


@dataclass
class OrderResult:
    """Outcome of one placement attempt."""
    intent: OrderIntent
    success: bool
    reason: str = ""
    confirmation: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    placed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.intent.side.value,
            "symbol": self.intent.symbol,
            "quantity": self.intent.quantity,
            "reason": self.reason,
            "success": self.success,
            "confirmation": self.confirmation,
            "error": self.error,
            "error_code": self.error_code,
            "placed_at": self.placed_at.isoformat() if self.placed_at else None,
        }


@dataclass
class ExecutionReport:
    """What the engine did with one signal."""
    signal: Signal
    outcome: Outcome
    orders: List[OrderResult]
    state: TradingState

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.message,
            "kind": self.signal.kind.value,
            "rsi": self.signal.rsi,
            "outcome": self.outcome.value,
            "orders": [o.to_dict() for o in self.orders],
            "state": self.state.to_dict(),
        }
