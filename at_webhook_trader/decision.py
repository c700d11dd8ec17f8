"""
Pure decision logic for inbound trading signals.

`plan` turns a signal and the current state into an ordered list of
transitions without touching the state. `evaluate` applies those transitions
with reference (dispatch-time) settlement and returns the new state together
with the order intents.

Evaluation order:
- throttle guard (minimum gap since the last trade)
- loss-limit guard (terminal until reset)
- dispatch on the signal kind (entries, reversals, explicit exit)
- auto-exit overlay on the resulting position, using the same RSI
"""

import dataclasses
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from .config import TraderConfig
from .models import (
    Decision, OrderIntent, OrderSide, Outcome, Position, Signal, SignalKind,
    TradingState, Transition
)


class PnLModel(Protocol):
    def delta(self, intent: OrderIntent) -> float: ...


class FixedSidePnL:
    """Mock PnL: a fixed amount per fill, determined by the order side only."""

    def __init__(self, buy: float = 250.0, sell: float = -150.0):
        self.buy = buy
        self.sell = sell

    @classmethod
    def from_config(cls, config: TraderConfig) -> "FixedSidePnL":
        return cls(buy=config.mock_pnl_buy, sell=config.mock_pnl_sell)

    def delta(self, intent: OrderIntent) -> float:
        return self.buy if intent.side is OrderSide.BUY else self.sell


class _Planner:
    """Accumulates transitions while tracking the planned position."""

    def __init__(self, position: Position, config: TraderConfig):
        self.position = position
        self.config = config
        self.transitions: List[Transition] = []

    def _intent(self, side: OrderSide) -> OrderIntent:
        return OrderIntent(side=side, symbol=self.config.symbol, quantity=self.config.quantity)

    def enter(self, side: OrderSide):
        position = Position.LONG if side is OrderSide.BUY else Position.SHORT
        self.transitions.append(Transition(self._intent(side), position, "entry"))
        self.position = position

    def exit(self, reason: str):
        if self.position is Position.LONG:
            self.transitions.append(Transition(self._intent(OrderSide.SELL), Position.FLAT, reason))
        elif self.position is Position.SHORT:
            self.transitions.append(Transition(self._intent(OrderSide.BUY), Position.FLAT, reason))
        self.position = Position.FLAT


def is_throttled(state: TradingState, config: TraderConfig, now: datetime) -> bool:
    if state.last_trade_at is None:
        return False
    elapsed = (now - state.last_trade_at).total_seconds()
    return elapsed < config.min_trade_gap_seconds


def is_halted(state: TradingState, config: TraderConfig) -> bool:
    return state.cumulative_profit <= config.max_daily_loss


def _rsi_above(rsi: Optional[float], threshold: float, config: TraderConfig) -> bool:
    if not config.rsi_gating:
        return True
    return rsi is not None and rsi > threshold


def _rsi_below(rsi: Optional[float], threshold: float, config: TraderConfig) -> bool:
    if not config.rsi_gating:
        return True
    return rsi is not None and rsi < threshold


def plan(signal: Signal, state: TradingState, config: TraderConfig, now: datetime) -> Decision:
    """Plan the transitions for one signal. Does not mutate `state`."""
    if is_throttled(state, config, now):
        return Decision(outcome=Outcome.THROTTLED, position=state.position)

    if is_halted(state, config):
        return Decision(outcome=Outcome.HALTED, position=state.position)

    planner = _Planner(state.position, config)
    rsi = signal.rsi

    if signal.kind is SignalKind.BUY:
        if _rsi_above(rsi, config.entry_rsi_buy, config):
            if planner.position is Position.FLAT:
                planner.enter(OrderSide.BUY)
            elif planner.position is Position.SHORT:
                planner.exit("reversal_exit")
                planner.enter(OrderSide.BUY)
    elif signal.kind is SignalKind.SELL:
        if _rsi_below(rsi, config.entry_rsi_sell, config):
            if planner.position is Position.FLAT:
                planner.enter(OrderSide.SELL)
            elif planner.position is Position.LONG:
                planner.exit("reversal_exit")
                planner.enter(OrderSide.SELL)
    elif signal.kind is SignalKind.EXIT:
        planner.exit("exit_signal")

    # The overlay sees the position left by the dispatch above, so a fresh
    # entry can be unwound in the same pass.
    if config.auto_exit and rsi is not None:
        if planner.position is Position.LONG and rsi < config.exit_rsi:
            planner.exit("auto_exit")
        elif planner.position is Position.SHORT and rsi > 100 - config.exit_rsi:
            planner.exit("auto_exit")

    if signal.kind is SignalKind.UNKNOWN:
        outcome = Outcome.UNKNOWN_SIGNAL
    elif planner.transitions:
        outcome = Outcome.TRADED
    else:
        outcome = Outcome.NO_ACTION

    return Decision(outcome=outcome, position=planner.position, transitions=planner.transitions)


def settle(state: TradingState, intent: OrderIntent, now: datetime, pnl_model: PnLModel) -> TradingState:
    """Fold one placed order into the state, in place."""
    state.cumulative_profit += pnl_model.delta(intent)
    state.last_trade_at = now
    return state


def evaluate(signal: Signal, state: TradingState, config: TraderConfig, now: datetime,
             pnl_model: Optional[PnLModel] = None) -> Tuple[TradingState, List[OrderIntent]]:
    """
    Evaluate a signal against a state and return the resulting state and intents.

    Every intent is settled as if it had been dispatched successfully; the
    input state is left untouched.
    """
    pnl_model = pnl_model or FixedSidePnL.from_config(config)
    decision = plan(signal, state, config, now)

    new_state = dataclasses.replace(state)
    for transition in decision.transitions:
        new_state.position = transition.position
        settle(new_state, transition.intent, now, pnl_model)

    return new_state, decision.intents
