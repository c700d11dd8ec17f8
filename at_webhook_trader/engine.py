"""
Decision engine: owns the trading state and serialises signal handling.

Responsibilities:
- Guard, plan and dispatch each signal under one lock
- Settle placed orders into the state (mock PnL, last trade time)
- Apply the configured settlement mode on gateway failures
- Daily counter reset and state reporting
"""

import asyncio
import dataclasses
import time
from typing import Dict, Any, List, Optional

import structlog

from .clock import Clock, SystemClock
from .config import TraderConfig
from .decision import FixedSidePnL, PnLModel, is_halted, plan, settle
from .exceptions import GatewayError
from .gateway import OrderGateway
from .metrics import (
    signals_received, signals_skipped, orders_placed, order_latency, gateway_errors,
    cumulative_pnl, position_gauge, daily_resets
)
from .models import (
    ExecutionReport, OrderResult, Outcome, Position, SettlementMode, Signal, TradingState, Transition
)

logger = structlog.get_logger()

POSITION_VALUES = {Position.SHORT: -1, Position.FLAT: 0, Position.LONG: 1}


class DecisionEngine:
    def __init__(self, config: TraderConfig, gateway: OrderGateway,
                 clock: Optional[Clock] = None, pnl_model: Optional[PnLModel] = None,
                 state: Optional[TradingState] = None):
        self.config = config
        self.gateway = gateway
        self.clock = clock or SystemClock()
        self.pnl_model = pnl_model or FixedSidePnL.from_config(config)
        self.state = state or TradingState()
        self._lock = asyncio.Lock()

    async def handle_signal(self, signal: Signal, corr_id: Optional[str] = None) -> ExecutionReport:
        """Evaluate one signal and place the resulting orders."""
        log = logger.bind(corr_id=corr_id, kind=signal.kind.value, rsi=signal.rsi)
        signals_received.labels(kind=signal.kind.value).inc()

        async with self._lock:
            decision = plan(signal, self.state, self.config, self.clock.now_utc())

            if decision.outcome is Outcome.THROTTLED:
                signals_skipped.labels(reason="throttled").inc()
                log.info("Trade skipped: throttle active", last_trade_at=self.state.last_trade_at.isoformat())
            elif decision.outcome is Outcome.HALTED:
                signals_skipped.labels(reason="halted").inc()
                log.warning(
                    "Max daily loss reached. Trading halted.",
                    cumulative_profit=self.state.cumulative_profit,
                    limit=self.config.max_daily_loss
                )
            elif decision.outcome is Outcome.UNKNOWN_SIGNAL:
                # The RSI overlay can still unwind a position on an unknown message
                if not decision.transitions:
                    signals_skipped.labels(reason="unknown_signal").inc()
                log.warning(
                    "Unknown signal received",
                    message=signal.message,
                    overlay_exit=bool(decision.transitions)
                )
            elif decision.outcome is Outcome.NO_ACTION:
                signals_skipped.labels(reason="no_action").inc()
                log.info("Signal produced no trade", position=self.state.position.value)

            results: List[OrderResult] = []
            for transition in decision.transitions:
                result = await self._dispatch(transition, log)
                results.append(result)
                if not result.success and self.config.settlement is SettlementMode.CONFIRMED:
                    log.warning(
                        "Abandoning remaining transitions after failed placement",
                        remaining=len(decision.transitions) - len(results),
                        position=self.state.position.value
                    )
                    break

            self._update_gauges()
            return ExecutionReport(
                signal=signal,
                outcome=decision.outcome,
                orders=results,
                state=dataclasses.replace(self.state)
            )

    async def _dispatch(self, transition: Transition, log) -> OrderResult:
        intent = transition.intent
        if transition.reason == "auto_exit":
            log.info("Exiting position due to RSI", position=self.state.position.value)
        elif transition.reason != "entry":
            log.info("Exiting position", position=self.state.position.value, reason=transition.reason)

        result = OrderResult(intent=intent, success=False, reason=transition.reason)
        start = time.monotonic()
        try:
            result.confirmation = await self.gateway.place(intent)
            result.success = True
        except GatewayError as e:
            result.error = str(e)
            result.error_code = e.error_code
            gateway_errors.labels(type=type(e).__name__).inc()
            log.error(
                "Order placement failed",
                side=intent.side.value,
                symbol=intent.symbol,
                error=str(e),
                error_code=e.error_code,
                settlement=self.config.settlement.value
            )
        finally:
            order_latency.labels(gateway=self.gateway.name).observe(time.monotonic() - start)

        orders_placed.labels(side=intent.side.value, status="success" if result.success else "failed").inc()

        if result.success or self.config.settlement is SettlementMode.OPTIMISTIC:
            now = self.clock.now_utc()
            self.state.position = transition.position
            settle(self.state, intent, now, self.pnl_model)
            result.placed_at = now
            log.info(
                "Updated PnL",
                side=intent.side.value,
                quantity=intent.quantity,
                position=self.state.position.value,
                cumulative_profit=round(self.state.cumulative_profit, 2)
            )

        return result

    async def reset_daily_counters(self):
        """Reset the cumulative PnL, lifting a loss-limit halt."""
        async with self._lock:
            previous = self.state.cumulative_profit
            self.state.cumulative_profit = 0.0
            daily_resets.inc()
            self._update_gauges()
            logger.info("Daily counters reset", previous_profit=previous, position=self.state.position.value)

    def _update_gauges(self):
        cumulative_pnl.set(self.state.cumulative_profit)
        position_gauge.set(POSITION_VALUES[self.state.position])

    def snapshot(self) -> Dict[str, Any]:
        """Current state and active limits."""
        now = self.clock.now_utc()
        throttle_remaining = 0.0
        if self.state.last_trade_at is not None:
            elapsed = (now - self.state.last_trade_at).total_seconds()
            throttle_remaining = max(0.0, self.config.min_trade_gap_seconds - elapsed)

        return {
            **self.state.to_dict(),
            "halted": is_halted(self.state, self.config),
            "throttle_remaining_seconds": throttle_remaining,
            "settlement": self.config.settlement.value,
            "limits": {
                "symbol": self.config.symbol,
                "quantity": self.config.quantity,
                "max_daily_loss": self.config.max_daily_loss,
                "min_trade_gap_seconds": self.config.min_trade_gap_seconds,
                "entry_rsi_buy": self.config.entry_rsi_buy,
                "entry_rsi_sell": self.config.entry_rsi_sell,
                "exit_rsi": self.config.exit_rsi,
                "rsi_gating": self.config.rsi_gating,
                "auto_exit": self.config.auto_exit,
            },
        }
