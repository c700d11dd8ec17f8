"""
Tests for the stateful decision engine: dispatch, settlement modes,
serialisation and daily reset.
"""

import asyncio

import pytest
from prometheus_client import REGISTRY

from at_webhook_trader.engine import DecisionEngine
from at_webhook_trader.models import OrderSide, Outcome, Position, SettlementMode, TradingState

from tests.fixtures import RecordingGateway, buy, sell, exit_signal, unknown, make_config, optimistic_config


class TestDecisionEngine:
    """Engine behaviour with a healthy gateway"""

    @pytest.mark.asyncio
    async def test_buy_then_exit(self, engine, gateway, fake_clock):
        report = await engine.handle_signal(buy(70.0), corr_id="test-corr")

        assert report.outcome is Outcome.TRADED
        assert gateway.sides == ["buy"]
        assert report.orders[0].success is True
        assert report.orders[0].confirmation == {"order_id": "TEST_1", "status": "accepted"}
        assert engine.state.position is Position.LONG
        assert engine.state.cumulative_profit == 250.0
        assert engine.state.last_trade_at == fake_clock.now_utc()

        fake_clock.advance(180)
        report = await engine.handle_signal(exit_signal())

        assert gateway.sides == ["buy", "sell"]
        assert report.state.position is Position.FLAT
        assert report.state.cumulative_profit == 100.0

    @pytest.mark.asyncio
    async def test_throttled_signal_places_nothing(self, engine, gateway, fake_clock):
        await engine.handle_signal(buy(70.0))
        fake_clock.advance(179)

        report = await engine.handle_signal(exit_signal())

        assert report.outcome is Outcome.THROTTLED
        assert report.orders == []
        assert gateway.sides == ["buy"]
        assert engine.state.position is Position.LONG

    @pytest.mark.asyncio
    async def test_halted_until_reset(self, config, gateway, fake_clock):
        engine = DecisionEngine(
            config, gateway, clock=fake_clock,
            state=TradingState(cumulative_profit=-800.0)
        )

        for sig in (buy(70.0), sell(30.0), exit_signal()):
            fake_clock.advance(600)
            report = await engine.handle_signal(sig)
            assert report.outcome is Outcome.HALTED

        assert gateway.calls == []

        await engine.reset_daily_counters()
        report = await engine.handle_signal(sell(30.0))

        assert report.outcome is Outcome.TRADED
        assert engine.state.position is Position.SHORT
        assert engine.state.cumulative_profit == -150.0

    @pytest.mark.asyncio
    async def test_losses_accumulate_into_halt(self, gateway, fake_clock):
        config = make_config(mock_pnl_buy=-300.0, mock_pnl_sell=-300.0)
        engine = DecisionEngine(config, gateway, clock=fake_clock)

        await engine.handle_signal(buy(70.0))
        fake_clock.advance(180)
        await engine.handle_signal(sell(30.0))
        assert engine.state.cumulative_profit == -900.0

        fake_clock.advance(180)
        report = await engine.handle_signal(exit_signal())

        assert report.outcome is Outcome.HALTED
        assert engine.state.position is Position.SHORT

    @pytest.mark.asyncio
    async def test_unknown_signal(self, engine, gateway):
        skipped_before = REGISTRY.get_sample_value("trader_signals_skipped_total", {"reason": "unknown_signal"}) or 0.0

        report = await engine.handle_signal(unknown("HOLD", rsi=70.0))

        assert report.outcome is Outcome.UNKNOWN_SIGNAL
        assert gateway.calls == []
        skipped_after = REGISTRY.get_sample_value("trader_signals_skipped_total", {"reason": "unknown_signal"})
        assert skipped_after == skipped_before + 1

    @pytest.mark.asyncio
    async def test_unknown_signal_overlay_exit_is_not_skipped(self, config, gateway, fake_clock):
        engine = DecisionEngine(config, gateway, clock=fake_clock, state=TradingState(position=Position.LONG))
        skipped_before = REGISTRY.get_sample_value("trader_signals_skipped_total", {"reason": "unknown_signal"}) or 0.0

        report = await engine.handle_signal(unknown("HOLD", rsi=10.0))

        assert report.outcome is Outcome.UNKNOWN_SIGNAL
        assert [o.reason for o in report.orders] == ["auto_exit"]
        assert engine.state.position is Position.FLAT
        skipped_after = REGISTRY.get_sample_value("trader_signals_skipped_total", {"reason": "unknown_signal"}) or 0.0
        assert skipped_after == skipped_before

    @pytest.mark.asyncio
    async def test_reversal_dispatches_in_order(self, config, gateway, fake_clock):
        engine = DecisionEngine(config, gateway, clock=fake_clock, state=TradingState(position=Position.SHORT))

        report = await engine.handle_signal(buy(70.0))

        assert [o.reason for o in report.orders] == ["reversal_exit", "entry"]
        assert [i.side for i in gateway.calls] == [OrderSide.BUY, OrderSide.BUY]
        assert engine.state.position is Position.LONG

    @pytest.mark.asyncio
    async def test_snapshot(self, engine, fake_clock):
        await engine.handle_signal(buy(70.0))
        fake_clock.advance(60)

        snapshot = engine.snapshot()

        assert snapshot["position"] == "long"
        assert snapshot["cumulative_profit"] == 250.0
        assert snapshot["halted"] is False
        assert snapshot["throttle_remaining_seconds"] == 120.0
        assert snapshot["settlement"] == "confirmed"
        assert snapshot["limits"]["entry_rsi_buy"] == 62.90


class TestSettlementModes:
    """Gateway failures under confirmed and optimistic settlement"""

    @pytest.mark.asyncio
    async def test_confirmed_failure_leaves_state(self, fake_clock):
        gateway = RecordingGateway(fail_all=True)
        engine = DecisionEngine(make_config(), gateway, clock=fake_clock)

        report = await engine.handle_signal(buy(70.0))

        assert report.outcome is Outcome.TRADED
        assert report.orders[0].success is False
        assert report.orders[0].error_code == "GW-REJECTED"
        assert report.orders[0].placed_at is None
        assert engine.state == TradingState()

    @pytest.mark.asyncio
    async def test_confirmed_failure_does_not_throttle(self, fake_clock):
        gateway = RecordingGateway(fail_calls={1})
        engine = DecisionEngine(make_config(), gateway, clock=fake_clock)

        await engine.handle_signal(buy(70.0))
        report = await engine.handle_signal(buy(70.0))

        assert report.orders[0].success is True
        assert engine.state.position is Position.LONG

    @pytest.mark.asyncio
    async def test_confirmed_reversal_stops_after_failed_close(self, fake_clock):
        gateway = RecordingGateway(fail_calls={1})
        engine = DecisionEngine(make_config(), gateway, clock=fake_clock, state=TradingState(position=Position.LONG))

        report = await engine.handle_signal(sell(30.0))

        assert len(gateway.calls) == 1
        assert len(report.orders) == 1
        assert engine.state.position is Position.LONG
        assert engine.state.cumulative_profit == 0.0

    @pytest.mark.asyncio
    async def test_confirmed_reversal_failed_entry_ends_flat(self, fake_clock):
        gateway = RecordingGateway(fail_calls={2})
        engine = DecisionEngine(make_config(), gateway, clock=fake_clock, state=TradingState(position=Position.LONG))

        await engine.handle_signal(sell(30.0))

        assert engine.state.position is Position.FLAT
        assert engine.state.cumulative_profit == -150.0

    @pytest.mark.asyncio
    async def test_optimistic_failure_advances_state(self, fake_clock):
        gateway = RecordingGateway(fail_all=True)
        engine = DecisionEngine(optimistic_config(), gateway, clock=fake_clock)

        report = await engine.handle_signal(buy(70.0))

        assert report.orders[0].success is False
        assert engine.state.position is Position.LONG
        assert engine.state.cumulative_profit == 250.0
        assert engine.state.last_trade_at == fake_clock.now_utc()

    @pytest.mark.asyncio
    async def test_optimistic_reversal_continues_after_failure(self, fake_clock):
        gateway = RecordingGateway(fail_calls={1})
        engine = DecisionEngine(optimistic_config(), gateway, clock=fake_clock, state=TradingState(position=Position.SHORT))

        await engine.handle_signal(buy(70.0))

        assert len(gateway.calls) == 2
        assert engine.state.position is Position.LONG
        assert engine.state.cumulative_profit == 500.0


class TestConcurrency:
    """Signals are serialised through the engine lock"""

    @pytest.mark.asyncio
    async def test_concurrent_buys_open_once(self, fake_clock):
        gateway = RecordingGateway(delay=0.01)
        engine = DecisionEngine(make_config(), gateway, clock=fake_clock)

        reports = await asyncio.gather(*(engine.handle_signal(buy(70.0)) for _ in range(5)))

        assert len(gateway.calls) == 1
        assert sorted(r.outcome.value for r in reports) == ["throttled"] * 4 + ["traded"]
        assert engine.state.position is Position.LONG

    @pytest.mark.asyncio
    async def test_engines_do_not_share_state(self, fake_clock):
        first = DecisionEngine(make_config(), RecordingGateway(), clock=fake_clock)
        second = DecisionEngine(make_config(), RecordingGateway(), clock=fake_clock)

        await first.handle_signal(buy(70.0))

        assert first.state.position is Position.LONG
        assert second.state == TradingState()
        assert first.config.settlement is SettlementMode.CONFIRMED
