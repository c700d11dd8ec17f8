from prometheus_client import Counter, Histogram, Gauge

# Prometheus metrics
signals_received = Counter('trader_signals_received_total', 'Total signals received', ['kind'])
signals_skipped = Counter('trader_signals_skipped_total', 'Signals that produced no dispatch', ['reason'])
malformed_signals = Counter('trader_malformed_signals_total', 'Webhook bodies rejected as malformed')
orders_placed = Counter('trader_orders_placed_total', 'Orders sent to the gateway', ['side', 'status'])
order_latency = Histogram('trader_order_latency_seconds', 'Order placement latency', ['gateway'])
gateway_errors = Counter('trader_gateway_errors_total', 'Gateway errors by type', ['type'])
cumulative_pnl = Gauge('trader_cumulative_pnl', 'Cumulative mock PnL since start or reset')
position_gauge = Gauge('trader_position', 'Current position (-1 short, 0 flat, 1 long)')
daily_resets = Counter('trader_daily_resets_total', 'Daily counter resets')
