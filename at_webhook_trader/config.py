"""
Environment-sourced configuration for the webhook trader.
"""

import os
from dataclasses import dataclass
from typing import Optional, Mapping

from .exceptions import ConfigError
from .models import SettlementMode

DEFAULT_API_URL = "https://api.topstepx.com/api/Order/place"


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"Invalid value for {name}: {raw!r}", error_code="CFG-001", details={"name": name})


@dataclass(frozen=True)
class TraderConfig:
    # Brokerage credentials
    account_id: str = ""
    api_key: str = ""
    api_url: str = DEFAULT_API_URL

    # Instrument
    symbol: str = "/NQ"
    quantity: int = 10

    # Guardrails
    max_daily_loss: float = -800.0
    min_trade_gap_seconds: float = 180.0
    entry_rsi_buy: float = 62.90
    entry_rsi_sell: float = 37.10
    exit_rsi: float = 55.0

    # Feature flags
    rsi_gating: bool = True
    auto_exit: bool = True

    # Settlement and mock economics
    settlement: SettlementMode = SettlementMode.CONFIRMED
    mock_pnl_buy: float = 250.0
    mock_pnl_sell: float = -150.0

    # Gateway
    gateway: str = "http"  # or "paper"
    gateway_timeout_seconds: float = 10.0

    # Service
    port: int = 8080
    log_level: str = "INFO"
    service_name: str = "at-webhook-trader"
    admin_token: str = ""

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "TraderConfig":
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if env is None else env

        settlement_raw = env.get("SETTLEMENT_MODE", SettlementMode.CONFIRMED.value).strip().lower()
        try:
            settlement = SettlementMode(settlement_raw)
        except ValueError:
            raise ConfigError(
                f"Invalid SETTLEMENT_MODE: {settlement_raw!r}",
                error_code="CFG-002",
                details={"allowed": [m.value for m in SettlementMode]}
            )

        gateway = env.get("ORDER_GATEWAY", "http").strip().lower()
        if gateway not in ("http", "paper"):
            raise ConfigError(f"Invalid ORDER_GATEWAY: {gateway!r}", error_code="CFG-003")

        return cls(
            account_id=env.get("TOPSTEP_ACCOUNT_ID", ""),
            api_key=env.get("TOPSTEP_API_KEY", ""),
            api_url=env.get("ORDER_API_URL", DEFAULT_API_URL),
            symbol=env.get("TRADE_SYMBOL", "/NQ"),
            quantity=_env_number(env, "TRADE_QUANTITY", 10, int),
            max_daily_loss=_env_number(env, "MAX_DAILY_LOSS", -800.0, float),
            min_trade_gap_seconds=_env_number(env, "MIN_TRADE_GAP_SEC", 180.0, float),
            entry_rsi_buy=_env_number(env, "ENTRY_RSI_BUY", 62.90, float),
            entry_rsi_sell=_env_number(env, "ENTRY_RSI_SELL", 37.10, float),
            exit_rsi=_env_number(env, "EXIT_RSI", 55.0, float),
            rsi_gating=_env_bool(env, "FF_RSI_GATING", True),
            auto_exit=_env_bool(env, "FF_AUTO_EXIT", True),
            settlement=settlement,
            mock_pnl_buy=_env_number(env, "MOCK_PNL_BUY", 250.0, float),
            mock_pnl_sell=_env_number(env, "MOCK_PNL_SELL", -150.0, float),
            gateway=gateway,
            gateway_timeout_seconds=_env_number(env, "GATEWAY_TIMEOUT_SEC", 10.0, float),
            port=_env_number(env, "PORT", 8080, int),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            service_name=env.get("SERVICE_NAME", "at-webhook-trader"),
            admin_token=env.get("ADMIN_TOKEN", ""),
        )

    def validate(self):
        """Raise ConfigError if the configuration cannot be used to trade."""
        if self.gateway == "http":
            missing = [name for name, value in (
                ("TOPSTEP_ACCOUNT_ID", self.account_id),
                ("TOPSTEP_API_KEY", self.api_key),
            ) if not value]
            if missing:
                raise ConfigError(
                    f"Missing required environment variables: {', '.join(missing)}",
                    error_code="CFG-004",
                    details={"missing": missing}
                )

        if self.quantity <= 0:
            raise ConfigError(f"Quantity must be positive, got {self.quantity}", error_code="CFG-005")
        if self.min_trade_gap_seconds < 0:
            raise ConfigError("Minimum trade gap cannot be negative", error_code="CFG-005")
        if not 0 <= self.exit_rsi <= 100:
            raise ConfigError(f"Exit RSI must be within 0..100, got {self.exit_rsi}", error_code="CFG-005")
        if self.gateway_timeout_seconds <= 0:
            raise ConfigError("Gateway timeout must be positive", error_code="CFG-005")
