"""
Order gateways: the outbound side of the trader.

`HttpOrderGateway` posts market orders to the brokerage REST API with a bearer
token. `PaperOrderGateway` records orders in memory for dry runs.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

import httpx
import structlog

from .config import TraderConfig
from .exceptions import (
    ConfigError, GatewayConnectionError, GatewayRejectedError, GatewayTimeoutError
)
from .models import OrderIntent

logger = structlog.get_logger()


class OrderGateway(ABC):
    """Abstract base class for order gateways."""

    name = "base"

    async def initialize(self):
        """Acquire resources needed to place orders."""
        pass

    @abstractmethod
    async def place(self, intent: OrderIntent) -> Any:
        """
        Place an order with the brokerage.

        Args:
            intent: Side, symbol and quantity to trade

        Returns:
            Confirmation body returned by the brokerage

        Raises:
            GatewayError: If the order could not be placed
        """
        pass

    async def health_check(self) -> Dict[str, Any]:
        return {"gateway": self.name}

    async def cleanup(self):
        """Release resources."""
        pass


class HttpOrderGateway(OrderGateway):
    """Market orders over the brokerage REST API."""

    name = "http"

    def __init__(self, config: TraderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = config.api_url
        self.account_id = config.account_id
        self.api_key = config.api_key
        self.timeout = config.gateway_timeout_seconds
        self.transport = transport
        self.http_client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        if self.http_client is not None:
            return

        self.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(5.0, self.timeout)),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            transport=self.transport
        )
        logger.info("HTTP order gateway initialized", api_url=self.api_url)

    def build_order(self, intent: OrderIntent) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "symbol": intent.symbol,
            "side": intent.side.value,
            "quantity": intent.quantity,
            "order_type": "market",
            "time_in_force": "GTC"
        }

    async def place(self, intent: OrderIntent) -> Any:
        await self.initialize()

        order = self.build_order(intent)
        try:
            response = await self.http_client.post(
                self.api_url,
                json=order,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json"
                }
            )
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError(
                f"Order API timed out: {e}",
                error_code="GW-TIMEOUT",
                details={"timeout_sec": self.timeout}
            )
        except httpx.HTTPError as e:
            raise GatewayConnectionError(f"Order API call failed: {e}", error_code="GW-CONNECT")

        if not response.is_success:
            raise GatewayRejectedError(
                f"Order API error: {response.status_code} - {response.text}",
                error_code="GW-REJECTED",
                details={"status_code": response.status_code, "body": response.text}
            )

        try:
            confirmation = response.json()
        except ValueError:
            confirmation = response.text

        logger.info("Trade executed", side=intent.side.value, symbol=intent.symbol, confirmation=confirmation)
        return confirmation

    async def health_check(self) -> Dict[str, Any]:
        return {
            "gateway": self.name,
            "credentials_configured": bool(self.account_id and self.api_key),
            "http_client_ready": self.http_client is not None
        }

    async def cleanup(self):
        if self.http_client:
            await self.http_client.aclose()
            self.http_client = None

        logger.info("HTTP order gateway cleanup completed")


class PaperOrderGateway(OrderGateway):
    """Dry-run gateway that accepts every order."""

    name = "paper"

    def __init__(self, config: Optional[TraderConfig] = None):
        self.account_id = (config.account_id if config else "") or "paper"
        self.orders: List[Dict[str, Any]] = []

    async def place(self, intent: OrderIntent) -> Any:
        confirmation = {
            "order_id": f"PAPER_{uuid.uuid4().hex[:8]}",
            "account_id": self.account_id,
            "symbol": intent.symbol,
            "side": intent.side.value,
            "quantity": intent.quantity,
            "status": "filled",
            "filled_at": datetime.now(timezone.utc).isoformat()
        }
        self.orders.append(confirmation)
        logger.info("Paper trade executed", order_id=confirmation["order_id"], side=intent.side.value)
        return confirmation

    async def health_check(self) -> Dict[str, Any]:
        return {"gateway": self.name, "orders_recorded": len(self.orders)}


def create_gateway(config: TraderConfig) -> OrderGateway:
    """Build the gateway selected by configuration."""
    if config.gateway == "paper":
        return PaperOrderGateway(config)
    if config.gateway == "http":
        return HttpOrderGateway(config)
    raise ConfigError(f"Unknown order gateway: {config.gateway}", error_code="CFG-003")

