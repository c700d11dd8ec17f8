import hmac
import json
import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request, HTTPException, Header
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, ValidationError
import structlog
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from .clock import Clock
from .config import TraderConfig
from .engine import DecisionEngine
from .exceptions import MalformedSignalError
from .gateway import OrderGateway, create_gateway
from .metrics import malformed_signals
from .models import Signal

logger = structlog.get_logger()


class WebhookPayload(BaseModel):
    """Inbound webhook body; only `message` drives the decision besides `rsi`."""
    # Strict: numeric strings and booleans are not coerced into floats
    model_config = ConfigDict(strict=True, allow_inf_nan=False)

    message: Optional[str] = None
    rsi: Optional[float] = None
    vwap: Optional[float] = None
    price: Optional[float] = None


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def parse_signal(body: bytes) -> Signal:
    """Decode a webhook body into a Signal, raising MalformedSignalError on bad input."""
    try:
        data = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedSignalError(f"Invalid JSON: {e}", error_code="WH-001")

    if not isinstance(data, dict):
        raise MalformedSignalError("Payload must be a JSON object", error_code="WH-002")

    try:
        payload = WebhookPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedSignalError(
            "Invalid payload fields",
            error_code="WH-003",
            details={"errors": e.errors(include_url=False)}
        )

    return Signal.from_message(payload.message, rsi=payload.rsi, vwap=payload.vwap, price=payload.price)


def configure_logging(log_level: str):
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_app(
    config: Optional[TraderConfig] = None,
    gateway: Optional[OrderGateway] = None,
    clock: Optional[Clock] = None,
    engine: Optional[DecisionEngine] = None
) -> FastAPI:
    """Build the webhook service around one decision engine."""
    if engine is None:
        config = config or TraderConfig.from_env()
        engine = DecisionEngine(config, gateway or create_gateway(config), clock=clock)
    config = engine.config

    app = FastAPI(
        title=config.service_name,
        description="Trading signal webhook to brokerage order bridge",
        version="1.0.0"
    )
    app.state.engine = engine
    app.state.start_time = time.time()

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        """Attach a correlation ID to every request and response"""
        corr_id = request.headers.get("X-Correlation-ID", f"req_{uuid.uuid4().hex[:12]}")
        request.state.corr_id = corr_id

        response = await call_next(request)

        response.headers["X-Correlation-ID"] = corr_id
        response.headers["X-Service-Name"] = config.service_name
        return response

    @app.on_event("startup")
    async def startup_event():
        """Configure logging and open the gateway"""
        configure_logging(config.log_level)
        config.validate()
        await engine.gateway.initialize()

        logger.info(
            "Bot listening",
            port=config.port,
            service_name=config.service_name,
            gateway=engine.gateway.name,
            symbol=config.symbol,
            settlement=config.settlement.value
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Clean shutdown"""
        await engine.gateway.cleanup()
        logger.info("Trader service stopped")

    @app.get("/healthz")
    async def health_check():
        """Health check endpoint"""
        return {
            "ok": True,
            "service": config.service_name,
            "uptime_seconds": int(time.time() - app.state.start_time),
            "gateway": await engine.gateway.health_check()
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return PlainTextResponse(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/state")
    async def get_state():
        """Current trading state and limits"""
        return engine.snapshot()

    @app.post("/state/reset")
    async def reset_state(request: Request, x_admin_token: Optional[str] = Header(None)):
        """Reset the daily PnL counter, lifting a loss-limit halt"""
        if not config.admin_token or not x_admin_token or \
                not hmac.compare_digest(x_admin_token.encode(), config.admin_token.encode()):
            logger.warning("Rejected state reset", corr_id=request.state.corr_id)
            raise HTTPException(status_code=403, detail="Admin token required")

        await engine.reset_daily_counters()
        return engine.snapshot()

    @app.post("/webhook")
    async def webhook(request: Request):
        """Trading signal webhook"""
        corr_id = request.state.corr_id
        body = await request.body()

        try:
            signal = parse_signal(body)
        except MalformedSignalError as e:
            malformed_signals.inc()
            logger.warning("Invalid payload", corr_id=corr_id, error=str(e), error_code=e.error_code)
            return PlainTextResponse("Invalid payload", status_code=400)

        logger.info(
            "Signal received",
            corr_id=corr_id,
            message=signal.message,
            rsi=signal.rsi,
            vwap=signal.vwap,
            price=signal.price
        )

        report = await engine.handle_signal(signal, corr_id=corr_id)
        return JSONResponse(content=report.to_dict())

    return app


app = create_app()
