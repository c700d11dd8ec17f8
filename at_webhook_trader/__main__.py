"""Entry point for running the webhook trader service."""

import uvicorn
from at_webhook_trader.app import app


def main():
    config = app.state.engine.config
    uvicorn.run(app, host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
