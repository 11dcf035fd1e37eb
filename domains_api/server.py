from __future__ import annotations

import logging
import os

import uvicorn

from domains_api.app import create_app
from domains_api.settings import ServiceSettings


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, str(os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # The Telegram bot token is part of the request URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    host = os.getenv("DOMAINS_HOST", "0.0.0.0").strip() or "0.0.0.0"
    port = int(os.getenv("DOMAINS_PORT", "8787"))
    settings = ServiceSettings()
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
