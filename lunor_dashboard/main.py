from __future__ import annotations

import uvicorn

from .config import load_settings
from .logging_config import setup_logging
from .web.app import create_app


def main() -> int:
    settings = load_settings()
    log = setup_logging(settings.log_level)
    if not settings.client_id or not settings.client_secret:
        log.error(
            "DISCORD_CLIENT_ID / DISCORD_CLIENT_SECRET are not set. "
            "Export them in your environment before running."
        )
        return 2
    if not settings.bot_token:
        log.warning("DISCORD_BOT_TOKEN is not set; mutual guild lookups will fail.")
    app = create_app(settings)
    log.info("Serving dashboard on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
