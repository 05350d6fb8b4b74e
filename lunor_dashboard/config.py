import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/auth/callback"
    bot_token: str = ""
    # Empty URI selects the JSON file store at ``data_path``
    mongodb_uri: str = ""
    mongodb_database: str = "lunor"
    data_path: str = "lunor_data.json"
    session_ttl_seconds: int = 21600
    cookie_name: str = "lunor_session"
    cookie_secure: bool = False
    dashboard_path: str = "/dashboard"
    landing_path: str = "/"
    cors_origins: tuple[str, ...] = ()
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"


def load_settings() -> Settings:
    origins = os.getenv("DASHBOARD_CORS_ORIGINS", "")
    return Settings(
        client_id=os.getenv("DISCORD_CLIENT_ID", "").strip(),
        client_secret=os.getenv("DISCORD_CLIENT_SECRET", "").strip(),
        redirect_uri=os.getenv(
            "DISCORD_REDIRECT_URI", "http://localhost:3000/auth/callback"
        ).strip(),
        bot_token=os.getenv("DISCORD_BOT_TOKEN", "").strip(),
        mongodb_uri=os.getenv("MONGODB_URI", "").strip(),
        mongodb_database=os.getenv("MONGODB_DATABASE", "").strip() or "lunor",
        data_path=os.getenv("DASHBOARD_DATA_PATH", "").strip() or "lunor_data.json",
        session_ttl_seconds=_env_int("DASHBOARD_SESSION_TTL_SECONDS", 21600),
        cookie_secure=_env_bool("DASHBOARD_COOKIE_SECURE"),
        dashboard_path=os.getenv("DASHBOARD_PATH", "").strip() or "/dashboard",
        landing_path=os.getenv("DASHBOARD_LANDING_PATH", "").strip() or "/",
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        host=os.getenv("HOST", "").strip() or "0.0.0.0",
        port=_env_int("PORT", 3000),
        log_level=os.getenv("LOG_LEVEL", "").strip() or "INFO",
    )
