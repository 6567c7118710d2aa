# src/taskflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

- One Settings object for the whole app.
- No secrets required at import time.
- Channel credentials are optional; a missing credential disables that channel.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKFLOW"

DESKTOP_MODES = ("notify-send", "console", "off")
REMOTE_CHANNELS = ("telegram", "matrix", "none")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    timezone: str

    # ---- Connector flags ----
    console_enabled: bool
    reminders_enabled: bool

    # ---- Reminders ----
    reminder_interval_seconds: float
    desktop_notifications: str
    remote_channel: str

    # ---- User profile ----
    user_name: str
    notify_destination: str

    # ---- Telegram ----
    telegram_bot_token: str
    telegram_api_base: str
    telegram_timeout_seconds: float

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str

    # ---- LLM / OpenRouter ----
    openrouter_api_key: str | None
    openrouter_base_url: str
    llm_models: list[str]
    extra_headers: dict[str, str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    matrix_store_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="TaskFlow") or "TaskFlow"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        timezone = _env(_k("TIMEZONE"), "UTC").strip() or "UTC"

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        reminders_enabled = _env_bool(_k("REMINDERS_ENABLED"), True)

        # Scan interval below one second is never useful and would spin the loop.
        reminder_interval_seconds = max(1.0, _env_float(_k("REMINDER_INTERVAL_SECONDS"), 60.0))
        desktop_notifications = _env_choice(_k("DESKTOP_NOTIFICATIONS"), DESKTOP_MODES, "notify-send")

        telegram_bot_token = (_first_env(_k("TELEGRAM_BOT_TOKEN"), "TELEGRAM_BOT_TOKEN", default="") or "").strip()
        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), "MATRIX_HOMESERVER", default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), "MATRIX_USER_ID", default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), "MATRIX_PASSWORD", default="") or "").strip()

        # Default channel follows whichever credentials are present.
        if telegram_bot_token:
            default_channel = "telegram"
        elif matrix_homeserver and matrix_user_id:
            default_channel = "matrix"
        else:
            default_channel = "none"
        remote_channel = _env_choice(_k("REMOTE_CHANNEL"), REMOTE_CHANNELS, default_channel)

        user_name = _env(_k("USER_NAME"), "User").strip() or "User"
        notify_destination = (
            _first_env(_k("NOTIFY_DESTINATION"), _k("TELEGRAM_CHAT_ID"), default="") or ""
        ).strip()

        telegram_api_base = _env(_k("TELEGRAM_API_BASE"), "https://api.telegram.org").rstrip("/")
        telegram_timeout_seconds = max(1.0, _env_float(_k("TELEGRAM_TIMEOUT_SECONDS"), 15.0))

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")
        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )
        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": app_name,
        }

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            timezone=timezone,
            console_enabled=console_enabled,
            reminders_enabled=reminders_enabled,
            reminder_interval_seconds=reminder_interval_seconds,
            desktop_notifications=desktop_notifications,
            remote_channel=remote_channel,
            user_name=user_name,
            notify_destination=notify_destination,
            telegram_bot_token=telegram_bot_token,
            telegram_api_base=telegram_api_base,
            telegram_timeout_seconds=telegram_timeout_seconds,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            matrix_store_path=matrix_store_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
