from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_name: str = "BloodLink"
    debug: bool = False

    # REST backend
    api_base_url: str = "http://localhost:8080/api"
    api_timeout_seconds: float = 10.0

    # Unread badge
    badge_poll_interval_seconds: float = 60.0
    badge_display_cap: int = 99  # shown as "99+" above this

    # Notification list / push
    notifications_page_size: int = 10
    in_app_banner_seconds: float = 5.0
    default_notification_title: str = "New Notification"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
