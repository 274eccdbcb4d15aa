from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_env: str
    db_path: str
    news_api_url: str
    news_api_key: str
    news_section: str
    news_order_by: str
    news_format: str
    fetch_timeout: float
    timezone: str
    week_start: int
    connectivity_host: str
    connectivity_port: int
    connectivity_timeout: float

    @staticmethod
    def from_env() -> "Settings":
        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        return Settings(
            app_env=os.getenv("APP_ENV", "dev").strip(),
            db_path=os.getenv("DB_PATH", "/app/_local/data/worldnews.db").strip(),
            news_api_url=os.getenv("NEWS_API_URL", "https://content.guardianapis.com/search").strip(),
            news_api_key=os.getenv("NEWS_API_KEY", "test").strip(),
            news_section=os.getenv("NEWS_SECTION", "world").strip(),
            news_order_by=os.getenv("NEWS_ORDER_BY", "oldest").strip(),
            news_format=os.getenv("NEWS_FORMAT", "json").strip(),
            fetch_timeout=_f("FETCH_TIMEOUT", "30"),
            timezone=os.getenv("NEWS_TIMEZONE", "UTC").strip(),
            week_start=_i("WEEK_START", "0"),
            connectivity_host=os.getenv("CONNECTIVITY_HOST", "content.guardianapis.com").strip(),
            connectivity_port=_i("CONNECTIVITY_PORT", "443"),
            connectivity_timeout=_f("CONNECTIVITY_TIMEOUT", "2"),
        )
