from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SD_",
    )

    # Alpha Vantage (fundamentals)
    alphavantage_api_key: str = ""
    alphavantage_base_url: str = "https://www.alphavantage.co/query"
    alphavantage_request_delay: float = 1.1  # free tier ~1 req/sec

    # Stooq (daily bars)
    stooq_base_url: str = "https://stooq.com/q/d/l/"
    stooq_symbol_suffix: str = ".us"
    price_bar_limit: int = 260  # ~1 trading year

    # HTTP
    http_timeout: float = 15.0
    http_max_retries: int = 3
    http_retry_backoff: float = 2.0

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    # Cache
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 3600  # seconds

    # Monte Carlo simulation
    simulation_days: int = 252
    simulation_num_paths: int = 5000
    simulation_seed: int = 7
    simulation_lambda: float = 0.75
    simulation_min_history_days: int = 60
    simulation_window: int = 253  # 253 closes -> 252 returns

    @property
    def alphavantage_configured(self) -> bool:
        return bool(self.alphavantage_api_key)
