from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./database.sqlite"

    # HTTP API
    port: int = 3000
    cors_origins: str = "*"  # Comma separated list of origins
    log_level: str = "INFO"

    # Substreams (streaming source)
    substreams_endpoint: str = "evm-mainnet.sei.streamingfast.io:443"
    substreams_api_token: str = ""
    substreams_manifest_path: str = "./substreams.yaml"
    substreams_start_block: int = 0  # 0 = let substreams pick
    substreams_binary: str = "substreams"
    substreams_idle_timeout_seconds: float = 120.0

    # REST oracles
    pyth_hermes_url: str = "https://hermes.pyth.network"
    coingecko_url: str = "https://api.coingecko.com"
    fetch_timeout_seconds: float = 10.0

    # Schedules (seconds)
    poll_interval_seconds: float = 30.0
    streaming_restart_delay_seconds: float = 5.0
    staleness_check_interval_seconds: float = 60.0
    staleness_threshold_seconds: float = 5 * 60
    snapshot_interval_seconds: float = 5 * 60
    discover_tokens_interval_seconds: float = 2 * 60 * 60

    @field_validator("substreams_api_token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        """Tokens pasted into .env often carry trailing whitespace"""
        return v.strip()

    def get_cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
