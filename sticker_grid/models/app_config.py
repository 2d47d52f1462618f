from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Model holding the app configuration"""

    model_config = SettingsConfigDict(env_file="config/.env", extra="ignore")

    # api config
    enable_documentation: bool = True
    cors_origins: List[str] = ["*"]

    # grid config
    grid_rows: int = 4
    grid_cols: int = 4
    label_placeholder_prefix: str = "sticker_"

    # resolution config
    resolution_presets: List[int] = [256, 512, 1024, 2048]
    max_target_size: int = 4096

    # ai backend config
    enable_label_enrichment: bool = True
    ai_backend_url: str = "http://127.0.0.1:5001"
    ai_request_timeout: float = 120.0

    # export config
    zip_filename: str = "stickers-pack.zip"


@lru_cache()
def get_config():
    return AppConfig()
