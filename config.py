"""Configuration loading for the video library API."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent

load_dotenv(PROJECT_ROOT / ".env")


def load_config() -> dict:
    """Load configuration from environment variables."""

    def resolve_path(path: Optional[str], default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    return {
        "data_path": resolve_path(os.getenv("VIDEOS_DATA_PATH"), "data/videos.json"),
        "frontend_url": os.getenv("FRONTEND_URL", "http://localhost:3000"),
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "3001")),
        "app_env": os.getenv("APP_ENV", "development"),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
        # defaults applied to newly created videos
        "default_video_duration": int(os.getenv("DEFAULT_VIDEO_DURATION", "300")),
        "thumbnail_base_url": os.getenv("THUMBNAIL_BASE_URL", "https://picsum.photos/seed"),
    }
