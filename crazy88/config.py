"""
Configuration loader
"""
import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/game.yaml"


class ClockSettings(BaseModel):
    grace_seconds: int = 300          # completions still accepted after expiry
    tick_seconds: float = 1.0         # auto-expiry check interval


class ScoringSettings(BaseModel):
    total_assignments: int = 88
    creativity_points: int = 5
    double_points_multiplier: int = 2


class ScoreboardSettings(BaseModel):
    poll_seconds: float = 15.0
    popular_limit: int = 5
    momentum_window_minutes: int = 15
    uncompleted_preview: int = 10
    recent_activity_limit: int = 10


class UploadSettings(BaseModel):
    max_bytes: int = 100 * 1024 * 1024
    max_attempts: int = 3
    backoff_seconds: float = 1.0              # linear: attempt * backoff_seconds
    video_surrogate_bytes: int = 50 * 1024 * 1024
    video_surrogate_seconds: float = 120.0
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    ffmpeg_timeout: int = 60


class StorageSettings(BaseModel):
    bucket: str = "submissions"
    endpoint_url: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "auto"
    public_base_url: Optional[str] = None


class Settings(BaseModel):
    """Server configuration, loaded from YAML"""
    database_url: str = "sqlite:///crazy88.db"
    catalog_path: str = "data/assignments.csv"
    clock: ClockSettings = ClockSettings()
    scoring: ScoringSettings = ScoringSettings()
    scoreboard: ScoreboardSettings = ScoreboardSettings()
    upload: UploadSettings = UploadSettings()
    storage: StorageSettings = StorageSettings()


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file

    Falls back to defaults when the file does not exist.
    The path can be overridden with the CRAZY88_CONFIG environment variable.

    Args:
        config_path: Path to config file

    Returns:
        Settings object
    """
    path = Path(config_path or os.environ.get("CRAZY88_CONFIG", DEFAULT_CONFIG_PATH))

    if not path.exists():
        logger.warning(f"⚠️ Config file not found: {path}, using defaults")
        return Settings()

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    return Settings(**data)
