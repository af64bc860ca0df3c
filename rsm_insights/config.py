# rsm_insights/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field

def _as_bool(v: str | None, default: bool = False) -> bool:
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")

def _env(name: str, default: str):
    return field(default_factory=lambda: os.getenv(name, default))

def _env_int(name: str, default: int):
    return field(default_factory=lambda: int(os.getenv(name, str(default))))

@dataclass
class Settings:
    # Environment is read when a Settings is built, not at import
    # Session storage
    data_dir: str = _env("RSM_DATA_DIR", "data/sessions")
    persist_sessions: bool = field(
        default_factory=lambda: _as_bool(os.getenv("RSM_PERSIST_SESSIONS"), True))

    # Follow-up cadence: first touch +3d, then (round+1)*3d from the action moment
    first_follow_up_days: int = _env_int("FIRST_FOLLOW_UP_DAYS", 3)
    follow_up_step_days: int = _env_int("FOLLOW_UP_STEP_DAYS", 3)

    # API bind
    api_host: str = _env("API_HOST", "0.0.0.0")
    api_port: int = _env_int("API_PORT", 8000)

_settings: Settings | None = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
