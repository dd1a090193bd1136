from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from event_tracker.state import AppState

DEFAULT_CONFIG_PATH = "event_tracker.yml"

@dataclass
class Settings:
    store_path: str = "data/events.json"
    log_path: str = "out/event_tracker.log"
    sheets_url: str = ""
    refresh_interval_hours: float = 6.0
    state: AppState = field(default_factory=AppState)

    @property
    def refresh_interval_s(self) -> float:
        return self.refresh_interval_hours * 60 * 60

def load_config(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

def load_settings(path: Optional[str] = None) -> Settings:
    """Read settings from YAML; a missing file gives the defaults."""
    path = path or DEFAULT_CONFIG_PATH
    cfg: Dict[str, Any] = load_config(path) if os.path.exists(path) else {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(cfg).__name__}")

    s = Settings(state=AppState.from_dict(cfg.get("state")))
    for key in ("store_path", "log_path", "sheets_url"):
        if cfg.get(key):
            setattr(s, key, str(cfg[key]))
    if cfg.get("refresh_interval_hours") is not None:
        s.refresh_interval_hours = float(cfg["refresh_interval_hours"])
    return s

def save_settings(path: str, settings: Settings) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    data = {
        "store_path": settings.store_path,
        "log_path": settings.log_path,
        "sheets_url": settings.sheets_url,
        "refresh_interval_hours": settings.refresh_interval_hours,
        "state": settings.state.to_dict(),
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
