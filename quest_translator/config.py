"""Settings loaded from _settings.json next to main.py."""

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Optional

log = logging.getLogger(__name__)

SETTINGS_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                             "_settings.json")
API_KEY_ENV = "QUEST_TRANSLATOR_API_KEY"

# Settings keys that map onto ProviderConfig fields
_OVERRIDE_KEYS = ("batch_size", "max_concurrency", "max_cost_per_minute",
                  "max_attempts", "retry_base_wait")


@dataclass
class Settings:
    provider: str = "google"
    api_key: str = ""
    source_lang: str = "en"
    target_lang: str = "ja"
    batch_size: Optional[int] = None
    max_concurrency: Optional[int] = None
    max_cost_per_minute: Optional[int] = None
    max_attempts: Optional[int] = None
    retry_base_wait: Optional[float] = None

    def provider_overrides(self) -> dict:
        """Only the provider limits that were set explicitly."""
        return {k: getattr(self, k) for k in _OVERRIDE_KEYS if getattr(self, k) is not None}


def load_settings(path: Optional[str] = None) -> Settings:
    """Read settings; a missing or broken file means defaults."""
    path = path or SETTINGS_FILE
    settings = Settings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        log.debug("No usable settings at %s, using defaults", path)
        cfg = {}

    if isinstance(cfg, dict):
        known = {f.name for f in fields(Settings)}
        for key, value in cfg.items():
            if key in known:
                setattr(settings, key, value)
            else:
                log.debug("Ignoring unknown setting %r", key)

    if not settings.api_key:
        settings.api_key = os.environ.get(API_KEY_ENV, "")
    return settings
