"""
Centralised configuration using Pydantic settings.

This module defines a ``Settings`` class which encapsulates the runner
configuration. Environment variables can override defaults defined here
by creating a ``.env`` file at the project root or by exporting
variables before starting a run. ``load_settings`` layers a YAML or JSON
file on top of that for per-suite configuration.
"""

import json
import os
from typing import Any, Dict, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runner configuration loaded from environment variables.

    ``DEFAULT_WAIT``: initial wait budget in seconds.
    ``WAIT_SCALE`` / ``WAIT_OFFSET``: applied to every ``wait N`` so slow
    machines can stretch all budgets without editing scripts.
    ``RETRY_INTERVAL``: pause between failed assertion attempts.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DEFAULT_WAIT: float = 30.0
    WAIT_SCALE: float = 1.0
    WAIT_OFFSET: float = 0.0
    RETRY_INTERVAL: float = 0.1

    # Navigation timeout handed to the driver (``browser wait N``)
    BROWSER_WAIT: float = 30.0

    # Reference Playwright driver
    PLAYWRIGHT_HEADLESS: bool = False
    PLAYWRIGHT_BROWSER: str = "chromium"
    SLOW_MO: float = 0.0

    ARTIFACT_ROOT: str = "./artifacts"
    SCREENSHOT_ROOT: str = "./screenshots"

    LOG_LEVEL: str = "INFO"


def load_settings(path: Optional[str] = None, **overrides: Any) -> Settings:
    """
    Build ``Settings`` from an optional YAML/JSON file plus keyword overrides.

    Keys in the file use the same names as the ``Settings`` fields.
    Keyword overrides whose value is ``None`` are ignored so CLI flags
    that were not given fall through to the file or environment.
    """
    data: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
        if os.path.splitext(path)[1].lower() == ".json":
            loaded = json.loads(content)
        else:
            loaded = yaml.safe_load(content)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"{path}: configuration must be a mapping")
        data.update(loaded or {})
    data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)


settings = Settings()
