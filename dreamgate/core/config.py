"""Configuration loader for Dreamgate.

Settings resolve in order: ``DREAMGATE_*`` environment variables, then
``settings.json`` in the working directory, then the dataclass defaults.
"""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import get_args

from .debug import load_settings
from .exceptions import ConfigurationException

PACKAGE_ROOT = Path(__file__).parent.parent
MODELS_PATH = PACKAGE_ROOT / "data" / "models.json"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_models_config: dict = {}


@dataclass
class Settings:
    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    cookie_file: str = "cookies.txt"

    # Target site
    base_url: str = "https://dreamina.capcut.com"
    home_path: str = "/ai-tool/home"
    generate_path: str = "/ai-tool/image/generate"

    # Browser
    headless: bool = True
    executable_path: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080
    launch_timeout: float = 120.0
    operation_timeout: float = 180.0
    navigation_timeout: float = 60.0
    generate_navigation_timeout: float = 45.0

    # Retry policy
    launch_attempts: int = 3
    launch_retry_delay: float = 5.0
    navigation_attempts: int = 3
    navigation_retry_delay: float = 5.0
    verify_attempts: int = 5
    verify_delay: float = 5.0
    input_attempts: int = 6
    input_retry_delay: float = 2.5
    submit_attempts: int = 3
    submit_retry_delay: float = 2.0
    page_settle_delay: float = 3.0
    model_select_delay: float = 1.5

    # Result polling and extraction
    poll_interval: float = 2.5
    poll_timeout: float = 60.0
    batch_size: int = 4
    min_image_size: int = 180
    row_tolerance: int = 50
    top_region: int | None = None  # Only accept results whose top edge is above this y (px)

    # "click" tries the send-button heuristics, "enter" presses Enter in the prompt field
    submit_mode: str = "click"

    @property
    def home_url(self) -> str:
        return self.base_url.rstrip("/") + self.home_path

    @property
    def generate_url(self) -> str:
        return self.base_url.rstrip("/") + self.generate_path

    @property
    def viewport(self) -> dict:
        return {"width": self.viewport_width, "height": self.viewport_height}


def _coerce(raw, target: type, name: str):
    """Convert a raw env/json value to the annotated field type."""
    if raw is None:
        return None
    try:
        if target is bool:
            if isinstance(raw, bool):
                return raw
            return str(raw).lower() in ("1", "true", "yes")
        if target is int:
            return int(raw)
        if target is float:
            return float(raw)
        return str(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationException(name, f"expected {target.__name__}, got {raw!r}") from e


def _field_type(f) -> tuple[type, bool]:
    """Return (base type, optional) for a Settings field annotation."""
    args = get_args(f.type)
    if args:
        return next(a for a in args if a is not type(None)), True
    return f.type, False


# Environment aliases kept for compatibility with existing deployments
_ENV_ALIASES = {
    "port": ("PORT",),
    "executable_path": ("DREAMGATE_CHROMIUM_PATH", "PUPPETEER_EXECUTABLE_PATH"),
}


def load_settings_from_env(env: dict | None = None, file_settings: dict | None = None) -> Settings:
    """Build Settings from environment variables layered over settings.json."""
    env = os.environ if env is None else env
    if file_settings is None:
        try:
            file_settings = load_settings()
        except json.JSONDecodeError as e:
            raise ConfigurationException("settings.json", f"Invalid JSON: {e}") from e

    values: dict = {}
    for f in fields(Settings):
        target, optional = _field_type(f)

        raw = env.get(f"DREAMGATE_{f.name.upper()}")
        if raw is None:
            for alias in _ENV_ALIASES.get(f.name, ()):
                if env.get(alias):
                    raw = env[alias]
                    break
        if raw is None and f.name in file_settings:
            raw = file_settings[f.name]
        if raw is None:
            continue
        if optional and raw == "":
            values[f.name] = None
            continue
        values[f.name] = _coerce(raw, target, f"DREAMGATE_{f.name.upper()}")

    settings = Settings(**values)
    if settings.submit_mode not in ("click", "enter"):
        raise ConfigurationException("DREAMGATE_SUBMIT_MODE", f"unknown submit mode {settings.submit_mode!r}")
    return settings


# =============================================================================
# MODEL CATALOGUE
# =============================================================================


def get_default_models_config() -> dict:
    """Return default models configuration."""
    return {
        "models": [
            {"id": "default", "name": "Default", "default": True},
            {"id": "nano-banana", "name": "Nano Banana"},
            {"id": "image-4", "name": "Image 4.0"},
        ]
    }


def load_models_config() -> dict:
    """Load models configuration from JSON file."""
    global _models_config
    if _models_config:
        return _models_config

    try:
        with open(MODELS_PATH, encoding="utf-8") as f:
            _models_config = json.load(f)
    except FileNotFoundError:
        print(f"[Dreamgate] Warning: {MODELS_PATH} not found, using defaults")
        _models_config = get_default_models_config()
    except json.JSONDecodeError as e:
        raise ConfigurationException(str(MODELS_PATH), f"Invalid JSON: {e}") from e
    return _models_config


def get_models() -> list[str]:
    """Get model IDs (the /generate/{variant} keys)."""
    return [m["id"] for m in load_models_config().get("models", [])]


def get_model(model_id: str) -> dict | None:
    """Get model config by ID, or None if unknown."""
    for m in load_models_config().get("models", []):
        if m["id"] == model_id:
            return m
    return None


def get_model_names() -> list[str]:
    """Get display names of every non-default model, as shown in the site's model picker."""
    return [m["name"] for m in load_models_config().get("models", []) if not m.get("default")]


def is_default_model(model_id: str) -> bool:
    model = get_model(model_id)
    return bool(model and model.get("default"))


def reload():
    """Force reload the model catalogue."""
    global _models_config
    _models_config = {}
