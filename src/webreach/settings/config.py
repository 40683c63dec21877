"""Configuration loader for webreach using Pydantic settings.

Config precedence (highest wins):
  1. Explicit keyword arguments / CLI flags
  2. Environment variables (WEBREACH_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("WEBREACH_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "WEBREACH_ENV"
DEFAULT_ENV = "local"

SpeedName = Literal["slow", "normal", "fast"]


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# Fuzzy ARIA scoring table.  Keys are ``<attribute>_<match kind>``; the
# highest-weighted matching rule decides an element's score.
DEFAULT_ARIA_WEIGHTS: dict[str, int] = {
    "aria_label_exact": 100,
    "placeholder_exact": 90,
    "name_exact": 88,
    "testid_exact": 86,
    "aria_label_prefix": 70,
    "placeholder_prefix": 62,
    "testid_prefix": 58,
    "title_prefix": 55,
    "aria_label_contains": 50,
    "placeholder_contains": 45,
    "testid_contains": 40,
    "title_contains": 35,
    "alt_contains": 30,
    "text_exact": 20,
    "role_equals": 15,
}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="WEBREACH_BROWSER__")

    headless: bool = False
    timeout_ms: int = 30_000
    viewport_width: int = 1366
    viewport_height: int = 860
    locale: str = "en-US"
    channel: str = ""


class InteractionSettings(BaseSettings):
    """Pointer and keyboard simulation timing."""

    model_config = SettingsConfigDict(env_prefix="WEBREACH_INTERACTION__")

    speed: SpeedName = "normal"
    speed_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"slow": 1.6, "normal": 1.0, "fast": 0.5}
    )
    settle_ms: int = 120
    frame_interval_ms: int = 16

    # Pointer motion
    move_base_ms: int = 80
    move_ms_per_px: float = 0.55
    move_floor_ms: int = 120
    move_ceiling_ms: int = 900
    curve_offset_ratio: float = 0.25
    curve_offset_cap_px: float = 120.0

    # Keystrokes
    key_delay_min_ms: int = 35
    key_delay_max_ms: int = 110
    punctuation_pause_min_ms: int = 60
    punctuation_pause_max_ms: int = 180
    hesitation_probability: float = 0.03
    hesitation_min_ms: int = 300
    hesitation_max_ms: int = 900

    cancel_poll_ms: int = 1000

    @field_validator("hesitation_probability")
    @classmethod
    def _clamp_probability(cls, v: float) -> float:
        return max(0.0, min(1.0, v))


class ResolverSettings(BaseSettings):
    """Selector resolution settings."""

    model_config = SettingsConfigDict(env_prefix="WEBREACH_RESOLVER__")

    retry_timeout_ms: int = 5_000
    poll_interval_ms: int = 250
    index_policy: Literal["clamp", "strict"] = "clamp"
    viewport_buffer_px: int = 100
    aria_weights: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_ARIA_WEIGHTS))


class SnapshotSettings(BaseSettings):
    """DOM snapshot serializer limits."""

    model_config = SettingsConfigDict(env_prefix="WEBREACH_SNAPSHOT__")

    max_elements: int = 150
    name_max_len: int = 80
    description_max_len: int = 120
    short_label_max_len: int = 40
    short_text_max_len: int = 30


class StealthSettings(BaseSettings):
    """Fingerprint masking configuration."""

    model_config = SettingsConfigDict(env_prefix="WEBREACH_STEALTH__")

    enabled: bool = True
    randomize: bool = True
    user_agent: str = ""
    platform: str = ""
    vendor: str = "Google Inc."
    hardware_concurrency: int = 8
    device_memory: int = 8
    color_depth: int = 24
    languages: list[str] = Field(default_factory=lambda: ["en-US", "en"])


class LoggingSettings(BaseSettings):
    """Logging output configuration."""

    model_config = SettingsConfigDict(env_prefix="WEBREACH_LOGGING__")

    level: str = "INFO"
    json_lines: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root webreach settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="WEBREACH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    interaction: InteractionSettings = Field(default_factory=InteractionSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
    stealth: StealthSettings = Field(default_factory=StealthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _fill_weight_defaults(self) -> "Settings":
        """Missing scoring rules fall back to the built-in weights."""
        self.resolver.aria_weights = {**DEFAULT_ARIA_WEIGHTS, **self.resolver.aria_weights}
        return self

    def speed_multiplier(self, speed: str | None = None) -> float:
        """Return the timing scalar for *speed* (defaults to the configured profile)."""
        name = speed or self.interaction.speed
        return self.interaction.speed_multipliers.get(name, 1.0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
