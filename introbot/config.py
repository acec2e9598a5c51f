"""Configuration loading utilities for the introduction board."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import RecordKind

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


@dataclass(frozen=True)
class GuideSettings:
    """Text of one channel's guide and the label of its optional button."""

    text: str
    button_label: Optional[str] = None

    @property
    def has_button(self) -> bool:
        return bool(self.button_label)


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    cohort_letters: str
    course_examples: list[str]
    guides: Dict[RecordKind, GuideSettings]
    guide_min_interval_seconds: float
    guide_settle_delay_seconds: float
    guide_history_limit: int
    maintenance_interval_minutes: int
    form_state_max_age_hours: float
    telemetry_retention_days: int

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        cohort_cfg = data.get("cohort", {})
        guide_cfg = data.get("guide", {})
        maintenance_cfg = data.get("maintenance", {})
        guides: Dict[RecordKind, GuideSettings] = {}
        for kind in RecordKind:
            entry = guide_cfg.get(kind.value) or {}
            if "text" not in entry:
                raise ValueError(f"guide.{kind.value}.text is required")
            guides[kind] = GuideSettings(
                text=str(entry["text"]).strip(),
                button_label=entry.get("button_label") or None,
            )
        letters = str(cohort_cfg.get("letters", "NSR")).strip()
        if not letters:
            raise ValueError("cohort.letters must not be empty")
        return Settings(
            cohort_letters=letters,
            course_examples=[str(item) for item in data.get("course_examples", [])],
            guides=guides,
            guide_min_interval_seconds=float(guide_cfg.get("min_interval_seconds", 3.0)),
            guide_settle_delay_seconds=float(guide_cfg.get("settle_delay_seconds", 0.5)),
            guide_history_limit=int(guide_cfg.get("history_limit", 50)),
            maintenance_interval_minutes=int(maintenance_cfg.get("interval_minutes", 60)),
            form_state_max_age_hours=float(maintenance_cfg.get("form_state_max_age_hours", 24)),
            telemetry_retention_days=int(maintenance_cfg.get("telemetry_retention_days", 30)),
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get("INTROBOT_SETTINGS")
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


@dataclass(frozen=True)
class ChannelRouter:
    """Designated channel for each record kind."""

    introduction: Optional[int]
    link_set: Optional[int]

    def channel_for(self, kind: RecordKind) -> Optional[int]:
        if kind is RecordKind.INTRODUCTION:
            return self.introduction
        return self.link_set

    def kind_for(self, channel_id: Optional[int]) -> Optional[RecordKind]:
        if channel_id is None:
            return None
        for kind in RecordKind:
            if self.channel_for(kind) == channel_id:
                return kind
        return None

    def monitored(self) -> Dict[RecordKind, int]:
        channels: Dict[RecordKind, int] = {}
        for kind in RecordKind:
            channel_id = self.channel_for(kind)
            if channel_id is not None:
                channels[kind] = channel_id
        return channels

    @staticmethod
    def from_env() -> "ChannelRouter":
        return ChannelRouter(
            introduction=parse_id_env("INTROBOT_CHANNEL_INTRODUCTION"),
            link_set=parse_id_env("INTROBOT_CHANNEL_LINK_SET"),
        )


def parse_id_env(env_key: str) -> Optional[int]:
    value = os.environ.get(env_key)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid id %s for %s", value, env_key)
        return None


__all__ = [
    "ChannelRouter",
    "GuideSettings",
    "Settings",
    "SettingsLoader",
    "get_settings",
    "parse_id_env",
]
