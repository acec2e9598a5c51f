"""Discord adapter: interaction normalization and UI builders."""

from __future__ import annotations

from .builders import build_guide_view, build_modal
from .events import DiscordResponder, command_event, event_from_interaction

__all__ = [
    "DiscordResponder",
    "build_guide_view",
    "build_modal",
    "command_event",
    "event_from_interaction",
]
