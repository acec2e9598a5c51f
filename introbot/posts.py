"""Text bodies of the public posts."""
from __future__ import annotations

from typing import Iterable, List, Optional

from .models import Actor, ClassifiedLink, MessageRef, Platform

_MAX_MESSAGE_LENGTH = 1900


def _clamp_text(text: str) -> str:
    """Ensure Discord-compatible message length."""

    if len(text) <= _MAX_MESSAGE_LENGTH:
        return text
    return text[: _MAX_MESSAGE_LENGTH - 1].rstrip() + "…"


def format_introduction(
    actor: Actor,
    *,
    name: str,
    contact_handle: str,
    course: str,
    cohort: str,
    note: str,
    link_set: Optional[MessageRef] = None,
) -> str:
    lines = [
        actor.mention,
        f"- Name: {name}",
        f"- Slack: {contact_handle}",
        f"- Course: {course}",
        f"- Cohort: {cohort}",
    ]
    if link_set is not None:
        lines.append(f"- Links: {link_set.jump_url}")
    lines.append("")
    lines.append("Note:")
    lines.append(note)
    return _clamp_text("\n".join(lines))


def format_link_line(link: ClassifiedLink) -> str:
    # Angle brackets suppress Discord's link preview.
    if link.platform is Platform.UNKNOWN or not link.handle:
        return f"{Platform.UNKNOWN.display_name}: [{link.url}](<{link.url}>)"
    return f"{link.platform.display_name}: [{link.handle}](<{link.url}>)"


def format_link_set(
    actor: Actor,
    links: Iterable[ClassifiedLink],
    introduction: Optional[MessageRef],
) -> str:
    lines: List[str] = [actor.mention]
    if introduction is not None:
        lines.append(f"[>> View introduction]({introduction.jump_url})")
    lines.append("")
    lines.extend(format_link_line(link) for link in links)
    return _clamp_text("\n".join(lines))


__all__ = ["format_introduction", "format_link_line", "format_link_set"]
