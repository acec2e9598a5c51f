"""Translate discord.py interactions into router events."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import discord

from ...forms import FormSpec, token_from_custom_id
from ...models import Actor, EventKind, InboundEvent
from ...router import Responder
from ...service import IntroService
from .builders import build_modal

logger = logging.getLogger(__name__)


class DiscordResponder(Responder):
    """Reply surface over a ``discord.Interaction``."""

    def __init__(self, interaction: discord.Interaction) -> None:
        self.interaction = interaction

    async def send(self, content: str, *, ephemeral: bool = True) -> None:
        if self.interaction.response.is_done():
            await self.interaction.followup.send(content, ephemeral=ephemeral)
        else:
            await self.interaction.response.send_message(content, ephemeral=ephemeral)

    async def defer(self) -> None:
        if not self.interaction.response.is_done():
            await self.interaction.response.defer(ephemeral=True, thinking=True)

    async def open_form(self, form: FormSpec) -> None:
        await self.interaction.response.send_modal(build_modal(form))


def actor_from_user(user: Any) -> Actor:
    avatar = getattr(user, "display_avatar", None)
    return Actor(
        id=str(user.id),
        display_name=getattr(user, "display_name", None) or str(user),
        avatar_url=str(avatar.url) if avatar is not None else None,
    )


def modal_values(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Flatten the submitted modal payload into ``{custom_id: value}``."""

    values: Dict[str, str] = {}
    for row in (data or {}).get("components", []):
        # Action rows carry a list, label containers a single component.
        children = row.get("components") or ([row["component"]] if "component" in row else [])
        for child in children:
            custom_id = child.get("custom_id")
            if custom_id:
                values[custom_id] = child.get("value") or ""
    return values


def _event(interaction: discord.Interaction, kind: EventKind, name: str, **extra: Any) -> InboundEvent:
    return InboundEvent(
        kind=kind,
        name=name,
        actor=actor_from_user(interaction.user),
        channel_id=interaction.channel_id,
        guild_id=interaction.guild_id,
        responder=DiscordResponder(interaction),
        **extra,
    )


def command_event(interaction: discord.Interaction, name: str) -> InboundEvent:
    return _event(interaction, EventKind.COMMAND, name)


def event_from_interaction(
    interaction: discord.Interaction, service: IntroService
) -> Optional[InboundEvent]:
    """Normalize a component click or modal submission.

    Modal submissions resolve their stashed key here, so the form token is
    single use. Application commands are dispatched by the command tree and
    yield None.
    """

    data = interaction.data or {}
    custom_id = data.get("custom_id") or ""
    if interaction.type is discord.InteractionType.component:
        return _event(interaction, EventKind.WIDGET_CLICK, custom_id)
    if interaction.type is discord.InteractionType.modal_submit:
        token = token_from_custom_id(custom_id)
        key = service.resolve_form(token)
        if token is not None and key is None:
            logger.info("Form %s from %s has no pending state", custom_id, interaction.user.id)
        return _event(
            interaction,
            EventKind.FORM_SUBMIT,
            custom_id,
            key=key,
            fields=modal_values(data),
        )
    return None


__all__ = [
    "DiscordResponder",
    "actor_from_user",
    "command_event",
    "event_from_interaction",
    "modal_values",
]
