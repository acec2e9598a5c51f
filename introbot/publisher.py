"""Publish and replace the public posts that back introduction records.

Posts are sent through a throwaway webhook named after the member so that they
appear to come from the member. The webhook is created right before the send
and deleted right after it.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Optional

import discord

from .errors import ExternalOperationFailed
from .models import Actor, MessageRef

logger = logging.getLogger(__name__)

ChannelLookup = Callable[[int], Optional[Any]]

_MAX_PROXY_NAME = 80
_RESERVED_NAME = re.compile(r"discord|clyde", re.IGNORECASE)


def proxy_name(display_name: str) -> str:
    """Return a webhook name Discord will accept for ``display_name``."""

    name = _RESERVED_NAME.sub("*", display_name or "").strip()
    if not name:
        name = "member"
    return name[:_MAX_PROXY_NAME]


class MessagePublisher:
    """Two-phase replace of member posts: best-effort delete, then publish."""

    def __init__(self, resolve_channel: ChannelLookup) -> None:
        self._resolve_channel = resolve_channel

    def channel(self, channel_id: int) -> Any:
        channel = self._resolve_channel(channel_id)
        if channel is None:
            logger.warning("Failed to locate channel with id %s", channel_id)
            raise ExternalOperationFailed(f"resolve channel {channel_id}")
        return channel

    async def publish_as(self, channel_id: int, content: str, actor: Actor) -> MessageRef:
        """Send ``content`` to the channel under the member's name and avatar."""

        channel = self.channel(channel_id)
        try:
            webhook = await channel.create_webhook(name=proxy_name(actor.display_name))
        except discord.HTTPException as exc:
            logger.exception("Failed to create identity proxy in %s", channel_id)
            raise ExternalOperationFailed("create identity proxy") from exc
        try:
            sent = await webhook.send(
                content=content,
                username=proxy_name(actor.display_name),
                avatar_url=actor.avatar_url,
                wait=True,
            )
        except discord.HTTPException as exc:
            logger.exception("Failed to publish post for %s in %s", actor.id, channel_id)
            raise ExternalOperationFailed("publish") from exc
        finally:
            try:
                await webhook.delete()
            except discord.HTTPException:
                logger.warning("Failed to remove identity proxy %s", getattr(webhook, "id", "?"))
        guild = getattr(channel, "guild", None)
        return MessageRef(
            guild_id=getattr(guild, "id", None),
            channel_id=channel_id,
            message_id=sent.id,
        )

    async def delete(self, ref: MessageRef) -> bool:
        """Delete a published message; failures are logged and reported as False."""

        channel = self._resolve_channel(ref.channel_id)
        if channel is None:
            logger.warning(
                "Cannot delete message %s; channel %s not found", ref.message_id, ref.channel_id
            )
            return False
        try:
            await channel.get_partial_message(ref.message_id).delete()
        except discord.HTTPException as exc:
            logger.warning("Failed to delete old message %s: %s", ref.message_id, exc)
            return False
        return True

    async def replace(
        self,
        channel_id: int,
        previous: Optional[MessageRef],
        content: str,
        actor: Actor,
    ) -> MessageRef:
        """Delete ``previous`` (best effort) and publish the replacement.

        If the publish fails after the delete succeeded, the member is left
        without a post until they retry; the record still points at the old
        message because nothing is saved on failure.
        """

        if previous is not None:
            deleted = await self.delete(previous)
            logger.info(
                "Replacing message %s for %s (old %s)",
                previous.message_id,
                actor.id,
                "deleted" if deleted else "left in place",
            )
        return await self.publish_as(channel_id, content, actor)


__all__ = ["MessagePublisher", "proxy_name"]
