"""Keep one current guide message at the bottom of each monitored channel."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

import discord

from .config import GuideSettings
from .errors import ExternalOperationFailed
from .models import GuideMessageState, GuideStatus, MessageRef, RecordKind
from .publisher import MessagePublisher
from .telemetry import get_telemetry

logger = logging.getLogger(__name__)

ViewFactory = Callable[[RecordKind, GuideSettings], Optional[Any]]


@dataclass(frozen=True)
class GuideTarget:
    kind: RecordKind
    channel_id: int
    settings: GuideSettings


def matches_signature(message: Any, settings: GuideSettings, bot_user_id: Optional[int]) -> bool:
    """Return True when ``message`` is a guide this bot posted.

    The plain guide must match exactly. A guide with a button may carry
    trailing content, so only the text has to be contained in it.
    """

    author = getattr(message, "author", None)
    if bot_user_id is None or author is None or getattr(author, "id", None) != bot_user_id:
        return False
    content = (getattr(message, "content", "") or "").strip()
    if settings.has_button:
        return settings.text in content
    return content == settings.text


class GuideReconciler:
    """Owns the in-memory guide state of every monitored channel."""

    def __init__(
        self,
        targets: List[GuideTarget],
        publisher: MessagePublisher,
        *,
        bot_user_id: Callable[[], Optional[int]],
        view_factory: Optional[ViewFactory] = None,
        min_interval: float = 3.0,
        settle_delay: float = 0.5,
        history_limit: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._targets: Dict[int, GuideTarget] = {t.channel_id: t for t in targets}
        self._publisher = publisher
        self._bot_user_id = bot_user_id
        self._view_factory = view_factory
        self._min_interval = min_interval
        self._settle_delay = settle_delay
        self._history_limit = history_limit
        self._clock = clock
        self._states: Dict[int, GuideMessageState] = {
            channel_id: GuideMessageState(channel_id=channel_id) for channel_id in self._targets
        }
        self._locks: Dict[int, asyncio.Lock] = {}
        self._pending: Set[asyncio.Task] = set()

    def monitors(self, channel_id: Optional[int]) -> bool:
        return channel_id is not None and channel_id in self._targets

    def state(self, channel_id: int) -> GuideMessageState:
        return self._states[channel_id]

    def _lock(self, channel_id: int) -> asyncio.Lock:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[channel_id] = lock
        return lock

    async def initialize_all(self) -> None:
        for channel_id in list(self._targets):
            await self.initialize(channel_id)

    async def initialize(self, channel_id: int) -> GuideMessageState:
        """Adopt an existing guide from channel history or post a new one."""

        async with self._lock(channel_id):
            return await self._initialize_locked(channel_id)

    async def _initialize_locked(self, channel_id: int) -> GuideMessageState:
        target = self._targets[channel_id]
        state = self._states[channel_id]
        state.status = GuideStatus.SEARCHING
        try:
            matches, newest_is_guide = await self._search(target)
        except (discord.HTTPException, ExternalOperationFailed):
            logger.exception("Failed to scan history of guide channel %s", channel_id)
            state.status = GuideStatus.UNINITIALIZED
            return state

        if matches:
            adopted, *stale = matches
            state.status = GuideStatus.ADOPTED
            state.message = adopted
            for ref in stale:
                await self._publisher.delete(ref)
            logger.info("Adopted guide message %s in %s", adopted.message_id, channel_id)
            get_telemetry().track_system_event("guide_adopted", source=str(channel_id))
        else:
            state.status = GuideStatus.CREATING
            try:
                state.message = await self._post(target)
            except ExternalOperationFailed:
                logger.exception("Failed to post guide in %s", channel_id)
                state.status = GuideStatus.UNINITIALIZED
                return state
            logger.info("Posted new guide message %s in %s", state.message.message_id, channel_id)
            get_telemetry().track_system_event("guide_created", source=str(channel_id))
            newest_is_guide = True

        state.status = GuideStatus.STEADY
        state.last_refresh_at = self._clock()
        if not newest_is_guide:
            await self._refresh_locked(channel_id, force=True)
        return state

    async def _search(self, target: GuideTarget) -> tuple[List[MessageRef], bool]:
        channel = self._publisher.channel(target.channel_id)
        bot_user_id = self._bot_user_id()
        guild = getattr(channel, "guild", None)
        matches: List[MessageRef] = []
        newest_is_guide = False
        position = 0
        async for message in channel.history(limit=self._history_limit):
            if matches_signature(message, target.settings, bot_user_id):
                if position == 0:
                    newest_is_guide = True
                matches.append(
                    MessageRef(
                        guild_id=getattr(guild, "id", None),
                        channel_id=target.channel_id,
                        message_id=message.id,
                    )
                )
            position += 1
        return matches, newest_is_guide

    async def _post(self, target: GuideTarget) -> MessageRef:
        channel = self._publisher.channel(target.channel_id)
        view = self._view_factory(target.kind, target.settings) if self._view_factory else None
        try:
            if view is not None:
                sent = await channel.send(content=target.settings.text, view=view)
            else:
                sent = await channel.send(content=target.settings.text)
        except discord.HTTPException as exc:
            raise ExternalOperationFailed("post guide") from exc
        guild = getattr(channel, "guild", None)
        return MessageRef(
            guild_id=getattr(guild, "id", None),
            channel_id=target.channel_id,
            message_id=sent.id,
        )

    async def refresh(self, channel_id: int, *, force: bool = False) -> bool:
        """Delete and repost the guide unless the last refresh was too recent.

        Returns True when the guide was actually reposted.
        """

        if not self.monitors(channel_id):
            return False
        async with self._lock(channel_id):
            if self._states[channel_id].status is not GuideStatus.STEADY:
                await self._initialize_locked(channel_id)
                return self._states[channel_id].status is GuideStatus.STEADY
            return await self._refresh_locked(channel_id, force=force)

    async def _refresh_locked(self, channel_id: int, *, force: bool) -> bool:
        state = self._states[channel_id]
        now = self._clock()
        if (
            not force
            and state.last_refresh_at is not None
            and now - state.last_refresh_at < self._min_interval
        ):
            logger.debug("Skipping guide refresh in %s; last refresh too recent", channel_id)
            return False
        state.last_refresh_at = now
        previous = state.message
        if previous is not None:
            await self._publisher.delete(previous)
            state.message = None
        try:
            state.message = await self._post(self._targets[channel_id])
        except ExternalOperationFailed:
            logger.exception("Failed to repost guide in %s", channel_id)
            return False
        get_telemetry().track_system_event("guide_refreshed", source=str(channel_id))
        return True

    def note_activity(self, channel_id: Optional[int], author_id: Optional[int]) -> Optional[asyncio.Task]:
        """Schedule a refresh after a new message in a monitored channel."""

        if not self.monitors(channel_id):
            return None
        if author_id is not None and author_id == self._bot_user_id():
            return None
        return self.request_refresh(channel_id)

    def request_refresh(self, channel_id: int) -> asyncio.Task:
        """Refresh after a short delay so the triggering message settles first."""

        task = asyncio.get_running_loop().create_task(self._delayed_refresh(channel_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _delayed_refresh(self, channel_id: int) -> None:
        await asyncio.sleep(self._settle_delay)
        await self.refresh(channel_id)

    async def shutdown(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
        for channel_id in self._states:
            self._states[channel_id] = GuideMessageState(channel_id=channel_id)


__all__ = ["GuideReconciler", "GuideTarget", "matches_signature"]
