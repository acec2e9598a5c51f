"""Dispatch inbound events to the first handler that claims them."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .config import ChannelRouter
from .errors import GENERIC_FAILURE, ChannelMismatch, IntroBotError
from .forms import FormSpec
from .models import EventKind, InboundEvent, RecordKind
from .telemetry import get_telemetry

logger = logging.getLogger(__name__)


class Responder:
    """Reply surface of one interaction."""

    async def send(self, content: str, *, ephemeral: bool = True) -> None:
        """Reply, or follow up when a response was already sent or deferred."""
        raise NotImplementedError

    async def defer(self) -> None:
        raise NotImplementedError

    async def open_form(self, form: FormSpec) -> None:
        raise NotImplementedError


class Handler:
    """One unit of behaviour behind the router.

    Handlers filter themselves: ``matches`` must be cheap and side-effect free.
    ``handle`` returns a short outcome label used for logging.
    """

    name = "handler"
    kind: Optional[RecordKind] = None

    def matches(self, event: InboundEvent) -> bool:
        raise NotImplementedError

    async def handle(self, event: InboundEvent) -> str:
        raise NotImplementedError


class InteractionRouter:
    """Ordered handler chain with channel gating and error normalization."""

    def __init__(self, channels: ChannelRouter, handlers: Iterable[Handler] = ()) -> None:
        self._channels = channels
        self._handlers: List[Handler] = list(handlers)

    @property
    def handlers(self) -> List[Handler]:
        return list(self._handlers)

    def register(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def select(self, event: InboundEvent) -> Optional[Handler]:
        for handler in self._handlers:
            if handler.matches(event):
                return handler
        return None

    async def dispatch(self, event: InboundEvent) -> bool:
        """Route ``event``; returns False when no handler claimed it."""

        handler = self.select(event)
        if handler is None:
            if event.kind is EventKind.COMMAND:
                logger.error("Command %s not found", event.name)
                await self._reply(event, f'Command "{event.name}" does not exist.')
                return True
            logger.debug("Ignoring %s %s; no handler claimed it", event.kind.value, event.name)
            return False

        if event.kind is EventKind.COMMAND:
            logger.info(
                'Command "%s" was executed by %s in #%s',
                event.name,
                event.actor.id,
                event.channel_id if event.channel_id is not None else "dm",
            )

        telemetry = get_telemetry()
        try:
            self._check_channel(event, handler)
            outcome = await handler.handle(event)
        except IntroBotError as exc:
            logger.info(
                "%s %s for %s rejected by %s: %s",
                event.kind.value,
                event.name,
                event.actor.id,
                handler.name,
                exc,
            )
            telemetry.track_interaction(event.kind.value, handler.name, event.actor.id, type(exc).__name__)
            await self._reply(event, exc.user_message)
            return True
        except Exception as exc:
            logger.exception(
                "Handler %s failed on %s %s from %s",
                handler.name,
                event.kind.value,
                event.name,
                event.actor.id,
            )
            telemetry.track_error(
                type(exc).__name__,
                command=event.name,
                member_id=event.actor.id,
                error_details=str(exc),
            )
            await self._reply(event, GENERIC_FAILURE)
            return True
        telemetry.track_interaction(event.kind.value, handler.name, event.actor.id, outcome)
        return True

    def _check_channel(self, event: InboundEvent, handler: Handler) -> None:
        """Record commands and widgets only work in their kind's channel."""

        if event.kind is EventKind.FORM_SUBMIT or handler.kind is None:
            return
        required = self._channels.channel_for(handler.kind)
        if required is None or event.channel_id != required:
            raise ChannelMismatch(handler.kind, required)

    async def _reply(self, event: InboundEvent, content: str) -> None:
        try:
            await event.responder.send(content, ephemeral=True)
        except Exception:
            logger.exception("Failed to reply to %s %s", event.kind.value, event.name)


__all__ = ["Handler", "InteractionRouter", "Responder"]
