"""Handlers behind the interaction router."""
from __future__ import annotations

import logging
from typing import List

from .errors import FormExpired
from .forms import FORM_ID_PREFIX, WIDGET_IDS
from .models import Action, EventKind, InboundEvent, RecordKind
from .router import Handler
from .service import IntroService

logger = logging.getLogger(__name__)

INTRODUCTION_COMMAND = "self"
INTRODUCTION_EDIT_COMMAND = "self-edit"
LINK_SET_COMMAND = "sns"
LINK_SET_EDIT_COMMAND = "sns-edit"
DIAGNOSTIC_COMMAND = "test"


class OpenFormCommand(Handler):
    """Slash command that shows the create or edit form for a record kind."""

    def __init__(self, service: IntroService, command: str, kind: RecordKind, action: Action) -> None:
        self.service = service
        self.command = command
        self.kind = kind
        self.action = action
        self.name = f"command:{command}"

    def matches(self, event: InboundEvent) -> bool:
        return event.kind is EventKind.COMMAND and event.name == self.command

    async def handle(self, event: InboundEvent) -> str:
        form = self.service.open_form(event.actor, self.kind, self.action)
        await event.responder.open_form(form)
        return "form_opened"


class GuideButton(Handler):
    """The guide's button; opens whichever form fits the member's records."""

    def __init__(self, service: IntroService, kind: RecordKind) -> None:
        self.service = service
        self.kind = kind
        self.widget_id = WIDGET_IDS[kind]
        self.name = f"widget:{kind.value}"

    def matches(self, event: InboundEvent) -> bool:
        return event.kind is EventKind.WIDGET_CLICK and event.name == self.widget_id

    async def handle(self, event: InboundEvent) -> str:
        form = self.service.open_form(event.actor, self.kind, Action.OPEN)
        await event.responder.open_form(form)
        return "form_opened"


class IntroductionSubmit(Handler):
    name = "form:introduction"

    def __init__(self, service: IntroService) -> None:
        self.service = service

    def matches(self, event: InboundEvent) -> bool:
        return (
            event.kind is EventKind.FORM_SUBMIT
            and event.key is not None
            and event.key.kind is RecordKind.INTRODUCTION
        )

    async def handle(self, event: InboundEvent) -> str:
        # Rejected before deferring so the member gets the grammar right away.
        self.service.validate_introduction(event.fields)
        await event.responder.defer()
        assert event.key is not None
        edit = event.key.action is Action.EDIT
        await self.service.submit_introduction(event.actor, event.key, event.fields)
        await event.responder.send(
            "Your introduction has been updated!" if edit else "Your introduction has been posted!"
        )
        return "edited" if edit else "created"


class LinkSetSubmit(Handler):
    name = "form:link_set"

    def __init__(self, service: IntroService) -> None:
        self.service = service

    def matches(self, event: InboundEvent) -> bool:
        return (
            event.kind is EventKind.FORM_SUBMIT
            and event.key is not None
            and event.key.kind is RecordKind.LINK_SET
        )

    async def handle(self, event: InboundEvent) -> str:
        self.service.validate_links(event.fields)
        await event.responder.defer()
        assert event.key is not None
        edit = event.key.action is Action.EDIT
        await self.service.submit_link_set(event.actor, event.key, event.fields)
        await event.responder.send(
            "Your links have been updated!" if edit else "Your links have been shared!"
        )
        return "edited" if edit else "created"


class ExpiredForm(Handler):
    """Claims submissions of our forms whose stashed key is gone."""

    name = "form:expired"

    def matches(self, event: InboundEvent) -> bool:
        return (
            event.kind is EventKind.FORM_SUBMIT
            and event.key is None
            and event.name.startswith(FORM_ID_PREFIX)
        )

    async def handle(self, event: InboundEvent) -> str:
        raise FormExpired()


class Diagnostic(Handler):
    name = "command:test"

    def __init__(self, service: IntroService) -> None:
        self.service = service

    def matches(self, event: InboundEvent) -> bool:
        return event.kind is EventKind.COMMAND and event.name == DIAGNOSTIC_COMMAND

    async def handle(self, event: InboundEvent) -> str:
        info = self.service.diagnostics()
        lines = ["The bot is working correctly."]
        for label, key in (
            ("Introduction channel", "introduction_channel"),
            ("Link channel", "link_set_channel"),
        ):
            channel_id = info.get(key)
            lines.append(f"{label}: {f'<#{channel_id}>' if channel_id else 'not configured'}")
        lines.append(
            f"Introductions: {info['introductions']}, link sets: {info['link_sets']}"
        )
        await event.responder.send("\n".join(lines), ephemeral=False)
        logger.info("test command has been used by %s", event.actor.id)
        return "ok"


def build_handlers(service: IntroService) -> List[Handler]:
    """Handlers in registration order."""

    return [
        OpenFormCommand(service, INTRODUCTION_COMMAND, RecordKind.INTRODUCTION, Action.CREATE),
        OpenFormCommand(service, INTRODUCTION_EDIT_COMMAND, RecordKind.INTRODUCTION, Action.EDIT),
        OpenFormCommand(service, LINK_SET_COMMAND, RecordKind.LINK_SET, Action.CREATE),
        OpenFormCommand(service, LINK_SET_EDIT_COMMAND, RecordKind.LINK_SET, Action.EDIT),
        Diagnostic(service),
        GuideButton(service, RecordKind.INTRODUCTION),
        GuideButton(service, RecordKind.LINK_SET),
        IntroductionSubmit(service),
        LinkSetSubmit(service),
        ExpiredForm(),
    ]


__all__ = [
    "DIAGNOSTIC_COMMAND",
    "Diagnostic",
    "ExpiredForm",
    "GuideButton",
    "INTRODUCTION_COMMAND",
    "INTRODUCTION_EDIT_COMMAND",
    "IntroductionSubmit",
    "LINK_SET_COMMAND",
    "LINK_SET_EDIT_COMMAND",
    "LinkSetSubmit",
    "OpenFormCommand",
    "build_handlers",
]
