"""Shared fixtures and in-memory Discord fakes."""
from __future__ import annotations

import itertools
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import discord
import pytest

from introbot.config import DEFAULT_SETTINGS_PATH, ChannelRouter, SettingsLoader
from introbot.forms import FormSpec
from introbot.models import Actor
from introbot.publisher import MessagePublisher
from introbot.router import Responder
from introbot.service import IntroService
from introbot.state import BoardState
from introbot.telemetry import TelemetryCollector, set_telemetry

BOT_USER_ID = 999
GUILD_ID = 1
INTRO_CHANNEL = 100
LINKS_CHANNEL = 200

_message_ids = itertools.count(10_000)


def http_error(status: int = 404, cls: type = discord.NotFound) -> discord.HTTPException:
    response = SimpleNamespace(status=status, reason="Error")
    return cls(response, "request failed")


class FakeMessage:
    def __init__(self, content: Optional[str], author_id: int, view: Any = None) -> None:
        self.id = next(_message_ids)
        self.content = content or ""
        self.author = SimpleNamespace(id=author_id)
        self.view = view
        self.username: Optional[str] = None
        self.avatar_url: Optional[str] = None


class FakePartialMessage:
    def __init__(self, channel: "FakeChannel", message_id: int) -> None:
        self.channel = channel
        self.id = message_id

    async def delete(self) -> None:
        for message in self.channel.messages:
            if message.id == self.id:
                self.channel.messages.remove(message)
                self.channel.deleted.append(self.id)
                return
        raise http_error(404)


class FakeWebhook:
    _ids = itertools.count(5_000)

    def __init__(self, channel: "FakeChannel", name: str) -> None:
        self.id = next(self._ids)
        self.channel = channel
        self.name = name
        self.deleted = False

    async def send(self, content: str, username: str, avatar_url: Optional[str], wait: bool) -> FakeMessage:
        assert wait is True
        if self.channel.fail_webhook_send:
            raise http_error(500, discord.HTTPException)
        message = self.channel.add(content, author_id=self.id)
        message.username = username
        message.avatar_url = avatar_url
        return message

    async def delete(self) -> None:
        self.deleted = True


class FakeChannel:
    """Text channel keeping its messages oldest first."""

    def __init__(self, channel_id: int, guild_id: int = GUILD_ID) -> None:
        self.id = channel_id
        self.guild = SimpleNamespace(id=guild_id)
        self.messages: List[FakeMessage] = []
        self.deleted: List[int] = []
        self.webhooks: List[FakeWebhook] = []
        self.fail_history = False
        self.fail_send = False
        self.fail_create_webhook = False
        self.fail_webhook_send = False

    def add(self, content: Optional[str], author_id: int, view: Any = None) -> FakeMessage:
        message = FakeMessage(content, author_id, view)
        self.messages.append(message)
        return message

    @property
    def contents(self) -> List[str]:
        return [message.content for message in self.messages]

    async def send(self, content: Optional[str] = None, view: Any = None) -> FakeMessage:
        if self.fail_send:
            raise http_error(500, discord.HTTPException)
        return self.add(content, BOT_USER_ID, view)

    def history(self, limit: int = 100):
        async def _iterate():
            if self.fail_history:
                raise http_error(403, discord.Forbidden)
            for message in list(reversed(self.messages))[:limit]:
                yield message

        return _iterate()

    def get_partial_message(self, message_id: int) -> FakePartialMessage:
        return FakePartialMessage(self, message_id)

    async def create_webhook(self, name: str) -> FakeWebhook:
        if self.fail_create_webhook:
            raise http_error(403, discord.Forbidden)
        webhook = FakeWebhook(self, name)
        self.webhooks.append(webhook)
        return webhook


class FakeResponder(Responder):
    def __init__(self) -> None:
        self.sent: List[tuple[str, bool]] = []
        self.forms: List[FormSpec] = []
        self.deferred = False

    async def send(self, content: str, *, ephemeral: bool = True) -> None:
        self.sent.append((content, ephemeral))

    async def defer(self) -> None:
        self.deferred = True

    async def open_form(self, form: FormSpec) -> None:
        self.forms.append(form)

    @property
    def last(self) -> str:
        return self.sent[-1][0]


def make_actor(actor_id: str = "42", name: str = "Alice") -> Actor:
    return Actor(id=actor_id, display_name=name, avatar_url=f"https://cdn.example/{actor_id}.png")


def intro_values(**overrides: str) -> Dict[str, str]:
    values = {
        "name": "Alice",
        "contact_handle": "alice.s",
        "course": "3x weekly",
        "cohort": "N1",
        "note": "Hello everyone!",
    }
    values.update(overrides)
    return values


@pytest.fixture(autouse=True)
def telemetry(tmp_path: Path):
    collector = TelemetryCollector(tmp_path / "telemetry.db")
    set_telemetry(collector)
    yield collector
    set_telemetry(None)


@pytest.fixture
def settings():
    return SettingsLoader(DEFAULT_SETTINGS_PATH).load()


@pytest.fixture
def channels() -> ChannelRouter:
    return ChannelRouter(introduction=INTRO_CHANNEL, link_set=LINKS_CHANNEL)


@pytest.fixture
def fake_channels() -> Dict[int, FakeChannel]:
    return {INTRO_CHANNEL: FakeChannel(INTRO_CHANNEL), LINKS_CHANNEL: FakeChannel(LINKS_CHANNEL)}


@pytest.fixture
def publisher(fake_channels) -> MessagePublisher:
    return MessagePublisher(fake_channels.get)


@pytest.fixture
def state(tmp_path: Path) -> BoardState:
    return BoardState(tmp_path / "board.db")


@pytest.fixture
def service(state, publisher, channels, settings) -> IntroService:
    return IntroService(state, publisher, channels, settings)
