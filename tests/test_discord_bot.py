"""Smoke tests for bot wiring."""
from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest
from discord.ext import commands

from introbot.discord_bot import build_bot, main
from introbot.models import RecordKind

from conftest import INTRO_CHANNEL


@pytest.mark.asyncio
async def test_build_bot_registers_commands(tmp_path, settings, channels, monkeypatch):
    monkeypatch.delenv("DISCORD_APP_ID", raising=False)
    bot = build_bot(tmp_path / "board.db", settings=settings, channels=channels)

    names = sorted(command.name for command in bot.tree.get_commands())
    assert names == ["self", "self-edit", "sns", "sns-edit", "test"]
    assert bot.intro_service.channels is channels
    assert bot.guide_reconciler.monitors(INTRO_CHANNEL)
    assert [handler.name for handler in bot.interaction_router.handlers][:2] == [
        "command:self",
        "command:self-edit",
    ]
    assert bot.intro_service.settings.guides[RecordKind.INTRODUCTION].has_button


def test_main_requires_token(monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    with pytest.raises(RuntimeError):
        main()


@pytest.mark.asyncio
async def test_close_discards_guides_and_stops_maintenance(tmp_path, settings, channels, monkeypatch):
    monkeypatch.delenv("DISCORD_APP_ID", raising=False)
    base_close = AsyncMock()
    monkeypatch.setattr(commands.Bot, "close", base_close)
    bot = build_bot(tmp_path / "board.db", settings=settings, channels=channels)
    guides = Mock(shutdown=AsyncMock())
    bot.guide_reconciler = guides
    bot.maintenance = Mock()

    await bot.close()

    guides.shutdown.assert_awaited_once_with()
    bot.maintenance.shutdown.assert_called_once_with()
    base_close.assert_awaited_once()
