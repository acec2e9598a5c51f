"""Discord bot entry point for the introduction board."""
from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from .adapters.discord.builders import build_guide_view
from .adapters.discord.events import command_event, event_from_interaction
from .config import ChannelRouter, Settings, get_settings, parse_id_env
from .guide import GuideReconciler, GuideTarget
from .handlers import (
    DIAGNOSTIC_COMMAND,
    INTRODUCTION_COMMAND,
    INTRODUCTION_EDIT_COMMAND,
    LINK_SET_COMMAND,
    LINK_SET_EDIT_COMMAND,
    build_handlers,
)
from .publisher import MessagePublisher
from .router import InteractionRouter
from .scheduler import MaintenanceScheduler
from .service import IntroService
from .state import BoardState
from .telemetry_decorator import track_command

logger = logging.getLogger(__name__)

_ROUTED_INTERACTIONS = (discord.InteractionType.component, discord.InteractionType.modal_submit)


def _application_id() -> Optional[int]:
    app_id_raw = os.environ.get("DISCORD_APP_ID")
    if not app_id_raw:
        return None
    try:
        return int(app_id_raw)
    except ValueError:
        logger.warning("Invalid DISCORD_APP_ID: %s", app_id_raw)
        return None


class IntroBot(commands.Bot):
    """Bot whose close also stops guide refreshes and the maintenance job."""

    guide_reconciler: Optional[GuideReconciler] = None
    maintenance: Optional[MaintenanceScheduler] = None

    async def close(self) -> None:
        if self.guide_reconciler is not None:
            await self.guide_reconciler.shutdown()
        if self.maintenance is not None:
            self.maintenance.shutdown()
        await super().close()


def build_guides(
    bot: commands.Bot,
    channels: ChannelRouter,
    settings: Settings,
    publisher: MessagePublisher,
) -> GuideReconciler:
    targets: List[GuideTarget] = [
        GuideTarget(kind, channel_id, settings.guides[kind])
        for kind, channel_id in channels.monitored().items()
    ]
    return GuideReconciler(
        targets,
        publisher,
        bot_user_id=lambda: bot.user.id if bot.user is not None else None,
        view_factory=build_guide_view,
        min_interval=settings.guide_min_interval_seconds,
        settle_delay=settings.guide_settle_delay_seconds,
        history_limit=settings.guide_history_limit,
    )


def build_bot(
    db_path: Path,
    intents: Optional[discord.Intents] = None,
    *,
    settings: Optional[Settings] = None,
    channels: Optional[ChannelRouter] = None,
) -> IntroBot:
    intents = intents or discord.Intents.default()
    bot = IntroBot(command_prefix="/", intents=intents, application_id=_application_id())
    settings = settings or get_settings()
    channels = channels or ChannelRouter.from_env()
    if not channels.monitored():
        logger.warning("No introduction or link channel configured; record commands will refuse")

    state = BoardState(db_path)
    publisher = MessagePublisher(bot.get_channel)
    guides = build_guides(bot, channels, settings, publisher)
    service = IntroService(state, publisher, channels, settings, guides)
    router = InteractionRouter(channels, build_handlers(service))
    setattr(bot, "intro_service", service)
    setattr(bot, "interaction_router", router)
    bot.guide_reconciler = guides
    guild_id = parse_id_env("INTROBOT_GUILD_ID")
    scheduler: Optional[MaintenanceScheduler] = None
    guides_ready = False

    def _shutdown_scheduler() -> None:  # pragma: no cover - process shutdown hook
        if scheduler is not None:
            scheduler.shutdown()

    atexit.register(_shutdown_scheduler)

    @bot.event
    async def on_ready() -> None:
        nonlocal scheduler, guides_ready
        logger.info("Introduction bot connected as %s", bot.user)
        try:
            if guild_id is not None:
                guild = discord.Object(id=guild_id)
                bot.tree.copy_global_to(guild=guild)
                synced = await bot.tree.sync(guild=guild)
            else:
                synced = await bot.tree.sync()
            logger.info("Synced %d commands", len(synced))
        except Exception as exc:  # pragma: no cover - logging only
            logger.exception("Failed to sync commands: %s", exc)
        # on_ready fires again after reconnects; guides survive in memory.
        if not guides_ready:
            guides_ready = True
            await guides.initialize_all()
        if scheduler is None:
            scheduler = MaintenanceScheduler(
                state,
                interval_minutes=settings.maintenance_interval_minutes,
                form_state_max_age_hours=settings.form_state_max_age_hours,
                telemetry_retention_days=settings.telemetry_retention_days,
            )
            scheduler.start()
            bot.maintenance = scheduler

    @bot.listen("on_message")
    async def refresh_guide_on_message(message: discord.Message) -> None:
        guides.note_activity(message.channel.id, message.author.id)

    @bot.listen("on_interaction")
    async def route_interaction(interaction: discord.Interaction) -> None:
        if interaction.type not in _ROUTED_INTERACTIONS:
            return
        event = event_from_interaction(interaction, service)
        if event is not None:
            await router.dispatch(event)

    @app_commands.command(name=INTRODUCTION_COMMAND, description="Post your introduction")
    @track_command
    async def introduce(interaction: discord.Interaction) -> None:
        await router.dispatch(command_event(interaction, INTRODUCTION_COMMAND))

    @app_commands.command(name=INTRODUCTION_EDIT_COMMAND, description="Edit your introduction")
    @track_command
    async def edit_introduction(interaction: discord.Interaction) -> None:
        await router.dispatch(command_event(interaction, INTRODUCTION_EDIT_COMMAND))

    @app_commands.command(name=LINK_SET_COMMAND, description="Share your social links")
    @track_command
    async def share_links(interaction: discord.Interaction) -> None:
        await router.dispatch(command_event(interaction, LINK_SET_COMMAND))

    @app_commands.command(name=LINK_SET_EDIT_COMMAND, description="Edit your social links")
    @track_command
    async def edit_links(interaction: discord.Interaction) -> None:
        await router.dispatch(command_event(interaction, LINK_SET_EDIT_COMMAND))

    @app_commands.command(name=DIAGNOSTIC_COMMAND, description="Check that the bot is working")
    @track_command
    async def diagnose(interaction: discord.Interaction) -> None:
        await router.dispatch(command_event(interaction, DIAGNOSTIC_COMMAND))

    bot.tree.add_command(introduce)
    bot.tree.add_command(edit_introduction)
    bot.tree.add_command(share_links)
    bot.tree.add_command(edit_links)
    bot.tree.add_command(diagnose)

    return bot


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    db_path = Path(os.environ.get("INTROBOT_DB", "introbot.db"))
    bot = build_bot(db_path)
    bot.run(token)


__all__ = ["build_bot", "build_guides", "main"]
