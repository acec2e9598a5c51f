"""Register the bot's slash commands with Discord without starting the gateway."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

import discord

from ..discord_bot import build_bot

logger = logging.getLogger(__name__)


async def sync_commands(token: str, db_path: Path, guild_id: Optional[int]) -> List[str]:
    bot = build_bot(db_path)
    async with bot:
        await bot.login(token)
        if guild_id is not None:
            guild = discord.Object(id=guild_id)
            bot.tree.copy_global_to(guild=guild)
            synced = await bot.tree.sync(guild=guild)
        else:
            synced = await bot.tree.sync()
    names = [command.name for command in synced]
    logger.info("Synced %d commands: %s", len(names), ", ".join(names))
    return names


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Register slash commands with Discord.")
    parser.add_argument(
        "--guild",
        type=int,
        default=None,
        help="Sync to a single guild (instant) instead of globally.",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=Path(os.environ.get("INTROBOT_DB", "introbot.db")),
        help="Path to the board SQLite database (default: introbot.db).",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args()
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    names = asyncio.run(sync_commands(token, args.db, args.guild))
    print(f"Registered commands: {', '.join(names)}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
