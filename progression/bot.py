import asyncio
import logging
import os
import pathlib

import discord
from discord.ext import commands

from progression.database.db_manager import DBManager
from progression.utils.env import load_env
from progression.utils.logs import setup_logging

logger = logging.getLogger(__name__)


def get_intents() -> discord.Intents:
    # Slash commands only; no privileged intents needed
    return discord.Intents.default()


class ProgressionBot(commands.Bot):
    def __init__(self):
        super().__init__(command_prefix='/', intents=get_intents())

    async def setup_hook(self):
        cogs_path = pathlib.Path(__file__).parent / 'cogs'
        for file in sorted(cogs_path.glob('*_cog.py')):
            module = f'progression.cogs.{file.stem}'
            try:
                await self.load_extension(module)
                logger.info(f'Loaded {module}')
            except commands.ExtensionError:
                logger.error(f'Failed to load {module}', exc_info=True)

    async def on_ready(self):
        guild_id = os.getenv('GUILD_ID')
        if not guild_id:
            raise RuntimeError('GUILD_ID not set in environment or .env')

        guild = discord.Object(id=int(guild_id))
        self.tree.copy_global_to(guild=guild)
        await self.tree.sync(guild=guild)
        logger.info(f'Bot ready! Synced commands to guild {guild_id}')


async def main():
    load_env()
    token = os.getenv('DISCORD_TOKEN')
    if not token:
        raise RuntimeError('DISCORD_TOKEN not set in environment or .env')

    DBManager.init_pool()

    bot = ProgressionBot()
    try:
        async with bot:
            await bot.start(token)
    finally:
        DBManager.close_pool()


if __name__ == '__main__':
    setup_logging()
    asyncio.run(main())
