import asyncio
import logging
from datetime import timedelta
from typing import Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from progression.achievements.engine import ProgressionEngine, build_engine
from progression.exceptions import ProgressionError
from progression.models.progress import utcnow
from progression.utils.constants import CATEGORIES, WORKOUT_SOURCE, XP_PER_SET
from progression.utils.embeds import (
    achievements_embed,
    balance_embed,
    category_embed,
    error_embed,
    history_embed,
    progress_embed,
    xp_result_embed,
)

logger = logging.getLogger(__name__)

CATEGORY_CHOICES = [
    app_commands.Choice(name=c.value.title(), value=c.value) for c in CATEGORIES
]


class ProgressCog(commands.Cog):
    '''Slash commands that feed workouts into the progression engine.'''

    def __init__(self, bot: commands.Bot, engine: Optional[ProgressionEngine] = None):
        self.bot = bot
        self.engine = engine or build_engine()

    async def _fail(self, interaction: Interaction, error: ProgressionError):
        logger.warning(f'Progression request failed: {error}')
        await interaction.followup.send(
            embed=error_embed(error.message), ephemeral=True
        )

    @app_commands.command(name='train', description='Log sets in a category to earn XP')
    @app_commands.describe(
        category='Movement category the sets belong to',
        sets='Number of working sets completed',
    )
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def train(
        self,
        interaction: Interaction,
        category: app_commands.Choice[str],
        sets: app_commands.Range[int, 1, 100],
    ):
        await interaction.response.defer(thinking=True)
        try:
            result = await asyncio.to_thread(
                self.engine.apply_xp,
                str(interaction.user.id),
                sets * XP_PER_SET,
                WORKOUT_SOURCE,
                category=category.value,
                description=f'{sets} {category.name} sets',
            )
        except ProgressionError as e:
            await self._fail(interaction, e)
            return
        await interaction.followup.send(
            embed=xp_result_embed(interaction.user.display_name, result)
        )

    @app_commands.command(name='progress', description='Show your level and XP')
    @app_commands.describe(member='Optional: The member whose progress to show')
    async def progress(
        self, interaction: Interaction, member: discord.Member | None = None
    ):
        target = member or interaction.user
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            progress = await asyncio.to_thread(self.engine.get_progress, str(target.id))
        except ProgressionError as e:
            await self._fail(interaction, e)
            return
        info = self.engine.calculator.level_for(progress.total_xp)
        await interaction.followup.send(
            embed=progress_embed(target.display_name, progress, info), ephemeral=True
        )

    @app_commands.command(name='category', description='Statistics for one category')
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def category(
        self, interaction: Interaction, category: app_commands.Choice[str]
    ):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            stats = await asyncio.to_thread(
                self.engine.get_category_statistics,
                category.value, str(interaction.user.id)
            )
        except ProgressionError as e:
            await self._fail(interaction, e)
            return
        await interaction.followup.send(
            embed=category_embed(interaction.user.display_name, stats), ephemeral=True
        )

    @app_commands.command(name='achievements', description='View your achievements')
    @app_commands.choices(
        show=[
            app_commands.Choice(name='Earned', value='earned'),
            app_commands.Choice(name='Locked', value='locked'),
            app_commands.Choice(name='All', value='all'),
        ]
    )
    async def achievements(
        self,
        interaction: Interaction,
        show: app_commands.Choice[str] | None = None,
    ):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            statuses = await asyncio.to_thread(
                self.engine.achievements_with_status, str(interaction.user.id)
            )
        except ProgressionError as e:
            await self._fail(interaction, e)
            return
        mode = (show.value if show else 'earned').lower()
        await interaction.followup.send(
            embed=achievements_embed(interaction.user.display_name, statuses, mode),
            ephemeral=True,
        )

    @app_commands.command(name='balance', description='Compare your four categories')
    async def balance(self, interaction: Interaction):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            comparison = await asyncio.to_thread(
                self.engine.get_categories_comparison, str(interaction.user.id)
            )
        except ProgressionError as e:
            await self._fail(interaction, e)
            return
        await interaction.followup.send(
            embed=balance_embed(interaction.user.display_name, comparison),
            ephemeral=True,
        )

    @app_commands.command(name='history', description='XP earned over recent weeks')
    @app_commands.describe(
        weeks='How many weeks back to show (default 8)',
        category='Optional: only count XP from this category',
    )
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def history(
        self,
        interaction: Interaction,
        weeks: app_commands.Range[int, 1, 52] = 8,
        category: app_commands.Choice[str] | None = None,
    ):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            points = await asyncio.to_thread(
                self.engine.get_xp_history,
                str(interaction.user.id),
                since=utcnow() - timedelta(weeks=weeks),
                group_by='week',
                category=category.value if category else None,
            )
        except ProgressionError as e:
            await self._fail(interaction, e)
            return
        await interaction.followup.send(
            embed=history_embed(interaction.user.display_name, points, 'week'),
            ephemeral=True,
        )


async def setup(bot: commands.Bot):
    await bot.add_cog(ProgressCog(bot))
