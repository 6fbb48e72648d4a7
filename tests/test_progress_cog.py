import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest
from discord import app_commands

from progression.cogs.progress_cog import ProgressCog

PUSH = app_commands.Choice(name='Push', value='push')


@pytest.fixture
def interaction():
    interaction = MagicMock()
    interaction.user.id = 42
    interaction.user.display_name = 'Sam'
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


def _record_thread(engine, name):
    '''Wrap an engine method so each call records the thread it ran on.'''
    threads = []
    original = getattr(engine, name)

    def wrapper(*args, **kwargs):
        threads.append(threading.get_ident())
        return original(*args, **kwargs)

    setattr(engine, name, wrapper)
    return threads


def test_train_runs_engine_off_the_event_loop(engine, interaction):
    cog = ProgressCog(None, engine=engine)
    threads = _record_thread(engine, 'apply_xp')

    asyncio.run(cog.train.callback(cog, interaction, PUSH, 3))

    assert len(threads) == 1
    assert threads[0] != threading.get_ident()
    progress = engine.get_progress('42')
    assert progress.total_xp == 30
    assert [(tx.source, tx.amount) for tx in progress.xp_history] == [('workout', 30)]
    interaction.response.defer.assert_awaited_once()
    embed = interaction.followup.send.await_args.kwargs['embed']
    assert embed.title == '+30 XP for Sam'


def test_reads_run_off_the_event_loop(engine, interaction):
    cog = ProgressCog(None, engine=engine)
    threads = _record_thread(engine, 'get_categories_comparison')

    asyncio.run(cog.balance.callback(cog, interaction))

    assert len(threads) == 1
    assert threads[0] != threading.get_ident()
    assert interaction.followup.send.await_args.kwargs['ephemeral'] is True


def test_engine_error_becomes_error_embed(engine, interaction):
    cog = ProgressCog(None, engine=engine)

    asyncio.run(cog.train.callback(cog, interaction, PUSH, 0))

    call = interaction.followup.send.await_args
    assert call.kwargs['ephemeral'] is True
    assert call.kwargs['embed'].title == 'Something went wrong'
    assert call.kwargs['embed'].description == 'XP amount must be a positive integer'
    assert engine.get_progress('42').total_xp == 0
