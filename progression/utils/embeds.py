from typing import Sequence

import discord

from progression.models.progress import UserProgress
from progression.services.levels import LevelInfo

# Discord caps embed field values at 1024 characters
FIELD_LIMIT = 900


def progress_bar(percent: int, width: int = 10) -> str:
    filled = max(0, min(width, (percent * width) // 100))
    return '▰' * filled + '▱' * (width - filled)


def chunk_lines(lines: Sequence[str], max_len: int = FIELD_LIMIT) -> list[str]:
    chunks: list[str] = []
    cur: list[str] = []
    cur_len = 0
    for ln in lines:
        add_len = len(ln) + 1
        if cur_len + add_len > max_len and cur:
            chunks.append('\n'.join(cur))
            cur = []
            cur_len = 0
        cur.append(ln)
        cur_len += add_len
    if cur:
        chunks.append('\n'.join(cur))
    return chunks


def xp_result_embed(name: str, result) -> discord.Embed:
    '''Reply for a successful apply_xp call.'''
    color = discord.Color.gold() if result.leveled_up else discord.Color.green()
    embed = discord.Embed(title=f'+{result.xp_applied} XP for {name}', color=color)
    if result.category is not None:
        embed.add_field(
            name=result.category.value.title(),
            value=f'Level {result.category_level}',
        )
    embed.add_field(name='Level', value=str(result.level))
    embed.add_field(name='Total XP', value=f'{result.total_xp:,}')
    if result.leveled_up:
        embed.description = f'🎉 Level up! {result.previous_level} → {result.level}'
    if result.unlocked:
        lines = [f'🏆 {d.title} (+{d.xp_reward} XP)' for d in result.unlocked]
        embed.add_field(name='Unlocked', value='\n'.join(lines), inline=False)
    return embed


def progress_embed(name: str, progress: UserProgress, info: LevelInfo) -> discord.Embed:
    embed = discord.Embed(title=f"{name}'s Progress", color=discord.Color.blurple())
    embed.add_field(name='Level', value=str(info.level))
    embed.add_field(name='Total XP', value=f'{progress.total_xp:,}')
    embed.add_field(
        name='Next level',
        value=(
            f'{progress_bar(info.progress_percent)} '
            f'{info.xp_to_next_level:,} XP to go'
        ),
        inline=False,
    )
    lines = [
        f'**{c.value.title()}**: level {p.level} ({p.xp:,} XP)'
        for c, p in progress.category_progress.items()
    ]
    embed.add_field(name='Categories', value='\n'.join(lines), inline=False)
    embed.set_footer(text=f'{len(progress.unlocked_achievement_ids)} achievements')
    return embed


def category_embed(name: str, stats) -> discord.Embed:
    embed = discord.Embed(
        title=f'{stats.meta.name} • {name}',
        description=stats.meta.description,
        color=discord.Color.teal(),
    )
    embed.add_field(name='Level', value=str(stats.level))
    embed.add_field(name='XP', value=f'{stats.xp:,}')
    embed.add_field(name='Share of total', value=f'{stats.percent_of_total}%')
    embed.add_field(
        name='Next level',
        value=(
            f'{progress_bar(stats.level_progress_percent)} '
            f'{stats.xp_to_next_level:,} XP to go'
        ),
        inline=False,
    )
    rank = stats.rank
    rank_value = rank.rank
    if rank.next_rank:
        rank_value += f' ({rank.xp_to_next_rank:,} XP to {rank.next_rank})'
    embed.add_field(name='Rank', value=rank_value, inline=False)
    if stats.recent_activity:
        lines = [
            f'{tx.date.date().isoformat()} • +{tx.amount} XP ({tx.source})'
            for tx in stats.recent_activity
        ]
        embed.add_field(name='Recent activity', value='\n'.join(lines), inline=False)
    return embed


def achievements_embed(name: str, statuses, mode: str = 'earned') -> discord.Embed:
    embed = discord.Embed(
        title=f'Achievements for {name}', color=discord.Color.gold()
    )
    earned = [
        f'🏆 {s.definition.title} (+{s.definition.xp_reward} XP)\n'
        f'_{s.definition.description}_'
        for s in statuses
        if s.unlocked
    ]
    locked = [
        f'🔒 {s.definition.title} ({s.progress}%)\n_{s.definition.description}_'
        for s in statuses
        if not s.unlocked
    ]

    sections = []
    if mode in ('earned', 'all'):
        sections.append(('Earned', earned, 'No achievements earned yet.'))
    if mode in ('locked', 'all'):
        sections.append(('Locked', locked, 'No locked achievements.'))

    for title, lines, empty in sections:
        if not lines:
            if mode != 'all':
                embed.add_field(name=title, value=empty, inline=False)
            continue
        for idx, block in enumerate(chunk_lines(lines), start=1):
            embed.add_field(
                name=(title if idx == 1 else f'{title} (cont.)'),
                value=block,
                inline=False,
            )
    return embed


def error_embed(message: str) -> discord.Embed:
    return discord.Embed(
        title='Something went wrong', description=message, color=discord.Color.red()
    )


def balance_embed(name: str, comparison) -> discord.Embed:
    embed = discord.Embed(
        title=f'Training balance • {name}',
        description=comparison.balance_message,
        color=discord.Color.orange(),
    )
    embed.add_field(name='Balance score', value=f'{comparison.balance_score}/100')
    embed.add_field(name='Average level', value=f'{comparison.average_level:.1f}')
    lines = [
        f'**{s.meta.name}**: {s.xp:,} XP ({s.percent_of_total}%) • {s.rank.rank}'
        for s in comparison.categories
    ]
    embed.add_field(name='Categories', value='\n'.join(lines), inline=False)
    embed.set_footer(
        text=(
            f'Strongest: {comparison.strongest.meta.name} • '
            f'Weakest: {comparison.weakest.meta.name}'
        )
    )
    return embed


def history_embed(name: str, points, group_by: str = 'week') -> discord.Embed:
    embed = discord.Embed(
        title=f'XP by {group_by} • {name}', color=discord.Color.dark_teal()
    )
    if not points:
        embed.description = 'No XP earned in this window yet.'
        return embed
    peak = max(p.xp for p in points) or 1
    lines = [
        f'`{p.period_start.isoformat()}` {progress_bar((p.xp * 100) // peak)} '
        f'+{p.xp:,} ({p.cumulative_xp:,} total)'
        for p in points
    ]
    for idx, block in enumerate(chunk_lines(lines), start=1):
        embed.add_field(
            name=('History' if idx == 1 else 'History (cont.)'),
            value=block,
            inline=False,
        )
    return embed
